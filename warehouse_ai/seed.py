"""Seed the inventory database from a warehouse on-hand CSV extract.

Usage: python -m warehouse_ai.seed path/to/extract.csv
"""
import argparse
import asyncio
import csv
import logging
from pathlib import Path
from typing import Dict, Iterator, Optional

from sqlalchemy import delete

from .store import InventoryRow, InventoryStore

logger = logging.getLogger(__name__)

BATCH_SIZE = 500


def _int(value: str) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _float(value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _opt(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def parse_row(row: Dict[str, str]) -> InventoryRow:
    """Map one extract row (upper-case headers) onto an InventoryRow."""
    return InventoryRow(
        product_number=(row.get("PRODUCT_NUMBER") or "").strip(),
        area_id=(row.get("AREA_ID") or "").strip().upper(),
        aisle=_int(row.get("AISLE")),
        bay=_int(row.get("BAY")),
        level_number=_int(row.get("LEVEL_NUMBER")),
        zone=_opt(row.get("ZONE")),
        warehouse_locn=(row.get("WAREHOUSE_LOCN") or "").strip(),
        prod_desc=_opt(row.get("PROD_DESC")),
        license_plate=(row.get("LICENSE_PLATE") or "").strip(),
        pallet_id=(row.get("PALLET_ID") or "").strip(),
        pallet_status=(row.get("PALLET_STATUS") or "").strip(),
        qty_avail_units=_int(row.get("QTY_AVAIL_UNITS")),
        qty_avail_eaches=_int(row.get("QTY_AVAIL_EACHES")),
        invy_status=(row.get("INVY_STATUS") or "").strip(),
        slot_status=(row.get("SLOT_STATUS") or "").strip(),
        rack_type=(row.get("RACK_TYPE") or "").strip(),
        slot_type=(row.get("SLOT_TYPE") or "").strip(),
        slot_cube=_float(row.get("SLOT_CUBE")),
        avail_cube_remaining=_float(row.get("AVAIL_CUBE_REMAINING")),
        date_received=_opt(row.get("DATE_RECEIVED")),
        expiration_date=_opt(row.get("EXPIRATION_DATE")),
    )


def read_csv(path: Path) -> Iterator[InventoryRow]:
    with open(path, newline="", encoding="utf-8-sig") as f:
        for lineno, row in enumerate(csv.DictReader(f), start=2):
            parsed = parse_row(row)
            if not parsed.product_number or not parsed.area_id:
                logger.warning(f"Skipping line {lineno}: missing product number or area")
                continue
            yield parsed


async def seed_store(store: InventoryStore, path: Path) -> int:
    """Load every valid CSV row into the store in batches."""
    total = 0
    batch = []
    for row in read_csv(path):
        batch.append(row)
        if len(batch) >= BATCH_SIZE:
            total += await store.add_rows(batch)
            batch = []
            logger.info(f"Processed {total} rows...")
    if batch:
        total += await store.add_rows(batch)
    logger.info(f"Seeded {total} inventory rows from {path}")
    return total


async def _main(csv_path: Path, keep_existing: bool):
    from .database import async_session_factory, init_db
    from .models import InventoryLocation
    from .store import SqlInventoryStore

    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    await init_db()
    if not keep_existing:
        async with async_session_factory() as db:
            await db.execute(delete(InventoryLocation))
            await db.commit()
        logger.info("Cleared existing inventory data")

    store = SqlInventoryStore(async_session_factory)
    await seed_store(store, csv_path)
    logger.info(f"Total records in database: {await store.count()}")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    parser = argparse.ArgumentParser(description="Seed inventory from a CSV extract")
    parser.add_argument("csv_path", type=Path)
    parser.add_argument("--keep-existing", action="store_true", help="append instead of replacing rows")
    args = parser.parse_args()
    asyncio.run(_main(args.csv_path, args.keep_existing))

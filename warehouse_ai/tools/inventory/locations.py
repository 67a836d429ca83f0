"""Lookup tools: product, license plate, pallet and slot coordinates."""
import logging
from typing import Optional

from ..registry import ToolParam
from ...store import InventoryStore, any_of, where
from . import catalog, percent, round2

logger = logging.getLogger(__name__)

_SLOT_ORDER = ("area_id", "aisle", "bay", "level_number")


@catalog.register(
    "find_product_locations",
    description="Search for products by product ID or description and return their warehouse locations",
    params=[
        ToolParam("product_number", description="exact product number"),
        ToolParam("product_description", description="text to search for in product descriptions (case-insensitive)"),
        ToolParam("limit", type="int", description="maximum rows to return", default=50),
    ],
    intent_tags=["location", "find", "where", "search", "product", "locate", "position"],
    category="lookup",
)
async def find_product_locations(store: InventoryStore, product_number: Optional[str] = None,
                                 product_description: Optional[str] = None, limit: int = 50, **kwargs) -> dict:
    if not product_number and not product_description:
        raise ValueError("Either product_number or product_description must be provided")

    conditions = []
    criteria = []
    if product_number:
        conditions.append(where("product_number", "eq", str(product_number)))
        criteria.append(f"Product Number: {product_number}")
    if product_description:
        conditions.append(where("prod_desc", "contains", product_description))
        criteria.append(f'Description contains: "{product_description}"')

    rows = await store.fetch(conditions, order_by=_SLOT_ORDER, limit=limit)
    return {
        "products": [r.to_dict() for r in rows],
        "total_found": len(rows),
        "search_criteria": ", ".join(criteria),
    }


async def _find_by_identifier(store: InventoryStore, field: str, value: str, exact_match: bool) -> list:
    op = "eq" if exact_match else "contains"
    rows = await store.fetch([where(field, op, value)], order_by=_SLOT_ORDER)
    return [r.to_dict() for r in rows]


@catalog.register(
    "find_by_license_plate",
    description="Search for inventory items by license plate number",
    params=[
        ToolParam("license_plate", description="license plate number", required=True),
        ToolParam("exact_match", type="bool", description="exact or partial match", default=True),
    ],
    intent_tags=["license", "plate", "lp", "identification", "tracking"],
    category="lookup",
)
async def find_by_license_plate(store: InventoryStore, license_plate: str, exact_match: bool = True,
                                **kwargs) -> dict:
    items = await _find_by_identifier(store, "license_plate", license_plate, exact_match)
    return {
        "items": items,
        "total_found": len(items),
        "license_plate": license_plate,
        "search_type": "exact" if exact_match else "partial",
    }


@catalog.register(
    "find_by_pallet_id",
    description="Search for inventory items by pallet ID",
    params=[
        ToolParam("pallet_id", description="pallet identifier", required=True),
        ToolParam("exact_match", type="bool", description="exact or partial match", default=True),
    ],
    intent_tags=["pallet", "id", "identifier", "tracking", "container"],
    category="lookup",
)
async def find_by_pallet_id(store: InventoryStore, pallet_id: str, exact_match: bool = True, **kwargs) -> dict:
    items = await _find_by_identifier(store, "pallet_id", pallet_id, exact_match)
    return {
        "items": items,
        "total_found": len(items),
        "pallet_id": pallet_id,
        "search_type": "exact" if exact_match else "partial",
    }


def _range(values) -> str:
    values = sorted(set(values))
    if not values:
        return "N/A"
    if len(values) == 1:
        return str(values[0])
    return f"{values[0]}-{values[-1]}"


@catalog.register(
    "find_by_location",
    description="Search inventory by warehouse location coordinates (area, aisle, bay, level, zone)",
    params=[
        ToolParam("area_id", description="area (F=Frozen, D=Dry, R=Refrigerated)", enum=["F", "D", "R"]),
        ToolParam("aisle", type="int", description="aisle number"),
        ToolParam("bay", type="int", description="bay number"),
        ToolParam("level_number", type="int", description="rack level"),
        ToolParam("zone", description="zone code"),
        ToolParam("include_empty", type="bool", description="include empty slots", default=False),
        ToolParam("sort_by", description="result order", default="product",
                  enum=["product", "quantity", "expiration"]),
    ],
    intent_tags=["coordinates", "aisle", "bay", "level", "address", "position"],
    category="lookup",
)
async def find_by_location(store: InventoryStore, area_id: Optional[str] = None, aisle: Optional[int] = None,
                           bay: Optional[int] = None, level_number: Optional[int] = None,
                           zone: Optional[str] = None, include_empty: bool = False,
                           sort_by: str = "product", **kwargs) -> dict:
    conditions = []
    criteria = {}
    if area_id:
        conditions.append(where("area_id", "eq", area_id.upper()))
        criteria["area_id"] = area_id.upper()
    for name, value in (("aisle", aisle), ("bay", bay), ("level_number", level_number)):
        if value is not None:
            conditions.append(where(name, "eq", int(value)))
            criteria[name] = int(value)
    if zone:
        conditions.append(where("zone", "eq", zone))
        criteria["zone"] = zone
    if not include_empty:
        conditions.append(any_of(where("qty_avail_units", "gt", 0), where("qty_avail_eaches", "gt", 0)))

    rows = await store.fetch(conditions)
    if sort_by == "quantity":
        rows.sort(key=lambda r: r.total_quantity, reverse=True)
    elif sort_by == "expiration":
        rows.sort(key=lambda r: (r.expiration_date is None, r.expiration_date or ""))
    else:
        rows.sort(key=lambda r: r.product_number)

    total_cube = sum(r.slot_cube for r in rows)
    used_cube = sum(r.used_cube for r in rows)
    occupied = sum(1 for r in rows if r.occupied)
    summary = {
        "total_slots": len(rows),
        "occupied_slots": occupied,
        "empty_slots": len(rows) - occupied,
        "total_units": sum(r.qty_avail_units for r in rows),
        "total_eaches": sum(r.qty_avail_eaches for r in rows),
        "total_cube": round2(total_cube),
        "utilization_percent": percent(used_cube, total_cube),
        "unique_products": len({r.product_number for r in rows}),
        "area_range": ", ".join(sorted({r.area_id for r in rows})) or "N/A",
        "aisle_range": _range(r.aisle for r in rows),
        "bay_range": _range(r.bay for r in rows),
        "level_range": _range(r.level_number for r in rows),
    }
    return {
        "items": [r.to_dict() for r in rows],
        "summary": summary,
        "total_found": len(rows),
        "search_criteria": criteria,
    }

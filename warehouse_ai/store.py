"""Inventory data store boundary.

Tools never touch SQL directly. They describe what they want with a list of
criteria and receive typed ``InventoryRow`` values back. Two backends share
the interface: ``SqlInventoryStore`` (SQLAlchemy async) and
``MemoryInventoryStore`` (in-process, used by tests and demos).
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, fields
from typing import Any, Iterable, List, Optional, Sequence, Union

from sqlalchemy import and_, func, or_, select, text
from sqlalchemy.ext.asyncio import async_sessionmaker

logger = logging.getLogger(__name__)


@dataclass
class InventoryRow:
    product_number: str
    area_id: str
    aisle: int = 0
    bay: int = 0
    level_number: int = 0
    zone: Optional[str] = None
    warehouse_locn: str = ""
    prod_desc: Optional[str] = None
    license_plate: str = ""
    pallet_id: str = ""
    pallet_status: str = ""
    qty_avail_units: int = 0
    qty_avail_eaches: int = 0
    invy_status: str = ""
    slot_status: str = ""
    rack_type: str = ""
    slot_type: str = ""
    slot_cube: float = 0.0
    avail_cube_remaining: float = 0.0
    date_received: Optional[str] = None
    expiration_date: Optional[str] = None

    @property
    def total_quantity(self) -> int:
        return self.qty_avail_units + self.qty_avail_eaches

    @property
    def used_cube(self) -> float:
        return self.slot_cube - self.avail_cube_remaining

    @property
    def occupied(self) -> bool:
        return self.qty_avail_units > 0 or self.qty_avail_eaches > 0

    def to_dict(self) -> dict:
        return asdict(self)


ROW_FIELDS = tuple(f.name for f in fields(InventoryRow))

_OPS = ("eq", "contains", "gt", "gte", "lt", "lte", "not_null")


@dataclass(frozen=True)
class Criterion:
    """Single-field predicate. ``contains`` is case-insensitive."""
    field: str
    op: str = "eq"
    value: Any = None

    def __post_init__(self):
        if self.field not in ROW_FIELDS:
            raise ValueError(f"Unknown inventory field: {self.field}")
        if self.op not in _OPS:
            raise ValueError(f"Unknown operator: {self.op}")


@dataclass(frozen=True)
class AnyOf:
    """Disjunction of conditions."""
    criteria: tuple


@dataclass(frozen=True)
class AllOf:
    """Conjunction of conditions, for nesting inside ``AnyOf``."""
    criteria: tuple


Condition = Union[Criterion, AnyOf, AllOf]


def where(field: str, op: str = "eq", value: Any = None) -> Criterion:
    return Criterion(field, op, value)


def any_of(*criteria: Condition) -> AnyOf:
    return AnyOf(tuple(criteria))


def all_of(*criteria: Condition) -> AllOf:
    return AllOf(tuple(criteria))


class InventoryStore(ABC):
    """Async read access to inventory rows."""

    @abstractmethod
    async def fetch(self, conditions: Sequence[Condition] = (), order_by: Sequence[str] = (),
                    limit: Optional[int] = None) -> List[InventoryRow]:
        """Return rows matching every condition.

        ``order_by`` entries are field names, prefixed with ``-`` for
        descending order.
        """

    @abstractmethod
    async def count(self, conditions: Sequence[Condition] = ()) -> int:
        ...

    @abstractmethod
    async def add_rows(self, rows: Iterable[InventoryRow]) -> int:
        ...

    @abstractmethod
    async def ping(self) -> bool:
        ...


# ── In-memory backend ───────────────────────────────────────

def _match(row: InventoryRow, cond: Condition) -> bool:
    if isinstance(cond, AnyOf):
        return any(_match(row, c) for c in cond.criteria)
    if isinstance(cond, AllOf):
        return all(_match(row, c) for c in cond.criteria)
    actual = getattr(row, cond.field)
    if cond.op == "not_null":
        return actual is not None
    if actual is None:
        return False
    if cond.op == "eq":
        return actual == cond.value
    if cond.op == "contains":
        return str(cond.value).lower() in str(actual).lower()
    if cond.op == "gt":
        return actual > cond.value
    if cond.op == "gte":
        return actual >= cond.value
    if cond.op == "lt":
        return actual < cond.value
    return actual <= cond.value


def _sort_key(name: str):
    def key(row: InventoryRow):
        value = getattr(row, name)
        return (value is None, value if value is not None else "")
    return key


class MemoryInventoryStore(InventoryStore):
    def __init__(self, rows: Iterable[InventoryRow] = ()):
        self._rows: List[InventoryRow] = list(rows)
        self.fail_with: Optional[Exception] = None

    async def fetch(self, conditions=(), order_by=(), limit=None):
        if self.fail_with:
            raise self.fail_with
        rows = [r for r in self._rows if all(_match(r, c) for c in conditions)]
        # Stable multi-key sort: apply keys last to first.
        for key in reversed(list(order_by)):
            rows.sort(key=_sort_key(key.lstrip("-")), reverse=key.startswith("-"))
        if limit is not None:
            rows = rows[:limit]
        return [InventoryRow(**r.to_dict()) for r in rows]

    async def count(self, conditions=()):
        return len(await self.fetch(conditions))

    async def add_rows(self, rows):
        added = list(rows)
        self._rows.extend(added)
        return len(added)

    async def ping(self):
        return self.fail_with is None


# ── SQL backend ─────────────────────────────────────────────

class SqlInventoryStore(InventoryStore):
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _clause(cond: Condition):
        from .models import InventoryLocation

        if isinstance(cond, AnyOf):
            return or_(*(SqlInventoryStore._clause(c) for c in cond.criteria))
        if isinstance(cond, AllOf):
            return and_(*(SqlInventoryStore._clause(c) for c in cond.criteria))
        column = getattr(InventoryLocation, cond.field)
        if cond.op == "eq":
            return column == cond.value
        if cond.op == "contains":
            return func.lower(column).contains(str(cond.value).lower())
        if cond.op == "gt":
            return column > cond.value
        if cond.op == "gte":
            return column >= cond.value
        if cond.op == "lt":
            return column < cond.value
        if cond.op == "lte":
            return column <= cond.value
        return column.is_not(None)

    def _select(self, conditions):
        from .models import InventoryLocation

        stmt = select(InventoryLocation)
        if conditions:
            stmt = stmt.where(and_(*(self._clause(c) for c in conditions)))
        return stmt

    async def fetch(self, conditions=(), order_by=(), limit=None):
        from .models import InventoryLocation

        stmt = self._select(conditions)
        for key in order_by:
            column = getattr(InventoryLocation, key.lstrip("-"))
            stmt = stmt.order_by(column.desc() if key.startswith("-") else column.asc())
        stmt = stmt.order_by(InventoryLocation.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [InventoryRow(**{name: getattr(obj, name) for name in ROW_FIELDS})
                    for obj in result.scalars().all()]

    async def count(self, conditions=()):
        stmt = select(func.count()).select_from(self._select(conditions).subquery())
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return int(result.scalar_one())

    async def add_rows(self, rows):
        from .models import InventoryLocation

        added = 0
        async with self._session_factory() as db:
            for row in rows:
                db.add(InventoryLocation(**row.to_dict()))
                added += 1
            await db.commit()
        logger.info(f"Inserted {added} inventory rows")
        return added

    async def ping(self):
        async with self._session_factory() as db:
            await db.execute(text("SELECT 1"))
        return True

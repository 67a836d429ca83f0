"""Warehouse inventory tools.

Importing this package registers every tool on ``catalog``. Handlers are
thin parameterized reads over an ``InventoryStore`` (injected as ``store``)
with aggregation done in Python.
"""
from ..registry import ToolCatalog

AREA_NAMES = {"F": "Frozen", "D": "Dry", "R": "Refrigerated"}

PRIORITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}

catalog = ToolCatalog()


def area_name(area_id: str) -> str:
    return AREA_NAMES.get((area_id or "").upper(), area_id)


def round2(value: float) -> float:
    return round(value * 100) / 100


def percent(part: float, whole: float) -> int:
    return round(part / whole * 100) if whole > 0 else 0


# Auto-import tool modules to trigger @catalog.register decorators
from . import locations  # noqa: E402,F401
from . import area  # noqa: E402,F401
from . import space  # noqa: E402,F401
from . import expiration  # noqa: E402,F401
from . import quantity  # noqa: E402,F401

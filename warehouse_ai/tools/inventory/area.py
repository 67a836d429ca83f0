"""Area and status tools."""
import logging
from collections import Counter
from datetime import date
from typing import Optional

from ..registry import ToolParam
from ...store import InventoryStore, any_of, where
from . import AREA_NAMES, PRIORITY_ORDER, catalog, percent, round2

logger = logging.getLogger(__name__)

PROBLEM_SLOT_STATUSES = ("DAMAGED", "BLOCKED", "MAINTENANCE")
PROBLEM_PALLET_STATUSES = ("DAMAGED", "HOLD")


def _normalize_area(area_id: str) -> str:
    area_id = (area_id or "").strip().upper()
    if area_id not in AREA_NAMES:
        raise ValueError(f"Unknown area '{area_id}' (F=Frozen, D=Dry, R=Refrigerated)")
    return area_id


@catalog.register(
    "get_inventory_by_area",
    description="Query inventory by warehouse area (F=Frozen, D=Dry, R=Refrigerated) with optional filtering",
    params=[
        ToolParam("area_id", description="area (F=Frozen, D=Dry, R=Refrigerated)", required=True,
                  enum=["F", "D", "R"]),
        ToolParam("inventory_status", description="filter by inventory status, e.g. A"),
        ToolParam("slot_status", description="filter by slot status"),
        ToolParam("include_expired", type="bool", description="include expired items", default=True),
        ToolParam("limit", type="int", description="maximum rows to return", default=100),
    ],
    intent_tags=["area", "zone", "frozen", "dry", "refrigerated", "inventory", "region"],
    category="area",
)
async def get_inventory_by_area(store: InventoryStore, area_id: str, inventory_status: Optional[str] = None,
                                slot_status: Optional[str] = None, include_expired: bool = True,
                                limit: int = 100, **kwargs) -> dict:
    area_id = _normalize_area(area_id)
    conditions = [where("area_id", "eq", area_id)]
    filters = [f"Area: {area_id}"]
    if inventory_status:
        conditions.append(where("invy_status", "eq", inventory_status))
        filters.append(f"Inventory Status: {inventory_status}")
    if slot_status:
        conditions.append(where("slot_status", "eq", slot_status))
        filters.append(f"Slot Status: {slot_status}")
    if not include_expired:
        conditions.append(where("expiration_date", "gte", date.today().isoformat()))
        filters.append("Excluding expired items")

    rows = await store.fetch(conditions, order_by=("aisle", "bay", "level_number", "product_number"),
                             limit=limit)

    total_slot_cube = sum(r.slot_cube for r in rows)
    total_available = sum(r.avail_cube_remaining for r in rows)
    summary = {
        "area_id": area_id,
        "area_name": AREA_NAMES[area_id],
        "total_products": len(rows),
        "total_units": sum(r.qty_avail_units for r in rows),
        "total_eaches": sum(r.qty_avail_eaches for r in rows),
        "total_slot_cube": round2(total_slot_cube),
        "total_available_cube": round2(total_available),
        "utilization_percent": percent(total_slot_cube - total_available, total_slot_cube),
        "products_by_status": dict(Counter(r.invy_status for r in rows)),
        "slots_by_status": dict(Counter(r.slot_status for r in rows)),
    }
    return {
        "inventory": [r.to_dict() for r in rows],
        "summary": summary,
        "total_found": len(rows),
        "filters": filters,
    }


@catalog.register(
    "inventory_status_search",
    description="Search inventory by inventory, slot and pallet status with metrics and recommendations",
    params=[
        ToolParam("inventory_status", description="inventory status code, e.g. A"),
        ToolParam("slot_status", description="slot status, e.g. DAMAGED"),
        ToolParam("pallet_status", description="pallet status, e.g. HOLD"),
        ToolParam("area_id", description="area (F=Frozen, D=Dry, R=Refrigerated)", enum=["F", "D", "R"]),
        ToolParam("limit", type="int", description="maximum rows to return", default=500),
    ],
    intent_tags=["status", "condition", "state", "available", "blocked", "damaged"],
    category="area",
)
async def inventory_status_search(store: InventoryStore, inventory_status: Optional[str] = None,
                                  slot_status: Optional[str] = None, pallet_status: Optional[str] = None,
                                  area_id: Optional[str] = None, limit: int = 500, **kwargs) -> dict:
    conditions = []
    criteria = {}
    if inventory_status:
        conditions.append(where("invy_status", "eq", inventory_status))
        criteria["inventory_status"] = inventory_status
    if slot_status:
        conditions.append(any_of(where("slot_status", "eq", slot_status),
                                 where("slot_status", "eq", slot_status.upper())))
        criteria["slot_status"] = slot_status
    if pallet_status:
        conditions.append(any_of(where("pallet_status", "eq", pallet_status),
                                 where("pallet_status", "eq", pallet_status.upper())))
        criteria["pallet_status"] = pallet_status
    if area_id:
        area_id = _normalize_area(area_id)
        conditions.append(where("area_id", "eq", area_id))
        criteria["area_id"] = area_id

    rows = await store.fetch(conditions, order_by=("area_id", "invy_status", "slot_status", "aisle", "bay"),
                             limit=limit)

    area_breakdown = {}
    area_slot_cube = Counter()
    for r in rows:
        entry = area_breakdown.setdefault(r.area_id, {"items": 0, "units": 0, "eaches": 0, "cube": 0.0})
        entry["items"] += 1
        entry["units"] += r.qty_avail_units
        entry["eaches"] += r.qty_avail_eaches
        entry["cube"] = round2(entry["cube"] + r.used_cube)
        area_slot_cube[r.area_id] += r.slot_cube

    used_cube = sum(r.used_cube for r in rows)
    metrics = {
        "total_items": len(rows),
        "total_units": sum(r.qty_avail_units for r in rows),
        "total_eaches": sum(r.qty_avail_eaches for r in rows),
        "total_cube": round2(used_cube),
        "utilization_percent": percent(used_cube, sum(r.slot_cube for r in rows)),
        "status_breakdown": {
            "inventory_status": dict(Counter(r.invy_status for r in rows)),
            "slot_status": dict(Counter(r.slot_status for r in rows)),
            "pallet_status": dict(Counter(r.pallet_status for r in rows)),
        },
        "area_breakdown": area_breakdown,
    }

    recommendations = []
    inactive = [r for r in rows if r.invy_status != "A"]
    if inactive:
        recommendations.append({
            "type": "attention",
            "priority": "high" if len(inactive) > 50 else "medium",
            "description": f"{len(inactive)} items with non-active inventory status",
            "action": "Review inactive inventory items for potential removal or status update",
            "affected_items": len(inactive),
        })
    problem_slots = [r for r in rows if r.slot_status.upper() in PROBLEM_SLOT_STATUSES]
    if problem_slots:
        recommendations.append({
            "type": "maintenance",
            "priority": "high",
            "description": f"{len(problem_slots)} slots require maintenance attention",
            "action": "Schedule maintenance for damaged, blocked, or maintenance-flagged slots",
            "affected_items": len(problem_slots),
        })
    pallet_issues = [r for r in rows if r.pallet_status.upper() in PROBLEM_PALLET_STATUSES]
    if pallet_issues:
        recommendations.append({
            "type": "attention",
            "priority": "medium",
            "description": f"{len(pallet_issues)} pallets with status issues",
            "action": "Investigate and resolve damaged or held pallet statuses",
            "affected_items": len(pallet_issues),
        })
    low_areas = [a for a, data in area_breakdown.items()
                 if area_slot_cube[a] > 0 and data["cube"] / area_slot_cube[a] < 0.5]
    if low_areas:
        recommendations.append({
            "type": "optimization",
            "priority": "low",
            "description": f"{len(low_areas)} areas with low utilization",
            "action": "Consider consolidating inventory in underutilized areas",
            "affected_items": sum(area_breakdown[a]["items"] for a in low_areas),
        })
    recommendations.sort(key=lambda rec: PRIORITY_ORDER[rec["priority"]], reverse=True)

    return {
        "items": [r.to_dict() for r in rows],
        "metrics": metrics,
        "recommendations": recommendations,
        "total_found": len(rows),
        "search_criteria": criteria,
    }

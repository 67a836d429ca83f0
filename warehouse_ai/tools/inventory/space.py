"""Space utilization analysis."""
import logging
from datetime import date
from typing import Optional

from ..registry import ToolParam
from ...store import InventoryStore, where
from . import PRIORITY_ORDER, catalog, percent, round2

logger = logging.getLogger(__name__)

CRITICAL_ABOVE = 98


def efficiency_label(utilization: int, min_utilization: int = 70, max_utilization: int = 95) -> str:
    """Low below the optimal band, High up to 98%, Critical beyond."""
    if utilization < min_utilization:
        return "Low"
    if utilization <= max_utilization:
        return "Optimal"
    if utilization <= CRITICAL_ABOVE:
        return "High"
    return "Critical"


def _location(group: dict) -> str:
    label = f"Area {group['area']}"
    if group.get("aisle"):
        label += f" Aisle {group['aisle']}"
    return label


@catalog.register(
    "analyze_space_utilization",
    description="Calculate warehouse space utilization and capacity usage with optimization recommendations",
    params=[
        ToolParam("area_id", description="area to analyze; omit for warehouse-wide", enum=["F", "D", "R"]),
        ToolParam("aisle", type="int", description="aisle to analyze, can be combined with area_id"),
        ToolParam("include_recommendations", type="bool", description="include recommendations", default=True),
        ToolParam("min_utilization", type="int", description="lower bound of the optimal band (%)", default=70),
        ToolParam("max_utilization", type="int", description="upper bound of the optimal band (%)", default=95),
    ],
    intent_tags=["space", "utilization", "capacity", "usage", "optimization", "efficiency"],
    category="analytics",
)
async def analyze_space_utilization(store: InventoryStore, area_id: Optional[str] = None,
                                    aisle: Optional[int] = None, include_recommendations: bool = True,
                                    min_utilization: int = 70, max_utilization: int = 95, **kwargs) -> dict:
    conditions = []
    if area_id:
        conditions.append(where("area_id", "eq", area_id.upper()))
    if aisle:
        conditions.append(where("aisle", "eq", int(aisle)))

    rows = await store.fetch(conditions)
    if not rows:
        raise ValueError("No inventory data found for the specified criteria")

    groups = {}
    for r in rows:
        key = (r.area_id, r.aisle if aisle else None)
        groups.setdefault(key, []).append(r)

    utilization = []
    total_cube_all = 0.0
    used_cube_all = 0.0
    for (area, aisle_num), items in groups.items():
        total_cube = sum(r.slot_cube for r in items)
        available = sum(r.avail_cube_remaining for r in items)
        used = total_cube - available
        pct = percent(used, total_cube)
        utilization.append({
            "area": area,
            "aisle": aisle_num,
            "total_slots": len(items),
            "occupied_slots": sum(1 for r in items if r.occupied),
            "total_cube": round2(total_cube),
            "used_cube": round2(used),
            "available_cube": round2(available),
            "utilization_percent": pct,
            "efficiency": efficiency_label(pct, min_utilization, max_utilization),
        })
        total_cube_all += total_cube
        used_cube_all += used

    total_pct = percent(used_cube_all, total_cube_all)
    total_stats = {
        "total_locations": len(rows),
        "total_cube": round2(total_cube_all),
        "used_cube": round2(used_cube_all),
        "available_cube": round2(total_cube_all - used_cube_all),
        "utilization_percent": total_pct,
        "efficiency": efficiency_label(total_pct, min_utilization, max_utilization),
    }

    recommendations = []
    if include_recommendations:
        for u in utilization:
            if u["efficiency"] == "Low":
                recommendations.append({
                    "type": "underutilized",
                    "priority": "medium",
                    "description": f"{_location(u)} is underutilized at {u['utilization_percent']}%",
                    "location": _location(u),
                    "action": "Consider consolidating inventory or relocating products from overutilized areas",
                    "impact": f"Could free up {round(u['available_cube'])} cubic feet of space",
                })
            elif u["efficiency"] in ("High", "Critical"):
                critical = u["efficiency"] == "Critical"
                recommendations.append({
                    "type": "overutilized",
                    "priority": "critical" if critical else "high",
                    "description": f"{_location(u)} is {u['efficiency'].lower()} utilization "
                                   f"at {u['utilization_percent']}%",
                    "location": _location(u),
                    "action": ("Immediate relocation needed - consider emergency overflow areas" if critical
                               else "Plan to relocate some inventory to underutilized areas"),
                    "impact": f"Need {round(u['used_cube'] * 0.1)} cubic feet additional capacity",
                })

        today = date.today().isoformat()
        expired = [r for r in rows if r.expiration_date and r.expiration_date < today]
        if expired:
            expired_cube = round(sum(r.used_cube for r in expired))
            recommendations.append({
                "type": "expired_priority",
                "priority": "high",
                "description": f"{len(expired)} expired items occupying {expired_cube} cubic feet",
                "location": "Various locations",
                "action": "Prioritize removal of expired inventory to free up space",
                "impact": f"Could free up {expired_cube} cubic feet immediately",
            })
        recommendations.sort(key=lambda rec: PRIORITY_ORDER[rec["priority"]], reverse=True)

    if area_id and aisle:
        scope = f"Area {area_id.upper()} Aisle {aisle}"
    elif area_id:
        scope = f"Area {area_id.upper()}"
    elif aisle:
        scope = f"Aisle {aisle} (all areas)"
    else:
        scope = "Warehouse-wide"

    utilization.sort(key=lambda u: u["utilization_percent"], reverse=True)
    return {
        "utilization": utilization,
        "total_stats": total_stats,
        "recommendations": recommendations,
        "analysis_scope": scope,
    }

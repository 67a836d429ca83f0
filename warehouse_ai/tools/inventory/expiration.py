"""Expiration date monitoring (FEFO)."""
import logging
from collections import Counter
from datetime import date, timedelta
from typing import Optional

from ..registry import ToolParam
from ...store import InventoryStore, where
from . import PRIORITY_ORDER, catalog

logger = logging.getLogger(__name__)


def expiration_priority(days_until: int) -> str:
    if days_until <= 7:  # includes already expired
        return "Critical"
    if days_until <= 14:
        return "High"
    if days_until <= 21:
        return "Medium"
    return "Low"


def _days_until(expiration_date: str, today: date) -> Optional[int]:
    try:
        return (date.fromisoformat(expiration_date[:10]) - today).days
    except ValueError:
        logger.warning(f"Unparseable expiration date: {expiration_date!r}")
        return None


@catalog.register(
    "check_expiration_dates",
    description="Find items expiring soon with priority recommendations and action plans",
    params=[
        ToolParam("days_threshold", type="int", description="days ahead to check", default=30),
        ToolParam("area_id", description="area (F=Frozen, D=Dry, R=Refrigerated)", enum=["F", "D", "R"]),
        ToolParam("include_expired", type="bool", description="include already expired items", default=False),
        ToolParam("sort_by", description="result order", default="expiration",
                  enum=["expiration", "quantity", "location"]),
        ToolParam("priority_only", type="bool", description="only Critical and High items", default=False),
        ToolParam("limit", type="int", description="maximum rows to return", default=200),
    ],
    intent_tags=["expiration", "expire", "date", "fefo", "shelf life", "aging"],
    category="analytics",
)
async def check_expiration_dates(store: InventoryStore, days_threshold: int = 30, area_id: Optional[str] = None,
                                 include_expired: bool = False, sort_by: str = "expiration",
                                 priority_only: bool = False, limit: int = 200, **kwargs) -> dict:
    today = date.today()
    threshold = today + timedelta(days=int(days_threshold))

    conditions = [
        where("expiration_date", "not_null"),
        where("expiration_date", "lte", threshold.isoformat()),
    ]
    if not include_expired:
        conditions.append(where("expiration_date", "gte", today.isoformat()))
    if area_id:
        conditions.append(where("area_id", "eq", area_id.upper()))

    rows = await store.fetch(conditions, order_by=("expiration_date",))

    expiring = []
    for r in rows:
        days = _days_until(r.expiration_date, today)
        if days is None:
            continue
        item = r.to_dict()
        item["days_until_expiration"] = days
        item["priority"] = expiration_priority(days)
        if priority_only and item["priority"] not in ("Critical", "High"):
            continue
        expiring.append(item)

    if sort_by == "quantity":
        ordered = sorted(expiring, key=lambda i: i["qty_avail_units"] + i["qty_avail_eaches"], reverse=True)
    elif sort_by == "location":
        ordered = sorted(expiring, key=lambda i: (i["area_id"], i["aisle"], i["bay"]))
    else:
        ordered = sorted(expiring, key=lambda i: i["days_until_expiration"])

    by_priority = Counter(i["priority"] for i in expiring)
    summary = {
        "total_expiring_items": len(expiring),
        "total_expiring_units": sum(i["qty_avail_units"] for i in expiring),
        "total_expiring_eaches": sum(i["qty_avail_eaches"] for i in expiring),
        "total_expiring_cube": round(sum(i["slot_cube"] for i in expiring), 2),
        "items_by_priority": dict(by_priority),
        "items_by_area": dict(Counter(i["area_id"] for i in expiring)),
        "priority_items": by_priority["Critical"] + by_priority["High"],
        "avg_days_until_expiration": (round(sum(i["days_until_expiration"] for i in expiring) / len(expiring))
                                      if expiring else 0),
    }

    recommendations = []
    for label, level, action, timeframe, window in (
        ("Critical", "critical", "Immediate action required", "Immediate (within 24 hours)",
         "expired or expiring within 7 days"),
        ("High", "high", "Plan disposal or discount sales", "Within 1 week", "expiring within 14 days"),
        ("Medium", "medium", "Monitor and prepare for action", "Within 2 weeks", "expiring within 21 days"),
    ):
        group = [i for i in expiring if i["priority"] == label]
        if group:
            recommendations.append({
                "priority": level,
                "action": action,
                "items": len(group),
                "description": f"{len(group)} items {window}",
                "timeframe": timeframe,
                "units_at_risk": sum(i["qty_avail_units"] for i in group),
            })
    frozen = [i for i in expiring if i["area_id"] == "F"]
    if frozen:
        recommendations.append({
            "priority": "medium",
            "action": "Review frozen storage temperature and rotation",
            "items": len(frozen),
            "description": f"{len(frozen)} frozen items expiring - check temperature logs",
            "timeframe": "Ongoing monitoring",
            "units_at_risk": sum(i["qty_avail_units"] for i in frozen),
        })
    recommendations.sort(key=lambda rec: PRIORITY_ORDER[rec["priority"]], reverse=True)

    criteria = [
        f"Days threshold: {days_threshold}",
        f"Include expired: {'Yes' if include_expired else 'No'}",
        f"Sort by: {sort_by}",
        f"Priority only: {'Yes' if priority_only else 'No'}",
    ]
    if area_id:
        criteria.append(f"Area: {area_id.upper()}")

    return {
        "expiring_items": ordered[:limit],
        "summary": summary,
        "recommendations": recommendations,
        "analysis_date": today.isoformat(),
        "criteria": criteria,
    }

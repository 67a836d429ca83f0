"""Quantity analysis: stock levels, rankings, low stock and overstock."""
import logging
from collections import Counter
from typing import Optional

from ..registry import ToolParam
from ...store import InventoryStore, all_of, any_of, where
from . import PRIORITY_ORDER, catalog

logger = logging.getLogger(__name__)

ANALYSIS_TYPES = ("summary", "high_volume", "low_stock", "overstock", "zero_stock", "custom")


def quantity_category(total: int) -> str:
    if total == 0:
        return "Zero"
    if total <= 15:
        return "Low"
    if total <= 100:
        return "Normal"
    if total <= 500:
        return "High"
    return "Overstock"


def _conditions(analysis_type: str, min_units: int, max_units: int, min_eaches: int, max_eaches: int) -> list:
    if analysis_type == "zero_stock":
        return [where("qty_avail_units", "eq", 0), where("qty_avail_eaches", "eq", 0)]
    if analysis_type == "low_stock":
        return [any_of(
            all_of(where("qty_avail_units", "gt", 0), where("qty_avail_units", "lte", max(min_units, 5))),
            all_of(where("qty_avail_eaches", "gt", 0), where("qty_avail_eaches", "lte", max(min_eaches, 10))),
        )]
    if analysis_type == "overstock":
        return [any_of(where("qty_avail_units", "gte", min(max_units, 100)),
                       where("qty_avail_eaches", "gte", min(max_eaches, 500)))]
    if analysis_type == "high_volume":
        return [any_of(where("qty_avail_units", "gte", 50), where("qty_avail_eaches", "gte", 200))]
    if analysis_type == "summary":
        return []
    return [
        where("qty_avail_units", "gte", min_units), where("qty_avail_units", "lte", max_units),
        where("qty_avail_eaches", "gte", min_eaches), where("qty_avail_eaches", "lte", max_eaches),
    ]


@catalog.register(
    "quantity_analysis",
    description="Analyze inventory quantities to find low stock, overstock, and quantity-based insights",
    params=[
        ToolParam("analysis_type", description="kind of analysis", required=True, enum=list(ANALYSIS_TYPES)),
        ToolParam("min_units", type="int", description="minimum units for custom ranges", default=0),
        ToolParam("max_units", type="int", description="maximum units for custom ranges", default=999999),
        ToolParam("min_eaches", type="int", description="minimum eaches for custom ranges", default=0),
        ToolParam("max_eaches", type="int", description="maximum eaches for custom ranges", default=999999),
        ToolParam("area_id", description="area (F=Frozen, D=Dry, R=Refrigerated)"),
        ToolParam("include_recommendations", type="bool", description="include recommendations", default=True),
        ToolParam("limit", type="int", description="maximum rows to return", default=200),
    ],
    intent_tags=["quantity", "amount", "count", "stock", "levels", "highest", "most", "top", "ranking"],
    category="analytics",
)
async def quantity_analysis(store: InventoryStore, analysis_type: str = "summary", min_units: int = 0,
                            max_units: int = 999999, min_eaches: int = 0, max_eaches: int = 999999,
                            area_id: Optional[str] = None, include_recommendations: bool = True,
                            limit: int = 200, **kwargs) -> dict:
    if analysis_type not in ANALYSIS_TYPES:
        raise ValueError(f"Unknown analysis type '{analysis_type}'")

    conditions = _conditions(analysis_type, min_units, max_units, min_eaches, max_eaches)
    if area_id:
        conditions.append(where("area_id", "eq", area_id.upper()))

    # Volume analyses want the biggest rows first; the rest list from smallest.
    if analysis_type in ("overstock", "high_volume"):
        order_by = ("-qty_avail_units", "-qty_avail_eaches", "product_number")
    else:
        order_by = ("qty_avail_units", "qty_avail_eaches", "product_number")
    rows = await store.fetch(conditions, order_by=order_by, limit=limit)

    items = []
    for r in rows:
        item = r.to_dict()
        item["total_quantity"] = r.total_quantity
        item["quantity_category"] = quantity_category(r.total_quantity)
        items.append(item)

    total_units = sum(i["qty_avail_units"] for i in items)
    total_eaches = sum(i["qty_avail_eaches"] for i in items)

    area_distribution = {}
    for i in items:
        entry = area_distribution.setdefault(i["area_id"], {"products": 0, "units": 0, "eaches": 0})
        entry["products"] += 1
        entry["units"] += i["qty_avail_units"]
        entry["eaches"] += i["qty_avail_eaches"]
    for entry in area_distribution.values():
        entry["average_units"] = round(entry["units"] / entry["products"])

    product_totals = {}
    for i in items:
        entry = product_totals.setdefault(i["product_number"], {
            "product_number": i["product_number"],
            "prod_desc": i["prod_desc"],
            "total_units": 0,
            "total_eaches": 0,
            "locations": 0,
        })
        entry["total_units"] += i["qty_avail_units"]
        entry["total_eaches"] += i["qty_avail_eaches"]
        entry["locations"] += 1
    top_products = sorted(product_totals.values(),
                          key=lambda p: p["total_units"] + p["total_eaches"], reverse=True)[:10]

    summary = {
        "total_products": len(items),
        "total_units": total_units,
        "total_eaches": total_eaches,
        "average_units_per_product": round(total_units / len(items)) if items else 0,
        "average_eaches_per_product": round(total_eaches / len(items)) if items else 0,
        "quantity_distribution": dict(Counter(i["quantity_category"] for i in items)),
        "area_distribution": area_distribution,
        "top_products": top_products,
    }

    recommendations = []
    if include_recommendations:
        categories = summary["quantity_distribution"]
        if categories.get("Zero"):
            recommendations.append({
                "type": "investigation",
                "priority": "high",
                "description": f"{categories['Zero']} products with zero stock found",
                "action": "Investigate empty slots that should be filled or items that should be removed",
                "affected_products": categories["Zero"],
            })
        if categories.get("Low"):
            recommendations.append({
                "type": "reorder",
                "priority": "medium",
                "description": f"{categories['Low']} products with low stock levels",
                "action": "Review reorder points and consider restocking low inventory items",
                "affected_products": categories["Low"],
            })
        if categories.get("Overstock"):
            recommendations.append({
                "type": "redistribute",
                "priority": "medium",
                "description": f"{categories['Overstock']} products with high stock levels",
                "action": "Consider redistributing excess inventory or reviewing demand forecasts",
                "affected_products": categories["Overstock"],
            })
        imbalanced = [a for a, d in area_distribution.items() if d["average_units"] > 100 or d["average_units"] < 5]
        if imbalanced:
            recommendations.append({
                "type": "consolidate",
                "priority": "low",
                "description": f"{len(imbalanced)} areas with quantity imbalances",
                "action": "Review inventory distribution across areas for optimization opportunities",
                "affected_products": sum(area_distribution[a]["products"] for a in imbalanced),
            })
        recommendations.sort(key=lambda rec: PRIORITY_ORDER[rec["priority"]], reverse=True)

    return {
        "items": items,
        "summary": summary,
        "recommendations": recommendations,
        "total_found": len(items),
        "analysis_type": analysis_type,
        "thresholds": {
            "min_units": min_units,
            "max_units": max_units,
            "min_eaches": min_eaches,
            "max_eaches": max_eaches,
            "area_id": area_id or "All areas",
        },
    }

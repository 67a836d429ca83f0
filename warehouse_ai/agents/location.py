"""Location agent: answers warehouse inventory questions from the inventory tools.

Queries are planned by an ordered keyword table (first matching shape wins),
then each shape's handler runs one or more tools and writes the answer from
the returned data.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..store import InventoryStore
from ..tools.inventory import AREA_NAMES, area_name, catalog as inventory_catalog, percent
from .base import BaseAgent, Run

logger = logging.getLogger(__name__)

PRODUCT_NUMBER_RE = re.compile(r"\b\d{6,}\b")
LICENSE_PLATE_RE = re.compile(r"\b(?:license\s+plate|lp)\s*#?\s*((?=[a-z-]*\d)[a-z0-9-]{3,})", re.I)
PALLET_RE = re.compile(r"\bpallet(?:\s+id)?\s*#?\s*((?=[a-z-]*\d)[a-z0-9-]{3,})", re.I)
AREA_LETTER_RE = re.compile(r"\barea\s+([fdr])\b", re.I)
AISLE_RE = re.compile(r"\baisle\s+(\d+)", re.I)
BAY_RE = re.compile(r"\bbay\s+(\d+)", re.I)
LEVEL_RE = re.compile(r"\blevel\s+(\d+)", re.I)
DAYS_RE = re.compile(r"\b(\d+)\s+days?\b", re.I)
DESCRIPTION_RE = re.compile(r"\b(?:of|for|is the|are the|find|locate)\s+(?:the\s+|all\s+|some\s+)?"
                            r"([a-z][a-z -]{2,}?)\s*(?:\b(?:do|are|is|in|we|have|stored|located)\b|\?|$)", re.I)
VS_RE = re.compile(r"\bvs\.?(?:\s|$)|\bversus\b")

AREA_KEYWORDS = (
    ("F", ("frozen", "freezer")),
    ("D", ("dry",)),
    ("R", ("refrigerated", "cooler", "chilled")),
)

RANKING_SCAN_LIMIT = 50
TOP_N = 5
MAX_PRODUCT_LOOKUPS = 3

EXAMPLE_QUERIES = (
    "Where is product 1263755?",
    "How many pallets of flour do we have?",
    "What product has the highest quantity?",
    "Compare frozen vs dry areas",
    "What expires in the next 14 days?",
    "Give me a warehouse summary",
)


def _has(q: str, *words: str) -> bool:
    return any(w in q for w in words)


def mentioned_areas(query: str) -> List[str]:
    """Area ids named in the query, in F, D, R order."""
    lower = query.lower()
    letters = {m.group(1).upper() for m in AREA_LETTER_RE.finditer(query)}
    return [a for a, words in AREA_KEYWORDS if a in letters or _has(lower, *words)]


def _fmt(n) -> str:
    return f"{n:,}"


@dataclass(frozen=True)
class QueryShape:
    name: str
    matches: Callable[[str], bool]
    handler: str


SHAPES: List[QueryShape] = [
    QueryShape("ranking", lambda q: _has(q, "highest", "most", "best", "top", "lowest", "least"), "_ranking"),
    QueryShape("comparison", lambda q: _has(q, "compare", "comparison", "difference") or VS_RE.search(q) is not None,
               "_comparison"),
    QueryShape("count", lambda q: _has(q, "how many", "count", "total number") and "explain" not in q, "_count"),
    QueryShape("lookup", lambda q: _has(q, "where is", "where are", "find", "locate"), "_lookup"),
    QueryShape("area", lambda q: _has(q, "in area", "frozen", "dry", "refrigerated"), "_area"),
    QueryShape("summary", lambda q: _has(q, "summary", "overview", "report"), "_summary"),
    QueryShape("explanation", lambda q: _has(q, "explain", "how do you", "what tools") and "how many" not in q,
               "_explanation"),
]

CATCH_ALL = QueryShape("flexible", lambda q: True, "_flexible")


def plan(query: str) -> QueryShape:
    """First shape whose keywords appear in the query, else the catch-all."""
    lower = query.lower()
    for shape in SHAPES:
        if shape.matches(lower):
            return shape
    return CATCH_ALL


class LocationAgent(BaseAgent):
    agent_id = "location-agent-001"
    name = "Warehouse Location Agent"
    description = ("Finds products, pallets and license plates in the warehouse and analyzes "
                   "inventory, space utilization and expiration by area")
    version = "1.0.0"
    capabilities = (
        "product_location_search",
        "inventory_analysis",
        "space_utilization_analysis",
        "expiration_tracking",
        "quantity_analysis",
        "area_comparison",
        "warehouse_summary",
        "multi_turn_conversation",
    )
    expertise = (
        "warehouse locations",
        "inventory management",
        "space optimization",
        "product tracking",
        "expiration management",
        "frozen storage",
        "dry storage",
        "refrigerated storage",
    )

    def __init__(self, store: InventoryStore, catalog=None):
        super().__init__(catalog or inventory_catalog, store)

    async def handle(self, run: Run) -> str:
        shape = plan(run.query)
        run.note(f"Query shape: {shape.name}")
        logger.debug(f"[{run.message.session_id}] planned {shape.name} for {run.query!r}")
        return await getattr(self, shape.handler)(run)

    # ── Ranking ─────────────────────────────────────────────

    async def _ranking(self, run: Run) -> str:
        lower = run.query.lower()
        ascending = _has(lower, "lowest", "least")
        analysis_type = "low_stock" if ascending else "high_volume"
        run.note(f"Ranking products by total quantity ({'ascending' if ascending else 'descending'})")

        data = await self.call_tool(run, "quantity_analysis", analysis_type=analysis_type,
                                    limit=RANKING_SCAN_LIMIT)
        items = sorted(data["items"], key=lambda i: i["total_quantity"], reverse=not ascending)
        if not items:
            return "No inventory matched the ranking criteria."

        top = items[0]
        run.note(f"Top product is {top['product_number']}; looking up its locations")
        locations = await self.call_tool(run, "find_product_locations",
                                         product_number=top["product_number"], limit=TOP_N)

        label = "Lowest" if ascending else "Highest"
        lines = [
            f"**{label} quantity product: {top['product_number']}** ({top['prod_desc'] or 'no description'})",
            f"- Quantity: {_fmt(top['qty_avail_units'])} units, {_fmt(top['qty_avail_eaches'])} eaches",
            f"- Found in {locations['total_found']} location(s)",
        ]
        for loc in locations["products"]:
            lines.append(f"  - {loc['warehouse_locn'] or '-'} (Area {loc['area_id']}, aisle {loc['aisle']}, "
                         f"bay {loc['bay']}, level {loc['level_number']})")

        lines.append("")
        lines.append(f"**Top {min(TOP_N, len(items))} by quantity:**")
        for rank, item in enumerate(items[:TOP_N], 1):
            lines.append(f"{rank}. {item['product_number']} {item['prod_desc'] or ''}".rstrip()
                         + f": {_fmt(item['total_quantity'])} total")

        summary = data["summary"]
        total = summary["total_units"] + summary["total_eaches"]
        lines.append("")
        lines.append("**Insights:**")
        lines.append(f"- Analyzed {summary['total_products']} {analysis_type.replace('_', ' ')} slots holding "
                     f"{_fmt(summary['total_units'])} units and {_fmt(summary['total_eaches'])} eaches")
        lines.append(f"- Average {_fmt(summary['average_units_per_product'])} units per slot")
        lines.append(f"- {top['product_number']} accounts for {percent(top['total_quantity'], total)}% "
                     f"of the analyzed quantity")
        return "\n".join(lines)

    # ── Comparison ──────────────────────────────────────────

    async def _comparison(self, run: Run) -> str:
        areas = mentioned_areas(run.query)
        if len(areas) < 2:
            areas = list(AREA_NAMES)
        run.note(f"Comparing areas {', '.join(areas)} concurrently")

        results = await self.fan_out(run, [("get_inventory_by_area", {"area_id": a, "limit": 1000}) for a in areas])

        lines = ["**Warehouse Area Comparison**", ""]
        summaries = [r["summary"] for r in results]
        for s in summaries:
            lines.append(f"**{s['area_name']} Area ({s['area_id']}):**")
            lines.append(f"- Products: {_fmt(s['total_products'])}")
            lines.append(f"- Total units: {_fmt(s['total_units'])}, eaches: {_fmt(s['total_eaches'])}")
            lines.append(f"- Space utilization: {s['utilization_percent']}%")
            lines.append("")

        all_units = sum(s["total_units"] for s in summaries)
        largest = max(summaries, key=lambda s: s["total_units"])
        busiest = max(summaries, key=lambda s: s["utilization_percent"])
        lines.append("**Insights:**")
        lines.append(f"- {largest['area_name']} holds the most units "
                     f"({percent(largest['total_units'], all_units)}% of the compared total)")
        lines.append(f"- {busiest['area_name']} has the highest space utilization at "
                     f"{busiest['utilization_percent']}%")
        return "\n".join(lines)

    # ── Count ───────────────────────────────────────────────

    async def _count(self, run: Run) -> str:
        query = run.query
        areas = mentioned_areas(query)
        product = PRODUCT_NUMBER_RE.search(query)

        if product:
            data = await self.call_tool(run, "find_product_locations", product_number=product.group(0), limit=500)
            return self._product_count(product.group(0), data)

        if areas:
            area_id = areas[0]
            data = await self.call_tool(run, "get_inventory_by_area", area_id=area_id, limit=1000)
            s = data["summary"]
            return (f"**{s['area_name']} Area ({area_id})** has {_fmt(s['total_products'])} location(s) "
                    f"holding {_fmt(s['total_units'])} units and {_fmt(s['total_eaches'])} eaches. "
                    f"Space utilization is {s['utilization_percent']}%.")

        description = self._description(query)
        if description:
            data = await self.call_tool(run, "find_product_locations", product_description=description, limit=500)
            return self._product_count(description, data)

        data = await self.call_tool(run, "analyze_space_utilization", include_recommendations=False)
        stats = data["total_stats"]
        lines = [f"**Warehouse totals:** {_fmt(stats['total_locations'])} locations, "
                 f"{stats['utilization_percent']}% space utilization ({stats['efficiency']})."]
        for u in sorted(data["utilization"], key=lambda u: u["area"]):
            lines.append(f"- {area_name(u['area'])} ({u['area']}): {_fmt(u['total_slots'])} locations, "
                         f"{_fmt(u['occupied_slots'])} occupied")
        return "\n".join(lines)

    def _product_count(self, subject: str, data: dict) -> str:
        rows = data["products"]
        if not rows:
            return f"No inventory found for {subject}."
        units = sum(r["qty_avail_units"] for r in rows)
        eaches = sum(r["qty_avail_eaches"] for r in rows)
        pallets = len({r["pallet_id"] for r in rows if r["pallet_id"]})
        return (f"Found {data['total_found']} location(s) for {subject} "
                f"({pallets} pallet(s)) with {_fmt(units)} units and {_fmt(eaches)} eaches in total.")

    # ── Lookup ──────────────────────────────────────────────

    async def _lookup(self, run: Run) -> str:
        query = run.query
        plate = LICENSE_PLATE_RE.search(query)
        if plate:
            data = await self.call_tool(run, "find_by_license_plate", license_plate=plate.group(1).upper())
            return self._identifier_answer("license plate", plate.group(1).upper(), data)

        pallet = PALLET_RE.search(query)
        if pallet:
            data = await self.call_tool(run, "find_by_pallet_id", pallet_id=pallet.group(1).upper())
            return self._identifier_answer("pallet", pallet.group(1).upper(), data)

        product = PRODUCT_NUMBER_RE.search(query)
        if product:
            number = product.group(0)
            run.note(f"Extracted product number {number}")
            data = await self.call_tool(run, "find_product_locations", product_number=number, limit=10)
            return self._location_answer(f"Product {number}", data["products"])

        description = self._description(query)
        if description:
            run.note(f"Searching product descriptions for '{description}'")
            data = await self.call_tool(run, "find_product_locations", product_description=description, limit=10)
            return self._location_answer(f"'{description}'", data["products"])

        return ("Please tell me which product number, license plate or pallet id to look up, "
                "for example: \"Where is product 1263755?\"")

    def _identifier_answer(self, kind: str, value: str, data: dict) -> str:
        return self._location_answer(f"{kind.capitalize()} {value}", data["items"])

    def _location_answer(self, subject: str, rows: List[dict]) -> str:
        if not rows:
            return f"{subject} not found in the warehouse."
        lines = [f"**{subject}** is in {len(rows)} location(s):"]
        for r in rows:
            lines.append(f"- {r['warehouse_locn'] or '-'}: {area_name(r['area_id'])} area, aisle {r['aisle']}, "
                         f"bay {r['bay']}, level {r['level_number']}; {_fmt(r['qty_avail_units'])} units, "
                         f"{_fmt(r['qty_avail_eaches'])} eaches"
                         + (f"; {r['prod_desc']}" if r["prod_desc"] else ""))
        return "\n".join(lines)

    @staticmethod
    def _description(query: str) -> Optional[str]:
        match = DESCRIPTION_RE.search(query)
        if not match:
            return None
        text = match.group(1).strip()
        if text in ("product", "products", "pallets", "items", "inventory", "locations", "the warehouse"):
            return None
        return text

    # ── Area ────────────────────────────────────────────────

    async def _area(self, run: Run) -> str:
        areas = mentioned_areas(run.query)
        area_id = areas[0] if areas else "F"
        data = await self.call_tool(run, "get_inventory_by_area", area_id=area_id, limit=100)
        s = data["summary"]
        lines = [
            f"**{s['area_name']} Area ({area_id}) inventory:**",
            f"- Products: {_fmt(s['total_products'])}",
            f"- Units: {_fmt(s['total_units'])}, eaches: {_fmt(s['total_eaches'])}",
            f"- Space utilization: {s['utilization_percent']}% "
            f"({_fmt(s['total_available_cube'])} of {_fmt(s['total_slot_cube'])} cubic feet available)",
        ]
        if s["products_by_status"]:
            breakdown = ", ".join(f"{k or 'unknown'}: {v}" for k, v in sorted(
                s["products_by_status"].items(), key=lambda kv: -kv[1]))
            lines.append(f"- Inventory status: {breakdown}")
        if s["slots_by_status"]:
            breakdown = ", ".join(f"{k or 'unknown'}: {v}" for k, v in sorted(
                s["slots_by_status"].items(), key=lambda kv: -kv[1]))
            lines.append(f"- Slot status: {breakdown}")
        return "\n".join(lines)

    # ── Summary ─────────────────────────────────────────────

    async def _summary(self, run: Run) -> str:
        space, expiring, quantity = await self.fan_out(run, [
            ("analyze_space_utilization", {"include_recommendations": True}),
            ("check_expiration_dates", {"days_threshold": 30, "priority_only": True}),
            ("quantity_analysis", {"analysis_type": "summary", "limit": 10}),
        ], tolerant=True)

        sections = []
        if space is not None:
            stats = space["total_stats"]
            section = [
                "**Space utilization:**",
                f"- {_fmt(stats['total_locations'])} locations at {stats['utilization_percent']}% "
                f"({stats['efficiency']})",
            ]
            for rec in space["recommendations"][:3]:
                section.append(f"- {rec['description']}")
            sections.append("\n".join(section))
        if expiring is not None:
            s = expiring["summary"]
            section = [
                "**Expiring within 30 days (priority items):**",
                f"- {s['total_expiring_items']} item(s), {_fmt(s['total_expiring_units'])} units at risk",
            ]
            for item in expiring["expiring_items"][:3]:
                section.append(f"- {item['product_number']} at {item['warehouse_locn'] or item['area_id']}: "
                               f"{item['days_until_expiration']} day(s) ({item['priority']})")
            sections.append("\n".join(section))
        if quantity is not None:
            s = quantity["summary"]
            section = [
                "**Stock levels (sample):**",
                f"- {s['total_products']} slot(s) with {_fmt(s['total_units'])} units "
                f"and {_fmt(s['total_eaches'])} eaches",
            ]
            for rec in quantity["recommendations"][:2]:
                section.append(f"- {rec['description']}")
            sections.append("\n".join(section))

        if not sections:
            run.status = "error"
            run.note("Every summary section failed")
            return "Unable to build a warehouse summary: all data sources failed."
        if len(sections) < 3:
            run.status = "partial"
            run.note(f"Summary built from {len(sections)} of 3 sections")
        return "**Warehouse Summary**\n\n" + "\n\n".join(sections)

    # ── Explanation ─────────────────────────────────────────

    async def _explanation(self, run: Run) -> str:
        lines = [f"I am the {self.name}. I answer questions using these tools:"]
        for category, tools in self.catalog.by_category().items():
            lines.append(f"*{category.capitalize()}*")
            for tool in tools:
                lines.append(f"- **{tool.name}**: {tool.description}")

        data = await self.call_tool(run, "analyze_space_utilization", include_recommendations=False)
        stats = data["total_stats"]
        lines.append("")
        lines.append(f"Right now I can see {_fmt(stats['total_locations'])} locations at "
                     f"{stats['utilization_percent']}% space utilization.")
        return "\n".join(lines)

    # ── Catch-all ───────────────────────────────────────────

    async def _flexible(self, run: Run) -> str:
        lower = run.query.lower()
        if _has(lower, "space", "utilization", "capacity"):
            return await self._space(run)
        if "expir" in lower:
            return await self._expiration(run)
        if _has(lower, "damaged", "blocked", "maintenance", "status"):
            return await self._status(run)
        if AISLE_RE.search(run.query):
            return await self._coordinates(run)
        numbers = PRODUCT_NUMBER_RE.findall(run.query)
        if "product" in lower and numbers:
            return await self._products(run, numbers[:MAX_PRODUCT_LOOKUPS])

        run.note("No specific query shape matched; returning guidance")
        return ("I can help with warehouse inventory questions. Try asking:\n"
                + "\n".join(f"- {q}" for q in EXAMPLE_QUERIES))

    async def _space(self, run: Run) -> str:
        areas = mentioned_areas(run.query)
        params = {"include_recommendations": True}
        if areas:
            params["area_id"] = areas[0]
        data = await self.call_tool(run, "analyze_space_utilization", **params)
        stats = data["total_stats"]
        lines = [f"**Space utilization ({data['analysis_scope']}):** {stats['utilization_percent']}% "
                 f"({stats['efficiency']}), {_fmt(stats['available_cube'])} of {_fmt(stats['total_cube'])} "
                 f"cubic feet available"]
        for u in data["utilization"]:
            lines.append(f"- {area_name(u['area'])}: {u['utilization_percent']}% ({u['efficiency']})")
        if data["recommendations"]:
            lines.append("")
            lines.append("**Recommendations:**")
            for rec in data["recommendations"][:5]:
                lines.append(f"- [{rec['priority']}] {rec['description']}: {rec['action']}")
        return "\n".join(lines)

    async def _expiration(self, run: Run) -> str:
        days = DAYS_RE.search(run.query)
        threshold = int(days.group(1)) if days else 30
        params = {"days_threshold": threshold, "include_expired": "expired" in run.query.lower()}
        areas = mentioned_areas(run.query)
        if areas:
            params["area_id"] = areas[0]
        data = await self.call_tool(run, "check_expiration_dates", **params)
        s = data["summary"]
        if not s["total_expiring_items"]:
            return f"Nothing expires in the next {threshold} days."
        by_priority = ", ".join(f"{k}: {v}" for k, v in s["items_by_priority"].items() if v)
        lines = [f"**{s['total_expiring_items']} item(s) expire within {threshold} days** ({by_priority})"]
        for item in data["expiring_items"][:TOP_N]:
            lines.append(f"- {item['product_number']} {item['prod_desc'] or ''}".rstrip()
                         + f" at {item['warehouse_locn'] or item['area_id']}: {item['expiration_date']} "
                         f"({item['days_until_expiration']} day(s), {item['priority']})")
        return "\n".join(lines)

    async def _status(self, run: Run) -> str:
        lower = run.query.lower()
        params = {}
        for status in ("damaged", "blocked", "maintenance"):
            if status in lower:
                params["slot_status"] = status.upper()
                break
        data = await self.call_tool(run, "inventory_status_search", **params)
        m = data["metrics"]
        criteria = ", ".join(f"{k}={v}" for k, v in data["search_criteria"].items()) or "any status"
        lines = [f"**{data['total_found']} item(s) match {criteria}**, {_fmt(m['total_units'])} units"]
        for rec in data["recommendations"]:
            lines.append(f"- [{rec['priority']}] {rec['description']}: {rec['action']}")
        return "\n".join(lines)

    async def _coordinates(self, run: Run) -> str:
        params = {"aisle": int(AISLE_RE.search(run.query).group(1))}
        areas = mentioned_areas(run.query)
        if areas:
            params["area_id"] = areas[0]
        for key, pattern in (("bay", BAY_RE), ("level_number", LEVEL_RE)):
            match = pattern.search(run.query)
            if match:
                params[key] = int(match.group(1))
        data = await self.call_tool(run, "find_by_location", **params)
        s = data["summary"]
        criteria = ", ".join(f"{k.replace('_number', '')} {v}" for k, v in data["search_criteria"].items())
        return (f"**Location {criteria}:** {s['total_slots']} slot(s), {s['occupied_slots']} occupied, "
                f"{s['unique_products']} product(s), {_fmt(s['total_units'])} units, "
                f"{s['utilization_percent']}% utilized.")

    async def _products(self, run: Run, numbers: List[str]) -> str:
        results = await self.fan_out(run, [
            ("find_product_locations", {"product_number": n, "limit": 10}) for n in numbers
        ])
        return "\n\n".join(self._location_answer(f"Product {n}", r["products"]) for n, r in zip(numbers, results))

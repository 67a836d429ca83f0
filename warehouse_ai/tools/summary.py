"""Summary tool: merges raw tool results into one readable report."""
import json
from typing import Any, Dict, List

from .registry import ToolCatalog, ToolParam

catalog = ToolCatalog()

FOOTER = "_All data sourced from warehouse tools._"


def snippet(result: Any) -> str:
    """One-line digest of a single tool result."""
    if isinstance(result, dict):
        if result.get("summary") is not None:
            return json.dumps(result["summary"], default=str)
        if isinstance(result.get("items"), list):
            return f"{len(result['items'])} items"
        return ", ".join(list(result)[:3])
    return str(result)


@catalog.register(
    "summarize_results",
    description="Combine multiple tool outputs into a single summary",
    params=[
        ToolParam("query", description="the user's question", required=True),
        ToolParam("tool_results", type="list", description="[{tool, result}] entries to merge", required=True),
        ToolParam("intent", description="classified intent of the query"),
    ],
    intent_tags=["summarize", "combine", "report"],
    category="reporting",
)
async def summarize_results(query: str, tool_results: List[Dict[str, Any]], intent: str = "", **kwargs) -> dict:
    lines = [f'**Summary for:** "{query}"', ""]
    for entry in tool_results:
        lines.append(f"• From {entry.get('tool', 'unknown')}: {snippet(entry.get('result'))}")
    lines.append("")
    lines.append(FOOTER)
    return {
        "summary_text": "\n".join(lines),
        "sources": [entry.get("tool", "unknown") for entry in tool_results],
        "intent": intent,
    }

"""Summarizer agent: turns raw tool results into one user-facing report.

Callers pass the results to merge in ``metadata["toolResults"]`` as a list of
``{"tool": name, "result": data}`` entries. The agent keeps no data store.
"""
import logging

from ..tools.summary import catalog as summary_catalog
from .base import BaseAgent, Run

logger = logging.getLogger(__name__)


class SummarizerAgent(BaseAgent):
    agent_id = "summarizer-agent-001"
    name = "Warehouse Summarizer Agent"
    description = "Generates final user friendly summaries from raw tool results"
    capabilities = ("response_generation", "multi_tool_summary")
    expertise = ("reporting", "warehouse_insights")

    def __init__(self, catalog=None):
        super().__init__(catalog or summary_catalog)

    async def handle(self, run: Run) -> str:
        metadata = run.message.metadata
        results = metadata.get("toolResults") or []
        if not isinstance(results, list) or not results:
            run.status = "error"
            run.note("No tool results supplied")
            return "Nothing to summarize: send the tool results to merge in metadata.toolResults."

        run.note(f"Combining {len(results)} tool result(s)")
        data = await self.call_tool(run, "summarize_results", query=run.query, tool_results=results,
                                    intent=metadata.get("intent") or "")
        return data["summary_text"]

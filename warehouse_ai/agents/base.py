"""Agent base: manifest snapshot, health, and traced tool execution."""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import ToolExecutionError
from ..protocol import AgentMessage, AgentResponse, HealthStatus, Manifest, ToolCall
from ..store import InventoryStore
from ..tools.registry import ToolCatalog

logger = logging.getLogger(__name__)


@dataclass
class Run:
    """Per-message execution state: reasoning trail and tool-call trace."""
    message: AgentMessage
    reasoning: List[str] = field(default_factory=list)
    tool_calls: List[ToolCall] = field(default_factory=list)
    status: str = "success"

    @property
    def query(self) -> str:
        return self.message.content

    def note(self, text: str):
        self.reasoning.append(text)


class BaseAgent(ABC):
    agent_id: str = ""
    name: str = ""
    description: str = ""
    version: str = "1.0.0"
    capabilities: Tuple[str, ...] = ()
    expertise: Tuple[str, ...] = ()
    health_endpoint: str = "/health"

    def __init__(self, catalog: ToolCatalog, store: Optional[InventoryStore] = None):
        self.catalog = catalog
        self.store = store
        self.running = False
        self._sessions: Dict[str, int] = {}

    async def start(self):
        self.running = True
        logger.info(f"[{self.agent_id}] '{self.name}' ready with {len(self.catalog)} tool(s)")

    async def stop(self):
        self.running = False
        self._sessions.clear()
        logger.info(f"[{self.agent_id}] stopped")

    async def health_check(self) -> HealthStatus:
        store_ok = self.store is None
        if self.store is not None:
            try:
                store_ok = await self.store.ping()
            except Exception as e:
                logger.warning(f"[{self.agent_id}] Data store ping failed: {e}")
        healthy = self.running and store_ok
        return HealthStatus(
            status="healthy" if healthy else "unhealthy",
            details={
                "isRunning": self.running,
                "dataStoreReachable": store_ok,
                "activeConversations": len(self._sessions),
                "availableTools": len(self.catalog),
                "agentId": self.agent_id,
                "version": self.version,
            },
        )

    def get_manifest(self) -> Manifest:
        """Side-effect-free snapshot of identity plus the current tool catalog."""
        return Manifest(
            agent_id=self.agent_id,
            name=self.name,
            description=self.description,
            version=self.version,
            tools=tuple(self.catalog.descriptors()),
            capabilities=tuple(self.capabilities),
            expertise=tuple(self.expertise),
            health_endpoint=self.health_endpoint,
            status="healthy" if self.running else "unhealthy",
        )

    async def process_message(self, message: AgentMessage) -> AgentResponse:
        """Plan and execute a query. Failures become status "error", never exceptions."""
        run = Run(message=message)
        if not self.running:
            run.note("Agent is not running")
            return self._respond(run, f"{self.name} is not running.", "error")

        self._sessions[message.session_id] = self._sessions.get(message.session_id, 0) + 1
        logger.info(f"[{message.session_id}] {self.agent_id} processing: {message.content!r}")
        run.note(f'Analyzing warehouse query: "{message.content}"')

        try:
            content = await self.handle(run)
        except ToolExecutionError as e:
            run.note(f"Error executing query: {e}")
            return self._respond(run, f"I encountered an issue processing your warehouse query. {e}", "error")
        except Exception as e:
            logger.error(f"[{message.session_id}] {self.agent_id} handler failed: {e}", exc_info=True)
            run.note(f"Error executing query: {e}")
            return self._respond(run, f"I encountered an issue processing your warehouse query. {e}", "error")

        if run.status == "success":
            run.note(f"Completed analysis with {len(run.tool_calls)} tool call(s)")
        return self._respond(run, content, run.status)

    @abstractmethod
    async def handle(self, run: Run) -> str:
        """Plan tool calls for ``run.query`` and synthesize the answer text."""

    def _respond(self, run: Run, content: str, status: str) -> AgentResponse:
        return AgentResponse(
            session_id=run.message.session_id,
            agent_id=self.agent_id,
            content=content,
            reasoning=run.reasoning,
            tool_calls=run.tool_calls,
            status=status,
        )

    # Tool execution

    async def call_tool(self, run: Run, name: str, **params) -> Dict[str, Any]:
        """Execute one tool and record it in the trace. Raises ToolExecutionError."""
        call = ToolCall(tool=name, params=params)
        run.tool_calls.append(call)
        return await self._execute(call)

    async def fan_out(self, run: Run, calls: Sequence[Tuple[str, Dict[str, Any]]],
                      tolerant: bool = False) -> List[Optional[Dict[str, Any]]]:
        """Execute independent tool calls concurrently and wait for all of them.

        By default one failure fails the batch (the first error is raised
        after every call has finished). With ``tolerant=True`` failed calls
        yield ``None`` and a reasoning note instead.
        """
        entries = [ToolCall(tool=name, params=dict(params)) for name, params in calls]
        run.tool_calls.extend(entries)
        results = await asyncio.gather(*(self._execute(c) for c in entries), return_exceptions=True)

        for r in results:
            if isinstance(r, BaseException) and not isinstance(r, Exception):
                raise r

        if not tolerant:
            for r in results:
                if isinstance(r, Exception):
                    raise r
            return list(results)

        out = []
        for call, r in zip(entries, results):
            if isinstance(r, Exception):
                run.note(f"Tool {call.tool} failed, continuing without it: {r}")
                out.append(None)
            else:
                out.append(r)
        return out

    async def _execute(self, call: ToolCall) -> Dict[str, Any]:
        tool = self.catalog.get(call.tool)
        try:
            if tool is None:
                raise ToolExecutionError(call.tool, "unknown tool")
            tool.validate(call.params)
            arg_str = ", ".join(f"{k}={v!r}" for k, v in call.params.items())
            logger.info(f"[{self.agent_id}] Executing tool: {call.tool}({arg_str})")
            t0 = time.monotonic()
            result = await tool.handler(store=self.store, **call.params)
        except ToolExecutionError as e:
            logger.warning(f"[{self.agent_id}] {e}")
            call.error = str(e)
            raise
        except Exception as e:
            logger.error(f"[{self.agent_id}] Tool {call.tool} failed: {e}", exc_info=True)
            err = ToolExecutionError(call.tool, str(e))
            call.error = str(err)
            raise err from e

        call.result = result
        logger.info(f"[{self.agent_id}] Tool {call.tool}: {time.monotonic() - t0:.2f}s")
        return result

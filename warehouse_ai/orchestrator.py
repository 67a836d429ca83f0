"""Query orchestrator: classify, resolve a healthy agent, dispatch, record."""
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .classifier import IntentClassifier, fallback_classification, routing_problem
from .conversation import ConversationStore
from .errors import DispatchError, InputValidationError, RoutingError
from .protocol import AgentMessage, Classification, QueryResponse
from .registry import CapabilityRegistry

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}"


@dataclass
class QueryResult:
    response: str
    reasoning: List[str]
    agent_used: str
    classification: Classification
    response_time_ms: int
    status: str = "success"
    session_id: str = ""
    tool_calls: list = field(default_factory=list)

    def to_response(self) -> QueryResponse:
        return QueryResponse(
            response=self.response,
            reasoning=self.reasoning,
            agent_used=self.agent_used,
            classification=self.classification,
            response_time=self.response_time_ms,
        )


class QueryOrchestrator:
    """Routes user queries to registered agents.

    The registry, classifier and conversation store are injected; nothing
    here is process-global.
    """

    def __init__(self, registry: CapabilityRegistry, classifier: IntentClassifier,
                 conversations: Optional[ConversationStore] = None):
        self.registry = registry
        self.classifier = classifier
        self.conversations = conversations or ConversationStore()
        self._started = time.monotonic()

    async def process_query(self, query: str, session_id: Optional[str] = None,
                            user_id: Optional[str] = None) -> QueryResult:
        query = (query or "").strip()
        if not query:
            raise InputValidationError("Query is required")
        session_id = session_id or new_session_id()

        t0 = time.monotonic()
        ctx = self.conversations.get_or_create(session_id, user_id)
        async with ctx.lock:
            logger.info(f"[{session_id}] Query: {query!r}")
            classification = await self.classifier.classify(query, ctx)
            classification = self._ensure_routable(classification, query, session_id)
            target = classification.target_agent

            client = self.registry.client_for(target)
            if client is None:
                raise RoutingError(f"Agent '{target}' is no longer registered", agent_id=target)

            message = AgentMessage(
                session_id=session_id,
                content=query,
                metadata={
                    "intent": classification.intent,
                    "parameters": classification.parameters,
                    "confidence": classification.confidence,
                    "userId": user_id,
                    "lastIntent": ctx.last_intent,
                    "toolResults": ctx.last_tool_results,
                },
            )
            try:
                response = await client.send_message(message)
            except DispatchError as e:
                e.agent_id = e.agent_id or target
                logger.error(f"[{session_id}] Dispatch to {target} failed: {e}")
                raise
            except Exception as e:
                logger.error(f"[{session_id}] Dispatch to {target} failed: {e}", exc_info=True)
                raise DispatchError(f"Agent '{target}' failed: {e}", agent_id=target) from e

            agent_used = response.agent_id or target
            ctx.record_exchange(query, response.content, agent_used, classification.intent,
                                classification.parameters,
                                [{"tool": c.tool, "result": c.result} for c in response.tool_calls if c.ok])

        elapsed_ms = int((time.monotonic() - t0) * 1000)
        logger.info(f"[{session_id}] Answered by {agent_used} ({response.status}) in {elapsed_ms}ms")

        reasoning = list(classification.reasoning)
        reasoning.append(f"Routed to {agent_used} as {classification.intent} "
                         f"({classification.confidence}% confidence)")
        reasoning.extend(response.reasoning)
        return QueryResult(
            response=response.content,
            reasoning=reasoning,
            agent_used=agent_used,
            classification=classification,
            response_time_ms=elapsed_ms,
            status=response.status,
            session_id=session_id,
            tool_calls=response.tool_calls,
        )

    def _ensure_routable(self, classification: Classification, query: str, session_id: str) -> Classification:
        problem = routing_problem(classification, self.registry, self.classifier.confidence_threshold)
        if problem is None:
            return classification

        logger.info(f"[{session_id}] {problem}, substituting fallback")
        fallback = fallback_classification(query, self.registry).with_note(
            f"{problem}; substituted rule-based fallback")
        # The fallback's fixed confidence is not held to the threshold, only its target is.
        problem = routing_problem(fallback, self.registry, 0)
        if problem is not None:
            raise RoutingError(f"No healthy agent available for this query ({problem})",
                               agent_id=fallback.target_agent)
        return fallback

    def get_health(self) -> dict:
        stats = self.registry.get_registry_stats()
        if stats.total_agents and stats.healthy_agents == stats.total_agents:
            status = "healthy"
        elif stats.healthy_agents:
            status = "degraded"
        else:
            status = "unhealthy"
        return {
            "status": status,
            "agents": [
                {
                    "agentId": e.agent_id,
                    "name": e.name,
                    "healthy": e.healthy,
                    "lastHealthCheck": e.last_health_check_at.isoformat(),
                }
                for e in self.registry.get_all_agents()
            ],
            "conversations": len(self.conversations),
            "uptimeSeconds": int(time.monotonic() - self._started),
            "registry": stats.to_wire(),
            "classifier": {
                "llmEnabled": self.classifier.llm_enabled,
                "model": self.classifier.model,
                "confidenceThreshold": self.classifier.confidence_threshold,
            },
        }

    def get_conversation(self, session_id: str) -> Optional[dict]:
        ctx = self.conversations.get(session_id)
        return ctx.to_wire() if ctx else None

    async def shutdown(self):
        await self.registry.stop()
        self.conversations.clear()
        logger.info("Orchestrator stopped")

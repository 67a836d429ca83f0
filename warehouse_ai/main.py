"""Warehouse AI Router - HTTP surface.

POST /query routes a natural-language question to a registered agent;
/health, /agents and /conversation/{session_id} expose router state.
"""
import logging
from typing import Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI

from .agents import LocationAgent, SummarizerAgent
from .classifier import IntentClassifier
from .config import parse_remote_agents, settings
from .conversation import ConversationStore
from .database import async_session_factory, init_db
from .errors import DispatchError, InputValidationError, RoutingError, WarehouseAIError
from .orchestrator import QueryOrchestrator
from .protocol import ErrorBody, QueryRequest
from .registry import AgentSource, CapabilityRegistry, DiscoveryConfig
from .store import InventoryStore, SqlInventoryStore

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (InputValidationError, 400),
    (RoutingError, 503),
    (DispatchError, 502),
)


def _error_response(status_code: int, error: str, details: str = "") -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorBody(error=error, details=details).to_wire())


def create_app(store: Optional[InventoryStore] = None, llm_client: Optional[AsyncOpenAI] = None,
               remote_agents: Optional[Dict[str, str]] = None,
               http: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Build the router app. Arguments override the configured defaults (used by tests)."""
    app = FastAPI(title="Warehouse AI Router", version="1.0.0")

    @app.on_event("startup")
    async def startup():
        inventory = store
        if inventory is None:
            await init_db()
            inventory = SqlInventoryStore(async_session_factory)

        agents = [LocationAgent(inventory), SummarizerAgent()]
        for agent in agents:
            await agent.start()

        sources = [AgentSource.local(agent) for agent in agents]
        remotes = parse_remote_agents(settings.remote_agents) if remote_agents is None else remote_agents
        for agent_id, endpoint in remotes.items():
            sources.append(AgentSource.remote(agent_id, endpoint, http=http))

        registry = CapabilityRegistry()
        await registry.start(DiscoveryConfig(sources=sources))
        classifier = IntentClassifier(registry, client=llm_client)
        if not classifier.llm_enabled:
            logger.warning("OPENAI_API_KEY not set, intent classification uses rule-based fallback only")

        app.state.agents = agents
        app.state.orchestrator = QueryOrchestrator(registry, classifier, ConversationStore())
        logger.info(f"Router ready with {len(registry.get_all_agents())} agent(s)")

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.orchestrator.shutdown()
        for agent in app.state.agents:
            await agent.stop()

    @app.exception_handler(WarehouseAIError)
    async def warehouse_error(request: Request, exc: WarehouseAIError):
        status_code = next((code for cls, code in STATUS_BY_ERROR if isinstance(exc, cls)), 500)
        if status_code == 500:
            logger.error(f"Unhandled router error on {request.url.path}: {exc}", exc_info=exc)
        return _error_response(status_code, type(exc).__name__, str(exc))

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return _error_response(400, "InvalidRequest", str(exc.errors()))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=exc)
        return _error_response(500, "InternalError", str(exc))

    @app.post("/query")
    async def query(payload: QueryRequest):
        orchestrator: QueryOrchestrator = app.state.orchestrator
        result = await orchestrator.process_query(payload.query, payload.session_id, payload.user_id)
        body = result.to_response().to_wire()
        body["sessionId"] = result.session_id
        body["status"] = result.status
        return body

    @app.get("/health")
    async def health():
        return app.state.orchestrator.get_health()

    @app.get("/agents")
    async def agents():
        registry = app.state.orchestrator.registry
        return {
            "agents": [e.to_wire() for e in registry.get_all_agents()],
            "stats": registry.get_registry_stats().to_wire(),
        }

    @app.get("/conversation/{session_id}")
    async def conversation(session_id: str):
        data = app.state.orchestrator.get_conversation(session_id)
        if data is None:
            return _error_response(404, "ConversationNotFound", f"No conversation for session {session_id}")
        return data

    return app


app = create_app()

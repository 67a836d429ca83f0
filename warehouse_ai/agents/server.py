"""HTTP surface for a single agent, so it can be registered as a remote agent."""
import logging

from fastapi import FastAPI

from ..protocol import AgentMessage
from .base import BaseAgent

logger = logging.getLogger(__name__)


def create_agent_app(agent: BaseAgent, manage_lifecycle: bool = True) -> FastAPI:
    """Expose ``agent`` as GET /manifest, GET /health and POST /message.

    With ``manage_lifecycle`` the app starts and stops the agent itself.
    """
    app = FastAPI(title=agent.name, version=agent.version)

    if manage_lifecycle:
        @app.on_event("startup")
        async def _startup():
            await agent.start()

        @app.on_event("shutdown")
        async def _shutdown():
            await agent.stop()

    @app.get("/manifest")
    async def manifest():
        return agent.get_manifest().to_wire()

    @app.get("/health")
    async def health():
        return (await agent.health_check()).to_wire()

    @app.post("/message")
    async def message(msg: AgentMessage):
        logger.info(f"[{msg.session_id}] {agent.agent_id} received message {msg.id}")
        return (await agent.process_message(msg)).to_wire()

    return app

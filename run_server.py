#!/usr/bin/env python3
"""
Warehouse AI Router - server launcher
Runs the router HTTP server and, when AGENT_SERVER_PORT is set, the location
agent as a standalone HTTP agent concurrently.
"""
import asyncio
import logging
import sys

import uvicorn

from warehouse_ai.config import settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def run_router_server():
    """Run the FastAPI router (POST /query, /health, /agents)"""
    config = uvicorn.Config(
        "warehouse_ai.main:app",
        host=settings.http_host,
        port=settings.http_port,
        log_level="info"
    )
    server = uvicorn.Server(config)
    await server.serve()


async def run_agent_server():
    """Run the location agent on its own port so other routers can discover it"""
    from warehouse_ai.agents import LocationAgent
    from warehouse_ai.agents.server import create_agent_app
    from warehouse_ai.database import async_session_factory, init_db
    from warehouse_ai.store import SqlInventoryStore

    await init_db()
    agent = LocationAgent(SqlInventoryStore(async_session_factory))
    config = uvicorn.Config(
        create_agent_app(agent),
        host=settings.http_host,
        port=settings.agent_server_port,
        log_level="info"
    )
    server = uvicorn.Server(config)
    await server.serve()


async def main():
    """Run the configured servers concurrently"""
    logger.info("Starting Warehouse AI Router...")
    logger.info(f"Python {sys.version}")
    logger.info(f"Router will run on http://{settings.http_host}:{settings.http_port}")

    servers = [run_router_server()]
    names = ["Router"]
    if settings.agent_server_port:
        logger.info(f"Location agent will run on http://{settings.http_host}:{settings.agent_server_port}")
        servers.append(run_agent_server())
        names.append("Location agent")

    # return_exceptions=True: one failure won't kill the others
    results = await asyncio.gather(*servers, return_exceptions=True)
    for name, r in zip(names, results):
        if isinstance(r, Exception):
            logger.error(f"{name} server exited with error: {r}")


if __name__ == "__main__":
    asyncio.run(main())

"""Capability registry: agent discovery, live health and capability matching.

The registry owns one ``RegistryEntry`` per agent, keyed by the agent id in
the agent's manifest. Entries are immutable; discovery inserts them, every
refresh tick swaps in a new entry for that key only, and ``stop()`` clears
the map. Readers always get point-in-time snapshots.

Agents are reached through an ``AgentClient``. ``LocalAgentClient`` calls an
in-process agent directly; ``RemoteAgentClient`` speaks the HTTP contract
(``GET /manifest``, ``GET {healthEndpoint}``, ``POST /message``).
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from .config import settings
from .errors import DiscoveryError, DispatchError, HealthProbeError
from .protocol import AgentMessage, AgentResponse, HealthStatus, Manifest, ToolDescriptor, utcnow

logger = logging.getLogger(__name__)


# ── Transports ──────────────────────────────────────────────

class AgentClient(ABC):
    endpoint: Optional[str] = None

    @abstractmethod
    async def fetch_manifest(self):
        """Return the agent's manifest (a ``Manifest`` or its wire dict)."""

    @abstractmethod
    async def probe_health(self, health_endpoint: str) -> HealthStatus:
        ...

    @abstractmethod
    async def send_message(self, message: AgentMessage) -> AgentResponse:
        ...

    async def aclose(self):
        pass


class LocalAgentClient(AgentClient):
    """In-process agent instance."""

    def __init__(self, agent):
        self.agent = agent

    async def fetch_manifest(self):
        return self.agent.get_manifest()

    async def probe_health(self, health_endpoint: str) -> HealthStatus:
        return await self.agent.health_check()

    async def send_message(self, message: AgentMessage) -> AgentResponse:
        return await self.agent.process_message(message)


class RemoteAgentClient(AgentClient):
    """Agent reached over HTTP."""

    def __init__(self, endpoint: str, http: Optional[httpx.AsyncClient] = None,
                 timeout: Optional[float] = None):
        self.endpoint = endpoint.rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout or settings.agent_http_timeout_s)

    async def fetch_manifest(self):
        try:
            resp = await self._http.get(f"{self.endpoint}/manifest")
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DiscoveryError(self.endpoint, f"manifest request failed: {e}") from e

    async def probe_health(self, health_endpoint: str) -> HealthStatus:
        try:
            resp = await self._http.get(f"{self.endpoint}{health_endpoint}")
            resp.raise_for_status()
            return HealthStatus.model_validate(resp.json())
        except (httpx.HTTPError, ValueError) as e:
            raise HealthProbeError(self.endpoint, f"health probe failed: {e}") from e

    async def send_message(self, message: AgentMessage) -> AgentResponse:
        try:
            resp = await self._http.post(f"{self.endpoint}/message", json=message.to_wire())
            resp.raise_for_status()
            return AgentResponse.model_validate(resp.json())
        except (httpx.HTTPError, ValueError) as e:
            raise DispatchError(f"Agent at {self.endpoint} failed: {e}") from e

    async def aclose(self):
        if self._owns_http:
            await self._http.aclose()


# ── Discovery config and entries ────────────────────────────

@dataclass
class AgentSource:
    """One configured agent: a transport plus the id it is expected to report."""
    client: AgentClient
    agent_id: str = ""

    @classmethod
    def local(cls, agent) -> "AgentSource":
        return cls(client=LocalAgentClient(agent), agent_id=getattr(agent, "agent_id", ""))

    @classmethod
    def remote(cls, agent_id: str, endpoint: str, http: Optional[httpx.AsyncClient] = None) -> "AgentSource":
        return cls(client=RemoteAgentClient(endpoint, http=http), agent_id=agent_id)


@dataclass
class DiscoveryConfig:
    sources: List[AgentSource] = field(default_factory=list)
    refresh_interval_s: float = field(default_factory=lambda: settings.registry_refresh_interval_s)


@dataclass(frozen=True)
class RegistryEntry:
    manifest: Manifest
    discovered_at: datetime
    last_health_check_at: datetime
    healthy: bool
    endpoint: Optional[str] = None  # remote agents only

    @property
    def agent_id(self) -> str:
        return self.manifest.agent_id

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def description(self) -> str:
        return self.manifest.description

    @property
    def version(self) -> str:
        return self.manifest.version

    @property
    def tools(self) -> Tuple[ToolDescriptor, ...]:
        return self.manifest.tools

    @property
    def capabilities(self) -> Tuple[str, ...]:
        return self.manifest.capabilities

    @property
    def expertise(self) -> Tuple[str, ...]:
        return self.manifest.expertise

    def to_wire(self) -> dict:
        return {
            "agentId": self.agent_id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "endpoint": self.endpoint,
            "healthy": self.healthy,
            "discoveredAt": self.discovered_at.isoformat(),
            "lastHealthCheck": self.last_health_check_at.isoformat(),
            "tools": [t.to_wire() for t in self.tools],
            "capabilities": list(self.capabilities),
            "expertise": list(self.expertise),
        }


@dataclass(frozen=True)
class AgentMatch:
    agent: RegistryEntry
    score: int


@dataclass(frozen=True)
class RegistryStats:
    total_agents: int
    healthy_agents: int
    total_tools: int
    avg_tools_per_agent: float
    last_refresh: Optional[datetime]

    def to_wire(self) -> dict:
        return {
            "totalAgents": self.total_agents,
            "healthyAgents": self.healthy_agents,
            "totalTools": self.total_tools,
            "avgToolsPerAgent": self.avg_tools_per_agent,
            "lastRefresh": self.last_refresh.isoformat() if self.last_refresh else None,
        }


def fuzzy_match(a: str, b: str) -> bool:
    """Case-insensitive substring test in either direction.

    Known false positives: "dry" matches "dryer". Blank strings never
    match.
    """
    a = a.strip().lower()
    b = b.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def _count_matches(labels: Iterable[str], tags: List[str]) -> int:
    return sum(1 for label in labels if any(fuzzy_match(label, tag) for tag in tags))


# ── Registry ────────────────────────────────────────────────

class CapabilityRegistry:
    def __init__(self):
        self._entries: Dict[str, RegistryEntry] = {}
        self._clients: Dict[str, AgentClient] = {}
        self._refresh_task: Optional[asyncio.Task] = None
        self._refresh_interval_s = settings.registry_refresh_interval_s

    # Lifecycle

    async def start(self, config: DiscoveryConfig):
        """Discover every configured agent, then begin periodic health refresh."""
        if self._refresh_task and not self._refresh_task.done():
            logger.warning("Registry already started, restarting")
            await self.stop()

        logger.info(f"Discovering {len(config.sources)} agent(s)...")
        results = await asyncio.gather(*(self._discover(src) for src in config.sources))
        for source, entry in zip(config.sources, results):
            if entry is None:
                continue
            if entry.agent_id in self._entries:
                logger.warning(f"[{entry.agent_id}] Re-discovered, replacing existing entry")
                old_client = self._clients.get(entry.agent_id)
                if old_client is not None and old_client is not source.client:
                    await old_client.aclose()
            self._entries[entry.agent_id] = entry
            self._clients[entry.agent_id] = source.client

        logger.info(f"Registry ready: {len(self._entries)}/{len(config.sources)} agent(s) registered")

        self._refresh_interval_s = config.refresh_interval_s
        self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def stop(self):
        """Cancel the refresh loop and clear all entries. Safe to call twice."""
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        clients = list(self._clients.values())
        self._entries.clear()
        self._clients.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception as e:
                logger.warning(f"Error closing agent client: {e}")
        if task is not None:
            logger.info("Registry stopped")

    async def _discover(self, source: AgentSource) -> Optional[RegistryEntry]:
        label = source.agent_id or source.client.endpoint or "local agent"
        try:
            raw = await source.client.fetch_manifest()
            manifest = self._validate(raw, label)
            if source.agent_id and source.agent_id != manifest.agent_id:
                raise DiscoveryError(label, f"manifest reports agent id '{manifest.agent_id}'")
        except DiscoveryError as e:
            logger.error(f"Discovery failed: {e}")
            return None
        except Exception as e:
            logger.error(f"Discovery failed for {label}: {e}", exc_info=True)
            return None

        now = utcnow()
        logger.info(f"[{manifest.agent_id}] Registered '{manifest.name}' v{manifest.version} "
                    f"with {len(manifest.tools)} tool(s)")
        return RegistryEntry(
            manifest=manifest,
            endpoint=source.client.endpoint,
            discovered_at=now,
            last_health_check_at=now,
            healthy=manifest.status == "healthy",
        )

    @staticmethod
    def _validate(raw, label: str) -> Manifest:
        if isinstance(raw, Manifest):
            return raw
        if not isinstance(raw, dict):
            raise DiscoveryError(label, "manifest is missing or not an object")
        try:
            return Manifest.model_validate(raw)
        except ValidationError as e:
            raise DiscoveryError(label, f"invalid manifest: {e.error_count()} error(s): "
                                        f"{'; '.join(err['msg'] for err in e.errors())}") from e

    async def deregister(self, agent_id: str) -> bool:
        """Remove one agent and close its transport."""
        if self._entries.pop(agent_id, None) is None:
            return False
        client = self._clients.pop(agent_id, None)
        if client is not None:
            await client.aclose()
        logger.info(f"[{agent_id}] Deregistered")
        return True

    # Health refresh

    async def _refresh_loop(self):
        """Background task: probe every agent on a fixed interval."""
        logger.info(f"Health refresh every {self._refresh_interval_s}s")
        while True:
            await asyncio.sleep(self._refresh_interval_s)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Health refresh error: {e}", exc_info=True)

    async def refresh(self):
        """One refresh tick. Probes run concurrently and update only their own key."""
        agent_ids = list(self._entries)
        await asyncio.gather(*(self._probe(agent_id) for agent_id in agent_ids))

    async def _probe(self, agent_id: str):
        entry = self._entries.get(agent_id)
        client = self._clients.get(agent_id)
        if entry is None or client is None:
            return

        checked_at = None
        try:
            status = await client.probe_health(entry.manifest.health_endpoint)
            healthy = status.status == "healthy"
            checked_at = utcnow()
            if not healthy:
                logger.warning(f"[{agent_id}] Agent reports unhealthy: {status.details}")
        except HealthProbeError as e:
            logger.error(f"[{agent_id}] Health check failed: {e}")
            healthy = False
        except Exception as e:
            logger.error(f"[{agent_id}] Health check failed: {e}", exc_info=True)
            healthy = False

        current = self._entries.get(agent_id)
        if current is None:
            return  # deregistered while probing
        if healthy != current.healthy:
            logger.info(f"[{agent_id}] Health changed: {current.healthy} -> {healthy}")
        self._entries[agent_id] = replace(
            current,
            manifest=current.manifest.model_copy(update={"status": "healthy" if healthy else "unhealthy"}),
            healthy=healthy,
            last_health_check_at=checked_at or current.last_health_check_at,
        )

    # Lookups

    def get_agent(self, agent_id: str) -> Optional[RegistryEntry]:
        return self._entries.get(agent_id)

    def get_all_agents(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def get_healthy_agents(self) -> List[RegistryEntry]:
        return [e for e in self._entries.values() if e.healthy]

    def client_for(self, agent_id: str) -> Optional[AgentClient]:
        return self._clients.get(agent_id)

    def find_agents_by_capability(self, capability: str) -> List[RegistryEntry]:
        return [e for e in self.get_healthy_agents() if capability in e.capabilities]

    def find_agents_by_expertise(self, expertise: str) -> List[RegistryEntry]:
        return [e for e in self.get_healthy_agents() if expertise in e.expertise]

    def find_agents_by_tool(self, tool_name: str) -> List[RegistryEntry]:
        return [e for e in self.get_healthy_agents() if any(t.name == tool_name for t in e.tools)]

    def find_agents_by_intent_tags(self, tags: List[str]) -> List[AgentMatch]:
        """Rank healthy agents by weighted fuzzy overlap with ``tags``.

        Each matching tool tag scores 2, each matching capability or
        expertise label scores 1. Zero scores are dropped; ties keep
        discovery order.
        """
        tags = [t for t in tags if t and t.strip()]
        if not tags:
            return []
        matches = []
        for entry in self.get_healthy_agents():
            score = sum(_count_matches(tool.intent_tags, tags) * 2 for tool in entry.tools)
            score += _count_matches(entry.capabilities, tags)
            score += _count_matches(entry.expertise, tags)
            if score > 0:
                matches.append(AgentMatch(agent=entry, score=score))
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    def get_registry_stats(self) -> RegistryStats:
        entries = self.get_all_agents()
        total_tools = sum(len(e.tools) for e in entries)
        return RegistryStats(
            total_agents=len(entries),
            healthy_agents=sum(1 for e in entries if e.healthy),
            total_tools=total_tools,
            avg_tools_per_agent=total_tools / len(entries) if entries else 0,
            last_refresh=max((e.last_health_check_at for e in entries), default=None),
        )

    def generate_prompt_context(self) -> str:
        """Render every healthy agent for the intent classifier's system brief."""
        healthy = self.get_healthy_agents()
        if not healthy:
            return "No healthy agents available."

        lines = ["AVAILABLE AGENTS AND CAPABILITIES:", ""]
        for entry in healthy:
            lines.append(f"{entry.agent_id}: {entry.name}")
            lines.append(f"  Description: {entry.description}")
            lines.append("  Tools:")
            for tool in entry.tools:
                lines.append(f"    * {tool.name}: {tool.description}")
                lines.append(f"      Intent tags: {', '.join(tool.intent_tags)}")
            lines.append(f"  Capabilities: {', '.join(entry.capabilities)}")
            lines.append(f"  Expertise: {', '.join(entry.expertise)}")
            lines.append("")
        return "\n".join(lines) + "\n"

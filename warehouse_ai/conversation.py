"""Conversation state per session, kept in process memory only."""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Deque, Dict, List, Optional

from .config import settings
from .protocol import utcnow

logger = logging.getLogger(__name__)


@dataclass
class Turn:
    role: str  # "user" | "agent"
    content: str
    timestamp: datetime = field(default_factory=utcnow)
    agent_id: Optional[str] = None

    def to_wire(self) -> dict:
        data = {"role": self.role, "content": self.content, "timestamp": self.timestamp.isoformat()}
        if self.agent_id:
            data["agentId"] = self.agent_id
        return data


@dataclass
class Preferences:
    response_style: str = "detailed"  # "brief" | "detailed" | "technical"
    preferred_agent: Optional[str] = None


class ConversationContext:
    """History window and routing memory for one session.

    ``lock`` serializes classify/dispatch/record for the session so turns are
    appended in request arrival order.
    """

    def __init__(self, session_id: str, user_id: Optional[str] = None, max_turns: int = None):
        self.session_id = session_id
        self.user_id = user_id
        self.history: Deque[Turn] = deque(maxlen=max_turns or settings.max_history_turns)
        self.context: Dict[str, Any] = {}
        self.preferences = Preferences()
        self.lock = asyncio.Lock()
        self.created_at = utcnow()
        self.last_activity = self.created_at

    def touch(self):
        """Update last activity timestamp."""
        self.last_activity = utcnow()

    def append(self, turn: Turn):
        self.history.append(turn)
        self.touch()

    @property
    def last_intent(self) -> Optional[str]:
        return self.context.get("last_intent")

    @property
    def last_agent(self) -> Optional[str]:
        return self.context.get("last_agent")

    def record_exchange(self, query: str, response: str, agent_id: str, intent: str,
                        parameters: Dict[str, Any], tool_results: Optional[List[dict]] = None):
        self.append(Turn(role="user", content=query))
        self.append(Turn(role="agent", content=response, agent_id=agent_id))
        self.context.update(last_intent=intent, last_agent=agent_id, last_parameters=dict(parameters),
                            last_tool_results=list(tool_results or []))

    @property
    def last_tool_results(self) -> List[dict]:
        return self.context.get("last_tool_results", [])

    def recent_turns(self, n: int) -> List[Turn]:
        return list(self.history)[-n:] if n > 0 else []

    def to_wire(self) -> dict:
        return {
            "sessionId": self.session_id,
            "userId": self.user_id,
            "history": [t.to_wire() for t in self.history],
            "context": {
                "lastIntent": self.context.get("last_intent"),
                "lastAgent": self.context.get("last_agent"),
                "lastParameters": self.context.get("last_parameters", {}),
            },
            "lastActivity": self.last_activity.isoformat(),
            "preferences": {
                "responseStyle": self.preferences.response_style,
                "preferredAgent": self.preferences.preferred_agent,
            },
        }


class ConversationStore:
    """Session id -> ConversationContext map owned by one orchestrator.

    Sessions idle for longer than ``idle_ttl_s`` are dropped on the next
    ``get_or_create``; a session whose lock is held is never dropped.
    """

    def __init__(self, max_turns: int = None, idle_ttl_s: float = None):
        self._contexts: Dict[str, ConversationContext] = {}
        self._max_turns = max_turns or settings.max_history_turns
        self._idle_ttl = timedelta(seconds=idle_ttl_s if idle_ttl_s is not None
                                   else settings.conversation_idle_ttl_s)

    def get_or_create(self, session_id: str, user_id: Optional[str] = None) -> ConversationContext:
        self.evict_idle()
        ctx = self._contexts.get(session_id)
        if ctx is None:
            ctx = ConversationContext(session_id, user_id=user_id, max_turns=self._max_turns)
            self._contexts[session_id] = ctx
            logger.info(f"[{session_id}] New conversation")
        elif user_id and not ctx.user_id:
            ctx.user_id = user_id
        return ctx

    def evict_idle(self, now: Optional[datetime] = None) -> int:
        """Drop idle sessions. Returns how many were removed."""
        cutoff = (now or utcnow()) - self._idle_ttl
        stale = [sid for sid, ctx in self._contexts.items()
                 if ctx.last_activity < cutoff and not ctx.lock.locked()]
        for sid in stale:
            del self._contexts[sid]
        if stale:
            logger.info(f"Evicted {len(stale)} idle conversation(s)")
        return len(stale)

    def get(self, session_id: str) -> Optional[ConversationContext]:
        return self._contexts.get(session_id)

    def clear(self):
        self._contexts.clear()

    def __len__(self) -> int:
        return len(self._contexts)

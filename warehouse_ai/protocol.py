"""Wire models shared by the orchestrator, the registry and agents.

Every payload crossing a process boundary (manifest, health probe, agent
message, HTTP query) is a pydantic model. Python attributes are snake_case;
JSON keys are camelCase (``agentId``, ``intentTags``, ``targetAgent``).
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class FrozenWireModel(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ── Manifest ────────────────────────────────────────────────

class ToolDescriptor(FrozenWireModel):
    name: str
    description: str
    intent_tags: Tuple[str, ...] = ()
    parameter_schema: Dict[str, Any] = Field(default_factory=dict)


class Manifest(FrozenWireModel):
    """Immutable self-description of an agent. A refresh builds a new one."""
    agent_id: str = Field(min_length=1)
    name: str
    description: str
    version: str
    tools: Tuple[ToolDescriptor, ...]
    capabilities: Tuple[str, ...]
    expertise: Tuple[str, ...]
    health_endpoint: str = "/health"
    status: Literal["healthy", "unhealthy"] = "healthy"

    @model_validator(mode="after")
    def _unique_tool_names(self):
        names = [t.name for t in self.tools]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate tool names: {', '.join(duplicates)}")
        return self


class HealthStatus(WireModel):
    status: Literal["healthy", "unhealthy"]
    details: Dict[str, Any] = Field(default_factory=dict)


# ── Classification ──────────────────────────────────────────

class Classification(FrozenWireModel):
    intent: str
    confidence: int = Field(default=50, ge=0, le=100)
    target_agent: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    complexity: Literal["simple", "moderate", "complex"] = "simple"
    reasoning: Tuple[str, ...] = ()

    @field_validator("reasoning", mode="before")
    @classmethod
    def _reasoning_as_list(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    def with_note(self, note: str) -> "Classification":
        return self.model_copy(update={"reasoning": self.reasoning + (note,)})


# ── Agent messaging ─────────────────────────────────────────

class AgentMessage(WireModel):
    id: str = Field(default_factory=lambda: new_id("orch"))
    session_id: str
    sender: str = "orchestrator"
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ToolCall(WireModel):
    tool: str
    params: Dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AgentResponse(WireModel):
    id: str = Field(default_factory=lambda: new_id("msg"))
    session_id: str
    agent_id: str
    content: str
    reasoning: List[str] = Field(default_factory=list)
    tool_calls: List[ToolCall] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)
    status: Literal["success", "error", "partial"] = "success"


# ── HTTP surface ────────────────────────────────────────────

class QueryRequest(WireModel):
    query: str = ""
    session_id: Optional[str] = None
    user_id: Optional[str] = None


class QueryResponse(WireModel):
    response: str
    reasoning: List[str]
    agent_used: str
    classification: Classification
    response_time: int  # milliseconds


class ErrorBody(WireModel):
    error: str
    details: str = ""

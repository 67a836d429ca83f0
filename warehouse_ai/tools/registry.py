"""Tool catalog: decorator-based tool registration and lookup.

Each agent owns one ``ToolCatalog``. A tool is an async callable plus a
description, a parameter list and the intent tags the capability registry
scores queries against.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..errors import ToolExecutionError
from ..protocol import ToolDescriptor

logger = logging.getLogger(__name__)

_JSON_TYPES = {"string": "string", "int": "integer", "float": "number", "bool": "boolean", "list": "array"}


@dataclass
class ToolParam:
    name: str
    type: str = "string"  # string | int | float | bool | list
    description: str = ""
    required: bool = False
    default: Any = None
    enum: Optional[List[Any]] = None

    def schema(self) -> dict:
        prop = {"type": _JSON_TYPES.get(self.type, "string")}
        if self.description:
            prop["description"] = self.description
        if self.default is not None:
            prop["default"] = self.default
        if self.enum:
            prop["enum"] = list(self.enum)
        return prop


@dataclass
class ToolDef:
    name: str
    description: str
    params: List[ToolParam]
    handler: Callable[..., Awaitable[Dict[str, Any]]]
    intent_tags: List[str] = field(default_factory=list)
    category: str = ""

    def parameter_schema(self) -> dict:
        schema = {
            "type": "object",
            "properties": {p.name: p.schema() for p in self.params},
        }
        required = [p.name for p in self.params if p.required]
        if required:
            schema["required"] = required
        return schema

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            intent_tags=tuple(self.intent_tags),
            parameter_schema=self.parameter_schema(),
        )

    def validate(self, args: Dict[str, Any]):
        """Reject unknown or missing required parameters."""
        known = {p.name for p in self.params}
        unknown = sorted(k for k in args if k not in known)
        if unknown:
            raise ToolExecutionError(self.name, f"unknown parameter(s): {', '.join(unknown)}")
        for param in self.params:
            if param.required and args.get(param.name) in (None, ""):
                raise ToolExecutionError(self.name, f"missing required parameter '{param.name}'")


class ToolCatalog:
    def __init__(self):
        self._tools: Dict[str, ToolDef] = {}

    def register(
        self,
        name: str,
        description: str = "",
        params: Optional[List[ToolParam]] = None,
        intent_tags: Optional[List[str]] = None,
        category: str = "",
    ):
        """Decorator to register a tool function."""
        def decorator(func):
            if name in self._tools:
                raise ValueError(f"Tool already registered: {name}")
            self._tools[name] = ToolDef(
                name=name,
                description=description or (func.__doc__ or "").strip(),
                params=params or [],
                handler=func,
                intent_tags=intent_tags or [],
                category=category,
            )
            logger.debug(f"Registered tool: {name}")
            return func
        return decorator

    def get(self, name: str) -> Optional[ToolDef]:
        return self._tools.get(name)

    def all(self) -> Dict[str, ToolDef]:
        return dict(self._tools)

    def names(self) -> List[str]:
        return list(self._tools)

    def descriptors(self) -> List[ToolDescriptor]:
        return [tool.descriptor() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def by_category(self) -> Dict[str, List[ToolDef]]:
        """Tools grouped by category, in registration order."""
        groups: Dict[str, List[ToolDef]] = {}
        for tool in self._tools.values():
            groups.setdefault(tool.category or "general", []).append(tool)
        return groups

"""Tool system: per-agent catalog, parameter validation, inventory tools."""
from .registry import ToolCatalog, ToolDef, ToolParam  # noqa: F401

"""
Tool system: schemas, base tool, registry with agent permissions, executor.
"""

from .tool_schemas import (
    ParameterType,
    ToolParameter,
    ToolResult,
    ToolCall,
    ToolExecution,
)
from .base_tool import BaseTool, ToolValidationError, tool
from .tool_registry import (
    ToolRegistry,
    AgentToolPermissions,
    PermissionCheck,
    DEFAULT_PERMISSIONS,
    load_permissions,
)
from .tool_executor import ToolExecutor

__all__ = [
    "ParameterType",
    "ToolParameter",
    "ToolResult",
    "ToolCall",
    "ToolExecution",
    "BaseTool",
    "ToolValidationError",
    "tool",
    "ToolRegistry",
    "AgentToolPermissions",
    "PermissionCheck",
    "DEFAULT_PERMISSIONS",
    "load_permissions",
    "ToolExecutor",
]

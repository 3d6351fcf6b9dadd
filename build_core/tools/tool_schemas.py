"""
Tool schema definitions.
Parameter metadata, tool results, call requests and the per-run execution log entry.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class ParameterType(str, Enum):
    """Supported parameter types."""
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""
    name: str
    type: ParameterType
    description: str
    required: bool = True
    default: Any = None
    enum: Optional[List[Any]] = None
    min_value: Optional[Union[int, float]] = None
    max_value: Optional[Union[int, float]] = None

    def to_json_schema(self) -> Dict[str, Any]:
        """Convert to JSON Schema format."""
        schema: Dict[str, Any] = {
            "type": self.type.value,
            "description": self.description,
        }
        if self.enum:
            schema["enum"] = self.enum
        if self.default is not None:
            schema["default"] = self.default
        if self.min_value is not None:
            schema["minimum"] = self.min_value
        if self.max_value is not None:
            schema["maximum"] = self.max_value
        return schema


def parameters_to_json_schema(parameters: List[ToolParameter]) -> Dict[str, Any]:
    """Object schema for a parameter list."""
    schema: Dict[str, Any] = {
        "type": "object",
        "properties": {p.name: p.to_json_schema() for p in parameters},
    }
    required = [p.name for p in parameters if p.required]
    if required:
        schema["required"] = required
    return schema


@dataclass
class ToolResult:
    """Result of a tool execution."""
    success: bool
    output: Any
    error: Optional[str] = None
    error_type: Optional[str] = None
    execution_time_ms: float = 0
    truncated: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "error_type": self.error_type,
            "execution_time_ms": self.execution_time_ms,
            "truncated": self.truncated,
            "metadata": self.metadata,
        }

    def to_context_string(self) -> str:
        """Render for injection into the next model turn."""
        if self.success:
            if isinstance(self.output, str):
                return self.output
            return json.dumps(self.output, indent=2, ensure_ascii=False, default=str)
        return f"Error ({self.error_type}): {self.error}"

    @classmethod
    def success_result(cls, output: Any, **metadata) -> "ToolResult":
        return cls(success=True, output=output, metadata=metadata)

    @classmethod
    def error_result(cls, error: str, error_type: str = "ExecutionError") -> "ToolResult":
        return cls(success=False, output=None, error=error, error_type=error_type)


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""
    id: str
    tool_name: str
    arguments: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tool_name": self.tool_name,
            "arguments": self.arguments,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ToolExecution:
    """Append-only log entry: one call and what came of it."""
    call: ToolCall
    result: ToolResult
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "call": self.call.to_dict(),
            "result": self.result.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }

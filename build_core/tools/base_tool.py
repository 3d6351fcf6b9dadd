"""
Base tool class for the tool system.
All tools inherit from BaseTool.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..errors import ToolExecutionFailure
from .tool_schemas import ToolResult, ToolParameter, ParameterType

logger = logging.getLogger(__name__)


class ToolValidationError(Exception):
    """Raised when tool parameter validation fails."""
    pass


class BaseTool(ABC):
    """
    Base class for all tools.

    A tool declares its parameters, a timeout and its access rules, and
    implements ``execute``. The timeout is enforced by the caller
    (ToolExecutor) so that cancellation reaches ``execute`` itself.

    Example:
        class ReadFileTool(BaseTool):
            name = "read_file"
            description = "Read the contents of a file"
            timeout_seconds = 5

            parameters = [
                ToolParameter(
                    name="path",
                    type=ParameterType.STRING,
                    description="File path relative to the workspace root",
                ),
            ]

            async def execute(self, path: str) -> ToolResult:
                ...
    """

    name: str = ""
    description: str = ""
    parameters: List[ToolParameter] = []

    timeout_seconds: float = 30
    mutating: bool = False
    allowed_agents: Sequence[str] = ()
    blocked_agents: Sequence[str] = ()

    def __init__(self):
        if not self.name:
            raise ValueError(f"Tool {self.__class__.__name__} must define a 'name'")
        if not self.description:
            raise ValueError(f"Tool {self.__class__.__name__} must define a 'description'")

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """
        Execute the tool with validated arguments.

        Returns:
            ToolResult: The result of the tool execution
        """
        pass

    async def validate_and_execute(self, **kwargs) -> ToolResult:
        """
        Validate parameters and execute the tool.

        Validation and execution errors become failed results.
        Cancellation propagates.
        """
        start_time = time.time()

        try:
            validated_args = self.validate_parameters(**kwargs)
            result = await self.execute(**validated_args)
        except ToolValidationError as e:
            return ToolResult.error_result(str(e), "ValidationError")
        except ToolExecutionFailure as e:
            return ToolResult.error_result(e.message, type(e).__name__)
        except Exception as e:
            logger.exception(f"Unexpected error in tool {self.name}")
            return ToolResult.error_result(str(e), type(e).__name__)

        if not isinstance(result, ToolResult):
            result = ToolResult.success_result(result)
        result.execution_time_ms = (time.time() - start_time) * 1000
        return result

    def validate_parameters(self, **kwargs) -> Dict[str, Any]:
        """
        Validate and normalize input parameters.

        Raises:
            ToolValidationError: If validation fails
        """
        validated = {}
        for param in self.parameters:
            value = kwargs.get(param.name)

            if param.required and value is None:
                raise ToolValidationError(
                    f"Required parameter '{param.name}' is missing"
                )

            if value is None:
                value = param.default

            if value is not None:
                value = self._validate_type(param, value)

                if param.enum and value not in param.enum:
                    raise ToolValidationError(
                        f"Parameter '{param.name}' must be one of {param.enum}"
                    )

                if param.type in (ParameterType.INTEGER, ParameterType.NUMBER):
                    if param.min_value is not None and value < param.min_value:
                        raise ToolValidationError(
                            f"Parameter '{param.name}' must be >= {param.min_value}"
                        )
                    if param.max_value is not None and value > param.max_value:
                        raise ToolValidationError(
                            f"Parameter '{param.name}' must be <= {param.max_value}"
                        )

            validated[param.name] = value

        return validated

    def _validate_type(self, param: ToolParameter, value: Any) -> Any:
        """Validate and convert a parameter value."""
        try:
            if param.type == ParameterType.STRING:
                return str(value)
            elif param.type == ParameterType.INTEGER:
                return int(value)
            elif param.type == ParameterType.NUMBER:
                return float(value)
            elif param.type == ParameterType.BOOLEAN:
                if isinstance(value, bool):
                    return value
                if isinstance(value, str):
                    return value.lower() in ("true", "1", "yes")
                return bool(value)
            elif param.type == ParameterType.ARRAY:
                if not isinstance(value, list):
                    raise ToolValidationError(f"Parameter '{param.name}' must be an array")
                return value
            elif param.type == ParameterType.OBJECT:
                if not isinstance(value, dict):
                    raise ToolValidationError(f"Parameter '{param.name}' must be an object")
                return value
            return value
        except (ValueError, TypeError):
            raise ToolValidationError(
                f"Parameter '{param.name}' has invalid type: expected {param.type.value}"
            )

    def is_blocked_for(self, agent: str) -> bool:
        return agent.upper() in {a.upper() for a in self.blocked_agents}

    def is_restricted_from(self, agent: str) -> bool:
        """True when the tool names an allow list that excludes the agent."""
        if not self.allowed_agents:
            return False
        return agent.upper() not in {a.upper() for a in self.allowed_agents}

    def __repr__(self) -> str:
        flag = " mutating" if self.mutating else ""
        return f"<Tool: {self.name}{flag}>"


def tool(
    name: Optional[str] = None,
    description: Optional[str] = None,
    parameters: Optional[List[ToolParameter]] = None,
    timeout_seconds: float = 30,
    mutating: bool = False,
):
    """
    Decorator to create a tool class from a coroutine function.

    Example:
        @tool(name="echo", description="Echo the input",
              parameters=[ToolParameter("text", ParameterType.STRING, "Text")])
        async def echo(text: str) -> ToolResult:
            return ToolResult.success_result(text)
    """
    def decorator(func):
        class DynamicTool(BaseTool):
            async def execute(self, **kwargs):
                return await func(**kwargs)

        DynamicTool.name = name or func.__name__
        DynamicTool.description = description or func.__doc__ or f"Execute {func.__name__}"
        DynamicTool.parameters = list(parameters or [])
        DynamicTool.timeout_seconds = timeout_seconds
        DynamicTool.mutating = mutating
        DynamicTool.__name__ = f"{func.__name__}_tool"

        return DynamicTool

    return decorator

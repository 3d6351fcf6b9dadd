"""
Tool Executor for the tool system.
Runs model-requested tool calls in order, with permission checks and timeouts.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..errors import (
    ToolExecutionFailure,
    ToolNotFoundError,
    ToolPermissionDeniedError,
    ToolTimeoutError,
)
from .tool_registry import ToolRegistry
from .tool_schemas import ToolCall, ToolExecution, ToolResult

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Executes tool calls on behalf of an agent.

    Calls run strictly one after another in the order given; a model may be
    reasoning about ordered side effects. Every failure mode (denied, unknown
    tool, timeout, crash) comes back as a failed ToolExecution instead of an
    exception, so one bad call never aborts the task.

    Example:
        executor = ToolExecutor(registry)
        executions = await executor.execute_calls("MARS", "task-1", [
            ToolCall(id="c1", tool_name="read_file", arguments={"path": "a.py"}),
            ToolCall(id="c2", tool_name="write_file", arguments={"path": "a.py", "content": "..."}),
        ])
    """

    def __init__(self, registry: ToolRegistry, default_timeout: float = 30):
        """
        Args:
            registry: Tool registry used for lookup and permission checks
            default_timeout: Timeout for tools that declare none
        """
        self.registry = registry
        self.default_timeout = default_timeout

    async def execute_calls(
        self,
        agent: str,
        task_id: str,
        calls: List[ToolCall],
    ) -> List[ToolExecution]:
        """Execute calls sequentially and return one log entry per call."""
        executions = []
        for call in calls:
            result = await self.execute_call(agent, task_id, call)
            executions.append(ToolExecution(call=call, result=result))
        return executions

    async def execute_call(self, agent: str, task_id: str, call: ToolCall) -> ToolResult:
        """Look the tool up, check permission, then run it against its timeout."""
        tool = self.registry.get(call.tool_name)
        if tool is None:
            logger.info(f"Tool call rejected: unknown tool {call.tool_name}")
            return self._failure(ToolNotFoundError(call.tool_name))

        check = self.registry.can_call(agent, call.tool_name, task_id)
        if not check.allowed:
            error = ToolPermissionDeniedError(agent, call.tool_name, check.reason or "denied")
            logger.info(f"Tool call rejected: {error.message}")
            return self._failure(error)

        self.registry.record_call(agent, task_id)
        timeout = tool.timeout_seconds or self.default_timeout

        try:
            # wait_for cancels the tool coroutine when the timeout wins
            result = await asyncio.wait_for(
                tool.validate_and_execute(**self._arguments(call)),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Tool {call.tool_name} timed out after {timeout}s")
            return self._failure(ToolTimeoutError(call.tool_name, timeout))
        except Exception as e:
            logger.exception(f"Tool {call.tool_name} raised")
            return self._failure(ToolExecutionFailure(call.tool_name, str(e)))

        if not isinstance(result, ToolResult):
            result = ToolResult.success_result(result)

        logger.debug(f"Tool {call.tool_name} finished (success={result.success})")
        return result

    @staticmethod
    def _arguments(call: ToolCall) -> Dict[str, Any]:
        return call.arguments if isinstance(call.arguments, dict) else {}

    @staticmethod
    def _failure(error: Exception) -> ToolResult:
        message: Optional[str] = getattr(error, "message", None) or str(error)
        return ToolResult.error_result(message, type(error).__name__)

"""
Tool Executor Unit Tests

Every failure mode of a tool call comes back as a failed ToolResult.
"""

import asyncio

import pytest

from build_core.tools import (
    AgentToolPermissions,
    BaseTool,
    ParameterType,
    ToolCall,
    ToolExecutor,
    ToolParameter,
    ToolRegistry,
)


class CountTool(BaseTool):
    name = "count"
    description = "Count to n"
    parameters = [
        ToolParameter(name="n", type=ParameterType.INTEGER, description="Upper bound", min_value=1, max_value=5),
    ]

    async def execute(self, n: int):
        return list(range(1, n + 1))


class CrashTool(BaseTool):
    name = "crash"
    description = "Always raises"

    async def execute(self, **kwargs):
        raise RuntimeError("kaboom")


class HangTool(BaseTool):
    name = "hang"
    description = "Never returns"
    timeout_seconds = 0.05

    def __init__(self):
        super().__init__()
        self.cancelled = False

    async def execute(self, **kwargs):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


@pytest.fixture
def hang() -> HangTool:
    return HangTool()


@pytest.fixture
def registry(hang) -> ToolRegistry:
    registry = ToolRegistry([
        AgentToolPermissions("MARS", ["count", "crash", "hang"], max_calls_per_task=3),
    ])
    registry.register(CountTool())
    registry.register(CrashTool())
    registry.register(hang)
    return registry


@pytest.fixture
def executor(registry) -> ToolExecutor:
    return ToolExecutor(registry)


def call(name: str, **arguments) -> ToolCall:
    return ToolCall(id=f"call_{name}", tool_name=name, arguments=arguments)


class TestToolExecutor:
    """ToolExecutor"""

    @pytest.mark.asyncio
    async def test_successful_call(self, executor, registry):
        result = await executor.execute_call("MARS", "task-1", call("count", n=3))

        assert result.success
        assert result.output == [1, 2, 3]
        assert result.execution_time_ms >= 0
        assert registry.get_call_count("MARS", "task-1") == 1

    @pytest.mark.asyncio
    async def test_string_arguments_are_coerced(self, executor):
        result = await executor.execute_call("MARS", "task-1", call("count", n="2"))
        assert result.output == [1, 2]

    @pytest.mark.asyncio
    async def test_validation_error(self, executor):
        result = await executor.execute_call("MARS", "task-1", call("count", n=9))
        assert not result.success
        assert result.error_type == "ValidationError"

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self, executor):
        result = await executor.execute_call("MARS", "task-1", call("count"))
        assert result.error_type == "ValidationError"
        assert "'n'" in result.error

    @pytest.mark.asyncio
    async def test_permission_denied(self, executor, registry):
        result = await executor.execute_call("SATURN", "task-1", call("count", n=1))

        assert result.error_type == "ToolPermissionDeniedError"
        assert registry.get_call_count("SATURN", "task-1") == 0

    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor):
        result = await executor.execute_call("MARS", "task-1", call("fly"))

        assert not result.success
        assert result.error_type == "ToolNotFoundError"
        assert "not found" in result.error

    @pytest.mark.asyncio
    async def test_unknown_tool_for_unknown_agent(self, executor, registry):
        result = await executor.execute_call("PLUTO", "task-1", call("fly"))

        assert result.error_type == "ToolNotFoundError"
        assert registry.get_call_count("PLUTO", "task-1") == 0

    @pytest.mark.asyncio
    async def test_tool_exception(self, executor):
        result = await executor.execute_call("MARS", "task-1", call("crash"))
        assert result.error_type == "RuntimeError"
        assert result.error == "kaboom"

    @pytest.mark.asyncio
    async def test_timeout_cancels_tool(self, executor, hang):
        result = await executor.execute_call("MARS", "task-1", call("hang"))

        assert result.error_type == "ToolTimeoutError"
        assert hang.cancelled is True

    @pytest.mark.asyncio
    async def test_calls_run_in_order_and_respect_limit(self, executor):
        executions = await executor.execute_calls("MARS", "task-1", [
            call("count", n=1),
            call("count", n=2),
            call("count", n=3),
            call("count", n=4),
        ])

        assert [e.call.id for e in executions] == ["call_count"] * 4
        assert [e.result.success for e in executions] == [True, True, True, False]
        assert executions[3].result.error_type == "ToolPermissionDeniedError"
        assert executions[1].result.output == [1, 2]

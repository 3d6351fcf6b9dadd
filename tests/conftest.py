"""
Pytest Configuration and Fixtures

Shared fixtures: a controllable clock, scripted model stubs and a tool
registry with a couple of simple tools.
"""

from typing import Any, Dict, List, Optional

import pytest

from build_core.config import AgentLoopConfig
from build_core.tools import BaseTool, ToolParameter, ToolRegistry, ParameterType
from build_core.tools.tool_registry import AgentToolPermissions


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedModel:
    """
    Model stub that replays canned responses.

    The last response repeats once the script runs out. Every call is
    recorded as a dict of its arguments.
    """

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def __call__(
        self,
        system_prompt: str,
        user_prompt: str,
        agent_id: str,
        *,
        model: Optional[str] = None,
        cache: bool = False,
    ) -> Any:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "agent_id": agent_id,
            "model": model,
            "cache": cache,
        })
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


class EchoTool(BaseTool):
    name = "echo"
    description = "Echo the given text"
    parameters = [
        ToolParameter(name="text", type=ParameterType.STRING, description="Text to echo"),
    ]

    async def execute(self, text: str) -> Any:
        return f"echo: {text}"


class WriteNoteTool(BaseTool):
    name = "write_note"
    description = "Pretend to write a note"
    mutating = True
    parameters = [
        ToolParameter(name="text", type=ParameterType.STRING, description="Note body"),
    ]

    async def execute(self, text: str) -> Any:
        return "written"


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scripted_model():
    """Factory: scripted_model(["response 1", ...])."""
    return ScriptedModel


@pytest.fixture
def loop_config() -> AgentLoopConfig:
    return AgentLoopConfig(max_turns=4, confidence_threshold=0.85, work_budget=10000)


@pytest.fixture
def tool_registry() -> ToolRegistry:
    """Registry with echo (read-only) and write_note (mutating) tools."""
    registry = ToolRegistry(permissions=[
        AgentToolPermissions(
            agent="MARS",
            allowed=["echo", "write_note"],
            can_mutate=True,
        ),
        AgentToolPermissions(
            agent="SATURN",
            allowed=["echo", "write_note"],
            can_mutate=False,
            max_calls_per_task=2,
        ),
    ])
    registry.register(EchoTool())
    registry.register(WriteNoteTool())
    return registry

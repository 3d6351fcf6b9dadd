"""
Agent execution loop.

Runs one task as a bounded sequence of model turns. The model may call
tools between turns; the loop ends when the model reports a final answer
with enough confidence, the work budget runs out, or the turn limit is hit.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..config import AgentLoopConfig
from ..llm.models import LLMResponse
from ..observability import ObservabilitySink
from ..tools.tool_executor import ToolExecutor
from ..tools.tool_registry import ToolRegistry
from ..tools.tool_schemas import ToolExecution
from .conversation import FINAL_TURN_DIRECTIVE, ConversationLog, MessageRole
from .output_parser import extract_final_output, format_tool_results, parse_tool_calls

logger = logging.getLogger(__name__)

NO_OUTPUT = "No output generated"

OUTPUT_FORMAT_INSTRUCTIONS = """<output_format>
When you are ready to provide your final answer, wrap it in <final_output> tags with a confidence attribute:

<final_output confidence="0.92">
Your final response here.
</final_output>

Confidence should be between 0.0 and 1.0 based on your certainty:
- 0.9-1.0: Very confident, clear answer
- 0.7-0.9: Fairly confident, minor uncertainties
- 0.5-0.7: Uncertain, significant gaps
- Below 0.5: Highly uncertain, more research needed
</output_format>"""

# async (system_prompt, user_prompt, agent_id, *, model, cache) -> LLMResponse | dict
ModelCaller = Callable[..., Awaitable[Any]]


class StopReason(str, Enum):
    """Why a loop run ended."""
    CONFIDENCE = "confidence"
    MAX_TURNS = "max_turns"
    BUDGET = "budget"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class AgentLoopResult:
    """Outcome of one run."""
    output: str
    tool_executions: Tuple[ToolExecution, ...]
    turns: int
    total_work_units_consumed: int
    confidence: float
    stopped_because: StopReason

    @property
    def succeeded(self) -> bool:
        return self.stopped_because in (StopReason.CONFIDENCE, StopReason.DONE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output": self.output,
            "tool_executions": [e.to_dict() for e in self.tool_executions],
            "turns": self.turns,
            "total_work_units_consumed": self.total_work_units_consumed,
            "confidence": self.confidence,
            "stopped_because": self.stopped_because.value,
        }


class AgentExecutionLoop:
    """
    Confidence-gated ReAct loop for a single task.

    One instance can run many tasks one after another; every ``run`` starts
    from clean state. ``run`` never raises: unexpected errors come back as
    ``stopped_because == StopReason.ERROR`` with confidence 0.

    Example:
        loop = AgentExecutionLoop(registry, client.call_model)
        result = await loop.run("MARS", "You are MARS...", "Implement the login form", "task-1")
        if result.stopped_because == StopReason.CONFIDENCE:
            ...
    """

    def __init__(
        self,
        registry: ToolRegistry,
        call_model: ModelCaller,
        config: Optional[AgentLoopConfig] = None,
        sink: Optional[ObservabilitySink] = None,
        tool_executor: Optional[ToolExecutor] = None,
    ):
        """
        Args:
            registry: Tool registry for prompts, permissions and lookup
            call_model: Model invocation coroutine
            config: Loop settings
            sink: Optional observability sink
            tool_executor: Defaults to a ToolExecutor over ``registry``
        """
        self.registry = registry
        self.config = config or AgentLoopConfig()
        self._call_model = call_model
        self._sink = sink
        self._tool_executor = tool_executor or ToolExecutor(registry)

        self._conversation = ConversationLog()
        self._tool_executions: List[ToolExecution] = []
        self._work_consumed = 0
        self._turns = 0
        self._system_prompt = ""

    async def run(
        self,
        agent_name: str,
        system_prompt: str,
        user_prompt: str,
        task_id: str,
    ) -> AgentLoopResult:
        """
        Run the loop for one task.

        Args:
            agent_name: Agent executing the task
            system_prompt: Base system prompt
            user_prompt: The task
            task_id: Task id used for tool call accounting

        Returns:
            AgentLoopResult
        """
        self._reset()
        span_id = self._sink.start_span("agent_loop.run", {
            "agent": agent_name,
            "task_id": task_id,
        }) if self._sink else None

        try:
            self._system_prompt = self._build_system_prompt(agent_name, system_prompt)
            self._conversation.add(MessageRole.USER, user_prompt)
            result = await self._loop(agent_name, user_prompt, task_id)
        except Exception as e:
            logger.exception(f"Agent loop for {agent_name} on {task_id} failed: {e}")
            result = self._result(StopReason.ERROR, f"Error during execution: {e}", 0.0)

        logger.info(
            f"{agent_name} finished {task_id}: {result.stopped_because.value} "
            f"after {result.turns} turn(s), confidence={result.confidence:.2f}"
        )
        if self._sink and span_id:
            self._sink.end_span(span_id, result.stopped_because.value, {
                "turns": result.turns,
                "work_units": result.total_work_units_consumed,
                "tool_calls": len(result.tool_executions),
            })
        return result

    async def _loop(self, agent_name: str, user_prompt: str, task_id: str) -> AgentLoopResult:
        cfg = self.config

        while self._turns < cfg.max_turns:
            if self._work_consumed >= cfg.work_budget:
                logger.info(f"{agent_name}: work budget exhausted ({self._work_consumed}/{cfg.work_budget})")
                return self._result(StopReason.BUDGET)

            is_final_turn = self._turns == cfg.max_turns - 1
            model = cfg.final_model if is_final_turn else cfg.thinking_model

            response = await self._invoke(agent_name, user_prompt, model, is_final_turn)
            self._work_consumed += response.work_units
            self._turns += 1
            content = response.content

            logger.debug(f"{agent_name} turn {self._turns}/{cfg.max_turns} on {model}: {len(content)} chars")

            final = extract_final_output(content)
            if final is not None:
                text, confidence = final
                self._conversation.add(MessageRole.ASSISTANT, content)
                if confidence >= cfg.confidence_threshold:
                    return self._result(StopReason.CONFIDENCE, text, confidence)
                if self._turns >= cfg.max_turns:
                    return self._result(StopReason.DONE, text, confidence)
                logger.debug(f"{agent_name}: confidence {confidence:.2f} below threshold, continuing")
                continue

            if is_final_turn:
                self._conversation.add(MessageRole.ASSISTANT, content)
                return self._result(StopReason.MAX_TURNS, content, cfg.fallback_confidence)

            calls = parse_tool_calls(content) if cfg.tools_enabled else []
            if calls:
                self._conversation.add(MessageRole.ASSISTANT, content)
                executions = await self._tool_executor.execute_calls(agent_name, task_id, calls)
                self._tool_executions.extend(executions)
                self._conversation.add(
                    MessageRole.TOOL,
                    format_tool_results(executions),
                    tool_names=[c.tool_name for c in calls],
                )
                continue

            self._conversation.add(MessageRole.ASSISTANT, content)

        return self._result(StopReason.MAX_TURNS)

    async def _invoke(self, agent_name: str, user_prompt: str, model: str, is_final_turn: bool) -> LLMResponse:
        if self._turns == 0:
            prompt = user_prompt
            if is_final_turn:
                prompt += "\n\n" + FINAL_TURN_DIRECTIVE
        else:
            prompt = self._conversation.continuation_prompt(final_turn=is_final_turn)

        raw = await self._call_model(
            self._system_prompt,
            prompt,
            agent_name,
            model=model,
            cache=False,
        )
        return LLMResponse.coerce(raw, default_model=model)

    def _build_system_prompt(self, agent_name: str, base_prompt: str) -> str:
        parts = [base_prompt]

        if self.config.tools_enabled:
            try:
                tools_prompt = self.registry.format_tools_for_prompt(agent_name)
            except Exception as e:
                logger.warning(f"Tool description unavailable for {agent_name}, continuing without tools: {e}")
                tools_prompt = ""
            if tools_prompt:
                parts.append(tools_prompt)

        parts.append(OUTPUT_FORMAT_INSTRUCTIONS)
        return "\n\n".join(parts)

    def _reset(self) -> None:
        self._conversation = ConversationLog()
        self._tool_executions = []
        self._work_consumed = 0
        self._turns = 0
        self._system_prompt = ""

    def _result(
        self,
        reason: StopReason,
        output: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> AgentLoopResult:
        if output is None:
            last = self._conversation.last(MessageRole.ASSISTANT)
            output = last.content if last else NO_OUTPUT
        return AgentLoopResult(
            output=output,
            tool_executions=tuple(self._tool_executions),
            turns=self._turns,
            total_work_units_consumed=self._work_consumed,
            confidence=self.config.fallback_confidence if confidence is None else confidence,
            stopped_because=reason,
        )

    @property
    def conversation(self) -> ConversationLog:
        """Conversation of the current or most recent run."""
        return self._conversation

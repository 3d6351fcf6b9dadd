"""
Swarm Executor - multi-model task dispatch.

Routes model calls across the catalog with circuit breakers, budget checks
and timeouts. Three shapes are supported:

- ``execute_parallel``: independent tasks, bounded concurrency
- ``execute_sequential``: a pipeline that stops at the first failure
- ``execute_fan_out``: one task against several models
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..config import SwarmConfig
from ..errors import (
    BudgetExceededError,
    BuildCoreError,
    CircuitBreakerOpenError,
    ModelTimeoutError,
)
from ..llm.cost_optimizer import CostOptimizer
from ..llm.models import (
    INPUT_TOKEN_SHARE,
    OUTPUT_TOKEN_SHARE,
    LLMResponse,
    ModelConfig,
    RouteConstraints,
    RouteDecision,
    RouteOutcome,
)
from ..llm.profiles import AgentProfileManager
from ..llm.router import ModelRouter
from ..observability import ObservabilitySink
from .circuit_breaker import CircuitBreaker, CircuitConfig
from .types import (
    ParallelResult,
    SequentialResult,
    SwarmPipeline,
    SwarmTask,
    SwarmTaskResult,
)

logger = logging.getLogger(__name__)

CRITICAL_ONLY_MIN_QUALITY = 0.9
DOWNGRADE_MIN_QUALITY = 0.7

FAN_OUT_STRATEGIES = ("best", "consensus")

# async (system_prompt, user_prompt, agent_id, *, model, cache) -> LLMResponse | dict
ModelCaller = Callable[..., Awaitable[Any]]


class SwarmExecutor:
    """
    Multi-model executor.

    Per-task failures never raise out of ``execute_parallel`` or
    ``execute_fan_out``; they come back as ``SwarmTaskResult.success=False``.

    Example:
        swarm = SwarmExecutor(ModelRouter(), CostOptimizer(), client.call_model)
        batch = await swarm.execute_parallel([
            SwarmTask(agent_id="MARS", user_prompt="Write the handler"),
            SwarmTask(agent_id="SATURN", user_prompt="Write the tests"),
        ])
        if batch.partial_failure:
            ...
    """

    def __init__(
        self,
        router: ModelRouter,
        cost_optimizer: CostOptimizer,
        call_model: ModelCaller,
        profiles: Optional[AgentProfileManager] = None,
        config: Optional[SwarmConfig] = None,
        sink: Optional[ObservabilitySink] = None,
        clock: Callable[[], float] = time.time,
        breaker: Optional[CircuitBreaker] = None,
    ):
        """
        Args:
            router: Model router
            cost_optimizer: Budget tracker
            call_model: Model invocation coroutine
            profiles: Per-agent routing preferences
            config: Concurrency, timeout and breaker settings
            sink: Optional observability sink
            clock: Time source for the circuit breaker
            breaker: Shared circuit breaker; one is created from ``config`` otherwise
        """
        self.router = router
        self.cost_optimizer = cost_optimizer
        self.profiles = profiles or AgentProfileManager()
        self.config = config or SwarmConfig()
        self._call_model = call_model
        self._sink = sink
        self._breaker = breaker or CircuitBreaker(
            CircuitConfig(
                failure_threshold=self.config.breaker_failure_threshold,
                cooldown_seconds=self.config.breaker_cooldown_seconds,
            ),
            clock=clock,
        )
        self._semaphore = asyncio.Semaphore(self.config.max_concurrency)

    # ------------------------------------------------------------------
    # Parallel
    # ------------------------------------------------------------------

    async def execute_parallel(self, tasks: Sequence[SwarmTask]) -> ParallelResult:
        """Route and run every task concurrently; wait for all of them to settle."""
        span_id = self._start_span("swarm.parallel", {"tasks": len(tasks)})

        outcomes = await asyncio.gather(
            *(self._route_and_execute(task) for task in tasks),
            return_exceptions=True,
        )
        results = [
            self._capture(task, outcome)
            for task, outcome in zip(tasks, outcomes)
        ]

        completed = sum(1 for r in results if r.success)
        failed = len(results) - completed
        aggregate = ParallelResult(
            results=results,
            completed=completed,
            failed=failed,
            total_cost=sum(r.cost for r in results),
            max_latency_ms=max((r.latency_ms for r in results), default=0.0),
            partial_failure=0 < failed < len(results),
        )

        logger.info(
            f"Parallel batch finished: {completed} completed, {failed} failed, "
            f"cost=${aggregate.total_cost:.6f}"
        )
        self._end_span(span_id, "partial_failure" if aggregate.partial_failure else "ok", {
            "completed": completed,
            "failed": failed,
        })
        return aggregate

    # ------------------------------------------------------------------
    # Sequential
    # ------------------------------------------------------------------

    async def execute_sequential(self, pipeline: SwarmPipeline) -> SequentialResult:
        """
        Run pipeline steps one at a time.

        A step whose condition returns False is skipped. The pipeline stops
        at the first failed step, or when a condition raises.
        """
        span_id = self._start_span("swarm.sequential", {
            "pipeline": pipeline.id,
            "steps": len(pipeline.steps),
        })
        results: List[SwarmTaskResult] = []
        skipped: List[str] = []
        completed = True

        for step in pipeline.steps:
            task = step.task
            if step.condition is not None and results:
                try:
                    should_run = step.condition(results[-1])
                except Exception as e:
                    logger.warning(f"Pipeline {pipeline.id}: condition for {task.id} raised: {e}")
                    results.append(self._failure(task, None, f"Step condition failed: {e}", "CONDITION_ERROR"))
                    completed = False
                    break
                if not should_run:
                    logger.debug(f"Pipeline {pipeline.id}: skipping {task.id}")
                    skipped.append(task.id)
                    continue

            result = await self._route_and_execute(task)
            results.append(result)
            if not result.success:
                logger.info(f"Pipeline {pipeline.id} stopped at {task.id}: {result.error}")
                completed = False
                break

        self._end_span(span_id, "ok" if completed else "failed", {
            "results": len(results),
            "skipped": len(skipped),
        })
        return SequentialResult(
            pipeline_id=pipeline.id,
            results=results,
            completed=completed,
            skipped=skipped,
            total_cost=sum(r.cost for r in results),
            total_latency_ms=sum(r.latency_ms for r in results),
        )

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def execute_fan_out(
        self,
        task: SwarmTask,
        models: Sequence[str],
        strategy: str = "best",
    ) -> SwarmTaskResult:
        """
        Run one task against every listed model.

        ``best`` returns the fastest success. ``consensus`` returns the first
        success in model order, which approximates agreement without
        comparing outputs.

        Raises:
            ValueError: If the strategy is unknown
        """
        if strategy not in FAN_OUT_STRATEGIES:
            raise ValueError(f"Unknown fan-out strategy: {strategy}")
        if not models:
            return self._failure(task, None, "No models supplied for fan-out", "NO_MODELS")

        outcomes = await asyncio.gather(
            *(self._execute_on(task, model_id) for model_id in models),
            return_exceptions=True,
        )
        results = [self._capture(task, outcome) for outcome in outcomes]
        successes = [r for r in results if r.success]

        if not successes:
            logger.warning(f"Fan-out of {task.id} failed on all {len(models)} model(s)")
            return results[0]
        if strategy == "best":
            return min(successes, key=lambda r: r.latency_ms)
        return successes[0]

    async def _execute_on(self, task: SwarmTask, model_id: str) -> SwarmTaskResult:
        model = self.router.get_model(model_id)
        if model is None:
            return self._failure(task, model_id, f"Unknown model: {model_id}", "UNKNOWN_MODEL")
        decision = RouteDecision(
            model=model,
            estimated_cost=model.estimate_cost_for(task.token_estimate),
            estimated_latency_ms=self.router.expected_latency(model_id, task.task_type),
            reason="fan-out",
        )
        return await self.execute_task(task, decision)

    # ------------------------------------------------------------------
    # Routing and single-task execution
    # ------------------------------------------------------------------

    def route_task(self, task: SwarmTask) -> RouteDecision:
        """
        Choose a model for a task.

        Raises:
            BudgetExceededError: If only critical calls are allowed and the task is not critical
            NoRouteAvailableError: If no model satisfies the constraints
        """
        base = self.profiles.get_constraints(task.agent_id)
        constraints = RouteConstraints(
            min_quality=base.min_quality,
            max_cost=base.max_cost,
            preferred_models=list(base.preferred_models),
            exclude_models=sorted(set(base.exclude_models) | set(self._breaker.open_models())),
        )

        if self.cost_optimizer.only_critical_allowed():
            if task.priority != "critical":
                raise BudgetExceededError("critical-only", 0.0)
            constraints.min_quality = CRITICAL_ONLY_MIN_QUALITY
        elif self.cost_optimizer.should_downgrade():
            constraints.min_quality = DOWNGRADE_MIN_QUALITY

        return self.router.route(task.agent_id, task.task_type, constraints, task.token_estimate)

    async def _route_and_execute(self, task: SwarmTask) -> SwarmTaskResult:
        try:
            decision = self.route_task(task)
        except BuildCoreError as e:
            logger.warning(f"Routing failed for {task.id} ({task.agent_id}): {e.message}")
            return self._failure(task, None, e.message, e.code)
        return await self.execute_task(task, decision)

    async def execute_task(self, task: SwarmTask, decision: RouteDecision) -> SwarmTaskResult:
        """
        Run one task on the routed model.

        Breaker and budget rejections fail the task without calling the model
        and without counting against the breaker.
        """
        model = decision.model

        if not self._breaker.is_available(model.id):
            error = CircuitBreakerOpenError(model.id)
            return self._failure(task, model.id, error.message, error.code)
        if not self.cost_optimizer.can_afford(model, task.token_estimate):
            error = BudgetExceededError(model.id, decision.estimated_cost)
            return self._failure(task, model.id, error.message, error.code)

        timeout = task.timeout_seconds or self.config.default_timeout_seconds

        async with self._semaphore:
            # latency covers the model call only, not time queued for a slot
            start = time.monotonic()
            try:
                raw = await asyncio.wait_for(
                    self._call_model(
                        task.system_prompt,
                        task.user_prompt,
                        task.agent_id,
                        model=model.id,
                        cache=False,
                    ),
                    timeout=timeout,
                )
                response = LLMResponse.coerce(raw, default_model=model.id)
            except asyncio.TimeoutError:
                latency = (time.monotonic() - start) * 1000
                error = ModelTimeoutError(model.id, timeout)
                self._record_failure(task, model, latency)
                return self._failure(task, model.id, error.message, error.code, latency)
            except Exception as e:
                latency = (time.monotonic() - start) * 1000
                logger.warning(f"Model {model.id} failed on {task.id}: {e}")
                self._record_failure(task, model, latency)
                code = e.code if isinstance(e, BuildCoreError) else "MODEL_CALL_FAILED"
                return self._failure(task, model.id, str(e), code, latency)

        latency = (time.monotonic() - start) * 1000
        input_tokens, output_tokens = self._split_tokens(task, response)
        cost = model.estimate_cost(input_tokens, output_tokens)

        self.cost_optimizer.record_spend(model.id, task.agent_id, input_tokens, output_tokens, cost=cost)
        self.router.update_stats(model.id, task.task_type, RouteOutcome(
            success=True,
            quality=self.config.assumed_success_quality,
            latency_ms=latency,
            cost=cost,
        ))
        self._breaker.record_success(model.id)

        return SwarmTaskResult(
            task_id=task.id,
            agent_id=task.agent_id,
            model=model.id,
            success=True,
            output=response.content,
            latency_ms=latency,
            cost=cost,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    @staticmethod
    def _split_tokens(task: SwarmTask, response: LLMResponse) -> tuple:
        if response.work_units or response.input_tokens is not None:
            return response.split_tokens()
        return (
            int(round(task.token_estimate * INPUT_TOKEN_SHARE)),
            int(round(task.token_estimate * OUTPUT_TOKEN_SHARE)),
        )

    def _record_failure(self, task: SwarmTask, model: ModelConfig, latency_ms: float) -> None:
        self.router.update_stats(model.id, task.task_type, RouteOutcome(
            success=False,
            quality=0.0,
            latency_ms=latency_ms,
            cost=0.0,
        ))
        self._breaker.record_failure(model.id)

    @staticmethod
    def _failure(
        task: SwarmTask,
        model_id: Optional[str],
        error: str,
        code: Optional[str],
        latency_ms: float = 0.0,
    ) -> SwarmTaskResult:
        return SwarmTaskResult(
            task_id=task.id,
            agent_id=task.agent_id,
            model=model_id,
            success=False,
            latency_ms=latency_ms,
            error=error,
            error_code=code,
        )

    def _capture(self, task: SwarmTask, outcome: Any) -> SwarmTaskResult:
        if isinstance(outcome, SwarmTaskResult):
            return outcome
        # gather surfaced an exception that escaped the per-task capture
        logger.error(f"Unhandled error in {task.id}: {outcome}")
        return self._failure(task, None, str(outcome), "EXCEPTION")

    # ------------------------------------------------------------------
    # Breaker state
    # ------------------------------------------------------------------

    def is_model_available(self, model_id: str) -> bool:
        return self._breaker.is_available(model_id)

    def get_breaker_states(self) -> Dict[str, Any]:
        return self._breaker.get_summary()

    def reset_breaker(self, model_id: str) -> None:
        self._breaker.reset(model_id)

    def reset_all_breakers(self) -> None:
        self._breaker.reset_all()

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def _start_span(self, name: str, attributes: Dict[str, Any]) -> Optional[str]:
        return self._sink.start_span(name, attributes) if self._sink else None

    def _end_span(self, span_id: Optional[str], status: str, attributes: Dict[str, Any]) -> None:
        if self._sink and span_id:
            self._sink.end_span(span_id, status, attributes)

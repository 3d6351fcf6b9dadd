"""
Graph Executor - drives a decomposed task graph to completion.

Runs ready tasks in waves, bounded by ``max_parallel``. A failed task is
handed back to the planner for a replan; once replanning is refused, or
``stop_on_error`` is set, every task still pending is marked blocked.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List

from ..agentic.agent_loop import AgentLoopResult, StopReason
from .models import DecompositionResult, TaskGraph, TaskNode, TaskStatus
from .planner import SUPERSEDED_BY, TaskGraphPlanner

logger = logging.getLogger(__name__)

TaskRunner = Callable[[TaskNode], Awaitable[AgentLoopResult]]


@dataclass
class GraphExecutionReport:
    """Final state of a graph run."""
    graph: TaskGraph
    results_by_task: Dict[str, AgentLoopResult] = field(default_factory=dict)
    replans: int = 0
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed and not self.blocked

    def to_dict(self) -> Dict[str, Any]:
        return {
            "graph": self.graph.to_dict(),
            "results": {task_id: r.to_dict() for task_id, r in self.results_by_task.items()},
            "replans": self.replans,
            "completed": list(self.completed),
            "failed": list(self.failed),
            "blocked": list(self.blocked),
        }


class GraphExecutor:
    """
    Wave-based task graph runner.

    Example:
        async def run_task(node):
            return await loop.run(node.agent, prompts[node.agent], node.description, node.id)

        executor = GraphExecutor(planner, run_task, max_parallel=2)
        report = await executor.execute(planner.decompose("Build a settings page"))
    """

    def __init__(
        self,
        planner: TaskGraphPlanner,
        run_task: TaskRunner,
        max_parallel: int = 4,
        stop_on_error: bool = False,
    ):
        """
        Args:
            planner: Planner used for readiness, status updates and replans
            run_task: Coroutine running one task node
            max_parallel: Maximum tasks in flight
            stop_on_error: Block remaining work after the first failure instead of replanning
        """
        self.planner = planner
        self._run_task = run_task
        self._max_parallel = max_parallel
        self._stop_on_error = stop_on_error

    async def execute(self, decomposition: DecompositionResult) -> GraphExecutionReport:
        graph = decomposition.graph
        results: Dict[str, AgentLoopResult] = {}
        replans = 0
        halted = False
        semaphore = asyncio.Semaphore(self._max_parallel)

        while not halted:
            wave = self.planner.get_ready_tasks(graph)
            if not wave:
                break

            for node in wave:
                graph = self.planner.update_task_status(graph, node.id, TaskStatus.RUNNING)

            logger.info(f"Running wave of {len(wave)} task(s): {[n.id for n in wave]}")
            outcomes = await asyncio.gather(
                *(self._run_with_semaphore(semaphore, node) for node in wave),
                return_exceptions=True,
            )

            for node, outcome in zip(wave, outcomes):
                result = self._capture(node, outcome)
                results[node.id] = result

                if result.succeeded:
                    graph = self.planner.update_task_status(graph, node.id, TaskStatus.COMPLETED)
                    continue

                graph = self.planner.update_task_status(graph, node.id, TaskStatus.FAILED)
                if self._stop_on_error:
                    logger.warning(f"{node.id} failed ({result.stopped_because.value}); stopping")
                    halted = True
                    continue
                if halted:
                    continue

                replanned = self.planner.replan(
                    graph,
                    node.id,
                    f"{result.stopped_because.value}: {result.output}",
                    requeue=True,
                )
                if replanned.graph is graph:
                    logger.warning(
                        f"Replan refused for {node.id}: {'; '.join(replanned.validation_errors)}"
                    )
                    halted = True
                    continue

                graph = replanned.graph
                replans += 1

        graph = self._block_pending(graph)
        return self._report(graph, results, replans)

    async def _run_with_semaphore(self, semaphore: asyncio.Semaphore, node: TaskNode) -> AgentLoopResult:
        async with semaphore:
            return await self._run_task(node)

    @staticmethod
    def _capture(node: TaskNode, outcome: Any) -> AgentLoopResult:
        if isinstance(outcome, AgentLoopResult):
            return outcome
        logger.error(f"Task runner raised for {node.id}: {outcome}")
        return AgentLoopResult(
            output=f"Error during execution: {outcome}",
            tool_executions=(),
            turns=0,
            total_work_units_consumed=0,
            confidence=0.0,
            stopped_because=StopReason.ERROR,
        )

    def _block_pending(self, graph: TaskGraph) -> TaskGraph:
        for node in list(graph.nodes):
            if node.status == TaskStatus.PENDING:
                graph = self.planner.update_task_status(graph, node.id, TaskStatus.BLOCKED)
        return graph

    @staticmethod
    def _report(graph: TaskGraph, results: Dict[str, AgentLoopResult], replans: int) -> GraphExecutionReport:
        report = GraphExecutionReport(graph=graph, results_by_task=results, replans=replans)
        for node in graph.nodes:
            if node.status == TaskStatus.COMPLETED:
                report.completed.append(node.id)
            elif node.status == TaskStatus.BLOCKED:
                report.blocked.append(node.id)
            elif node.status == TaskStatus.FAILED and SUPERSEDED_BY not in node.metadata:
                # a split node's parts carry its outcome
                report.failed.append(node.id)

        logger.info(
            f"Graph run finished: {len(report.completed)} completed, "
            f"{len(report.failed)} failed, {len(report.blocked)} blocked, {replans} replan(s)"
        )
        return report

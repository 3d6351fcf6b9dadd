"""
Graph Executor Unit Tests

Wave scheduling, replanning on failure and blocking of unreachable work.
"""

import asyncio

import pytest

from build_core.agentic import AgentLoopResult, StopReason
from build_core.config import PlannerConfig
from build_core.task_graph import GraphExecutor, TaskGraphPlanner, TaskStatus


def loop_result(reason: StopReason, output: str = "ok", confidence: float = 0.9) -> AgentLoopResult:
    return AgentLoopResult(
        output=output,
        tool_executions=(),
        turns=1,
        total_work_units_consumed=100,
        confidence=confidence,
        stopped_because=reason,
    )


@pytest.fixture
def planner() -> TaskGraphPlanner:
    return TaskGraphPlanner(PlannerConfig(max_replan_attempts=2))


class TestGraphExecutor:
    """GraphExecutor.execute"""

    @pytest.mark.asyncio
    async def test_runs_chain_in_dependency_order(self, planner):
        decomposition = planner.decompose("Create a settings page")
        order = []

        async def run_task(node):
            order.append(node.id)
            return loop_result(StopReason.CONFIDENCE)

        report = await GraphExecutor(planner, run_task).execute(decomposition)

        assert order == planner.get_execution_order(decomposition.graph)
        assert report.completed == decomposition.graph.node_ids
        assert report.failed == []
        assert report.blocked == []
        assert report.succeeded
        assert all(n.status == TaskStatus.COMPLETED for n in report.graph.nodes)

    @pytest.mark.asyncio
    async def test_done_counts_as_success(self, planner):
        decomposition = planner.decompose("Review the module")

        async def run_task(node):
            return loop_result(StopReason.DONE, confidence=0.4)

        report = await GraphExecutor(planner, run_task).execute(decomposition)
        assert report.succeeded

    @pytest.mark.asyncio
    async def test_failed_task_is_retried_after_replan(self, planner):
        decomposition = planner.decompose("Review the module")
        attempts = []

        async def run_task(node):
            attempts.append(node.id)
            if len(attempts) == 1:
                return loop_result(StopReason.MAX_TURNS, output="no answer", confidence=0.5)
            return loop_result(StopReason.CONFIDENCE)

        report = await GraphExecutor(planner, run_task).execute(decomposition)

        assert attempts == [decomposition.graph.node_ids[0]] * 2
        assert report.replans == 1
        assert report.succeeded

    @pytest.mark.asyncio
    async def test_timeout_failure_runs_split_parts(self, planner):
        decomposition = planner.decompose("Review the module")
        original = decomposition.graph.node_ids[0]
        ran = []

        async def run_task(node):
            ran.append(node.id)
            if node.id == original:
                return loop_result(StopReason.ERROR, output="Error during execution: request timed out")
            return loop_result(StopReason.CONFIDENCE)

        report = await GraphExecutor(planner, run_task).execute(decomposition)

        assert ran == [original, f"{original}-part1", f"{original}-part2"]
        assert report.completed == [f"{original}-part1", f"{original}-part2"]
        assert report.failed == []
        assert report.graph.get_node(original).status == TaskStatus.FAILED

    @pytest.mark.asyncio
    async def test_replan_limit_blocks_downstream(self, planner):
        decomposition = planner.decompose("Fix the login bug")

        async def run_task(node):
            return loop_result(StopReason.ERROR, output="Error during execution: bad input")

        report = await GraphExecutor(planner, run_task).execute(decomposition)

        assert report.replans == 2
        assert len(report.failed) == 1
        assert len(report.blocked) == 2
        assert set(report.failed + report.blocked) == set(decomposition.graph.node_ids)
        assert not report.succeeded

    @pytest.mark.asyncio
    async def test_stop_on_error_blocks_without_replanning(self, planner):
        decomposition = planner.decompose("Fix the login bug")

        async def run_task(node):
            return loop_result(StopReason.BUDGET)

        report = await GraphExecutor(planner, run_task, stop_on_error=True).execute(decomposition)

        assert report.replans == 0
        assert planner.replan_count == 0
        assert len(report.failed) == 1
        assert len(report.blocked) == 2

    @pytest.mark.asyncio
    async def test_runner_exception_becomes_error_result(self, planner):
        decomposition = planner.decompose("Review the module")
        task_id = decomposition.graph.node_ids[0]

        async def run_task(node):
            raise RuntimeError("worker crashed")

        report = await GraphExecutor(planner, run_task, stop_on_error=True).execute(decomposition)

        result = report.results_by_task[task_id]
        assert result.stopped_because == StopReason.ERROR
        assert "worker crashed" in result.output
        assert report.failed == [task_id]

    @pytest.mark.asyncio
    async def test_max_parallel_bounds_concurrency(self, planner):
        decomposition = planner.decompose("Hello")
        graph = decomposition.graph
        # three independent nodes
        for i in range(2):
            extra = planner._create_node(f"extra{i}", "SUN", 1, 100)
            graph.nodes.append(extra)

        running = 0
        peak = 0

        async def run_task(node):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return loop_result(StopReason.CONFIDENCE)

        report = await GraphExecutor(planner, run_task, max_parallel=2).execute(decomposition)

        assert len(report.completed) == 3
        assert peak == 2

"""
Task Graph Planner Unit Tests

Decomposition, scheduling queries, validation and replanning.
"""

import pytest

from build_core.config import PlannerConfig
from build_core.observability import ObservabilitySink
from build_core.task_graph import (
    DecompositionResult,
    EdgeKind,
    TaskEdge,
    TaskGraph,
    TaskGraphPlanner,
    TaskNode,
    TaskStatus,
    UserIntent,
)


def make_node(task_id: str, work: int = 100, priority: int = 1, agent: str = "MARS") -> TaskNode:
    return TaskNode(
        id=task_id,
        agent=agent,
        description=task_id,
        estimated_work_units=work,
        priority=priority,
    )


def chain(*ids: str):
    return [TaskEdge(a, b, EdgeKind.DEPENDS_ON) for a, b in zip(ids, ids[1:])]


@pytest.fixture
def planner() -> TaskGraphPlanner:
    return TaskGraphPlanner(PlannerConfig(max_tasks_per_graph=10, max_replan_attempts=3))


@pytest.fixture
def create_result(planner) -> DecompositionResult:
    return planner.decompose("Create a login page")


class TestDecompose:
    """decompose"""

    def test_create_intent_uses_four_step_template(self, create_result):
        """create -> spec, design, implement, test"""
        graph = create_result.graph
        assert [n.description for n in graph.nodes] == ["spec", "design", "implement", "test"]
        assert [n.agent for n in graph.nodes] == ["SUN", "VENUS", "MERCURY", "MARS"]
        assert create_result.architecture_validated is True
        assert create_result.validation_errors == []

    def test_edges_chain_nodes_by_priority(self, create_result):
        """Consecutive priorities are linked by depends-on edges"""
        graph = create_result.graph
        ids = graph.node_ids
        assert [(e.from_id, e.to_id) for e in graph.edges] == list(zip(ids, ids[1:]))
        assert all(e.kind == EdgeKind.DEPENDS_ON for e in graph.edges)

    def test_dependencies_mirror_incoming_edges(self, create_result):
        """node.dependencies matches incoming edges"""
        graph = create_result.graph
        for node in graph.nodes:
            assert node.dependencies == [e.from_id for e in graph.incoming(node.id)]

    def test_total_work_and_critical_path(self, create_result):
        """Total work sums estimates; the whole chain is critical"""
        graph = create_result.graph
        assert graph.estimated_total_work == 1000 + 800 + 2000 + 1000
        assert graph.critical_path == graph.node_ids

    def test_node_ids_are_unique_and_prefixed(self, create_result):
        """Ids look like task-<description>-<hex>"""
        ids = create_result.graph.node_ids
        assert len(set(ids)) == len(ids)
        assert ids[0].startswith("task-spec-")

    def test_fix_and_review_templates(self, planner):
        """fix has three steps, review has one"""
        fix = planner.decompose("Fix the broken login bug").graph
        assert [n.description for n in fix.nodes] == ["analyze", "fix", "test"]

        review = planner.decompose("Please review the auth module").graph
        assert [n.agent for n in review.nodes] == ["SATURN"]
        assert review.critical_path == [review.nodes[0].id]

    def test_modify_reuses_create_template(self, planner):
        """modify decomposes like create"""
        graph = planner.decompose("Refactor the payment service").graph
        assert [n.description for n in graph.nodes] == ["spec", "design", "implement", "test"]

    def test_generic_intent_uses_context_agent(self, planner):
        """Unclassified intents become one task for the first context agent"""
        result = planner.decompose("Hello there", {"agents": ["JUPITER", "IO"]})
        assert len(result.graph.nodes) == 1
        assert result.graph.nodes[0].agent == "JUPITER"
        assert result.graph.nodes[0].estimated_work_units == 1500

    def test_generic_intent_defaults_to_sun(self, planner):
        result = planner.decompose(UserIntent(raw="Hello", parsed_type="other"))
        assert result.graph.nodes[0].agent == "SUN"

    def test_graph_over_ceiling_is_rejected(self):
        """Too many nodes -> empty graph plus an error"""
        small = TaskGraphPlanner(PlannerConfig(max_tasks_per_graph=2))
        result = small.decompose("Create a dashboard")
        assert result.graph.nodes == []
        assert result.architecture_validated is False
        assert "exceeding the limit of 2" in result.validation_errors[0]

    def test_decompose_emits_spans(self):
        events = []
        planner = TaskGraphPlanner(sink=ObservabilitySink(events.append))
        planner.decompose("Create an API")
        assert [e.name for e in events] == ["planner.decompose", "planner.decompose"]


class TestIntentClassification:
    """UserIntent.from_text"""

    @pytest.mark.parametrize("text,expected", [
        ("Fix the crash", "fix"),
        ("There is an error in checkout", "fix"),
        ("Audit the permissions", "review"),
        ("Update the README", "modify"),
        ("Build a CLI", "create"),
        ("What time is it", "other"),
    ])
    def test_keywords(self, text, expected):
        assert UserIntent.from_text(text).parsed_type == expected

    def test_fix_wins_over_create(self):
        """Earlier keyword groups take precedence"""
        assert UserIntent.from_text("Add a fix for the login bug").parsed_type == "fix"


class TestCycles:
    """detect_circular_dependencies / validate"""

    def test_decomposed_graph_is_acyclic(self, planner, create_result):
        assert planner.detect_circular_dependencies(create_result.graph) == []

    def test_forced_cycle_is_reported_once(self, planner):
        """A -> B -> C -> A yields exactly one cycle over {A, B, C}"""
        graph = TaskGraph(
            nodes=[make_node("A"), make_node("B"), make_node("C")],
            edges=chain("A", "B", "C", "A"),
        )
        cycles = planner.detect_circular_dependencies(graph)
        assert len(cycles) == 1
        assert set(cycles[0]) == {"A", "B", "C"}
        assert cycles[0][0] == cycles[0][-1]

    def test_validate_reports_cycle_and_unassigned(self, planner):
        graph = TaskGraph(
            nodes=[make_node("A"), make_node("B", agent="")],
            edges=chain("A", "B", "A"),
        )
        errors = planner.validate(graph)
        assert any("Circular dependency" in e for e in errors)
        assert any("B" in e and "agent" in e.lower() for e in errors)

    def test_validate_reports_structural_problems(self, planner):
        graph = TaskGraph(
            nodes=[make_node("A"), make_node("A")],
            edges=[TaskEdge("A", "ghost")],
        )
        errors = planner.validate(graph)
        assert "Duplicate task id: A" in errors
        assert any("ghost" in e for e in errors)


class TestScheduling:
    """get_execution_order / get_ready_tasks / critical path"""

    def test_execution_order_respects_every_edge(self, planner):
        nodes = [make_node(x) for x in "ABCDE"]
        edges = [TaskEdge("D", "B"), TaskEdge("A", "B"), TaskEdge("B", "C"), TaskEdge("E", "C")]
        graph = TaskGraph(nodes=nodes, edges=edges)

        order = planner.get_execution_order(graph)

        assert sorted(order) == list("ABCDE")
        for edge in edges:
            assert order.index(edge.from_id) < order.index(edge.to_id)

    def test_execution_order_ties_follow_insertion(self, planner):
        graph = TaskGraph(nodes=[make_node("X"), make_node("Y"), make_node("Z")])
        assert planner.get_execution_order(graph) == ["X", "Y", "Z"]

    def test_execution_order_drops_cycle_members(self, planner):
        graph = TaskGraph(
            nodes=[make_node("A"), make_node("B"), make_node("C")],
            edges=chain("A", "B", "A"),
        )
        assert planner.get_execution_order(graph) == ["C"]

    def test_ready_tasks_wait_for_completed_dependencies(self, planner, create_result):
        """A node is never ready before every dependency completes"""
        graph = create_result.graph
        ids = graph.node_ids

        assert [n.id for n in planner.get_ready_tasks(graph)] == [ids[0]]

        graph = planner.update_task_status(graph, ids[0], TaskStatus.RUNNING)
        assert planner.get_ready_tasks(graph) == []

        for i, task_id in enumerate(ids):
            graph = planner.update_task_status(graph, task_id, TaskStatus.COMPLETED)
            ready = planner.get_ready_tasks(graph)
            for node in ready:
                deps = [e.from_id for e in graph.incoming(node.id)]
                assert all(graph.get_node(d).status == TaskStatus.COMPLETED for d in deps)
            if i + 1 < len(ids):
                assert [n.id for n in ready] == [ids[i + 1]]

    def test_missing_dependency_is_not_ready(self, planner):
        graph = TaskGraph(nodes=[make_node("B")], edges=[TaskEdge("A", "B")])
        assert planner.get_ready_tasks(graph) == []

    def test_critical_path_picks_heaviest_branch(self):
        nodes = [make_node("A", 1), make_node("B", 10), make_node("C", 2), make_node("D", 1)]
        edges = [TaskEdge("A", "B"), TaskEdge("A", "C"), TaskEdge("B", "D"), TaskEdge("C", "D")]
        assert TaskGraphPlanner.compute_critical_path(nodes, edges) == ["A", "B", "D"]

    def test_critical_path_of_empty_graph(self):
        assert TaskGraphPlanner.compute_critical_path([], []) == []

    def test_parallel_groups_hold_isolated_nodes(self, planner):
        nodes = [make_node("A"), make_node("B"), make_node("C")]
        groups = planner._detect_parallel_groups(nodes, [TaskEdge("A", "B")])
        assert groups == []

        groups = planner._detect_parallel_groups(nodes + [make_node("D")], [TaskEdge("A", "B")])
        assert groups == [["C", "D"]]


class TestUpdateTaskStatus:
    """update_task_status"""

    def test_is_idempotent(self, planner, create_result):
        graph = create_result.graph
        task_id = graph.node_ids[0]

        once = planner.update_task_status(graph, task_id, "completed")
        twice = planner.update_task_status(once, task_id, "completed")

        assert once == twice
        assert once.get_node(task_id).status == TaskStatus.COMPLETED

    def test_does_not_modify_input(self, planner, create_result):
        graph = create_result.graph
        planner.update_task_status(graph, graph.node_ids[0], TaskStatus.FAILED)
        assert graph.nodes[0].status == TaskStatus.PENDING

    def test_unknown_id_leaves_graph_unchanged(self, planner, create_result):
        graph = create_result.graph
        assert planner.update_task_status(graph, "nope", TaskStatus.FAILED) == graph

    def test_rejects_unknown_status(self, planner, create_result):
        with pytest.raises(ValueError):
            planner.update_task_status(create_result.graph, create_result.graph.node_ids[0], "exploded")


class TestReplan:
    """replan"""

    def test_marks_failed_and_bumps_priority(self, planner, create_result):
        graph = create_result.graph
        target = graph.nodes[1]

        result = planner.replan(graph, target.id, "assertion failed")
        node = result.graph.get_node(target.id)

        assert node.status == TaskStatus.FAILED
        assert node.priority == target.priority + 1
        assert node.metadata["last_error"] == "assertion failed"
        assert result.replan_count == 1
        assert graph.get_node(target.id).status == TaskStatus.PENDING

    def test_requeue_returns_node_to_pending(self, planner, create_result):
        graph = create_result.graph
        result = planner.replan(graph, graph.node_ids[0], "bad output", requeue=True)
        assert result.graph.get_node(graph.node_ids[0]).status == TaskStatus.PENDING

    def test_timeout_splits_node(self, planner, create_result):
        graph = create_result.graph
        target = graph.nodes[2]

        result = planner.replan(graph, target.id, "Request timed out after 60s")
        new_graph = result.graph

        part_ids = [f"{target.id}-part1", f"{target.id}-part2"]
        parts = [new_graph.get_node(p) for p in part_ids]
        assert all(p is not None for p in parts)
        assert all(p.status == TaskStatus.PENDING for p in parts)
        assert all(p.estimated_work_units == target.estimated_work_units // 2 for p in parts)
        assert new_graph.get_node(target.id).metadata["superseded_by"] == part_ids

        # the superseded node leaves the chain
        assert target.id not in new_graph.critical_path
        assert all(target.id not in (e.from_id, e.to_id) for e in new_graph.edges)
        assert new_graph.estimated_total_work == graph.estimated_total_work
        assert planner.detect_circular_dependencies(new_graph) == []
        order = planner.get_execution_order(new_graph)
        assert order.index(part_ids[0]) < order.index(part_ids[1])

    def test_replan_bound(self, planner, create_result):
        """The call after max_replan_attempts returns the graph unchanged with an error"""
        graph = create_result.graph
        failing = graph.node_ids[0]

        for _ in range(planner.config.max_replan_attempts):
            result = planner.replan(graph, failing, "wrong answer")
            assert result.validation_errors == []
            graph = result.graph

        final = planner.replan(graph, failing, "wrong answer")
        assert final.graph is graph
        assert final.validation_errors
        assert final.replan_count == planner.config.max_replan_attempts

    def test_unknown_task_does_not_consume_attempt(self, planner, create_result):
        result = planner.replan(create_result.graph, "missing", "boom")
        assert result.validation_errors
        assert planner.replan_count == 0

    def test_decompose_resets_counter(self, planner, create_result):
        planner.replan(create_result.graph, create_result.graph.node_ids[0], "boom")
        assert planner.replan_count == 1
        planner.decompose("Create a thing")
        assert planner.replan_count == 0

    def test_split_over_ceiling_is_rejected(self):
        planner = TaskGraphPlanner(PlannerConfig(max_tasks_per_graph=4))
        graph = planner.decompose("Create a page").graph

        result = planner.replan(graph, graph.node_ids[0], "out of memory")

        assert result.graph is graph
        assert result.validation_errors

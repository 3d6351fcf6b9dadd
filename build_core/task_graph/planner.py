"""
Task graph planner.

Decomposes an intent into a dependency graph of agent tasks, derives the
scheduling data (edges, parallel groups, critical path) and replans when a
task fails. All operations are synchronous and return new graphs; the
caller's graph is never modified.
"""

import logging
import re
import uuid
from collections import deque
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..config import PlannerConfig
from ..errors import (
    CircularDependencyError,
    GraphTooLargeError,
    ReplanLimitExceededError,
    UnassignedTaskError,
)
from ..observability import ObservabilitySink
from .models import (
    DecompositionResult,
    EdgeKind,
    TaskEdge,
    TaskGraph,
    TaskNode,
    TaskStatus,
    UserIntent,
)

logger = logging.getLogger(__name__)

DEFAULT_AGENTS = ["SUN", "MERCURY", "VENUS", "MARS", "SATURN"]

# (description, agent, priority, estimated work units)
NODE_TEMPLATES: Dict[str, List[Tuple[str, str, int, int]]] = {
    "create": [
        ("spec", "SUN", 1, 1000),
        ("design", "VENUS", 2, 800),
        ("implement", "MERCURY", 3, 2000),
        ("test", "MARS", 4, 1000),
    ],
    "fix": [
        ("analyze", "MERCURY", 1, 500),
        ("fix", "MERCURY", 2, 800),
        ("test", "MARS", 3, 600),
    ],
    "review": [
        ("review", "SATURN", 1, 1000),
    ],
}
NODE_TEMPLATES["modify"] = NODE_TEMPLATES["create"]

GENERIC_TASK = ("execute", 1, 1500)

SPLIT_PARTS = 2
SPLITTABLE_ERROR = re.compile(
    r"timeout|timed out|token limit|resource limit|out of memory",
    re.IGNORECASE,
)

SUPERSEDED_BY = "superseded_by"


class TaskGraphPlanner:
    """
    Builds and maintains task graphs.

    Example:
        planner = TaskGraphPlanner()
        result = planner.decompose("Create a login page")

        graph = result.graph
        for node in planner.get_ready_tasks(graph):
            graph = planner.update_task_status(graph, node.id, TaskStatus.RUNNING)
            ...
    """

    def __init__(
        self,
        config: Optional[PlannerConfig] = None,
        sink: Optional[ObservabilitySink] = None,
    ):
        """
        Args:
            config: Planner settings
            sink: Optional observability sink
        """
        self.config = config or PlannerConfig()
        self._sink = sink
        self._replan_count = 0

    @property
    def replan_count(self) -> int:
        return self._replan_count

    # =========================================================================
    # Decomposition
    # =========================================================================

    def decompose(
        self,
        intent: Union[UserIntent, str],
        context: Optional[Dict[str, Any]] = None,
    ) -> DecompositionResult:
        """
        Turn an intent into a validated task graph.

        A graph over ``max_tasks_per_graph`` nodes is not built: the result
        carries an empty graph and the error. Validation failures are
        reported in ``validation_errors``; they are never raised.

        Args:
            intent: A UserIntent or raw request text
            context: Optional dict; ``agents`` overrides the agent pool used
                for generic tasks

        Returns:
            DecompositionResult
        """
        if isinstance(intent, str):
            intent = UserIntent.from_text(intent)

        self._replan_count = 0
        span_id = self._start_span("planner.decompose", {"intent_type": intent.parsed_type})

        nodes = self._create_nodes(intent, context or {})

        if len(nodes) > self.config.max_tasks_per_graph:
            error = GraphTooLargeError(len(nodes), self.config.max_tasks_per_graph)
            logger.warning(error.message)
            self._end_span(span_id, "error", {"error": error.code})
            return DecompositionResult(
                graph=TaskGraph(),
                architecture_validated=False,
                validation_errors=[error.message],
                replan_count=self._replan_count,
            )

        graph = self._rebuild(nodes)
        errors = self.validate(graph) if self.config.validate_architecture else []

        logger.info(
            f"Decomposed '{intent.parsed_type}' intent into {len(graph.nodes)} tasks "
            f"(critical path: {' -> '.join(graph.critical_path)})"
        )
        self._end_span(span_id, "ok" if not errors else "invalid", {"nodes": len(graph.nodes)})

        return DecompositionResult(
            graph=graph,
            architecture_validated=not errors,
            validation_errors=errors,
            replan_count=self._replan_count,
        )

    def _create_nodes(self, intent: UserIntent, context: Dict[str, Any]) -> List[TaskNode]:
        template = NODE_TEMPLATES.get(intent.parsed_type)
        if template is not None:
            return [
                self._create_node(description, agent, priority, work)
                for description, agent, priority, work in template
            ]

        agents = context.get("agents") or DEFAULT_AGENTS
        description, priority, work = GENERIC_TASK
        return [self._create_node(description, agents[0], priority, work)]

    @staticmethod
    def _create_node(description: str, agent: str, priority: int, work: int) -> TaskNode:
        return TaskNode(
            id=f"task-{description}-{uuid.uuid4().hex[:8]}",
            agent=agent,
            description=description,
            estimated_work_units=work,
            priority=priority,
        )

    # =========================================================================
    # Replanning
    # =========================================================================

    def replan(
        self,
        failed_graph: TaskGraph,
        failed_task_id: str,
        error: str,
        requeue: bool = False,
    ) -> DecompositionResult:
        """
        Adjust a graph after a task failure.

        The failed node is marked failed and its priority raised. If the
        error looks like a timeout or resource limit it is split into two
        half-weight parts that take its place in the chain. Edges and all
        derived fields are then recomputed.

        Args:
            failed_graph: Graph in which the task failed
            failed_task_id: Id of the failed task
            error: Failure reason text
            requeue: Return an unsplit failed node to pending for a retry

        Returns:
            DecompositionResult; once ``max_replan_attempts`` is used up the
            input graph is returned unchanged with an error
        """
        if self._replan_count >= self.config.max_replan_attempts:
            limit_error = ReplanLimitExceededError(
                self._replan_count, self.config.max_replan_attempts, failed_task_id
            )
            logger.warning(limit_error.message)
            return DecompositionResult(
                graph=failed_graph,
                architecture_validated=False,
                validation_errors=[limit_error.message],
                replan_count=self._replan_count,
            )

        if failed_graph.get_node(failed_task_id) is None:
            return DecompositionResult(
                graph=failed_graph,
                architecture_validated=False,
                validation_errors=[f"Task '{failed_task_id}' not found in graph"],
                replan_count=self._replan_count,
            )

        self._replan_count += 1
        span_id = self._start_span("planner.replan", {
            "task_id": failed_task_id,
            "attempt": self._replan_count,
        })

        nodes = [n for n in failed_graph.copy().nodes]
        failed = next(n for n in nodes if n.id == failed_task_id)
        original_priority = failed.priority

        failed.status = TaskStatus.FAILED
        failed.priority += 1
        failed.metadata["last_error"] = error
        failed.metadata["replan_attempts"] = failed.metadata.get("replan_attempts", 0) + 1

        split = bool(SPLITTABLE_ERROR.search(error)) and SUPERSEDED_BY not in failed.metadata
        if split:
            parts = self._split_task(failed, original_priority)
            failed.metadata[SUPERSEDED_BY] = [p.id for p in parts]
            nodes.extend(parts)
            logger.info(f"Split {failed.id} into {len(parts)} parts after: {error}")
        elif requeue:
            failed.status = TaskStatus.PENDING

        if len(nodes) > self.config.max_tasks_per_graph:
            too_large = GraphTooLargeError(len(nodes), self.config.max_tasks_per_graph)
            self._end_span(span_id, "error", {"error": too_large.code})
            return DecompositionResult(
                graph=failed_graph,
                architecture_validated=False,
                validation_errors=[too_large.message],
                replan_count=self._replan_count,
            )

        graph = self._rebuild(nodes)
        errors = self.validate(graph) if self.config.validate_architecture else []

        logger.info(
            f"Replanned after {failed_task_id} failed "
            f"(attempt {self._replan_count}/{self.config.max_replan_attempts}, split={split})"
        )
        self._end_span(span_id, "ok", {"split": split, "nodes": len(graph.nodes)})

        return DecompositionResult(
            graph=graph,
            architecture_validated=not errors,
            validation_errors=errors,
            replan_count=self._replan_count,
        )

    @staticmethod
    def _split_task(node: TaskNode, priority: int) -> List[TaskNode]:
        parts = []
        for i in range(SPLIT_PARTS):
            parts.append(TaskNode(
                id=f"{node.id}-part{i + 1}",
                agent=node.agent,
                description=f"{node.description} (part {i + 1}/{SPLIT_PARTS})",
                estimated_work_units=node.estimated_work_units // SPLIT_PARTS,
                status=TaskStatus.PENDING,
                priority=priority,
                metadata={"split_from": node.id, "part": i + 1},
            ))
        return parts

    # =========================================================================
    # Derived data
    # =========================================================================

    def _rebuild(self, nodes: List[TaskNode]) -> TaskGraph:
        """Recompute edges, dependencies, parallel groups, total work and critical path."""
        active = [n for n in nodes if SUPERSEDED_BY not in n.metadata]

        edges = self._create_dependency_edges(active)
        incoming: Dict[str, List[str]] = {n.id: [] for n in nodes}
        for edge in edges:
            incoming[edge.to_id].append(edge.from_id)
        for node in nodes:
            node.dependencies = incoming[node.id]

        parallel_groups = (
            self._detect_parallel_groups(active, edges)
            if self.config.enable_parallel_detection else []
        )

        return TaskGraph(
            nodes=nodes,
            edges=edges,
            parallel_groups=parallel_groups,
            estimated_total_work=sum(n.estimated_work_units for n in active),
            critical_path=self.compute_critical_path(active, edges),
        )

    @staticmethod
    def _create_dependency_edges(nodes: Sequence[TaskNode]) -> List[TaskEdge]:
        # sorted() is stable: equal priorities keep insertion order
        ordered = sorted(nodes, key=lambda n: n.priority)
        return [
            TaskEdge(ordered[i].id, ordered[i + 1].id, EdgeKind.DEPENDS_ON)
            for i in range(len(ordered) - 1)
        ]

    @staticmethod
    def _detect_parallel_groups(nodes: Sequence[TaskNode], edges: Sequence[TaskEdge]) -> List[List[str]]:
        connected = set()
        for edge in edges:
            connected.add(edge.from_id)
            connected.add(edge.to_id)

        independent = [n.id for n in nodes if n.id not in connected]
        return [independent] if len(independent) > 1 else []

    @classmethod
    def compute_critical_path(cls, nodes: Sequence[TaskNode], edges: Sequence[TaskEdge]) -> List[str]:
        """
        Longest weighted path over the topological order.

        The end node is the earliest node in topological order holding the
        maximum distance; backtracking follows the incoming edge whose source
        has the largest distance, earliest edge first on ties.
        """
        if not nodes:
            return []

        weights = {n.id: n.estimated_work_units for n in nodes}
        order = cls._topological_order(list(weights), edges)
        if not order:
            return []

        distances: Dict[str, int] = {}
        for node_id in order:
            best = 0
            for edge in edges:
                if edge.to_id == node_id and edge.from_id in distances:
                    best = max(best, distances[edge.from_id])
            distances[node_id] = best + weights[node_id]

        end = order[0]
        for node_id in order:
            if distances[node_id] > distances[end]:
                end = node_id

        path = [end]
        seen = {end}
        current = end
        while True:
            candidates = [e.from_id for e in edges if e.to_id == current and e.from_id in distances]
            if not candidates:
                break
            prev = candidates[0]
            for candidate in candidates[1:]:
                if distances[candidate] > distances[prev]:
                    prev = candidate
            if prev in seen:
                break
            path.insert(0, prev)
            seen.add(prev)
            current = prev

        return path

    # =========================================================================
    # Queries
    # =========================================================================

    def detect_circular_dependencies(self, graph: TaskGraph) -> List[List[str]]:
        """
        Find dependency cycles by depth-first search.

        Each back-edge into a node on the current recursion stack yields one
        cycle: the path from that node onward, closed by the node itself.
        """
        cycles: List[List[str]] = []
        visited = set()
        on_stack = set()

        outgoing: Dict[str, List[str]] = {}
        for edge in graph.edges:
            outgoing.setdefault(edge.from_id, []).append(edge.to_id)

        def dfs(node_id: str, path: List[str]) -> None:
            if node_id in on_stack:
                start = path.index(node_id)
                cycles.append(path[start:] + [node_id])
                return
            if node_id in visited:
                return

            visited.add(node_id)
            on_stack.add(node_id)
            path = path + [node_id]

            for next_id in outgoing.get(node_id, []):
                dfs(next_id, path)

            on_stack.discard(node_id)

        for node in graph.nodes:
            if node.id not in visited:
                dfs(node.id, [])

        return cycles

    def get_ready_tasks(self, graph: TaskGraph) -> List[TaskNode]:
        """Pending nodes whose every incoming dependency is completed."""
        status = {n.id: n.status for n in graph.nodes}
        ready = []
        for node in graph.nodes:
            if node.status != TaskStatus.PENDING:
                continue
            deps = [e.from_id for e in graph.edges if e.to_id == node.id]
            if all(status.get(dep) == TaskStatus.COMPLETED for dep in deps):
                ready.append(node)
        return ready

    def get_execution_order(self, graph: TaskGraph) -> List[str]:
        """
        Topological order by Kahn's algorithm.

        Ties resolve by node insertion order, then edge order. If the graph
        has a cycle the nodes on it are left out and a warning is logged.
        """
        order = self._topological_order(graph.node_ids, graph.edges)
        if len(order) != len(graph.nodes):
            logger.warning(
                f"Execution order is partial: {len(graph.nodes) - len(order)} task(s) sit on a cycle"
            )
        return order

    @staticmethod
    def _topological_order(node_ids: Sequence[str], edges: Sequence[TaskEdge]) -> List[str]:
        known = set(node_ids)
        in_degree = {node_id: 0 for node_id in node_ids}
        outgoing: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}

        for edge in edges:
            if edge.from_id in known and edge.to_id in known:
                in_degree[edge.to_id] += 1
                outgoing[edge.from_id].append(edge.to_id)

        queue = deque(node_id for node_id in node_ids if in_degree[node_id] == 0)
        result = []

        while queue:
            current = queue.popleft()
            result.append(current)
            for next_id in outgoing[current]:
                in_degree[next_id] -= 1
                if in_degree[next_id] == 0:
                    queue.append(next_id)

        return result

    def update_task_status(
        self,
        graph: TaskGraph,
        task_id: str,
        status: Union[TaskStatus, str],
    ) -> TaskGraph:
        """
        Return a copy of the graph with one node's status set.

        Setting the same status twice yields equal graphs. An unknown id
        leaves the graph unchanged.
        """
        status = TaskStatus(status)
        updated = graph.copy()
        node = updated.get_node(task_id)
        if node is None:
            logger.warning(f"update_task_status: task '{task_id}' not in graph")
            return updated

        if node.status != status:
            logger.debug(f"{task_id}: {node.status.value} -> {status.value}")
        node.status = status
        return updated

    def validate(self, graph: TaskGraph) -> List[str]:
        """
        Check a graph and return error messages; empty means valid.

        Order: cycles, unassigned agents, then structural checks
        (duplicate ids, dangling edges).
        """
        errors: List[str] = []

        for cycle in self.detect_circular_dependencies(graph):
            errors.append(CircularDependencyError(cycle).message)

        for node in graph.nodes:
            if not node.agent:
                errors.append(UnassignedTaskError(node.id).message)

        seen = set()
        for node in graph.nodes:
            if node.id in seen:
                errors.append(f"Duplicate task id: {node.id}")
            seen.add(node.id)

        for edge in graph.edges:
            for endpoint in (edge.from_id, edge.to_id):
                if endpoint not in seen:
                    errors.append(f"Edge {edge.from_id} -> {edge.to_id} references unknown task {endpoint}")

        return errors

    # =========================================================================
    # Observability
    # =========================================================================

    def _start_span(self, name: str, attributes: Dict[str, Any]) -> Optional[str]:
        return self._sink.start_span(name, attributes) if self._sink else None

    def _end_span(self, span_id: Optional[str], status: str, attributes: Dict[str, Any]) -> None:
        if self._sink and span_id:
            self._sink.end_span(span_id, status, attributes)

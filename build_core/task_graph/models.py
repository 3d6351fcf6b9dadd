"""
Task graph data model.
Nodes, edges, the graph itself, decomposition results and parsed intents.
"""

import copy
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TaskStatus(str, Enum):
    """Status of a task node."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"


class EdgeKind(str, Enum):
    """Relationship carried by an edge. Every kind orders ``from`` before ``to``."""
    DEPENDS_ON = "depends-on"
    FEEDS_INTO = "feeds-into"
    PARALLEL_WITH = "parallel-with"


@dataclass
class TaskNode:
    """
    A node in the task graph.

    ``dependencies`` mirrors the incoming edges; the planner recomputes it
    whenever edges change.
    """
    id: str
    agent: str
    description: str
    dependencies: List[str] = field(default_factory=list)
    estimated_work_units: int = 0
    status: TaskStatus = TaskStatus.PENDING
    priority: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent": self.agent,
            "description": self.description,
            "dependencies": list(self.dependencies),
            "estimated_work_units": self.estimated_work_units,
            "status": self.status.value,
            "priority": self.priority,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class TaskEdge:
    """``from_id`` must complete before ``to_id`` starts."""
    from_id: str
    to_id: str
    kind: EdgeKind = EdgeKind.DEPENDS_ON

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.from_id, "to": self.to_id, "kind": self.kind.value}


@dataclass
class TaskGraph:
    """A set of task nodes with dependency edges and derived scheduling data."""
    nodes: List[TaskNode] = field(default_factory=list)
    edges: List[TaskEdge] = field(default_factory=list)
    parallel_groups: List[List[str]] = field(default_factory=list)
    estimated_total_work: int = 0
    critical_path: List[str] = field(default_factory=list)

    def get_node(self, task_id: str) -> Optional[TaskNode]:
        for node in self.nodes:
            if node.id == task_id:
                return node
        return None

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def incoming(self, task_id: str) -> List[TaskEdge]:
        return [e for e in self.edges if e.to_id == task_id]

    def outgoing(self, task_id: str) -> List[TaskEdge]:
        return [e for e in self.edges if e.from_id == task_id]

    def copy(self) -> "TaskGraph":
        return copy.deepcopy(self)

    def get_stats(self) -> Dict[str, Any]:
        status_counts = {
            status.value: sum(1 for n in self.nodes if n.status == status)
            for status in TaskStatus
        }
        return {
            "total_tasks": len(self.nodes),
            "total_edges": len(self.edges),
            "status_counts": status_counts,
            "estimated_total_work": self.estimated_total_work,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "parallel_groups": [list(g) for g in self.parallel_groups],
            "estimated_total_work": self.estimated_total_work,
            "critical_path": list(self.critical_path),
            "stats": self.get_stats(),
        }


@dataclass
class DecompositionResult:
    """Outcome of decompose or replan."""
    graph: TaskGraph
    architecture_validated: bool
    validation_errors: List[str] = field(default_factory=list)
    replan_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "graph": self.graph.to_dict(),
            "architecture_validated": self.architecture_validated,
            "validation_errors": list(self.validation_errors),
            "replan_count": self.replan_count,
        }


_INTENT_KEYWORDS = [
    ("fix", re.compile(r"\b(fix|bug|error|broken)\b", re.IGNORECASE)),
    ("review", re.compile(r"\b(review|audit|inspect)\b", re.IGNORECASE)),
    ("modify", re.compile(r"\b(modify|update|change|refactor)\b", re.IGNORECASE)),
    ("create", re.compile(r"\b(create|build|add|implement|make)\b", re.IGNORECASE)),
]


@dataclass
class UserIntent:
    """A request to decompose, with its classified type."""
    raw: str
    parsed_type: str = "other"
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(cls, text: str, **metadata) -> "UserIntent":
        """Classify by the first matching keyword group."""
        for intent_type, pattern in _INTENT_KEYWORDS:
            if pattern.search(text):
                return cls(raw=text, parsed_type=intent_type, metadata=metadata)
        return cls(raw=text, parsed_type="other", metadata=metadata)

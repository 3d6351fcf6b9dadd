"""
Task graph: data model, planner and the wave-based graph executor.
"""

from .models import (
    TaskStatus,
    EdgeKind,
    TaskNode,
    TaskEdge,
    TaskGraph,
    DecompositionResult,
    UserIntent,
)
from .planner import TaskGraphPlanner, NODE_TEMPLATES, DEFAULT_AGENTS
from .executor import GraphExecutor, GraphExecutionReport

__all__ = [
    "TaskStatus",
    "EdgeKind",
    "TaskNode",
    "TaskEdge",
    "TaskGraph",
    "DecompositionResult",
    "UserIntent",
    "TaskGraphPlanner",
    "NODE_TEMPLATES",
    "DEFAULT_AGENTS",
    "GraphExecutor",
    "GraphExecutionReport",
]

"""
build_core - task-graph planning, the agent execution loop and multi-model
swarm dispatch.
"""

__version__ = "0.1.0"

from .config import Settings, configure_logging
from .task_graph import TaskGraphPlanner, GraphExecutor
from .agentic import AgentExecutionLoop, AgentLoopResult, StopReason
from .swarm import SwarmExecutor, CircuitBreaker
from .tools import ToolRegistry, ToolExecutor
from .llm import LLMClient, ModelRouter, CostOptimizer, AgentProfileManager
from .observability import ObservabilitySink

__all__ = [
    "__version__",
    "Settings",
    "configure_logging",
    "TaskGraphPlanner",
    "GraphExecutor",
    "AgentExecutionLoop",
    "AgentLoopResult",
    "StopReason",
    "SwarmExecutor",
    "CircuitBreaker",
    "ToolRegistry",
    "ToolExecutor",
    "LLMClient",
    "ModelRouter",
    "CostOptimizer",
    "AgentProfileManager",
    "ObservabilitySink",
]

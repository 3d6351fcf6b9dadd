"""
Exceptions - error taxonomy for the build core.

Planner errors are rendered into validation messages, tool errors into
failed ToolResults, swarm errors into failed SwarmTaskResults. Only the
LLM client raises them to its caller.
"""

from typing import Any, Dict, List, Optional


class BuildCoreError(Exception):
    """Base error for the build core."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            message: Human readable message
            code: Stable error code
            details: Extra structured context
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert the error to a dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# =============================================================================
# Planning
# =============================================================================

class GraphTooLargeError(BuildCoreError):
    """Raised when decomposition would exceed the node ceiling."""

    def __init__(self, node_count: int, limit: int):
        super().__init__(
            message=f"Task graph has {node_count} nodes, exceeding the limit of {limit}",
            code="GRAPH_TOO_LARGE",
            details={"node_count": node_count, "limit": limit}
        )


class CircularDependencyError(BuildCoreError):
    """A dependency cycle was found in the graph."""

    def __init__(self, cycle: List[str]):
        super().__init__(
            message=f"Circular dependency detected: {' -> '.join(cycle)}",
            code="CIRCULAR_DEPENDENCY",
            details={"cycle": list(cycle)}
        )


class UnassignedTaskError(BuildCoreError):
    """A task has no agent assigned."""

    def __init__(self, task_id: str):
        super().__init__(
            message=f"Task '{task_id}' has no assigned agent",
            code="UNASSIGNED_TASK",
            details={"task_id": task_id}
        )


class ReplanLimitExceededError(BuildCoreError):
    """Replanning was attempted more times than allowed."""

    def __init__(self, attempts: int, limit: int, task_id: Optional[str] = None):
        super().__init__(
            message=f"Replan limit exceeded ({attempts}/{limit}); graph left unchanged",
            code="REPLAN_LIMIT_EXCEEDED",
            details={"attempts": attempts, "limit": limit, "task_id": task_id}
        )


# =============================================================================
# Tools
# =============================================================================

class ToolPermissionDeniedError(BuildCoreError):
    """The agent is not allowed to call the tool."""

    def __init__(self, agent: str, tool_name: str, reason: str):
        super().__init__(
            message=f"Permission denied: {reason}",
            code="TOOL_PERMISSION_DENIED",
            details={"agent": agent, "tool": tool_name, "reason": reason}
        )


class ToolNotFoundError(BuildCoreError):
    """No tool is registered under the requested name."""

    def __init__(self, tool_name: str):
        super().__init__(
            message=f"Tool '{tool_name}' not found",
            code="TOOL_NOT_FOUND",
            details={"tool": tool_name}
        )


class ToolTimeoutError(BuildCoreError):
    """A tool call did not finish within its declared timeout."""

    def __init__(self, tool_name: str, timeout_seconds: float):
        super().__init__(
            message=f"Tool '{tool_name}' timed out after {timeout_seconds}s",
            code="TOOL_TIMEOUT",
            details={"tool": tool_name, "timeout_seconds": timeout_seconds}
        )


class ToolExecutionFailure(BuildCoreError):
    """A tool raised while executing."""

    def __init__(self, tool_name: str, reason: str):
        super().__init__(
            message=f"Tool '{tool_name}' failed: {reason}",
            code="TOOL_EXECUTION_FAILED",
            details={"tool": tool_name, "reason": reason}
        )


# =============================================================================
# Models
# =============================================================================

class ModelTimeoutError(BuildCoreError):
    """A model call did not finish in time."""

    def __init__(self, model: str, timeout_seconds: float):
        super().__init__(
            message=f"Model '{model}' timed out after {timeout_seconds}s",
            code="MODEL_TIMEOUT",
            details={"model": model, "timeout_seconds": timeout_seconds}
        )


class ModelCallError(BuildCoreError):
    """A model call failed."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(
            message=message,
            code="MODEL_CALL_FAILED",
            details={"model": model, "status_code": status_code}
        )


class BudgetExceededError(BuildCoreError):
    """The cost optimizer refused the call."""

    def __init__(self, model: str, estimated_cost: float):
        super().__init__(
            message=f"Budget exceeded for model '{model}' (estimated cost ${estimated_cost:.4f})",
            code="BUDGET_EXCEEDED",
            details={"model": model, "estimated_cost": estimated_cost}
        )


class CircuitBreakerOpenError(BuildCoreError):
    """The model's circuit breaker is open."""

    def __init__(self, model: str):
        super().__init__(
            message=f"Circuit breaker open for model '{model}'",
            code="CIRCUIT_BREAKER_OPEN",
            details={"model": model}
        )


class NoRouteAvailableError(BuildCoreError):
    """The router found no eligible model."""

    def __init__(self, agent_id: str, task_type: str, reason: str = ""):
        super().__init__(
            message=f"No eligible model for agent '{agent_id}' ({task_type}){': ' + reason if reason else ''}",
            code="NO_ROUTE_AVAILABLE",
            details={"agent_id": agent_id, "task_type": task_type, "reason": reason}
        )

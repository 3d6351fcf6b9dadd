"""
Errors - exception taxonomy for the build core.
"""

from .exceptions import (
    BuildCoreError,
    GraphTooLargeError,
    CircularDependencyError,
    UnassignedTaskError,
    ReplanLimitExceededError,
    ToolPermissionDeniedError,
    ToolNotFoundError,
    ToolTimeoutError,
    ToolExecutionFailure,
    ModelTimeoutError,
    ModelCallError,
    BudgetExceededError,
    CircuitBreakerOpenError,
    NoRouteAvailableError,
)

__all__ = [
    "BuildCoreError",

    # Planning
    "GraphTooLargeError",
    "CircularDependencyError",
    "UnassignedTaskError",
    "ReplanLimitExceededError",

    # Tools
    "ToolPermissionDeniedError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    "ToolExecutionFailure",

    # Models
    "ModelTimeoutError",
    "ModelCallError",
    "BudgetExceededError",
    "CircuitBreakerOpenError",
    "NoRouteAvailableError",
]

"""
Swarm: multi-model dispatch with circuit breakers and budget checks.
"""

from .circuit_breaker import CircuitBreaker, CircuitBreakerState, CircuitConfig, CircuitState
from .executor import SwarmExecutor
from .types import (
    SwarmTask,
    SwarmTaskResult,
    ParallelResult,
    PipelineStep,
    SwarmPipeline,
    SequentialResult,
)

__all__ = [
    "SwarmExecutor",
    "CircuitBreaker",
    "CircuitBreakerState",
    "CircuitConfig",
    "CircuitState",
    "SwarmTask",
    "SwarmTaskResult",
    "ParallelResult",
    "PipelineStep",
    "SwarmPipeline",
    "SequentialResult",
]

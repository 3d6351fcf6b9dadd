"""
Swarm task and result types.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


@dataclass
class SwarmTask:
    """A unit of work for one model call."""
    agent_id: str
    user_prompt: str
    task_type: str = "general"
    system_prompt: str = ""
    token_estimate: int = 1000
    timeout_seconds: Optional[float] = None
    priority: str = "normal"
    id: str = field(default_factory=lambda: f"swarm_{uuid.uuid4().hex[:8]}")
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SwarmTaskResult:
    """Outcome of one task. Failures carry ``error`` instead of raising."""
    task_id: str
    agent_id: str
    model: Optional[str]
    success: bool
    output: str = ""
    latency_ms: float = 0.0
    cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "agent_id": self.agent_id,
            "model": self.model,
            "success": self.success,
            "output": self.output,
            "latency_ms": self.latency_ms,
            "cost": self.cost,
            "tokens": {"input": self.input_tokens, "output": self.output_tokens},
            "error": self.error,
            "error_code": self.error_code,
        }


@dataclass
class ParallelResult:
    """Aggregate of a parallel batch."""
    results: List[SwarmTaskResult]
    completed: int
    failed: int
    total_cost: float
    max_latency_ms: float
    partial_failure: bool


@dataclass
class PipelineStep:
    """A pipeline step; ``condition`` sees the previous step's result."""
    task: SwarmTask
    condition: Optional[Callable[[SwarmTaskResult], bool]] = None


@dataclass
class SwarmPipeline:
    steps: List[PipelineStep]
    name: str = ""
    id: str = field(default_factory=lambda: f"pipeline_{uuid.uuid4().hex[:8]}")


@dataclass
class SequentialResult:
    """Outcome of a pipeline run."""
    pipeline_id: str
    results: List[SwarmTaskResult]
    completed: bool
    skipped: List[str] = field(default_factory=list)
    total_cost: float = 0.0
    total_latency_ms: float = 0.0

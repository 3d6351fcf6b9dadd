"""
Model layer data types: catalog entries, routing constraints and decisions,
and the normalized model response.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# share of a work-unit estimate attributed to input and output tokens
INPUT_TOKEN_SHARE = 0.6
OUTPUT_TOKEN_SHARE = 0.4


class ModelConfig(BaseModel):
    """A model the router may select."""
    id: str
    provider: str
    cost_per_input_token: float = Field(default=0.0, ge=0)
    cost_per_output_token: float = Field(default=0.0, ge=0)
    quality: float = Field(default=0.7, ge=0.0, le=1.0)
    latency_p50_ms: float = Field(default=1000.0, ge=0)
    context_window: int = Field(default=32768, ge=1)

    def estimate_cost(self, input_tokens: float, output_tokens: float) -> float:
        return input_tokens * self.cost_per_input_token + output_tokens * self.cost_per_output_token

    def estimate_cost_for(self, work_units: float) -> float:
        return self.estimate_cost(work_units * INPUT_TOKEN_SHARE, work_units * OUTPUT_TOKEN_SHARE)


DEFAULT_MODEL_CATALOG: List[ModelConfig] = [
    ModelConfig(id="qwen2.5:7b", provider="ollama", quality=0.72, latency_p50_ms=800, context_window=32768),
    ModelConfig(id="qwen2.5:14b", provider="ollama", quality=0.8, latency_p50_ms=1600, context_window=32768),
    ModelConfig(
        id="gpt-4o-mini", provider="openai",
        cost_per_input_token=0.15e-6, cost_per_output_token=0.6e-6,
        quality=0.82, latency_p50_ms=900, context_window=128000,
    ),
    ModelConfig(
        id="gpt-4o", provider="openai",
        cost_per_input_token=2.5e-6, cost_per_output_token=10e-6,
        quality=0.92, latency_p50_ms=1500, context_window=128000,
    ),
    ModelConfig(
        id="claude-sonnet", provider="anthropic",
        cost_per_input_token=3e-6, cost_per_output_token=15e-6,
        quality=0.95, latency_p50_ms=1800, context_window=200000,
    ),
]


class RouteConstraints(BaseModel):
    """Restrictions applied when choosing a model."""
    min_quality: float = Field(default=0.0, ge=0.0, le=1.0)
    max_cost: Optional[float] = Field(default=None, ge=0)
    preferred_models: List[str] = Field(default_factory=list)
    exclude_models: List[str] = Field(default_factory=list)


@dataclass
class RouteDecision:
    """The router's choice for one call."""
    model: ModelConfig
    estimated_cost: float
    estimated_latency_ms: float
    reason: str = ""


@dataclass
class RouteOutcome:
    """Observed result of a routed call, fed back to the router."""
    success: bool
    quality: float
    latency_ms: float
    cost: float


@dataclass
class LLMResponse:
    """Normalized model response."""
    content: str
    work_units: int
    model: str
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Any, default_model: str = "") -> "LLMResponse":
        """Accept an LLMResponse, a dict with content/work_units/model keys, or a bare string."""
        if isinstance(value, LLMResponse):
            return value
        if isinstance(value, dict):
            return cls(
                content=str(value.get("content", "")),
                work_units=int(value.get("work_units", value.get("workUnits", 0)) or 0),
                model=str(value.get("model", default_model)),
                input_tokens=value.get("input_tokens"),
                output_tokens=value.get("output_tokens"),
            )
        if isinstance(value, str):
            return cls(content=value, work_units=0, model=default_model)
        raise TypeError(f"Unsupported model response type: {type(value).__name__}")

    def split_tokens(self) -> tuple:
        """(input, output) token counts, estimated from work units when not reported."""
        if self.input_tokens is not None and self.output_tokens is not None:
            return self.input_tokens, self.output_tokens
        return (
            int(round(self.work_units * INPUT_TOKEN_SHARE)),
            int(round(self.work_units * OUTPUT_TOKEN_SHARE)),
        )

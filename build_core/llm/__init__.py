"""
Model layer: catalog, routing, budgets, agent profiles and the HTTP client.
"""

from .models import (
    ModelConfig,
    DEFAULT_MODEL_CATALOG,
    RouteConstraints,
    RouteDecision,
    RouteOutcome,
    LLMResponse,
)
from .router import ModelRouter, ModelStats
from .cost_optimizer import CostOptimizer
from .profiles import AgentProfile, AgentProfileManager
from .client import LLMClient
from .tokens import estimate_tokens

__all__ = [
    "ModelConfig",
    "DEFAULT_MODEL_CATALOG",
    "RouteConstraints",
    "RouteDecision",
    "RouteOutcome",
    "LLMResponse",
    "ModelRouter",
    "ModelStats",
    "CostOptimizer",
    "AgentProfile",
    "AgentProfileManager",
    "LLMClient",
    "estimate_tokens",
]

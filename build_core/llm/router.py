"""
Model router.

Chooses the cheapest model that satisfies an agent's constraints and learns
from observed outcomes.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import NoRouteAvailableError
from .models import (
    DEFAULT_MODEL_CATALOG,
    ModelConfig,
    RouteConstraints,
    RouteDecision,
    RouteOutcome,
)

logger = logging.getLogger(__name__)


@dataclass
class ModelStats:
    """Moving averages for one (model, task type) pair."""
    calls: int = 0
    failures: int = 0
    successes: int = 0
    failure_rate: float = 0.0
    quality: float = 0.0
    latency_ms: float = 0.0
    cost: float = 0.0


class ModelRouter:
    """
    Cost-first model router.

    A model is eligible when it is not excluded, fits the token estimate,
    meets ``min_quality`` (observed quality once a call has succeeded) and
    stays under ``max_cost``. Preferred models win when any of them is eligible.
    Among eligible models the cheapest estimate wins, then the higher quality.
    """

    def __init__(self, catalog: Optional[Iterable[ModelConfig]] = None, smoothing: float = 0.3):
        """
        Args:
            catalog: Models available for routing
            smoothing: EMA weight given to each new observation
        """
        self._models: Dict[str, ModelConfig] = {}
        for model in (catalog if catalog is not None else DEFAULT_MODEL_CATALOG):
            self._models[model.id] = model
        self._smoothing = smoothing
        self._stats: Dict[Tuple[str, str], ModelStats] = {}

    def add_model(self, model: ModelConfig) -> None:
        self._models[model.id] = model

    def get_model(self, model_id: str) -> Optional[ModelConfig]:
        return self._models.get(model_id)

    def list_models(self) -> List[ModelConfig]:
        return list(self._models.values())

    def route(
        self,
        agent_id: str,
        task_type: str,
        constraints: Optional[RouteConstraints] = None,
        token_estimate: int = 0,
    ) -> RouteDecision:
        """
        Pick a model for one call.

        Raises:
            NoRouteAvailableError: If no model satisfies the constraints
        """
        constraints = constraints or RouteConstraints()
        excluded = set(constraints.exclude_models)

        eligible = []
        for model in self._models.values():
            if model.id in excluded:
                continue
            if model.context_window < token_estimate:
                continue
            if self.expected_quality(model.id, task_type) < constraints.min_quality:
                continue
            cost = model.estimate_cost_for(token_estimate)
            if constraints.max_cost is not None and cost > constraints.max_cost:
                continue
            eligible.append((model, cost))

        if not eligible:
            raise NoRouteAvailableError(
                agent_id,
                task_type,
                f"min_quality={constraints.min_quality}, excluded={sorted(excluded)}",
            )

        preferred = [(m, c) for m, c in eligible if m.id in constraints.preferred_models]
        pool = preferred or eligible
        model, cost = min(pool, key=lambda mc: (mc[1], -self.expected_quality(mc[0].id, task_type)))

        reason = "preferred" if preferred else "cheapest eligible"
        logger.debug(f"Routed {agent_id}/{task_type} to {model.id} ({reason}, ${cost:.6f})")

        return RouteDecision(
            model=model,
            estimated_cost=cost,
            estimated_latency_ms=self.expected_latency(model.id, task_type),
            reason=reason,
        )

    def update_stats(self, model_id: str, task_type: str, outcome: RouteOutcome) -> None:
        """
        Fold an observed outcome into the moving averages.

        Failures only move ``failure_rate``. Quality and latency average over
        successful calls, so a failed call never lowers a model's quality
        below the routing floor; exclusion after failures is the circuit
        breaker's job.
        """
        stats = self._stats.setdefault((model_id, task_type), ModelStats())
        alpha = self._smoothing if stats.calls else 1.0

        stats.calls += 1
        stats.failure_rate += alpha * ((0.0 if outcome.success else 1.0) - stats.failure_rate)
        stats.cost += alpha * (outcome.cost - stats.cost)
        if not outcome.success:
            stats.failures += 1
            return

        alpha = self._smoothing if stats.successes else 1.0
        stats.successes += 1
        stats.quality += alpha * (outcome.quality - stats.quality)
        stats.latency_ms += alpha * (outcome.latency_ms - stats.latency_ms)

    def get_stats(self, model_id: str, task_type: str) -> Optional[ModelStats]:
        return self._stats.get((model_id, task_type))

    def expected_quality(self, model_id: str, task_type: str) -> float:
        stats = self._stats.get((model_id, task_type))
        if stats and stats.successes:
            return stats.quality
        model = self._models.get(model_id)
        return model.quality if model else 0.0

    def expected_latency(self, model_id: str, task_type: str) -> float:
        stats = self._stats.get((model_id, task_type))
        if stats and stats.latency_ms:
            return stats.latency_ms
        model = self._models.get(model_id)
        return model.latency_p50_ms if model else 0.0

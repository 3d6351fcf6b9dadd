"""
Cost optimizer.

Tracks spend against daily and hourly budgets and answers whether a call
is affordable.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..config import BudgetConfig
from .models import ModelConfig

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


@dataclass
class SpendRecord:
    model_id: str
    agent_id: str
    input_tokens: int
    output_tokens: int
    cost: float
    timestamp: float


class CostOptimizer:
    """
    Budget tracker.

    Spend windows roll over by wall-clock hour and day as reported by the
    injected clock.
    """

    def __init__(
        self,
        config: Optional[BudgetConfig] = None,
        models: Optional[Dict[str, ModelConfig]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            config: Budget limits
            models: Catalog used to price record_spend calls
            clock: Seconds since the epoch
        """
        self.config = config or BudgetConfig()
        self._models = dict(models or {})
        self._clock = clock
        self._records: List[SpendRecord] = []
        self._day = self._day_index()
        self._hour = self._hour_index()
        self._daily_spend = 0.0
        self._hourly_spend = 0.0
        self._alerted: set = set()

    def register_model(self, model: ModelConfig) -> None:
        self._models[model.id] = model

    def can_afford(self, model: ModelConfig, work_units: float) -> bool:
        """True when the estimated cost fits both remaining budgets."""
        self._roll_windows()
        cost = model.estimate_cost_for(work_units)
        if cost == 0:
            return True
        return (
            self._daily_spend + cost <= self.config.daily_budget
            and self._hourly_spend + cost <= self.config.hourly_budget
        )

    def record_spend(
        self,
        model_id: str,
        agent_id: str,
        input_tokens: int,
        output_tokens: int,
        cost: Optional[float] = None,
    ) -> float:
        """Record a completed call and return its cost. Priced from the catalog unless ``cost`` is given."""
        self._roll_windows()
        if cost is None:
            model = self._models.get(model_id)
            cost = model.estimate_cost(input_tokens, output_tokens) if model else 0.0

        self._records.append(SpendRecord(
            model_id=model_id,
            agent_id=agent_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
            timestamp=self._clock(),
        ))
        self._daily_spend += cost
        self._hourly_spend += cost
        self._check_alerts()
        return cost

    def daily_utilization(self) -> float:
        self._roll_windows()
        if self.config.daily_budget <= 0:
            return 1.0 if self._daily_spend > 0 else 0.0
        return self._daily_spend / self.config.daily_budget

    def should_downgrade(self) -> bool:
        return self.daily_utilization() >= self.config.downgrade_threshold

    def only_critical_allowed(self) -> bool:
        return self.daily_utilization() >= self.config.critical_only_threshold

    def get_summary(self) -> Dict[str, Any]:
        self._roll_windows()
        return {
            "daily_spend": self._daily_spend,
            "hourly_spend": self._hourly_spend,
            "daily_budget": self.config.daily_budget,
            "hourly_budget": self.config.hourly_budget,
            "daily_utilization": self.daily_utilization(),
            "calls": len(self._records),
        }

    def _day_index(self) -> int:
        return int(self._clock() // SECONDS_PER_DAY)

    def _hour_index(self) -> int:
        return int(self._clock() // SECONDS_PER_HOUR)

    def _roll_windows(self) -> None:
        day, hour = self._day_index(), self._hour_index()
        if day != self._day:
            self._day = day
            self._daily_spend = 0.0
            self._alerted.clear()
        if hour != self._hour:
            self._hour = hour
            self._hourly_spend = 0.0

    def _check_alerts(self) -> None:
        utilization = self.daily_utilization()
        for name, threshold in (
            ("downgrade", self.config.downgrade_threshold),
            ("critical_only", self.config.critical_only_threshold),
        ):
            if utilization >= threshold and name not in self._alerted:
                self._alerted.add(name)
                logger.warning(
                    f"Daily spend at {utilization:.0%} of ${self.config.daily_budget:.2f} ({name})"
                )

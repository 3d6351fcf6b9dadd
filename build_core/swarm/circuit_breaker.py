"""
Circuit Breaker - per-model failure isolation.

After ``failure_threshold`` consecutive failures a model's circuit opens and
the model is excluded from routing. Once the cooldown has elapsed the next
availability check closes the circuit again; there is no background timer.
"""

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit state."""
    CLOSED = "closed"
    OPEN = "open"


@dataclass
class CircuitBreakerState:
    """Breaker state for one model."""
    model_id: str
    consecutive_failures: int = 0
    last_failure_time: Optional[float] = None
    open: bool = False
    total_failures: int = 0
    total_successes: int = 0

    @property
    def state(self) -> CircuitState:
        return CircuitState.OPEN if self.open else CircuitState.CLOSED


@dataclass
class CircuitConfig:
    """Circuit breaker settings."""
    failure_threshold: int = 3
    cooldown_seconds: float = 600.0


class CircuitBreaker:
    """
    Per-model circuit breaker.

    State is only touched from the event loop thread, so no lock is held.

    Example:
        breaker = CircuitBreaker()
        if breaker.is_available("gpt-4o"):
            try:
                ...
                breaker.record_success("gpt-4o")
            except Exception:
                breaker.record_failure("gpt-4o")
    """

    def __init__(
        self,
        config: Optional[CircuitConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            config: Threshold and cooldown
            clock: Returns the current time in seconds
        """
        self._config = config or CircuitConfig()
        self._clock = clock
        self._states: Dict[str, CircuitBreakerState] = {}

    def _state(self, model_id: str) -> CircuitBreakerState:
        if model_id not in self._states:
            self._states[model_id] = CircuitBreakerState(model_id=model_id)
        return self._states[model_id]

    def get_state(self, model_id: str) -> CircuitBreakerState:
        """Snapshot of a model's breaker state."""
        return replace(self._state(model_id))

    def is_available(self, model_id: str) -> bool:
        """
        True unless the circuit is open and still cooling down.

        An open circuit whose cooldown has elapsed is closed here.
        """
        state = self._states.get(model_id)
        if state is None or not state.open:
            return True

        elapsed = self._clock() - (state.last_failure_time or 0)
        if elapsed > self._config.cooldown_seconds:
            state.open = False
            state.consecutive_failures = 0
            logger.info(f"[CircuitBreaker] {model_id}: OPEN -> CLOSED (cooldown elapsed)")
            return True

        return False

    def record_success(self, model_id: str) -> None:
        state = self._state(model_id)
        state.total_successes += 1
        if state.open:
            logger.info(f"[CircuitBreaker] {model_id}: OPEN -> CLOSED (success)")
        state.consecutive_failures = 0
        state.open = False

    def record_failure(self, model_id: str) -> None:
        state = self._state(model_id)
        state.consecutive_failures += 1
        state.total_failures += 1
        state.last_failure_time = self._clock()

        if not state.open and state.consecutive_failures >= self._config.failure_threshold:
            state.open = True
            logger.warning(
                f"[CircuitBreaker] {model_id}: CLOSED -> OPEN "
                f"(failures: {state.consecutive_failures})"
            )

    def open_models(self) -> List[str]:
        """Models currently excluded from routing."""
        return [model_id for model_id in list(self._states) if not self.is_available(model_id)]

    def reset(self, model_id: str) -> None:
        self._states[model_id] = CircuitBreakerState(model_id=model_id)
        logger.info(f"[CircuitBreaker] {model_id}: Reset to CLOSED")

    def reset_all(self) -> None:
        self._states.clear()
        logger.info("[CircuitBreaker] All circuits reset")

    def get_summary(self) -> Dict[str, Any]:
        return {
            model_id: {
                "state": state.state.value,
                "consecutive_failures": state.consecutive_failures,
                "last_failure_time": state.last_failure_time,
                "total_failures": state.total_failures,
                "total_successes": state.total_successes,
            }
            for model_id, state in self._states.items()
        }

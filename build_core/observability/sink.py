"""
Observability sink.

Fire-and-forget span events for the planner, agent loop and swarm.
A failing callback is logged and dropped; it never reaches the caller.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class SpanEventType(str, Enum):
    """Kinds of events emitted by the sink."""
    SPAN_START = "span_start"
    SPAN_END = "span_end"
    EVENT = "event"


@dataclass
class SpanEvent:
    """A single observability event."""
    type: SpanEventType
    name: str
    span_id: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    status: Optional[str] = None
    duration_ms: Optional[float] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "span_id": self.span_id,
            "attributes": self.attributes,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
        }


class ObservabilitySink:
    """
    Span recorder with an optional callback.

    Example:
        sink = ObservabilitySink(callback=lambda e: exporter.send(e.to_dict()))
        span_id = sink.start_span("agent_loop.run", {"agent": "MARS"})
        ...
        sink.end_span(span_id, "ok", {"turns": 3})
    """

    def __init__(self, callback: Optional[Callable[[SpanEvent], None]] = None):
        self._callback = callback
        self._open_spans: Dict[str, tuple] = {}

    def set_callback(self, callback: Optional[Callable[[SpanEvent], None]]) -> None:
        self._callback = callback

    def start_span(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> str:
        span_id = f"span_{uuid.uuid4().hex[:12]}"
        self._open_spans[span_id] = (name, time.monotonic())
        self._emit(SpanEvent(
            type=SpanEventType.SPAN_START,
            name=name,
            span_id=span_id,
            attributes=dict(attributes or {}),
        ))
        return span_id

    def end_span(
        self,
        span_id: str,
        status: str = "ok",
        attributes: Optional[Dict[str, Any]] = None,
    ) -> None:
        name, started = self._open_spans.pop(span_id, ("unknown", None))
        duration_ms = (time.monotonic() - started) * 1000 if started is not None else None
        self._emit(SpanEvent(
            type=SpanEventType.SPAN_END,
            name=name,
            span_id=span_id,
            attributes=dict(attributes or {}),
            status=status,
            duration_ms=duration_ms,
        ))

    def record_event(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> None:
        self._emit(SpanEvent(
            type=SpanEventType.EVENT,
            name=name,
            span_id="",
            attributes=dict(attributes or {}),
        ))

    def _emit(self, event: SpanEvent) -> None:
        if not self._callback:
            return
        try:
            self._callback(event)
        except Exception as e:
            logger.warning(f"Observability callback failed for {event.name}: {e}")

"""
Observability - fire-and-forget span events.
"""

from .sink import ObservabilitySink, SpanEvent, SpanEventType

__all__ = [
    "ObservabilitySink",
    "SpanEvent",
    "SpanEventType",
]

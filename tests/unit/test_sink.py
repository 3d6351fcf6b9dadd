"""
Observability Sink Unit Tests
"""

import logging

from build_core.observability import ObservabilitySink, SpanEventType


class TestObservabilitySink:
    """ObservabilitySink"""

    def test_span_lifecycle(self):
        events = []
        sink = ObservabilitySink(callback=events.append)

        span_id = sink.start_span("agent_loop.run", {"agent": "MARS"})
        sink.end_span(span_id, "ok", {"turns": 2})

        assert [e.type for e in events] == [SpanEventType.SPAN_START, SpanEventType.SPAN_END]
        assert events[0].attributes == {"agent": "MARS"}
        assert events[1].name == "agent_loop.run"
        assert events[1].status == "ok"
        assert events[1].duration_ms >= 0
        assert events[1].to_dict()["type"] == "span_end"

    def test_unknown_span_has_no_duration(self):
        events = []
        sink = ObservabilitySink(callback=events.append)
        sink.end_span("span_missing", "error")

        assert events[0].name == "unknown"
        assert events[0].duration_ms is None

    def test_record_event(self):
        events = []
        sink = ObservabilitySink()
        sink.record_event("dropped")
        sink.set_callback(events.append)
        sink.record_event("planner.replan", {"task_id": "t1"})

        assert len(events) == 1
        assert events[0].type == SpanEventType.EVENT
        assert events[0].attributes == {"task_id": "t1"}

    def test_callback_failure_is_swallowed(self, caplog):
        def explode(event):
            raise RuntimeError("exporter down")

        sink = ObservabilitySink(callback=explode)
        with caplog.at_level(logging.WARNING):
            span_id = sink.start_span("swarm.parallel")
            sink.end_span(span_id)

        assert "exporter down" in caplog.text

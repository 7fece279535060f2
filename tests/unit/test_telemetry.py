"""Tests for in-memory telemetry counters and structured events."""

import logging

from focusq.observability.telemetry import counter, get_counter, log_event, reset_counters


def test_counter_accumulates():
    assert counter("digest.cycle.sent") == 1
    assert counter("digest.cycle.sent", 2) == 3
    assert get_counter("digest.cycle.sent") == 3
    reset_counters()
    assert get_counter("digest.cycle.sent") == 0


def test_log_event(caplog):
    with caplog.at_level(logging.INFO, logger="focusq.telemetry"):
        log_event("digest.sent", slot="09:00", items=3)
    assert "event=digest.sent" in caplog.text
    assert "'slot': '09:00'" in caplog.text

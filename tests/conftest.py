"""
Pytest configuration for FocusQ tests

Provides a fixed clock, in-memory digest state and default settings so the
digest engine runs without Slack, Gemini or a real database file.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from fixtures.digest_fakes import MutableClock

from focusq.config import Settings
from focusq.digest.state import DeduplicationStore
from focusq.observability.telemetry import reset_counters


@pytest.fixture
def now():
    """Fixed 'now' for deterministic tests (Monday afternoon, UTC)."""
    return datetime(2025, 11, 10, 14, 0, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_counters():
    reset_counters()
    yield
    reset_counters()


@pytest.fixture
def store():
    dedup_store = DeduplicationStore(":memory:")
    yield dedup_store
    dedup_store.close()


@pytest.fixture
def settings():
    return Settings(
        monitored_channels=["C1"],
        vip_contacts=["UVIP"],
        primary_timezone="UTC",
        digest_enabled=True,
        user_email="pm@example.com",
    )


@pytest.fixture
def clock(now):
    return MutableClock(now)

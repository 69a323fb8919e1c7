"""Shared fixtures for courier tests."""

from __future__ import annotations

import pytest

from courier.events.models import Event, IdentityContext
from courier.transport.config import CollectorConfig


@pytest.fixture
def collector_config() -> CollectorConfig:
    """Return a configured collector with fast drain pacing."""
    return CollectorConfig(
        measurement_id="G-TEST123",
        api_secret="secret-value",
        endpoint="https://collector.test/mp/collect",
        debug_endpoint="https://collector.test/debug/mp/collect",
        drain_interval_s=0.0,
    )


@pytest.fixture
def login_event() -> Event:
    """Return a minimal login event."""
    return Event(name="login", params={"method": "email"})


@pytest.fixture
def identity() -> IdentityContext:
    """Return a concrete caller identity."""
    return IdentityContext(client_id="c1", session_id="s1")

"""Collector transport: configuration, single attempts, and retries."""

from __future__ import annotations

from .client import TransportClient, categorize_error, parse_validation_messages
from .config import CollectorConfig
from .errors import CollectorAPIError, CollectorConfigError, CollectorError
from .models import (
    AttemptOutcome,
    CollectorMessage,
    DebugResponse,
    DeliveryReport,
    EndpointVariant,
    TransportResult,
)
from .retry import RetryScheduler, Sleep, backoff_delay

__all__ = [
    "AttemptOutcome",
    "CollectorAPIError",
    "CollectorConfig",
    "CollectorConfigError",
    "CollectorError",
    "CollectorMessage",
    "DebugResponse",
    "DeliveryReport",
    "EndpointVariant",
    "RetryScheduler",
    "Sleep",
    "TransportClient",
    "TransportResult",
    "backoff_delay",
    "categorize_error",
    "parse_validation_messages",
]

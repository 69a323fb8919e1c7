"""Event data model and payload assembly."""

from __future__ import annotations

from .models import (
    PLACEHOLDER_CLIENT_ID,
    PLACEHOLDER_SESSION_ID,
    Event,
    IdentityContext,
    Payload,
    PayloadEvent,
    Primitive,
    encode_payload,
)
from .payload import (
    DEFAULT_ENGAGEMENT_TIME_MSEC,
    build_payload,
    effective_identity,
)

__all__ = [
    "DEFAULT_ENGAGEMENT_TIME_MSEC",
    "PLACEHOLDER_CLIENT_ID",
    "PLACEHOLDER_SESSION_ID",
    "Event",
    "IdentityContext",
    "Payload",
    "PayloadEvent",
    "Primitive",
    "build_payload",
    "effective_identity",
    "encode_payload",
]

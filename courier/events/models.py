"""Event, identity, and wire payload structures."""

from __future__ import annotations

import typing as typ

import msgspec

# Reserved identity values substituted when the caller has no identity yet.
PLACEHOLDER_CLIENT_ID = "placeholder_client_id"
PLACEHOLDER_SESSION_ID = "placeholder_session_id"

type Primitive = str | int | float | bool | None


class Event(msgspec.Struct, kw_only=True, frozen=True):
    """A named behavioural event produced by the host application.

    Attributes
    ----------
    name
        Event name as registered in the event taxonomy (e.g. ``"login"``).
    params
        Event parameters. Required, but may be empty.
    engagement_time_msec
        Optional engagement duration. The assembler falls back to the
        configured default when omitted.

    """

    name: str
    params: dict[str, typ.Any]
    engagement_time_msec: int | None = None


class IdentityContext(msgspec.Struct, kw_only=True, frozen=True):
    """Caller identity attached to every delivered payload.

    Attributes
    ----------
    client_id
        Stable per-installation client identifier.
    session_id
        Identifier of the current session.
    user_properties
        Optional account-scoped properties forwarded verbatim.

    """

    client_id: str
    session_id: str
    user_properties: dict[str, typ.Any] | None = None


class PayloadEvent(msgspec.Struct, kw_only=True, frozen=True):
    """Single event entry in a wire payload."""

    name: str
    params: dict[str, typ.Any]


class Payload(msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True):
    """Wire-ready body posted to the collector.

    Instances are built fresh for each send and reused unchanged across
    retries and queue drains.
    """

    client_id: str
    events: tuple[PayloadEvent, ...]
    user_properties: dict[str, typ.Any] | None = None

    @property
    def event_names(self) -> tuple[str, ...]:
        """Return the names of the events carried by this payload."""
        return tuple(event.name for event in self.events)


def encode_payload(payload: Payload) -> bytes:
    """Serialize ``payload`` to its JSON wire form."""
    return msgspec.json.encode(payload)

"""Assemble wire payloads from events and identity context.

The assembler is pure: given the same event, identity, and default
engagement time it always produces an equal ``Payload``, and it never raises
for an absent identity.

Usage
-----
>>> from courier.events import Event, IdentityContext, build_payload
>>> payload = build_payload(
...     Event(name="login", params={"method": "email"}),
...     IdentityContext(client_id="c1", session_id="s1"),
... )
>>> payload.events[0].params["session_id"]
's1'

"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from .models import (
    PLACEHOLDER_CLIENT_ID,
    PLACEHOLDER_SESSION_ID,
    Payload,
    PayloadEvent,
)

if typ.TYPE_CHECKING:
    from .models import Event, IdentityContext

DEFAULT_ENGAGEMENT_TIME_MSEC = 100
ENGAGEMENT_TIME_PARAM = "engagement_time_msec"
SESSION_ID_PARAM = "session_id"


def effective_identity(identity: IdentityContext | None) -> tuple[str, str]:
    """Return the ``(client_id, session_id)`` pair used on the wire.

    Missing or empty identifiers are replaced by the reserved placeholders.
    """
    if identity is None:
        return (PLACEHOLDER_CLIENT_ID, PLACEHOLDER_SESSION_ID)
    return (
        identity.client_id or PLACEHOLDER_CLIENT_ID,
        identity.session_id or PLACEHOLDER_SESSION_ID,
    )


def _engagement_time(
    event: Event,
    params: cabc.Mapping[str, typ.Any],
    default: int | None,
) -> int | None:
    explicit = params.get(ENGAGEMENT_TIME_PARAM)
    if explicit is not None:
        return explicit
    if event.engagement_time_msec is not None:
        return event.engagement_time_msec
    return default


def build_payload(
    event: Event,
    identity: IdentityContext | None = None,
    *,
    default_engagement_time_msec: int | None = DEFAULT_ENGAGEMENT_TIME_MSEC,
) -> Payload:
    """Build the collector payload for a single event.

    Parameters
    ----------
    event
        Event to deliver. A missing ``params`` mapping is treated as empty.
    identity
        Caller identity, or ``None`` when the identity collaborator has not
        produced one yet.
    default_engagement_time_msec
        Engagement time injected when neither the event nor its params carry
        one. ``None`` disables the injection.

    Returns
    -------
    Payload
        Immutable payload with ``session_id`` and ``engagement_time_msec``
        merged into the event params.

    """
    client_id, session_id = effective_identity(identity)
    raw_params: cabc.Mapping[str, typ.Any] = (
        event.params if isinstance(event.params, cabc.Mapping) else {}
    )

    # Caller params win over injected values for both reserved keys.
    params: dict[str, typ.Any] = {SESSION_ID_PARAM: session_id}
    engagement = _engagement_time(event, raw_params, default_engagement_time_msec)
    if engagement is not None:
        params[ENGAGEMENT_TIME_PARAM] = engagement
    params.update(
        (key, value) for key, value in raw_params.items() if key != ENGAGEMENT_TIME_PARAM
    )

    user_properties = identity.user_properties if identity is not None else None
    return Payload(
        client_id=client_id,
        events=(PayloadEvent(name=event.name, params=params),),
        user_properties=dict(user_properties) if user_properties else None,
    )

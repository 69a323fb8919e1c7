"""Structural validation of events before they reach the network.

``LocalValidator`` mirrors the collector's documented limits (event name
length, parameter count and name length, request size) and flags placeholder
identity so integration problems surface during development. It performs no
I/O and never raises; every finding is reported in the returned
``ValidationResult``.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

import msgspec

from courier.events.models import (
    PLACEHOLDER_CLIENT_ID,
    PLACEHOLDER_SESSION_ID,
    encode_payload,
)
from courier.events.payload import (
    DEFAULT_ENGAGEMENT_TIME_MSEC,
    ENGAGEMENT_TIME_PARAM,
    build_payload,
    effective_identity,
)

from .models import IssueType, ValidationIssue, ValidationResult

if typ.TYPE_CHECKING:
    from courier.events.models import Event, IdentityContext, Payload

    from .schema import EventSchemaRegistry

MAX_EVENT_NAME_LENGTH = 40
MAX_PARAMETER_COUNT = 25
MAX_PARAM_NAME_LENGTH = 40
MAX_PAYLOAD_BYTES = 8192


class LocalValidator:
    """Check event shape and size limits without contacting the collector.

    Parameters
    ----------
    schema_registry
        Optional registry consulted for per-event-name rules. Registry
        failures are reported as ``schema_validation`` errors.
    default_engagement_time_msec
        Default applied during payload assembly; must match the value the
        delivery service uses so the engagement-time check sees the same
        payload that would be sent.

    """

    def __init__(
        self,
        schema_registry: EventSchemaRegistry | None = None,
        *,
        default_engagement_time_msec: int | None = DEFAULT_ENGAGEMENT_TIME_MSEC,
    ) -> None:
        """Store the optional registry and assembly default."""
        self._schema_registry = schema_registry
        self._default_engagement_time_msec = default_engagement_time_msec

    def validate(
        self,
        event: Event,
        identity: IdentityContext | None = None,
    ) -> ValidationResult:
        """Validate ``event`` as it would be assembled for ``identity``.

        Parameters
        ----------
        event
            Event to check. Malformed events (missing name or params) are
            reported, not raised.
        identity
            Caller identity. ``None`` is assembled with placeholders and
            reported as warnings.

        Returns
        -------
        ValidationResult
            Errors, warnings, and the assembled payload when the event name
            allowed assembly.

        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        has_name = self._check_name(event, errors, warnings)
        params = self._check_params(event, errors, warnings)
        self._check_identity(identity, warnings)

        payload: Payload | None = None
        if has_name:
            payload = build_payload(
                event,
                identity,
                default_engagement_time_msec=self._default_engagement_time_msec,
            )
            self._check_payload(payload, errors, warnings)
            if params is not None and self._schema_registry is not None:
                self._check_schema(event.name, params, errors)

        return ValidationResult.from_issues(
            errors=errors,
            warnings=warnings,
            payload=payload,
        )

    @staticmethod
    def _check_name(
        event: Event,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> bool:
        name = getattr(event, "name", None)
        if not isinstance(name, str) or not name:
            errors.append(
                ValidationIssue(
                    type=IssueType.MISSING_EVENT_NAME,
                    message="Event name is required and must be a string",
                    field="event.name",
                )
            )
            return False
        if len(name) > MAX_EVENT_NAME_LENGTH:
            warnings.append(
                ValidationIssue(
                    type=IssueType.EVENT_NAME_LENGTH,
                    message=(
                        f"Event name should be {MAX_EVENT_NAME_LENGTH} "
                        "characters or less"
                    ),
                    field="event.name",
                    value=name,
                )
            )
        return True

    @staticmethod
    def _check_params(
        event: Event,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> cabc.Mapping[str, typ.Any] | None:
        params = getattr(event, "params", None)
        if not isinstance(params, cabc.Mapping):
            errors.append(
                ValidationIssue(
                    type=IssueType.MISSING_PARAMS,
                    message="Event params mapping is required",
                    field="event.params",
                )
            )
            return None

        if len(params) > MAX_PARAMETER_COUNT:
            warnings.append(
                ValidationIssue(
                    type=IssueType.TOO_MANY_PARAMETERS,
                    message=(
                        f"Collector accepts up to {MAX_PARAMETER_COUNT} "
                        "parameters per event"
                    ),
                    field="event.params",
                    value=len(params),
                )
            )
        warnings.extend(
            ValidationIssue(
                type=IssueType.PARAM_NAME_LENGTH,
                message=(
                    f"Parameter names should be {MAX_PARAM_NAME_LENGTH} "
                    "characters or less"
                ),
                field=f"event.params.{key}",
                value=key,
            )
            for key in params
            if len(str(key)) > MAX_PARAM_NAME_LENGTH
        )
        return params

    @staticmethod
    def _check_identity(
        identity: IdentityContext | None,
        warnings: list[ValidationIssue],
    ) -> None:
        client_id, session_id = effective_identity(identity)
        if client_id == PLACEHOLDER_CLIENT_ID:
            warnings.append(
                ValidationIssue(
                    type=IssueType.PLACEHOLDER_CLIENT_ID,
                    message=(
                        "Using placeholder client ID - ensure the identity "
                        "provider is initialized"
                    ),
                    field="client_id",
                )
            )
        if session_id == PLACEHOLDER_SESSION_ID:
            warnings.append(
                ValidationIssue(
                    type=IssueType.PLACEHOLDER_SESSION_ID,
                    message=(
                        "Using placeholder session ID - ensure the identity "
                        "provider is initialized"
                    ),
                    field="session_id",
                )
            )

    @staticmethod
    def _check_payload(
        payload: Payload,
        errors: list[ValidationIssue],
        warnings: list[ValidationIssue],
    ) -> None:
        if any(
            event.params.get(ENGAGEMENT_TIME_PARAM) is None for event in payload.events
        ):
            warnings.append(
                ValidationIssue(
                    type=IssueType.MISSING_ENGAGEMENT_TIME,
                    message="engagement_time_msec is recommended for reporting",
                    field=f"event.params.{ENGAGEMENT_TIME_PARAM}",
                )
            )

        try:
            size = len(encode_payload(payload))
        except (msgspec.EncodeError, TypeError) as exc:
            errors.append(
                ValidationIssue(
                    type=IssueType.UNSERIALIZABLE_PAYLOAD,
                    message=f"Payload cannot be serialized: {exc}",
                    field="event.params",
                )
            )
            return
        if size > MAX_PAYLOAD_BYTES:
            warnings.append(
                ValidationIssue(
                    type=IssueType.PAYLOAD_SIZE_WARNING,
                    message=(
                        f"Payload size exceeds the recommended {MAX_PAYLOAD_BYTES} "
                        "byte limit"
                    ),
                    field="payload",
                    value=size,
                )
            )

    def _check_schema(
        self,
        name: str,
        params: cabc.Mapping[str, typ.Any],
        errors: list[ValidationIssue],
    ) -> None:
        if self._schema_registry is None:
            return
        check = self._schema_registry.check_event(name, params)
        if not check.valid:
            errors.append(
                ValidationIssue(
                    type=IssueType.SCHEMA_VALIDATION,
                    message="Event failed schema validation",
                    field="event",
                    value=check.errors,
                )
            )

"""Validation result structures shared by local and collector checks."""

from __future__ import annotations

import enum
import typing as typ

import msgspec

from courier.events.models import Payload  # noqa: TC001


class IssueType(enum.StrEnum):
    """Issue identifiers produced by the pipeline itself.

    Collector-side warnings use the collector's own validation code as their
    type, so not every ``ValidationIssue.type`` is a member of this enum.
    """

    MISSING_EVENT_NAME = "missing_event_name"
    MISSING_PARAMS = "missing_params"
    EVENT_NAME_LENGTH = "event_name_length"
    TOO_MANY_PARAMETERS = "too_many_parameters"
    PARAM_NAME_LENGTH = "param_name_length"
    PLACEHOLDER_CLIENT_ID = "placeholder_client_id"
    PLACEHOLDER_SESSION_ID = "placeholder_session_id"
    MISSING_ENGAGEMENT_TIME = "missing_engagement_time"
    PAYLOAD_SIZE_WARNING = "payload_size_warning"
    UNSERIALIZABLE_PAYLOAD = "unserializable_payload"
    SCHEMA_VALIDATION = "schema_validation"
    COLLECTOR_ERROR = "collector_error"
    COLLECTOR_HTTP_ERROR = "collector_http_error"
    COLLECTOR_UNREACHABLE = "collector_unreachable"
    COLLECTOR_UNCONFIGURED = "collector_unconfigured"


class ValidationIssue(msgspec.Struct, kw_only=True, frozen=True):
    """A single validation finding.

    Attributes
    ----------
    type
        Machine-readable issue identifier.
    message
        Human-readable description.
    field
        Dotted path of the offending field (e.g. ``event.params.foo``).
    value
        Offending value, count, or size when relevant.

    """

    type: str
    message: str
    field: str
    value: typ.Any = None


class ValidationResult(msgspec.Struct, kw_only=True, frozen=True):
    """Outcome of validating one event.

    Local results are invalid exactly when ``errors`` is non-empty. Collector
    results are valid only when the collector returned no messages at all.
    """

    valid: bool
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()
    payload: Payload | None = None

    @classmethod
    def from_issues(
        cls,
        *,
        errors: typ.Iterable[ValidationIssue] = (),
        warnings: typ.Iterable[ValidationIssue] = (),
        payload: Payload | None = None,
    ) -> ValidationResult:
        """Build a result whose validity is derived from ``errors``."""
        error_tuple = tuple(errors)
        return cls(
            valid=not error_tuple,
            errors=error_tuple,
            warnings=tuple(warnings),
            payload=payload,
        )

    @property
    def issue_types(self) -> tuple[str, ...]:
        """Return error then warning types, in report order."""
        return tuple(issue.type for issue in (*self.errors, *self.warnings))

"""Translate collector debug diagnostics into validation results.

The debug endpoint reports problems as ``validationMessages``. Messages that
carry a ``validation_code`` describe format or value problems and are
surfaced as warnings; messages without a code describe structural problems
(such as a required field missing entirely) and are surfaced as errors. A
collector result is valid only when no messages were returned at all.
"""

from __future__ import annotations

import typing as typ

from courier.transport.models import AttemptOutcome

from .models import IssueType, ValidationIssue, ValidationResult

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from courier.events.models import Payload
    from courier.transport.models import CollectorMessage, TransportResult

GENERIC_SUGGESTION = "Consult the collector's documentation for this validation code."

VALIDATION_SUGGESTIONS: dict[str, str] = {
    "INVALID_EVENT_NAME": "Use only letters, numbers, and underscores. Max 40 characters.",
    "INVALID_PARAMETER_NAME": (
        "Use only letters, numbers, and underscores. Max 40 characters."
    ),
    "INVALID_PARAMETER_VALUE": "Check data types and value limits for this parameter.",
    "MISSING_REQUIRED_PARAMETER": "Add the required parameter to your event.",
    "VALUE_OUT_OF_RANGE": "Check the allowed range for this parameter value.",
    "INVALID_CURRENCY_CODE": "Use valid ISO 4217 currency codes (e.g., USD, EUR).",
    "INVALID_TIMESTAMP": "Use a valid Unix timestamp in microseconds.",
    "PARAMETER_COUNT_TOO_HIGH": "Reduce the number of custom parameters (max 25).",
    "EVENT_COUNT_TOO_HIGH": "Reduce the number of events per request (max 25).",
    "PAYLOAD_TOO_LARGE": "Reduce the size of your event data (max 130KB).",
    "VALUE_INVALID": "Check data types and value limits for this field.",
    "VALUE_REQUIRED": "Provide a value for this required field.",
    "NAME_INVALID": "Use only letters, numbers, and underscores, starting with a letter.",
    "NAME_RESERVED": "Rename the field; this name is reserved by the collector.",
    "VALUE_OUT_OF_BOUNDS": "Keep the value within the collector's documented limits.",
    "EXCEEDED_MAX_ENTITIES": "Reduce the number of items in this collection.",
    "NAME_DUPLICATED": "Remove the duplicated name from the request.",
}


def suggestion_for(code: str | None) -> str:
    """Return a remediation hint for a collector validation code."""
    if code is None:
        return GENERIC_SUGGESTION
    return VALIDATION_SUGGESTIONS.get(code, GENERIC_SUGGESTION)


def issue_from_message(message: CollectorMessage) -> tuple[bool, ValidationIssue]:
    """Convert a collector message into ``(is_warning, issue)``."""
    if message.validation_code:
        return (
            True,
            ValidationIssue(
                type=message.validation_code,
                message=message.description,
                field=message.field_path,
            ),
        )
    return (
        False,
        ValidationIssue(
            type=IssueType.COLLECTOR_ERROR,
            message=message.description,
            field=message.field_path,
        ),
    )


def classify_messages(
    messages: cabc.Iterable[CollectorMessage],
    payload: Payload | None,
) -> ValidationResult:
    """Build a validation result from debug-endpoint messages."""
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    for message in messages:
        is_warning, issue = issue_from_message(message)
        (warnings if is_warning else errors).append(issue)
    return ValidationResult(
        valid=not errors and not warnings,
        errors=tuple(errors),
        warnings=tuple(warnings),
        payload=payload,
    )


def classify_transport_result(
    result: TransportResult,
    payload: Payload,
) -> ValidationResult:
    """Build a validation result from a debug-endpoint attempt.

    Non-2xx responses and transport failures are reported as a single error
    issue; they never raise.
    """
    if result.succeeded:
        return classify_messages(result.validation_messages, payload)

    if result.outcome is AttemptOutcome.NETWORK_ERROR:
        issue = ValidationIssue(
            type=IssueType.COLLECTOR_UNREACHABLE,
            message=f"Collector unreachable: {result.detail}",
            field="payload",
        )
    else:
        issue = ValidationIssue(
            type=IssueType.COLLECTOR_HTTP_ERROR,
            message=f"HTTP {result.status_code}: {result.detail}",
            field="payload",
            value=result.status_code,
        )
    return ValidationResult.from_issues(errors=(issue,), payload=payload)


def unconfigured_result(payload: Payload | None) -> ValidationResult:
    """Return the result reported when collector credentials are unusable."""
    return ValidationResult.from_issues(
        errors=(
            ValidationIssue(
                type=IssueType.COLLECTOR_UNCONFIGURED,
                message="Collector measurement ID and API secret are not configured",
                field="config",
            ),
        ),
        payload=payload,
    )

"""Local and collector-side event validation.

Public API
----------
LocalValidator
    Synchronous structural checks with no network access.
ValidationResult / ValidationIssue
    Validation outcome returned by every validation path.
EventSchemaRegistry / MappingSchemaRegistry / EventSchema
    Optional per-event-name rules supplied by the host taxonomy.
classify_messages / classify_transport_result
    Conversion of debug-endpoint responses into validation results.
suggestion_for
    Remediation hints keyed by collector validation code.
"""

from __future__ import annotations

from .collector import (
    GENERIC_SUGGESTION,
    VALIDATION_SUGGESTIONS,
    classify_messages,
    classify_transport_result,
    suggestion_for,
)
from .local import (
    MAX_EVENT_NAME_LENGTH,
    MAX_PARAM_NAME_LENGTH,
    MAX_PARAMETER_COUNT,
    MAX_PAYLOAD_BYTES,
    LocalValidator,
)
from .models import IssueType, ValidationIssue, ValidationResult
from .schema import EventSchema, EventSchemaRegistry, MappingSchemaRegistry, SchemaCheck

__all__ = [
    "GENERIC_SUGGESTION",
    "MAX_EVENT_NAME_LENGTH",
    "MAX_PARAMETER_COUNT",
    "MAX_PARAM_NAME_LENGTH",
    "MAX_PAYLOAD_BYTES",
    "VALIDATION_SUGGESTIONS",
    "EventSchema",
    "EventSchemaRegistry",
    "IssueType",
    "LocalValidator",
    "MappingSchemaRegistry",
    "SchemaCheck",
    "ValidationIssue",
    "ValidationResult",
    "classify_messages",
    "classify_transport_result",
    "suggestion_for",
]

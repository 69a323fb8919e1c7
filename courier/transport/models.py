"""Transport outcome and collector response structures."""

from __future__ import annotations

import dataclasses as dc
import enum

import msgspec


class EndpointVariant(enum.StrEnum):
    """Collector endpoint targeted by a delivery attempt."""

    PRODUCTION = "production"
    DEBUG = "debug"


class AttemptOutcome(enum.StrEnum):
    """Classification of a single delivery attempt."""

    SUCCESS = "success"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"

    @property
    def retryable(self) -> bool:
        """Return whether another attempt may succeed."""
        return self in {AttemptOutcome.SERVER_ERROR, AttemptOutcome.NETWORK_ERROR}


class CollectorMessage(msgspec.Struct, kw_only=True, frozen=True):
    """One diagnostic returned by the debug endpoint.

    Attributes
    ----------
    validation_code
        Classification code such as ``VALUE_INVALID``. Absent when the
        collector reports a structural problem.
    description
        Human-readable diagnostic.
    field_path
        Path of the offending field within the payload.

    """

    validation_code: str | None = None
    description: str = ""
    field_path: str = ""


class DebugResponse(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Body returned by the debug endpoint on success."""

    validation_messages: list[CollectorMessage] = msgspec.field(default_factory=list)


@dc.dataclass(frozen=True, slots=True)
class TransportResult:
    """Classified outcome of one HTTP attempt.

    Attributes
    ----------
    outcome
        Attempt classification.
    variant
        Endpoint the attempt targeted.
    status_code
        HTTP status, or ``None`` for network failures.
    detail
        Response text for non-2xx responses, or the network error description.
    validation_messages
        Diagnostics parsed from a successful debug-endpoint response.

    """

    outcome: AttemptOutcome
    variant: EndpointVariant
    status_code: int | None = None
    detail: str | None = None
    validation_messages: tuple[CollectorMessage, ...] = ()

    @property
    def succeeded(self) -> bool:
        """Return whether the collector accepted the request."""
        return self.outcome is AttemptOutcome.SUCCESS


@dc.dataclass(frozen=True, slots=True)
class DeliveryReport:
    """Final result of a retried delivery."""

    result: TransportResult
    attempts: int

    @property
    def succeeded(self) -> bool:
        """Return whether the final attempt succeeded."""
        return self.result.succeeded

    @property
    def should_queue(self) -> bool:
        """Return whether the failure is worth retrying later from the queue."""
        return self.result.outcome.retryable

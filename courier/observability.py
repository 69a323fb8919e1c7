"""Structured log events for the delivery pipeline.

Every delivery lifecycle transition is emitted as a single femtologging line
of the form ``[event.type] key=value ...`` so log aggregators can parse
throughput, queue pressure, and validation outcomes without a metrics
backend.

Usage
-----
>>> event_logger = DeliveryEventLogger()
>>> event_logger.log_event_queued(("login",), reason="offline", queue_size=1)

"""

from __future__ import annotations

import enum
import typing as typ

from courier.logging import (
    get_logger,
    log_error,
    log_exception,
    log_info,
    log_warning,
)
from courier.validation.collector import suggestion_for

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from courier.transport.models import (
        AttemptOutcome,
        CollectorMessage,
        EndpointVariant,
    )
    from courier.validation.models import ValidationIssue, ValidationResult

logger = get_logger(__name__)


class DeliveryEventType(enum.StrEnum):
    """Structured log event types for delivery observability."""

    SEND_SUCCEEDED = "delivery.send.succeeded"
    SEND_REJECTED = "delivery.send.rejected"
    SEND_SKIPPED = "delivery.send.skipped"
    SEND_BLOCKED = "delivery.send.blocked"
    SEND_WARNINGS = "delivery.send.warnings"
    RETRY_SCHEDULED = "delivery.retry.scheduled"
    EVENT_QUEUED = "delivery.queue.enqueued"
    QUEUE_EVICTED = "delivery.queue.evicted"
    QUEUE_CLEARED = "delivery.queue.cleared"
    QUEUE_RESTORE_FAILED = "delivery.queue.restore_failed"
    DRAIN_STARTED = "delivery.queue.drain_started"
    DRAIN_COMPLETED = "delivery.queue.drain_completed"
    CONNECTIVITY_CHANGED = "delivery.connectivity.changed"
    DEBUG_MESSAGE = "delivery.debug.message"
    VALIDATION_PASSED = "delivery.validation.passed"
    VALIDATION_WARNING = "delivery.validation.warning"
    VALIDATION_FAILED = "delivery.validation.failed"
    VALIDATION_CRASHED = "delivery.validation.crashed"
    BATCH_COMPLETED = "delivery.validation.batch_completed"


def _names(event_names: cabc.Iterable[str]) -> str:
    return ",".join(event_names)


class DeliveryEventLogger:
    """Emit structured delivery events via femtologging.

    Successful transitions are logged at INFO, degraded ones (retries,
    evictions, collector warnings) at WARNING, and terminal failures at
    ERROR.
    """

    def log_send_succeeded(
        self,
        event_names: cabc.Sequence[str],
        *,
        attempts: int,
        variant: EndpointVariant,
    ) -> None:
        """Log a payload accepted by the collector."""
        log_info(
            logger,
            "[%s] events=%s attempts=%d endpoint=%s",
            DeliveryEventType.SEND_SUCCEEDED,
            _names(event_names),
            attempts,
            variant,
        )

    def log_send_rejected(
        self,
        event_names: cabc.Sequence[str],
        *,
        status_code: int | None,
        detail: str | None,
    ) -> None:
        """Log a terminal client error; the payload is dropped."""
        log_error(
            logger,
            "[%s] events=%s status_code=%s detail=%s",
            DeliveryEventType.SEND_REJECTED,
            _names(event_names),
            status_code,
            detail,
        )

    def log_send_skipped(self, event_name: str, *, reason: str) -> None:
        """Log an event dropped by the enabled/configured gate."""
        log_info(
            logger,
            "[%s] event=%s reason=%s",
            DeliveryEventType.SEND_SKIPPED,
            event_name,
            reason,
        )

    def log_send_blocked(
        self,
        event_name: object,
        errors: cabc.Sequence[ValidationIssue],
    ) -> None:
        """Log an event blocked by local validation errors."""
        log_warning(
            logger,
            "[%s] event=%s error_count=%d error_types=%s",
            DeliveryEventType.SEND_BLOCKED,
            event_name,
            len(errors),
            _names(issue.type for issue in errors),
        )

    def log_send_warnings(
        self,
        event_name: str,
        warnings: cabc.Sequence[ValidationIssue],
    ) -> None:
        """Log local validation warnings for an event that is still sent."""
        log_warning(
            logger,
            "[%s] event=%s warning_count=%d warning_types=%s",
            DeliveryEventType.SEND_WARNINGS,
            event_name,
            len(warnings),
            _names(issue.type for issue in warnings),
        )

    def log_retry_scheduled(  # noqa: PLR0913
        self,
        event_names: cabc.Sequence[str],
        *,
        retry: int,
        max_retries: int,
        delay_s: float,
        outcome: AttemptOutcome,
        status_code: int | None,
    ) -> None:
        """Log a retryable failure and the backoff before the next attempt."""
        log_warning(
            logger,
            "[%s] events=%s retry=%d max_retries=%d delay_ms=%d outcome=%s "
            "status_code=%s",
            DeliveryEventType.RETRY_SCHEDULED,
            _names(event_names),
            retry,
            max_retries,
            round(delay_s * 1000),
            outcome,
            status_code,
        )

    def log_event_queued(
        self,
        event_names: cabc.Sequence[str],
        *,
        reason: str,
        queue_size: int,
    ) -> None:
        """Log a payload stored for later delivery."""
        log_info(
            logger,
            "[%s] events=%s reason=%s queue_size=%d",
            DeliveryEventType.EVENT_QUEUED,
            _names(event_names),
            reason,
            queue_size,
        )

    def log_queue_evicted(
        self,
        event_names: cabc.Sequence[str],
        *,
        enqueued_at: dt.datetime,
        capacity: int,
    ) -> None:
        """Log the oldest payload dropped to make room in a full queue."""
        log_warning(
            logger,
            "[%s] events=%s enqueued_at=%s capacity=%d",
            DeliveryEventType.QUEUE_EVICTED,
            _names(event_names),
            enqueued_at.isoformat(),
            capacity,
        )

    def log_queue_cleared(self, removed: int) -> None:
        """Log an explicit queue reset."""
        log_info(logger, "[%s] removed=%d", DeliveryEventType.QUEUE_CLEARED, removed)

    def log_queue_restore_failed(self, error: BaseException) -> None:
        """Log persisted queue state that could not be loaded."""
        log_exception(
            logger,
            error,
            "[%s] error_type=%s error_message=%s",
            DeliveryEventType.QUEUE_RESTORE_FAILED,
            type(error).__name__,
            str(error),
        )

    def log_drain_started(self, queue_size: int) -> None:
        """Log the start of a queue drain."""
        log_info(
            logger,
            "[%s] queue_size=%d",
            DeliveryEventType.DRAIN_STARTED,
            queue_size,
        )

    def log_drain_completed(
        self,
        *,
        settled: int,
        remaining: int,
        duration_s: float,
    ) -> None:
        """Log the end of a queue drain."""
        log_info(
            logger,
            "[%s] settled=%d remaining=%d duration_seconds=%.3f",
            DeliveryEventType.DRAIN_COMPLETED,
            settled,
            remaining,
            duration_s,
        )

    def log_connectivity_changed(self, *, online: bool, queue_size: int) -> None:
        """Log an online/offline transition."""
        log_info(
            logger,
            "[%s] online=%s queue_size=%d",
            DeliveryEventType.CONNECTIVITY_CHANGED,
            online,
            queue_size,
        )

    def log_debug_message(
        self,
        event_names: cabc.Sequence[str],
        message: CollectorMessage,
    ) -> None:
        """Log a diagnostic returned while sending in debug mode."""
        emit = log_warning if message.validation_code else log_error
        emit(
            logger,
            "[%s] events=%s validation_code=%s field_path=%s description=%s",
            DeliveryEventType.DEBUG_MESSAGE,
            _names(event_names),
            message.validation_code,
            message.field_path,
            message.description,
        )

    def log_validation_outcome(
        self,
        event_name: str,
        result: ValidationResult,
        *,
        validation_ms: float,
    ) -> None:
        """Log the outcome of a background collector validation.

        A passing result emits one INFO line. Otherwise each warning is
        emitted at WARNING and each error at ERROR, with a remediation
        suggestion looked up from the issue's validation code.
        """
        if not result.errors and not result.warnings:
            log_info(
                logger,
                "[%s] event=%s validation_ms=%.1f",
                DeliveryEventType.VALIDATION_PASSED,
                event_name,
                validation_ms,
            )
            return

        for issue in result.warnings:
            log_warning(
                logger,
                "[%s] event=%s validation_ms=%.1f code=%s field=%s message=%s "
                "suggestion=%s",
                DeliveryEventType.VALIDATION_WARNING,
                event_name,
                validation_ms,
                issue.type,
                issue.field,
                issue.message,
                suggestion_for(issue.type),
            )
        for issue in result.errors:
            log_error(
                logger,
                "[%s] event=%s validation_ms=%.1f code=%s field=%s message=%s "
                "suggestion=%s",
                DeliveryEventType.VALIDATION_FAILED,
                event_name,
                validation_ms,
                issue.type,
                issue.field,
                issue.message,
                suggestion_for(issue.type),
            )

    def log_validation_crashed(self, event_name: str, error: BaseException) -> None:
        """Log an unexpected exception raised inside background validation."""
        log_exception(
            logger,
            error,
            "[%s] event=%s error_type=%s error_message=%s",
            DeliveryEventType.VALIDATION_CRASHED,
            event_name,
            type(error).__name__,
            str(error),
        )

    def log_batch_completed(self, *, total: int, passed: int, failed: int) -> None:
        """Log the aggregate outcome of a batch validation."""
        log_info(
            logger,
            "[%s] total=%d passed=%d failed=%d",
            DeliveryEventType.BATCH_COMPLETED,
            total,
            passed,
            failed,
        )

"""Delivery orchestration: gating, retries, offline queueing, and validation.

``DeliveryService`` is the single entry point host applications use. It
assembles payloads, drives the retry scheduler, parks undeliverable payloads
in its bounded queue, and drains that queue when connectivity returns.
Expected failures are reported through return values and structured log
lines; none of the public coroutines raise for them.

Usage
-----
>>> service = DeliveryService(CollectorConfig.from_env())
>>> await service.send(Event(name="login", params={"method": "email"}), identity)
True
>>> await service.aclose()

"""

from __future__ import annotations

import asyncio
import time
import typing as typ

from courier.events.models import Event, IdentityContext
from courier.events.payload import build_payload
from courier.observability import DeliveryEventLogger
from courier.transport.client import TransportClient
from courier.transport.models import AttemptOutcome, EndpointVariant
from courier.transport.retry import RetryScheduler
from courier.validation.collector import (
    classify_transport_result,
    unconfigured_result,
)
from courier.validation.local import LocalValidator
from courier.validation.models import IssueType, ValidationResult

from .queue import DeliveryQueue
from .store import QueueStoreError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from courier.events.models import Payload
    from courier.transport.config import CollectorConfig
    from courier.transport.models import DeliveryReport
    from courier.transport.retry import Sleep

    from .queue import QueueEntry
    from .store import QueueStore

# Canned event used by check_collector_connectivity().
CONNECTIVITY_TEST_EVENT = Event(
    name="debug_test",
    params={"test_parameter": "debug_connectivity_test"},
)
CONNECTIVITY_TEST_IDENTITY = IdentityContext(
    client_id="debug_test_client",
    session_id="debug_test_session",
)


class DeliveryService:
    """Deliver events to the collector with retries and offline queueing.

    Parameters
    ----------
    config
        Collector endpoints, credentials, and delivery tuning.
    transport
        Transport performing single attempts. Created from ``config`` (and
        owned by the service) when omitted.
    queue
        Queue for undelivered payloads. Created with
        ``config.queue_capacity`` when omitted.
    validator
        Local validator used by ``send_with_local_validation``.
    store
        Optional persistence for the queue. Saved after every queue
        mutation; loaded by ``restore_queue`` or before the first save.
    sleep
        Coroutine function used for retry backoff and drain pacing.
    clock
        Monotonic clock used to time validations and drains.
    event_logger
        Structured logger for delivery events.
    online
        Initial connectivity state.

    """

    def __init__(  # noqa: PLR0913
        self,
        config: CollectorConfig,
        *,
        transport: TransportClient | None = None,
        queue: DeliveryQueue | None = None,
        validator: LocalValidator | None = None,
        store: QueueStore | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: cabc.Callable[[], float] = time.perf_counter,
        event_logger: DeliveryEventLogger | None = None,
        online: bool = True,
    ) -> None:
        """Wire collaborators, creating defaults from ``config``."""
        self._config = config
        self._owns_transport = transport is None
        self._transport = transport or TransportClient(config)
        self._queue = queue if queue is not None else DeliveryQueue(config.queue_capacity)
        self._validator = validator or LocalValidator(
            default_engagement_time_msec=config.default_engagement_time_msec,
        )
        self._store = store
        self._sleep = sleep
        self._clock = clock
        self._event_logger = event_logger or DeliveryEventLogger()
        self._scheduler = RetryScheduler(
            self._transport,
            max_retries=config.max_retries,
            base_delay_s=config.retry_base_delay_s,
            sleep=sleep,
            event_logger=self._event_logger,
        )
        self._enabled = True
        self._online = online
        self._draining = False
        self._restored = store is None
        self._background_tasks: set[asyncio.Task[ValidationResult | None]] = set()

    @property
    def config(self) -> CollectorConfig:
        """Read-only access to the collector configuration."""
        return self._config

    @property
    def queue(self) -> DeliveryQueue:
        """Return the queue owned by this service."""
        return self._queue

    # Gates and state

    def set_enabled(self, enabled: bool) -> None:  # noqa: FBT001
        """Enable or disable delivery."""
        self._enabled = enabled

    def is_enabled(self) -> bool:
        """Return whether delivery is enabled and the collector is configured."""
        return self._enabled and self._config.is_configured()

    def is_online(self) -> bool:
        """Return the last reported connectivity state."""
        return self._online

    def queue_size(self) -> int:
        """Return the number of payloads awaiting delivery."""
        return self._queue.size()

    async def handle_connectivity_change(self, online: bool) -> None:  # noqa: FBT001
        """Record a connectivity change, draining the queue on reconnect."""
        was_online = self._online
        self._online = online
        self._event_logger.log_connectivity_changed(
            online=online,
            queue_size=self._queue.size(),
        )
        if online and not was_online:
            await self.drain_queue()

    # Sending

    async def send(self, event: Event, identity: IdentityContext | None = None) -> bool:
        """Deliver ``event`` and return whether the collector accepted it.

        Returns ``False`` without network activity when the service is
        disabled or unconfigured. When offline the payload is queued and
        ``False`` returned. Otherwise the payload is delivered with retries;
        exhausted retries queue it, while client errors drop it.
        """
        if not self._enabled:
            self._event_logger.log_send_skipped(event.name, reason="disabled")
            return False
        if not self._config.is_configured():
            self._event_logger.log_send_skipped(event.name, reason="unconfigured")
            return False

        payload = build_payload(
            event,
            identity,
            default_engagement_time_msec=self._config.default_engagement_time_msec,
        )
        if not self._online:
            await self._enqueue(payload, reason="offline")
            return False

        report = await self._scheduler.deliver(payload, self._send_variant)
        if report.succeeded:
            self._record_success(payload, report)
            return True
        if report.should_queue:
            await self._enqueue(payload, reason="retries_exhausted")
        else:
            self._record_rejection(payload, report)
        return False

    async def send_with_local_validation(
        self,
        event: Event,
        identity: IdentityContext | None = None,
    ) -> bool:
        """Validate ``event`` locally and send it only when no errors are found."""
        result = self._validator.validate(event, identity)
        if not result.valid:
            self._event_logger.log_send_blocked(event.name, result.errors)
            return False
        if result.warnings:
            self._event_logger.log_send_warnings(event.name, result.warnings)
        return await self.send(event, identity)

    async def send_with_background_validation(
        self,
        event: Event,
        identity: IdentityContext | None = None,
    ) -> bool:
        """Start collector validation in the background, then send ``event``."""
        self.validate_in_background(event, identity)
        return await self.send(event, identity)

    @property
    def _send_variant(self) -> EndpointVariant:
        if self._config.debug_mode:
            return EndpointVariant.DEBUG
        return EndpointVariant.PRODUCTION

    def _record_success(self, payload: Payload, report: DeliveryReport) -> None:
        self._event_logger.log_send_succeeded(
            payload.event_names,
            attempts=report.attempts,
            variant=report.result.variant,
        )
        for message in report.result.validation_messages:
            self._event_logger.log_debug_message(payload.event_names, message)

    def _record_rejection(self, payload: Payload, report: DeliveryReport) -> None:
        self._event_logger.log_send_rejected(
            payload.event_names,
            status_code=report.result.status_code,
            detail=report.result.detail,
        )

    # Queue

    async def _enqueue(self, payload: Payload, *, reason: str) -> None:
        evicted = self._queue.enqueue(payload)
        if evicted is not None:
            self._event_logger.log_queue_evicted(
                evicted.payload.event_names,
                enqueued_at=evicted.enqueued_at,
                capacity=self._queue.capacity,
            )
        self._event_logger.log_event_queued(
            payload.event_names,
            reason=reason,
            queue_size=self._queue.size(),
        )
        await self._persist()

    async def _persist(self) -> None:
        if self._store is None:
            return
        # Merge the previous run's entries before the first save replaces them.
        if not self._restored:
            await self._load_persisted()
        await self._store.save(self._queue.entries())

    async def _load_persisted(self) -> None:
        if self._store is None:
            return
        self._restored = True
        try:
            entries = await self._store.load()
        except QueueStoreError as exc:
            self._event_logger.log_queue_restore_failed(exc)
            return
        self._queue.restore(entries)

    async def drain_queue(self) -> int:
        """Resend queued payloads in insertion order.

        Each entry goes through the same retry path as a fresh send. Entries
        that are delivered or rejected with a client error leave the queue;
        entries that still fail stay for the next drain. Attempts stop once
        the service goes offline or is disabled. A drain requested while one
        is running returns ``0`` immediately.

        Returns
        -------
        int
            Number of entries removed from the queue.

        """
        if self._draining or not self._queue.size():
            return 0

        self._draining = True
        started = self._clock()
        self._event_logger.log_drain_started(self._queue.size())
        try:
            settled = await self._queue.drain_all(self._drain_entry)
        finally:
            self._draining = False

        if settled:
            await self._persist()
        self._event_logger.log_drain_completed(
            settled=settled,
            remaining=self._queue.size(),
            duration_s=self._clock() - started,
        )
        return settled

    async def _drain_entry(self, entry: QueueEntry) -> bool:
        if not self._online or not self.is_enabled():
            return False

        payload = entry.payload
        report = await self._scheduler.deliver(payload, self._send_variant)
        if self._config.drain_interval_s > 0:
            await self._sleep(self._config.drain_interval_s)
        if report.succeeded:
            self._record_success(payload, report)
            return True
        if report.result.outcome is AttemptOutcome.CLIENT_ERROR:
            self._record_rejection(payload, report)
            return True
        return False

    async def clear_queue(self) -> int:
        """Drop every queued payload and return how many were removed."""
        removed = self._queue.clear()
        self._event_logger.log_queue_cleared(removed)
        self._restored = True
        await self._persist()
        return removed

    async def restore_queue(self) -> int:
        """Load persisted entries into the queue.

        Persisted entries are placed ahead of payloads queued by this run,
        and entries already held are skipped. The same merge runs
        automatically before the first save, so queueing before calling this
        never discards the previous run's entries. Unreadable persisted state
        is logged and treated as empty.

        Returns
        -------
        int
            Number of entries held after restoring.

        """
        await self._load_persisted()
        return self._queue.size()

    # Collector validation

    async def validate_against_collector(
        self,
        event: Event,
        identity: IdentityContext | None = None,
    ) -> ValidationResult:
        """Validate ``event`` with one round trip to the debug endpoint.

        Coded collector messages become warnings and uncoded messages
        errors; the result is valid only when the collector returns no
        messages. Events that cannot be assembled or serialized are
        reported with their local errors and never sent.
        """
        local = self._validator.validate(event, identity)
        if local.payload is None or IssueType.UNSERIALIZABLE_PAYLOAD in local.issue_types:
            return ValidationResult.from_issues(errors=local.errors, payload=local.payload)
        if not self._config.is_configured():
            return unconfigured_result(local.payload)

        result = await self._transport.attempt(local.payload, EndpointVariant.DEBUG)
        return classify_transport_result(result, local.payload)

    def validate_in_background(
        self,
        event: Event,
        identity: IdentityContext | None = None,
    ) -> asyncio.Task[ValidationResult | None]:
        """Schedule collector validation without waiting for it.

        The outcome is reported through the event logger. The returned task
        may be awaited, but callers on the send path should not.
        """
        task = asyncio.create_task(self._validate_and_log(event, identity))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _validate_and_log(
        self,
        event: Event,
        identity: IdentityContext | None,
    ) -> ValidationResult | None:
        started = self._clock()
        try:
            result = await self.validate_against_collector(event, identity)
        except Exception as exc:  # noqa: BLE001
            self._event_logger.log_validation_crashed(str(event.name), exc)
            return None
        self._event_logger.log_validation_outcome(
            str(event.name),
            result,
            validation_ms=(self._clock() - started) * 1000,
        )
        return result

    async def batch_validate(
        self,
        events: cabc.Iterable[Event],
        identity: IdentityContext | None = None,
    ) -> list[ValidationResult]:
        """Validate ``events`` concurrently against the debug endpoint.

        Results are returned in input order and an aggregate pass/fail
        count is logged.
        """
        results = list(
            await asyncio.gather(
                *(self.validate_against_collector(event, identity) for event in events),
            )
        )
        passed = sum(1 for result in results if result.valid)
        self._event_logger.log_batch_completed(
            total=len(results),
            passed=passed,
            failed=len(results) - passed,
        )
        return results

    async def check_collector_connectivity(self) -> ValidationResult:
        """Validate a canned test event to confirm the collector is reachable."""
        return await self.validate_against_collector(
            CONNECTIVITY_TEST_EVENT,
            CONNECTIVITY_TEST_IDENTITY,
        )

    async def aclose(self) -> None:
        """Wait for background validations and close owned resources."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks)
        if self._owns_transport:
            await self._transport.aclose()

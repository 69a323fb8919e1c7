"""Unit tests for the delivery service orchestration."""

from __future__ import annotations

import contextlib
import dataclasses as dc
import typing as typ

import httpx
import msgspec
import pytest

from courier.delivery.filesystem_store import FilesystemQueueStore
from courier.delivery.service import DeliveryService
from courier.events.models import Event, IdentityContext
from courier.transport.client import TransportClient
from courier.transport.config import CollectorConfig
from courier.validation.models import IssueType
from tests.helpers.collector import (
    FakeClock,
    RecordingEventLogger,
    RecordingSleep,
    ScriptedCollector,
    debug_reply,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path


@contextlib.asynccontextmanager
async def create_service(
    config: CollectorConfig,
    collector: httpx.AsyncBaseTransport,
    **kwargs: typ.Any,
) -> cabc.AsyncIterator[DeliveryService]:
    """Create a DeliveryService over ``collector``, handling cleanup."""
    client = httpx.AsyncClient(transport=collector)
    service = DeliveryService(
        config,
        transport=TransportClient(config, http_client=client),
        **kwargs,
    )
    try:
        yield service
    finally:
        await service.aclose()
        await client.aclose()


@pytest.fixture
def sleep() -> RecordingSleep:
    """Return a sleep recorder."""
    return RecordingSleep()


@pytest.fixture
def event_logger() -> RecordingEventLogger:
    """Return an event logger that records calls."""
    return RecordingEventLogger()


class TestSend:
    """Tests for ``DeliveryService.send``."""

    @pytest.mark.asyncio
    async def test_login_scenario(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
    ) -> None:
        """A successful send issues exactly one call with the assembled body."""
        collector = ScriptedCollector(httpx.Response(204))

        async with create_service(collector_config, collector) as service:
            delivered = await service.send(login_event, identity)

        assert delivered is True
        assert collector.call_count == 1
        (body,) = collector.bodies()
        (event,) = body["events"]
        assert event["params"]["session_id"] == "s1"
        assert isinstance(event["params"]["engagement_time_msec"], int)
        assert collector.paths() == ["/mp/collect"]

    @pytest.mark.asyncio
    async def test_offline_send_queues_without_network(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
    ) -> None:
        """Offline sends never touch the transport and grow the queue by one."""
        collector = ScriptedCollector()

        async with create_service(collector_config, collector, online=False) as service:
            assert await service.send(login_event, identity) is False
            assert await service.send(login_event, identity) is False
            size = service.queue_size()

        assert collector.call_count == 0
        assert size == 2

    @pytest.mark.asyncio
    async def test_client_error_drops_payload(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        sleep: RecordingSleep,
        event_logger: RecordingEventLogger,
    ) -> None:
        """A 4xx makes one call, returns False, and does not queue."""
        collector = ScriptedCollector(httpx.Response(400, text="malformed"))

        async with create_service(
            collector_config, collector, sleep=sleep, event_logger=event_logger
        ) as service:
            delivered = await service.send(login_event, identity)
            size = service.queue_size()

        assert delivered is False
        assert collector.call_count == 1
        assert size == 0
        assert event_logger.rejections == [400]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_until_success(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        sleep: RecordingSleep,
    ) -> None:
        """Three failures then success yields four calls and 1/2/4 s waits."""
        collector = ScriptedCollector(
            httpx.Response(500),
            httpx.ConnectError("offline"),
            httpx.Response(503),
            httpx.Response(200),
        )

        async with create_service(collector_config, collector, sleep=sleep) as service:
            delivered = await service.send(login_event, identity)
            size = service.queue_size()

        assert delivered is True
        assert collector.call_count == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert size == 0

    @pytest.mark.asyncio
    async def test_exhausted_retries_queue_payload(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        sleep: RecordingSleep,
    ) -> None:
        """Four failed attempts return False and queue the payload once."""
        collector = ScriptedCollector(httpx.Response(500))

        async with create_service(collector_config, collector, sleep=sleep) as service:
            delivered = await service.send(login_event, identity)
            entries = service.queue.entries()

        assert delivered is False
        assert collector.call_count == 4
        assert len(entries) == 1
        assert entries[0].payload.client_id == "c1"

    @pytest.mark.asyncio
    async def test_queue_is_capped(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
        event_logger: RecordingEventLogger,
    ) -> None:
        """The 101st queued event keeps the queue at 100 entries."""
        async with create_service(
            collector_config, ScriptedCollector(), online=False, event_logger=event_logger
        ) as service:
            for index in range(101):
                await service.send(Event(name=f"e{index}", params={}), identity)
            size = service.queue_size()
            first = service.queue.entries()[0].payload.event_names

        assert size == 100
        assert event_logger.evictions == [("e0",)]
        assert first == ("e1",)

    @pytest.mark.asyncio
    async def test_disabled_service_makes_no_calls(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        event_logger: RecordingEventLogger,
    ) -> None:
        """Disabling suppresses sends and re-enabling restores them."""
        collector = ScriptedCollector()

        async with create_service(
            collector_config, collector, event_logger=event_logger
        ) as service:
            service.set_enabled(False)
            disabled_result = await service.send(login_event, identity)
            disabled_state = service.is_enabled()
            service.set_enabled(True)
            enabled_result = await service.send(login_event, identity)

        assert disabled_result is False
        assert disabled_state is False
        assert enabled_result is True
        assert collector.call_count == 1, "only the re-enabled send reaches the network"
        assert event_logger.skips == ["disabled"]

    @pytest.mark.asyncio
    async def test_unconfigured_service_makes_no_calls(
        self,
        login_event: Event,
        identity: IdentityContext,
    ) -> None:
        """Missing credentials turn sends into no-ops."""
        collector = ScriptedCollector()

        async with create_service(CollectorConfig(), collector) as service:
            delivered = await service.send(login_event, identity)
            enabled = service.is_enabled()

        assert delivered is False
        assert enabled is False
        assert collector.call_count == 0

    @pytest.mark.asyncio
    async def test_debug_mode_routes_to_debug_endpoint(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        event_logger: RecordingEventLogger,
    ) -> None:
        """Debug mode sends through the debug endpoint and logs diagnostics."""
        config = dc.replace(collector_config, debug_mode=True)
        collector = ScriptedCollector(
            debug_reply({"validation_code": "VALUE_INVALID", "description": "bad"})
        )

        async with create_service(config, collector, event_logger=event_logger) as service:
            delivered = await service.send(login_event, identity)

        assert delivered is True
        assert collector.paths() == ["/debug/mp/collect"]
        assert [message.validation_code for message in event_logger.debug_messages] == [
            "VALUE_INVALID"
        ]


class TestSendWithLocalValidation:
    """Tests for ``send_with_local_validation``."""

    @pytest.mark.asyncio
    async def test_missing_name_blocks_send(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
    ) -> None:
        """Events failing local validation never reach the network."""
        collector = ScriptedCollector()
        event = Event(name=None, params={})  # type: ignore[arg-type]

        async with create_service(collector_config, collector) as service:
            delivered = await service.send_with_local_validation(event, identity)

        assert delivered is False
        assert collector.call_count == 0

    @pytest.mark.asyncio
    async def test_warnings_do_not_block_send(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
    ) -> None:
        """Placeholder identity warns but the event is still delivered."""
        collector = ScriptedCollector()

        async with create_service(collector_config, collector) as service:
            delivered = await service.send_with_local_validation(login_event, None)

        assert delivered is True
        assert collector.call_count == 1
        assert collector.bodies()[0]["client_id"] == "placeholder_client_id"


class TestQueueDrain:
    """Tests for connectivity handling and queue drains."""

    @pytest.mark.asyncio
    async def test_reconnect_drains_in_order(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
    ) -> None:
        """Coming back online resends queued payloads oldest first."""
        collector = ScriptedCollector()

        async with create_service(collector_config, collector, online=False) as service:
            await service.send(Event(name="first", params={}), identity)
            await service.send(Event(name="second", params={}), identity)
            await service.handle_connectivity_change(True)
            size = service.queue_size()
            online = service.is_online()

        assert online is True
        assert size == 0
        assert [body["events"][0]["name"] for body in collector.bodies()] == [
            "first",
            "second",
        ]

    @pytest.mark.asyncio
    async def test_staying_online_does_not_drain(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
    ) -> None:
        """Only an offline to online transition triggers a drain."""
        collector = ScriptedCollector(httpx.Response(500))
        sleep = RecordingSleep()

        async with create_service(collector_config, collector, sleep=sleep) as service:
            await service.send(login_event, identity)
            calls_after_send = collector.call_count
            await service.handle_connectivity_change(True)
            calls_after_event = collector.call_count

        assert calls_after_send == calls_after_event == 4

    @pytest.mark.asyncio
    async def test_drain_drops_client_errors_and_keeps_failures(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
        sleep: RecordingSleep,
    ) -> None:
        """Rejected entries leave the queue; still-failing entries stay."""
        collector = ScriptedCollector(
            httpx.Response(400),
            httpx.Response(500),
        )

        async with create_service(
            collector_config, collector, online=False, sleep=sleep
        ) as service:
            await service.send(Event(name="rejected", params={}), identity)
            await service.send(Event(name="flaky", params={}), identity)
            await service.handle_connectivity_change(True)
            remaining = [entry.payload.event_names for entry in service.queue.entries()]

        assert remaining == [("flaky",)]
        assert collector.call_count == 5, "one rejected call plus four retried calls"

    @pytest.mark.asyncio
    async def test_drain_pauses_between_entries(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
        sleep: RecordingSleep,
    ) -> None:
        """The drain interval is awaited after each drained entry."""
        config = dc.replace(collector_config, drain_interval_s=0.1)

        async with create_service(
            config, ScriptedCollector(), online=False, sleep=sleep
        ) as service:
            await service.send(Event(name="a", params={}), identity)
            await service.send(Event(name="b", params={}), identity)
            await service.handle_connectivity_change(True)

        assert sleep.delays == [0.1, 0.1]

    @pytest.mark.asyncio
    async def test_concurrent_drain_is_not_restarted(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
    ) -> None:
        """A drain requested while one is running returns immediately."""
        config = dc.replace(collector_config, drain_interval_s=0.1)
        nested: list[int] = []
        holder: dict[str, DeliveryService] = {}

        async def reentrant_sleep(delay: float) -> None:
            del delay
            nested.append(await holder["service"].drain_queue())

        collector = ScriptedCollector()
        async with create_service(
            config, collector, online=False, sleep=reentrant_sleep
        ) as service:
            holder["service"] = service
            await service.send(Event(name="a", params={}), identity)
            await service.handle_connectivity_change(True)

        assert nested == [0]
        assert collector.call_count == 1

    @pytest.mark.asyncio
    async def test_going_offline_mid_drain_stops_attempts(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
    ) -> None:
        """Entries after a disconnect stay queued without being attempted."""
        config = dc.replace(collector_config, drain_interval_s=0.1)
        holder: dict[str, DeliveryService] = {}

        async def disconnecting_sleep(delay: float) -> None:
            del delay
            await holder["service"].handle_connectivity_change(False)

        collector = ScriptedCollector()
        async with create_service(
            config, collector, online=False, sleep=disconnecting_sleep
        ) as service:
            holder["service"] = service
            await service.send(Event(name="a", params={}), identity)
            await service.send(Event(name="b", params={}), identity)
            await service.handle_connectivity_change(True)
            remaining = [entry.payload.event_names for entry in service.queue.entries()]

        assert collector.call_count == 1
        assert remaining == [("b",)]

    @pytest.mark.asyncio
    async def test_clear_queue(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
    ) -> None:
        """clear_queue() drops every entry."""
        async with create_service(
            collector_config, ScriptedCollector(), online=False
        ) as service:
            await service.send(login_event, identity)
            removed = await service.clear_queue()
            size = service.queue_size()

        assert removed == 1
        assert size == 0


class TestQueuePersistence:
    """Tests for store-backed queues."""

    @pytest.mark.asyncio
    async def test_queue_survives_restart(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        tmp_path: Path,
    ) -> None:
        """Entries saved by one service are restored by the next."""
        store = FilesystemQueueStore(tmp_path / "queue.json")

        async with create_service(
            collector_config, ScriptedCollector(), online=False, store=store
        ) as service:
            await service.send(login_event, identity)

        async with create_service(
            collector_config, ScriptedCollector(), store=store
        ) as restarted:
            restored = await restarted.restore_queue()
            names = [entry.payload.event_names for entry in restarted.queue.entries()]

        assert restored == 1
        assert names == [("login",)]

    @pytest.mark.asyncio
    async def test_queueing_before_restore_keeps_previous_entries(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
        tmp_path: Path,
    ) -> None:
        """A new run that queues before restoring keeps FIFO order across runs."""
        store = FilesystemQueueStore(tmp_path / "queue.json")

        async with create_service(
            collector_config, ScriptedCollector(), online=False, store=store
        ) as first_run:
            await first_run.send(Event(name="old", params={}), identity)

        async with create_service(
            collector_config, ScriptedCollector(), online=False, store=store
        ) as second_run:
            await second_run.send(Event(name="new", params={}), identity)
            restored = await second_run.restore_queue()
            names = [entry.payload.event_names for entry in second_run.queue.entries()]

        persisted = [entry.payload.event_names for entry in await store.load()]
        assert names == [("old",), ("new",)], f"unexpected queue {names!r}"
        assert restored == 2
        assert persisted == [("old",), ("new",)], "store should hold both runs' entries"

    @pytest.mark.asyncio
    async def test_clear_queue_discards_persisted_entries(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        tmp_path: Path,
    ) -> None:
        """Clearing empties the store even when nothing was restored yet."""
        store = FilesystemQueueStore(tmp_path / "queue.json")

        async with create_service(
            collector_config, ScriptedCollector(), online=False, store=store
        ) as first_run:
            await first_run.send(login_event, identity)

        async with create_service(
            collector_config, ScriptedCollector(), store=store
        ) as second_run:
            await second_run.clear_queue()

        assert await store.load() == []

    @pytest.mark.asyncio
    async def test_corrupt_store_starts_empty(
        self,
        collector_config: CollectorConfig,
        event_logger: RecordingEventLogger,
        tmp_path: Path,
    ) -> None:
        """Unreadable persisted state is logged and ignored."""
        path = tmp_path / "queue.json"
        path.write_text("[{", encoding="utf-8")

        async with create_service(
            collector_config,
            ScriptedCollector(),
            store=FilesystemQueueStore(path),
            event_logger=event_logger,
        ) as service:
            restored = await service.restore_queue()

        assert restored == 0
        assert len(event_logger.restore_failures) == 1


class TestCollectorValidation:
    """Tests for debug-endpoint validation."""

    @pytest.mark.asyncio
    async def test_empty_messages_are_valid(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
    ) -> None:
        """No diagnostics means the event is valid."""
        collector = ScriptedCollector(debug_reply())

        async with create_service(collector_config, collector) as service:
            result = await service.validate_against_collector(login_event, identity)

        assert result.valid
        assert collector.paths() == ["/debug/mp/collect"]

    @pytest.mark.asyncio
    async def test_coded_and_uncoded_messages(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
    ) -> None:
        """Coded messages warn, uncoded ones error."""
        collector = ScriptedCollector(
            debug_reply(
                {"validation_code": "VALUE_INVALID", "description": "bad value"},
                {"description": "events is required", "field_path": "events"},
            )
        )

        async with create_service(collector_config, collector) as service:
            result = await service.validate_against_collector(login_event, identity)

        assert not result.valid
        assert [issue.type for issue in result.warnings] == ["VALUE_INVALID"]
        assert [issue.type for issue in result.errors] == [IssueType.COLLECTOR_ERROR]

    @pytest.mark.asyncio
    async def test_validation_is_not_retried(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        sleep: RecordingSleep,
    ) -> None:
        """Server errors during validation become an error after one call."""
        collector = ScriptedCollector(httpx.Response(500, text="boom"))

        async with create_service(collector_config, collector, sleep=sleep) as service:
            result = await service.validate_against_collector(login_event, identity)

        assert result.issue_types == (IssueType.COLLECTOR_HTTP_ERROR,)
        assert collector.call_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_unconfigured_collector(
        self,
        login_event: Event,
        identity: IdentityContext,
    ) -> None:
        """Validation without credentials reports an error without a request."""
        collector = ScriptedCollector()

        async with create_service(CollectorConfig(), collector) as service:
            result = await service.validate_against_collector(login_event, identity)

        assert result.issue_types == (IssueType.COLLECTOR_UNCONFIGURED,)
        assert collector.call_count == 0

    @pytest.mark.asyncio
    async def test_unassemblable_event_is_not_sent(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
    ) -> None:
        """Events without a name are reported locally."""
        collector = ScriptedCollector()
        event = Event(name="", params={})

        async with create_service(collector_config, collector) as service:
            result = await service.validate_against_collector(event, identity)

        assert result.issue_types == (IssueType.MISSING_EVENT_NAME,)
        assert collector.call_count == 0

    @pytest.mark.asyncio
    async def test_connectivity_check_uses_test_identity(
        self,
        collector_config: CollectorConfig,
    ) -> None:
        """The connectivity probe sends the canned debug_test event."""
        collector = ScriptedCollector(debug_reply())

        async with create_service(collector_config, collector) as service:
            result = await service.check_collector_connectivity()

        assert result.valid
        (body,) = collector.bodies()
        assert body["client_id"] == "debug_test_client"
        (event,) = body["events"]
        assert event["name"] == "debug_test"
        assert event["params"]["test_parameter"] == "debug_connectivity_test"
        assert event["params"]["session_id"] == "debug_test_session"


class _NameAwareCollector(httpx.AsyncBaseTransport):
    """Debug collector flagging any event named ``bad``."""

    def __init__(self) -> None:
        self.calls = 0

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Return an uncoded message for bad events, none otherwise."""
        self.calls += 1
        body = msgspec.json.decode(await request.aread())
        if body["events"][0]["name"] == "bad":
            return debug_reply({"description": "structurally invalid"})
        return debug_reply()


class _ExplodingTransport(TransportClient):
    """Transport whose attempts fail with an unexpected exception."""

    async def attempt(self, payload: typ.Any, variant: typ.Any = None) -> typ.Any:
        """Raise instead of returning a result."""
        del payload, variant
        msg = "collector client bug"
        raise RuntimeError(msg)


class TestBackgroundValidation:
    """Tests for background and batch validation."""

    @pytest.mark.asyncio
    async def test_background_validation_logs_outcome(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        event_logger: RecordingEventLogger,
    ) -> None:
        """The outcome is logged with the elapsed validation time."""
        collector = ScriptedCollector(
            debug_reply({"validation_code": "NAME_INVALID", "description": "bad"})
        )

        async with create_service(
            collector_config,
            collector,
            clock=FakeClock(step=0.25),
            event_logger=event_logger,
        ) as service:
            task = service.validate_in_background(login_event, identity)
            result = await task

        assert result is not None
        assert not result.valid
        ((name, logged, validation_ms),) = event_logger.validation_outcomes
        assert name == "login"
        assert logged is result
        assert validation_ms == pytest.approx(250.0)

    @pytest.mark.asyncio
    async def test_background_crash_is_logged(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        event_logger: RecordingEventLogger,
    ) -> None:
        """Unexpected failures are logged rather than raised."""
        async with httpx.AsyncClient(transport=ScriptedCollector()) as client:
            service = DeliveryService(
                collector_config,
                transport=_ExplodingTransport(collector_config, http_client=client),
                event_logger=event_logger,
            )
            result = await service.validate_in_background(login_event, identity)
            await service.aclose()

        assert result is None
        ((name, error),) = event_logger.crashes
        assert name == "login"
        assert isinstance(error, RuntimeError)

    @pytest.mark.asyncio
    async def test_send_does_not_wait_for_background_validation(
        self,
        collector_config: CollectorConfig,
        login_event: Event,
        identity: IdentityContext,
        event_logger: RecordingEventLogger,
    ) -> None:
        """The send completes before the detached validation reports."""
        collector = ScriptedCollector(httpx.Response(204))

        async with create_service(
            collector_config, collector, event_logger=event_logger
        ) as service:
            delivered = await service.send_with_background_validation(login_event, identity)

        assert delivered is True
        assert sorted(collector.paths()) == ["/debug/mp/collect", "/mp/collect"]
        assert len(event_logger.validation_outcomes) == 1, "aclose awaits the task"

    @pytest.mark.asyncio
    async def test_batch_validate_preserves_order(
        self,
        collector_config: CollectorConfig,
        identity: IdentityContext,
        event_logger: RecordingEventLogger,
    ) -> None:
        """Results follow input order and the aggregate is logged."""
        collector = _NameAwareCollector()
        events = [
            Event(name="good", params={}),
            Event(name="bad", params={}),
            Event(name="fine", params={}),
        ]

        async with create_service(
            collector_config, collector, event_logger=event_logger
        ) as service:
            results = await service.batch_validate(events, identity)

        assert [result.valid for result in results] == [True, False, True]
        assert collector.calls == 3
        assert event_logger.batches == [{"total": 3, "passed": 2, "failed": 1}]

"""Offline-safe delivery of events to the collector.

Public API
----------
DeliveryService
    Orchestrates gating, retries, queueing, and collector validation.
DeliveryQueue
    Bounded FIFO of payloads awaiting delivery; evicts the oldest entry.
QueueEntry
    Queued payload with its enqueue timestamp.
QueueStore
    Protocol for persisting the queue across restarts.
FilesystemQueueStore
    JSON file adapter for ``QueueStore``.
QueueStoreError
    Raised when persisted queue state cannot be read.

Examples
--------
>>> from courier.delivery import DeliveryService
>>> from courier.events import Event, IdentityContext
>>> from courier.transport import CollectorConfig
>>> service = DeliveryService(CollectorConfig.from_env())
>>> await service.send(
...     Event(name="login", params={"method": "email"}),
...     IdentityContext(client_id="c1", session_id="s1"),
... )
True

"""

from __future__ import annotations

from .filesystem_store import FilesystemQueueStore
from .queue import DEFAULT_QUEUE_CAPACITY, DeliveryQueue, DrainHandler, QueueEntry
from .service import (
    CONNECTIVITY_TEST_EVENT,
    CONNECTIVITY_TEST_IDENTITY,
    DeliveryService,
)
from .store import QueueStore, QueueStoreError

__all__ = [
    "CONNECTIVITY_TEST_EVENT",
    "CONNECTIVITY_TEST_IDENTITY",
    "DEFAULT_QUEUE_CAPACITY",
    "DeliveryQueue",
    "DeliveryService",
    "DrainHandler",
    "FilesystemQueueStore",
    "QueueEntry",
    "QueueStore",
    "QueueStoreError",
]

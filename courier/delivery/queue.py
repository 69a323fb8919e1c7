"""Bounded FIFO of payloads awaiting delivery."""

from __future__ import annotations

import collections
import datetime as dt  # noqa: TC003
import typing as typ

import msgspec

from courier.events.models import Payload  # noqa: TC001

if typ.TYPE_CHECKING:
    import collections.abc as cabc

DEFAULT_QUEUE_CAPACITY = 100


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class QueueEntry(msgspec.Struct, kw_only=True, frozen=True):
    """A payload that could not be delivered yet.

    Attributes
    ----------
    payload
        Payload to resend unchanged.
    enqueued_at
        Aware UTC timestamp of when the payload was queued.

    """

    payload: Payload
    enqueued_at: dt.datetime


type DrainHandler = cabc.Callable[[QueueEntry], cabc.Awaitable[bool]]


def _entry_key(entry: QueueEntry) -> bytes:
    # Payload params are dicts, so entries are compared by their encoding.
    return msgspec.json.encode(entry)


class DeliveryQueue:
    """In-memory FIFO bounded to ``capacity`` entries.

    When full, enqueueing evicts the oldest entry. Entries leave the queue
    only through a successful drain, eviction, or ``clear()``.

    Parameters
    ----------
    capacity
        Maximum number of entries held.
    now
        Clock used to stamp new entries.

    """

    def __init__(
        self,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
        *,
        now: cabc.Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        """Create an empty queue."""
        if capacity < 1:
            msg = f"capacity must be >= 1, got {capacity}"
            raise ValueError(msg)
        self._capacity = capacity
        self._now = now
        self._entries: collections.deque[QueueEntry] = collections.deque()

    @property
    def capacity(self) -> int:
        """Return the maximum number of entries."""
        return self._capacity

    def __len__(self) -> int:
        """Return the number of queued entries."""
        return len(self._entries)

    def size(self) -> int:
        """Return the number of queued entries."""
        return len(self._entries)

    def entries(self) -> tuple[QueueEntry, ...]:
        """Return a snapshot of the entries in insertion order."""
        return tuple(self._entries)

    def enqueue(self, payload: Payload) -> QueueEntry | None:
        """Append ``payload`` and return the entry evicted to make room, if any."""
        evicted = self._entries.popleft() if len(self._entries) >= self._capacity else None
        self._entries.append(QueueEntry(payload=payload, enqueued_at=self._now()))
        return evicted

    def restore(self, entries: cabc.Iterable[QueueEntry]) -> int:
        """Merge previously persisted entries in front of the live ones.

        Persisted entries are older than anything queued since, so they go
        first. Entries already held (same payload and timestamp) are
        skipped, and overflow drops the oldest entries.

        Returns
        -------
        int
            Number of entries now held.

        """
        seen = {_entry_key(entry) for entry in self._entries}
        restored: list[QueueEntry] = []
        for entry in entries:
            key = _entry_key(entry)
            if key not in seen:
                seen.add(key)
                restored.append(entry)
        merged = [*restored, *self._entries]
        self._entries = collections.deque(merged[-self._capacity :])
        return len(self._entries)

    def clear(self) -> int:
        """Drop every entry and return how many were removed."""
        removed = len(self._entries)
        self._entries.clear()
        return removed

    def _discard(self, entry: QueueEntry) -> bool:
        for index, candidate in enumerate(self._entries):
            if candidate is entry:
                del self._entries[index]
                return True
        return False

    def _contains(self, entry: QueueEntry) -> bool:
        return any(candidate is entry for candidate in self._entries)

    async def drain_all(self, handler: DrainHandler) -> int:
        """Offer each entry to ``handler`` in insertion order.

        The entries are snapshotted when the drain starts; entries enqueued
        during the drain wait for the next one, and entries evicted or
        cleared meanwhile are skipped. An entry is removed only after
        ``handler`` returns ``True`` for it.

        Returns
        -------
        int
            Number of entries removed by this drain.

        """
        removed = 0
        for entry in tuple(self._entries):
            if not self._contains(entry):
                continue
            if await handler(entry) and self._discard(entry):
                removed += 1
        return removed

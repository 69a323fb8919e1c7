"""QueueStore protocol for persisting undelivered payloads.

The delivery queue lives in memory. Hosts that may be suspended or restarted
can layer persistence on top by supplying a ``QueueStore`` adapter; the
delivery service saves the queue after every mutation and restores it on
request.

Usage
-----
>>> from pathlib import Path
>>> from courier.delivery.store import QueueStore
>>> from courier.delivery.filesystem_store import FilesystemQueueStore
>>> isinstance(FilesystemQueueStore(Path("queue.json")), QueueStore)
True

"""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .queue import QueueEntry


class QueueStoreError(RuntimeError):
    """Raised when persisted queue state cannot be read."""

    @classmethod
    def corrupt(cls, location: str, detail: str) -> QueueStoreError:
        """Return an error for undecodable persisted state."""
        return cls(f"Persisted queue at {location} is unreadable: {detail}")


@typ.runtime_checkable
class QueueStore(typ.Protocol):
    """Protocol for loading and saving queue entries."""

    async def load(self) -> list[QueueEntry]:
        """Return persisted entries in insertion order (empty when none).

        Raises
        ------
        QueueStoreError
            If persisted state exists but cannot be decoded.

        """
        ...

    async def save(self, entries: cabc.Sequence[QueueEntry]) -> None:
        """Replace persisted state with ``entries``."""
        ...

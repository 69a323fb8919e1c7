r"""Filesystem adapter for the QueueStore protocol.

Entries are written as a msgspec JSON array to a single file. Writes go to a
sibling temporary file first and are then moved into place, so a process
killed mid-write leaves the previous state intact.

Usage
-----
>>> import asyncio
>>> from pathlib import Path
>>> store = FilesystemQueueStore(Path("/var/lib/courier/queue.json"))
>>> entries = asyncio.run(store.load())

"""

from __future__ import annotations

import asyncio
import typing as typ

import msgspec

from .queue import QueueEntry
from .store import QueueStoreError

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

_ENTRY_LIST_DECODER = msgspec.json.Decoder(list[QueueEntry])


class FilesystemQueueStore:
    """Persist queue entries to a JSON file.

    Parameters
    ----------
    path
        File holding the queue. Parent directories are created on save.

    """

    def __init__(self, path: Path) -> None:
        """Initialise the store with its file path."""
        self._path = path

    @property
    def path(self) -> Path:
        """Return the file backing this store."""
        return self._path

    async def load(self) -> list[QueueEntry]:
        """Read persisted entries; a missing file yields an empty list."""
        exists = await asyncio.to_thread(self._path.exists)
        if not exists:
            return []
        raw = await asyncio.to_thread(self._path.read_bytes)
        if not raw.strip():
            return []
        try:
            return _ENTRY_LIST_DECODER.decode(raw)
        except msgspec.DecodeError as exc:
            raise QueueStoreError.corrupt(str(self._path), str(exc)) from exc

    async def save(self, entries: cabc.Sequence[QueueEntry]) -> None:
        """Atomically replace the file contents with ``entries``."""
        data = msgspec.json.encode(list(entries))
        await asyncio.to_thread(self._write, data)

    def _write(self, data: bytes) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(self._path)

"""Per-key mutual exclusion for freeze read-modify-write cycles.

Trading loops report outcomes from several threads at once. Each mutation
reads a row, computes the next state and writes selected columns back, so two
unserialised losses on the same key could both read the same count and one
increment would be lost. The registry hands out one lock per key; locks for
different keys are independent.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Hashable, Iterator


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class KeyLockRegistry:
    """Arena of reference-counted locks, created on demand and dropped when idle."""

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key: Hashable):
        with self._guard:
            entry = self._entries[key]
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: Hashable) -> Iterator[None]:
        """Hold the locks of all ``keys`` for the duration of the block.

        Keys are locked in sorted order so that two multi-key holders cannot
        deadlock. Locks are not re-entrant: do not nest holds on the same key.
        """
        ordered = sorted(set(keys))
        entries = [self._checkout(key) for key in ordered]
        acquired = []
        try:
            for entry in entries:
                entry.lock.acquire()
                acquired.append(entry)
            yield
        finally:
            for entry in reversed(acquired):
                entry.lock.release()
            for key in ordered:
                self._checkin(key)

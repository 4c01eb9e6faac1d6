from __future__ import annotations

import time
from collections import OrderedDict
from typing import Protocol


class SeenEventStore(Protocol):
    """Tracks which event ids have already been delivered.

    Contract: if `seen(event_id)` is True the event must not be delivered again.
    """

    def seen(self, event_id: str) -> bool:
        ...

    def mark(self, event_id: str, *, ttl_seconds: int) -> None:
        ...


class InMemorySeenEventStore:
    """Bounded in-memory store; oldest entries are evicted first."""

    def __init__(self, *, max_entries: int = 10_000) -> None:
        self._seen: OrderedDict[str, float] = OrderedDict()
        self.max_entries = max_entries

    def _expire(self, now: float) -> None:
        expired = [k for k, exp in self._seen.items() if exp <= now]
        for k in expired:
            self._seen.pop(k, None)

    def seen(self, event_id: str) -> bool:
        self._expire(time.time())
        return event_id in self._seen

    def mark(self, event_id: str, *, ttl_seconds: int) -> None:
        self._seen[event_id] = time.time() + ttl_seconds
        self._seen.move_to_end(event_id)
        while len(self._seen) > self.max_entries:
            self._seen.popitem(last=False)

    def __len__(self) -> int:
        return len(self._seen)

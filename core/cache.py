import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


def request_key(url: str, page_size: int, max_pages: int) -> str:
    return json.dumps({"url": url.strip(), "pageSize": page_size, "maxPages": max_pages}, sort_keys=True)


@dataclass
class _Entry(Generic[V]):
    stored_at: float
    value: V


class TTLCache(Generic[V]):
    """In-process memo with per-entry expiry.

    Mutations happen on the event loop thread only; there is no locking.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry[V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: _Entry[V]) -> bool:
        return self._clock() - entry.stored_at > self.ttl_seconds

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = _Entry(self._clock(), value)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def purge_expired(self) -> int:
        stale = [key for key, entry in self._entries.items() if self._expired(entry)]
        for key in stale:
            del self._entries[key]
        return len(stale)

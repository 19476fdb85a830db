import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

QUOTA_TTL_SECONDS = 8.0
BILLING_TTL_SECONDS = 30.0


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    key: "str"
    payload: "T"
    # seconds since epoch, as returned by the cache clock
    fetched_at: "float"


class TTLCache(Generic[T]):
    """
    TTLCache is a single-slot cache: it holds at most one payload,
    and a put() overwrites whatever was there before.

    A payload older than ttl seconds is never returned. Concurrent
    misses are not deduplicated; the last writer wins.
    """

    def __init__(
        self,
        ttl: "float",
        clock: "Callable[[], float]" = time.time,
    ) -> "None":
        self._ttl = ttl
        self._clock = clock
        self._entry: "CacheEntry[T] | None" = None

    @property
    def ttl(self) -> "float":
        return self._ttl

    @staticmethod
    def is_expired(entry: "CacheEntry[T]", now: "float", ttl: "float") -> "bool":
        return now - entry.fetched_at >= ttl

    def get(self, key: "str") -> "T | None":
        """
        returns the cached payload for key, or None on a miss
        (empty slot, other key, or expired entry).
        """
        entry = self._entry
        if entry is None or entry.key != key:
            return None

        if self.is_expired(entry, self._clock(), self._ttl):
            return None

        return entry.payload

    def put(
        self,
        key: "str",
        payload: "T",
        fetched_at: "float | None" = None,
    ) -> "None":
        if fetched_at is None:
            fetched_at = self._clock()
        self._entry = CacheEntry(key=key, payload=payload, fetched_at=fetched_at)

    def clear(self) -> "None":
        self._entry = None

# =============================================================================
# Memory Tier - In-Process TTL Cache
# =============================================================================
# Fast, volatile tier in front of the durable document store. Entries expire
# a fixed time after they were set; the tier never reads the durable store.
# =============================================================================

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

__all__ = [
    "MemoryTier",
    "MemoryTierStats",
    "memory_tier_size",
]

# Entry ceilings by host memory
LARGE_HOST_MEMORY_MB = 3008
MEDIUM_HOST_MEMORY_MB = 1024
LARGE_HOST_CACHE_SIZE = 100_000
MEDIUM_HOST_CACHE_SIZE = 50_000
SMALL_HOST_CACHE_SIZE = 10_000


def memory_tier_size(host_memory_mb: int) -> int:
    """
    Entry ceiling for the memory tier, scaled to host memory.

    Examples:
        >>> memory_tier_size(512)
        10000
        >>> memory_tier_size(4096)
        100000
    """
    if host_memory_mb >= LARGE_HOST_MEMORY_MB:
        return LARGE_HOST_CACHE_SIZE
    if host_memory_mb >= MEDIUM_HOST_MEMORY_MB:
        return MEDIUM_HOST_CACHE_SIZE
    return SMALL_HOST_CACHE_SIZE


@dataclass
class MemoryTierStats:
    """Hit/miss counters for the memory tier."""

    hits: int = 0
    misses: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class MemoryTier:
    """
    Bounded key -> value cache with a fixed time-to-live.

    - Expired entries read as absent and are dropped on access
    - When the entry ceiling is reached, the oldest-set entry is evicted
    - Re-setting a key refreshes its timestamp and its eviction position

    Args:
        max_entries: Entry ceiling (see ``memory_tier_size``)
        ttl_seconds: Lifetime of each entry
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        max_entries: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._stats = MemoryTierStats()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        value, stored_at = entry
        if self._clock() - stored_at > self._ttl:
            del self._entries[key]
            self._stats.misses += 1
            return None

        self._stats.hits += 1
        return value

    def set(self, key: str, value: Any) -> None:
        # Re-insert so dict order tracks set time
        self._entries.pop(key, None)
        if len(self._entries) >= self._max_entries:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
        self._entries[key] = (value, self._clock())

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def destroy(self) -> None:
        """Release all entries and reset statistics."""
        self._entries.clear()
        self._stats = MemoryTierStats()

    def stats(self) -> MemoryTierStats:
        return MemoryTierStats(
            hits=self._stats.hits,
            misses=self._stats.misses,
            size=len(self._entries),
        )

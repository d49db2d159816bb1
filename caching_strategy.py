import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

CacheKey = Tuple[str, int]


def get_cache_key(video_id: str, chunk_index: int) -> CacheKey:
    """Unique key identifying one chunk of one video."""
    return (video_id, chunk_index)


@dataclass
class CachedChunk:
    video_id: str
    chunk_index: int
    stored_at_tick: int  # tick the chunk entered the cache
    last_accessed_tick: int
    access_count: int = 0


class FIFOCache:
    """
    Bounded chunk store of a CDN or Fog node.

    Eviction is strictly first-in first-out: the entry inserted earliest is
    removed first, whatever happened to it afterwards. Accesses are only
    bookkeeping and never move an entry in the queue.
    """

    def __init__(self, capacity: int, node_id: str = "", logger: Optional[logging.Logger] = None):
        self.capacity: int = max(1, int(capacity))
        self.node_id: str = node_id
        self.entries: Dict[CacheKey, CachedChunk] = {}
        self.queue: Deque[CacheKey] = deque()  # insertion order, head is the next victim
        self.hits: int = 0
        self.misses: int = 0
        self.evictions: int = 0
        self.logger = logger or logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self.entries

    def has(self, video_id: str, chunk_index: int) -> bool:
        return get_cache_key(video_id, chunk_index) in self.entries

    def get(self, video_id: str, chunk_index: int) -> Optional[CachedChunk]:
        return self.entries.get(get_cache_key(video_id, chunk_index))

    def keys(self) -> List[CacheKey]:
        """Cached keys, oldest first."""
        return list(self.queue)

    def store(self, video_id: str, chunk_index: int, current_tick: int) -> Optional[CacheKey]:
        """
        Inserts a chunk, evicting the oldest entry when the cache is full.

        Storing a chunk that is already cached only records an access; its
        position in the eviction queue is unchanged.

        Returns:
            The key evicted to make room, or None.
        """
        key = get_cache_key(video_id, chunk_index)
        entry = self.entries.get(key)
        if entry is not None:
            entry.last_accessed_tick = current_tick
            entry.access_count += 1
            return None

        evicted_key = None
        if len(self.entries) >= self.capacity:
            evicted_key = self.evict()

        self.entries[key] = CachedChunk(video_id, chunk_index, current_tick, current_tick)
        self.queue.append(key)
        self.logger.debug("Cache %s: stored %s chunk %d (%d/%d)",
                          self.node_id, video_id, chunk_index, len(self.entries), self.capacity)
        return evicted_key

    def on_hit(self, video_id: str, chunk_index: int, current_tick: int) -> None:
        """Records a hit on a cached chunk. Does not affect eviction order."""
        entry = self.entries.get(get_cache_key(video_id, chunk_index))
        if entry is None:
            return
        entry.last_accessed_tick = current_tick
        entry.access_count += 1
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def evict(self) -> Optional[CacheKey]:
        """Removes the oldest inserted entry. No-op on an empty cache."""
        if not self.queue:
            return None
        oldest_key = self.queue.popleft()
        del self.entries[oldest_key]
        self.evictions += 1
        self.logger.debug("Cache %s: evicted %s chunk %d", self.node_id, oldest_key[0], oldest_key[1])
        return oldest_key

    def get_cache_status(self) -> Dict[str, Any]:
        """Returns current size and hit/miss counters."""
        return {
            "size": len(self.entries),
            "capacity": self.capacity,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }

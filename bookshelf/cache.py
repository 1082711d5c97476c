"""
Tag-aware read-through cache.

Readers ask for a value by key and pass a loader. On a miss the loader
runs and returns ``(value, tags)``; the value is stored under the key and
indexed under each tag. Writers never need to know which keys exist: they
invalidate a tag and every entry carrying it is dropped.

Only the entry map and the tag index are guarded by the lock. Loaders run
outside it, so two concurrent misses on the same key may both call their
loader; the last one to finish wins.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional, Set, Tuple


logger = logging.getLogger(__name__)

Loader = Callable[[], Tuple[Any, Iterable[str]]]


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    tags: FrozenSet[str]
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class TagAwareCache:
    """In-process cache with bulk invalidation by tag.

    Parameters
    ----------
    default_ttl : float
        Lifetime of an entry in seconds. ``0`` (the default) keeps entries
        until their tag is invalidated.
    clock : Callable[[], float]
        Monotonic time source, replaceable in tests.
    max_entries : int
        Upper bound on stored entries; the least recently used entry is
        evicted first. ``0`` means unbounded.
    """

    def __init__(
        self,
        default_ttl: float = 0,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 0,
    ):
        if default_ttl < 0:
            raise ValueError("default_ttl must be >= 0")
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._tag_index: Dict[str, Set[str]] = {}
        self._hits = 0
        self._misses = 0
        self._invalidations = 0
        self._evictions = 0

    def get(self, key: str, loader: Loader) -> Any:
        """Return the value cached under ``key``, loading it on a miss.

        Exceptions raised by ``loader`` propagate and nothing is stored.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                self._remove(key)
                entry = None
            if entry is not None:
                self._entries.move_to_end(key)
                self._hits += 1
                logger.debug("Cache hit for %s", key)
                return entry.value
            self._misses += 1

        logger.info("Cache miss for %s, fetching data from store", key)
        value, tags = loader()
        self._store(key, value, tags)
        return value

    def invalidate_tags(self, tags: Iterable[str]) -> None:
        """Drop every entry tagged with any of ``tags``.

        Unknown or already cleared tags are ignored, so calling this twice
        leaves the cache in the same state as calling it once.
        """
        tags = set(tags)
        with self._lock:
            keys: Set[str] = set()
            for tag in tags:
                keys |= self._tag_index.get(tag, set())
            for key in keys:
                self._remove(key)
            self._invalidations += 1
        logger.info("Invalidated tags %s (%d entries)", sorted(tags), len(keys))

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._remove(key)

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tag_index.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "invalidations": self._invalidations,
                "evictions": self._evictions,
            }

    def _store(self, key: str, value: Any, tags: Iterable[str]) -> None:
        expires_at = self._clock() + self.default_ttl if self.default_ttl else None
        entry = CacheEntry(value=value, tags=frozenset(tags), expires_at=expires_at)
        with self._lock:
            # Replacing an entry must also drop it from its old tags.
            self._remove(key)
            self._entries[key] = entry
            for tag in entry.tags:
                self._tag_index.setdefault(tag, set()).add(key)
            while self.max_entries and len(self._entries) > self.max_entries:
                oldest = next(iter(self._entries))
                self._remove(oldest)
                self._evictions += 1

    def _remove(self, key: str) -> bool:
        # Caller holds the lock.
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tag_index[tag]
        return True

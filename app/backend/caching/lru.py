"""
Thread-safe in-memory LRU cache bounded by entry count and aggregate size.

Every entry carries its own expiry. Expired entries read as absent and are
purged lazily, on lookup or when an insert needs room. Evictions are reported
through an optional dispose callback for diagnostics only.
"""
import logging
import threading
import time
from collections import OrderedDict
from enum import Enum
from typing import Callable, Dict, Generic, List, NamedTuple, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class DisposeReason(str, Enum):
    CAPACITY = "capacity"
    EXPIRE = "expire"
    REPLACE = "replace"
    DELETE = "delete"
    CLEAR = "clear"


class _Slot(NamedTuple):
    value: object
    size: int
    expires_at: float


DisposeCallback = Callable[[str, object, DisposeReason], None]


def log_disposal(name: str) -> DisposeCallback:
    """Default dispose hook: one debug line per removed entry."""
    def _dispose(key: str, value: object, reason: DisposeReason) -> None:
        logger.debug("%s cache entry disposed: %s... reason: %s", name, key[:16], reason.value)
    return _dispose


class BoundedLRUCache(Generic[V]):
    def __init__(
        self,
        max_entries: int,
        max_size: int,
        default_ttl: float,
        size_of: Callable[[V], int],
        on_dispose: Optional[DisposeCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1 or max_size < 1:
            raise ValueError("max_entries and max_size must be positive")
        self._store: "OrderedDict[str, _Slot]" = OrderedDict()
        self._max_entries = max_entries
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._size_of = size_of
        self._on_dispose = on_dispose
        self._clock = clock
        self._total_size = 0
        self._lock = threading.Lock()

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def _remove(self, key: str) -> _Slot:
        slot = self._store.pop(key)
        self._total_size -= slot.size
        return slot

    def _purge_expired(self, now: float) -> List[Tuple[str, _Slot]]:
        expired = [k for k, slot in self._store.items() if slot.expires_at <= now]
        return [(k, self._remove(k)) for k in expired]

    def _notify(self, removed: List[Tuple[str, _Slot, DisposeReason]]) -> None:
        if self._on_dispose is None:
            return
        for key, slot, reason in removed:
            self._on_dispose(key, slot.value, reason)

    def get(self, key: str) -> Optional[V]:
        removed = []
        with self._lock:
            slot = self._store.get(key)
            if slot is None:
                return None
            if slot.expires_at <= self._clock():
                removed.append((key, self._remove(key), DisposeReason.EXPIRE))
                value = None
            else:
                self._store.move_to_end(key)
                value = slot.value
        self._notify(removed)
        return value

    def set(self, key: str, value: V, ttl: Optional[float] = None) -> bool:
        """
        Stores value under key, replacing any previous entry.

        ttl overrides the default for this entry only. Returns False when the
        value alone is larger than the whole cache and was not stored.
        """
        size = self._size_of(value)
        ttl = self._default_ttl if ttl is None else ttl
        removed = []
        with self._lock:
            now = self._clock()
            if key in self._store:
                removed.append((key, self._remove(key), DisposeReason.REPLACE))

            if size > self._max_size:
                stored = False
            else:
                self._store[key] = _Slot(value, size, now + ttl)
                self._total_size += size
                stored = True

                if len(self._store) > self._max_entries or self._total_size > self._max_size:
                    for k, slot in self._purge_expired(now):
                        removed.append((k, slot, DisposeReason.EXPIRE))
                # the new entry is most recent, so it is never the one evicted here
                while len(self._store) > self._max_entries or self._total_size > self._max_size:
                    oldest = next(iter(self._store))
                    removed.append((oldest, self._remove(oldest), DisposeReason.CAPACITY))

        if not stored:
            logger.warning(
                "Entry %s... (%d bytes) exceeds cache size limit of %d bytes; not cached",
                key[:16], size, self._max_size,
            )
        self._notify(removed)
        return stored

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._store:
                return False
            slot = self._remove(key)
        self._notify([(key, slot, DisposeReason.DELETE)])
        return True

    def clear(self):
        with self._lock:
            removed = [(k, slot, DisposeReason.CLEAR) for k, slot in self._store.items()]
            self._store.clear()
            self._total_size = 0
        self._notify(removed)

    def stats(self) -> Dict[str, int]:
        """Live (unexpired) entry count and their summed size. Does not purge."""
        with self._lock:
            now = self._clock()
            live = [slot.size for slot in self._store.values() if slot.expires_at > now]
            return {
                "entry_count": len(live),
                "approximate_size": sum(live),
                "max_entries": self._max_entries,
                "max_size": self._max_size,
            }

    def __len__(self) -> int:
        return self.stats()["entry_count"]

import logging
import time
from typing import Any, Callable, Dict, Hashable, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

QueryKey = Tuple[Hashable, ...]

class CacheEntry(NamedTuple):
    value: Any
    updated_at: float

class CacheMemento(NamedTuple):
    """Entry held under `key` before a tentative write (None when there was none)."""
    key: QueryKey
    previous: Optional[CacheEntry]

class QueryCache:
    """
    Client-resident cache keyed by query parameters.

    Last write wins per key. Every fetch started with `begin_fetch` gets a
    generation token; its result only lands if nothing newer (another fetch or
    a direct write) touched the key in the meantime. Superseded results are
    dropped, not cancelled.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._generations: Dict[QueryKey, int] = {}
        self._clock = clock

    def _bump(self, key: QueryKey) -> int:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        return generation

    def get(self, key: QueryKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        return default if entry is None else entry.value

    def has(self, key: QueryKey) -> bool:
        return key in self._entries

    def is_stale(self, key: QueryKey, max_age: float) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return True
        return (self._clock() - entry.updated_at) > max_age

    def set(self, key: QueryKey, value: Any) -> None:
        self._bump(key)
        self._entries[key] = CacheEntry(value, self._clock())

    # --- fetch lifecycle ---
    def begin_fetch(self, key: QueryKey) -> int:
        return self._bump(key)

    def is_current(self, key: QueryKey, token: int) -> bool:
        return self._generations.get(key) == token

    def resolve(self, key: QueryKey, token: int, value: Any) -> bool:
        if not self.is_current(key, token):
            logger.debug(f"Dropping superseded result for {key}")
            return False
        self._entries[key] = CacheEntry(value, self._clock())
        return True

    # --- optimistic updates ---
    def snapshot(self, key: QueryKey) -> CacheMemento:
        return CacheMemento(key, self._entries.get(key))

    def apply_optimistic(self, key: QueryKey, value: Any) -> CacheMemento:
        memento = self.snapshot(key)
        self.set(key, value)
        return memento

    def restore(self, memento: CacheMemento) -> None:
        self._bump(memento.key)
        if memento.previous is None:
            self._entries.pop(memento.key, None)
        else:
            self._entries[memento.key] = memento.previous

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry whose key starts with `prefix`; in-flight fetches for them are superseded too."""
        n = len(prefix)
        doomed = [k for k in set(self._entries) | set(self._generations) if k[:n] == prefix]
        for key in doomed:
            self._entries.pop(key, None)
            self._bump(key)
        return len(doomed)

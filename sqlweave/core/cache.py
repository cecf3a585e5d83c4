"""Process-scoped build-once caches.

Record metadata, default projections, insert templates and scanner field maps
are all derived from a type and never change afterwards, so they are cached
for the life of the process:

- CacheKey: immutable, pre-hashed key
- CacheStats: hit/miss counters
- TypeCache: read-mostly mapping; hits are plain dict lookups, misses build
  the value once under a re-entrant lock
"""

import threading
from typing import TYPE_CHECKING, Any, Final, Generic, Optional

from mypy_extensions import mypyc_attr
from typing_extensions import TypeVar

from sqlweave.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = (
    "CacheKey",
    "CacheStats",
    "TypeCache",
    "clear_all_caches",
    "get_cache",
    "type_identity",
)

V = TypeVar("V")

CACHE_KEY_SLOTS: Final = ("_hash", "_key_data")
CACHE_STATS_SLOTS: Final = ("builds", "hits", "misses")
TYPE_CACHE_SLOTS: Final = ("_entries", "_lock", "_name", "_stats")

logger = get_logger("core.cache")


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheKey:
    """Immutable cache key.

    Args:
        key_data: Tuple of hashable values that uniquely identify the cached item
    """

    __slots__ = CACHE_KEY_SLOTS

    def __init__(self, key_data: tuple[Any, ...]) -> None:
        self._key_data = key_data
        self._hash = hash(key_data)

    @property
    def key_data(self) -> tuple[Any, ...]:
        return self._key_data

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other: object) -> bool:
        if type(other) is not CacheKey:
            return False
        if self._hash != other._hash:
            return False
        return self._key_data == other._key_data

    def __repr__(self) -> str:
        return f"CacheKey({self._key_data!r})"


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheStats:
    """Cache statistics tracking.

    Hits are counted without taking the lock, so the numbers are approximate
    under heavy concurrency.
    """

    __slots__ = CACHE_STATS_SLOTS

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.builds = 0

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.builds = 0

    def __repr__(self) -> str:
        return f"CacheStats(hit_rate={self.hit_rate:.1f}%, hits={self.hits}, misses={self.misses}, builds={self.builds})"


@mypyc_attr(allow_interpreted_subclasses=False)
class TypeCache(Generic[V]):
    """Build-once cache keyed by :class:`CacheKey`.

    Args:
        name: Name used in log messages and by :func:`get_cache`.
    """

    __slots__ = TYPE_CACHE_SLOTS

    def __init__(self, name: str) -> None:
        self._name = name
        self._entries: dict[CacheKey, V] = {}
        self._lock = threading.RLock()
        self._stats = CacheStats()

    @property
    def name(self) -> str:
        return self._name

    def get(self, key: CacheKey) -> Optional[V]:
        """Return the cached value or ``None`` without building anything."""
        value = self._entries.get(key)
        if value is None:
            self._stats.misses += 1
        else:
            self._stats.hits += 1
        return value

    def get_or_build(self, key: CacheKey, builder: "Callable[[], V]") -> V:
        """Return the cached value, building and storing it on first use.

        Args:
            key: Cache key.
            builder: Zero-argument callable producing the value.

        Returns:
            The cached (or freshly built) value.
        """
        value = self._entries.get(key)
        if value is not None:
            self._stats.hits += 1
            return value
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self._stats.misses += 1
                value = builder()
                self._entries[key] = value
                self._stats.builds += 1
                logger.debug("Cached %s entry for %r", self._name, key)
            else:
                self._stats.hits += 1
            return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._stats.reset()

    def get_stats(self) -> CacheStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries


_caches: dict[str, TypeCache[Any]] = {}
_registry_lock = threading.Lock()


def get_cache(name: str) -> TypeCache[Any]:
    """Return the named process-wide cache, creating it on first use."""
    cache = _caches.get(name)
    if cache is None:
        with _registry_lock:
            cache = _caches.get(name)
            if cache is None:
                cache = TypeCache(name)
                _caches[name] = cache
    return cache


def clear_all_caches() -> None:
    """Empty every registered cache (used to isolate tests)."""
    with _registry_lock:
        caches = list(_caches.values())
    for cache in caches:
        cache.clear()


def type_identity(record_type: type) -> str:
    """Fully-qualified name of a type, used as the stable part of cache keys."""
    return f"{record_type.__module__}.{record_type.__qualname__}"

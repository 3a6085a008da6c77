"""Generation response cache shared by generation-backed operations.

Keys are derived deterministically from a namespace and a parameter
object, so logically identical requests hit the same entry no matter how
the caller built its parameters. Lifetimes come from a fixed set of TTL
tiers rather than per-call values. The in-memory implementation accepts
an injectable clock and an optional LRU bound, and a small single-flight
helper lets concurrent identical misses share one backend call.
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

# Strings longer than this are replaced by a digest before serialization.
MAX_INLINE_STRING = 256

# Generation tuning knobs that do not take part in the key.
IGNORED_PARAMS = frozenset({"temperature", "max_tokens"})


class TTL(enum.IntEnum):
    """Fixed cache lifetimes in seconds."""

    SHORT = 10 * 60
    MEDIUM = 60 * 60
    LONG = 24 * 60 * 60
    VERY_LONG = 7 * 24 * 60 * 60


def ttl_from_name(name: str) -> TTL:
    """Resolve a tier name such as ``"LONG"``; unknown names fall back to MEDIUM."""

    try:
        return TTL[name.upper()]
    except KeyError:
        logger.warning("Unknown cache TTL tier %r, using MEDIUM", name)
        return TTL.MEDIUM


def digest_text(text: str) -> str:
    """Return a stable fixed-length digest for long text values."""

    return "sha256:" + hashlib.sha256(text.encode("utf-8")).hexdigest()[:32]


def canonicalize(value: Any) -> Any:
    """Return a JSON-ready structure whose serialization ignores insertion order."""

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    if isinstance(value, Mapping):
        return {str(key): canonicalize(item) for key, item in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if isinstance(value, (set, frozenset)):
        items = [canonicalize(item) for item in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True, default=str))
    if isinstance(value, str) and len(value) > MAX_INLINE_STRING:
        return digest_text(value)
    if isinstance(value, enum.Enum):
        return canonicalize(value.value)
    return value


def derive_cache_key(namespace: str, params: Mapping[str, Any]) -> str:
    """Build the ``namespace:digest`` key for a parameter object."""

    filtered = {key: item for key, item in params.items() if key not in IGNORED_PARAMS}
    serialized = json.dumps(canonicalize(filtered), sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


@dataclass
class CacheEntry:
    """A stored value and its expiry bookkeeping."""

    namespace: str
    key: str
    value: Any
    expires_at: float
    created_at: float
    hits: int = 0


class CacheService(Protocol):
    """Contract every cache implementation offers to the engine."""

    def get(self, namespace: str, params: Mapping[str, Any]) -> Any | None:
        ...

    def set(self, namespace: str, params: Mapping[str, Any], value: Any, ttl: int) -> None:
        ...

    def delete(self, namespace: str, params: Mapping[str, Any]) -> None:
        ...


class InMemoryCacheService:
    """Process-local cache with TTL expiry and an optional LRU bound.

    Parameters
    ----------
    max_entries:
        Upper bound on stored entries. ``None`` keeps the cache unbounded
        and relies on TTL expiry alone.
    clock:
        Callable returning the current time in seconds. Tests pass a fake
        clock to drive expiry deterministically.
    """

    def __init__(
        self,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, namespace: str, params: Mapping[str, Any]) -> Any | None:
        try:
            key = derive_cache_key(namespace, params)
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    self.misses += 1
                    return None
                if entry.expires_at <= self.clock():
                    del self._entries[key]
                    self.misses += 1
                    return None
                entry.hits += 1
                self._entries.move_to_end(key)
                self.hits += 1
                return entry.value
        except Exception:
            logger.warning("Cache lookup failed for namespace %s", namespace, exc_info=True)
            return None

    def set(self, namespace: str, params: Mapping[str, Any], value: Any, ttl: int) -> None:
        try:
            key = derive_cache_key(namespace, params)
            now = self.clock()
            with self._lock:
                self._entries[key] = CacheEntry(
                    namespace=namespace,
                    key=key,
                    value=value,
                    expires_at=now + int(ttl),
                    created_at=now,
                )
                self._entries.move_to_end(key)
                self._evict(now)
        except Exception:
            logger.warning("Cache store failed for namespace %s", namespace, exc_info=True)

    def delete(self, namespace: str, params: Mapping[str, Any]) -> None:
        try:
            key = derive_cache_key(namespace, params)
            with self._lock:
                self._entries.pop(key, None)
        except Exception:
            logger.warning("Cache delete failed for namespace %s", namespace, exc_info=True)

    def invalidate_namespace(self, namespace: str) -> int:
        """Drop every entry stored under ``namespace`` and return how many were removed."""

        with self._lock:
            doomed = [key for key, entry in self._entries.items() if entry.namespace == namespace]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            by_namespace: Dict[str, int] = {}
            for entry in self._entries.values():
                by_namespace[entry.namespace] = by_namespace.get(entry.namespace, 0) + 1
            lookups = self.hits + self.misses
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / lookups if lookups else 0.0,
                "entries_by_namespace": by_namespace,
            }

    def __len__(self) -> int:
        return len(self._entries)

    def _evict(self, now: float) -> None:
        # Caller holds the lock.
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if self.max_entries is None:
            return
        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            logger.debug("Evicted least recently used cache entry %s", key)


class SingleFlight:
    """Share one in-flight coroutine between concurrent callers with the same key.

    Futures are tracked per event loop so a future is never awaited from a
    loop other than the one that created it.
    """

    def __init__(self) -> None:
        self._inflight: Dict[Tuple[int, str], "asyncio.Future[Any]"] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    async def run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        loop = asyncio.get_running_loop()
        slot = (id(loop), key)
        existing = self._inflight.get(slot)
        if existing is not None:
            logger.debug("Joining in-flight computation for %s", key)
            return await asyncio.shield(existing)

        task = loop.create_task(factory())
        self._inflight[slot] = task
        try:
            return await asyncio.shield(task)
        finally:
            if self._inflight.get(slot) is task:
                del self._inflight[slot]


async def cached_call(
    cache: CacheService,
    namespace: str,
    params: Mapping[str, Any],
    ttl: int,
    factory: Callable[[], Awaitable[Tuple[Any, bool]]],
    *,
    flight: Optional[SingleFlight] = None,
) -> Any:
    """Return the cached value for ``params`` or compute and store it.

    ``factory`` returns ``(value, cacheable)``; values produced by a failed
    computation come back with ``cacheable=False`` and are never stored so
    the next call retries the backend.
    """

    cached = cache.get(namespace, params)
    if cached is not None:
        logger.debug("Cache hit for namespace %s", namespace)
        return cached

    async def compute() -> Any:
        value, cacheable = await factory()
        if cacheable:
            cache.set(namespace, params, value, ttl)
        return value

    if flight is None:
        return await compute()
    return await flight.run(derive_cache_key(namespace, params), compute)

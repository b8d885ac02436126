import asyncio
import contextlib
import re
import secrets
import string
import time
from collections.abc import Callable, Sequence
from types import TracebackType
from typing import Self

from fastmcp.utilities.logging import get_logger
from pydantic import ValidationError

from exa_search_mcp.cache.stores import BaseKVStore
from exa_search_mcp.models.errors import CacheEntryNotFoundError, InvalidCacheIdError
from exa_search_mcp.models.responses import CacheStats
from exa_search_mcp.models.search import CachedResultSet, SearchResult, UpstreamMetadata

logger = get_logger(__name__)

DEFAULT_CACHE_ID_PREFIX = "exa"
DEFAULT_TTL_MS = 5 * 60 * 1000
DEFAULT_MAX_ENTRIES = 100
DEFAULT_EVICTION_INTERVAL_SECONDS = 5 * 60

CACHE_ID_SUFFIX_LENGTH = 7
CACHE_ID_ALPHABET = string.ascii_lowercase + string.digits


def now_millis() -> int:
    return time.time_ns() // 1_000_000


class ResultCache:
    """Holds complete search result sets so that callers can page through them after a cheap first response.

    Entries are immutable and keyed by a generated id of the form `<prefix>-<created millis>-<random>`. Expired
    entries are removed lazily on lookup and by a periodic sweep, which also trims the cache down to
    `max_entries` by discarding the oldest entries.
    """

    kv_store: BaseKVStore
    prefix: str
    default_ttl: int
    max_entries: int
    eviction_interval: float

    def __init__(
        self,
        kv_store: BaseKVStore,
        *,
        prefix: str = DEFAULT_CACHE_ID_PREFIX,
        default_ttl: int = DEFAULT_TTL_MS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        eviction_interval: float = DEFAULT_EVICTION_INTERVAL_SECONDS,
        clock: Callable[[], int] = now_millis,
    ):
        self.kv_store = kv_store
        self.prefix = prefix
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.eviction_interval = eviction_interval
        self.clock = clock

        self._cache_id_pattern: re.Pattern[str] = re.compile(rf"{re.escape(prefix)}-(\d+)-[a-z0-9]+")
        self._eviction_task: asyncio.Task[None] | None = None

    # Identifiers

    def generate_cache_id(self, created_at: int) -> str:
        suffix = "".join(secrets.choice(CACHE_ID_ALPHABET) for _ in range(CACHE_ID_SUFFIX_LENGTH))
        return f"{self.prefix}-{created_at}-{suffix}"

    def is_valid_cache_id(self, cache_id: str) -> bool:
        return self._cache_id_pattern.fullmatch(cache_id) is not None

    def _require_valid_cache_id(self, cache_id: str) -> int:
        """Check the shape of a cache id before it reaches storage and return its embedded creation time."""
        if not (match := self._cache_id_pattern.fullmatch(cache_id)):
            raise InvalidCacheIdError(cache_id, self.prefix)

        return int(match.group(1))

    # Reads and writes

    async def store(
        self,
        query: str,
        results: Sequence[SearchResult],
        metadata: UpstreamMetadata | None = None,
        ttl: int | None = None,
    ) -> str:
        """Store a result set and return the cache id it can be retrieved with."""

        created_at = self.clock()
        cache_id = self.generate_cache_id(created_at)

        while await self.kv_store.get(cache_id) is not None:
            cache_id = self.generate_cache_id(created_at)

        entry = CachedResultSet(
            cache_id=cache_id,
            query=query,
            created_at=created_at,
            ttl=self.default_ttl if ttl is None else ttl,
            results=tuple(results),
            metadata=metadata or UpstreamMetadata(),
        )

        await self.kv_store.put(cache_id, entry.model_dump_json(by_alias=True), ttl=entry.ttl)

        logger.debug(f"Cached {entry.total_results} results for {query!r} as {cache_id}")

        return cache_id

    async def lookup(self, cache_id: str) -> CachedResultSet:
        """Get a cached result set. Raises if the id is malformed, unknown, or expired."""

        self._require_valid_cache_id(cache_id)

        if (entry := await self._read(cache_id)) is None:
            raise CacheEntryNotFoundError(cache_id)

        if entry.is_expired(self.clock()):
            await self.kv_store.delete(cache_id)
            raise CacheEntryNotFoundError(cache_id)

        return entry

    async def get_by_index(self, cache_id: str, index: int) -> SearchResult:
        entry = await self.lookup(cache_id)

        return entry.result_at(index)

    async def get_range(self, cache_id: str, start: int, end: int) -> list[SearchResult]:
        """Get results `[start, end)` from a cached result set, clamping the bounds to the set."""

        entry = await self.lookup(cache_id)

        return entry.result_range(start, end)

    async def delete(self, cache_id: str) -> bool:
        self._require_valid_cache_id(cache_id)

        return await self.kv_store.delete(cache_id)

    async def _read(self, cache_id: str) -> CachedResultSet | None:
        if (raw_entry := await self.kv_store.get(cache_id)) is None:
            return None

        try:
            return CachedResultSet.model_validate_json(raw_entry)
        except ValidationError:
            logger.warning(f"Discarding unreadable cache entry {cache_id}")
            await self.kv_store.delete(cache_id)
            return None

    # Eviction

    async def _cache_ids(self) -> list[str]:
        return [key for key in await self.kv_store.list_keys() if self.is_valid_cache_id(key)]

    async def evict_expired(self) -> int:
        """Delete expired entries, then the oldest entries until no more than `max_entries` remain.

        Returns:
            The number of entries deleted.
        """

        now = self.clock()
        evicted = 0
        remaining: list[tuple[int, str]] = []

        for cache_id in await self._cache_ids():
            entry = await self._read(cache_id)

            if entry is None:
                continue

            if entry.is_expired(now):
                evicted += await self.kv_store.delete(cache_id)
                continue

            remaining.append((self._require_valid_cache_id(cache_id), cache_id))

        if (overflow := len(remaining) - self.max_entries) > 0:
            remaining.sort()

            for _, cache_id in remaining[:overflow]:
                evicted += await self.kv_store.delete(cache_id)

        if evicted:
            logger.info(f"Evicted {evicted} cached result sets")

        return evicted

    async def stats(self) -> CacheStats:
        created_times = [self._require_valid_cache_id(cache_id) for cache_id in await self._cache_ids()]

        return CacheStats(
            total_cached=len(created_times),
            oldest_created_at=min(created_times, default=None),
            newest_created_at=max(created_times, default=None),
        )

    # Background eviction lifecycle

    @property
    def running(self) -> bool:
        return self._eviction_task is not None and not self._eviction_task.done()

    def start(self) -> None:
        """Start sweeping the cache every `eviction_interval` seconds. Must be called from a running event loop."""

        if self.running:
            return

        self._eviction_task = asyncio.create_task(self._evict_periodically(), name="result-cache-eviction")

    async def stop(self) -> None:
        if self._eviction_task is None:
            return

        _ = self._eviction_task.cancel()

        with contextlib.suppress(asyncio.CancelledError):
            await self._eviction_task

        self._eviction_task = None

    async def _evict_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.eviction_interval)

            try:
                _ = await self.evict_expired()
            except Exception:
                logger.exception("Periodic cache eviction failed")

    async def __aenter__(self) -> Self:
        _ = await self.evict_expired()
        self.start()
        return self

    async def __aexit__(
        self, exc_type: type[BaseException] | None, exc_value: BaseException | None, traceback: TracebackType | None
    ) -> None:
        await self.stop()

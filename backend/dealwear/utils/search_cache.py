"""Search result cache keyed by normalized query.

Entries expire after a TTL (6 hours by default) and are removed lazily when
a lookup finds them stale. When the backing store is full, the oldest half
of the entries is evicted and the write retried once. The cache is best
effort: read and write failures are logged and never reach the caller.
"""

from __future__ import annotations

import hashlib
import re
import time
from collections.abc import Callable

import structlog
from pydantic import ValidationError

from dealwear.models.contracts import CacheEntry, CacheStats, ProductRecord, ProductSource
from dealwear.utils.kv_store import KeyValueStore, StorageFullError

logger = structlog.get_logger()

CACHE_PREFIX = "product_search:"
DEFAULT_TTL_SECONDS = 6 * 60 * 60

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    return _WHITESPACE_RE.sub(" ", query.strip().lower())


def cache_key(query: str) -> str:
    digest = hashlib.sha256(normalize_query(query).encode()).hexdigest()[:20]
    return f"{CACHE_PREFIX}{digest}"


class SearchCache:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock

    def get(self, query: str) -> CacheEntry | None:
        """Return a live entry for ``query``, or None on miss/expiry/corruption."""
        key = cache_key(query)
        raw = self._read(key)
        if raw is None:
            return None

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError:
            logger.warning("search_cache_corrupt_entry", key=key)
            self._delete(key)
            return None

        if self._clock() - entry.created_at >= self._ttl:
            self._delete(key)
            logger.debug("search_cache_expired", query=entry.query)
            return None

        logger.info("search_cache_hit", query=entry.query, count=len(entry.products))
        return entry

    def put(self, query: str, products: list[ProductRecord], source: ProductSource) -> None:
        entry = CacheEntry(
            query=normalize_query(query),
            products=products,
            source=source,
            created_at=self._clock(),
        )
        key = cache_key(query)
        payload = entry.model_dump_json()
        try:
            self._store.set(key, payload)
        except (StorageFullError, OSError) as exc:
            logger.warning("search_cache_write_failed", error=str(exc), retrying=True)
            evicted = self.evict_oldest_half()
            try:
                self._store.set(key, payload)
            except (StorageFullError, OSError) as retry_exc:
                logger.warning(
                    "search_cache_write_dropped",
                    error=str(retry_exc),
                    evicted=evicted,
                )
                return
        logger.info("search_cache_saved", query=entry.query, count=len(products), source=source)

    def evict_oldest_half(self) -> int:
        """Remove the oldest 50% of entries by creation time. Returns how many went."""
        entries: list[tuple[float, str]] = []
        for key in self._cache_keys():
            raw = self._read(key)
            created_at = 0.0
            if raw is not None:
                try:
                    created_at = CacheEntry.model_validate_json(raw).created_at
                except ValidationError:
                    pass  # unreadable entries sort first
            entries.append((created_at, key))

        entries.sort()
        to_remove = entries[: len(entries) // 2]
        for _, key in to_remove:
            self._delete(key)
        logger.info(
            "search_cache_evicted",
            removed=len(to_remove),
            remaining=len(entries) - len(to_remove),
        )
        return len(to_remove)

    def clear(self) -> None:
        for key in self._cache_keys():
            self._delete(key)

    def stats(self) -> CacheStats:
        stats = CacheStats()
        now = self._clock()
        for key in self._cache_keys():
            raw = self._read(key)
            if raw is None:
                continue
            stats.total_entries += 1
            stats.total_bytes += len(raw.encode())
            try:
                entry = CacheEntry.model_validate_json(raw)
            except ValidationError:
                stats.expired_entries += 1
                continue
            if now - entry.created_at < self._ttl:
                stats.valid_entries += 1
            else:
                stats.expired_entries += 1
        return stats

    def _read(self, key: str) -> str | None:
        """Raw payload for `key`. Undecodable entries are dropped and read as a miss."""
        try:
            return self._store.get(key)
        except ValueError:
            logger.warning("search_cache_corrupt_entry", key=key, reason="undecodable")
            self._delete(key)
        except OSError as exc:
            logger.warning("search_cache_read_failed", key=key, error=str(exc))
        return None

    def _cache_keys(self) -> list[str]:
        return [k for k in self._store.keys() if k.startswith(CACHE_PREFIX)]

    def _delete(self, key: str) -> None:
        try:
            self._store.delete(key)
        except OSError as exc:
            logger.warning("search_cache_delete_failed", key=key, error=str(exc))

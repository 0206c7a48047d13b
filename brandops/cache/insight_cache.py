"""
Namespaced, fingerprint-aware TTL cache for LLM insights.

Entries are keyed by ``(namespace, fingerprint digest)`` and carry the
full canonical fingerprint, so a digest collision downgrades a hit to a
miss instead of serving another dataset's insights.  TTLs are chosen
per namespace.  Expired entries are removed lazily on ``get`` and by an
opportunistic sweep on every ``set``; no background task is needed.
"""

import logging
import threading
from datetime import timedelta
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, Field

from brandops.cache.fingerprint import (
    Fingerprint,
    HashFunction,
    compute_fingerprint,
    namespace_prefix,
    rolling_hash,
)
from brandops.cache.store import CacheEntry, CacheStore
from brandops.clock import Clock, utcnow
from brandops.config import CacheSettings, get_settings

logger = logging.getLogger(__name__)

ISSUE_LARGE_SIZE = "cache size large"
ISSUE_LOW_HIT_RATE = "low hit rate"


class CacheStats(BaseModel):
    """Aggregate cache statistics.

    Attributes:
        hits: Lookups served from the cache since the last reset.
        misses: Lookups that found nothing usable since the last reset.
        size: Current number of stored entries.
        hit_rate: ``hits / (hits + misses)`` as a percentage, two
            decimals; ``0`` when there were no lookups.
    """

    hits: int = 0
    misses: int = 0
    size: int = 0
    hit_rate: float = 0.0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses


class CacheHealth(BaseModel):
    """Health verdict derived from :class:`CacheStats`."""

    healthy: bool = True
    issues: List[str] = Field(default_factory=list)


class InsightCache:
    """In-memory insight cache with per-namespace TTLs.

    Args:
        settings: Cache section of the settings; defaults to
            ``get_settings().cache``.
        clock: Callable returning the current UTC instant (testing).
        hash_fn: Digest function for fingerprints (testing collisions).
        store: Backing store; a new one sized by
            ``settings.max_entries`` is created when omitted.
    """

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        *,
        clock: Optional[Clock] = None,
        hash_fn: HashFunction = rolling_hash,
        store: Optional[CacheStore] = None,
    ) -> None:
        self._settings = settings or get_settings().cache
        self._clock = clock or utcnow
        self._hash_fn = hash_fn
        self._store = store if store is not None else CacheStore(
            max_entries=self._settings.max_entries
        )
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def ttl_for(self, namespace: str) -> int:
        """TTL in seconds for *namespace* (falls back to the default)."""
        return self._settings.namespace_ttl_seconds.get(
            namespace, self._settings.default_ttl_seconds
        )

    def fingerprint(
        self, namespace: str, descriptor: Mapping[str, Any]
    ) -> Fingerprint:
        return compute_fingerprint(namespace, descriptor, self._hash_fn)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def get(self, namespace: str, descriptor: Mapping[str, Any]) -> Optional[Any]:
        """Return the cached artifact for *descriptor*, or ``None``.

        Absent, expired and fingerprint-mismatched entries all count as
        misses; the latter two are deleted.
        """
        fp = self.fingerprint(namespace, descriptor)
        key = fp.key
        entry = self._store.get(key)

        if entry is None:
            return self._miss(namespace, key, "absent")

        now = self._clock()
        if entry.is_expired(now):
            self._store.delete(key)
            return self._miss(namespace, key, "expired")

        if entry.fingerprint != fp.canonical:
            self._store.delete(key)
            return self._miss(namespace, key, "fingerprint_changed")

        self._hits += 1
        logger.debug(
            "Cache hit",
            extra={
                "namespace": namespace,
                "cache_key": key,
                "age_seconds": int((now - entry.created_at).total_seconds()),
                "expires_in_seconds": int((entry.expires_at - now).total_seconds()),
            },
        )
        return entry.artifact

    def set(
        self,
        namespace: str,
        descriptor: Mapping[str, Any],
        artifact: Any,
        ttl_seconds: Optional[int] = None,
    ) -> CacheEntry:
        """Store *artifact* for *descriptor*, overwriting any prior entry.

        Args:
            namespace: Logical page namespace.
            descriptor: Fingerprint descriptor of the current dataset.
            artifact: Payload to cache.
            ttl_seconds: Per-call TTL override.

        Returns:
            The stored :class:`CacheEntry`.
        """
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        fp = self.fingerprint(namespace, descriptor)
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_for(namespace)
        now = self._clock()
        entry = CacheEntry(
            key=fp.key,
            namespace=namespace,
            artifact=artifact,
            fingerprint=fp.canonical,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )
        self._store.set(fp.key, entry)
        logger.debug(
            "Cache set",
            extra={"namespace": namespace, "cache_key": fp.key, "ttl_seconds": ttl},
        )

        self.cleanup_expired()
        return entry

    def invalidate(self, namespace: str) -> int:
        """Remove every entry of *namespace*.

        Returns:
            Number of entries removed.
        """
        keys = self._store.keys_with_prefix(namespace_prefix(namespace))
        for key in keys:
            self._store.delete(key)
        logger.info(
            "Cache namespace invalidated",
            extra={"namespace": namespace, "entries_removed": len(keys)},
        )
        return len(keys)

    def clear(self) -> int:
        """Remove all entries.  Statistics are left untouched.

        Returns:
            Number of entries removed.
        """
        count = self._store.clear()
        logger.info("Cache cleared", extra={"entries_removed": count})
        return count

    def cleanup_expired(self) -> int:
        """Delete every entry whose ``expires_at`` has passed.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            self._store.delete(key)
        if expired:
            logger.info(
                "Expired entries cleaned up",
                extra={"count": len(expired)},
            )
        return len(expired)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def stats(self) -> CacheStats:
        total = self._hits + self._misses
        hit_rate = round(self._hits / total * 100, 2) if total > 0 else 0.0
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._store),
            hit_rate=hit_rate,
        )

    def health(self) -> CacheHealth:
        stats = self.stats()
        issues: List[str] = []
        if stats.size > self._settings.health_max_size:
            issues.append(ISSUE_LARGE_SIZE)
        if (
            stats.total_requests > self._settings.health_min_requests
            and stats.hit_rate < self._settings.health_min_hit_rate
        ):
            issues.append(ISSUE_LOW_HIT_RATE)
        return CacheHealth(healthy=not issues, issues=issues)

    def reset_stats(self) -> CacheStats:
        """Zero the hit/miss counters.

        Returns:
            The statistics as they were before the reset.
        """
        previous = self.stats()
        self._hits = 0
        self._misses = 0
        logger.info("Cache statistics reset")
        return previous

    @property
    def size(self) -> int:
        return len(self._store)

    def _miss(self, namespace: str, key: str, reason: str) -> None:
        self._misses += 1
        logger.debug(
            "Cache miss",
            extra={"namespace": namespace, "cache_key": key, "reason": reason},
        )
        return None


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------

_cache: Optional[InsightCache] = None
_lock = threading.Lock()


def get_insight_cache() -> InsightCache:
    """Return the process-wide :class:`InsightCache`, creating it once."""
    global _cache

    if _cache is not None:
        return _cache

    with _lock:
        if _cache is None:
            _cache = InsightCache()
        return _cache


def reset_insight_cache() -> None:
    """Drop the process-wide instance (for testing)."""
    global _cache
    with _lock:
        _cache = None

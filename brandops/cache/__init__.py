"""Fingerprint-aware insight cache."""

from brandops.cache.fingerprint import Fingerprint, compute_fingerprint, rolling_hash
from brandops.cache.insight_cache import (
    CacheHealth,
    CacheStats,
    InsightCache,
    get_insight_cache,
    reset_insight_cache,
)
from brandops.cache.store import CacheEntry, CacheStore

__all__ = [
    "CacheEntry",
    "CacheHealth",
    "CacheStats",
    "CacheStore",
    "Fingerprint",
    "InsightCache",
    "compute_fingerprint",
    "get_insight_cache",
    "reset_insight_cache",
    "rolling_hash",
]

"""
In-process key/value store backing the insight cache.

Holds :class:`CacheEntry` records by rendered key.  Supports point
operations, prefix lookup for namespace invalidation, full iteration
for expiry sweeps and an optional LRU cap applied on ``set`` only.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Iterator, List, Optional, Tuple

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CacheEntry(BaseModel):
    """A single cached insight artifact.

    Attributes:
        key: Rendered ``namespace:digest`` key.
        namespace: Namespace the entry belongs to.
        artifact: Opaque payload produced by the insight pipeline.
        fingerprint: Canonical fingerprint text used to detect drift.
        created_at: UTC instant the entry was written.
        expires_at: UTC instant after which the entry is stale.
    """

    key: str
    namespace: str
    artifact: Any
    fingerprint: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """True once *now* has reached ``expires_at``."""
        return now >= self.expires_at


class CacheStore:
    """Ordered mapping from key to :class:`CacheEntry`.

    Args:
        max_entries: Optional size cap.  ``0`` disables the cap; a
            positive value evicts least-recently-used entries on ``set``.
    """

    def __init__(self, max_entries: int = 0) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._max_entries = max_entries

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is not None and self._max_entries:
            self._entries.move_to_end(key)
        return entry

    def set(self, key: str, entry: CacheEntry) -> List[str]:
        """Store *entry* under *key*, replacing any previous entry.

        Returns:
            Keys evicted to honour ``max_entries`` (usually empty).
        """
        self._entries[key] = entry
        self._entries.move_to_end(key)

        evicted: List[str] = []
        if self._max_entries:
            while len(self._entries) > self._max_entries:
                old_key, _ = self._entries.popitem(last=False)
                evicted.append(old_key)
        if evicted:
            logger.debug(
                "Cache store evicted LRU entries",
                extra={"evicted": len(evicted), "max_entries": self._max_entries},
            )
        return evicted

    def delete(self, key: str) -> bool:
        if key in self._entries:
            del self._entries[key]
            return True
        return False

    def keys_with_prefix(self, prefix: str) -> List[str]:
        return [key for key in self._entries if key.startswith(prefix)]

    def items(self) -> List[Tuple[str, CacheEntry]]:
        """Snapshot of all ``(key, entry)`` pairs, safe to mutate during."""
        return list(self._entries.items())

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

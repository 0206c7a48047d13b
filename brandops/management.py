"""
Operator surface for the insight cache.

One endpoint, keyed by verb and ``action``:

* ``GET``: ``stats``, ``health``, ``performance`` or an overview.
* ``POST``: ``cleanup``, ``reset-stats`` or ``invalidate`` (needs a
  namespace).
* ``DELETE``: invalidate one namespace, or clear everything.

Every body carries ``success``, ``message`` and ``timestamp``.  Errors
are returned as ``(status, body)`` pairs rather than raised so the HTTP
layer can emit the body unchanged.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from brandops.cache.insight_cache import (
    ISSUE_LARGE_SIZE,
    ISSUE_LOW_HIT_RATE,
    CacheStats,
    InsightCache,
)
from brandops.clock import Clock, utcnow
from brandops.config import ManagementSettings, get_settings
from brandops.exceptions import BadRequestError, MethodNotAllowedError

logger = logging.getLogger(__name__)

GET_ACTIONS = ("stats", "health", "performance")
POST_ACTIONS = ("cleanup", "reset-stats", "invalidate")
ALLOWED_METHODS = ("GET", "POST", "DELETE")

_RECOMMENDATIONS = {
    ISSUE_LARGE_SIZE: "Consider implementing cache size limits or more aggressive cleanup",
    ISSUE_LOW_HIT_RATE: "Consider increasing TTL values or improving cache key generation",
}
_NO_RECOMMENDATIONS = "Cache is performing optimally - no recommendations"

ManagementReply = Tuple[int, Dict[str, Any]]


def efficiency_label(hit_rate: float) -> str:
    """Qualitative label for a hit rate percentage."""
    if hit_rate >= 70:
        return "Excellent"
    if hit_rate >= 50:
        return "Good"
    if hit_rate >= 30:
        return "Fair"
    return "Poor"


def recommendations_for(issues: List[str]) -> List[str]:
    if not issues:
        return [_NO_RECOMMENDATIONS]
    return [_RECOMMENDATIONS.get(issue, f"Investigate: {issue}") for issue in issues]


def performance_insights(stats: CacheStats) -> List[str]:
    """Short observations about cache behaviour."""
    notes: List[str] = []
    if stats.hit_rate > 60:
        notes.append("Excellent cache performance - most requests served from cache")
    elif stats.hit_rate > 30:
        notes.append("Good cache performance - consider optimizing TTL values")
    else:
        notes.append("Cache hit rate could be improved - review cache key generation")
    if stats.size > 50:
        notes.append("Large cache size - monitor memory usage")
    if stats.hits > 100:
        notes.append("High cache usage - significant API cost savings")
    return notes


class CacheManagement:
    """Verb/action router over an :class:`InsightCache`.

    Args:
        cache: Cache engine being operated.
        settings: Management section (cost-savings unit cost).
        clock: Callable returning the current UTC instant.
    """

    def __init__(
        self,
        cache: InsightCache,
        settings: Optional[ManagementSettings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._cache = cache
        self._settings = settings or get_settings().management
        self._clock = clock or utcnow

    def handle(
        self,
        method: str,
        action: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> ManagementReply:
        """Dispatch one management request.

        Returns:
            ``(http_status, body)``.
        """
        verb = method.upper()
        action = (action or "").strip() or None
        namespace = (namespace or "").strip() or None
        try:
            if verb == "GET":
                return 200, self._read(action)
            if verb == "POST":
                return 200, self._mutate(action, namespace)
            if verb == "DELETE":
                return 200, self._delete(namespace)
            raise MethodNotAllowedError("Method not allowed")
        except BadRequestError as exc:
            return 400, self._error(str(exc), "Invalid cache management request")
        except MethodNotAllowedError as exc:
            return 405, self._error(str(exc), f"Use one of: {', '.join(ALLOWED_METHODS)}")

    # ------------------------------------------------------------------
    # GET
    # ------------------------------------------------------------------

    def _read(self, action: Optional[str]) -> Dict[str, Any]:
        stats = self._cache.stats()

        if action == "stats":
            return self._ok("Cache statistics retrieved", {
                "stats": self._stats_view(stats),
            })

        if action == "health":
            health = self._cache.health()
            return self._ok("Cache health retrieved", {
                "health": health.model_dump(),
                "stats": stats.model_dump(),
                "recommendations": recommendations_for(health.issues),
            })

        if action == "performance":
            unit_cost = self._settings.per_call_unit_cost
            return self._ok("Cache performance retrieved", {
                "stats": self._stats_view(stats),
                "cost_savings": {
                    "cache_hits": stats.hits,
                    "estimated_dollars": f"${stats.hits * unit_cost:.3f}",
                    "api_calls_avoided": stats.hits,
                    "note": (
                        f"Estimate assumes ${unit_cost} per avoided LLM call; "
                        "illustrative, not an audited figure"
                    ),
                },
                "performance_insights": performance_insights(stats),
            })

        if action is not None and action not in GET_ACTIONS:
            logger.debug("Unknown GET action, serving overview", extra={"action": action})

        health = self._cache.health()
        return self._ok("Cache management overview", {
            "overview": {
                "cache_size": stats.size,
                "hit_rate": stats.hit_rate,
                "healthy": health.healthy,
            },
            "available_actions": {
                "GET": [f"?action={a}" for a in GET_ACTIONS],
                "POST": [
                    "?action=cleanup",
                    "?action=reset-stats",
                    "?action=invalidate&namespace=<namespace>",
                ],
                "DELETE": ["?namespace=<namespace>", "(no parameters clears everything)"],
            },
        })

    # ------------------------------------------------------------------
    # POST
    # ------------------------------------------------------------------

    def _mutate(self, action: Optional[str], namespace: Optional[str]) -> Dict[str, Any]:
        if action == "cleanup":
            before = self._cache.size
            cleaned = self._cache.cleanup_expired()
            after = self._cache.size
            logger.info("Cache cleanup requested", extra={"cleaned_entries": cleaned})
            return self._ok("Cache cleanup completed", {
                "before": before,
                "after": after,
                "cleaned_entries": cleaned,
            })

        if action == "reset-stats":
            previous = self._cache.reset_stats()
            return self._ok("Cache statistics reset", {
                "previous_stats": previous.model_dump(),
                "new_stats": self._cache.stats().model_dump(),
                "reset_at": self._clock().isoformat(),
            })

        if action == "invalidate":
            if namespace is None:
                raise BadRequestError("Namespace parameter required for invalidation")
            removed = self._cache.invalidate(namespace)
            return self._ok(f"Namespace '{namespace}' invalidated", {
                "invalidated_namespace": namespace,
                "removed_entries": removed,
                "remaining_size": self._cache.size,
            })

        raise BadRequestError(
            f"Invalid action '{action}'. Expected one of: {', '.join(POST_ACTIONS)}"
        )

    # ------------------------------------------------------------------
    # DELETE
    # ------------------------------------------------------------------

    def _delete(self, namespace: Optional[str]) -> Dict[str, Any]:
        if namespace is not None:
            removed = self._cache.invalidate(namespace)
            return self._ok(f"Cache entries for '{namespace}' removed", {
                "namespace": namespace,
                "removed_entries": removed,
                "remaining_size": self._cache.size,
            })
        cleared = self._cache.clear()
        return self._ok("Cache cleared", {"cleared_entries": cleared})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _stats_view(stats: CacheStats) -> Dict[str, Any]:
        view = stats.model_dump()
        view["total_requests"] = stats.total_requests
        view["efficiency"] = efficiency_label(stats.hit_rate)
        return view

    def _ok(self, message: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "success": True,
            "message": message,
            "data": data,
            "timestamp": self._clock().isoformat(),
        }

    def _error(self, error: str, message: str) -> Dict[str, Any]:
        return {
            "success": False,
            "error": error,
            "message": message,
            "timestamp": self._clock().isoformat(),
        }

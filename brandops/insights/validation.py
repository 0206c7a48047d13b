"""
Parsing and normalisation of raw LLM insight output.

The LLM is asked for a JSON array of insight objects.  This module
turns its text into validated :class:`Insight` records:

* records missing ``title``, ``description`` or ``severity`` are dropped;
* unknown severities become ``warning``;
* negative or non-numeric ``dollar_impact`` values are dropped;
* records sharing an LLM-supplied ``id`` keep only the later one;
* the list is truncated to the namespace maximum, keeping the prefix;
* ids are reassigned as ``<namespace-root>-insight-<index>``;
* missing ``source`` / ``created_at`` are filled in.
"""

import json
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from brandops.exceptions import InsightValidationError, LLMError
from brandops.insights.models import DEFAULT_SEVERITY, SEVERITIES, Insight

logger = logging.getLogger(__name__)

NAMESPACE_SUFFIX = "-insights"
REQUIRED_FIELDS = ("title", "description", "severity")

_CAMEL_ALIASES = {
    "dollarImpact": "dollar_impact",
    "suggestedActions": "suggested_actions",
    "createdAt": "created_at",
}

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


def namespace_root(namespace: str) -> str:
    """``orders-insights`` -> ``orders``."""
    if namespace.endswith(NAMESPACE_SUFFIX) and len(namespace) > len(NAMESPACE_SUFFIX):
        return namespace[: -len(NAMESPACE_SUFFIX)]
    return namespace


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_llm_response(raw: str) -> List[Any]:
    """Decode the LLM's text into a list of candidate records.

    Accepts a bare JSON array, an array wrapped in a Markdown code
    fence, or an object holding an ``insights`` array.

    Raises:
        LLMError: If no JSON array of records can be recovered.
    """
    text = (raw or "").strip()
    if not text:
        raise LLMError("LLM returned an empty response")

    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("["), text.rfind("]")
        if start == -1 or end <= start:
            raise LLMError("LLM response is not valid JSON")
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError as exc:
            raise LLMError(f"LLM response is not valid JSON: {exc}") from exc

    if isinstance(data, dict) and isinstance(data.get("insights"), list):
        data = data["insights"]
    if not isinstance(data, list):
        raise LLMError(
            f"LLM response must be a JSON array, got {type(data).__name__}"
        )
    return data


# ---------------------------------------------------------------------------
# Per-record validation
# ---------------------------------------------------------------------------


def _required_text(record: Mapping[str, Any], name: str) -> str:
    value = record.get(name)
    if not isinstance(value, str) or not value.strip():
        raise InsightValidationError(f"missing required field: {name}")
    return value.strip()


def _severity(record: Mapping[str, Any]) -> str:
    value = record.get("severity")
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InsightValidationError("missing required field: severity")
    if isinstance(value, str) and value.strip().lower() in SEVERITIES:
        return value.strip().lower()
    return DEFAULT_SEVERITY


def _dollar_impact(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return float(value)


def _suggested_actions(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _created_at(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_record(raw: Any) -> Tuple[Optional[str], Dict[str, Any]]:
    """Validate one candidate record.

    Returns:
        ``(supplied_id, fields)`` where ``fields`` holds the normalised
        known fields plus any extension keys.

    Raises:
        InsightValidationError: If *raw* is not an object or lacks a
            required field.
    """
    if not isinstance(raw, Mapping):
        raise InsightValidationError(
            f"insight must be an object, got {type(raw).__name__}"
        )

    record: Dict[str, Any] = {}
    for key, value in raw.items():
        key = str(key)
        target = _CAMEL_ALIASES.get(key, key)
        if target != key and target in raw:
            continue
        record[target] = value

    fields: Dict[str, Any] = {
        "title": _required_text(record, "title"),
        "description": _required_text(record, "description"),
        "severity": _severity(record),
    }

    impact = _dollar_impact(record.get("dollar_impact"))
    if impact is not None:
        fields["dollar_impact"] = impact
    fields["suggested_actions"] = _suggested_actions(record.get("suggested_actions"))

    source = record.get("source")
    if isinstance(source, str) and source.strip():
        fields["source"] = source.strip()
    created_at = _created_at(record.get("created_at"))
    if created_at is not None:
        fields["created_at"] = created_at

    known = set(REQUIRED_FIELDS) | {
        "id", "dollar_impact", "suggested_actions", "source", "created_at",
    }
    for key, value in record.items():
        if key not in known:
            fields[key] = value

    supplied_id = record.get("id")
    return (str(supplied_id) if supplied_id is not None else None), fields


# ---------------------------------------------------------------------------
# List normalisation
# ---------------------------------------------------------------------------


def _dedupe(validated: Sequence[Tuple[Optional[str], Dict[str, Any]]]) -> List[Dict[str, Any]]:
    kept: Dict[Any, Dict[str, Any]] = {}
    for position, (supplied_id, fields) in enumerate(validated):
        marker: Any = supplied_id if supplied_id is not None else ("#", position)
        if marker in kept:
            # later duplicate replaces the earlier record
            del kept[marker]
        kept[marker] = fields
    return list(kept.values())


def normalize_insights(
    records: Sequence[Any],
    *,
    namespace: str,
    max_insights: int,
    now: datetime,
    source: Optional[str] = None,
) -> List[Insight]:
    """Validate, deduplicate, truncate and identify *records*.

    Args:
        records: Candidate records decoded from the LLM response.
        namespace: Namespace the insights belong to.
        max_insights: Maximum number of insights to keep.
        now: Instant used for missing ``created_at`` values.
        source: Default producer identifier; the namespace root when
            omitted.

    Returns:
        The validated insights, possibly empty.
    """
    root = namespace_root(namespace)
    default_source = source or root

    validated = []
    for position, raw in enumerate(records):
        try:
            validated.append(validate_record(raw))
        except InsightValidationError as exc:
            logger.debug(
                "Dropped malformed insight",
                extra={"namespace": namespace, "position": position, "reason": str(exc)},
            )

    kept = _dedupe(validated)[: max(max_insights, 0)]

    insights: List[Insight] = []
    for index, fields in enumerate(kept):
        fields = dict(fields)
        fields.setdefault("source", default_source)
        fields.setdefault("created_at", now)
        insights.append(Insight(id=f"{root}-insight-{index}", **fields))

    dropped = len(records) - len(insights)
    if dropped:
        logger.debug(
            "Insights normalised",
            extra={"namespace": namespace, "kept": len(insights), "dropped": dropped},
        )
    return insights

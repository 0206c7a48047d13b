"""
Fingerprinting for the insight cache.

A fingerprint descriptor is a small mapping of coarse dataset features
(collection counts, a few dominant KPIs, the brand filter and the clock
bucket).  Each namespace enumerates its features in a fixed order so the
canonical text is stable regardless of how the caller built the mapping.
The canonical text is kept next to a 32-bit rolling hash: the hash only
buckets entries into keys, equality is always decided on the full text.
"""

import math
import numbers
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

KEY_SEPARATOR = ":"
FIELD_SEPARATOR = "|"
NUMERIC = "numeric"
CATEGORICAL = "categorical"

HashFunction = Callable[[str], int]

FieldSpec = Tuple[str, str]

# Leading and trailing features shared by every namespace.
_COMMON_HEAD: Tuple[FieldSpec, ...] = (("brand", CATEGORICAL),)
_COMMON_TAIL: Tuple[FieldSpec, ...] = (("clock_bucket", NUMERIC),)


def _numeric(*names: str) -> Tuple[FieldSpec, ...]:
    return tuple((name, NUMERIC) for name in names)


NAMESPACE_FIELDS: Dict[str, Tuple[FieldSpec, ...]] = {
    "dashboard-insights": _numeric(
        "product_count", "shipment_count", "at_risk_order_count",
        "unfulfillable_sku_count",
    ),
    "orders-insights": _numeric(
        "order_count", "at_risk_order_count", "open_po_count",
        "unfulfillable_sku_count",
    ),
    "inventory-insights": _numeric(
        "product_count", "active_product_count", "inactive_product_count",
        "low_stock_count",
    ),
    "sla-insights": _numeric(
        "shipment_count", "late_shipment_count", "on_time_rate",
    ),
    "replenishment-insights": _numeric(
        "product_count", "critical_sku_count", "reorder_count",
    ),
    "inbound-insights": _numeric(
        "shipment_count", "delayed_shipment_count", "arrivals_today",
    ),
    "warehouses-insights": _numeric(
        "shipment_count", "warehouse_count", "total_received_units",
    ),
    "reports-insights": _numeric(
        "product_count", "shipment_count", "supplier_count",
    ),
}

# Used for namespaces without an explicit schema.
DEFAULT_FIELDS: Tuple[FieldSpec, ...] = _numeric(
    "product_count", "shipment_count", "at_risk_order_count",
    "unfulfillable_sku_count",
)


class Fingerprint(BaseModel):
    """Canonical fingerprint text and its bucketing hash.

    Attributes:
        namespace: Namespace the descriptor was canonicalised for.
        canonical: Deterministic ``name=value|...`` rendering.
        digest: 32-bit unsigned hash of ``canonical``.
    """

    namespace: str
    canonical: str
    digest: int

    @property
    def key(self) -> str:
        """Cache key for this fingerprint."""
        return build_key(self.namespace, self.digest)


def fields_for(namespace: str) -> Tuple[FieldSpec, ...]:
    """Ordered feature list used to canonicalise *namespace*."""
    body = NAMESPACE_FIELDS.get(namespace, DEFAULT_FIELDS)
    return _COMMON_HEAD + body + _COMMON_TAIL


def _render_numeric(value: Any) -> str:
    if value is None:
        return "0"
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (numbers.Real, Decimal)):
        value = float(value)
    elif isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return _render_categorical(value)
    else:
        return _render_categorical(value)
    if not math.isfinite(value):
        return str(value)
    if value.is_integer():
        return str(int(value))
    return repr(round(value, 6))


def _render_categorical(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    return text.replace("\\", "\\\\").replace(FIELD_SEPARATOR, "\\" + FIELD_SEPARATOR)


def canonicalize(
    namespace: str,
    descriptor: Mapping[str, Any],
    fields: Optional[Sequence[FieldSpec]] = None,
) -> str:
    """Render *descriptor* as canonical text for *namespace*.

    Missing numeric features become ``0`` and missing categorical
    features an empty token.  Features outside the namespace schema are
    ignored.
    """
    schema = fields if fields is not None else fields_for(namespace)
    parts = []
    for name, kind in schema:
        value = descriptor.get(name)
        if kind == CATEGORICAL:
            rendered = _render_categorical(value)
        else:
            rendered = _render_numeric(value)
        parts.append(f"{name}={rendered}")
    return FIELD_SEPARATOR.join(parts)


def rolling_hash(text: str) -> int:
    """32-bit multiply-and-add hash over code points (``h * 31 + c``)."""
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h


def build_key(namespace: str, digest: int) -> str:
    """Render ``(namespace, digest)`` as a single cache key."""
    return f"{namespace}{KEY_SEPARATOR}{digest}"


def namespace_prefix(namespace: str) -> str:
    """Key prefix shared by every entry of *namespace*."""
    return f"{namespace}{KEY_SEPARATOR}"


def compute_fingerprint(
    namespace: str,
    descriptor: Mapping[str, Any],
    hash_fn: HashFunction = rolling_hash,
) -> Fingerprint:
    """Canonicalise and hash *descriptor* for *namespace*."""
    canonical = canonicalize(namespace, descriptor)
    return Fingerprint(
        namespace=namespace,
        canonical=canonical,
        digest=hash_fn(canonical) & 0xFFFFFFFF,
    )

"""Small aggregations shared by several page definitions."""

from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from brandops.upstream.models import Product, Shipment

T = TypeVar("T")

CLOSED_STATUSES = ("completed", "cancelled")


def percent(part: float, whole: float, digits: int = 1) -> float:
    """``part / whole`` as a percentage, ``0.0`` when *whole* is zero."""
    if not whole:
        return 0.0
    return round(part / whole * 100, digits)


def count_where(rows: Iterable[T], predicate: Callable[[T], bool]) -> int:
    return sum(1 for row in rows if predicate(row))


def is_at_risk(shipment: Shipment) -> bool:
    """Quantity mismatch or cancellation."""
    return shipment.has_discrepancy or shipment.status == "cancelled"


def is_delayed(shipment: Shipment) -> bool:
    return "delayed" in shipment.status.lower()


def is_late(shipment: Shipment) -> bool:
    """Arrived after the expected date (ISO dates compare as text)."""
    if not shipment.arrival_date or not shipment.expected_arrival_date:
        return False
    return shipment.arrival_date[:10] > shipment.expected_arrival_date[:10]


def has_arrival_window(shipment: Shipment) -> bool:
    return bool(shipment.arrival_date and shipment.expected_arrival_date)


def open_po_count(shipments: Iterable[Shipment]) -> int:
    """Distinct purchase orders not yet completed or cancelled."""
    return len({
        s.order_id for s in shipments if s.status.lower() not in CLOSED_STATUSES
    })


def created_on(shipments: Iterable[Shipment], day: str) -> List[Shipment]:
    return [s for s in shipments if s.created_day == day]


def inventory_value(product: Product) -> float:
    return product.unit_quantity * (product.unit_cost or 0)


def group_by(rows: Iterable[T], key: Callable[[T], Optional[str]]) -> Dict[str, List[T]]:
    groups: Dict[str, List[T]] = defaultdict(list)
    for row in rows:
        groups[key(row) or "Unknown"].append(row)
    return dict(groups)


def top(items: Dict[str, T], sort_key: Callable[[T], float], limit: int = 5) -> Dict[str, T]:
    """The *limit* largest entries of *items* by *sort_key*, largest first."""
    ranked = sorted(items.items(), key=lambda kv: sort_key(kv[1]), reverse=True)
    return dict(ranked[:limit])

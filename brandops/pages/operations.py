"""
Order-flow pages: dashboard, orders, SLA and inbound.

These pages are driven by the inbound-shipment view.  The dashboard also
reads the product view to count unfulfillable SKUs.
"""

from typing import Any, Dict, Mapping

from brandops.pages.base import Page
from brandops.pages.metrics import (
    count_where,
    created_on,
    group_by,
    has_arrival_window,
    is_at_risk,
    is_delayed,
    is_late,
    open_po_count,
    percent,
    top,
)
from brandops.upstream.client import SHIPMENTS
from brandops.upstream.models import Dataset

# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def dashboard_kpis(dataset: Dataset) -> Dict[str, Any]:
    shipments = dataset.shipments
    return {
        "total_orders_today": len(created_on(shipments, dataset.today)),
        "at_risk_order_count": count_where(shipments, is_at_risk),
        "open_po_count": open_po_count(shipments),
        "unfulfillable_sku_count": count_where(dataset.products, lambda p: not p.active),
    }


def dashboard_sections(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, Any]:
    shipments = dataset.shipments
    completed = count_where(shipments, lambda s: s.status == "completed")

    by_supplier = group_by(shipments, lambda s: s.supplier)
    margin = {
        supplier: {
            "shortfall_value": round(sum(s.shortfall_value for s in rows), 2),
            "at_risk_shipments": count_where(rows, is_at_risk),
        }
        for supplier, rows in by_supplier.items()
    }

    by_warehouse = group_by(shipments, lambda s: s.warehouse_id)
    warehouses = {}
    for warehouse, rows in by_warehouse.items():
        costs = [s.unit_cost for s in rows if s.unit_cost is not None]
        warehouses[warehouse] = {
            "total_inventory": int(sum(s.received_quantity for s in rows)),
            "shipment_count": len(rows),
            "average_cost": round(sum(costs) / len(costs), 2) if costs else 0.0,
        }

    return {
        "quick_overview": {
            "top_issues": kpis.get("at_risk_order_count", 0),
            "whats_working": completed,
            "dollar_impact": round(sum(s.shortfall_value for s in shipments), 2),
            "completed_workflows": completed,
        },
        "margin_risks": top(margin, lambda row: row["shortfall_value"]),
        "warehouse_inventory": warehouses,
    }


def dashboard_context(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, str]:
    total = len(dataset.shipments)
    at_risk = kpis.get("at_risk_order_count", 0)
    return {
        "at_risk_order_count": (
            f"{at_risk} of {total} shipments have quantity mismatches or were cancelled"
        ),
        "unfulfillable_sku_count": (
            f"{kpis.get('unfulfillable_sku_count', 0)} of {len(dataset.products)} "
            "products are inactive"
        ),
    }


DASHBOARD = Page(
    name="dashboard",
    namespace="dashboard-insights",
    persona=(
        "You are a senior supply chain analyst preparing the executive summary "
        "for an ecommerce brand's operations dashboard."
    ),
    focus=(
        "Identify the most urgent operational risks and the opportunities with "
        "the largest financial impact across orders, suppliers and warehouses."
    ),
    compute_kpis=dashboard_kpis,
    kpi_labels={
        "total_orders_today": "Orders created today",
        "at_risk_order_count": "At-risk orders",
        "open_po_count": "Open purchase orders",
        "unfulfillable_sku_count": "Unfulfillable SKUs",
    },
    build_sections=dashboard_sections,
    describe_kpis=dashboard_context,
    max_insights=5,
)

# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


def _is_order_at_risk(shipment) -> bool:
    return is_at_risk(shipment) or is_delayed(shipment)


def orders_kpis(dataset: Dataset) -> Dict[str, Any]:
    shipments = dataset.shipments
    cancelled = count_where(shipments, lambda s: s.status == "cancelled")
    return {
        "order_count": len(shipments),
        "orders_today": len(created_on(shipments, dataset.today)),
        "at_risk_order_count": count_where(shipments, _is_order_at_risk),
        "open_po_count": open_po_count(shipments),
        "unfulfillable_sku_count": count_where(shipments, lambda s: s.received_quantity == 0),
        "cancellation_rate": percent(cancelled, len(shipments)),
    }


def orders_sections(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, Any]:
    shipments = dataset.shipments
    statuses = {status: len(rows) for status, rows in group_by(shipments, lambda s: s.status).items()}
    suppliers = {
        supplier: {
            "orders": len(rows),
            "value": round(sum(s.expected_quantity * (s.unit_cost or 0) for s in rows), 2),
        }
        for supplier, rows in group_by(shipments, lambda s: s.supplier).items()
    }
    return {
        "status_breakdown": statuses,
        "supplier_breakdown": top(suppliers, lambda row: row["value"]),
    }


def orders_context(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, str]:
    return {
        "cancellation_rate": (
            f"{kpis.get('cancellation_rate', 0.0)}% of {kpis.get('order_count', 0)} "
            "orders were cancelled"
        ),
        "unfulfillable_sku_count": "Shipments with nothing received yet",
    }


ORDERS = Page(
    name="orders",
    namespace="orders-insights",
    persona=(
        "You are an order operations analyst for an ecommerce brand. You review "
        "purchase order flow and flag fulfilment problems before customers notice."
    ),
    focus=(
        "Analyse at-risk orders, open purchase orders, cancellations and "
        "unfulfilled shipments, and recommend concrete next steps."
    ),
    compute_kpis=orders_kpis,
    kpi_labels={
        "order_count": "Orders in view",
        "orders_today": "Orders created today",
        "at_risk_order_count": "At-risk orders",
        "open_po_count": "Open purchase orders",
        "unfulfillable_sku_count": "Unfulfilled shipments",
        "cancellation_rate": "Cancellation rate (%)",
    },
    build_sections=orders_sections,
    describe_kpis=orders_context,
    max_insights=5,
    collections=(SHIPMENTS,),
    insight_collections=(SHIPMENTS,),
)

# ---------------------------------------------------------------------------
# SLA
# ---------------------------------------------------------------------------


def sla_kpis(dataset: Dataset) -> Dict[str, Any]:
    shipments = dataset.shipments
    windowed = [s for s in shipments if has_arrival_window(s)]
    late = count_where(windowed, is_late)
    accurate = count_where(shipments, lambda s: not s.has_discrepancy)
    return {
        "shipment_count": len(shipments),
        "on_time_rate": percent(len(windowed) - late, len(windowed)),
        "late_shipment_count": late,
        "quantity_accuracy": percent(accurate, len(shipments)),
    }


def sla_sections(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, Any]:
    scorecard = {}
    for supplier, rows in group_by(dataset.shipments, lambda s: s.supplier).items():
        windowed = [s for s in rows if has_arrival_window(s)]
        late = count_where(windowed, is_late)
        scorecard[supplier] = {
            "shipments": len(rows),
            "late": late,
            "on_time_rate": percent(len(windowed) - late, len(windowed)),
        }
    return {"supplier_scorecard": scorecard}


SLA = Page(
    name="sla",
    namespace="sla-insights",
    persona=(
        "You are a supplier performance manager tracking delivery service levels "
        "for an ecommerce brand."
    ),
    focus=(
        "Assess on-time delivery and quantity accuracy by supplier and propose "
        "actions that protect service levels."
    ),
    compute_kpis=sla_kpis,
    kpi_labels={
        "shipment_count": "Shipments tracked",
        "on_time_rate": "On-time rate (%)",
        "late_shipment_count": "Late shipments",
        "quantity_accuracy": "Quantity accuracy (%)",
    },
    build_sections=sla_sections,
    max_insights=4,
    collections=(SHIPMENTS,),
    insight_collections=(SHIPMENTS,),
)

# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------


def inbound_kpis(dataset: Dataset) -> Dict[str, Any]:
    shipments = dataset.shipments
    expected = sum(s.expected_quantity for s in shipments)
    received = sum(s.received_quantity for s in shipments)
    return {
        "shipment_count": len(shipments),
        "arrivals_today": count_where(
            shipments, lambda s: (s.arrival_date or "")[:10] == dataset.today
        ),
        "delayed_shipment_count": count_where(shipments, is_delayed),
        "receiving_accuracy": percent(received, expected),
    }


def inbound_sections(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, Any]:
    shipments = dataset.shipments
    delivery = {
        supplier: {
            "shipments": len(rows),
            "delayed": count_where(rows, is_delayed),
            "shortfall_units": int(
                sum(max(s.expected_quantity - s.received_quantity, 0) for s in rows)
            ),
        }
        for supplier, rows in group_by(shipments, lambda s: s.supplier).items()
    }
    return {
        "status_breakdown": {
            status: len(rows) for status, rows in group_by(shipments, lambda s: s.status).items()
        },
        "supplier_delivery": delivery,
    }


INBOUND = Page(
    name="inbound",
    namespace="inbound-insights",
    persona=(
        "You are a receiving operations lead for an ecommerce brand's inbound "
        "logistics."
    ),
    focus=(
        "Review today's arrivals, delayed shipments and receiving shortfalls and "
        "recommend how to keep the dock schedule on track."
    ),
    compute_kpis=inbound_kpis,
    kpi_labels={
        "shipment_count": "Inbound shipments",
        "arrivals_today": "Arrivals today",
        "delayed_shipment_count": "Delayed shipments",
        "receiving_accuracy": "Receiving accuracy (%)",
    },
    build_sections=inbound_sections,
    max_insights=4,
    collections=(SHIPMENTS,),
    insight_collections=(SHIPMENTS,),
)

OPERATIONS_PAGES = (DASHBOARD, ORDERS, SLA, INBOUND)

__all__ = ["DASHBOARD", "INBOUND", "OPERATIONS_PAGES", "ORDERS", "SLA"]

"""Catalog and stock pages: inventory, replenishment, warehouses and reports."""

from typing import Any, Dict, Mapping

from brandops.pages.base import Page
from brandops.pages.metrics import count_where, group_by, inventory_value, percent, top
from brandops.upstream.client import PRODUCTS, SHIPMENTS
from brandops.upstream.models import Dataset, Product

LOW_STOCK_THRESHOLD = 10
REORDER_POINT = 20
CRITICAL_LEVEL = 5

# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


def _is_low_stock(product: Product) -> bool:
    return product.active and product.unit_quantity < LOW_STOCK_THRESHOLD


def inventory_kpis(dataset: Dataset) -> Dict[str, Any]:
    products = dataset.products
    active = count_where(products, lambda p: p.active)
    return {
        "product_count": len(products),
        "active_product_count": active,
        "inactive_product_count": len(products) - active,
        "low_stock_count": count_where(products, _is_low_stock),
        "total_inventory_value": round(sum(inventory_value(p) for p in products), 2),
    }


def inventory_sections(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, Any]:
    suppliers = {
        supplier: {
            "skus": len(rows),
            "inventory_value": round(sum(inventory_value(p) for p in rows), 2),
        }
        for supplier, rows in group_by(dataset.products, lambda p: p.supplier_name).items()
    }
    low = sorted(
        (p for p in dataset.products if _is_low_stock(p)), key=lambda p: p.unit_quantity
    )
    return {
        "supplier_breakdown": top(suppliers, lambda row: row["inventory_value"]),
        "low_stock_items": {
            (p.product_sku or p.product_id): int(p.unit_quantity) for p in low[:5]
        },
    }


INVENTORY = Page(
    name="inventory",
    namespace="inventory-insights",
    persona=(
        "You are an inventory planner for an ecommerce brand, responsible for "
        "catalog health and stock levels."
    ),
    focus=(
        "Analyse active and inactive SKUs, low-stock items and where inventory "
        "value is concentrated, then recommend how to rebalance."
    ),
    compute_kpis=inventory_kpis,
    kpi_labels={
        "product_count": "Total products",
        "active_product_count": "Active products",
        "inactive_product_count": "Inactive products",
        "low_stock_count": "Low-stock SKUs",
        "total_inventory_value": "Inventory value ($)",
    },
    build_sections=inventory_sections,
    max_insights=5,
    collections=(PRODUCTS,),
    insight_collections=(PRODUCTS,),
)

# ---------------------------------------------------------------------------
# Replenishment
# ---------------------------------------------------------------------------


def _needs_reorder(product: Product) -> bool:
    return product.active and product.unit_quantity < REORDER_POINT


def replenishment_kpis(dataset: Dataset) -> Dict[str, Any]:
    products = dataset.products
    reorder = [p for p in products if _needs_reorder(p)]
    return {
        "critical_sku_count": count_where(
            products, lambda p: p.active and p.unit_quantity <= CRITICAL_LEVEL
        ),
        "reorder_count": len(reorder),
        "supplier_count": len({p.supplier_name for p in products if p.supplier_name}),
        "value_at_risk": round(
            sum((REORDER_POINT - p.unit_quantity) * (p.unit_cost or 0) for p in reorder), 2
        ),
    }


def replenishment_sections(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, Any]:
    reorder = sorted(
        (p for p in dataset.products if _needs_reorder(p)), key=lambda p: p.unit_quantity
    )
    reliability = {}
    for supplier, rows in group_by(dataset.shipments, lambda s: s.supplier).items():
        expected = sum(s.expected_quantity for s in rows)
        reliability[supplier] = {
            "shipments": len(rows),
            "fill_rate": percent(sum(s.received_quantity for s in rows), expected),
        }
    return {
        "reorder_list": {
            (p.product_sku or p.product_id): {
                "on_hand": int(p.unit_quantity),
                "reorder_quantity": int(REORDER_POINT - p.unit_quantity),
                "supplier": p.supplier_name or "Unknown",
            }
            for p in reorder[:8]
        },
        "supplier_reliability": reliability,
    }


REPLENISHMENT = Page(
    name="replenishment",
    namespace="replenishment-insights",
    persona=(
        "You are a demand and replenishment planner for an ecommerce brand."
    ),
    focus=(
        "Prioritise SKUs that need reordering, quantify the value at risk and "
        "recommend purchase actions per supplier."
    ),
    compute_kpis=replenishment_kpis,
    kpi_labels={
        "critical_sku_count": "Critical SKUs",
        "reorder_count": "Reorder recommendations",
        "supplier_count": "Suppliers",
        "value_at_risk": "Value at risk ($)",
    },
    build_sections=replenishment_sections,
    max_insights=4,
)

# ---------------------------------------------------------------------------
# Warehouses
# ---------------------------------------------------------------------------


def warehouses_kpis(dataset: Dataset) -> Dict[str, Any]:
    shipments = dataset.shipments
    costs = [s.unit_cost for s in shipments if s.unit_cost is not None]
    return {
        "shipment_count": len(shipments),
        "warehouse_count": len({s.warehouse_id for s in shipments if s.warehouse_id}),
        "total_received_units": int(sum(s.received_quantity for s in shipments)),
        "avg_unit_cost": round(sum(costs) / len(costs), 2) if costs else 0.0,
    }


def warehouses_sections(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "warehouses": {
            warehouse: {
                "shipments": len(rows),
                "received_units": int(sum(s.received_quantity for s in rows)),
                "inventory_value": round(
                    sum(s.received_quantity * (s.unit_cost or 0) for s in rows), 2
                ),
            }
            for warehouse, rows in group_by(dataset.shipments, lambda s: s.warehouse_id).items()
        }
    }


WAREHOUSES = Page(
    name="warehouses",
    namespace="warehouses-insights",
    persona="You are a warehouse network manager for an ecommerce brand.",
    focus=(
        "Compare received volume and inventory value across warehouses and "
        "recommend how to balance the network."
    ),
    compute_kpis=warehouses_kpis,
    kpi_labels={
        "warehouse_count": "Warehouses",
        "total_received_units": "Units received",
        "avg_unit_cost": "Average unit cost ($)",
    },
    build_sections=warehouses_sections,
    max_insights=3,
    collections=(SHIPMENTS,),
    insight_collections=(SHIPMENTS,),
)

# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def reports_kpis(dataset: Dataset) -> Dict[str, Any]:
    suppliers = {p.supplier_name for p in dataset.products if p.supplier_name}
    suppliers.update(s.supplier for s in dataset.shipments if s.supplier)
    return {
        "product_count": len(dataset.products),
        "shipment_count": len(dataset.shipments),
        "total_order_value": round(
            sum(s.expected_quantity * (s.unit_cost or 0) for s in dataset.shipments), 2
        ),
        "supplier_count": len(suppliers),
    }


def reports_sections(dataset: Dataset, kpis: Mapping[str, Any]) -> Dict[str, Any]:
    products = group_by(dataset.products, lambda p: p.supplier_name)
    shipments = group_by(dataset.shipments, lambda s: s.supplier)
    summary = {
        supplier: {
            "products": len(products.get(supplier, [])),
            "shipments": len(shipments.get(supplier, [])),
        }
        for supplier in sorted(set(products) | set(shipments))
    }
    return {"supplier_summary": summary}


REPORTS = Page(
    name="reports",
    namespace="reports-insights",
    persona=(
        "You are a business analyst writing the periodic operations report for "
        "an ecommerce brand."
    ),
    focus=(
        "Summarise catalog size, order value and supplier concentration, and "
        "highlight trends leadership should act on."
    ),
    compute_kpis=reports_kpis,
    kpi_labels={
        "product_count": "Products",
        "shipment_count": "Shipments",
        "total_order_value": "Total order value ($)",
        "supplier_count": "Suppliers",
    },
    build_sections=reports_sections,
    max_insights=3,
)

CATALOG_PAGES = (INVENTORY, REPLENISHMENT, WAREHOUSES, REPORTS)

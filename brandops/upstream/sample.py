"""Bundled sample rows served by :class:`SampleDataClient`."""

from datetime import datetime, timedelta
from typing import Any, Dict, List

SAMPLE_BRAND = "Callahan-Smith"
OTHER_BRAND = "Northwind Goods"

_SUPPLIERS = ["Acme Textiles", "Blue Harbor Supply", "Crescent Packaging"]
_WAREHOUSES = ["WH-EAST", "WH-WEST"]
_STATUSES = ["completed", "receiving", "in_transit", "delayed", "cancelled"]


def sample_products(now: datetime) -> List[Dict[str, Any]]:
    created = (now - timedelta(days=90)).date().isoformat()
    rows = []
    for i in range(12):
        rows.append({
            "product_id": f"prod-{i:03d}",
            "brand_name": SAMPLE_BRAND,
            "product_name": f"Sample Product {i}",
            "product_sku": f"CS-{1000 + i}",
            "active": i % 5 != 4,
            "supplier_name": _SUPPLIERS[i % len(_SUPPLIERS)],
            "inventory_item_id": f"inv-{i:03d}",
            "unit_quantity": [0, 4, 12, 40, 85, 150][i % 6],
            "unit_cost": round(8.5 + i * 3.25, 2),
            "created_date": created,
        })
    rows.append({
        "product_id": "prod-x01",
        "brand_name": OTHER_BRAND,
        "product_name": "Unrelated Product",
        "active": True,
        "unit_quantity": 10,
        "unit_cost": 5.0,
    })
    return rows


def sample_shipments(now: datetime) -> List[Dict[str, Any]]:
    rows = []
    for i in range(20):
        created = now - timedelta(days=i % 7)
        expected = 100 + (i % 4) * 25
        status = _STATUSES[i % len(_STATUSES)]
        received = expected if status == "completed" else expected - (i % 3) * 10
        if status == "cancelled":
            received = 0
        rows.append({
            "shipment_id": f"shp-{i:03d}",
            "brand_name": SAMPLE_BRAND,
            "created_date": created.date().isoformat(),
            "purchase_order_number": f"PO-{2000 + i // 2}",
            "status": status,
            "supplier": _SUPPLIERS[i % len(_SUPPLIERS)],
            "expected_arrival_date": (created + timedelta(days=5)).date().isoformat(),
            "arrival_date": (created + timedelta(days=5 + i % 3)).date().isoformat(),
            "warehouse_id": _WAREHOUSES[i % len(_WAREHOUSES)],
            "inventory_item_id": f"inv-{i % 12:03d}",
            "sku": f"CS-{1000 + i % 12}",
            "expected_quantity": expected,
            "received_quantity": received,
            "unit_cost": round(8.5 + (i % 12) * 3.25, 2),
        })
    rows.append({
        "shipment_id": "shp-x01",
        "brand_name": OTHER_BRAND,
        "created_date": now.date().isoformat(),
        "status": "delayed",
        "expected_quantity": 50,
        "received_quantity": 0,
    })
    return rows

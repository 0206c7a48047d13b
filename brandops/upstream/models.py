"""
Row models for the analytical datastore.

Only the columns the dashboard uses are declared; anything else in the
upstream payload is ignored.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """One row of the product-details view."""

    model_config = ConfigDict(extra="ignore")

    product_id: str
    brand_name: str = ""
    product_name: str = ""
    product_sku: Optional[str] = None
    active: bool = True
    supplier_name: Optional[str] = None
    inventory_item_id: Optional[str] = None
    unit_quantity: float = 0
    unit_cost: Optional[float] = None
    created_date: Optional[str] = None


class Shipment(BaseModel):
    """One row of the inbound-shipments view."""

    model_config = ConfigDict(extra="ignore")

    shipment_id: str
    brand_name: str = ""
    created_date: str = ""
    purchase_order_number: Optional[str] = None
    status: str = ""
    supplier: Optional[str] = None
    expected_arrival_date: Optional[str] = None
    arrival_date: Optional[str] = None
    warehouse_id: Optional[str] = None
    inventory_item_id: Optional[str] = None
    sku: Optional[str] = None
    expected_quantity: float = 0
    received_quantity: float = 0
    unit_cost: Optional[float] = None

    @property
    def created_day(self) -> str:
        """``YYYY-MM-DD`` part of ``created_date``."""
        return self.created_date.split("T")[0]

    @property
    def order_id(self) -> str:
        return self.purchase_order_number or self.shipment_id

    @property
    def has_discrepancy(self) -> bool:
        return self.expected_quantity != self.received_quantity

    @property
    def shortfall_value(self) -> float:
        return abs(self.expected_quantity - self.received_quantity) * (self.unit_cost or 0)


class Dataset(BaseModel):
    """Brand-filtered rows plus the coarse summary used for fingerprinting.

    Attributes:
        brand: Brand filter applied to the rows.
        products: Product rows (empty when not requested).
        shipments: Shipment rows (empty when not requested).
        fetched_at: UTC instant the rows were retrieved.
    """

    brand: str
    products: List[Product] = Field(default_factory=list)
    shipments: List[Shipment] = Field(default_factory=list)
    fetched_at: datetime

    @property
    def today(self) -> str:
        return self.fetched_at.date().isoformat()

    def projection_summary(self) -> Dict[str, Any]:
        """Features of the dataset that participate in fingerprints."""
        return {
            "brand": self.brand,
            "product_count": len(self.products),
            "shipment_count": len(self.shipments),
        }

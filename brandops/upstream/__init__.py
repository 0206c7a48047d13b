"""Analytical datastore collaborators."""

from brandops.upstream.client import (
    ALL_COLLECTIONS,
    DataClient,
    DatasetClient,
    SampleDataClient,
    build_data_client,
)
from brandops.upstream.models import Dataset, Product, Shipment

__all__ = [
    "ALL_COLLECTIONS",
    "DataClient",
    "Dataset",
    "DatasetClient",
    "Product",
    "SampleDataClient",
    "Shipment",
    "build_data_client",
]

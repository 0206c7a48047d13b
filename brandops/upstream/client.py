"""
Data collaborators for the dashboard pages.

:class:`DataClient` reads the product and inbound-shipment views of the
analytical datastore over HTTP (``?token=&limit=&brand_name=``, response
``{"data": [...]}``).  :class:`SampleDataClient` serves a fixed
in-memory dataset for mock mode and tests.  Both return a brand-filtered
:class:`Dataset`.
"""

import asyncio
import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Type, TypeVar, runtime_checkable

import httpx
from pydantic import BaseModel, ValidationError

from brandops.clock import Clock, utcnow
from brandops.config import UpstreamSettings, get_settings
from brandops.exceptions import UpstreamFetchError
from brandops.upstream.models import Dataset, Product, Shipment

logger = logging.getLogger(__name__)

PRODUCTS = "products"
SHIPMENTS = "shipments"
ALL_COLLECTIONS = (PRODUCTS, SHIPMENTS)

RowT = TypeVar("RowT", bound=BaseModel)


@runtime_checkable
class DatasetClient(Protocol):
    """Anything that can produce a brand-filtered dataset."""

    async def fetch_dataset(
        self,
        namespace: str,
        brand: str,
        include: Sequence[str] = ALL_COLLECTIONS,
    ) -> Dataset:
        ...


def _parse_rows(
    rows: Iterable[Any], model: Type[RowT], brand: str, collection: str
) -> List[RowT]:
    """Validate raw rows into *model*, keeping only *brand*'s rows."""
    parsed: List[RowT] = []
    skipped = 0
    for row in rows:
        try:
            item = model.model_validate(row)
        except ValidationError:
            skipped += 1
            continue
        if getattr(item, "brand_name", brand) == brand:
            parsed.append(item)
    if skipped:
        logger.debug(
            "Skipped malformed upstream rows",
            extra={"collection": collection, "skipped": skipped},
        )
    return parsed


class DataClient:
    """HTTP client for the analytical datastore.

    Args:
        settings: Upstream section of the settings.
        transport: Optional ``httpx`` transport (tests use
            ``httpx.MockTransport``).
        clock: Callable returning the current UTC instant.
    """

    def __init__(
        self,
        settings: Optional[UpstreamSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or get_settings().upstream
        self._transport = transport
        self._clock = clock or utcnow

    def _endpoint(self, collection: str) -> Dict[str, Any]:
        s = self._settings
        if collection == PRODUCTS:
            url_env, token_env, limit = s.products_url_env, s.token_env, s.products_limit
        elif collection == SHIPMENTS:
            url_env, token_env, limit = s.shipments_url_env, s.shipments_token_env, s.shipments_limit
        else:
            raise UpstreamFetchError(f"Unknown collection: {collection}")

        url = os.getenv(url_env)
        token = os.getenv(token_env)
        if not url or not token:
            raise UpstreamFetchError(
                f"{url_env} and {token_env} environment variables are required"
            )
        return {"url": url, "token": token, "limit": limit}

    async def _fetch_rows(
        self, client: httpx.AsyncClient, collection: str, brand: str
    ) -> List[Any]:
        endpoint = self._endpoint(collection)
        params = {
            "token": endpoint["token"],
            "limit": endpoint["limit"],
            "brand_name": brand,
        }
        try:
            response = await client.get(endpoint["url"], params=params)
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(f"{collection} request failed: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamFetchError(
                f"{collection} request failed: HTTP {response.status_code} "
                f"{response.reason_phrase}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamFetchError(f"{collection} response is not JSON") from exc

        data = body.get("data") if isinstance(body, dict) else None
        return data if isinstance(data, list) else []

    async def fetch_dataset(
        self,
        namespace: str,
        brand: str,
        include: Sequence[str] = ALL_COLLECTIONS,
    ) -> Dataset:
        """Fetch the requested collections for *brand* concurrently.

        Raises:
            UpstreamFetchError: On missing configuration, transport
                errors, error statuses or undecodable bodies.
        """
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds, transport=self._transport
        ) as client:
            wanted = [c for c in ALL_COLLECTIONS if c in include]
            results = await asyncio.gather(
                *(self._fetch_rows(client, c, brand) for c in wanted)
            )
        raw = dict(zip(wanted, results))

        dataset = Dataset(
            brand=brand,
            products=_parse_rows(raw.get(PRODUCTS, []), Product, brand, PRODUCTS),
            shipments=_parse_rows(raw.get(SHIPMENTS, []), Shipment, brand, SHIPMENTS),
            fetched_at=self._clock(),
        )
        logger.info(
            "Upstream dataset fetched",
            extra={
                "namespace": namespace,
                "brand": brand,
                "products": len(dataset.products),
                "shipments": len(dataset.shipments),
            },
        )
        return dataset


class SampleDataClient:
    """In-memory data client for mock mode and tests.

    Args:
        products: Raw product rows; the bundled sample when omitted.
        shipments: Raw shipment rows; the bundled sample when omitted.
        clock: Callable returning the current UTC instant.
    """

    def __init__(
        self,
        products: Optional[List[Dict[str, Any]]] = None,
        shipments: Optional[List[Dict[str, Any]]] = None,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        from brandops.upstream.sample import sample_products, sample_shipments

        self._clock = clock or utcnow
        self.products = products if products is not None else sample_products(self._clock())
        self.shipments = shipments if shipments is not None else sample_shipments(self._clock())
        self.calls: int = 0

    async def fetch_dataset(
        self,
        namespace: str,
        brand: str,
        include: Sequence[str] = ALL_COLLECTIONS,
    ) -> Dataset:
        self.calls += 1
        return Dataset(
            brand=brand,
            products=_parse_rows(self.products, Product, brand, PRODUCTS)
            if PRODUCTS in include else [],
            shipments=_parse_rows(self.shipments, Shipment, brand, SHIPMENTS)
            if SHIPMENTS in include else [],
            fetched_at=self._clock(),
        )


def build_data_client(use_mock: bool = False) -> DatasetClient:
    """Return the configured data client (or the in-memory sample)."""
    if use_mock:
        return SampleDataClient()
    return DataClient()

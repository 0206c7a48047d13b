"""
Page dispatcher for the dashboard endpoints.

Every page supports three modes:

* ``fast``: fetch, filter by brand, compute KPIs and derived sections.
  Never touches the insight cache or the LLM.
* ``insights``: fetch the page's reduced projection, compute the KPIs
  the prompt depends on and delegate to :class:`InsightPipeline`.
* ``full`` (default): both of the above, merged, from a single fetch.

LLM failures never surface as errors here: the payload carries
``insights: []`` and ``insights_status: "failed"``.  Upstream failures
propagate as :class:`UpstreamFetchError`.
"""

import logging
import time
from typing import Any, Dict, Literal, Optional, Sequence, Tuple

from brandops.clock import Clock, utcnow
from brandops.config import get_settings
from brandops.exceptions import BadRequestError
from brandops.insights.pipeline import InsightPipeline
from brandops.pages.base import Page
from brandops.pages.registry import PAGES, get_page
from brandops.upstream.client import ALL_COLLECTIONS, DatasetClient
from brandops.upstream.models import Dataset

logger = logging.getLogger(__name__)

Mode = Literal["fast", "insights", "full"]
MODES: Tuple[str, ...] = ("fast", "insights", "full")
DEFAULT_MODE: Mode = "full"


def resolve_mode(mode: Optional[str]) -> Mode:
    """Normalise the ``mode`` query parameter.

    Raises:
        BadRequestError: If *mode* is not one of :data:`MODES`.
    """
    if mode is None or mode == "":
        return DEFAULT_MODE
    value = mode.strip().lower()
    if value not in MODES:
        raise BadRequestError(
            f"Invalid mode '{mode}'. Expected one of: {', '.join(MODES)}"
        )
    return value  # type: ignore[return-value]


def _union(*groups: Sequence[str]) -> Tuple[str, ...]:
    wanted = {c for group in groups for c in group}
    return tuple(c for c in ALL_COLLECTIONS if c in wanted)


class PageDispatcher:
    """Route page requests to the data client and the insight pipeline.

    Args:
        data_client: Source of brand-filtered datasets.
        pipeline: Cache-first insight pipeline.
        pages: Page table; defaults to the built-in pages.
        default_brand: Brand used when a request names none.
        clock: Callable returning the current UTC instant.
    """

    def __init__(
        self,
        data_client: DatasetClient,
        pipeline: InsightPipeline,
        pages: Optional[Dict[str, Page]] = None,
        default_brand: Optional[str] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._data_client = data_client
        self._pipeline = pipeline
        self._pages = pages if pages is not None else PAGES
        self._default_brand = default_brand or get_settings().upstream.default_brand
        self._clock = clock or utcnow

    @property
    def pages(self) -> Dict[str, Page]:
        return self._pages

    async def dispatch(
        self,
        page_name: str,
        mode: Optional[str] = None,
        brand: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Serve one page request.

        Args:
            page_name: Registered page name (``orders``).
            mode: ``fast``, ``insights`` or ``full``; ``None`` means full.
            brand: Brand filter; the configured default when omitted.

        Returns:
            The ``data`` object of the response envelope.

        Raises:
            UnknownPageError: If *page_name* is not registered.
            BadRequestError: If *mode* is invalid.
            UpstreamFetchError: If the data source cannot be read.
        """
        page = get_page(page_name, self._pages)
        resolved = resolve_mode(mode)
        brand = (brand or "").strip() or self._default_brand
        start = time.time()

        if resolved == "fast":
            include = page.collections
        elif resolved == "insights":
            include = page.insight_collections
        else:
            include = _union(page.collections, page.insight_collections)

        dataset = await self._data_client.fetch_dataset(page.namespace, brand, include)
        kpis = page.compute_kpis(dataset)

        data: Dict[str, Any] = {"page": page.name, "brand": brand, "mode": resolved}
        if resolved in ("fast", "full"):
            data.update(self._fast_payload(page, dataset, kpis))
        if resolved in ("insights", "full"):
            data.update(await self._insights_payload(page, dataset, kpis))
        data["last_updated"] = self._clock().isoformat()

        logger.info(
            "Page served",
            extra={
                "page": page.name,
                "mode": resolved,
                "brand": brand,
                "latency_ms": int((time.time() - start) * 1000),
                "insights_status": data.get("insights_status"),
            },
        )
        return data

    # ------------------------------------------------------------------
    # Mode payloads
    # ------------------------------------------------------------------

    def _fast_payload(
        self, page: Page, dataset: Dataset, kpis: Dict[str, Any]
    ) -> Dict[str, Any]:
        return {
            "kpis": kpis,
            "sections": page.build_sections(dataset, kpis),
            "insights": [],
        }

    async def _insights_payload(
        self, page: Page, dataset: Dataset, kpis: Dict[str, Any]
    ) -> Dict[str, Any]:
        result = await self._pipeline.produce(
            page.namespace,
            page.fingerprint_projection(dataset),
            kpis,
            lambda: page.build_prompt(dataset, kpis),
            max_insights=page.max_insights,
            source=page.root,
        )
        payload: Dict[str, Any] = {
            "insights": [i.model_dump(mode="json") for i in result.insights],
            "kpi_context": page.kpi_context(dataset, kpis),
            "insights_status": result.status,
            "cache_hit": result.cache_hit,
        }
        if result.error:
            payload["insights_error"] = result.error
        return payload

"""
Tests for the page dispatcher and the page definitions behind it.
"""

import pytest

from brandops.cache.fingerprint import NAMESPACE_FIELDS
from brandops.cache.insight_cache import InsightCache
from brandops.dispatcher import PageDispatcher, resolve_mode
from brandops.exceptions import BadRequestError, LLMError, UnknownPageError, UpstreamFetchError
from brandops.insights.llm import MockLLMClient
from brandops.insights.pipeline import InsightPipeline
from brandops.pages import PAGES, get_page, page_names
from brandops.upstream.client import SampleDataClient
from brandops.upstream.sample import OTHER_BRAND, SAMPLE_BRAND


class FailingLLM:
    def __init__(self) -> None:
        self.calls = 0

    async def call_llm(self, *args) -> str:
        self.calls += 1
        raise LLMError("model offline")


class BrokenDataClient:
    async def fetch_dataset(self, namespace, brand, include=()):
        raise UpstreamFetchError("products request failed: HTTP 503")


@pytest.fixture
def cache(cache_settings, clock) -> InsightCache:
    return InsightCache(cache_settings, clock=clock)


@pytest.fixture
def llm() -> MockLLMClient:
    return MockLLMClient()


@pytest.fixture
def data_client(clock) -> SampleDataClient:
    return SampleDataClient(clock=clock)


@pytest.fixture
def dispatcher(cache, llm, data_client, llm_settings, clock) -> PageDispatcher:
    pipeline = InsightPipeline(cache, llm, llm_settings, clock=clock, bucket_seconds=300)
    return PageDispatcher(data_client, pipeline, default_brand=SAMPLE_BRAND, clock=clock)


class TestResolveMode:
    @pytest.mark.parametrize("raw, expected", [
        (None, "full"), ("", "full"), ("fast", "fast"), ("INSIGHTS", "insights"), ("full", "full"),
    ])
    def test_valid(self, raw, expected) -> None:
        assert resolve_mode(raw) == expected

    def test_invalid(self) -> None:
        with pytest.raises(BadRequestError, match="Invalid mode"):
            resolve_mode("turbo")


class TestFastMode:
    async def test_no_cache_or_llm_interaction(self, dispatcher, cache, llm) -> None:
        data = await dispatcher.dispatch("orders", mode="fast")

        assert data["insights"] == []
        assert "kpis" in data and "sections" in data
        assert llm.calls == 0
        assert cache.size == 0
        stats = cache.stats()
        assert (stats.hits, stats.misses) == (0, 0)

    async def test_orders_kpis(self, dispatcher) -> None:
        data = await dispatcher.dispatch("orders", mode="fast")
        kpis = data["kpis"]
        assert kpis["order_count"] == 20
        assert kpis["orders_today"] == 3
        assert kpis["cancellation_rate"] == 20.0
        assert data["sections"]["status_breakdown"]["cancelled"] == 4

    async def test_inventory_kpis(self, dispatcher) -> None:
        kpis = (await dispatcher.dispatch("inventory", mode="fast"))["kpis"]
        assert kpis["product_count"] == 12
        assert kpis["active_product_count"] == 10
        assert kpis["inactive_product_count"] == 2
        assert kpis["low_stock_count"] == 4

    async def test_dashboard_sections(self, dispatcher) -> None:
        data = await dispatcher.dispatch("dashboard", mode="fast")
        sections = data["sections"]
        assert set(sections) == {"quick_overview", "margin_risks", "warehouse_inventory"}
        assert len(sections["margin_risks"]) <= 5
        assert set(sections["warehouse_inventory"]) == {"WH-EAST", "WH-WEST"}

    async def test_fast_survives_llm_outage(self, cache, data_client, llm_settings, clock) -> None:
        failing = FailingLLM()
        pipeline = InsightPipeline(cache, failing, llm_settings, clock=clock)
        dispatcher = PageDispatcher(data_client, pipeline, default_brand=SAMPLE_BRAND, clock=clock)
        data = await dispatcher.dispatch("sla", mode="fast")
        assert "on_time_rate" in data["kpis"]
        assert failing.calls == 0


class TestInsightsMode:
    async def test_returns_insights_and_context(self, dispatcher, llm) -> None:
        data = await dispatcher.dispatch("orders", mode="insights")

        assert len(data["insights"]) == 3
        assert data["insights"][0]["id"] == "orders-insight-0"
        assert data["insights"][0]["source"] == "orders"
        assert data["insights_status"] == "generated"
        assert data["cache_hit"] is False
        assert "sections" not in data
        assert data["kpi_context"]["cancellation_rate"]["value"] == 20.0
        assert "last_updated" in data
        assert "Brand: Callahan-Smith" in llm.prompts[0]

    async def test_second_request_is_cache_hit(self, dispatcher, llm) -> None:
        await dispatcher.dispatch("orders", mode="insights")
        data = await dispatcher.dispatch("orders", mode="insights")
        assert data["cache_hit"] is True
        assert data["insights_status"] == "cached"
        assert llm.calls == 1

    async def test_llm_failure_yields_empty_insights(
        self, cache, data_client, llm_settings, clock
    ) -> None:
        pipeline = InsightPipeline(cache, FailingLLM(), llm_settings, clock=clock)
        dispatcher = PageDispatcher(data_client, pipeline, default_brand=SAMPLE_BRAND, clock=clock)

        data = await dispatcher.dispatch("inventory", mode="insights")

        assert data["insights"] == []
        assert data["insights_status"] == "failed"
        assert data["insights_error"] == "model offline"
        assert cache.size == 0

    async def test_brand_filter_separates_cache_entries(self, dispatcher, llm, cache) -> None:
        await dispatcher.dispatch("orders", mode="insights", brand=SAMPLE_BRAND)
        data = await dispatcher.dispatch("orders", mode="insights", brand=OTHER_BRAND)
        assert data["brand"] == OTHER_BRAND
        assert llm.calls == 2
        assert cache.size == 2


class TestFullMode:
    async def test_merges_fast_and_insights(self, dispatcher, data_client) -> None:
        data = await dispatcher.dispatch("dashboard")
        assert data["mode"] == "full"
        assert "kpis" in data and "sections" in data
        assert len(data["insights"]) == 3
        assert "kpi_context" in data
        assert data_client.calls == 1

    async def test_full_and_insights_share_cache_entry(self, dispatcher, llm) -> None:
        await dispatcher.dispatch("replenishment", mode="full")
        data = await dispatcher.dispatch("replenishment", mode="insights")
        assert data["cache_hit"] is True
        assert llm.calls == 1

    @pytest.mark.parametrize("name", sorted(PAGES))
    async def test_insights_and_full_build_the_same_prompt(
        self, name, cache_settings, llm_settings, clock
    ) -> None:
        prompts = {}
        for mode in ("insights", "full"):
            llm = MockLLMClient()
            pipeline = InsightPipeline(
                InsightCache(cache_settings, clock=clock), llm, llm_settings,
                clock=clock, bucket_seconds=300,
            )
            dispatcher = PageDispatcher(
                SampleDataClient(clock=clock), pipeline,
                default_brand=SAMPLE_BRAND, clock=clock,
            )
            await dispatcher.dispatch(name, mode=mode)
            prompts[mode] = llm.prompts

        assert len(prompts["insights"]) == 1
        assert prompts["insights"] == prompts["full"]

    async def test_replenishment_prompt_has_supplier_reliability(
        self, dispatcher, llm
    ) -> None:
        await dispatcher.dispatch("replenishment", mode="insights")
        assert "SUPPLIER RELIABILITY" in llm.prompts[0]


class TestErrors:
    async def test_unknown_page(self, dispatcher) -> None:
        with pytest.raises(UnknownPageError, match="Unknown page 'billing'"):
            await dispatcher.dispatch("billing")

    async def test_invalid_mode(self, dispatcher) -> None:
        with pytest.raises(BadRequestError):
            await dispatcher.dispatch("orders", mode="slow")

    async def test_upstream_failure_propagates(self, cache, llm, llm_settings, clock) -> None:
        pipeline = InsightPipeline(cache, llm, llm_settings, clock=clock)
        dispatcher = PageDispatcher(BrokenDataClient(), pipeline, default_brand=SAMPLE_BRAND)
        with pytest.raises(UpstreamFetchError):
            await dispatcher.dispatch("orders", mode="insights")
        assert llm.calls == 0
        assert cache.size == 0


class TestPageDefinitions:
    def test_eight_pages_registered(self) -> None:
        assert set(PAGES) == {
            "dashboard", "orders", "inventory", "sla",
            "replenishment", "inbound", "warehouses", "reports",
        }

    def test_get_page(self) -> None:
        assert get_page("orders").namespace == "orders-insights"

    def test_page_names_follow_registry_order(self) -> None:
        assert page_names() == list(PAGES)
        assert page_names()[0] == "dashboard"

    @pytest.mark.parametrize("name", sorted(PAGES))
    async def test_kpis_cover_fingerprint_schema(self, name, data_client) -> None:
        page = PAGES[name]
        dataset = await data_client.fetch_dataset(page.namespace, SAMPLE_BRAND, page.insight_collections)
        available = set(page.fingerprint_projection(dataset)) | set(page.compute_kpis(dataset))
        expected = {field for field, _ in NAMESPACE_FIELDS[page.namespace]}
        assert expected <= available

    @pytest.mark.parametrize("name", sorted(PAGES))
    async def test_prompt_mentions_metrics(self, name, data_client) -> None:
        page = PAGES[name]
        dataset = await data_client.fetch_dataset(page.namespace, SAMPLE_BRAND)
        kpis = page.compute_kpis(dataset)
        prompt = page.build_prompt(dataset, kpis)
        assert "KEY METRICS:" in prompt
        assert f"Brand: {SAMPLE_BRAND}" in prompt
        assert "JSON array" in prompt

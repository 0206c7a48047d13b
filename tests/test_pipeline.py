"""
Tests for the cache-first insight pipeline.
"""

import asyncio
import json
from typing import List, Optional

import pytest

from brandops.cache.insight_cache import InsightCache
from brandops.exceptions import LLMError
from brandops.insights.llm import MockLLMClient
from brandops.insights.pipeline import InsightPipeline, InsightResult

NAMESPACE = "orders-insights"
PROJECTION = {"brand": "Callahan-Smith", "product_count": 0, "shipment_count": 20}
KPIS = {
    "order_count": 20,
    "at_risk_order_count": 9,
    "open_po_count": 6,
    "unfulfillable_sku_count": 4,
}


class ScriptedLLM:
    """LLM stub that fails or answers according to a mutable script."""

    def __init__(self) -> None:
        self.calls = 0
        self.fail = True
        self.records: List[dict] = []

    async def call_llm(self, prompt, model_hint, max_tokens, temperature, deadline) -> str:
        self.calls += 1
        if self.fail:
            raise LLMError("upstream model unavailable")
        return json.dumps(self.records)


class HangingLLM:
    async def call_llm(self, prompt, model_hint, max_tokens, temperature, deadline) -> str:
        await asyncio.Event().wait()
        return "[]"


def _prompt() -> str:
    return "Analyse orders"


@pytest.fixture
def cache(cache_settings, clock) -> InsightCache:
    return InsightCache(cache_settings, clock=clock)


def _pipeline(cache, llm, llm_settings, clock) -> InsightPipeline:
    return InsightPipeline(cache, llm, llm_settings, clock=clock, bucket_seconds=300)


class TestDescriptor:
    def test_merges_projection_kpis_and_bucket(self, cache, llm_settings, clock) -> None:
        pipeline = _pipeline(cache, MockLLMClient(), llm_settings, clock)
        descriptor = pipeline.build_descriptor(PROJECTION, KPIS)
        assert descriptor["brand"] == "Callahan-Smith"
        assert descriptor["at_risk_order_count"] == 9
        assert descriptor["clock_bucket"] == int(clock.now.timestamp() // 300)


class TestProduce:
    async def test_miss_generates_and_caches(self, cache, llm_settings, clock) -> None:
        llm = MockLLMClient()
        pipeline = _pipeline(cache, llm, llm_settings, clock)

        result = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)

        assert isinstance(result, InsightResult)
        assert result.status == "generated"
        assert result.cache_hit is False
        assert [i.id for i in result.insights] == [
            "orders-insight-0", "orders-insight-1", "orders-insight-2",
        ]
        assert cache.size == 1
        assert llm.prompts == ["Analyse orders"]

    async def test_hit_skips_llm(self, cache, llm_settings, clock) -> None:
        llm = MockLLMClient()
        pipeline = _pipeline(cache, llm, llm_settings, clock)
        first = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)

        second = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)

        assert second.status == "cached"
        assert second.cache_hit is True
        assert second.insights == first.insights
        assert llm.calls == 1

    async def test_prompt_built_only_on_miss(self, cache, llm_settings, clock) -> None:
        built = []

        def builder() -> str:
            built.append(1)
            return "prompt"

        pipeline = _pipeline(cache, MockLLMClient(), llm_settings, clock)
        await pipeline.produce(NAMESPACE, PROJECTION, KPIS, builder)
        await pipeline.produce(NAMESPACE, PROJECTION, KPIS, builder)
        assert len(built) == 1

    async def test_kpi_drift_regenerates(self, cache, llm_settings, clock) -> None:
        llm = MockLLMClient()
        pipeline = _pipeline(cache, llm, llm_settings, clock)
        await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)

        drifted = dict(KPIS, at_risk_order_count=10)
        result = await pipeline.produce(NAMESPACE, PROJECTION, drifted, _prompt)

        assert result.status == "generated"
        assert llm.calls == 2

    async def test_next_clock_bucket_regenerates(self, cache, llm_settings, clock) -> None:
        llm = MockLLMClient()
        pipeline = _pipeline(cache, llm, llm_settings, clock)
        await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)

        clock.advance(seconds=300)
        result = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)

        assert result.status == "generated"
        assert llm.calls == 2

    async def test_max_insights_and_source(self, cache, llm_settings, clock) -> None:
        pipeline = _pipeline(cache, MockLLMClient(), llm_settings, clock)
        result = await pipeline.produce(
            NAMESPACE, PROJECTION, KPIS, _prompt, max_insights=2, source="orders_agent"
        )
        assert len(result.insights) == 2
        assert {i.source for i in result.insights} == {"orders_agent"}

    async def test_ttl_override_is_used(self, cache, llm_settings, clock) -> None:
        pipeline = _pipeline(cache, MockLLMClient(), llm_settings, clock)
        await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt, ttl_seconds=10)
        clock.advance(seconds=10)
        result = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)
        assert result.status == "generated"


class TestFailures:
    async def test_llm_failure_preserves_prior_data(self, cache, llm_settings, clock) -> None:
        llm = ScriptedLLM()
        pipeline = _pipeline(cache, llm, llm_settings, clock)

        failed = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)
        assert failed.insights == []
        assert failed.status == "failed"
        assert "unavailable" in failed.error
        assert cache.size == 0

        llm.fail = False
        llm.records = [{"title": "A", "description": "d", "severity": "info"}]
        generated = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)
        assert [i.title for i in generated.insights] == ["A"]
        assert cache.size == 1

        llm.fail = True
        calls_before = llm.calls
        cached = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)
        assert [i.title for i in cached.insights] == ["A"]
        assert cached.status == "cached"
        assert llm.calls == calls_before

    async def test_empty_validated_list_is_not_cached(self, cache, llm_settings, clock) -> None:
        llm = MockLLMClient(insights=[{"title": "missing description"}])
        pipeline = _pipeline(cache, llm, llm_settings, clock)

        result = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)

        assert result.status == "failed"
        assert result.insights == []
        assert cache.size == 0

    async def test_empty_array_is_not_cached(self, cache, llm_settings, clock) -> None:
        pipeline = _pipeline(cache, MockLLMClient(insights=[]), llm_settings, clock)
        result = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)
        assert result.insights == []
        assert cache.size == 0

    async def test_unparseable_response(self, cache, llm_settings, clock) -> None:
        class ProseLLM:
            async def call_llm(self, *args) -> str:
                return "I could not find anything interesting."

        pipeline = _pipeline(cache, ProseLLM(), llm_settings, clock)
        result = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)
        assert result.status == "failed"
        assert cache.size == 0

    async def test_deadline_exceeded(self, cache, llm_settings, clock) -> None:
        pipeline = _pipeline(cache, HangingLLM(), llm_settings, clock)
        result = await pipeline.produce(
            NAMESPACE, PROJECTION, KPIS, _prompt, deadline=0.01
        )
        assert result.status == "failed"
        assert "deadline" in (result.error or "")
        assert cache.size == 0

    async def test_failures_never_raise(self, cache, llm_settings, clock) -> None:
        pipeline = _pipeline(cache, ScriptedLLM(), llm_settings, clock)
        insights: Optional[list] = await pipeline.produce_insights(
            NAMESPACE, PROJECTION, KPIS, _prompt
        )
        assert insights == []

    async def test_network_error_becomes_failure(self, cache, llm_settings, clock) -> None:
        class UnreachableLLM:
            async def call_llm(self, *args) -> str:
                raise ConnectionError("network down")

        pipeline = _pipeline(cache, UnreachableLLM(), llm_settings, clock)
        result = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)
        assert result.status == "failed"
        assert "network down" in (result.error or "")
        assert cache.size == 0
        assert await pipeline.produce_insights(NAMESPACE, PROJECTION, KPIS, _prompt) == []

    async def test_non_text_response_becomes_failure(self, cache, llm_settings, clock) -> None:
        class ObjectLLM:
            async def call_llm(self, *args):
                return {"insights": []}

        pipeline = _pipeline(cache, ObjectLLM(), llm_settings, clock)
        result = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, _prompt)
        assert result.status == "failed"
        assert "expected text" in (result.error or "")
        assert cache.size == 0

    async def test_prompt_builder_error_becomes_failure(self, cache, llm_settings, clock) -> None:
        llm = MockLLMClient()

        def broken_prompt() -> str:
            raise KeyError("open_po_count")

        pipeline = _pipeline(cache, llm, llm_settings, clock)
        result = await pipeline.produce(NAMESPACE, PROJECTION, KPIS, broken_prompt)
        assert result.status == "failed"
        assert llm.calls == 0
        assert cache.size == 0

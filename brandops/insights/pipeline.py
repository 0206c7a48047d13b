"""
Cache-first insight pipeline.

``produce_insights(namespace, dataset_projection, kpis)`` builds a
fingerprint descriptor from the projection, the KPIs and the current
clock bucket, and serves the cached artifact when one matches.  On a
miss it calls the LLM, validates the answer and caches it only when at
least one insight survived validation.  LLM failures yield an empty
list and leave the cache untouched.

The cache is not held across the LLM call, so two concurrent misses
for the same key may both reach the LLM; the later ``set`` wins.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from brandops.cache.insight_cache import InsightCache
from brandops.clock import Clock, clock_bucket, utcnow
from brandops.config import LLMSettings, get_settings
from brandops.exceptions import LLMError, LLMTimeoutError
from brandops.insights.llm import LLMClient
from brandops.insights.models import Insight
from brandops.insights.validation import normalize_insights, parse_llm_response

logger = logging.getLogger(__name__)

DEFAULT_MAX_INSIGHTS = 5

InsightStatus = Literal["cached", "generated", "failed"]
PromptBuilder = Callable[[], str]


class InsightResult(BaseModel):
    """Outcome of one pipeline run.

    Attributes:
        insights: Validated insights (empty on failure).
        status: ``cached`` (served from cache), ``generated`` (fresh
            LLM answer, now cached) or ``failed`` (LLM error or nothing
            survived validation).
        error: Failure reason when ``status == "failed"``.
        latency_ms: Wall time spent in the pipeline.
    """

    insights: List[Insight] = Field(default_factory=list)
    status: InsightStatus
    error: Optional[str] = None
    latency_ms: int = 0

    @property
    def cache_hit(self) -> bool:
        return self.status == "cached"


class InsightPipeline:
    """Wrap LLM insight generation with the insight cache.

    Args:
        cache: Cache engine consulted before every LLM call.
        llm_client: Collaborator producing raw completion text.
        settings: LLM section of the settings (model, tokens, deadline).
        clock: Callable returning the current UTC instant.
        bucket_seconds: Clock-bucket width; defaults to the cache
            section's ``clock_bucket_seconds``.
    """

    def __init__(
        self,
        cache: InsightCache,
        llm_client: LLMClient,
        settings: Optional[LLMSettings] = None,
        *,
        clock: Optional[Clock] = None,
        bucket_seconds: Optional[int] = None,
    ) -> None:
        self._cache = cache
        self._llm = llm_client
        self._settings = settings or get_settings().llm
        self._clock = clock or utcnow
        self._bucket_seconds = (
            bucket_seconds
            if bucket_seconds is not None
            else get_settings().cache.clock_bucket_seconds
        )

    @property
    def cache(self) -> InsightCache:
        return self._cache

    def build_descriptor(
        self,
        dataset_projection: Mapping[str, Any],
        kpis: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Merge projection, KPIs and the current clock bucket."""
        descriptor: Dict[str, Any] = dict(dataset_projection)
        descriptor.update(kpis)
        descriptor["clock_bucket"] = clock_bucket(self._clock(), self._bucket_seconds)
        return descriptor

    async def produce(
        self,
        namespace: str,
        dataset_projection: Mapping[str, Any],
        kpis: Mapping[str, Any],
        prompt_builder: PromptBuilder,
        *,
        max_insights: int = DEFAULT_MAX_INSIGHTS,
        source: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> InsightResult:
        """Serve insights for *namespace*, from cache when possible.

        Args:
            namespace: Cache namespace of the page.
            dataset_projection: Coarse dataset features (counts, brand).
            kpis: KPIs the prompt depends on.
            prompt_builder: Called only on a miss to build the prompt.
            max_insights: Maximum number of insights kept.
            source: Default ``source`` for insights lacking one.
            ttl_seconds: TTL override for the cache write.
            deadline: LLM deadline in seconds; defaults to the
                configured ``timeout_seconds``.

        Returns:
            An :class:`InsightResult`; never raises for LLM failures.
        """
        start = time.time()
        descriptor = self.build_descriptor(dataset_projection, kpis)

        cached = self._cache.get(namespace, descriptor)
        if cached is not None:
            logger.info(
                "Serving cached insights",
                extra={"namespace": namespace, "count": len(cached)},
            )
            return InsightResult(
                insights=list(cached),
                status="cached",
                latency_ms=int((time.time() - start) * 1000),
            )

        deadline = deadline if deadline is not None else self._settings.timeout_seconds
        try:
            insights = await self._generate(
                namespace, prompt_builder, max_insights, source, deadline
            )
        except LLMError as exc:
            logger.warning(
                "Insight generation failed",
                extra={"namespace": namespace, "error": str(exc)},
            )
            return InsightResult(
                status="failed",
                error=str(exc),
                latency_ms=int((time.time() - start) * 1000),
            )

        self._cache.set(namespace, descriptor, insights, ttl_seconds=ttl_seconds)
        logger.info(
            "Generated and cached insights",
            extra={"namespace": namespace, "count": len(insights)},
        )
        return InsightResult(
            insights=list(insights),
            status="generated",
            latency_ms=int((time.time() - start) * 1000),
        )

    async def produce_insights(
        self,
        namespace: str,
        dataset_projection: Mapping[str, Any],
        kpis: Mapping[str, Any],
        prompt_builder: PromptBuilder,
        **kwargs: Any,
    ) -> List[Insight]:
        """Same as :meth:`produce` but returns only the insight list."""
        result = await self.produce(
            namespace, dataset_projection, kpis, prompt_builder, **kwargs
        )
        return result.insights

    async def _generate(
        self,
        namespace: str,
        prompt_builder: PromptBuilder,
        max_insights: int,
        source: Optional[str],
        deadline: float,
    ) -> List[Insight]:
        try:
            prompt = prompt_builder()
        except Exception as exc:
            raise LLMError(f"Prompt construction failed: {exc}") from exc

        try:
            raw = await asyncio.wait_for(
                self._llm.call_llm(
                    prompt,
                    self._settings.model,
                    self._settings.max_tokens,
                    self._settings.temperature,
                    deadline,
                ),
                timeout=deadline,
            )
        except asyncio.TimeoutError as exc:
            raise LLMTimeoutError(f"LLM call exceeded {deadline}s deadline") from exc
        except LLMError:
            raise
        except Exception as exc:
            raise LLMError(f"LLM call failed: {exc}") from exc

        if not isinstance(raw, str):
            raise LLMError(f"LLM returned {type(raw).__name__}, expected text")

        records = parse_llm_response(raw)
        insights = normalize_insights(
            records,
            namespace=namespace,
            max_insights=max_insights,
            now=self._clock(),
            source=source,
        )
        if not insights:
            raise LLMError("No valid insights in LLM response")
        return insights

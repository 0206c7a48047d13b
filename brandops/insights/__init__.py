"""LLM insight generation behind the insight cache."""

from brandops.insights.llm import LLMClient, MockLLMClient, OpenAILLMClient, build_llm_client
from brandops.insights.models import Insight
from brandops.insights.pipeline import InsightPipeline, InsightResult

__all__ = [
    "Insight",
    "InsightPipeline",
    "InsightResult",
    "LLMClient",
    "MockLLMClient",
    "OpenAILLMClient",
    "build_llm_client",
]

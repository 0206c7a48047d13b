"""
LLM collaborators for insight generation.

``call_llm(prompt, model_hint, max_tokens, temperature, deadline)``
returns the model's raw text or raises :class:`LLMError`.  The cache
layer never sees model identities or prompt shapes.
"""

import asyncio
import json
import logging
import os
import time
from typing import Any, List, Optional, Protocol, runtime_checkable

from brandops.config import LLMSettings, get_settings
from brandops.exceptions import ConfigurationError, LLMError, LLMTimeoutError

logger = logging.getLogger(__name__)


@runtime_checkable
class LLMClient(Protocol):
    """Anything that can turn a prompt into raw completion text."""

    async def call_llm(
        self,
        prompt: str,
        model_hint: Optional[str],
        max_tokens: int,
        temperature: float,
        deadline: float,
    ) -> str:
        ...


class OpenAILLMClient:
    """Chat-completions client backed by the ``openai`` SDK.

    Args:
        settings: LLM section of the settings; defaults to
            ``get_settings().llm``.
    """

    def __init__(self, settings: Optional[LLMSettings] = None) -> None:
        self._settings = settings or get_settings().llm
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI

            api_key = os.getenv(self._settings.api_key_env)
            if not api_key:
                raise LLMError(f"{self._settings.api_key_env} is not set")
            kwargs = {"api_key": api_key, "max_retries": 1}
            if self._settings.base_url:
                kwargs["base_url"] = self._settings.base_url
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def call_llm(
        self,
        prompt: str,
        model_hint: Optional[str],
        max_tokens: int,
        temperature: float,
        deadline: float,
    ) -> str:
        """Run one chat completion bounded by *deadline* seconds.

        Raises:
            LLMTimeoutError: If the call does not finish in time.
            LLMError: On missing credentials, transport errors or an
                empty completion.
        """
        client = self._get_client()
        model = model_hint or self._settings.model

        start = time.time()
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=max_tokens,
                    temperature=temperature,
                    timeout=deadline,
                ),
                timeout=deadline,
            )
        except asyncio.TimeoutError as exc:
            raise LLMTimeoutError(f"LLM call exceeded {deadline}s deadline") from exc
        except LLMError:
            raise
        except Exception as exc:
            raise LLMError(f"LLM call to {model} failed: {exc}") from exc

        latency_ms = int((time.time() - start) * 1000)
        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        if not text.strip():
            raise LLMError(f"LLM call to {model} returned no content")

        logger.info(
            "LLM call completed",
            extra={
                "model": model,
                "latency_ms": latency_ms,
                "tokens_output": getattr(response.usage, "completion_tokens", None),
            },
        )
        return text


class MockLLMClient:
    """Deterministic stand-in that returns canned insight JSON.

    Args:
        insights: Records to return; a generic set is used when omitted.
        latency_seconds: Simulated call latency.
    """

    def __init__(
        self,
        insights: Optional[List[dict]] = None,
        latency_seconds: float = 0.0,
    ) -> None:
        self._insights = insights
        self._latency_seconds = latency_seconds
        self.calls: int = 0
        self.prompts: List[str] = []

    async def call_llm(
        self,
        prompt: str,
        model_hint: Optional[str],
        max_tokens: int,
        temperature: float,
        deadline: float,
    ) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        if self._latency_seconds:
            await asyncio.sleep(self._latency_seconds)
        records = self._insights if self._insights is not None else _default_insights()
        return json.dumps(records)


def _default_insights() -> List[dict]:
    return [
        {
            "title": "At-risk orders need follow-up",
            "description": "Several open purchase orders show quantity "
                           "discrepancies against expected receipts.",
            "severity": "critical",
            "dollarImpact": 12500,
            "suggestedActions": [
                "Set up automated alerts for orders approaching SLA deadlines",
                "Escalate discrepancies to the supplier account manager",
            ],
        },
        {
            "title": "Supplier concentration risk",
            "description": "A single supplier accounts for most inbound volume.",
            "severity": "warning",
            "dollarImpact": 4800,
            "suggestedActions": ["Qualify a secondary supplier for top SKUs"],
        },
        {
            "title": "Inactive catalogue entries",
            "description": "Inactive SKUs are still referenced by open shipments.",
            "severity": "info",
            "suggestedActions": ["Review inactive SKUs with open receipts"],
        },
    ]


def build_llm_client(use_mock: bool = False) -> LLMClient:
    """Return the configured LLM client (or the mock)."""
    if use_mock:
        return MockLLMClient()
    settings = get_settings().llm
    if settings.provider != "openai":
        raise ConfigurationError(f"Unknown LLM provider: {settings.provider}")
    return OpenAILLMClient(settings)

"""
Tests for the LLM collaborators and prompt assembly.
"""

import asyncio
import json
from types import SimpleNamespace

import pytest

from brandops.config import LLMSettings, get_settings
from brandops.exceptions import ConfigurationError, LLMError, LLMTimeoutError
from brandops.insights.llm import LLMClient, MockLLMClient, OpenAILLMClient, build_llm_client
from brandops.insights.prompts import render_prompt


class _FakeCompletions:
    def __init__(self, content="[]", delay=0.0, error=None):
        self.content = content
        self.delay = delay
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=message)],
            usage=SimpleNamespace(completion_tokens=12),
        )


def _openai_client(completions: _FakeCompletions) -> OpenAILLMClient:
    client = OpenAILLMClient(LLMSettings())
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return client


class TestMockLLMClient:
    async def test_returns_json_records(self) -> None:
        llm = MockLLMClient()
        raw = await llm.call_llm("prompt", None, 100, 0.2, 5.0)
        records = json.loads(raw)
        assert len(records) == 3
        assert llm.calls == 1
        assert llm.prompts == ["prompt"]

    async def test_custom_records(self) -> None:
        llm = MockLLMClient(insights=[{"title": "x"}])
        assert json.loads(await llm.call_llm("p", None, 1, 0, 1)) == [{"title": "x"}]

    def test_satisfies_protocol(self) -> None:
        assert isinstance(MockLLMClient(), LLMClient)


class TestOpenAILLMClient:
    async def test_returns_content(self) -> None:
        completions = _FakeCompletions(content='[{"title": "a"}]')
        text = await _openai_client(completions).call_llm("hi", "gpt-4o-mini", 200, 0.1, 5.0)
        assert text == '[{"title": "a"}]'
        assert completions.kwargs["model"] == "gpt-4o-mini"
        assert completions.kwargs["max_tokens"] == 200
        assert completions.kwargs["messages"] == [{"role": "user", "content": "hi"}]

    async def test_model_hint_falls_back_to_settings(self) -> None:
        completions = _FakeCompletions()
        await _openai_client(completions).call_llm("hi", None, 200, 0.1, 5.0)
        assert completions.kwargs["model"] == "gpt-4"

    async def test_empty_content_raises(self) -> None:
        with pytest.raises(LLMError, match="no content"):
            await _openai_client(_FakeCompletions(content="")).call_llm("hi", None, 1, 0, 5.0)

    async def test_sdk_error_wrapped(self) -> None:
        completions = _FakeCompletions(error=RuntimeError("rate limited"))
        with pytest.raises(LLMError, match="rate limited"):
            await _openai_client(completions).call_llm("hi", None, 1, 0, 5.0)

    async def test_deadline(self) -> None:
        completions = _FakeCompletions(delay=1.0)
        with pytest.raises(LLMTimeoutError):
            await _openai_client(completions).call_llm("hi", None, 1, 0, 0.01)

    async def test_missing_api_key(self, monkeypatch) -> None:
        monkeypatch.delenv("BRANDOPS_TEST_MISSING_KEY", raising=False)
        client = OpenAILLMClient(LLMSettings(api_key_env="BRANDOPS_TEST_MISSING_KEY"))
        with pytest.raises(LLMError, match="is not set"):
            await client.call_llm("hi", None, 1, 0, 1.0)


class TestBuildLlmClient:
    def test_mock(self) -> None:
        assert isinstance(build_llm_client(use_mock=True), MockLLMClient)

    def test_openai(self) -> None:
        assert isinstance(build_llm_client(), OpenAILLMClient)

    def test_unknown_provider(self) -> None:
        get_settings().llm.provider = "mystery"
        with pytest.raises(ConfigurationError):
            build_llm_client()


class TestRenderPrompt:
    def test_sections_and_format(self) -> None:
        prompt = render_prompt(
            "You are an analyst.",
            "Find risks.",
            "Callahan-Smith",
            [("Key metrics", {"Open purchase orders": 1200, "Rate": 12.5})],
            max_insights=3,
        )
        assert prompt.startswith("You are an analyst.")
        assert "Brand: Callahan-Smith" in prompt
        assert "KEY METRICS:" in prompt
        assert "- Open purchase orders: 1,200" in prompt
        assert "- Rate: 12.50" in prompt
        assert "between 1 and 3 insights" in prompt

"""Shared fixtures: a controllable clock and clean singletons."""

from datetime import datetime, timedelta, timezone

import pytest

from brandops.cache.insight_cache import reset_insight_cache
from brandops.config import CacheSettings, LLMSettings, reset_settings

EPOCH = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.now += timedelta(seconds=seconds, minutes=minutes)
        return self.now


@pytest.fixture(autouse=True)
def _clean_singletons():
    reset_settings()
    reset_insight_cache()
    yield
    reset_settings()
    reset_insight_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_settings() -> CacheSettings:
    return CacheSettings()


@pytest.fixture
def llm_settings() -> LLMSettings:
    return LLMSettings(timeout_seconds=1.0)

"""Shared fixtures for the AI core test suite."""

import httpx
import pytest

from ai_core.config.settings import get_settings
from ai_core.providers.config import ProviderConfiguration

VALID_OPENAI_KEY = "sk-" + "a1B2c3D4e5F6g7H8i9J0k1L2"  # 24 alnum chars after the prefix
VALID_GEMINI_KEY = "AIza" + "SyA1b2C3d4E5f6G7h8I9j0K1l2M3n4O5p6Q"


@pytest.fixture
def openai_config() -> ProviderConfiguration:
    """A valid OpenAI configuration with retries enabled."""
    return ProviderConfiguration(
        provider="openai",
        credential=VALID_OPENAI_KEY,
        model="gpt-4",
        temperature=0.7,
        max_tokens=1000,
        retry_attempts=3,
    )


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(API_KEY="sk-...", RATE_LIMIT="5")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    # Always clear cache on teardown so other tests get fresh settings
    get_settings.cache_clear()


class FakeClock:
    """Manually advanced clock for window/TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def completion_response(content: str = "Hello!", status_code: int = 200) -> httpx.Response:
    """An OpenAI-style chat completion response."""
    return httpx.Response(
        status_code,
        json={
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        },
    )


def error_response(status_code: int, message: str = "boom") -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"message": message}})

"""Tests for ai_core/providers/registry.py — provider registry."""

import pytest

from ai_core.providers.errors import DuplicateProvider, InvalidProvider
from ai_core.providers.gemini import GeminiClient
from ai_core.providers.local import LocalClient
from ai_core.providers.openai import OpenAIClient
from ai_core.providers.registry import ProviderRegistry, default_registry


class TestDefaultRegistry:

    def test_builtin_providers(self):
        registry = default_registry()
        assert registry.providers() == ["openai", "gemini", "local"]
        assert registry.resolve("openai").constructor is OpenAIClient
        assert registry.resolve("gemini").constructor is GeminiClient
        assert registry.resolve("local").constructor is LocalClient

    def test_required_fields(self):
        registry = default_registry()
        assert registry.resolve("openai").required_fields == ("credential", "model")
        assert registry.resolve("local").required_fields == ("endpoint", "model")

    def test_each_call_builds_independent_registry(self):
        a = default_registry()
        a.register("custom", OpenAIClient, ("credential",))
        assert "custom" not in default_registry()


class TestResolve:

    def test_case_and_whitespace_insensitive(self):
        registry = default_registry()
        assert registry.resolve("  OpenAI ").constructor is OpenAIClient
        assert " GEMINI" in registry

    def test_unknown_provider_raises(self):
        with pytest.raises(InvalidProvider) as exc_info:
            default_registry().resolve("fake-provider")
        assert exc_info.value.provider == "fake-provider"
        assert "openai" in exc_info.value.supported


class TestRegister:

    def test_register_custom(self):
        registry = ProviderRegistry()
        registry.register("Mistral", LocalClient, ["endpoint", "model"])
        entry = registry.resolve("mistral")
        assert entry.constructor is LocalClient
        assert entry.required_fields == ("endpoint", "model")

    def test_duplicate_raises(self):
        registry = default_registry()
        with pytest.raises(DuplicateProvider):
            registry.register("OPENAI", LocalClient)
        # Original entry untouched
        assert registry.resolve("openai").constructor is OpenAIClient

    def test_empty_id_raises(self):
        with pytest.raises(InvalidProvider):
            ProviderRegistry().register("  ", LocalClient)

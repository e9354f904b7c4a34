"""Tests for ai_core/providers/config.py — ProviderConfiguration."""

import dataclasses

import pytest

from ai_core.providers.config import ProviderConfiguration, normalize_keys
from ai_core.providers.errors import ConstructionError


class TestFromMapping:

    def test_coerces_string_values(self):
        config = ProviderConfiguration.from_mapping("openai", {
            "credential": " sk-abc ",
            "model": "gpt-4",
            "temperature": "0.2",
            "max_tokens": "256",
            "retry_attempts": 2.0,
        })
        assert config.credential == "sk-abc"
        assert config.temperature == 0.2
        assert config.max_tokens == 256
        assert config.retry_attempts == 2

    def test_legacy_aliases(self):
        config = ProviderConfiguration.from_mapping("local", {
            "api_key": "tok",
            "api_endpoint": "http://localhost:1234",
            "timeout": 5,
        })
        assert config.credential == "tok"
        assert config.endpoint == "http://localhost:1234"
        assert config.timeout_seconds == 5

    def test_canonical_key_wins_over_alias(self):
        assert normalize_keys({"api_key": "old", "credential": "new"}) == {"credential": "new"}

    def test_unknown_keys_ignored(self):
        config = ProviderConfiguration.from_mapping("openai", {"model": "gpt-4", "color": "blue"})
        assert config.model == "gpt-4"

    def test_none_keeps_default(self):
        config = ProviderConfiguration.from_mapping("openai", {"temperature": None})
        assert config.temperature == 0.7

    @pytest.mark.parametrize("field,value", [
        ("temperature", "warm"),
        ("max_tokens", "lots"),
        ("max_tokens", 10.5),
        ("retry_attempts", True),
    ])
    def test_uncoercible_values(self, field, value):
        with pytest.raises(ConstructionError) as exc_info:
            ProviderConfiguration.from_mapping("openai", {field: value})
        assert exc_info.value.field == field


class TestImmutability:

    def test_frozen(self, openai_config):
        with pytest.raises(dataclasses.FrozenInstanceError):
            openai_config.model = "gpt-4o"

    def test_with_overrides_returns_new(self, openai_config):
        changed = openai_config.with_overrides(temperature=0.3)
        assert changed.temperature == 0.3
        assert openai_config.temperature == 0.7


class TestFingerprint:

    def test_stable(self, openai_config):
        same = dataclasses.replace(openai_config)
        assert openai_config.fingerprint() == same.fingerprint()

    def test_changes_with_any_field(self, openai_config):
        assert openai_config.fingerprint() != openai_config.with_overrides(max_tokens=10).fingerprint()
        assert openai_config.fingerprint() != openai_config.with_overrides(provider="gemini").fingerprint()

    def test_repr_masks_credential(self, openai_config):
        assert openai_config.credential not in repr(openai_config)

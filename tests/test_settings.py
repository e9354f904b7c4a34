"""Tests for ai_core/config/settings.py — Settings and provider_defaults."""

from ai_core.config.settings import get_settings


class TestSettings:

    def test_defaults(self, override_settings):
        override_settings()
        s = get_settings()
        assert s.ai_provider == "openai"
        assert s.model == "gpt-4"
        assert s.temperature == 0.7
        assert s.max_tokens == 1000
        assert s.timeout == 30
        assert s.retry_attempts == 3
        assert s.cache_enabled is True
        assert s.rate_limit == 30
        assert s.rate_limit_window == 60
        assert s.rate_store_backend == "memory"
        assert s.log_level == "INFO"
        assert s.host_api_keys_map == {}
        assert s.trust_forwarded_for is False

    def test_env_override(self, override_settings):
        override_settings(
            AI_PROVIDER="gemini",
            TEMPERATURE="0.2",
            RETRY_ATTEMPTS="0",
            RATE_LIMIT="5",
            CACHE_ENABLED="false",
        )
        s = get_settings()
        assert s.ai_provider == "gemini"
        assert s.temperature == 0.2
        assert s.retry_attempts == 0
        assert s.rate_limit == 5
        assert s.cache_enabled is False

    def test_cached_until_cleared(self, override_settings):
        override_settings(MODEL="gpt-4o")
        assert get_settings() is get_settings()


class TestHostApiKeys:

    def test_pairs_parsed(self, override_settings):
        override_settings(HOST_API_KEYS="key-one:1, key-two : 2")
        assert get_settings().host_api_keys_map == {"key-one": "1", "key-two": "2"}

    def test_malformed_entries_skipped(self, override_settings):
        override_settings(HOST_API_KEYS="no-colon,:orphan,key-only:,good:7,")
        assert get_settings().host_api_keys_map == {"good": "7"}


class TestProviderDefaults:

    def test_canonical_keys(self, override_settings):
        override_settings(API_KEY="sk-x", API_ENDPOINT="http://localhost:11434/v1", TIMEOUT="12")
        defaults = get_settings().provider_defaults()
        assert defaults["credential"] == "sk-x"
        assert defaults["endpoint"] == "http://localhost:11434/v1"
        assert defaults["timeout_seconds"] == 12
        assert "api_key" not in defaults
        assert "timeout" not in defaults

    def test_includes_generation_parameters(self, override_settings):
        override_settings(TOP_P="0.9", PRESENCE_PENALTY="0.5")
        defaults = get_settings().provider_defaults()
        assert defaults["top_p"] == 0.9
        assert defaults["presence_penalty"] == 0.5
        assert defaults["frequency_penalty"] == 0.0

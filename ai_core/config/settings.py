"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Default provider configuration (overridable per request)
    ai_provider: str = "openai"  # openai | gemini | local
    api_key: str = ""
    api_endpoint: str = ""  # only used by the local provider
    model: str = "gpt-4"
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    timeout: int = 30  # seconds per upstream request
    retry_attempts: int = 3

    # General
    enabled: bool = True
    cache_enabled: bool = True  # memoize clients by configuration hash within one request

    # Secret storage
    # Resolution order: encryption_key, then auth_key + secure_auth_key, then site_url
    encryption_key: str = ""
    auth_key: str = ""
    secure_auth_key: str = ""
    site_url: str = "http://localhost"

    # Caller identity for rate limiting
    # "key:user_id,key2:user_id2"; callers without a listed X-API-Key are limited by IP
    host_api_keys: str = ""
    trust_forwarded_for: bool = False  # honor X-Forwarded-For only behind a trusted proxy

    # Rate limiting
    rate_limit: int = 30  # attempts per window per identifier and action
    rate_limit_window: int = 60  # seconds
    rate_store_backend: str = "memory"  # "memory" | "dynamodb"
    rate_limit_table_name: str = "ai-core-rate-limits"
    aws_region: str = "us-east-1"

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def host_api_keys_map(self) -> dict[str, str]:
        """Parse HOST_API_KEYS into key -> user id, skipping malformed entries."""
        keys = {}
        for pair in self.host_api_keys.split(","):
            key, sep, user_id = pair.strip().partition(":")
            if sep and key.strip() and user_id.strip():
                keys[key.strip()] = user_id.strip()
        return keys

    def provider_defaults(self) -> dict:
        """Flat provider configuration map used as the factory's base layer."""
        return {
            "credential": self.api_key,
            "endpoint": self.api_endpoint,
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
            "timeout_seconds": self.timeout,
            "retry_attempts": self.retry_attempts,
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()

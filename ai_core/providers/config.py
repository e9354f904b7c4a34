"""Provider configuration value object."""

import hashlib
import json
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from urllib.parse import urlparse

from ai_core.providers.errors import ConstructionError

# Legacy host keys -> canonical field names
FIELD_ALIASES = {
    "api_key": "credential",
    "api_endpoint": "endpoint",
    "timeout": "timeout_seconds",
}

# Inclusive numeric domains checked by every client at construction
TEMPERATURE_RANGE = (0.0, 2.0)
MAX_TOKENS_RANGE = (1, 32000)
TOP_P_RANGE = (0.0, 1.0)
PENALTY_RANGE = (-2.0, 2.0)


@dataclass(frozen=True)
class ProviderConfiguration:
    provider: str
    credential: str = ""
    model: str = ""
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    timeout_seconds: int = 30
    retry_attempts: int = 3
    endpoint: str = ""  # required only for the local provider

    @classmethod
    def from_mapping(cls, provider: str, data: Mapping) -> "ProviderConfiguration":
        """Build a configuration from a flat host map, coercing field types.

        Unknown keys are ignored. Values that cannot be coerced raise
        ConstructionError naming the field.
        """
        normalized = normalize_keys(data)
        kwargs = {"provider": provider}
        for f in fields(cls):
            if f.name == "provider" or f.name not in normalized:
                continue
            value = normalized[f.name]
            if value is None:
                continue
            kwargs[f.name] = _coerce(f.name, f.type, value)
        return cls(**kwargs)

    def with_overrides(self, **changes) -> "ProviderConfiguration":
        """Return a new configuration; this one is never mutated."""
        return replace(self, **changes)

    def as_dict(self) -> dict:
        return asdict(self)

    def fingerprint(self) -> str:
        """Stable content hash used to memoize clients."""
        payload = json.dumps(self.as_dict(), sort_keys=True, default=str)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def __repr__(self) -> str:
        # Keep the credential out of logs and tracebacks
        masked = "***" if self.credential else ""
        return (
            f"ProviderConfiguration(provider={self.provider!r}, model={self.model!r}, "
            f"credential={masked!r}, endpoint={self.endpoint!r})"
        )


def normalize_keys(data: Mapping) -> dict:
    """Map legacy aliases to canonical names. Canonical keys win."""
    result = {}
    for key, value in data.items():
        canonical = FIELD_ALIASES.get(key, key)
        if canonical != key and canonical in data:
            continue
        result[canonical] = value
    return result


def _coerce(name: str, type_hint, value):
    # Field annotations are real types here (no postponed evaluation)
    try:
        if type_hint is str:
            return str(value).strip()
        if type_hint is int:
            if isinstance(value, bool):
                raise ValueError(value)
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(value)
        if type_hint is float:
            if isinstance(value, bool):
                raise ValueError(value)
            return float(value)
    except (TypeError, ValueError):
        raise ConstructionError(name, type_hint.__name__,
                                f"Invalid value for '{name}': {value!r} is not a valid {type_hint.__name__}")
    return value


def check_range(name: str, value: float, bounds: tuple) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise ConstructionError(name, f"a value between {low} and {high}")


def validate_common(config: ProviderConfiguration) -> None:
    """Numeric domain checks shared by every provider."""
    check_range("temperature", config.temperature, TEMPERATURE_RANGE)
    check_range("max_tokens", config.max_tokens, MAX_TOKENS_RANGE)
    check_range("top_p", config.top_p, TOP_P_RANGE)
    check_range("frequency_penalty", config.frequency_penalty, PENALTY_RANGE)
    check_range("presence_penalty", config.presence_penalty, PENALTY_RANGE)
    if config.timeout_seconds < 1:
        raise ConstructionError("timeout_seconds", "an integer >= 1")
    if config.retry_attempts < 0:
        raise ConstructionError("retry_attempts", "an integer >= 0")


def validate_endpoint(endpoint: str) -> None:
    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConstructionError("endpoint", "an http(s) URL")

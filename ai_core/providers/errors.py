"""Error taxonomy for provider clients and the client factory.

Configuration errors are fatal to the create call. Input errors are
fatal to the single operation. Upstream failures carry a ``retryable``
flag: the dispatch routine retries those with backoff until the
configured attempts are spent, then surfaces them to the caller.
"""

from typing import Any


class AICoreError(Exception):
    """Base exception for all AI core errors."""

    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def error_code(self) -> str:
        # InvalidProvider -> invalid_provider
        name = type(self).__name__
        return "".join(
            f"_{c.lower()}" if c.isupper() and i else c.lower() for i, c in enumerate(name)
        )

    def __str__(self) -> str:
        return self.message


# --- Configuration (fatal to create) ---


class ConfigurationError(AICoreError):
    """Base class for errors raised while building a client."""


class InvalidProvider(ConfigurationError):
    def __init__(self, provider: str, supported: list[str]) -> None:
        if provider:
            message = f"Provider '{provider}' is not valid. Supported providers: {', '.join(supported)}"
        else:
            message = "Provider cannot be empty"
        super().__init__(message, {"provider": provider, "supported": supported})
        self.provider = provider
        self.supported = supported


class DuplicateProvider(ConfigurationError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider '{provider}' is already registered", {"provider": provider})
        self.provider = provider


class IncompleteConfiguration(ConfigurationError):
    def __init__(self, provider: str, missing: list[str]) -> None:
        super().__init__(
            f"Incomplete configuration for provider '{provider}'. Missing fields: {', '.join(missing)}",
            {"provider": provider, "missing": missing},
        )
        self.provider = provider
        self.missing = missing


class ConstructionError(ConfigurationError):
    """A configuration field holds a value outside its allowed domain."""

    def __init__(self, field: str, allowed: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Invalid value for '{field}': expected {allowed}",
            {"field": field, "allowed": allowed},
        )
        self.field = field
        self.allowed = allowed


class ClientCreationFailed(ConstructionError):
    """A configuration value could not be coerced or was rejected by the constructor.

    Still a ConstructionError, so callers may catch either and read
    ``field`` to learn which value was refused.
    """

    def __init__(self, provider: str, cause: ConstructionError) -> None:
        super().__init__(
            cause.field,
            cause.allowed,
            f"Could not create AI client for '{provider}': {cause}",
        )
        self.details["provider"] = provider
        self.provider = provider
        self.cause = cause


# --- Caller input (fatal to the operation) ---


class InputError(AICoreError):
    """Base class for invalid caller input."""


class EmptyInput(InputError):
    def __init__(self, what: str) -> None:
        super().__init__(f"{what} cannot be empty", {"input": what})


class InvalidMessageStructure(InputError):
    def __init__(self, index: int, reason: str) -> None:
        super().__init__(f"Message at index {index} {reason}", {"index": index})
        self.index = index


# --- Upstream ---


class UpstreamFailure(AICoreError):
    """Base class for failures talking to the provider."""


class TransportError(UpstreamFailure):
    retryable = True

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Connection error: {cause}", {"cause": type(cause).__name__})
        self.cause = cause


class RateLimited(UpstreamFailure):
    retryable = True

    def __init__(self) -> None:
        super().__init__("Provider rate limit reached. Try again later.", {"status_code": 429})
        self.status_code = 429


class UpstreamServerError(UpstreamFailure):
    retryable = True

    def __init__(self, status_code: int) -> None:
        super().__init__(
            f"Provider server error ({status_code}). Try again later.",
            {"status_code": status_code},
        )
        self.status_code = status_code


class AuthenticationError(UpstreamFailure):
    def __init__(self) -> None:
        super().__init__("Provider credential is invalid or expired", {"status_code": 401})
        self.status_code = 401


class UpstreamError(UpstreamFailure):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(
            f"Provider error (status {status_code}): {message}",
            {"status_code": status_code},
        )
        self.status_code = status_code
        self.upstream_message = message


class MalformedResponse(UpstreamFailure):
    def __init__(self, reason: str = "response does not contain valid content") -> None:
        super().__init__(f"Malformed provider response: {reason}")


# --- Secret storage ---


class CipherConfigurationError(AICoreError):
    """The cipher cannot be initialized (raised at startup only)."""

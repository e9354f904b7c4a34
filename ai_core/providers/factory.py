"""Client factory: validates configuration and builds provider clients."""

import threading
from collections.abc import Mapping
from dataclasses import dataclass

from ai_core.config.settings import Settings
from ai_core.logging.audit import get_audit_logger
from ai_core.providers.base import ProviderClient
from ai_core.providers.config import ProviderConfiguration, normalize_keys
from ai_core.providers.errors import (
    ClientCreationFailed,
    ConfigurationError,
    ConstructionError,
    IncompleteConfiguration,
)
from ai_core.providers.registry import ProviderRegistry, default_registry, normalize_provider


class ClientCache:
    """Process-local map of configuration fingerprint -> client.

    Safe to share between concurrent requests; never persisted.
    """

    def __init__(self):
        self._clients: dict[str, ProviderClient] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> ProviderClient | None:
        with self._lock:
            return self._clients.get(key)

    def put(self, key: str, client: ProviderClient) -> None:
        with self._lock:
            self._clients[key] = client

    def clear(self) -> None:
        with self._lock:
            self._clients.clear()

    async def aclose(self) -> None:
        """Close every cached client's connections, then clear."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            await client.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._clients


@dataclass
class FactoryResult:
    client: ProviderClient | None = None
    error: ConfigurationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ClientFactory:
    """Builds ProviderClient instances from host defaults plus overrides."""

    def __init__(
        self,
        defaults: Mapping | None = None,
        registry: ProviderRegistry | None = None,
        cache: ClientCache | None = None,
    ):
        self._defaults = normalize_keys(defaults or {})
        self._registry = registry if registry is not None else default_registry()
        self._cache = cache
        self._logger = get_audit_logger()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: ProviderRegistry | None = None,
        cache: ClientCache | None = None,
    ) -> "ClientFactory":
        if cache is None and settings.cache_enabled:
            cache = ClientCache()
        return cls(settings.provider_defaults(), registry, cache)

    def with_cache(self, cache: ClientCache | None) -> "ClientFactory":
        """Same defaults and registry, different cache (e.g. one per request)."""
        factory = ClientFactory(registry=self._registry, cache=cache)
        factory._defaults = self._defaults
        return factory

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def cache(self) -> ClientCache | None:
        return self._cache

    def supported_providers(self) -> list[str]:
        return self._registry.providers()

    def is_provider_supported(self, provider: str) -> bool:
        return provider in self._registry

    def build(self, provider: str, overrides: Mapping | None = None) -> FactoryResult:
        """Validate and construct a client without raising for bad configuration.

        Returns a FactoryResult holding either the client or the typed
        configuration error.
        """
        name = normalize_provider(provider)
        try:
            config = self._resolve_config(name, overrides)
            entry = self._registry.resolve(name)
            try:
                client = entry.constructor(config)
            except ConstructionError as e:
                raise ClientCreationFailed(name, e) from e
        except ConfigurationError as e:
            self._logger.warning(
                "AI client creation failed",
                extra={"audit_data": {
                    "provider": name,
                    "error_code": e.error_code,
                    "error": e.message,
                }},
            )
            return FactoryResult(error=e)

        if self._cache is not None:
            self._cache.put(config.fingerprint(), client)

        self._logger.info(
            "AI client created",
            extra={"audit_data": {"provider": name, "model": config.model}},
        )
        return FactoryResult(client=client)

    def create(self, provider: str, overrides: Mapping | None = None) -> ProviderClient:
        """Build a new client, raising the typed configuration error on failure."""
        result = self.build(provider, overrides)
        if result.error is not None:
            raise result.error
        return result.client

    def get_or_create(self, provider: str, overrides: Mapping | None = None) -> ProviderClient:
        """Return a memoized client for this exact configuration, if any."""
        if self._cache is not None:
            try:
                config = self._resolve_config(normalize_provider(provider), overrides)
            except ConfigurationError:
                config = None  # let create() report it
            if config is not None:
                cached = self._cache.get(config.fingerprint())
                if cached is not None:
                    return cached
        return self.create(provider, overrides)

    def _resolve_config(self, name: str, overrides: Mapping | None) -> ProviderConfiguration:
        entry = self._registry.resolve(name)
        merged = {**self._defaults, **normalize_keys(overrides or {})}

        missing = [
            field for field in entry.required_fields
            if merged.get(field) is None or not str(merged.get(field)).strip()
        ]
        if missing:
            raise IncompleteConfiguration(name, missing)

        try:
            return ProviderConfiguration.from_mapping(name, merged)
        except ConstructionError as e:
            raise ClientCreationFailed(name, e) from e

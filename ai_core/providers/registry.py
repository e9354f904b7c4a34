"""Provider registry: provider id -> client constructor + required fields.

The host builds one registry at startup (usually ``default_registry()``)
and may register extra providers before handing it to the factory.
"""

from collections.abc import Callable
from dataclasses import dataclass

from ai_core.providers.base import ProviderClient
from ai_core.providers.config import ProviderConfiguration
from ai_core.providers.errors import DuplicateProvider, InvalidProvider

ClientConstructor = Callable[[ProviderConfiguration], ProviderClient]


@dataclass(frozen=True)
class ProviderEntry:
    constructor: ClientConstructor
    required_fields: tuple[str, ...]


def normalize_provider(provider: str) -> str:
    return (provider or "").strip().lower()


class ProviderRegistry:
    def __init__(self):
        self._entries: dict[str, ProviderEntry] = {}

    def register(
        self,
        provider: str,
        constructor: ClientConstructor,
        required_fields: tuple[str, ...] | list[str] = (),
    ) -> None:
        """Add a provider. Re-registering an existing id is an error."""
        name = normalize_provider(provider)
        if not name:
            raise InvalidProvider(name, self.providers())
        if name in self._entries:
            raise DuplicateProvider(name)
        self._entries[name] = ProviderEntry(constructor, tuple(required_fields))

    def resolve(self, provider: str) -> ProviderEntry:
        name = normalize_provider(provider)
        if name not in self._entries:
            raise InvalidProvider(name, self.providers())
        return self._entries[name]

    def providers(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, provider: str) -> bool:
        return normalize_provider(provider) in self._entries


def default_registry() -> ProviderRegistry:
    """Registry with the built-in providers."""
    # Imported here so custom registries don't pull in every client module
    from ai_core.providers.gemini import GeminiClient
    from ai_core.providers.local import LocalClient
    from ai_core.providers.openai import OpenAIClient

    registry = ProviderRegistry()
    registry.register("openai", OpenAIClient, ("credential", "model"))
    registry.register("gemini", GeminiClient, ("credential", "model"))
    registry.register("local", LocalClient, ("endpoint", "model"))
    return registry

"""Client for a self-hosted OpenAI-compatible endpoint (Ollama, vLLM, LM Studio)."""

from ai_core.providers.config import validate_endpoint
from ai_core.providers.errors import ConstructionError
from ai_core.providers.openai import OpenAIClient


class LocalClient(OpenAIClient):
    """Posts to the configured endpoint. Any model name, optional credential."""

    credential_pattern = None
    supported_models = None

    def _validate(self) -> None:
        if not self._config.endpoint:
            raise ConstructionError("endpoint", "an http(s) URL")
        validate_endpoint(self._config.endpoint)
        super()._validate()

    @property
    def api_base_url(self) -> str:
        return self._config.endpoint.rstrip("/")

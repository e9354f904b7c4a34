"""Abstract base for AI provider clients."""

import json
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from ai_core.providers.config import ProviderConfiguration
from ai_core.providers.errors import EmptyInput, InvalidMessageStructure

VALID_ROLES = ("system", "user", "assistant")

ANALYSIS_PROMPT = (
    "Analyze the following text and return a structured analysis as a JSON object with: "
    "sentiment (positive/neutral/negative), score (0-1), keywords (array), "
    "categories (array), language (ISO code). Respond with JSON only. Text: \"{text}\""
)
ANALYSIS_PARAMS = {"temperature": 0.3, "max_tokens": 500}

_JSON_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.S)


def fallback_analysis(raw: str) -> dict:
    return {
        "sentiment": "neutral",
        "score": 0.5,
        "keywords": [],
        "categories": [],
        "language": "unknown",
        "raw": raw,
    }


def parse_analysis(response: str) -> dict:
    """Parse a model's analysis answer, degrading to a neutral record."""
    text = response.strip()
    fenced = _JSON_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        analysis = json.loads(text)
    except json.JSONDecodeError:
        return fallback_analysis(response)
    if not isinstance(analysis, dict):
        return fallback_analysis(response)
    return analysis


def validate_messages(messages: Sequence) -> None:
    if not messages:
        raise EmptyInput("Message list")
    for index, message in enumerate(messages):
        if not isinstance(message, Mapping) or "role" not in message or "content" not in message:
            raise InvalidMessageStructure(index, "must have 'role' and 'content'")
        if message["role"] not in VALID_ROLES:
            raise InvalidMessageStructure(
                index, f"has role {message['role']!r}; must be one of: {', '.join(VALID_ROLES)}"
            )
        if not isinstance(message["content"], str):
            raise InvalidMessageStructure(index, "must have string 'content'")


class ProviderClient(ABC):
    """Base class for provider client implementations.

    A client owns exactly one ProviderConfiguration for its lifetime.
    Callers needing different parameters ask the factory for a new client.
    """

    def __init__(self, config: ProviderConfiguration):
        self._config = config

    @property
    def config(self) -> ProviderConfiguration:
        return self._config

    @property
    def provider(self) -> str:
        return self._config.provider

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def temperature(self) -> float:
        return self._config.temperature

    @property
    def max_tokens(self) -> int:
        return self._config.max_tokens

    @abstractmethod
    async def chat(self, messages: Sequence[Mapping], **params) -> str:
        """Send a conversation and return the assistant's reply text.

        Args:
            messages: Ordered ``{"role", "content"}`` mappings.
            **params: Per-call overrides of request body fields.

        Raises:
            EmptyInput: ``messages`` is empty.
            InvalidMessageStructure: an entry is malformed.
            UpstreamFailure: the provider call failed.
        """
        ...

    @abstractmethod
    async def test_connection(self) -> bool:
        """Return True if the provider answers a read-only call.

        Unreachable or rejecting providers return False; local
        misconfiguration still raises.
        """
        ...

    async def complete(self, prompt: str, **params) -> str:
        """Single-turn completion of ``prompt``."""
        if not isinstance(prompt, str) or not prompt.strip():
            raise EmptyInput("Prompt")
        return await self.chat([{"role": "user", "content": prompt}], **params)

    async def analyze(self, text: str) -> dict:
        """Sentiment/keyword analysis. Malformed model output degrades to a neutral record."""
        if not isinstance(text, str) or not text.strip():
            raise EmptyInput("Text to analyze")
        response = await self.complete(ANALYSIS_PROMPT.format(text=text), **ANALYSIS_PARAMS)
        return parse_analysis(response)

    async def close(self) -> None:
        """Cleanup resources. Override if client holds connections."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

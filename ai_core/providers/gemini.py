"""Google Gemini client over its OpenAI-compatible endpoint."""

import re

from ai_core.providers.openai import OpenAIClient


class GeminiClient(OpenAIClient):
    """Same request/retry protocol as OpenAI; Gemini keys and models."""

    base_url = "https://generativelanguage.googleapis.com/v1beta/openai"
    credential_pattern = re.compile(r"^AIza[0-9A-Za-z\-_]{35}$")
    supported_models = frozenset({
        "gemini-pro",
        "gemini-1.5-pro",
        "gemini-1.5-flash",
        "gemini-2.0-flash",
    })

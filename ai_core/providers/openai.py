"""OpenAI chat completions client with bounded retry and error classification."""

import asyncio
import re
from collections.abc import Mapping, Sequence

import httpx

from ai_core.logging.audit import RequestTimer, get_audit_logger
from ai_core.providers.base import ProviderClient, validate_messages
from ai_core.providers.config import ProviderConfiguration, validate_common
from ai_core.providers.errors import (
    AuthenticationError,
    ConstructionError,
    MalformedResponse,
    RateLimited,
    TransportError,
    UpstreamError,
    UpstreamServerError,
)

CONNECTION_TEST_TIMEOUT = 10.0  # seconds, independent of the configured timeout
SERVER_ERROR_STATUSES = (500, 502, 503)


class OpenAIClient(ProviderClient):
    """Talks to OpenAI-compatible chat completion APIs.

    Every outbound call goes through ``_request``, which retries transport
    failures, 429 and 5xx responses with increasing waits and surfaces
    everything else immediately.
    """

    base_url = "https://api.openai.com/v1"
    credential_pattern: re.Pattern | None = re.compile(r"^sk-(?:proj-)?[A-Za-z0-9\-]{20,}$")
    supported_models: frozenset[str] | None = frozenset({
        "gpt-4",
        "gpt-4-turbo",
        "gpt-4-turbo-preview",
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-3.5-turbo",
        "gpt-3.5-turbo-16k",
    })

    def __init__(self, config: ProviderConfiguration):
        super().__init__(config)
        self._validate()
        self._client: httpx.AsyncClient | None = None
        self._logger = get_audit_logger()

    def _validate(self) -> None:
        config = self._config
        if not config.model:
            raise ConstructionError("model", "a non-empty model name")
        if self.supported_models is not None and config.model not in self.supported_models:
            raise ConstructionError(
                "model",
                f"one of: {', '.join(sorted(self.supported_models))}",
                f"Model '{config.model}' is not supported. "
                f"Supported models: {', '.join(sorted(self.supported_models))}",
            )
        if self.credential_pattern is not None and not self.credential_pattern.match(config.credential):
            raise ConstructionError(
                "credential",
                "a key matching the provider's format",
                f"The {config.provider} credential format is not valid",
            )
        validate_common(config)

    @property
    def api_base_url(self) -> str:
        return self.base_url

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(float(self._config.timeout_seconds))
            )
        return self._client

    def _build_headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._config.credential:
            headers["Authorization"] = f"Bearer {self._config.credential}"
        return headers

    def _build_body(self, messages: Sequence[Mapping], params: dict) -> dict:
        config = self._config
        return {
            "model": config.model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "top_p": config.top_p,
            "frequency_penalty": config.frequency_penalty,
            "presence_penalty": config.presence_penalty,
            **params,
        }

    async def chat(self, messages: Sequence[Mapping], **params) -> str:
        validate_messages(messages)
        body = self._build_body(messages, params)
        response = await self._request("/chat/completions", body)
        return self._extract_text(response)

    async def test_connection(self) -> bool:
        url = f"{self.api_base_url}/models"
        client = await self._get_client()
        try:
            response = await client.get(
                url, headers=self._build_headers(), timeout=CONNECTION_TEST_TIMEOUT
            )
        except httpx.HTTPError as e:
            self._logger.warning(
                "Connection test failed",
                extra={"audit_data": {"provider": self.provider, "error": str(e)}},
            )
            return False
        return response.is_success

    async def _request(self, endpoint: str, payload: dict) -> dict:
        """POST ``payload`` to ``endpoint`` with bounded retries.

        Transport failures and 5xx wait ``attempt`` seconds before the next
        try, 429 waits ``attempt * 2``. 401 and other statuses are never
        retried. No lock is held while waiting.
        """
        url = f"{self.api_base_url}{endpoint}"
        headers = self._build_headers()
        max_attempts = self._config.retry_attempts
        attempt = 1

        while True:
            client = await self._get_client()
            try:
                with RequestTimer() as timer:
                    response = await client.post(url, json=payload, headers=headers)
            except httpx.TransportError as e:
                self._log_failure(endpoint, attempt, error=str(e) or type(e).__name__)
                if attempt < max_attempts:
                    await asyncio.sleep(attempt)
                    attempt += 1
                    continue
                raise TransportError(e) from e

            if response.is_success:
                self._logger.debug(
                    "Provider request completed",
                    extra={"audit_data": {
                        "provider": self.provider,
                        "model": self.model,
                        "endpoint": endpoint,
                        "attempt": attempt,
                        "latency_ms": timer.elapsed_ms,
                    }},
                )
                try:
                    return response.json()
                except ValueError:
                    raise MalformedResponse("body is not valid JSON")

            status = response.status_code
            self._log_failure(endpoint, attempt, status_code=status)

            if status == 401:
                raise AuthenticationError()
            if status == 429:
                if attempt < max_attempts:
                    await asyncio.sleep(attempt * 2)
                    attempt += 1
                    continue
                raise RateLimited()
            if status in SERVER_ERROR_STATUSES:
                if attempt < max_attempts:
                    await asyncio.sleep(attempt)
                    attempt += 1
                    continue
                raise UpstreamServerError(status)
            raise UpstreamError(status, _error_message(response))

    @staticmethod
    def _extract_text(body) -> str:
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise MalformedResponse()
        if not isinstance(content, str):
            raise MalformedResponse()
        return content.strip()

    def _log_failure(self, endpoint: str, attempt: int, **fields) -> None:
        self._logger.warning(
            "Provider request failed",
            extra={"audit_data": {
                "provider": self.provider,
                "endpoint": endpoint,
                "attempt": attempt,
                "max_attempts": self._config.retry_attempts,
                **fields,
            }},
        )

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


def _error_message(response: httpx.Response) -> str:
    """Pull ``error.message`` out of an error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return "Unknown error"

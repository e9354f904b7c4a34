"""AI Core — FastAPI application entry point.

Host-facing endpoints around the provider layer: completion, chat,
analysis, connection test, status, and credential encryption for the
settings-save path. Requests are rate limited per caller and endpoint.
Provider clients live for one request and are closed when it ends.
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ai_core.config.settings import get_settings
from ai_core.logging.audit import (
    RequestTimer,
    generate_request_id,
    get_audit_logger,
    request_id_var,
    setup_logging,
)
from ai_core.providers.errors import (
    AICoreError,
    AuthenticationError,
    ConfigurationError,
    InputError,
    RateLimited,
    TransportError,
)
from ai_core.providers.factory import ClientCache, ClientFactory
from ai_core.providers.registry import default_registry
from ai_core.security.cipher import AuthenticatedCipher
from ai_core.security.identity import caller_identifier
from ai_core.security.ratelimit import RateAccountant
from ai_core.stores.factory import get_ttl_store

VERSION = "1.0.0"


class CompleteRequest(BaseModel):
    prompt: str
    provider: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class ChatRequest(BaseModel):
    messages: list[Any]
    provider: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class AnalyzeRequest(BaseModel):
    text: str
    provider: str | None = None


class ConnectionRequest(BaseModel):
    provider: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class CredentialRequest(BaseModel):
    credential: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared collaborators once."""
    settings = get_settings()
    setup_logging()
    # No process-wide client cache: callers pick the params that key it
    app.state.factory = ClientFactory(settings.provider_defaults(), default_registry())
    app.state.cipher = AuthenticatedCipher.from_settings(settings)
    app.state.accountant = RateAccountant(
        get_ttl_store(settings),
        default_max_attempts=settings.rate_limit,
        default_window_seconds=settings.rate_limit_window,
    )
    get_audit_logger().info("AI core started", extra={"audit_data": {"version": VERSION}})
    yield
    get_audit_logger().info("AI core stopped")


app = FastAPI(
    title="AI Core",
    description="Pluggable AI provider layer with encrypted credentials and rate limiting",
    version=VERSION,
    lifespan=lifespan,
)


@app.exception_handler(AICoreError)
async def ai_core_error_handler(request: Request, exc: AICoreError):
    """Map the error taxonomy onto HTTP statuses."""
    if isinstance(exc, (ConfigurationError, InputError)):
        status = 400
    elif isinstance(exc, RateLimited):
        status = 429
    elif isinstance(exc, TransportError):
        status = 504
    else:
        status = 502

    get_audit_logger().warning(
        "Request failed",
        extra={"audit_data": {
            "path": request.url.path,
            "error_code": exc.error_code,
            "error": exc.message,
            "status": status,
        }},
    )
    content = {"error": exc.message, "code": exc.error_code}
    if isinstance(exc, AuthenticationError):
        content["error"] = "Provider rejected the configured credential"
    return JSONResponse(status_code=status, content=content)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.get("/v1/ai/status")
async def status(request: Request):
    """Configuration summary; not rate limited."""
    settings = get_settings()
    factory: ClientFactory = request.app.state.factory
    return {
        "enabled": settings.enabled,
        "provider": settings.ai_provider,
        "model": settings.model,
        "credential_configured": bool(settings.api_key),
        "supported_providers": factory.supported_providers(),
        "cache_enabled": settings.cache_enabled,
    }


@app.post("/v1/ai/complete")
async def complete(
    payload: CompleteRequest, request: Request, identifier: str = Depends(caller_identifier)
):
    blocked = await _guard(request, identifier, "complete")
    if blocked is not None:
        return blocked
    async with _provider_client(request, payload.provider, payload.params) as client:
        with RequestTimer() as timer:
            text = await client.complete(payload.prompt)
    _log_call(client, "complete", timer)
    return {"result": text}


@app.post("/v1/ai/chat")
async def chat(
    payload: ChatRequest, request: Request, identifier: str = Depends(caller_identifier)
):
    blocked = await _guard(request, identifier, "chat")
    if blocked is not None:
        return blocked
    async with _provider_client(request, payload.provider, payload.params) as client:
        with RequestTimer() as timer:
            text = await client.chat(payload.messages)
    _log_call(client, "chat", timer)
    return {"result": text}


@app.post("/v1/ai/analyze")
async def analyze(
    payload: AnalyzeRequest, request: Request, identifier: str = Depends(caller_identifier)
):
    blocked = await _guard(request, identifier, "analyze")
    if blocked is not None:
        return blocked
    async with _provider_client(request, payload.provider, {}) as client:
        with RequestTimer() as timer:
            result = await client.analyze(payload.text)
    _log_call(client, "analyze", timer)
    return {"result": result}


@app.post("/v1/ai/test-connection")
async def test_connection(
    payload: ConnectionRequest, request: Request, identifier: str = Depends(caller_identifier)
):
    blocked = await _guard(request, identifier, "test_connection")
    if blocked is not None:
        return blocked
    async with _provider_client(request, payload.provider, payload.params) as client:
        connected = await client.test_connection()
    if connected:
        return {"connected": True, "provider": client.provider}
    return JSONResponse(
        status_code=502,
        content={"error": "Connection failed", "code": "connection_failed"},
    )


@app.post("/v1/settings/credential")
async def encrypt_credential(
    payload: CredentialRequest, request: Request, identifier: str = Depends(caller_identifier)
):
    """Settings-save path: return the credential as an encrypted blob for storage."""
    limited = await _enforce_rate_limit(request, identifier, "save_credential")
    if limited is not None:
        return limited
    cipher: AuthenticatedCipher = request.app.state.cipher
    blob = cipher.encrypt(payload.credential)
    if blob is None:
        return JSONResponse(
            status_code=500,
            content={"error": "Credential could not be encrypted", "code": "encryption_failed"},
        )
    return {"encrypted": blob}


@asynccontextmanager
async def _provider_client(request: Request, provider: str | None, params: dict):
    """Yield a client scoped to this request; its connections close on exit."""
    settings = get_settings()
    cache = ClientCache() if settings.cache_enabled else None
    factory = request.app.state.factory.with_cache(cache)
    client = factory.get_or_create(provider or settings.ai_provider, params)
    try:
        yield client
    finally:
        if cache is not None:
            await cache.aclose()
        else:
            await client.close()


async def _guard(request: Request, identifier: str, action: str) -> JSONResponse | None:
    """Reject AI calls while the feature is switched off, then apply the rate limit."""
    if not get_settings().enabled:
        return JSONResponse(
            status_code=503,
            content={"error": "AI features are disabled", "code": "ai_disabled"},
        )
    return await _enforce_rate_limit(request, identifier, action)


async def _enforce_rate_limit(request: Request, identifier: str, action: str) -> JSONResponse | None:
    """Return a 429 response if the caller is over the limit, else None."""
    rid = generate_request_id()
    request_id_var.set(rid)

    accountant: RateAccountant = request.app.state.accountant
    result = await accountant.check(identifier, action)
    if result.allowed:
        return None

    return JSONResponse(
        status_code=429,
        content={
            "error": f"Rate limit exceeded. Please try again in {result.reset_seconds} seconds.",
            "code": "rate_limit_exceeded",
        },
        headers={
            "Retry-After": str(result.reset_seconds),
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(result.reset_seconds),
            "X-Request-Id": rid,
        },
    )


def _log_call(client, operation: str, timer: RequestTimer) -> None:
    get_audit_logger().info(
        "AI request completed",
        extra={"audit_data": {
            "operation": operation,
            "provider": client.provider,
            "model": client.model,
            "latency_ms": timer.elapsed_ms,
        }},
    )

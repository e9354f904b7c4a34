"""Caller identity for rate limiting.

Only a recognized X-API-Key yields a ``user_<id>`` identifier; everyone
else is counted by address. Request headers the caller controls freely
(a bare user id, or X-Forwarded-For without a trusted proxy in front)
never pick the identifier. Access control itself stays with the host.
"""

import hmac

from fastapi import Request, Security
from fastapi.security import APIKeyHeader

from ai_core.config.settings import get_settings
from ai_core.security.ratelimit import request_identifier

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def authenticated_user(api_key: str | None) -> str | None:
    """Map a host API key to its user id, or None if it is not listed."""
    if not api_key:
        return None
    user_id = None
    # Check every key so timing does not reveal which one matched
    for valid_key, owner in get_settings().host_api_keys_map.items():
        if hmac.compare_digest(api_key.encode(), valid_key.encode()):
            user_id = owner
    return user_id


async def caller_identifier(
    request: Request, api_key: str | None = Security(api_key_header)
) -> str:
    """FastAPI dependency resolving the rate-limit identifier of a request."""
    settings = get_settings()
    forwarded_for = request.headers.get("X-Forwarded-For") if settings.trust_forwarded_for else None
    return request_identifier(
        user_id=authenticated_user(api_key),
        client_ip=request.client.host if request.client else None,
        forwarded_for=forwarded_for,
    )

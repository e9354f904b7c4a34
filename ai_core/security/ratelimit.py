"""Fixed-window rate accounting over an injected TTL store.

Each (identifier, action) pair gets one window entry
``{"count": n, "window_start": t}``. Counting goes through the store's
atomic ``incr``, so concurrent workers sharing a store never lose an
update and the accountant keeps no per-identifier state of its own.
Increments keep the original expiry, so the window never slides; when the
store expires the key the counter starts over from zero. Near a window
edge this admits up to 2x max_attempts in a short burst.

Denial is a normal outcome (False), not an error.
"""

import ipaddress
import re
from collections.abc import Callable
from dataclasses import dataclass

from ai_core.logging.audit import get_audit_logger
from ai_core.stores.store import TTLStore

KEY_PREFIX = "ai_core_rate_limit_"
DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_WINDOW_SECONDS = 60

_UNSAFE_KEY_CHARS = re.compile(r"[^a-z0-9_\-.:]")

ExceededHook = Callable[[str, str, int], None]


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


def sanitize_key(value: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("", value.lower())


class RateAccountant:
    """Counts attempts per (identifier, action) in fixed windows."""

    def __init__(
        self,
        store: TTLStore,
        default_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        default_window_seconds: int = DEFAULT_WINDOW_SECONDS,
        on_exceeded: ExceededHook | None = None,
    ):
        self._store = store
        self._default_max = default_max_attempts
        self._default_window = default_window_seconds
        self._on_exceeded = on_exceeded
        self._logger = get_audit_logger()

    def _key(self, identifier: str, action: str) -> str:
        return f"{KEY_PREFIX}{sanitize_key(identifier)}_{sanitize_key(action)}"

    async def is_allowed(
        self,
        identifier: str,
        action: str = "default",
        max_attempts: int | None = None,
        window_seconds: int | None = None,
    ) -> bool:
        """Record an attempt and return whether it is within the limit."""
        if not identifier or not action:
            return False

        max_attempts = self._default_max if max_attempts is None else max_attempts
        window_seconds = self._default_window if window_seconds is None else window_seconds
        key = self._key(identifier, action)

        counted, count = await self._store.incr(key, window_seconds, max_attempts)
        if not counted:
            self._exceeded(identifier, action, count)
            return False
        return True

    async def check(
        self,
        identifier: str,
        action: str = "default",
        max_attempts: int | None = None,
        window_seconds: int | None = None,
    ) -> RateLimitResult:
        """``is_allowed`` plus the metadata an HTTP layer needs for headers."""
        max_attempts = self._default_max if max_attempts is None else max_attempts
        window_seconds = self._default_window if window_seconds is None else window_seconds

        allowed = await self.is_allowed(identifier, action, max_attempts, window_seconds)
        remaining = await self.remaining_attempts(identifier, action, max_attempts)
        reset = await self.time_until_reset(identifier, action)
        return RateLimitResult(
            allowed=allowed,
            limit=max_attempts,
            remaining=remaining,
            reset_seconds=window_seconds if reset is None else reset,
        )

    async def remaining_attempts(
        self, identifier: str, action: str = "default", max_attempts: int | None = None
    ) -> int:
        if not identifier or not action:
            return 0
        max_attempts = self._default_max if max_attempts is None else max_attempts
        entry = await self._store.get(self._key(identifier, action))
        if entry is None:
            return max_attempts
        return max(0, max_attempts - int(entry.get("count", 0)))

    async def time_until_reset(self, identifier: str, action: str = "default") -> int | None:
        """Whole seconds until the window resets, or None if no window is active."""
        if not identifier or not action:
            return None
        ttl = await self._store.ttl(self._key(identifier, action))
        if ttl is None:
            return None
        return max(0, int(ttl + 0.999))

    async def reset(self, identifier: str, action: str = "default") -> bool:
        if not identifier or not action:
            return False
        return await self._store.delete(self._key(identifier, action))

    async def clear_all(self, identifier: str) -> int:
        """Drop every action window for ``identifier``."""
        if not identifier:
            return 0
        return await self._store.delete_prefix(f"{KEY_PREFIX}{sanitize_key(identifier)}_")

    def _exceeded(self, identifier: str, action: str, attempts: int) -> None:
        self._logger.warning(
            "Rate limit exceeded",
            extra={"audit_data": {
                "identifier": identifier,
                "action": action,
                "attempts": attempts,
            }},
        )
        if self._on_exceeded is not None:
            self._on_exceeded(identifier, action, attempts)


def request_identifier(
    user_id: str | None = None,
    client_ip: str | None = None,
    forwarded_for: str | None = None,
) -> str:
    """Derive a rate-limit identifier: authenticated user, else client IP."""
    if user_id:
        return f"user_{user_id}"

    for candidate in (forwarded_for, client_ip):
        if not candidate:
            continue
        # X-Forwarded-For may carry a chain; the first entry is the client
        ip = candidate.split(",")[0].strip()
        try:
            ipaddress.ip_address(ip)
        except ValueError:
            continue
        return f"ip_{ip}"

    return "ip_0.0.0.0"

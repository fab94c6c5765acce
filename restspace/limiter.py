"""
Rate Limiting

Two limiters live here, both backed by the `limits` library that slowapi
is built on:

- RateLimiter: gates the passkey ceremony endpoints with a fixed-window
  counter per "purpose:client_ip" key. One instance (with its own in-memory
  storage) is created per application (see main.create_app) and handed to
  the routes through a dependency.
- limiter: the slowapi Limiter used to decorate feed routes, e.g.
  @limiter.limit("10/minute"). Its counters live in RATE_LIMIT_STORAGE_URI
  (in-process memory by default, Redis if configured).

The slowapi limiter is bound when the route module is imported, so
RATE_LIMIT_STORAGE_URI and POST_RATE_LIMIT come from the environment-loaded
global settings; a Settings object passed to create_app() does not change
them. The ceremony limits (AUTH_RATE_LIMIT, AUTH_RATE_WINDOW_SECONDS) are read
per application.

Both are coarse abuse guards, not accounting: counts are per process (unless
slowapi is pointed at Redis) and windows are fixed, not sliding.
"""

import time
from typing import NamedTuple

from fastapi import Request
from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter

from restspace.config import settings


def client_ip(request: Request) -> str:
    """
    Best-effort client address.

    Behind a proxy the first X-Forwarded-For entry is the original client;
    otherwise use the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimitResult(NamedTuple):
    ok: bool
    remaining: int


class RateLimiter:
    """
    Fixed-window request counter keyed by an arbitrary string.

    Keys are conventionally "purpose:client_ip". The first call for a key
    opens a window of `window` seconds; each call counts against it and is
    rejected once the count exceeds `limit`. A call after the window has
    ended starts a fresh one.

    Example:
        limiter = RateLimiter()
        result = limiter.check("auth:203.0.113.9", limit=20, window=60)
        if not result.ok:
            ...  # respond 429
    """

    def __init__(self):
        self._strategy = FixedWindowRateLimiter(MemoryStorage())
        # Last limit used per key, so sweep() can find the key's window
        self._items: dict[str, RateLimitItem] = {}

    def check(self, key: str, limit: int, window: int) -> RateLimitResult:
        item = RateLimitItemPerSecond(limit, max(1, int(window)))
        self._items[key] = item
        ok = self._strategy.hit(item, key)
        stats = self._strategy.get_window_stats(item, key)
        return RateLimitResult(ok=ok, remaining=max(0, stats.remaining))

    def sweep(self) -> int:
        """Forget windows that have ended. Returns how many were removed."""
        now = time.time()
        expired = [
            key for key, item in self._items.items()
            if self._strategy.get_window_stats(item, key).reset_time <= now
        ]
        for key in expired:
            self._strategy.clear(self._items.pop(key), key)
        return len(expired)

    def __len__(self) -> int:
        return len(self._items)


# Initialize the slowapi Limiter for feed routes
# key_func=client_ip: Uses the client's IP address as the unique identifier
# storage_uri: "memory://" by default, or Redis for shared counters
limiter = Limiter(
    key_func=client_ip,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window"  # Standard fixed window algorithm
)

"""
Dependencies for FastAPI Routes

This module provides dependency injection functions for the routes:
- access to the per-application components stored on app.state
  (settings, session issuer, ceremony rate limiter)
- authentication: required or optional user from the session cookie
- ceremony rate limiting per client IP

FastAPI's dependency injection system makes these reusable across routes
while keeping authentication logic centralized.
"""

from fastapi import Depends, HTTPException, Request, status

from restspace.config import Settings
from restspace.exceptions import InvalidSession, RateLimited
from restspace.limiter import RateLimiter, client_ip
from restspace.services.session import SessionIssuer


SESSION_COOKIE = "session"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_issuer(request: Request) -> SessionIssuer:
    return request.app.state.session_issuer


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


async def get_current_user_id(
    request: Request,
    issuer: SessionIssuer = Depends(get_session_issuer)
) -> str:
    """
    Dependency that requires an authenticated user.

    This function:
    1. Extracts the token from the session cookie (set after a ceremony)
    2. Verifies the token signature and expiration
    3. Returns the user id it asserts, or raises HTTP 401

    The user row is not looked up: a valid token is proof enough that we
    issued it, and users are never deleted.

    Usage in routes:
        @router.post("/protected")
        async def protected_route(user_id: str = Depends(get_current_user_id)):
            ...

    Raises:
        HTTPException: 401 if there is no cookie or the token is invalid
    """
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    try:
        return issuer.verify(token)
    except InvalidSession:
        # Don't tell the client whether the token was expired, forged or garbled
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )


async def get_optional_user_id(
    request: Request,
    issuer: SessionIssuer = Depends(get_session_issuer)
) -> str | None:
    """
    Dependency that optionally returns the authenticated user id.

    Unlike get_current_user_id, this returns None instead of raising,
    for pages that work for both signed-in and anonymous visitors.
    """
    try:
        return await get_current_user_id(request, issuer)
    except HTTPException:
        return None


def ceremony_rate_limit(purpose: str):
    """
    Build a dependency that counts the request against "purpose:client_ip".

    Usage:
        @router.post("/login-verify", dependencies=[Depends(ceremony_rate_limit("auth"))])

    Raises:
        RateLimited: once the client has exceeded AUTH_RATE_LIMIT in the window
    """
    def check(
        request: Request,
        rate_limiter: RateLimiter = Depends(get_rate_limiter),
        settings: Settings = Depends(get_settings)
    ):
        result = rate_limiter.check(
            f"{purpose}:{client_ip(request)}",
            settings.AUTH_RATE_LIMIT,
            settings.AUTH_RATE_WINDOW_SECONDS,
        )
        if not result.ok:
            raise RateLimited(remaining=result.remaining)

    return check

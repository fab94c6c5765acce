"""
Main Application Entry Point

This module builds the FastAPI application:
- Configuration checks and database initialization on startup
- Per-application components on app.state (engine, session factory,
  session issuer, ceremony rate limiter)
- A background housekeeping task (expired challenges, stale rate limit windows)
- Error handlers mapping the error taxonomy onto HTTP responses
- Route registration

Run with:
    uvicorn restspace.main:app
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from restspace.config import Settings, settings as default_settings
from restspace.database import create_engine_from_settings, create_session_factory, init_models, storage_errors
from restspace.exceptions import ConfigFault, RateLimited, RestspaceError, StorageFault
from restspace.limiter import RateLimiter, limiter
from restspace.routes import auth, thoughts
from restspace.services.challenges import ChallengeStore
from restspace.services.session import SessionIssuer


logger = logging.getLogger(__name__)


def check_secret_key(settings: Settings):
    """
    Refuse to run a production-like deployment on the development signing key.

    Anyone who knows the default key could mint sessions for any user, so
    this is fatal in production and a loud warning everywhere else.

    Raises:
        ConfigFault: ENVIRONMENT is production-like and SECRET_KEY is unset
    """
    if not settings.uses_default_secret:
        return
    if settings.is_production:
        logger.critical("SECRET_KEY is not set; refusing to start with the development key")
        raise ConfigFault("SECRET_KEY environment variable is required in production")
    logger.warning(
        "SECRET_KEY is not set; using the built-in development key. "
        "Sessions can be forged by anyone who knows it. Never deploy like this."
    )


async def purge_expired_challenges(app: FastAPI) -> int:
    ttl = timedelta(seconds=app.state.settings.CHALLENGE_TTL_SECONDS)
    async with app.state.session_factory() as session:
        removed = await ChallengeStore(session, ttl=ttl).purge_expired()
        with storage_errors("challenge purge commit"):
            await session.commit()
    return removed


async def housekeeping(app: FastAPI, interval: float):
    """
    Periodic cleanup until cancelled.

    Abandoned ceremonies leave challenge rows behind; they are already
    unusable after the TTL, this just keeps the table small. A failed pass
    is logged and retried on the next tick; only cancellation stops the loop.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            app.state.rate_limiter.sweep()
            removed = await purge_expired_challenges(app)
        except Exception:
            logger.exception("Housekeeping pass failed")
            continue
        if removed:
            logger.info(f"Purged {removed} expired challenges")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Configuration to use; defaults to the environment-loaded
                  global settings. Tests pass their own.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager - runs on startup and shutdown.

        Startup tasks:
        - Refuse the development signing key in production
        - Create database tables if they don't exist
        - Start the housekeeping task

        Shutdown tasks:
        - Stop housekeeping and close database connections
        """
        logging.getLogger("restspace").setLevel(settings.LOG_LEVEL.upper())
        check_secret_key(settings)

        await init_models(app.state.engine)

        sweeper = asyncio.create_task(housekeeping(app, settings.SWEEP_INTERVAL_SECONDS))

        # Application runs here (between yield and context exit)
        yield

        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        await app.state.engine.dispose()

    app = FastAPI(title="restspace", lifespan=lifespan)

    engine = create_engine_from_settings(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.session_issuer = SessionIssuer(
        settings.SECRET_KEY, lifetime=timedelta(days=settings.SESSION_TTL_DAYS)
    )
    app.state.rate_limiter = RateLimiter()

    # slowapi looks the limiter up on app.state
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(RestspaceError)
    async def restspace_error_handler(request: Request, exc: RestspaceError):
        if isinstance(exc, StorageFault):
            # Operator-facing: full context in the log, nothing in the response
            logger.error(
                f"{request.method} {request.url.path} failed: storage fault "
                f"({settings.database_debug_info})",
                exc_info=exc.__cause__ or exc,
            )
        headers = None
        if isinstance(exc, RateLimited):
            headers = {"X-RateLimit-Remaining": str(exc.remaining)}
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "detail": exc.message},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "InvalidRequest", "detail": "Malformed request"},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"error": "InternalError", "detail": "Internal server error"},
        )

    # Register route modules
    app.include_router(auth.router)
    app.include_router(thoughts.router)

    return app


app = create_app()

"""
Application Configuration Module

This module handles all application settings using Pydantic's BaseSettings.
Environment variables are automatically loaded from a .env file, making it
easy to manage different configurations for development and production.

Besides plain values, the settings object derives a few deployment facts:
which database to talk to, which relying party the WebAuthn ceremonies are
scoped to, and whether we are running somewhere production-like.
"""

from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings
from sqlalchemy.engine import make_url


# Signing key used when SECRET_KEY is not supplied.
# Only acceptable for local development; startup refuses it in production.
DEFAULT_SECRET_KEY = "restspace-dev-secret-change-me"

# Environments that are allowed to run with development defaults
NON_PRODUCTION_ENVIRONMENTS = {"development", "dev", "local", "test"}

# Connection string variables, in priority order.
# A manual override comes first, then platform-provided pooler URLs, then the
# direct connection, and the generic DATABASE_URL last.
DATABASE_URL_CANDIDATES = (
    "DB_OVERRIDE_URL",
    "POSTGRES_URL",
    "POSTGRES_PRISMA_URL",
    "POSTGRES_URL_NON_POOLING",
    "DATABASE_URL",
)

# libpq-style query parameters that asyncpg rejects as connect() arguments
UNSUPPORTED_QUERY_PARAMS = ("sslmode", "pgbouncer", "supa", "connection_limit")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Pydantic automatically reads these values from:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values (if specified)

    This approach keeps secrets out of version control while providing
    type validation and IDE autocomplete support.
    """

    # Security key for signing session tokens
    # Must be a long, random string in production
    SECRET_KEY: str = DEFAULT_SECRET_KEY

    # Environment mode: "production" unless explicitly set to a development name
    # Affects cookie security and whether development defaults are tolerated
    ENVIRONMENT: str = "production"

    # Database connection strings (see DATABASE_URL_CANDIDATES for priority)
    DB_OVERRIDE_URL: str = ""
    POSTGRES_URL: str = ""
    POSTGRES_PRISMA_URL: str = ""
    POSTGRES_URL_NON_POOLING: str = ""
    DATABASE_URL: str = ""

    # Local database file used when no connection string is configured
    SQLITE_PATH: str = "local.db"

    # Accept Postgres TLS certificates without verification (some poolers need it)
    PG_SSL_NO_VERIFY: bool = False

    # WebAuthn relying party
    RP_ID: str = ""
    RP_NAME: str = "restspace"
    ORIGIN: str = ""

    # Deployment host set by Vercel (e.g. "my-app.vercel.app"); used for the
    # origin and rp id when ORIGIN and RP_ID are not set
    VERCEL_URL: str = ""

    # Lifetimes
    SESSION_TTL_DAYS: int = 30
    CHALLENGE_TTL_SECONDS: int = 300

    # Ceremony rate limit: requests per window, per client IP
    AUTH_RATE_LIMIT: int = 20
    AUTH_RATE_WINDOW_SECONDS: int = 60

    # Posting rate limit (slowapi limit string) and its counter storage
    # Use "redis://host:6379" to share counters between workers
    # Both are read once, from the environment, when the routes are imported;
    # a Settings object passed to create_app() does not override them
    POST_RATE_LIMIT: str = "10/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # How often expired challenges and rate limit windows are swept
    SWEEP_INTERVAL_SECONDS: float = 300.0

    # Force the cookie "secure" flag; defaults to on in production
    COOKIE_SECURE: bool | None = None

    LOG_LEVEL: str = "INFO"

    @field_validator(*DATABASE_URL_CANDIDATES)
    def strip_database_url(cls, value):
        return value.strip() if value else ""

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() not in NON_PRODUCTION_ENVIRONMENTS

    @property
    def cookie_secure(self) -> bool:
        if self.COOKIE_SECURE is not None:
            return self.COOKIE_SECURE
        return self.is_production

    @property
    def uses_default_secret(self) -> bool:
        return self.SECRET_KEY == DEFAULT_SECRET_KEY

    @property
    def database_url_source(self) -> str:
        """Name of the variable that supplied the connection string, or "sqlite"."""
        for name in DATABASE_URL_CANDIDATES:
            if getattr(self, name):
                return name
        return "sqlite"

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy URL for the configured backend.

        The first non-blank candidate wins. Postgres URLs are rewritten to use
        the asyncpg driver; without any candidate we fall back to a local
        SQLite file through aiosqlite.
        """
        source = self.database_url_source
        if source == "sqlite":
            return f"sqlite+aiosqlite:///{self.SQLITE_PATH}"

        value = getattr(self, source)
        for prefix in ("postgres://", "postgresql://"):
            if value.startswith(prefix):
                value = "postgresql+asyncpg://" + value[len(prefix):]
                break

        url = make_url(value)
        if url.query:
            url = url.difference_update_query(UNSUPPORTED_QUERY_PARAMS)
        return url.render_as_string(hide_password=False)

    @property
    def database_debug_info(self) -> str:
        """Backend description for logs; never includes credentials."""
        source = self.database_url_source
        if source == "sqlite":
            return f"db_source=sqlite db_path={self.SQLITE_PATH}"
        try:
            url = make_url(self.database_url)
            return f"db_source={source} db_host={url.host}:{url.port} db_driver={url.drivername}"
        except Exception:
            return f"db_source={source} db_url=unparseable"

    @property
    def expected_origin(self) -> str:
        """Browser origin: ORIGIN, else https://VERCEL_URL, else the local dev server."""
        if self.ORIGIN:
            return self.ORIGIN.rstrip("/")
        if self.VERCEL_URL:
            host = self.VERCEL_URL.split("://", 1)[-1].rstrip("/")
            return f"https://{host}"
        return "http://localhost:3000"

    @property
    def rp_id(self) -> str:
        """Relying party id: explicit RP_ID, else the host name of expected_origin."""
        if self.RP_ID:
            return self.RP_ID
        if self.ORIGIN or self.VERCEL_URL:
            host = urlparse(self.expected_origin).hostname
            if host:
                return host
        return "localhost"

    class Config:
        """
        Pydantic configuration class.

        Tells Pydantic to load settings from a .env file,
        which should be placed in the project root directory.
        """
        env_file = ".env"
        extra = "ignore"


# Global settings instance used throughout the application
# Import this instance to access configuration values
settings = Settings()

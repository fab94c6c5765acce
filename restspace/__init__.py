"""
restspace Application Package

This package contains the application code for restspace, an anonymous
micro-posting wall secured by passkeys. The package is organized as follows:

- config.py: Application configuration and environment settings
- database.py: Database engine selection (Postgres or local SQLite) and sessions
- dependencies.py: FastAPI dependency injection functions
- exceptions.py: Error taxonomy and its HTTP mapping
- limiter.py: Rate limiting (ceremony limiter component and slowapi limiter)
- main.py: FastAPI application factory and lifecycle
- models.py: SQLAlchemy ORM database models
- schemas.py: Pydantic request bodies

Subpackages:
- routes/: API route handlers (auth, thoughts)
- services/: Business logic (stores, session tokens, WebAuthn ceremonies)
- utils/: Utility functions (moderation, validators)
"""

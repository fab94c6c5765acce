"""
Database Setup Script

Creates all tables on the configured database and brings older databases up
to date. The app also creates missing tables on startup, but running this
once before the first deploy surfaces connection and permission problems
early, outside a request.

Upgrades applied to databases created by earlier versions:
- thoughts.color (NOT NULL, default 'default')
- thoughts.user_id (nullable author id)
- challenges.ceremony (NOT NULL, default 'registration')

Usage:
    python scripts/setup_db.py
"""

import asyncio
import os
import sys

# Add parent directory to Python path so we can import restspace modules
# This allows running the script from any directory
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import inspect, text

from restspace.config import settings
from restspace.database import create_engine_from_settings, init_models


# table -> [(column, DDL fragment)]
MISSING_COLUMNS = {
    "thoughts": [
        ("color", "color TEXT NOT NULL DEFAULT 'default'"),
        ("user_id", "user_id TEXT"),
    ],
    "challenges": [
        ("ceremony", "ceremony TEXT NOT NULL DEFAULT 'registration'"),
    ],
}


def _existing_columns(sync_conn, table: str) -> set[str]:
    return {column["name"] for column in inspect(sync_conn).get_columns(table)}


async def setup():
    """Create tables, then add any columns older schemas lack."""
    engine = create_engine_from_settings(settings)
    print(f"Setting up database ({settings.database_debug_info})")

    try:
        await init_models(engine)
        print("Tables created")

        async with engine.begin() as conn:
            for table, columns in MISSING_COLUMNS.items():
                existing = await conn.run_sync(_existing_columns, table)
                for name, ddl in columns:
                    if name not in existing:
                        await conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {ddl}"))
                        print(f"Added {table}.{name}")
        print("Database is up to date")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    # Run the async setup function
    asyncio.run(setup())

"""
Challenge Store

Persists the one-time WebAuthn challenges of in-flight ceremonies.

A challenge row is keyed by the opaque session id from the challenge_session
cookie. Saving is an upsert, so a session that starts a new ceremony before
finishing the old one simply replaces it: there is never more than one live
challenge per session, and only the latest one can be redeemed.

Rows older than the challenge TTL are treated as absent by get(), even if
the periodic purge hasn't removed them yet.
"""

from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from restspace.database import insert_for, storage_errors
from restspace.models import Challenge, utcnow


REGISTRATION = "registration"
AUTHENTICATION = "authentication"


class ChallengeStore:
    """
    Storage operations for Challenge rows.

    The store never commits; the ceremony that owns the challenge decides
    when its unit of work is complete.
    """

    def __init__(self, db: AsyncSession, ttl: timedelta = timedelta(minutes=5)):
        self.db = db
        self.ttl = ttl

    async def save(self, session_id: str, challenge: str, user_id: str | None = None,
                   ceremony: str = REGISTRATION):
        """
        Store the challenge for a session, replacing any pending one.

        The overwrite also resets created_at, so the TTL always counts from
        the most recent Begin.
        """
        insert = insert_for(self.db)
        values = {
            "challenge": challenge,
            "user_id": user_id,
            "ceremony": ceremony,
            "created_at": utcnow(),
        }
        stmt = insert(Challenge).values(id=session_id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=[Challenge.id], set_=values)
        with storage_errors("challenge save"):
            await self.db.execute(stmt)

    async def get(self, session_id: str, ceremony: str | None = None) -> Challenge | None:
        """
        Load the live challenge for a session.

        Returns None when there is no row, when the row has outlived the TTL,
        or when it belongs to a different kind of ceremony than requested.
        """
        query = select(Challenge).filter(
            Challenge.id == session_id,
            Challenge.created_at >= utcnow() - self.ttl,
        )
        if ceremony is not None:
            query = query.filter(Challenge.ceremony == ceremony)

        with storage_errors("challenge lookup"):
            result = await self.db.execute(query)
        return result.scalars().first()

    async def delete(self, session_id: str) -> bool:
        """
        Delete a session's challenge.

        Returns True only if a row was actually removed. When two requests
        race to consume the same challenge, exactly one of them sees True.
        """
        with storage_errors("challenge delete"):
            result = await self.db.execute(delete(Challenge).where(Challenge.id == session_id))
        return result.rowcount == 1

    async def purge_expired(self) -> int:
        """Remove challenges older than the TTL. Returns the number removed."""
        with storage_errors("challenge purge"):
            result = await self.db.execute(
                delete(Challenge).where(Challenge.created_at < utcnow() - self.ttl)
            )
        return result.rowcount

"""
Credential Store

Persists anonymous users and the passkeys (authenticators) registered to
them. Users are created once and never change; authenticators are created
once and afterwards only ever have their signature counter advanced.
"""

import json
import uuid

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from restspace.database import insert_for, storage_errors
from restspace.exceptions import UniquenessViolation
from restspace.models import Authenticator, User


class CredentialStore:
    """Storage operations for User and Authenticator rows. Never commits."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_user(self, user_id: str):
        """Insert a user; a duplicate id is silently ignored."""
        insert = insert_for(self.db)
        stmt = insert(User).values(id=user_id).on_conflict_do_nothing(index_elements=[User.id])
        with storage_errors("user create"):
            await self.db.execute(stmt)

    async def save_authenticator(self, user_id: str, credential_id: str, public_key: str,
                                 counter: int, transports: list[str] | None = None) -> Authenticator:
        """
        Register a new authenticator for a user.

        The unique index is the real guard; the lookup first just gives the
        common case a clean error. If the insert itself hits the index (a
        concurrent registration of the same credential), the session must be
        rolled back by the caller.

        Raises:
            UniquenessViolation: credential_id is already registered (to anyone)
        """
        if await self.get_by_credential_id(credential_id) is not None:
            raise UniquenessViolation()

        authenticator = Authenticator(
            id=str(uuid.uuid4()),
            user_id=user_id,
            credential_id=credential_id,
            credential_public_key=public_key,
            counter=counter,
            transports=json.dumps(transports) if transports else None,
        )
        self.db.add(authenticator)
        with storage_errors("authenticator save"):
            try:
                await self.db.flush()
            except IntegrityError as e:
                raise UniquenessViolation() from e
        return authenticator

    async def get_by_user_id(self, user_id: str) -> list[Authenticator]:
        with storage_errors("authenticator lookup"):
            result = await self.db.execute(
                select(Authenticator).filter(Authenticator.user_id == user_id)
            )
        return list(result.scalars().all())

    async def get_by_credential_id(self, credential_id: str) -> Authenticator | None:
        with storage_errors("authenticator lookup"):
            result = await self.db.execute(
                select(Authenticator).filter(Authenticator.credential_id == credential_id)
            )
        return result.scalars().first()

    async def update_counter(self, credential_id: str, new_counter: int) -> bool:
        """
        Advance an authenticator's signature counter.

        The write is guarded in SQL: it only happens when the new counter is
        strictly greater than the stored one, or when both are zero
        (authenticators that don't implement counters always report 0).
        A replayed or cloned assertion therefore can't move the counter, even
        if two requests race.

        Returns:
            True if the counter was written, False if the guard rejected it
        """
        guard = Authenticator.counter < new_counter
        if new_counter == 0:
            guard = or_(guard, Authenticator.counter == 0)

        stmt = (
            update(Authenticator)
            .where(Authenticator.credential_id == credential_id, guard)
            .values(counter=new_counter)
            .execution_options(synchronize_session=False)
        )
        with storage_errors("authenticator counter update"):
            result = await self.db.execute(stmt)
        return result.rowcount == 1


def parse_transports(raw: str | None) -> list[str]:
    """Decode the stored transports column; tolerates NULL and bad JSON."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        return []
    return [t for t in value if isinstance(t, str)] if isinstance(value, list) else []

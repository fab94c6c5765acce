"""
Database Models for restspace

This module defines the SQLAlchemy ORM models for the application:
- User: Anonymous identity placeholder created during passkey registration
- Authenticator: A registered passkey (public key + signature counter)
- Challenge: One in-flight WebAuthn ceremony, keyed by the cookie session id
- Thought: A post on the wall

Identifiers for users, authenticators and challenges are opaque strings
(UUIDs and base64url values), so the same schema works on SQLite and Postgres.
All timestamps are naive UTC.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship


# Base class for all ORM models
# All models must inherit from Base to be recognized by SQLAlchemy
Base = declarative_base()


def utcnow() -> datetime:
    """Current time as naive UTC (the representation stored in every table)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """
    Anonymous identity.

    Created when a registration ceremony begins, never mutated or deleted.
    The only thing a user "has" is one or more authenticators and the
    thoughts attributed to it.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    created_at = Column(DateTime, default=utcnow)

    authenticators = relationship("Authenticator", back_populates="user")


class Authenticator(Base):
    """
    A passkey registered to a user.

    credential_id is supplied by the authenticator and is unique across all
    users: a credential can only ever belong to one identity. The counter is
    the last signature counter we accepted and only moves forward.
    """
    __tablename__ = "authenticators"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    # Both stored base64url-encoded
    credential_id = Column(String, unique=True, nullable=False, index=True)
    credential_public_key = Column(Text, nullable=False)

    counter = Column(BigInteger, nullable=False, default=0)

    # JSON list of transport hints ("internal", "hybrid", ...), or NULL
    transports = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="authenticators")


class Challenge(Base):
    """
    A pending WebAuthn challenge.

    The primary key is the opaque session id carried in the challenge_session
    cookie, so each browser session has at most one live challenge. user_id is
    only set for registration (the identity being created); authentication
    discovers the user from the presented credential instead.
    """
    __tablename__ = "challenges"

    id = Column(String, primary_key=True)
    challenge = Column(String, nullable=False)
    user_id = Column(String, nullable=True)

    # "registration" or "authentication"
    ceremony = Column(String, nullable=False, default="registration")

    created_at = Column(DateTime, default=utcnow, index=True)


class Thought(Base):
    """
    A post on the wall.

    font, category and color only affect presentation; they are normalized to
    known values before insert. user_id is nullable for rows created before
    posts were attributed.
    """
    __tablename__ = "thoughts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=False)
    font = Column(String, nullable=False, default="sans-serif")
    category = Column(String, nullable=False, default="thought")
    color = Column(String, nullable=False, default="default")
    user_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)

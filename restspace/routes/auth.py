"""
Authentication Routes

This module implements passwordless sign-in with passkeys (WebAuthn).
There are two ceremonies, each a pair of POST requests:

Registration (first visit, creates an anonymous identity):
1. /api/auth/register-options -> creation options for navigator.credentials.create()
2. /api/auth/register-verify  -> attestation from the browser; sets the session

Authentication (returning visitor):
1. /api/auth/login-options -> request options for navigator.credentials.get()
2. /api/auth/login-verify  -> assertion from the browser; sets the session

Between the two steps the browser holds only an opaque challenge_session
cookie. The challenge itself stays in the database, so it can't be forged
or replayed by the client.

The signed-in state is a session token in an HTTP-only cookie, valid for
30 days.
"""

import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from restspace.config import Settings
from restspace.database import get_db
from restspace.dependencies import (
    SESSION_COOKIE,
    ceremony_rate_limit,
    get_optional_user_id,
    get_session_issuer,
    get_settings,
)
from restspace.services.session import SessionIssuer
from restspace.services.webauthn import AuthenticationCeremony, CeremonyResult, RegistrationCeremony


CHALLENGE_COOKIE = "challenge_session"

# Create router with /api/auth prefix
# All routes defined here will be accessible at /api/auth/...
router = APIRouter(prefix="/api/auth", tags=["auth"])


def _challenge_session_id(request: Request) -> str:
    """Reuse the browser's challenge session if it has one, else start one."""
    return request.cookies.get(CHALLENGE_COOKIE) or str(uuid.uuid4())


async def _credential_payload(request: Request):
    """
    The browser's credential JSON, or None if the body isn't valid JSON.

    The shape is left for the ceremony to judge, so a malformed payload is
    rejected (and its challenge discarded) like any other bad credential.
    """
    try:
        return await request.json()
    except ValueError:
        return None


def _options_response(options: dict, session_id: str, settings: Settings) -> JSONResponse:
    response = JSONResponse(content=options)
    response.set_cookie(
        key=CHALLENGE_COOKIE,
        value=session_id,
        httponly=True,  # JavaScript can't access (prevents XSS attacks)
        max_age=settings.CHALLENGE_TTL_SECONDS,
        samesite="lax",  # CSRF protection
        secure=settings.cookie_secure,
        path="/",
    )
    return response


def _verified_response(result: CeremonyResult, settings: Settings) -> JSONResponse:
    response = JSONResponse(content={"verified": True})
    response.set_cookie(
        key=SESSION_COOKIE,
        value=result.session_token,
        httponly=True,
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    # The ceremony is over; the challenge session has nothing left to correlate
    response.delete_cookie(CHALLENGE_COOKIE, path="/")
    return response


@router.post("/register-options", dependencies=[Depends(ceremony_rate_limit("auth-options"))])
async def register_options(
    request: Request,
    settings: Settings = Depends(get_settings),
    issuer: SessionIssuer = Depends(get_session_issuer),
    db: AsyncSession = Depends(get_db)
):
    """
    Begin registration: create an anonymous user and return creation options.

    Returns:
        PublicKeyCredentialCreationOptions JSON, with the challenge_session
        cookie set (5 minute lifetime)
    """
    session_id = _challenge_session_id(request)
    options = await RegistrationCeremony(db, settings, issuer).begin(session_id)
    return _options_response(options, session_id, settings)


@router.post("/register-verify", dependencies=[Depends(ceremony_rate_limit("auth"))])
async def register_verify(
    request: Request,
    credential=Depends(_credential_payload),
    settings: Settings = Depends(get_settings),
    issuer: SessionIssuer = Depends(get_session_issuer),
    db: AsyncSession = Depends(get_db)
):
    """
    Complete registration with the browser's attestation response.

    On success the new passkey is stored, the challenge is consumed, the
    session cookie is set and the challenge cookie cleared.

    Errors (400): NoChallenge, ChallengeNotFound, VerificationFailed,
    UniquenessViolation
    """
    result = await RegistrationCeremony(db, settings, issuer).complete(
        request.cookies.get(CHALLENGE_COOKIE), credential
    )
    return _verified_response(result, settings)


@router.post("/login-options", dependencies=[Depends(ceremony_rate_limit("auth-options"))])
async def login_options(
    request: Request,
    settings: Settings = Depends(get_settings),
    issuer: SessionIssuer = Depends(get_session_issuer),
    db: AsyncSession = Depends(get_db)
):
    """
    Begin authentication and return request options.

    Returns:
        PublicKeyCredentialRequestOptions JSON (no allowCredentials), with
        the challenge_session cookie set
    """
    session_id = _challenge_session_id(request)
    options = await AuthenticationCeremony(db, settings, issuer).begin(session_id)
    return _options_response(options, session_id, settings)


@router.post("/login-verify", dependencies=[Depends(ceremony_rate_limit("auth"))])
async def login_verify(
    request: Request,
    credential=Depends(_credential_payload),
    settings: Settings = Depends(get_settings),
    issuer: SessionIssuer = Depends(get_session_issuer),
    db: AsyncSession = Depends(get_db)
):
    """
    Complete authentication with the browser's assertion response.

    Errors (400): NoChallenge, ChallengeNotFound, AuthenticatorNotFound,
    VerificationFailed
    """
    result = await AuthenticationCeremony(db, settings, issuer).complete(
        request.cookies.get(CHALLENGE_COOKIE), credential
    )
    return _verified_response(result, settings)


@router.get("/session")
async def session_status(user_id: str | None = Depends(get_optional_user_id)):
    """Whether the caller currently holds a valid session."""
    return {"authenticated": user_id is not None}


@router.post("/logout")
async def logout():
    """
    Log the user out by deleting the session cookie.

    The token itself stays valid until it expires; there is no server-side
    session to revoke.
    """
    response = JSONResponse(content={"ok": True})
    response.delete_cookie(SESSION_COOKIE, path="/")
    return response

"""
Passkey Ceremonies

This module implements the two WebAuthn ceremonies as begin/complete pairs:

Registration (creates a new anonymous identity):
1. begin: create a user id, ask the webauthn library for creation options,
   store the challenge bound to that user
2. complete: verify the attestation against the stored challenge, save the
   new authenticator under the challenge's user, issue a session

Authentication (proves possession of a registered passkey):
1. begin: ask for request options, store the challenge with no user
2. complete: look up the presented credential, verify the assertion against
   its public key and counter, advance the counter, issue a session

Both ceremonies share the same challenge lifecycle: the challenge lives in
the database keyed by the challenge_session cookie, is redeemable once, and
only by the same kind of ceremony that created it. They differ in when the
identity is known: registration fixes it at begin, authentication discovers
it from the credential at complete.

Any failure after the challenge has been loaded deletes it, so a rejected
attempt always has to start again from begin.

The cryptography itself (CBOR parsing, signature checks, origin and rp id
checks, counter comparison) is delegated to the webauthn library.
"""

import json
import logging
import uuid
from datetime import timedelta
from typing import NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession
from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from restspace.config import Settings
from restspace.database import storage_errors
from restspace.exceptions import (
    AuthenticatorNotFound,
    ChallengeNotFound,
    NoChallenge,
    StorageFault,
    VerificationFailed,
)
from restspace.models import Challenge
from restspace.services.challenges import AUTHENTICATION, REGISTRATION, ChallengeStore
from restspace.services.credentials import CredentialStore, parse_transports
from restspace.services.session import SessionIssuer


logger = logging.getLogger(__name__)

KNOWN_TRANSPORTS = {t.value for t in AuthenticatorTransport}


class CeremonyResult(NamedTuple):
    user_id: str
    session_token: str


def _short(value: str) -> str:
    """Shorten an identifier for log lines."""
    return value[:10] + "..." if len(value) > 10 else value


def _transports(values) -> list[str]:
    """Keep only transport hints the webauthn library knows about."""
    if not isinstance(values, list):
        return []
    return [v for v in values if isinstance(v, str) and v in KNOWN_TRANSPORTS]


class _Ceremony:
    """Challenge lifecycle shared by both ceremonies."""

    kind = ""

    def __init__(self, db: AsyncSession, settings: Settings, issuer: SessionIssuer):
        self.db = db
        self.settings = settings
        self.issuer = issuer
        self.challenges = ChallengeStore(db, ttl=timedelta(seconds=settings.CHALLENGE_TTL_SECONDS))
        self.credentials = CredentialStore(db)

    async def _load_challenge(self, session_id: str | None) -> Challenge:
        if not session_id:
            raise NoChallenge()
        challenge = await self.challenges.get(session_id, ceremony=self.kind)
        if challenge is None:
            raise ChallengeNotFound()
        return challenge

    async def _consume(self, session_id: str):
        """Delete the challenge; losing a race for it means it is gone."""
        if not await self.challenges.delete(session_id):
            raise ChallengeNotFound()

    async def _discard(self, session_id: str):
        """
        Drop the challenge after a failed attempt.

        Anything the failed attempt wrote is rolled back first. If the
        cleanup itself fails it is logged and the original error still
        reaches the client; the stale row will expire on its own.
        """
        try:
            with storage_errors("challenge discard"):
                await self.db.rollback()
                await self.challenges.delete(session_id)
                await self.db.commit()
        except StorageFault:
            logger.warning(f"Could not discard {self.kind} challenge {_short(session_id)}")

    async def _commit(self):
        with storage_errors(f"{self.kind} commit"):
            await self.db.commit()


class RegistrationCeremony(_Ceremony):
    """Creates an anonymous user together with its first passkey."""

    kind = REGISTRATION

    async def begin(self, session_id: str) -> dict:
        """
        Start a registration for the browser session `session_id`.

        Returns:
            PublicKeyCredentialCreationOptions as a JSON-ready dict
        """
        user_id = str(uuid.uuid4())
        await self.credentials.create_user(user_id)

        # Always empty for a brand-new user, but keeps the exclusion list honest
        existing = await self.credentials.get_by_user_id(user_id)

        options = generate_registration_options(
            rp_id=self.settings.rp_id,
            rp_name=self.settings.RP_NAME,
            user_id=user_id.encode(),
            user_name=f"anon-{user_id[:8]}",
            attestation=AttestationConveyancePreference.NONE,
            authenticator_selection=AuthenticatorSelectionCriteria(
                resident_key=ResidentKeyRequirement.PREFERRED,
                user_verification=UserVerificationRequirement.PREFERRED,
            ),
            exclude_credentials=[
                PublicKeyCredentialDescriptor(
                    id=base64url_to_bytes(a.credential_id),
                    transports=[AuthenticatorTransport(t) for t in _transports(parse_transports(a.transports))],
                )
                for a in existing
            ],
        )

        await self.challenges.save(
            session_id,
            bytes_to_base64url(options.challenge),
            user_id=user_id,
            ceremony=REGISTRATION,
        )
        await self._commit()

        logger.info(f"Registration started session={_short(session_id)} user={_short(user_id)}")
        return json.loads(options_to_json(options))

    async def complete(self, session_id: str | None, credential) -> CeremonyResult:
        """
        Finish a registration with the browser's attestation response.

        Raises:
            NoChallenge: no challenge_session cookie
            ChallengeNotFound: no live registration challenge for the session
            VerificationFailed: the attestation did not verify
            UniquenessViolation: the credential is already registered
        """
        challenge = await self._load_challenge(session_id)
        user_id = challenge.user_id

        try:
            if not user_id or not isinstance(credential, dict):
                raise VerificationFailed()

            try:
                verification = verify_registration_response(
                    credential=credential,
                    expected_challenge=base64url_to_bytes(challenge.challenge),
                    expected_origin=self.settings.expected_origin,
                    expected_rp_id=self.settings.rp_id,
                    require_user_verification=False,
                )
            except Exception as e:
                logger.info(f"Registration verification failed session={_short(session_id)}: {e}")
                raise VerificationFailed() from e

            await self._consume(session_id)

            credential_id = bytes_to_base64url(verification.credential_id)
            await self.credentials.save_authenticator(
                user_id,
                credential_id,
                bytes_to_base64url(verification.credential_public_key),
                verification.sign_count,
                _transports((credential.get("response") or {}).get("transports")),
            )
            await self._commit()
        except StorageFault:
            raise
        except Exception:
            await self._discard(session_id)
            raise

        logger.info(f"Registered authenticator {_short(credential_id)} for user {_short(user_id)}")
        return CeremonyResult(user_id=user_id, session_token=self.issuer.issue(user_id))


class AuthenticationCeremony(_Ceremony):
    """Signs a returning user in with any passkey they registered."""

    kind = AUTHENTICATION

    async def begin(self, session_id: str) -> dict:
        """
        Start an authentication for the browser session `session_id`.

        No allow list is sent: any registered passkey may answer, and the
        user is identified by whichever credential comes back.
        """
        options = generate_authentication_options(
            rp_id=self.settings.rp_id,
            user_verification=UserVerificationRequirement.PREFERRED,
        )

        await self.challenges.save(
            session_id,
            bytes_to_base64url(options.challenge),
            user_id=None,
            ceremony=AUTHENTICATION,
        )
        await self._commit()

        logger.info(f"Authentication started session={_short(session_id)}")
        return json.loads(options_to_json(options))

    async def complete(self, session_id: str | None, credential) -> CeremonyResult:
        """
        Finish an authentication with the browser's assertion response.

        The credential lookup happens before any cryptographic work, so an
        unknown credential is rejected cheaply.

        Raises:
            NoChallenge: no challenge_session cookie
            ChallengeNotFound: no live authentication challenge for the session
            AuthenticatorNotFound: the credential id is not registered
            VerificationFailed: bad assertion, or the signature counter did not advance
        """
        challenge = await self._load_challenge(session_id)

        try:
            credential_id = credential.get("id") if isinstance(credential, dict) else None
            if not isinstance(credential_id, str) or not credential_id:
                raise VerificationFailed()

            authenticator = await self.credentials.get_by_credential_id(credential_id)
            if authenticator is None:
                raise AuthenticatorNotFound()

            try:
                verification = verify_authentication_response(
                    credential=credential,
                    expected_challenge=base64url_to_bytes(challenge.challenge),
                    expected_origin=self.settings.expected_origin,
                    expected_rp_id=self.settings.rp_id,
                    credential_public_key=base64url_to_bytes(authenticator.credential_public_key),
                    credential_current_sign_count=int(authenticator.counter),
                    require_user_verification=False,
                )
            except Exception as e:
                logger.info(f"Authentication verification failed credential={_short(credential_id)}: {e}")
                raise VerificationFailed() from e

            await self._consume(session_id)

            # Second line of defence against replay: the guarded write refuses
            # any counter that doesn't move forward, even under a race
            if not await self.credentials.update_counter(credential_id, verification.new_sign_count):
                logger.warning(
                    f"Signature counter did not advance for {_short(credential_id)} "
                    f"(stored={authenticator.counter}, presented={verification.new_sign_count})"
                )
                raise VerificationFailed()

            await self._commit()
        except StorageFault:
            raise
        except Exception:
            await self._discard(session_id)
            raise

        user_id = authenticator.user_id
        logger.info(f"Authenticated user {_short(user_id)} with {_short(credential_id)}")
        return CeremonyResult(user_id=user_id, session_token=self.issuer.issue(user_id))

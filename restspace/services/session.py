"""
Session Token Service

This module mints and verifies the signed, self-contained tokens carried in
the "session" cookie. Tokens are JSON Web Tokens signed with HMAC-SHA256, so
verifying one needs no database lookup.

Key concepts:
- The token's "sub" claim is the anonymous user id
- "iat" and "exp" are set on issue; the library rejects expired tokens
- There is no server-side session record and no revocation: a valid token
  proves we issued it and it hasn't expired, nothing more
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from restspace.exceptions import InvalidSession


# HMAC-SHA256 algorithm for signing tokens
# This is a symmetric signing method (same key for sign/verify)
ALGORITHM = "HS256"

SESSION_LIFETIME = timedelta(days=30)


class SessionIssuer:
    """
    Issues and verifies session tokens with one process-wide signing key.

    Example:
        issuer = SessionIssuer(settings.SECRET_KEY)
        token = issuer.issue("5f0c...")
        issuer.verify(token)  # -> "5f0c..."
    """

    def __init__(self, secret_key: str, lifetime: timedelta = SESSION_LIFETIME):
        self.secret_key = secret_key
        self.lifetime = lifetime

    def issue(self, user_id: str, expires_delta: timedelta | None = None) -> str:
        """
        Create a signed token asserting user_id.

        Args:
            user_id: Anonymous user id to embed as the "sub" claim
            expires_delta: Optional custom lifetime; defaults to the issuer's lifetime

        Returns:
            Encoded JWT string suitable for the session cookie
        """
        now = datetime.now(timezone.utc)
        claims = {
            "sub": user_id,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.lifetime),
        }
        return jwt.encode(claims, self.secret_key, algorithm=ALGORITHM)

    def verify(self, token: str) -> str:
        """
        Verify a token and return the user id it asserts.

        Raises:
            InvalidSession: bad signature, malformed token or payload, or expired
        """
        try:
            # Raises JWTError (or its subclass ExpiredSignatureError) on any problem
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError as e:
            raise InvalidSession() from e

        user_id = payload.get("sub")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidSession()
        return user_id

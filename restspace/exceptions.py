"""
Error Taxonomy

Every failure the application expects to produce is one of the classes below.
Each carries a stable machine-readable ``code`` (returned to the client as the
"error" field), a short client-safe ``message`` and the HTTP status it maps to.

Client-triggerable errors (sequencing, credential, content) have precise but
low-detail messages. Operator-facing errors (storage, configuration) keep
their diagnostic context server-side only; the client sees an opaque message.
"""


class RestspaceError(Exception):
    """Base class for all application errors."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__


class RateLimited(RestspaceError):
    """Too many requests in the current window; retry later."""

    status_code = 429
    message = "Too many requests"

    def __init__(self, remaining: int = 0):
        self.remaining = remaining
        super().__init__()


class SequenceError(RestspaceError):
    """The ceremony was not started, expired, or was already completed."""

    status_code = 400
    message = "Ceremony out of sequence"


class NoChallenge(SequenceError):
    message = "No challenge session"


class ChallengeNotFound(SequenceError):
    message = "Challenge not found"


class CredentialError(RestspaceError):
    """The presented credential is unknown or did not verify."""

    status_code = 400
    message = "Credential rejected"


class AuthenticatorNotFound(CredentialError):
    message = "Authenticator not found"


class VerificationFailed(CredentialError):
    message = "Verification failed"


class UniquenessViolation(CredentialError):
    message = "Credential already registered"


class InvalidContent(RestspaceError):
    status_code = 400
    message = "Invalid content"


class ThoughtNotFound(RestspaceError):
    status_code = 404
    message = "Thought not found"


class InvalidSession(RestspaceError):
    """Session token has a bad signature, a malformed payload, or has expired."""

    status_code = 401
    message = "Not authenticated"


class StorageFault(RestspaceError):
    """The database was unreachable or a query failed."""

    status_code = 500
    message = "Internal server error"


class ConfigFault(RestspaceError):
    """Startup-time configuration error. Fatal; never returned to clients."""

    status_code = 500

"""
Shared fixtures.

Every test gets its own SQLite file under tmp_path. HTTP tests run against
create_app(settings) through FastAPI's TestClient; the webauthn verify
functions are swapped for FakeWebAuthn so ceremonies can complete without a
real authenticator (option generation still uses the real library).
"""

from types import SimpleNamespace

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from webauthn.helpers import bytes_to_base64url
from webauthn.helpers.exceptions import InvalidAuthenticationResponse, InvalidRegistrationResponse

from restspace.config import Settings
from restspace.database import create_engine_from_settings, create_session_factory, init_models
from restspace.limiter import limiter
from restspace.main import create_app
from restspace.services import webauthn as webauthn_service


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        _env_file=None,
        ENVIRONMENT="test",
        SECRET_KEY="test-secret-key",
        DB_OVERRIDE_URL="",
        POSTGRES_URL="",
        POSTGRES_PRISMA_URL="",
        POSTGRES_URL_NON_POOLING="",
        DATABASE_URL="",
        SQLITE_PATH=str(tmp_path / "test.db"),
        RP_ID="",
        ORIGIN="",
        VERCEL_URL="",
        SWEEP_INTERVAL_SECONDS=3600,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # slowapi counters are process-wide
    limiter.reset()
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def db(settings):
    engine = create_engine_from_settings(settings)
    await init_models(engine)
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        yield session
    await engine.dispose()


class FakeWebAuthn:
    """Stands in for webauthn.verify_*_response."""

    def __init__(self):
        self.credential_id = b"credential-1"
        self.public_key = b"public-key-1"
        self.sign_count = 0
        self.new_sign_count = 1
        self.fail = False
        self.calls = []
        # Called just before a successful verification returns
        self.on_success = None

    @property
    def credential_id_b64(self) -> str:
        return bytes_to_base64url(self.credential_id)

    def verify_registration_response(self, **kwargs):
        self.calls.append(("registration", kwargs))
        if self.fail:
            raise InvalidRegistrationResponse("attestation did not verify")
        if self.on_success:
            self.on_success()
        return SimpleNamespace(
            credential_id=self.credential_id,
            credential_public_key=self.public_key,
            sign_count=self.sign_count,
        )

    def verify_authentication_response(self, **kwargs):
        self.calls.append(("authentication", kwargs))
        if self.fail:
            raise InvalidAuthenticationResponse("assertion did not verify")
        if self.on_success:
            self.on_success()
        return SimpleNamespace(new_sign_count=self.new_sign_count)


@pytest.fixture
def fake_webauthn(monkeypatch):
    fake = FakeWebAuthn()
    monkeypatch.setattr(webauthn_service, "verify_registration_response", fake.verify_registration_response)
    monkeypatch.setattr(webauthn_service, "verify_authentication_response", fake.verify_authentication_response)
    return fake


def attestation_body(fake: FakeWebAuthn, transports=("internal", "hybrid")) -> dict:
    """A registration response shaped like the browser's (contents unchecked by the fake)."""
    return {
        "id": fake.credential_id_b64,
        "rawId": fake.credential_id_b64,
        "type": "public-key",
        "response": {
            "clientDataJSON": "e30",
            "attestationObject": "oA",
            "transports": list(transports),
        },
    }


def assertion_body(credential_id: str) -> dict:
    return {
        "id": credential_id,
        "rawId": credential_id,
        "type": "public-key",
        "response": {
            "clientDataJSON": "e30",
            "authenticatorData": "AA",
            "signature": "AA",
        },
    }

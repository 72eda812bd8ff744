"""
Shared fixtures: a throwaway SQLite database, a controllable clock and
freshly generated keys/certificates for signing.
"""
import json
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from walletsync.core.config import Settings
from walletsync.core.database import create_engine, create_session_maker, init_db
from walletsync.managers.job_store import WalletJobStore


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    def timestamp(self) -> float:
        return self.now.replace(tzinfo=timezone.utc).timestamp()


def _pem_private_key(key) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def signer_cert_pem(rsa_private_key):
    name = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, "Pass Type ID: pass.com.example.test"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example"),
    ])
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(rsa_private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(rsa_private_key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8")


@pytest.fixture(scope="session")
def signer_key_pem(rsa_private_key):
    return _pem_private_key(rsa_private_key)


@pytest.fixture(scope="session")
def apns_key_pem():
    return _pem_private_key(ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture(scope="session")
def service_account_info(rsa_private_key):
    return {
        "type": "service_account",
        "client_email": "wallet@example-project.iam.gserviceaccount.com",
        "private_key": _pem_private_key(rsa_private_key),
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path, service_account_info):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'walletsync.db'}",
        PUBLIC_BASE_URL="https://wallet.example.com",
        CRON_SECRET="cron-secret",
        GOOGLE_WALLET_ISSUER_ID="3388000000012345678",
        GOOGLE_SERVICE_ACCOUNT_KEY=json.dumps(service_account_info),
        WALLET_ALLOWED_ORIGINS="wallet.example.com",
        APPLE_TEAM_ID="",
        APPLE_PASS_TYPE_ID="",
        APPLE_PASS_CERTIFICATE="",
        APPLE_PASS_PRIVATE_KEY="",
        APPLE_PASS_KEY_PASSPHRASE="",
        APPLE_WWDR_CERTIFICATE="",
        APPLE_PASS_AUTH_TOKEN="apple-pass-token-0123456789",
        APPLE_WEB_SERVICE_URL="",
        APPLE_APNS_KEY_ID="",
        APPLE_APNS_KEY="",
        APPLE_BUNDLE_ID="",
        APNS_USE_SANDBOX=False,
        WALLET_JOBS_BATCH_SIZE=50,
        WALLET_JOBS_MAX_ATTEMPTS=5,
        WALLET_JOBS_BASE_BACKOFF_SECONDS=60,
        WALLET_JOBS_TIMEOUT_SECONDS=5,
        WALLET_JOBS_USE_LEASES=True,
        WALLET_JOBS_LEASE_SECONDS=300,
        ARTIFACT_STORAGE_DIR=str(tmp_path / "artifacts"),
        ARTIFACT_PUBLIC_BASE_URL="https://cdn.example.com/static",
    )


@pytest.fixture
def apple_settings(settings, signer_cert_pem, signer_key_pem):
    settings.APPLE_TEAM_ID = "TEAM123456"
    settings.APPLE_PASS_TYPE_ID = "pass.com.example.test"
    settings.APPLE_PASS_CERTIFICATE = signer_cert_pem
    settings.APPLE_PASS_PRIVATE_KEY = signer_key_pem
    return settings


@pytest.fixture
async def engine(settings):
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def job_store(session_maker, clock):
    return WalletJobStore(session_maker, clock=clock)

"""Shared test fixtures for Sealwright."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from sealwright.core.certificate_authority import SigningCertificate
from sealwright.core.signing_engine import SigningEngine
from sealwright.core.trust_store import JsonFileTrustStore, SQLiteTrustStore, TrustStore
from sealwright.core.verification_engine import VerificationEngine
from sealwright.models.signatures import SignatureRecord
from sealwright.models.verification import SigningPolicy

ARTIFACT_CONTENT = b"sealwright test package\n" * 4096


# ---------------------------------------------------------------------------
# Key material — generated once per session, RSA keygen is slow
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """The signer's private key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    """An unrelated private key (attacker, second signer)."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def make_certificate() -> Callable[..., SigningCertificate]:
    """Factory fixture: build a self-signed certificate for an existing key."""

    def _factory(
        key: rsa.RSAPrivateKey,
        common_name: str = "Registry Signer",
        email: str | None = "signer@example.org",
        not_before: datetime | None = None,
        not_after: datetime | None = None,
        with_private_key: bool = True,
    ) -> SigningCertificate:
        now = datetime.now(timezone.utc)
        attributes = [x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
        if email:
            attributes.append(x509.NameAttribute(NameOID.EMAIL_ADDRESS, email))
        name = x509.Name(attributes)
        certificate = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before or now - timedelta(days=1))
            .not_valid_after(not_after or now + timedelta(days=365))
            .sign(key, hashes.SHA256())
        )
        return SigningCertificate(certificate, key if with_private_key else None)

    return _factory


@pytest.fixture
def signing_cert(
    rsa_key: rsa.RSAPrivateKey, make_certificate: Callable[..., SigningCertificate]
) -> SigningCertificate:
    """A valid signing certificate holding its private key."""
    return make_certificate(rsa_key)


@pytest.fixture
def expired_cert(
    rsa_key: rsa.RSAPrivateKey, make_certificate: Callable[..., SigningCertificate]
) -> SigningCertificate:
    """A signing certificate whose validity ended yesterday."""
    now = datetime.now(timezone.utc)
    return make_certificate(
        rsa_key,
        common_name="Retired Signer",
        not_before=now - timedelta(days=400),
        not_after=now - timedelta(days=1),
    )


@pytest.fixture
def attacker_cert(
    other_rsa_key: rsa.RSAPrivateKey, make_certificate: Callable[..., SigningCertificate]
) -> SigningCertificate:
    """A certificate for an unrelated key, reusing the victim's subject."""
    return make_certificate(other_rsa_key)


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    """A package artifact on disk (~100 KiB)."""
    path = tmp_path / "left-pad-1.3.0.tgz"
    path.write_bytes(ARTIFACT_CONTENT)
    return path


# ---------------------------------------------------------------------------
# Trust stores and engines
# ---------------------------------------------------------------------------


@pytest.fixture
def json_trust_store(tmp_path: Path) -> JsonFileTrustStore:
    """Provide a fresh JSON-file trust store in a temp directory."""
    return JsonFileTrustStore(tmp_path / "trust" / "trust-store.json")


@pytest.fixture
def sqlite_trust_store(tmp_path: Path) -> SQLiteTrustStore:
    """Provide a fresh SQLite trust store in a temp directory."""
    return SQLiteTrustStore(tmp_path / "trust" / "trust-store.db")


@pytest.fixture(params=["json", "sqlite"])
def trust_store(request: pytest.FixtureRequest, tmp_path: Path) -> TrustStore:
    """Each test using this fixture runs once per backend."""
    if request.param == "sqlite":
        return SQLiteTrustStore(tmp_path / "trust" / "trust-store.db")
    return JsonFileTrustStore(tmp_path / "trust" / "trust-store.json")


@pytest.fixture
def signing_engine() -> SigningEngine:
    """A signing engine with the default policy and a small read size."""
    return SigningEngine(SigningPolicy(), chunk_size=8192)


@pytest.fixture
def verification_engine(json_trust_store: JsonFileTrustStore) -> VerificationEngine:
    """A verification engine over an (initially empty) trust store."""
    return VerificationEngine(json_trust_store, SigningPolicy(), chunk_size=8192)


@pytest.fixture
def signed_record(
    signing_engine: SigningEngine, artifact: Path, signing_cert: SigningCertificate
) -> SignatureRecord:
    """A genuine SHA-256 signature record for ``artifact``."""
    return signing_engine.sign(artifact, signing_cert)

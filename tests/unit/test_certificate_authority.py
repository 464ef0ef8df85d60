"""Unit tests for certificate issuance, import and export."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from sealwright.core.certificate_authority import (
    CLOCK_SKEW_BACKDATE,
    SigningCertificate,
    certificate_fingerprint,
    describe_certificate,
    export_container,
    export_public,
    format_certificate_info,
    generate_self_signed,
    load_from_file,
    load_from_path,
    signer_identity_from,
    trusted_entry_from,
)
from sealwright.core.errors import CertificateLoadError, MissingPrivateKeyError


def _pem_bundle(cert: SigningCertificate, password: bytes | None = None) -> bytes:
    encryption = (
        serialization.BestAvailableEncryption(password)
        if password
        else serialization.NoEncryption()
    )
    key_pem = cert.private_key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption
    )
    return export_public(cert).encode("ascii") + key_pem


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


class TestGenerateSelfSigned:
    @pytest.fixture(scope="class")
    def generated(self) -> SigningCertificate:
        return generate_self_signed("Registry Signer", "signer@example.org", 5)

    def test_subject_and_issuer(self, generated: SigningCertificate):
        assert generated.subject == "CN=Registry Signer, E=signer@example.org"
        assert generated.issuer == generated.subject
        assert generated.common_name == "Registry Signer"
        assert generated.email == "signer@example.org"

    def test_holds_rsa_2048_key(self, generated: SigningCertificate):
        assert generated.has_private_key
        assert generated.private_key.key_size == 2048

    def test_validity_window(self, generated: SigningCertificate):
        now = datetime.now(timezone.utc)
        assert generated.valid_from <= now - CLOCK_SKEW_BACKDATE + timedelta(minutes=5)
        years = (generated.valid_until - now).days / 365.25
        assert 4.9 < years < 5.1

    def test_extensions(self, generated: SigningCertificate):
        cert = generated.certificate
        basic = cert.extensions.get_extension_for_class(x509.BasicConstraints)
        assert basic.critical is True
        assert basic.value.ca is False
        usage = cert.extensions.get_extension_for_class(x509.KeyUsage)
        assert usage.critical is True
        assert usage.value.digital_signature is True
        assert usage.value.key_encipherment is True
        assert usage.value.key_cert_sign is False
        cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)

    def test_without_email(self):
        cert = generate_self_signed("No Mail")
        assert cert.subject == "CN=No Mail"
        assert cert.email is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"subject_name": ""},
            {"subject_name": "   "},
            {"subject_name": "x", "validity_years": 0},
            {"subject_name": "x", "key_size": 1024},
        ],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            generate_self_signed(**kwargs)


class TestSigningCertificate:
    def test_fingerprint_is_sha256_of_der(self, signing_cert: SigningCertificate):
        der = signing_cert.certificate.public_bytes(serialization.Encoding.DER)
        assert signing_cert.fingerprint == hashlib.sha256(der).hexdigest()
        assert certificate_fingerprint(signing_cert.certificate) == signing_cert.fingerprint

    def test_context_manager_releases_key(self, signing_cert: SigningCertificate):
        with signing_cert as cert:
            assert cert.has_private_key
        assert signing_cert.released is True
        assert signing_cert.has_private_key is False
        with pytest.raises(MissingPrivateKeyError) as excinfo:
            signing_cert.private_key
        assert "released" in str(excinfo.value)

    def test_release_on_error_path(self, signing_cert: SigningCertificate):
        with pytest.raises(RuntimeError):
            with signing_cert:
                raise RuntimeError("boom")
        assert signing_cert.has_private_key is False

    def test_public_data_survives_release(self, signing_cert: SigningCertificate):
        fingerprint = signing_cert.fingerprint
        signing_cert.close()
        signing_cert.close()
        assert signing_cert.fingerprint == fingerprint
        assert "BEGIN CERTIFICATE" in export_public(signing_cert)

    def test_repr_hides_key(self, signing_cert: SigningCertificate):
        text = repr(signing_cert)
        assert "PRIVATE" not in text
        assert "has_private_key=True" in text


# ---------------------------------------------------------------------------
# Import / export
# ---------------------------------------------------------------------------


class TestLoadFromFile:
    def test_pkcs12_round_trip(self, signing_cert: SigningCertificate):
        loaded = load_from_file(export_container(signing_cert))
        assert loaded.fingerprint == signing_cert.fingerprint
        assert loaded.has_private_key

    def test_pkcs12_with_password(self, signing_cert: SigningCertificate):
        container = export_container(signing_cert, "s3cret")
        loaded = load_from_file(container, "s3cret")
        assert loaded.fingerprint == signing_cert.fingerprint

    def test_pkcs12_wrong_password(self, signing_cert: SigningCertificate):
        container = export_container(signing_cert, "s3cret")
        with pytest.raises(CertificateLoadError):
            load_from_file(container, "wrong")

    def test_pem_bundle(self, signing_cert: SigningCertificate):
        loaded = load_from_file(_pem_bundle(signing_cert))
        assert loaded.fingerprint == signing_cert.fingerprint
        assert loaded.has_private_key

    def test_encrypted_pem_bundle(self, signing_cert: SigningCertificate):
        bundle = _pem_bundle(signing_cert, b"pw")
        assert load_from_file(bundle, "pw").has_private_key
        with pytest.raises(CertificateLoadError):
            load_from_file(bundle)
        with pytest.raises(CertificateLoadError):
            load_from_file(bundle, "nope")

    def test_password_for_unencrypted_pem_key_is_ignored(self, signing_cert: SigningCertificate):
        assert load_from_file(_pem_bundle(signing_cert), "unused").has_private_key

    def test_public_pem_requires_key_by_default(self, signing_cert: SigningCertificate):
        pem = export_public(signing_cert).encode("ascii")
        with pytest.raises(MissingPrivateKeyError):
            load_from_file(pem)
        loaded = load_from_file(pem, require_private_key=False)
        assert loaded.has_private_key is False
        assert loaded.fingerprint == signing_cert.fingerprint

    def test_der_certificate(self, signing_cert: SigningCertificate):
        der = signing_cert.certificate.public_bytes(serialization.Encoding.DER)
        loaded = load_from_file(der, require_private_key=False)
        assert loaded.fingerprint == signing_cert.fingerprint

    @pytest.mark.parametrize("data", [b"", b"garbage", b"-----BEGIN NOTHING-----\n"])
    def test_malformed_input(self, data):
        with pytest.raises(CertificateLoadError):
            load_from_file(data, require_private_key=False)

    def test_mismatched_key_rejected(
        self, signing_cert: SigningCertificate, attacker_cert: SigningCertificate
    ):
        key_pem = attacker_cert.private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        bundle = export_public(signing_cert).encode("ascii") + key_pem
        with pytest.raises(CertificateLoadError, match="does not match"):
            load_from_file(bundle)

    def test_non_rsa_key_rejected(self, signing_cert: SigningCertificate):
        ec_key = ec.generate_private_key(ec.SECP256R1())
        key_pem = ec_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        bundle = export_public(signing_cert).encode("ascii") + key_pem
        with pytest.raises(CertificateLoadError, match="RSA"):
            load_from_file(bundle)


class TestLoadFromPath:
    def test_reads_file(self, tmp_path: Path, signing_cert: SigningCertificate):
        path = tmp_path / "signer.pfx"
        path.write_bytes(export_container(signing_cert, "pw"))
        assert load_from_path(path, "pw").fingerprint == signing_cert.fingerprint

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(CertificateLoadError) as excinfo:
            load_from_path(tmp_path / "absent.pfx")
        assert excinfo.value.source.endswith("absent.pfx")


class TestExport:
    def test_export_public_has_no_private_key(self, signing_cert: SigningCertificate):
        pem = export_public(signing_cert)
        assert pem.startswith("-----BEGIN CERTIFICATE-----")
        assert "PRIVATE KEY" not in pem

    def test_export_container_without_key(self, signing_cert: SigningCertificate):
        signing_cert.close()
        with pytest.raises(MissingPrivateKeyError):
            export_container(signing_cert)


class TestSnapshots:
    def test_signer_identity(self, signing_cert: SigningCertificate):
        identity = signer_identity_from(signing_cert)
        assert identity.certificate_fingerprint == signing_cert.fingerprint
        assert identity.common_name == "Registry Signer"
        assert identity.email == "signer@example.org"
        assert identity.valid_until == signing_cert.valid_until
        assert "BEGIN CERTIFICATE" in identity.public_key_pem

    def test_trusted_entry_is_public_only(self, signing_cert: SigningCertificate):
        entry = trusted_entry_from(signing_cert)
        assert entry.fingerprint == signing_cert.fingerprint
        assert "PRIVATE KEY" not in entry.public_key_pem
        assert entry.subject == "CN=Registry Signer, E=signer@example.org"


class TestCertificateInfo:
    def test_valid_certificate_report(self, signing_cert: SigningCertificate):
        summary = describe_certificate(signing_cert)
        assert summary.has_private_key is True
        assert summary.key_size == 2048
        text = format_certificate_info(summary)
        assert "Subject: CN=Registry Signer" in text
        assert f"Fingerprint: {signing_cert.fingerprint}" in text
        assert "Status: Valid" in text

    def test_expired_certificate_report(self, expired_cert: SigningCertificate):
        summary = describe_certificate(expired_cert.certificate)
        assert summary.has_private_key is False
        assert summary.status == "EXPIRED"
        assert "Status: EXPIRED" in format_certificate_info(summary)

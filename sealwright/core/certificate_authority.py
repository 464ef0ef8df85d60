"""Certificate authority helper — self-signed issuance, import and export.

Only single self-signed leaf certificates are produced; there is no CA
hierarchy and no revocation handling.

A ``SigningCertificate`` is the only object in the core that holds a
private key.  It is a context manager: leaving the ``with`` block drops
the key reference on every exit path, error paths included::

    with generate_self_signed("Registry Signer") as cert:
        record = engine.sign(path, cert)
    # cert.has_private_key is now False
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import TracebackType

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from sealwright.core.errors import (
    CertificateLoadError,
    CryptoProviderError,
    MissingPrivateKeyError,
)
from sealwright.models.certificates import CertificateSummary
from sealwright.models.signatures import SignerIdentity
from sealwright.models.trust import TrustedCertificateEntry

logger = logging.getLogger(__name__)

MIN_RSA_KEY_SIZE = 2048
DEFAULT_VALIDITY_YEARS = 5
# Backdate absorbs clock skew between the issuing and verifying hosts.
CLOCK_SKEW_BACKDATE = timedelta(days=1)

_NAME_ABBREVIATIONS = {
    NameOID.COMMON_NAME: "CN",
    NameOID.EMAIL_ADDRESS: "E",
    NameOID.ORGANIZATION_NAME: "O",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
    NameOID.COUNTRY_NAME: "C",
    NameOID.LOCALITY_NAME: "L",
    NameOID.STATE_OR_PROVINCE_NAME: "ST",
}

_PEM_BLOCK = re.compile(rb"-----BEGIN ([A-Z0-9 ]+)-----.+?-----END \1-----", re.DOTALL)


# ---------------------------------------------------------------------------
# Name and fingerprint helpers
# ---------------------------------------------------------------------------


def certificate_fingerprint(certificate: x509.Certificate) -> str:
    """Lower-case hex SHA-256 over the DER encoding of *certificate*."""
    return certificate.fingerprint(hashes.SHA256()).hex()


def format_name(name: x509.Name) -> str:
    """Render an X.509 name as ``CN=..., E=...`` in attribute order."""
    parts = []
    for attribute in name:
        label = _NAME_ABBREVIATIONS.get(attribute.oid, attribute.oid.dotted_string)
        parts.append(f"{label}={attribute.value}")
    return ", ".join(parts)


def _first_attribute(name: x509.Name, oid: x509.ObjectIdentifier) -> str | None:
    attributes = name.get_attributes_for_oid(oid)
    if not attributes:
        return None
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8", "replace")


# ---------------------------------------------------------------------------
# Signing certificate resource
# ---------------------------------------------------------------------------


class SigningCertificate:
    """An X.509 certificate plus, optionally, its RSA private key.

    Never persisted by the core.  Call ``close()`` (or use ``with``) as soon
    as signing is done; afterwards ``private_key`` raises
    ``MissingPrivateKeyError`` and ``has_private_key`` is ``False``.
    Public certificate data remains available after release.
    """

    def __init__(
        self,
        certificate: x509.Certificate,
        private_key: rsa.RSAPrivateKey | None = None,
    ) -> None:
        self._certificate = certificate
        self._private_key = private_key
        self._released = False
        self.fingerprint = certificate_fingerprint(certificate)

    # -- Lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Drop the private key reference.  Safe to call repeatedly."""
        if self._private_key is not None:
            logger.debug("Releasing private key for certificate %s.", self.fingerprint)
        self._private_key = None
        self._released = True

    @property
    def released(self) -> bool:
        return self._released

    def __enter__(self) -> SigningCertificate:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"SigningCertificate(subject={self.subject!r}, "
            f"fingerprint={self.fingerprint[:16]}..., "
            f"has_private_key={self.has_private_key})"
        )

    # -- Key access ---------------------------------------------------------

    @property
    def has_private_key(self) -> bool:
        return self._private_key is not None

    @property
    def private_key(self) -> rsa.RSAPrivateKey:
        if self._private_key is None:
            raise MissingPrivateKeyError(
                self.fingerprint,
                "Certificate private key has been released"
                if self._released
                else "",
            )
        return self._private_key

    # -- Certificate metadata ------------------------------------------------

    @property
    def certificate(self) -> x509.Certificate:
        return self._certificate

    @property
    def subject(self) -> str:
        return format_name(self._certificate.subject)

    @property
    def issuer(self) -> str:
        return format_name(self._certificate.issuer)

    @property
    def common_name(self) -> str | None:
        return _first_attribute(self._certificate.subject, NameOID.COMMON_NAME)

    @property
    def email(self) -> str | None:
        return _first_attribute(self._certificate.subject, NameOID.EMAIL_ADDRESS)

    @property
    def valid_from(self) -> datetime:
        return self._certificate.not_valid_before_utc

    @property
    def valid_until(self) -> datetime:
        return self._certificate.not_valid_after_utc


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


def _add_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return moment.replace(year=moment.year + years, day=28)


def generate_self_signed(
    subject_name: str,
    email: str | None = None,
    validity_years: int = DEFAULT_VALIDITY_YEARS,
    *,
    key_size: int = MIN_RSA_KEY_SIZE,
) -> SigningCertificate:
    """Create an RSA key pair and a self-signed leaf certificate for it.

    The subject is ``CN=<subject_name>`` plus ``E=<email>`` when given.
    The certificate is marked "not a CA" and limited to digital signature
    and key encipherment.  Validity runs from one day ago to
    *validity_years* from now.

    Raises
    ------
    ValueError
        If *subject_name* is empty, *validity_years* < 1 or *key_size* is
        below 2048 bits.
    CryptoProviderError
        If key generation or certificate signing fails in the backend.
    """
    if not subject_name or not subject_name.strip():
        raise ValueError("subject_name must not be empty")
    if validity_years < 1:
        raise ValueError("validity_years must be at least 1")
    if key_size < MIN_RSA_KEY_SIZE:
        raise ValueError(f"key_size must be at least {MIN_RSA_KEY_SIZE} bits")

    try:
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    except Exception as exc:
        raise CryptoProviderError("RSA key generation", str(exc)) from exc

    attributes = [x509.NameAttribute(NameOID.COMMON_NAME, subject_name)]
    if email:
        attributes.append(x509.NameAttribute(NameOID.EMAIL_ADDRESS, email))
    name = x509.Name(attributes)

    now = datetime.now(timezone.utc)
    public_key = private_key.public_key()
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - CLOCK_SKEW_BACKDATE)
        .not_valid_after(_add_years(now, validity_years))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
    )
    try:
        certificate = builder.sign(private_key, hashes.SHA256())
    except Exception as exc:
        raise CryptoProviderError("certificate signing", str(exc)) from exc

    signing = SigningCertificate(certificate, private_key)
    logger.info(
        "Generated self-signed certificate %s for '%s' (valid until %s).",
        signing.fingerprint, signing.subject, signing.valid_until.date(),
    )
    return signing


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _load_pem_bundle(
    data: bytes, password: bytes | None, source: str
) -> tuple[x509.Certificate | None, object | None]:
    certificate: x509.Certificate | None = None
    private_key: object | None = None
    for match in _PEM_BLOCK.finditer(data):
        label, block = match.group(1), match.group(0)
        if label == b"CERTIFICATE" and certificate is None:
            try:
                certificate = x509.load_pem_x509_certificate(block)
            except ValueError as exc:
                raise CertificateLoadError(f"Malformed PEM certificate: {exc}", source=source) from exc
        elif label.endswith(b"PRIVATE KEY") and private_key is None:
            try:
                private_key = serialization.load_pem_private_key(block, password=password)
            except TypeError:
                if password is None:
                    raise CertificateLoadError(
                        "Private key is encrypted and no password was given", source=source
                    ) from None
                # Password supplied for an unencrypted key; load it as-is.
                private_key = serialization.load_pem_private_key(block, password=None)
            except ValueError as exc:
                raise CertificateLoadError(
                    "Malformed private key or wrong password", source=source
                ) from exc
    return certificate, private_key


def _load_binary(
    data: bytes, password: bytes | None, source: str
) -> tuple[x509.Certificate | None, object | None]:
    try:
        private_key, certificate, _extra = pkcs12.load_key_and_certificates(data, password)
    except ValueError as pkcs12_error:
        try:
            return x509.load_der_x509_certificate(data), None
        except ValueError:
            raise CertificateLoadError(
                "Malformed certificate data or wrong password", source=source
            ) from pkcs12_error
    return certificate, private_key


def load_from_file(
    data: bytes,
    password: str | None = None,
    *,
    require_private_key: bool = True,
    source: str = "",
) -> SigningCertificate:
    """Import certificate material supplied by the caller.

    Accepts a PKCS#12 container, a PEM bundle (certificate and optional,
    possibly encrypted, private key) or a bare DER certificate.

    Parameters
    ----------
    data:
        Raw bytes from certificate persistence.
    password:
        Password protecting the container or PEM private key.
    require_private_key:
        ``True`` when the caller intends to sign.
    source:
        Where the bytes came from, used in error messages only.

    Raises
    ------
    CertificateLoadError
        Malformed bytes, wrong password, no certificate, non-RSA key, or a
        key that does not belong to the certificate.
    MissingPrivateKeyError
        If *require_private_key* and no private key was found.
    """
    if not data:
        raise CertificateLoadError("Certificate data is empty", source=source)

    pw = password.encode("utf-8") if password else None
    if b"-----BEGIN" in data:
        certificate, private_key = _load_pem_bundle(data, pw, source)
    else:
        certificate, private_key = _load_binary(data, pw, source)

    if certificate is None:
        raise CertificateLoadError("No certificate found in data", source=source)
    if not isinstance(certificate.public_key(), rsa.RSAPublicKey):
        raise CertificateLoadError("Only RSA certificates are supported", source=source)
    if private_key is not None:
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise CertificateLoadError("Only RSA private keys are supported", source=source)
        if private_key.public_key().public_numbers() != certificate.public_key().public_numbers():
            raise CertificateLoadError(
                "Private key does not match the certificate", source=source
            )

    signing = SigningCertificate(certificate, private_key)
    if require_private_key and not signing.has_private_key:
        raise MissingPrivateKeyError(signing.fingerprint)
    logger.debug(
        "Loaded certificate %s (private key: %s).",
        signing.fingerprint, signing.has_private_key,
    )
    return signing


def load_from_path(
    path: Path | str,
    password: str | None = None,
    *,
    require_private_key: bool = True,
) -> SigningCertificate:
    """Read certificate material from *path* and import it."""
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as exc:
        raise CertificateLoadError(f"Cannot read certificate file: {exc}", source=str(p)) from exc
    return load_from_file(data, password, require_private_key=require_private_key, source=str(p))


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _x509(cert: SigningCertificate | x509.Certificate) -> x509.Certificate:
    return cert.certificate if isinstance(cert, SigningCertificate) else cert


def export_public(cert: SigningCertificate | x509.Certificate) -> str:
    """PEM encoding of the public certificate only."""
    return _x509(cert).public_bytes(serialization.Encoding.PEM).decode("ascii")


def export_container(cert: SigningCertificate, password: str | None = None) -> bytes:
    """PKCS#12 container holding the certificate and its private key.

    The container is encrypted with *password* when one is given.

    Raises
    ------
    MissingPrivateKeyError
        If the certificate has no (or an already released) private key.
    """
    private_key = cert.private_key
    encryption: serialization.KeySerializationEncryption
    if password:
        encryption = serialization.BestAvailableEncryption(password.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    friendly_name = (cert.common_name or "sealwright-signer").encode("utf-8")
    try:
        return pkcs12.serialize_key_and_certificates(
            name=friendly_name,
            key=private_key,
            cert=cert.certificate,
            cas=None,
            encryption_algorithm=encryption,
        )
    except Exception as exc:
        raise CryptoProviderError("PKCS#12 export", str(exc)) from exc


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


def signer_identity_from(cert: SigningCertificate | x509.Certificate) -> SignerIdentity:
    """Snapshot the identity fields embedded in a signature record."""
    certificate = _x509(cert)
    return SignerIdentity(
        certificate_fingerprint=certificate_fingerprint(certificate),
        public_key_pem=export_public(certificate),
        common_name=_first_attribute(certificate.subject, NameOID.COMMON_NAME),
        email=_first_attribute(certificate.subject, NameOID.EMAIL_ADDRESS),
        valid_from=certificate.not_valid_before_utc,
        valid_until=certificate.not_valid_after_utc,
    )


def trusted_entry_from(cert: SigningCertificate | x509.Certificate) -> TrustedCertificateEntry:
    """Public-only trust store entry for *cert*."""
    certificate = _x509(cert)
    return TrustedCertificateEntry(
        fingerprint=certificate_fingerprint(certificate),
        subject=format_name(certificate.subject),
        issuer=format_name(certificate.issuer),
        valid_from=certificate.not_valid_before_utc,
        valid_until=certificate.not_valid_after_utc,
        public_key_pem=export_public(certificate),
    )


def describe_certificate(cert: SigningCertificate | x509.Certificate) -> CertificateSummary:
    certificate = _x509(cert)
    public_key = certificate.public_key()
    return CertificateSummary(
        fingerprint=certificate_fingerprint(certificate),
        subject=format_name(certificate.subject),
        issuer=format_name(certificate.issuer),
        serial_number=format(certificate.serial_number, "x"),
        valid_from=certificate.not_valid_before_utc,
        valid_until=certificate.not_valid_after_utc,
        has_private_key=isinstance(cert, SigningCertificate) and cert.has_private_key,
        key_size=getattr(public_key, "key_size", None),
    )


def format_certificate_info(summary: CertificateSummary) -> str:
    """Plain-text certificate report."""
    return "\n".join([
        "Certificate Information:",
        f"Subject: {summary.subject}",
        f"Issuer: {summary.issuer}",
        f"Fingerprint: {summary.fingerprint}",
        f"Valid From: {summary.valid_from:%Y-%m-%d %H:%M:%S}",
        f"Valid Until: {summary.valid_until:%Y-%m-%d %H:%M:%S}",
        f"Has Private Key: {summary.has_private_key}",
        f"Status: {summary.status}",
    ])

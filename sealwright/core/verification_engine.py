"""Verification engine — integrity, authenticity, then trust.

State machine::

    Start -> HashCheck --fail--> Rejected(hash_mismatch)
               |
               pass
               v
           SignatureCheck --fail--> Rejected(key_parse_error | fingerprint_mismatch | bad_signature)
               |
               pass
               v
           TrustCheck --fail--> Rejected(fingerprint_mismatch | untrusted | expired)
               |
               pass
               v
           Accepted

The hash check runs before any signature cryptography: once the content
hash differs, the signature says nothing about the bytes on disk.

Negative results are returned as ``VerificationOutcome`` values.  Only
structural problems (missing artifact, unreadable sidecar, trust store
I/O) are raised.

When signing is disabled by policy, ``verify`` returns ``is_valid=True``
without checking anything and marks the outcome ``signing_enforced=False``.
Callers that treat ``is_valid`` as a security signal must check
``signing_enforced`` as well.
"""

from __future__ import annotations

import hmac
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from sealwright.core.artifact_store import (
    ArtifactStore,
    FileSystemArtifactStore,
    compute_artifact_digest,
)
from sealwright.core.certificate_authority import SigningCertificate, certificate_fingerprint
from sealwright.core.errors import ArtifactNotFoundError, MalformedSignatureError
from sealwright.core.hasher import DEFAULT_CHUNK_SIZE
from sealwright.core.signature_codec import decode, sidecar_path
from sealwright.core.signing_engine import rsa_hash_for
from sealwright.core.trust_store import TrustStore
from sealwright.models.signatures import SignatureRecord, SignerIdentity
from sealwright.models.trust import TrustedCertificateEntry
from sealwright.models.verification import (
    SigningPolicy,
    TrustPolicy,
    VerificationFailure,
    VerificationOutcome,
)

logger = logging.getLogger(__name__)

MSG_VERIFIED = "signature verified successfully"
MSG_BYPASSED = "signature verification skipped: signing is disabled by policy"
MSG_HASH_MISMATCH = "content hash mismatch — artifact has been modified"
MSG_BAD_SIGNATURE = "signature verification failed"
MSG_UNTRUSTED = "certificate not in trust list"
MSG_EXPIRED = "signing certificate has expired"
MSG_NOT_FOUND = "signature not found"

CertificateLike = SigningCertificate | x509.Certificate | SignerIdentity | TrustedCertificateEntry


def load_signer_public_key(pem: str) -> tuple[rsa.RSAPublicKey, x509.Certificate | None]:
    """Parse the signer's embedded PEM.

    Accepts a certificate PEM (returns the parsed certificate too) or a
    bare ``PUBLIC KEY`` PEM (certificate ``None``).

    Raises ``ValueError`` when the PEM does not hold an RSA public key.
    """
    data = pem.encode("ascii")
    certificate: x509.Certificate | None = None
    if b"BEGIN CERTIFICATE" in data:
        certificate = x509.load_pem_x509_certificate(data)
        public_key = certificate.public_key()
    else:
        public_key = serialization.load_pem_public_key(data)
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ValueError(f"signer key is {type(public_key).__name__}, not RSA")
    return public_key, certificate


def _matches_trusted_key(entry: TrustedCertificateEntry, public_key: rsa.RSAPublicKey) -> bool:
    try:
        trusted_key, _ = load_signer_public_key(entry.public_key_pem)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        logger.warning("Trusted certificate %s does not parse: %s", entry.fingerprint, exc)
        return False
    return trusted_key.public_numbers() == public_key.public_numbers()


def _validity_window(cert: CertificateLike) -> tuple[datetime, datetime]:
    if isinstance(cert, SigningCertificate):
        return cert.valid_from, cert.valid_until
    if isinstance(cert, x509.Certificate):
        return cert.not_valid_before_utc, cert.not_valid_after_utc
    return cert.valid_from, cert.valid_until


def validate_certificate(cert: CertificateLike, at: datetime | None = None) -> bool:
    """Whether *cert* is inside its validity window at *at* (default: now).

    Works on live certificates and on the snapshots stored in signature
    records and the trust store, so expiry can be checked without a full
    verification.
    """
    now = at or datetime.now(timezone.utc)
    valid_from, valid_until = _validity_window(cert)
    if valid_until < now:
        logger.warning("Certificate expired at %s.", valid_until)
        return False
    if valid_from > now:
        logger.warning("Certificate is not valid before %s.", valid_from)
        return False
    return True


class VerificationEngine:
    """Checks artifacts against their signature records.

    Parameters
    ----------
    trust_store:
        Consulted for signer trust.  ``None`` means no signer is trusted.
    policy:
        Signing switch, trust default and allowed hash algorithms.
    artifact_store:
        Where artifact bytes are read from.  Defaults to the local
        filesystem.
    chunk_size:
        Read size for the streaming hash.
    """

    def __init__(
        self,
        trust_store: TrustStore | None = None,
        policy: SigningPolicy | None = None,
        artifact_store: ArtifactStore | None = None,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._trust_store = trust_store
        self._policy = policy or SigningPolicy()
        self._store = artifact_store or FileSystemArtifactStore()
        self._chunk_size = chunk_size

    @property
    def policy(self) -> SigningPolicy:
        return self._policy

    def default_trust_policy(self) -> TrustPolicy:
        """Trust defaults used when a call passes no ``TrustPolicy``."""
        return TrustPolicy(
            require_trusted_certificate=self._policy.require_trusted_certificates,
            reject_expired_certificates=self._policy.reject_expired_certificates,
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(
        self,
        artifact_path: Path | str,
        record: SignatureRecord,
        trust_policy: TrustPolicy | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> VerificationOutcome:
        """Verify *artifact_path* against *record*.

        Raises
        ------
        ArtifactNotFoundError
            If the artifact does not exist.
        OperationCancelledError
            If *cancel* is set while the artifact is being hashed.
        TrustStoreIOError
            If the trust store cannot be read.
        """
        path = Path(artifact_path)
        if not self._policy.signing_enabled:
            logger.debug("Package signing disabled; skipping verification of '%s'.", path)
            return VerificationOutcome.accepted(
                record, is_trusted=True, message=MSG_BYPASSED, signing_enforced=False
            )

        policy = trust_policy or self.default_trust_policy()
        if not self._store.exists(path):
            logger.error("Package file not found at '%s'.", path)
            raise ArtifactNotFoundError(path)

        signer = record.signer
        algorithm = record.digest.algorithm
        if not self._policy.allows(algorithm):
            logger.warning("Hash algorithm %s is not allowed for '%s'.", algorithm.value, path)
            return VerificationOutcome.rejected(
                VerificationFailure.ALGORITHM_NOT_ALLOWED,
                f"hash algorithm {algorithm.value} is not allowed by policy",
                f"allowed: {', '.join(self._policy.allowed_names())}",
                record=record,
            )
        if record.algorithm != algorithm.signature_algorithm:
            logger.warning(
                "Signature algorithm %s does not match digest %s for '%s'.",
                record.algorithm, algorithm.value, path,
            )
            return VerificationOutcome.rejected(
                VerificationFailure.ALGORITHM_NOT_ALLOWED,
                f"signature algorithm {record.algorithm} does not match "
                f"hash algorithm {algorithm.value}",
                record=record,
            )

        # HashCheck
        actual = compute_artifact_digest(
            self._store, path, algorithm, chunk_size=self._chunk_size, cancel=cancel
        )
        if not hmac.compare_digest(actual.value, record.digest.value):
            logger.warning(
                "Package hash mismatch for '%s'. Expected: '%s', Actual: '%s'.",
                path, record.digest.b64, actual.b64,
            )
            return VerificationOutcome.rejected(
                VerificationFailure.HASH_MISMATCH,
                MSG_HASH_MISMATCH,
                f"expected {algorithm.value} {record.digest.b64}",
                f"actual {algorithm.value} {actual.b64}",
                record=record,
            )

        # SignatureCheck
        try:
            public_key, embedded = load_signer_public_key(signer.public_key_pem)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            logger.warning("Unable to parse signer public key for '%s': %s", path, exc)
            return VerificationOutcome.rejected(
                VerificationFailure.KEY_PARSE_ERROR,
                "unable to parse signer public key",
                str(exc),
                record=record,
            )

        embedded_fingerprint = certificate_fingerprint(embedded) if embedded is not None else None
        if embedded_fingerprint is not None and embedded_fingerprint != signer.certificate_fingerprint:
            logger.warning(
                "Signer fingerprint %s does not match embedded certificate %s for '%s'.",
                signer.certificate_fingerprint, embedded_fingerprint, path,
            )
            return VerificationOutcome.rejected(
                VerificationFailure.FINGERPRINT_MISMATCH,
                "signer fingerprint does not match the embedded certificate",
                f"claimed {signer.certificate_fingerprint}",
                f"embedded {embedded_fingerprint}",
                record=record,
            )

        try:
            public_key.verify(
                record.signature_bytes,
                actual.value,
                padding.PKCS1v15(),
                rsa_hash_for(algorithm),
            )
        except (InvalidSignature, ValueError):
            logger.warning("RSA signature verification failed for '%s'.", path)
            return VerificationOutcome.rejected(
                VerificationFailure.BAD_SIGNATURE,
                MSG_BAD_SIGNATURE,
                record=record,
            )

        # TrustCheck
        entry = (
            self._trust_store.get(signer.certificate_fingerprint)
            if self._trust_store is not None and signer.certificate_fingerprint
            else None
        )
        # A trusted fingerprint only counts when the signing key is that certificate's key.
        if entry is not None and not _matches_trusted_key(entry, public_key):
            logger.warning(
                "Signer key does not match trusted certificate %s for '%s'.",
                entry.fingerprint, path,
            )
            return VerificationOutcome.rejected(
                VerificationFailure.FINGERPRINT_MISMATCH,
                "signer key does not match the trusted certificate",
                f"claimed {signer.certificate_fingerprint}",
                record=record,
            )
        in_store = entry is not None
        if policy.require_trusted_certificate and not in_store:
            logger.warning(
                "Signing certificate is not in the trust list: %s.", signer.certificate_fingerprint
            )
            return VerificationOutcome.rejected(
                VerificationFailure.UNTRUSTED,
                MSG_UNTRUSTED,
                signer.certificate_fingerprint,
                record=record,
                is_trusted=False,
            )
        is_trusted = in_store or not policy.require_trusted_certificate

        # Certificate dates are authoritative over the ones claimed in the record.
        if embedded is not None:
            valid_until = embedded.not_valid_after_utc
        elif entry is not None:
            valid_until = entry.valid_until
        else:
            valid_until = signer.valid_until
        if policy.reject_expired_certificates and valid_until < datetime.now(timezone.utc):
            logger.warning(
                "Signing certificate %s expired at %s.",
                signer.certificate_fingerprint, valid_until,
            )
            return VerificationOutcome.rejected(
                VerificationFailure.EXPIRED,
                MSG_EXPIRED,
                f"valid until {valid_until.isoformat()}",
                record=record,
                is_trusted=is_trusted,
            )

        logger.info(
            "Package signature verified for '%s', signer: %s.", path, signer.display_name
        )
        return VerificationOutcome.accepted(record, is_trusted=is_trusted, message=MSG_VERIFIED)

    def verify_artifact(
        self,
        artifact_path: Path | str,
        trust_policy: TrustPolicy | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> VerificationOutcome:
        """Load ``<artifact>.sig`` and verify the artifact against it.

        The sidecar is read through the same artifact store as the artifact.

        A missing sidecar yields a ``signature_not_found`` outcome.  A
        sidecar that exists but does not parse raises
        ``MalformedSignatureError``.
        """
        path = Path(artifact_path)
        if not self._policy.signing_enabled:
            logger.debug("Package signing disabled; skipping verification of '%s'.", path)
            return VerificationOutcome.accepted(
                None, is_trusted=True, message=MSG_BYPASSED, signing_enforced=False
            )
        if not self._store.exists(path):
            raise ArtifactNotFoundError(path)

        sig_path = sidecar_path(path)
        if not self._store.exists(sig_path):
            logger.warning("Signature file not found: %s.", sig_path)
            return VerificationOutcome.rejected(
                VerificationFailure.SIGNATURE_NOT_FOUND,
                MSG_NOT_FOUND,
                str(sig_path),
            )
        try:
            with self._store.open_read(sig_path) as stream:
                data = stream.read()
        except OSError as exc:
            raise MalformedSignatureError(
                f"cannot read signature file: {exc}", source=str(sig_path)
            ) from exc
        record = decode(data, source=str(sig_path))
        return self.verify(path, record, trust_policy, cancel=cancel)

    def validate_certificate(self, cert: CertificateLike, at: datetime | None = None) -> bool:
        """See module-level ``validate_certificate``."""
        return validate_certificate(cert, at)

"""Signing engine — digest an artifact and sign the digest.

The engine signs the *digest*, not the artifact: the artifact is streamed
through the hash exactly once, and RSA PKCS#1 v1.5 is applied to the
resulting digest using the same hash family.  Signature strength therefore
follows hash strength, and signing cost does not grow with artifact size.

``sign()`` has no side effects.  Writing the ``.sig`` sidecar is a separate
step (``sign_to_sidecar`` or ``signature_codec.write_sidecar``).

The engine does not own the caller's ``SigningCertificate``; release it
with a ``with`` block around the call.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from sealwright.core.artifact_store import (
    ArtifactStore,
    FileSystemArtifactStore,
    compute_artifact_digest,
)
from sealwright.core.certificate_authority import SigningCertificate, signer_identity_from
from sealwright.core.errors import (
    ArtifactNotFoundError,
    CryptoProviderError,
    MissingPrivateKeyError,
    UnsupportedAlgorithmError,
)
from sealwright.core.hasher import DEFAULT_CHUNK_SIZE
from sealwright.core.signature_codec import write_sidecar
from sealwright.models.signatures import (
    SIGNATURE_FORMAT_VERSION,
    HashAlgorithm,
    SignatureRecord,
)
from sealwright.models.verification import SigningPolicy

logger = logging.getLogger(__name__)


def rsa_hash_for(algorithm: HashAlgorithm) -> hashes.HashAlgorithm:
    """The ``cryptography`` hash matching a digest algorithm."""
    if algorithm is HashAlgorithm.SHA512:
        return hashes.SHA512()
    return hashes.SHA256()


class SigningEngine:
    """Produces ``SignatureRecord`` attestations for package artifacts.

    Parameters
    ----------
    policy:
        Allowed hash algorithms.  Defaults to SHA-256 and SHA-512.
    artifact_store:
        Where artifact bytes are read from.  Defaults to the local
        filesystem.
    chunk_size:
        Read size for the streaming hash.
    """

    def __init__(
        self,
        policy: SigningPolicy | None = None,
        artifact_store: ArtifactStore | None = None,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._policy = policy or SigningPolicy()
        self._store = artifact_store or FileSystemArtifactStore()
        self._chunk_size = chunk_size

    @property
    def policy(self) -> SigningPolicy:
        return self._policy

    def sign(
        self,
        artifact_path: Path | str,
        certificate: SigningCertificate,
        hash_algorithm: HashAlgorithm | str = HashAlgorithm.SHA256,
        *,
        cancel: threading.Event | None = None,
    ) -> SignatureRecord:
        """Sign *artifact_path* with *certificate*'s private key.

        Raises
        ------
        ArtifactNotFoundError
            If the artifact does not exist.
        MissingPrivateKeyError
            If the certificate has no (or a released) private key.
        UnsupportedAlgorithmError
            If *hash_algorithm* is unknown or not allowed by policy.
        CryptoProviderError
            If the RSA backend fails.
        OperationCancelledError
            If *cancel* is set while the artifact is being hashed.
        """
        path = Path(artifact_path)
        try:
            algorithm = HashAlgorithm.parse(hash_algorithm)
        except ValueError:
            raise UnsupportedAlgorithmError(str(hash_algorithm), self._policy.allowed_names()) from None
        if not self._policy.allows(algorithm):
            raise UnsupportedAlgorithmError(algorithm.value, self._policy.allowed_names())

        logger.info("Signing package at '%s' with %s.", path, algorithm.signature_algorithm)

        if not self._store.exists(path):
            logger.error("Package file not found at '%s'.", path)
            raise ArtifactNotFoundError(path)

        if not certificate.has_private_key:
            logger.error("Certificate %s does not contain a private key.", certificate.fingerprint)
            raise MissingPrivateKeyError(certificate.fingerprint)

        digest = compute_artifact_digest(
            self._store, path, algorithm, chunk_size=self._chunk_size, cancel=cancel
        )

        # Re-read through the property: raises if released while hashing.
        private_key = certificate.private_key
        try:
            signature_bytes = private_key.sign(
                digest.value, padding.PKCS1v15(), rsa_hash_for(algorithm)
            )
        except Exception as exc:
            logger.exception("Cryptographic error while signing '%s'.", path)
            raise CryptoProviderError("RSA signing", str(exc)) from exc

        record = SignatureRecord(
            format_version=SIGNATURE_FORMAT_VERSION,
            algorithm=algorithm.signature_algorithm,
            signature_bytes=signature_bytes,
            timestamp=datetime.now(timezone.utc),
            digest=digest,
            signer=signer_identity_from(certificate),
        )
        logger.info(
            "Signed '%s' with certificate %s (%s).",
            path, certificate.fingerprint, record.signer.display_name,
        )
        return record

    def sign_to_sidecar(
        self,
        artifact_path: Path | str,
        certificate: SigningCertificate,
        hash_algorithm: HashAlgorithm | str = HashAlgorithm.SHA256,
        *,
        cancel: threading.Event | None = None,
    ) -> tuple[SignatureRecord, Path]:
        """Sign and then atomically write ``<artifact>.sig``.

        Nothing is written unless signing completed.
        """
        record = self.sign(artifact_path, certificate, hash_algorithm, cancel=cancel)
        target = artifact_path
        if isinstance(self._store, FileSystemArtifactStore):
            target = self._store.resolve(artifact_path)
        return record, write_sidecar(target, record)

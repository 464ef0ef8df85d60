"""Typed failures raised by the signing and verification core.

Every error carries the structured fields a caller needs to branch on the
*kind* of failure (which artifact, which certificate, which operation)
instead of parsing message strings.

Expected negative verification results (hash mismatch, bad signature,
untrusted signer) are **not** errors; they are reported through
``VerificationOutcome``.  Only structural and environmental failures are
raised.
"""

from __future__ import annotations

from pathlib import Path


class SealwrightError(RuntimeError):
    """Base class for all sealwright failures."""


class ArtifactNotFoundError(SealwrightError):
    """Raised when the artifact to sign or verify does not exist."""

    def __init__(self, artifact_path: Path | str) -> None:
        self.artifact_path = Path(artifact_path)
        super().__init__(f"Artifact not found: {self.artifact_path}")

    @property
    def package_id(self) -> str:
        """Artifact file name without its extension."""
        return self.artifact_path.stem


class MissingPrivateKeyError(SealwrightError):
    """Raised when a certificate without a private key is used for signing."""

    def __init__(self, fingerprint: str = "", message: str = "") -> None:
        self.fingerprint = fingerprint
        super().__init__(
            message or f"Certificate {fingerprint or '<unknown>'} does not contain a private key"
        )


class CryptoProviderError(SealwrightError):
    """Raised when the cryptographic backend fails (keygen, signing)."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class CertificateLoadError(SealwrightError):
    """Raised when certificate material cannot be parsed or decrypted."""

    def __init__(self, message: str, *, source: str = "") -> None:
        self.source = source
        super().__init__(message if not source else f"{message} ({source})")


class MalformedSignatureError(SealwrightError):
    """Raised when a signature document is structurally invalid."""

    def __init__(self, message: str, *, source: str = "", field: str = "") -> None:
        self.source = source
        self.field = field
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{message}")


class TrustStoreIOError(SealwrightError):
    """Raised when the trust store's backing storage cannot be read or written."""

    def __init__(self, message: str, *, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        super().__init__(message if path is None else f"{message} ({path})")


class UnsupportedAlgorithmError(SealwrightError, ValueError):
    """Raised when a hash algorithm is unknown or disallowed by policy."""

    def __init__(self, algorithm: str, allowed: list[str] | None = None) -> None:
        self.algorithm = algorithm
        self.allowed = list(allowed or [])
        detail = f" (allowed: {', '.join(self.allowed)})" if self.allowed else ""
        super().__init__(f"Hash algorithm '{algorithm}' is not supported{detail}")


class OperationCancelledError(SealwrightError):
    """Raised when a hashing pass is abandoned through its cancel event."""

    def __init__(self, artifact_path: Path | str) -> None:
        self.artifact_path = Path(artifact_path)
        super().__init__(f"Hashing of {self.artifact_path} was cancelled")

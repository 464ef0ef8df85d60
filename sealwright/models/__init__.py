"""sealwright data models — all Pydantic v2, all frozen (immutable)."""

from sealwright.models.signatures import (
    SIGNATURE_FORMAT_VERSION,
    SUPPORTED_FORMAT_VERSIONS,
    ContentDigest,
    HashAlgorithm,
    SignatureRecord,
    SignerIdentity,
    normalize_fingerprint,
)
from sealwright.models.certificates import CertificateSummary
from sealwright.models.trust import TrustedCertificateEntry
from sealwright.models.verification import (
    SigningPolicy,
    TrustPolicy,
    VerificationFailure,
    VerificationOutcome,
    VerificationState,
)

__all__ = [
    # signatures
    "SIGNATURE_FORMAT_VERSION",
    "SUPPORTED_FORMAT_VERSIONS",
    "HashAlgorithm",
    "ContentDigest",
    "SignerIdentity",
    "SignatureRecord",
    "normalize_fingerprint",
    # certificates
    "CertificateSummary",
    # trust
    "TrustedCertificateEntry",
    # verification
    "SigningPolicy",
    "TrustPolicy",
    "VerificationFailure",
    "VerificationOutcome",
    "VerificationState",
]

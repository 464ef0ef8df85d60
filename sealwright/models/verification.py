"""Verification policy and outcome models.

Cryptographic validity (``is_valid``) and trust (``is_trusted``) are
reported separately so callers can tell a tampered artifact apart from a
correctly signed artifact whose signer is simply not trusted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from sealwright.models.signatures import HashAlgorithm, SignatureRecord


class VerificationFailure(str, Enum):
    """Which check rejected an artifact."""

    HASH_MISMATCH = "hash_mismatch"
    KEY_PARSE_ERROR = "key_parse_error"
    FINGERPRINT_MISMATCH = "fingerprint_mismatch"
    BAD_SIGNATURE = "bad_signature"
    UNTRUSTED = "untrusted"
    EXPIRED = "expired"
    SIGNATURE_NOT_FOUND = "signature_not_found"
    ALGORITHM_NOT_ALLOWED = "algorithm_not_allowed"


class VerificationState(str, Enum):
    """Terminal states of the verification state machine."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TrustPolicy(BaseModel):
    """Per-call trust requirements."""

    model_config = ConfigDict(frozen=True)

    require_trusted_certificate: bool = False
    reject_expired_certificates: bool = True


class SigningPolicy(BaseModel):
    """Read-only policy configuration consumed by both engines."""

    model_config = ConfigDict(frozen=True)

    signing_enabled: bool = True
    require_trusted_certificates: bool = False
    reject_expired_certificates: bool = True
    allowed_hash_algorithms: frozenset[HashAlgorithm] = frozenset(
        {HashAlgorithm.SHA256, HashAlgorithm.SHA512}
    )

    def allows(self, algorithm: HashAlgorithm) -> bool:
        return algorithm in self.allowed_hash_algorithms

    def allowed_names(self) -> list[str]:
        return sorted(a.value for a in self.allowed_hash_algorithms)


class VerificationOutcome(BaseModel):
    """Result of verifying one artifact against one signature record.

    ``signing_enforced`` is ``False`` only when verification was bypassed
    because signing is disabled by policy.  In that case ``is_valid`` is
    ``True`` without any content having been checked.
    """

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    is_trusted: bool = False
    message: str
    errors: list[str] = Field(default_factory=list)
    failure: VerificationFailure | None = None
    signing_enforced: bool = True
    record: SignatureRecord | None = None
    verified_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def state(self) -> VerificationState:
        return VerificationState.ACCEPTED if self.is_valid else VerificationState.REJECTED

    @classmethod
    def accepted(
        cls,
        record: SignatureRecord | None,
        *,
        is_trusted: bool,
        message: str = "signature verified successfully",
        signing_enforced: bool = True,
    ) -> VerificationOutcome:
        return cls(
            is_valid=True,
            is_trusted=is_trusted,
            message=message,
            record=record,
            signing_enforced=signing_enforced,
        )

    @classmethod
    def rejected(
        cls,
        failure: VerificationFailure,
        message: str,
        *errors: str,
        record: SignatureRecord | None = None,
        is_trusted: bool = False,
    ) -> VerificationOutcome:
        return cls(
            is_valid=False,
            is_trusted=is_trusted,
            message=message,
            errors=list(errors),
            failure=failure,
            record=record,
        )

"""Signature record models (immutable once created).

A ``SignatureRecord`` binds the digest of an artifact to a signer identity.
The signer identity is a *snapshot* of certificate metadata taken at
signing time; it is never a live reference back to the certificate.
"""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SIGNATURE_FORMAT_VERSION = "1.0"
SUPPORTED_FORMAT_VERSIONS = frozenset({SIGNATURE_FORMAT_VERSION})


class HashAlgorithm(str, Enum):
    """Content hash algorithms usable for artifact digests."""

    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @classmethod
    def parse(cls, value: str | HashAlgorithm) -> HashAlgorithm:
        """Resolve ``"sha256"``, ``"SHA-256"`` or a member to a member.

        Raises ``ValueError`` for anything else.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().upper().replace("-", "")
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown hash algorithm: {value!r}") from None

    @property
    def signature_algorithm(self) -> str:
        """The record-level algorithm name, e.g. ``"RSA-SHA256"``."""
        return f"RSA-{self.value}"

    @property
    def hashlib_name(self) -> str:
        return self.value.lower()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ContentDigest(BaseModel):
    """Digest of an artifact's bytes under a named algorithm."""

    model_config = ConfigDict(frozen=True)

    algorithm: HashAlgorithm
    value: bytes

    @property
    def hex(self) -> str:
        return self.value.hex()

    @property
    def b64(self) -> str:
        return base64.b64encode(self.value).decode("ascii")


class SignerIdentity(BaseModel):
    """Certificate metadata captured at signing time.

    ``public_key_pem`` holds the signer's PEM certificate (or, for records
    produced elsewhere, a bare ``PUBLIC KEY`` PEM).  Fingerprints are stored
    lower-case so comparisons are case-insensitive.
    """

    model_config = ConfigDict(frozen=True)

    certificate_fingerprint: str
    public_key_pem: str
    common_name: str | None = None
    email: str | None = None
    valid_from: datetime
    valid_until: datetime

    @field_validator("certificate_fingerprint")
    @classmethod
    def _normalize_fingerprint(cls, value: str) -> str:
        return normalize_fingerprint(value)

    @field_validator("valid_from", "valid_until")
    @classmethod
    def _force_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def display_name(self) -> str:
        return self.common_name or self.email or "Unknown"


class SignatureRecord(BaseModel):
    """The attestation written next to an artifact as ``<artifact>.sig``."""

    model_config = ConfigDict(frozen=True)

    format_version: str = SIGNATURE_FORMAT_VERSION
    algorithm: str  # "RSA-SHA256" | "RSA-SHA512"
    signature_bytes: bytes
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    digest: ContentDigest
    signer: SignerIdentity

    @field_validator("timestamp")
    @classmethod
    def _force_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _consistent(self) -> SignatureRecord:
        if self.format_version not in SUPPORTED_FORMAT_VERSIONS:
            raise ValueError(f"unsupported format_version '{self.format_version}'")
        if self.algorithm != self.digest.algorithm.signature_algorithm:
            raise ValueError(
                f"algorithm '{self.algorithm}' does not match digest algorithm "
                f"'{self.digest.algorithm.value}'"
            )
        if not self.signature_bytes:
            raise ValueError("signature_bytes must not be empty")
        return self

    @property
    def hash_algorithm(self) -> str:
        """Name of the digest algorithm, e.g. ``"SHA512"``."""
        return self.digest.algorithm.value

    @property
    def signature_b64(self) -> str:
        return base64.b64encode(self.signature_bytes).decode("ascii")


def normalize_fingerprint(fingerprint: str) -> str:
    """Lower-case hex with separators stripped (``AB:CD`` -> ``abcd``)."""
    return fingerprint.strip().replace(":", "").replace(" ", "").lower()

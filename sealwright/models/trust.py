"""Trust store entry models — public certificate material only."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sealwright.models.signatures import normalize_fingerprint


class TrustedCertificateEntry(BaseModel):
    """A certificate the verifier has chosen to trust.

    Keyed by ``fingerprint`` inside the store.  Entries never hold private
    keys; ``public_key_pem`` is the PEM-encoded certificate.
    """

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    subject: str
    issuer: str
    valid_from: datetime
    valid_until: datetime
    public_key_pem: str
    added_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @field_validator("fingerprint")
    @classmethod
    def _normalize_fingerprint(cls, value: str) -> str:
        return normalize_fingerprint(value)

    @field_validator("public_key_pem")
    @classmethod
    def _reject_private_material(cls, value: str) -> str:
        if "PRIVATE KEY" in value:
            raise ValueError("trusted certificate entries must not contain private keys")
        return value

    def is_expired(self, at: datetime | None = None) -> bool:
        """Whether ``valid_until`` lies before *at* (default: now)."""
        now = at or datetime.now(timezone.utc)
        return self.valid_until < now

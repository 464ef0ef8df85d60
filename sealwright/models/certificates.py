"""Certificate summary model used for display and hygiene checks."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


class CertificateSummary(BaseModel):
    """Human-facing description of a certificate (no key material)."""

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    subject: str
    issuer: str
    serial_number: str
    valid_from: datetime
    valid_until: datetime
    has_private_key: bool = False
    key_size: int | None = None

    @property
    def is_expired(self) -> bool:
        return self.valid_until < datetime.now(timezone.utc)

    @property
    def status(self) -> str:
        return "EXPIRED" if self.is_expired else "Valid"

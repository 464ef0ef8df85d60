"""Runtime configuration — env-driven, read-only policy input.

Centralized settings using pydantic-settings.  Reads from a ``.env`` file
and ``SEALWRIGHT_*`` environment variables.  The signing engines never read
settings directly; they receive a ``SigningPolicy`` built from them.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sealwright.models.signatures import HashAlgorithm
from sealwright.models.verification import SigningPolicy, TrustPolicy


class TrustStoreBackend(str, Enum):
    """Backing storage for the certificate trust store."""

    JSON = "json"
    SQLITE = "sqlite"


class SealwrightSettings(BaseSettings):
    """Signing, verification and trust-store configuration.

    Examples
    --------
    Override via environment::

        export SEALWRIGHT_REQUIRE_TRUSTED_CERTIFICATES=true
        export SEALWRIGHT_ALLOWED_HASH_ALGORITHMS='["SHA512"]'
        export SEALWRIGHT_TRUST_STORE_BACKEND=sqlite
        export SEALWRIGHT_TRUST_STORE_PATH=/var/lib/registry/trust.db
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SEALWRIGHT_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Signing policy
    signing_enabled: bool = True
    require_trusted_certificates: bool = False
    allowed_hash_algorithms: list[HashAlgorithm] = [
        HashAlgorithm.SHA256,
        HashAlgorithm.SHA512,
    ]
    default_hash_algorithm: HashAlgorithm = HashAlgorithm.SHA256
    reject_expired_certificates: bool = True

    # Trust store
    trust_store_backend: TrustStoreBackend = TrustStoreBackend.JSON
    trust_store_path: Path = Path(".sealwright/trust-store.json")

    # Hashing and key generation
    hash_chunk_size: int = 1024 * 1024
    rsa_key_size: int = 2048

    @field_validator("allowed_hash_algorithms", mode="before")
    @classmethod
    def _parse_algorithms(cls, value: object) -> object:
        # Environment values arrive JSON-decoded, e.g. '["SHA512"]'.
        if isinstance(value, (list, tuple, set, frozenset)):
            return [HashAlgorithm.parse(v) for v in value]
        return value

    @field_validator("default_hash_algorithm", mode="before")
    @classmethod
    def _parse_default(cls, value: object) -> object:
        if isinstance(value, str):
            return HashAlgorithm.parse(value)
        return value

    @field_validator("rsa_key_size")
    @classmethod
    def _min_key_size(cls, value: int) -> int:
        if value < 2048:
            raise ValueError("rsa_key_size must be at least 2048 bits")
        return value

    @field_validator("hash_chunk_size")
    @classmethod
    def _positive_chunk(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("hash_chunk_size must be positive")
        return value

    @model_validator(mode="after")
    def _default_must_be_allowed(self) -> SealwrightSettings:
        if not self.allowed_hash_algorithms:
            raise ValueError("allowed_hash_algorithms must not be empty")
        if self.default_hash_algorithm not in self.allowed_hash_algorithms:
            raise ValueError(
                f"default_hash_algorithm {self.default_hash_algorithm.value} "
                "is not in allowed_hash_algorithms"
            )
        return self

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"

    def signing_policy(self) -> SigningPolicy:
        """Snapshot of the policy fields consumed by the engines."""
        return SigningPolicy(
            signing_enabled=self.signing_enabled,
            require_trusted_certificates=self.require_trusted_certificates,
            reject_expired_certificates=self.reject_expired_certificates,
            allowed_hash_algorithms=frozenset(self.allowed_hash_algorithms),
        )

    def trust_policy(self) -> TrustPolicy:
        return TrustPolicy(
            require_trusted_certificate=self.require_trusted_certificates,
            reject_expired_certificates=self.reject_expired_certificates,
        )


# Module-level singleton — import as `from sealwright.config import settings`
settings = SealwrightSettings()

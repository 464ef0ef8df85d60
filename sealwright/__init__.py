"""Sealwright: package signing and trust verification for package registries.

v0.2.0:
  - RSA PKCS#1 v1.5 signatures over SHA-256 / SHA-512 content digests
  - Detached ``.sig`` JSON sidecars with a versioned format
  - Self-signed signing certificates, PKCS#12 / PEM / DER loading
  - Certificate trust store with JSON-file and SQLite backends
  - Integrity first, then authenticity, then trust, reported separately
  - Env-driven policy (``SEALWRIGHT_*``) and a Typer CLI
"""

__version__ = "0.2.0"
__description__ = "Package signing and trust verification for package registries"

from sealwright.core.certificate_authority import (
    SigningCertificate,
    generate_self_signed,
    load_from_file,
    load_from_path,
)
from sealwright.core.signing_engine import SigningEngine
from sealwright.core.trust_store import JsonFileTrustStore, SQLiteTrustStore, TrustStore
from sealwright.core.verification_engine import VerificationEngine

__all__ = [
    "SigningCertificate",
    "SigningEngine",
    "VerificationEngine",
    "TrustStore",
    "JsonFileTrustStore",
    "SQLiteTrustStore",
    "generate_self_signed",
    "load_from_file",
    "load_from_path",
    "__version__",
]

"""Signature codec — versioned JSON sidecar documents.

Sidecar layout: for an artifact at ``P`` the record lives at ``P.sig``::

    {
      "algorithm": "RSA-SHA256",
      "formatVersion": "1.0",
      "hashAlgorithm": "SHA256",
      "packageHash": "<base64 digest>",
      "signatureData": "<base64 signature>",
      "signer": {
        "certificateFingerprint": "<sha256 hex>",
        "commonName": "Registry Signer",
        "email": null,
        "publicKeyPem": "-----BEGIN CERTIFICATE-----...",
        "validFrom": "2026-01-01T00:00:00+00:00",
        "validUntil": "2031-01-01T00:00:00+00:00"
      },
      "timestamp": "2026-01-02T03:04:05.123456+00:00"
    }

``decode(encode(r)) == r`` for every valid record.  Unknown additional
keys are ignored so newer writers stay readable.  Sidecar writes go to a
temporary file in the same directory followed by ``os.replace`` so a crash
never leaves a partially written document behind.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sealwright.core.errors import MalformedSignatureError
from sealwright.models.signatures import (
    SUPPORTED_FORMAT_VERSIONS,
    ContentDigest,
    HashAlgorithm,
    SignatureRecord,
    SignerIdentity,
)

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".sig"

_REQUIRED_TOP_LEVEL = (
    "formatVersion",
    "algorithm",
    "signatureData",
    "timestamp",
    "hashAlgorithm",
    "packageHash",
    "signer",
)
_REQUIRED_SIGNER = (
    "certificateFingerprint",
    "publicKeyPem",
    "validFrom",
    "validUntil",
)


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def record_to_document(record: SignatureRecord) -> dict[str, Any]:
    """The JSON-ready mapping written for *record*."""
    signer = record.signer
    return {
        "formatVersion": record.format_version,
        "algorithm": record.algorithm,
        "signatureData": _b64(record.signature_bytes),
        "timestamp": record.timestamp.isoformat(),
        "hashAlgorithm": record.digest.algorithm.value,
        "packageHash": _b64(record.digest.value),
        "signer": {
            "certificateFingerprint": signer.certificate_fingerprint,
            "publicKeyPem": signer.public_key_pem,
            "commonName": signer.common_name,
            "email": signer.email,
            "validFrom": signer.valid_from.isoformat(),
            "validUntil": signer.valid_until.isoformat(),
        },
    }


def encode(record: SignatureRecord) -> bytes:
    """Serialize *record* to stable UTF-8 JSON bytes."""
    document = record_to_document(record)
    return (json.dumps(document, indent=2, sort_keys=True) + "\n").encode("utf-8")


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def _require(mapping: dict[str, Any], key: str, source: str, prefix: str = "") -> Any:
    name = f"{prefix}{key}"
    if key not in mapping or mapping[key] is None:
        raise MalformedSignatureError(f"missing required field '{name}'", source=source, field=name)
    return mapping[key]


def _require_str(mapping: dict[str, Any], key: str, source: str, prefix: str = "") -> str:
    value = _require(mapping, key, source, prefix)
    if not isinstance(value, str) or not value:
        name = f"{prefix}{key}"
        raise MalformedSignatureError(
            f"field '{name}' must be a non-empty string", source=source, field=name
        )
    return value


def _optional_str(mapping: dict[str, Any], key: str, source: str, prefix: str = "") -> str | None:
    value = mapping.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        name = f"{prefix}{key}"
        raise MalformedSignatureError(f"field '{name}' must be a string", source=source, field=name)
    return value


def _decode_b64(value: str, field: str, source: str) -> bytes:
    try:
        decoded = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise MalformedSignatureError(
            f"field '{field}' is not valid base64", source=source, field=field
        ) from None
    if not decoded:
        raise MalformedSignatureError(f"field '{field}' is empty", source=source, field=field)
    return decoded


def _parse_time(value: str, field: str, source: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise MalformedSignatureError(
            f"field '{field}' is not an ISO-8601 timestamp", source=source, field=field
        ) from None


def document_to_record(document: Any, *, source: str = "") -> SignatureRecord:
    """Validate a parsed JSON document and build a ``SignatureRecord``."""
    if not isinstance(document, dict):
        raise MalformedSignatureError("signature document must be a JSON object", source=source)

    version = _require_str(document, "formatVersion", source)
    if version not in SUPPORTED_FORMAT_VERSIONS:
        raise MalformedSignatureError(
            f"unsupported formatVersion '{version}'", source=source, field="formatVersion"
        )

    for key in _REQUIRED_TOP_LEVEL:
        _require(document, key, source)

    algorithm = _require_str(document, "algorithm", source)
    try:
        hash_algorithm = HashAlgorithm.parse(_require_str(document, "hashAlgorithm", source))
    except ValueError:
        raise MalformedSignatureError(
            f"unknown hashAlgorithm '{document['hashAlgorithm']}'",
            source=source,
            field="hashAlgorithm",
        ) from None
    if algorithm != hash_algorithm.signature_algorithm:
        raise MalformedSignatureError(
            f"algorithm '{algorithm}' does not match hashAlgorithm '{hash_algorithm.value}'",
            source=source,
            field="algorithm",
        )

    signature_bytes = _decode_b64(_require_str(document, "signatureData", source), "signatureData", source)
    digest_value = _decode_b64(_require_str(document, "packageHash", source), "packageHash", source)
    timestamp = _parse_time(_require_str(document, "timestamp", source), "timestamp", source)

    signer_doc = document["signer"]
    if not isinstance(signer_doc, dict):
        raise MalformedSignatureError("field 'signer' must be an object", source=source, field="signer")
    for key in _REQUIRED_SIGNER:
        _require(signer_doc, key, source, "signer.")

    try:
        signer = SignerIdentity(
            certificate_fingerprint=_require_str(signer_doc, "certificateFingerprint", source, "signer."),
            public_key_pem=_require_str(signer_doc, "publicKeyPem", source, "signer."),
            common_name=_optional_str(signer_doc, "commonName", source, "signer."),
            email=_optional_str(signer_doc, "email", source, "signer."),
            valid_from=_parse_time(
                _require_str(signer_doc, "validFrom", source, "signer."), "signer.validFrom", source
            ),
            valid_until=_parse_time(
                _require_str(signer_doc, "validUntil", source, "signer."), "signer.validUntil", source
            ),
        )
        return SignatureRecord(
            format_version=version,
            algorithm=algorithm,
            signature_bytes=signature_bytes,
            timestamp=timestamp,
            digest=ContentDigest(algorithm=hash_algorithm, value=digest_value),
            signer=signer,
        )
    except ValidationError as exc:
        raise MalformedSignatureError(f"invalid signature document: {exc}", source=source) from exc


def decode(data: bytes | str, *, source: str = "") -> SignatureRecord:
    """Parse signature bytes back into a ``SignatureRecord``.

    Raises
    ------
    MalformedSignatureError
        On invalid JSON, a missing required field, an unsupported
        ``formatVersion``, non-base64 signature data or inconsistent
        algorithm names.
    """
    try:
        text = data.decode("utf-8") if isinstance(data, bytes) else data
        document = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedSignatureError(f"not a JSON signature document: {exc}", source=source) from exc
    return document_to_record(document, source=source)


# ---------------------------------------------------------------------------
# Sidecar files
# ---------------------------------------------------------------------------


def sidecar_path(artifact_path: Path | str) -> Path:
    """``<artifact>.sig`` next to the artifact."""
    p = Path(artifact_path)
    return p.with_name(p.name + SIDECAR_SUFFIX)


def write_sidecar(artifact_path: Path | str, record: SignatureRecord) -> Path:
    """Atomically write *record* next to *artifact_path* and return its path."""
    target = sidecar_path(artifact_path)
    payload = encode(record)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    logger.info("Wrote signature sidecar %s.", target)
    return target


def read_sidecar(artifact_path: Path | str) -> SignatureRecord | None:
    """Load the sidecar for *artifact_path*, or ``None`` if there is none.

    Raises ``MalformedSignatureError`` if the sidecar exists but does not
    parse.
    """
    path = sidecar_path(artifact_path)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        logger.debug("No signature sidecar at %s.", path)
        return None
    return decode(data, source=str(path))

"""Certificate trust store — the single source of truth for signer trust.

Signature records never carry a trust flag; trust is a property of the
verifier's configuration and lives here.  The store holds public
certificate material only.

Two backends form a closed set selected by configuration:

* ``JsonFileTrustStore`` — one JSON document, rewritten atomically.
* ``SQLiteTrustStore`` — one table keyed by fingerprint, WAL journal mode.

Concurrency: readers never take the write lock.  Writers serialise on a
per-store ``threading.Lock`` so concurrent ``add``/``remove`` calls cannot
interleave their read-modify-write of the backing storage.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cryptography import x509

from sealwright.config import SealwrightSettings, TrustStoreBackend
from sealwright.core.certificate_authority import SigningCertificate, trusted_entry_from
from sealwright.core.errors import TrustStoreIOError
from sealwright.models.signatures import normalize_fingerprint
from sealwright.models.trust import TrustedCertificateEntry

logger = logging.getLogger(__name__)

TrustableCertificate = SigningCertificate | x509.Certificate | TrustedCertificateEntry


def _to_entry(cert: TrustableCertificate) -> TrustedCertificateEntry:
    if isinstance(cert, TrustedCertificateEntry):
        return cert
    return trusted_entry_from(cert)


class TrustStore(ABC):
    """Mapping of fingerprint -> ``TrustedCertificateEntry``."""

    def __init__(self) -> None:
        self._write_lock = threading.Lock()

    # -- Public API ----------------------------------------------------------

    def add(self, cert: TrustableCertificate) -> TrustedCertificateEntry:
        """Trust *cert*.  Re-adding a known fingerprint refreshes its metadata.

        Only public material is extracted, even from a ``SigningCertificate``
        that still holds its private key.
        """
        entry = _to_entry(cert)
        with self._write_lock:
            existed = self._upsert(entry)
        if existed:
            logger.info("Refreshed trusted certificate %s (%s).", entry.fingerprint, entry.subject)
        else:
            logger.info("Trusted certificate %s (%s).", entry.fingerprint, entry.subject)
        if entry.is_expired():
            logger.warning(
                "Trusted certificate %s expired at %s.", entry.fingerprint, entry.valid_until
            )
        return entry

    def remove(self, fingerprint: str) -> None:
        """Stop trusting *fingerprint*.  Absent fingerprints are a no-op."""
        key = normalize_fingerprint(fingerprint)
        with self._write_lock:
            removed = self._delete(key)
        if removed:
            logger.info("Removed trusted certificate %s.", key)
        else:
            logger.debug("Certificate %s was not trusted; nothing removed.", key)

    def list(self) -> list[TrustedCertificateEntry]:
        """All trusted entries in insertion order."""
        return self._all()

    def get(self, fingerprint: str) -> TrustedCertificateEntry | None:
        return self._lookup(normalize_fingerprint(fingerprint))

    def is_trusted(self, fingerprint: str) -> bool:
        if not fingerprint:
            return False
        return self.get(fingerprint) is not None

    def expired(self, at: datetime | None = None) -> list[TrustedCertificateEntry]:
        """Entries whose validity ended before *at* (default: now)."""
        moment = at or datetime.now(timezone.utc)
        return [e for e in self._all() if e.is_expired(moment)]

    def __len__(self) -> int:
        return len(self._all())

    def __contains__(self, fingerprint: object) -> bool:
        return isinstance(fingerprint, str) and self.is_trusted(fingerprint)

    # -- Backend hooks ------------------------------------------------------

    @abstractmethod
    def _upsert(self, entry: TrustedCertificateEntry) -> bool:
        """Insert or replace; return ``True`` if the fingerprint existed."""

    @abstractmethod
    def _delete(self, fingerprint: str) -> bool:
        """Delete; return ``True`` if something was removed."""

    @abstractmethod
    def _lookup(self, fingerprint: str) -> TrustedCertificateEntry | None:
        ...

    @abstractmethod
    def _all(self) -> list[TrustedCertificateEntry]:
        ...


# ---------------------------------------------------------------------------
# JSON file backend
# ---------------------------------------------------------------------------


class JsonFileTrustStore(TrustStore):
    """Trust store persisted as a single JSON document.

    The in-memory view is an immutable snapshot swapped in after each
    successful write, so readers see either the old or the new state and
    never a half-applied change.

    Parameters
    ----------
    path:
        JSON file location.  Created on first write.
    """

    def __init__(self, path: Path = Path(".sealwright/trust-store.json")) -> None:
        super().__init__()
        self._path = Path(path)
        self._entries: dict[str, TrustedCertificateEntry] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, TrustedCertificateEntry]:
        if not self._path.exists():
            logger.debug("No trust store at %s — starting empty.", self._path)
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            certificates = raw.get("certificates", []) if isinstance(raw, dict) else None
            if not isinstance(certificates, list):
                raise ValueError("'certificates' must be a list")
            entries = [TrustedCertificateEntry(**item) for item in certificates]
        except (OSError, ValueError, TypeError) as exc:
            raise TrustStoreIOError(f"Cannot read trust store: {exc}", path=self._path) from exc
        logger.info("Loaded %d trusted certificate(s) from %s.", len(entries), self._path)
        return {e.fingerprint: e for e in entries}

    def _persist(self, entries: dict[str, TrustedCertificateEntry]) -> None:
        document: dict[str, Any] = {
            "version": 1,
            "certificates": [e.model_dump(mode="json") for e in entries.values()],
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(document, fh, indent=2)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, self._path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
                raise
        except OSError as exc:
            raise TrustStoreIOError(f"Cannot write trust store: {exc}", path=self._path) from exc
        logger.debug("Persisted trust store to %s.", self._path)

    def _upsert(self, entry: TrustedCertificateEntry) -> bool:
        current = self._entries
        previous = current.get(entry.fingerprint)
        if previous is not None:
            # Identity (fingerprint, first-trusted time) is kept; metadata refreshed.
            entry = entry.model_copy(update={"added_at": previous.added_at})
        updated = dict(current)
        updated[entry.fingerprint] = entry
        self._persist(updated)
        self._entries = updated
        return previous is not None

    def _delete(self, fingerprint: str) -> bool:
        current = self._entries
        if fingerprint not in current:
            return False
        updated = {k: v for k, v in current.items() if k != fingerprint}
        self._persist(updated)
        self._entries = updated
        return True

    def _lookup(self, fingerprint: str) -> TrustedCertificateEntry | None:
        return self._entries.get(fingerprint)

    def _all(self) -> list[TrustedCertificateEntry]:
        return list(self._entries.values())


# ---------------------------------------------------------------------------
# SQLite backend
# ---------------------------------------------------------------------------

_CREATE_TRUSTED = """
CREATE TABLE IF NOT EXISTS trusted_certificates (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    fingerprint     TEXT NOT NULL UNIQUE,
    subject         TEXT NOT NULL,
    issuer          TEXT NOT NULL,
    valid_from      TEXT NOT NULL,
    valid_until     TEXT NOT NULL,
    public_key_pem  TEXT NOT NULL,
    added_at        TEXT NOT NULL
);
"""

_SELECT_COLUMNS = (
    "fingerprint, subject, issuer, valid_from, valid_until, public_key_pem, added_at"
)


class SQLiteTrustStore(TrustStore):
    """Trust store backed by a SQLite table.

    Each write runs in its own transaction; WAL journal mode lets readers
    proceed while a write is in flight.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Created if it does not exist.
    """

    def __init__(self, db_path: Path = Path(".sealwright/trust-store.db")) -> None:
        super().__init__()
        self._db_path = Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.execute(_CREATE_TRUSTED)
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise TrustStoreIOError(f"Cannot open trust store: {exc}", path=self._db_path) from exc

    @property
    def path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False, timeout=30)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @staticmethod
    def _row_to_entry(row: tuple[Any, ...]) -> TrustedCertificateEntry:
        return TrustedCertificateEntry(
            fingerprint=row[0],
            subject=row[1],
            issuer=row[2],
            valid_from=datetime.fromisoformat(row[3]),
            valid_until=datetime.fromisoformat(row[4]),
            public_key_pem=row[5],
            added_at=datetime.fromisoformat(row[6]),
        )

    def _upsert(self, entry: TrustedCertificateEntry) -> bool:
        try:
            with self._connect() as conn:
                existed = conn.execute(
                    "SELECT 1 FROM trusted_certificates WHERE fingerprint = ?",
                    (entry.fingerprint,),
                ).fetchone() is not None
                conn.execute(
                    """
                    INSERT INTO trusted_certificates
                        (fingerprint, subject, issuer, valid_from, valid_until,
                         public_key_pem, added_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(fingerprint) DO UPDATE SET
                        subject = excluded.subject,
                        issuer = excluded.issuer,
                        valid_from = excluded.valid_from,
                        valid_until = excluded.valid_until,
                        public_key_pem = excluded.public_key_pem
                    """,
                    (
                        entry.fingerprint,
                        entry.subject,
                        entry.issuer,
                        entry.valid_from.isoformat(),
                        entry.valid_until.isoformat(),
                        entry.public_key_pem,
                        entry.added_at.isoformat(),
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise TrustStoreIOError(f"Cannot write trust store: {exc}", path=self._db_path) from exc
        return existed

    def _delete(self, fingerprint: str) -> bool:
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    "DELETE FROM trusted_certificates WHERE fingerprint = ?",
                    (fingerprint,),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise TrustStoreIOError(f"Cannot write trust store: {exc}", path=self._db_path) from exc
        return cursor.rowcount > 0

    def _lookup(self, fingerprint: str) -> TrustedCertificateEntry | None:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM trusted_certificates WHERE fingerprint = ?",
                    (fingerprint,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise TrustStoreIOError(f"Cannot read trust store: {exc}", path=self._db_path) from exc
        return self._row_to_entry(row) if row else None

    def _all(self) -> list[TrustedCertificateEntry]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT {_SELECT_COLUMNS} FROM trusted_certificates ORDER BY id ASC"
                ).fetchall()
        except sqlite3.Error as exc:
            raise TrustStoreIOError(f"Cannot read trust store: {exc}", path=self._db_path) from exc
        return [self._row_to_entry(row) for row in rows]


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


def open_trust_store(settings: SealwrightSettings) -> TrustStore:
    """Open the trust store backend named by *settings*."""
    if settings.trust_store_backend is TrustStoreBackend.SQLITE:
        return SQLiteTrustStore(settings.trust_store_path)
    return JsonFileTrustStore(settings.trust_store_path)

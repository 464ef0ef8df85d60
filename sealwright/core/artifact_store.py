"""Artifact store collaborator — read-only access to package bytes.

The signing core only needs two capabilities from wherever packages live:
``open_read(path)`` and ``exists(path)``.  Artifacts are never mutated by
this core.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable

from sealwright.core.errors import ArtifactNotFoundError
from sealwright.core.hasher import DEFAULT_CHUNK_SIZE, digest_stream
from sealwright.models.signatures import ContentDigest, HashAlgorithm


@runtime_checkable
class ArtifactStore(Protocol):
    """Readable byte source for package artifacts."""

    def open_read(self, path: Path) -> BinaryIO:
        ...

    def exists(self, path: Path) -> bool:
        ...


class FileSystemArtifactStore:
    """Artifacts addressed by local filesystem path.

    Parameters
    ----------
    base_path:
        Optional root.  Relative artifact paths are resolved against it;
        absolute paths are used as-is.
    """

    def __init__(self, base_path: Path | None = None) -> None:
        self._base = Path(base_path) if base_path is not None else None

    def resolve(self, path: Path | str) -> Path:
        """Local path of *path* under this store."""
        p = Path(path)
        if self._base is not None and not p.is_absolute():
            return self._base / p
        return p

    def exists(self, path: Path | str) -> bool:
        return self.resolve(path).is_file()

    def open_read(self, path: Path | str) -> BinaryIO:
        resolved = self.resolve(path)
        try:
            return resolved.open("rb")
        except (FileNotFoundError, IsADirectoryError):
            raise ArtifactNotFoundError(resolved) from None


def compute_artifact_digest(
    store: ArtifactStore,
    artifact_path: Path,
    algorithm: HashAlgorithm,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel: threading.Event | None = None,
) -> ContentDigest:
    """Stream *artifact_path* out of *store* and digest it.

    Raises ``ArtifactNotFoundError`` when the store does not hold the
    artifact and ``OperationCancelledError`` when *cancel* fires.
    """
    if not store.exists(artifact_path):
        raise ArtifactNotFoundError(artifact_path)
    with store.open_read(artifact_path) as stream:
        return digest_stream(
            stream,
            algorithm,
            chunk_size=chunk_size,
            cancel=cancel,
            label=artifact_path,
        )

"""Streaming content hashing.

Artifacts are hashed in fixed-size chunks so arbitrarily large packages
never need to be buffered in memory.  Each call owns its hash object; no
hashing state is shared between concurrent calls.
"""

from __future__ import annotations

import hashlib
import threading
from pathlib import Path
from typing import Any, BinaryIO

from sealwright.core.errors import OperationCancelledError
from sealwright.models.signatures import ContentDigest, HashAlgorithm

DEFAULT_CHUNK_SIZE = 1024 * 1024


def new_hash(algorithm: HashAlgorithm) -> Any:
    """Return a fresh hashlib object for *algorithm*."""
    return hashlib.new(algorithm.hashlib_name)


def digest_bytes(data: bytes, algorithm: HashAlgorithm = HashAlgorithm.SHA256) -> ContentDigest:
    """Digest an in-memory byte string."""
    h = new_hash(algorithm)
    h.update(data)
    return ContentDigest(algorithm=algorithm, value=h.digest())


def digest_stream(
    stream: BinaryIO,
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel: threading.Event | None = None,
    label: Path | str = "<stream>",
) -> ContentDigest:
    """Digest a readable binary stream chunk by chunk.

    Parameters
    ----------
    stream:
        An open binary stream positioned at the start of the content.
    algorithm:
        The hash algorithm to apply.
    chunk_size:
        Bytes read per iteration.
    cancel:
        Optional event checked before every read.  When set, the loop is
        abandoned and ``OperationCancelledError`` is raised.
    label:
        Artifact path used in the cancellation error.
    """
    h = new_hash(algorithm)
    while True:
        if cancel is not None and cancel.is_set():
            raise OperationCancelledError(label)
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        h.update(chunk)
    return ContentDigest(algorithm=algorithm, value=h.digest())

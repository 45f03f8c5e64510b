"""SHA-256 content digests.

A digest is the lowercase hex SHA-256 of the exact bytes it describes. It is
used both as an integrity check and as the content store's file name.
"""

from __future__ import annotations

import hashlib
import hmac
from pathlib import Path
from typing import BinaryIO

_CHUNK_SIZE = 64 * 1024


def of_buffer(data: bytes) -> str:
    """Return the hex digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def of_stream(stream: BinaryIO) -> str:
    h = hashlib.sha256()
    for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
        h.update(chunk)
    return h.hexdigest()


def of_file(path: str | Path) -> str:
    """Return the hex digest of the raw bytes of the file at *path*."""
    with open(path, "rb") as f:
        return of_stream(f)


def verify(data: bytes, expected: str) -> bool:
    """True when *data* hashes to *expected* (compared in constant time)."""
    return hmac.compare_digest(of_buffer(data), expected.strip().lower())

"""Content fingerprints.

Both sides of a run fingerprint file content the way git does, so an
identity read from the source tree can be compared with one computed
from the store without keeping whole files in memory.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

_HASH_CHUNK_SIZE = 65536


def _blob_hasher(size: int) -> hashlib._Hash:
    """Return a SHA-1 hasher pre-loaded with the git blob header.

    Git blob OID = SHA-1(``blob <size>\\0`` + content).
    """
    return hashlib.sha1(f"blob {size}\0".encode())


def _data_oid(data: bytes) -> str:
    """Compute the git blob OID of in-memory *data*."""
    h = _blob_hasher(len(data))
    h.update(data)
    return h.hexdigest()


def _file_oid(full: Path) -> str:
    """Compute the git blob OID of a local file by streaming through SHA-1.

    Regular files are streamed in chunks to avoid loading entire
    contents into memory.
    """
    size = full.stat().st_size
    h = _blob_hasher(size)
    with open(full, "rb") as f:
        while True:
            chunk = f.read(_HASH_CHUNK_SIZE)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()

"""Content-addressed, immutable blob directory.

Storage layout: {base_path}/{hex[0:2]}/{hex}
Blobs are addressed by ``<base64 sha256>.sha256`` ids.
No delete method: blobs are immutable once stored.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from treos_deploy.core.hasher import blob_hex, encode_digest


class BlobDirectory:
    """SHA-256 keyed, immutable blob store on the local filesystem.

    Every blob is stored under its SHA-256 digest. Storing the same
    content twice is a no-op (idempotent). There is no update or delete.

    Parameters
    ----------
    base_path:
        Root directory for blob storage.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    def _blob_path(self, hex_digest: str) -> Path:
        return self._base / hex_digest[:2] / hex_digest

    def path_for(self, blob: str) -> Path:
        """Storage path of a blob id (which may not exist yet)."""
        return self._blob_path(blob_hex(blob))

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def open_writer(self) -> BlobWriter:
        """Start an incremental write; commit() moves the blob into place."""
        return BlobWriter(self)

    def add_chunks(self, chunks: Iterable[bytes]) -> str:
        """Write chunks and return the blob id of the written content."""
        writer = self.open_writer()
        try:
            for chunk in chunks:
                writer.write(chunk)
        except BaseException:
            writer.abort()
            raise
        return writer.commit()

    def add(self, data: bytes) -> str:
        """Store raw bytes and return the blob id."""
        return self.add_chunks([data])

    # ------------------------------------------------------------------
    # Read and verify
    # ------------------------------------------------------------------

    def has(self, blob: str) -> bool:
        """Check if a blob exists. Ids that are not sha256 never exist."""
        try:
            return self.path_for(blob).exists()
        except ValueError:
            return False

    def get(self, blob: str) -> bytes:
        path = self.path_for(blob)
        if not path.exists():
            raise FileNotFoundError(f"Blob not found: {blob}")
        return path.read_bytes()

    def verify(self, blob: str) -> bool:
        """Re-hash stored bytes and compare against the blob id."""
        try:
            hex_digest = blob_hex(blob)
        except ValueError:
            return False
        path = self._blob_path(hex_digest)
        if not path.exists():
            return False
        return hashlib.sha256(path.read_bytes()).hexdigest() == hex_digest


class BlobWriter:
    """Streams one blob into a temp file inside the blob directory.

    The blob id is only known once all bytes are written, so the file is
    renamed to its content address on commit. Committing content that is
    already stored discards the temp file.
    """

    def __init__(self, directory: BlobDirectory) -> None:
        self._directory = directory
        self._hasher = hashlib.sha256()
        fd, self._tmp_name = tempfile.mkstemp(dir=directory._base, prefix=".incoming-")
        self._fh = os.fdopen(fd, "wb")

    def write(self, chunk: bytes) -> None:
        self._hasher.update(chunk)
        self._fh.write(chunk)

    def commit(self) -> str:
        self._fh.close()
        digest = self._hasher.digest()
        dest = self._directory._blob_path(digest.hex())
        try:
            if dest.exists():
                os.unlink(self._tmp_name)
            else:
                dest.parent.mkdir(parents=True, exist_ok=True)
                os.replace(self._tmp_name, dest)
        except BaseException:
            self.abort()
            raise
        return encode_digest(digest)

    def abort(self) -> None:
        self._fh.close()
        if os.path.exists(self._tmp_name):
            os.unlink(self._tmp_name)

"""Tests for BlobDirectory: content addressing, idempotence, streaming writes."""

from __future__ import annotations

from pathlib import Path

import pytest

from treos_deploy.core.hasher import blob_id, sha256_hex
from treos_deploy.store.blobs import BlobDirectory


@pytest.fixture
def blobs(tmp_path: Path) -> BlobDirectory:
    return BlobDirectory(tmp_path / "blobs")


class TestBlobDirectory:
    def test_add_and_get(self, blobs: BlobDirectory):
        data = b"hello treos"
        blob = blobs.add(data)
        assert blob == blob_id(data)
        assert blobs.get(blob) == data
        assert blobs.get(f"&{blob}") == data

    def test_layout_uses_hex_prefix(self, blobs: BlobDirectory, tmp_path: Path):
        data = b"layout"
        blob = blobs.add(data)
        hex_digest = sha256_hex(data)
        assert blobs.path_for(blob) == tmp_path / "blobs" / hex_digest[:2] / hex_digest
        assert blobs.path_for(blob).read_bytes() == data

    def test_idempotent_add(self, blobs: BlobDirectory, tmp_path: Path):
        assert blobs.add(b"twice") == blobs.add(b"twice")
        assert not list((tmp_path / "blobs").glob(".incoming-*"))

    def test_chunks_hash_like_whole_content(self, blobs: BlobDirectory):
        assert blobs.add_chunks([b"ab", b"", b"cd"]) == blob_id(b"abcd")

    def test_has(self, blobs: BlobDirectory):
        blob = blobs.add(b"present")
        assert blobs.has(blob)
        assert blobs.has(f"&{blob}")
        assert not blobs.has(blob_id(b"absent"))
        assert not blobs.has("not-a-blob-id")

    def test_get_missing(self, blobs: BlobDirectory):
        with pytest.raises(FileNotFoundError):
            blobs.get(blob_id(b"absent"))

    def test_verify_detects_corruption(self, blobs: BlobDirectory):
        blob = blobs.add(b"original")
        assert blobs.verify(blob)
        blobs.path_for(blob).write_bytes(b"tampered")
        assert not blobs.verify(blob)
        assert not blobs.verify("garbage")

    def test_aborted_writer_leaves_nothing(self, blobs: BlobDirectory, tmp_path: Path):
        writer = blobs.open_writer()
        writer.write(b"partial")
        writer.abort()
        assert not any(p.is_file() for p in (tmp_path / "blobs").rglob("*"))

"""Artifact verification against the content-addressed store.

Flattens the issue into artifact records, checks each checksum against the
store, uploads the ones that are missing, and insists that the digest the
store computed equals the declared checksum. Either every artifact is
confirmed or the whole verification fails.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path

from treos_deploy.core.errors import ArtifactNotFoundError, IntegrityError
from treos_deploy.core.hasher import normalize_blob_id
from treos_deploy.models.artifacts import ArtifactRecord
from treos_deploy.models.issue import (
    CATEGORY_KINDS,
    SHRINKWRAP_NAME,
    ArtifactKind,
    IssueDescriptor,
)
from treos_deploy.store import ContentStore

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


async def iter_file(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Stream a file in chunks, reading in a worker thread."""
    with open(path, "rb") as fh:
        while True:
            chunk = await asyncio.to_thread(fh.read, chunk_size)
            if not chunk:
                break
            yield chunk


def checksums_match(actual: str, expected: str) -> bool:
    """Exact comparison, ignoring only the optional ``&`` blob sigil."""
    return normalize_blob_id(actual) == normalize_blob_id(expected)


class ArtifactVerifier:
    """Confirms every artifact of an issue is present in a store.

    Parameters
    ----------
    source_root:
        Directory that artifact paths in the issue are relative to.
    chunk_size:
        Read size used when streaming uploads.
    """

    def __init__(self, source_root: Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.source_root = Path(source_root)
        self._chunk_size = chunk_size

    def flatten(self, issue: IssueDescriptor) -> list[ArtifactRecord]:
        """Artifact records in upload order: categories, then the shrinkwrap."""
        records: list[ArtifactRecord] = []
        for kind in CATEGORY_KINDS:
            for key, entry in issue.category(kind).items():
                records.append(
                    ArtifactRecord(
                        name=key,
                        kind=kind,
                        path=self._resolve(entry.path),
                        checksum=entry.checksum,
                        size=entry.size,
                    )
                )
        records.append(
            ArtifactRecord(
                name=SHRINKWRAP_NAME,
                kind=ArtifactKind.SHRINKWRAP,
                path=self._resolve(issue.shrinkwrap.path),
                checksum=issue.shrinkwrap.checksum,
                size=issue.shrinkwrap.size,
            )
        )
        return records

    def _resolve(self, path: str) -> Path:
        return (self.source_root / path).resolve()

    async def verify(self, issue: IssueDescriptor, store: ContentStore) -> list[ArtifactRecord]:
        """Check and upload every artifact of *issue*, in manifest order.

        Returns the records with ``exists`` telling whether each was already
        in the store. Raises IntegrityError on the first digest mismatch.
        """
        confirmed: list[ArtifactRecord] = []
        for record in self.flatten(issue):
            has = await store.exists(record.checksum)
            logger.info(
                "File %s does %salready exist as a blob", record.name, "" if has else "not "
            )
            if not has:
                await self._upload(record, store)
            confirmed.append(record.model_copy(update={"exists": has}))
        return confirmed

    async def _upload(self, record: ArtifactRecord, store: ContentStore) -> None:
        if not record.path.is_file():
            raise ArtifactNotFoundError(record.name, str(record.path), record.checksum)
        try:
            digest = await store.ingest(iter_file(record.path, self._chunk_size))
        except OSError as exc:
            raise ArtifactNotFoundError(record.name, str(record.path), record.checksum) from exc
        if not checksums_match(digest, record.checksum):
            raise IntegrityError(record.name, digest, record.checksum)
        logger.info("%s: upload complete", record.name)

"""Local, directory-backed content store.

Layout::

    <root>/blobs/<hex[0:2]>/<hex>   blob bytes
    <root>/messages.db              signed, append-only message log

Useful for offline deployments and as the reference backend in tests. File
and SQLite work runs in worker threads so the event loop stays free for the
concurrent repository queries.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from treos_deploy.core.errors import NetworkError, PublishError
from treos_deploy.core.identity import Identity
from treos_deploy.store.blobs import BlobDirectory
from treos_deploy.store.messages import MessageLog
from treos_deploy.models.records import PublishedMessage, StoredMessage

logger = logging.getLogger(__name__)


class LocalContentStore:
    """``ContentStore`` over a local directory.

    Parameters
    ----------
    root:
        Store directory. Created on first use.
    identity:
        Author of everything this session publishes.
    """

    def __init__(self, root: Path, identity: Identity) -> None:
        self.root = Path(root)
        self._identity = identity
        self._blobs: BlobDirectory | None = None
        self._log: MessageLog | None = None
        self._closed = False

    def _open(self) -> tuple[BlobDirectory, MessageLog]:
        if self._closed:
            raise NetworkError(f"store session for {self.root} is closed")
        if self._blobs is None or self._log is None:
            try:
                self._blobs = BlobDirectory(self.root / "blobs")
                self._log = MessageLog(self.root / "messages.db")
            except (OSError, sqlite3.Error) as exc:
                raise NetworkError(f"cannot open store at {self.root}: {exc}") from exc
            logger.debug("Opened local store %s", self.root)
        return self._blobs, self._log

    @property
    def blobs(self) -> BlobDirectory:
        return self._open()[0]

    @property
    def log(self) -> MessageLog:
        return self._open()[1]

    # ------------------------------------------------------------------
    # Blobs
    # ------------------------------------------------------------------

    async def exists(self, checksum: str) -> bool:
        blobs = self._open()[0]
        return await asyncio.to_thread(blobs.has, checksum)

    async def ingest(self, chunks: AsyncIterator[bytes]) -> str:
        blobs = self._open()[0]
        try:
            writer = await asyncio.to_thread(blobs.open_writer)
        except OSError as exc:
            raise NetworkError(f"blob write failed in {self.root}: {exc}") from exc
        try:
            async for chunk in chunks:
                await asyncio.to_thread(writer.write, chunk)
            return await asyncio.to_thread(writer.commit)
        except OSError as exc:
            writer.abort()
            raise NetworkError(f"blob write failed in {self.root}: {exc}") from exc
        except BaseException:
            writer.abort()
            raise

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def scan_by_type(self, record_type: str) -> AsyncIterator[StoredMessage]:
        log = self._open()[1]
        try:
            messages = await asyncio.to_thread(log.messages_by_type, record_type)
        except sqlite3.Error as exc:
            raise NetworkError(f"message scan failed in {self.root}: {exc}") from exc
        for message in messages:
            yield message

    async def publish(self, content: dict[str, Any]) -> PublishedMessage:
        log = self._open()[1]
        try:
            return await asyncio.to_thread(log.append, self._identity, content)
        except ValueError as exc:
            raise PublishError(f"record rejected: {exc}") from exc
        except sqlite3.Error as exc:
            raise PublishError(f"record not appended to {self.root}: {exc}") from exc

    async def verify_feed(self, author: str | None = None) -> bool:
        log = self._open()[1]
        return await asyncio.to_thread(log.verify_feed, author or self._identity.id)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        self._closed = True
        self._blobs = None
        self._log = None

    async def __aenter__(self) -> LocalContentStore:
        self._open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

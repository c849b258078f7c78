"""Content store contract and backend selection.

All backends implement the ``ContentStore`` protocol: blob existence by
checksum, streamed blob ingestion, a scan of committed records by type, and
an append-only publish. A store is an async context manager; the pipeline
opens one session per phase and closes it when the phase ends.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from treos_deploy.core.identity import Identity
from treos_deploy.models.records import PublishedMessage, StoredMessage


@runtime_checkable
class ContentStore(Protocol):
    """Protocol that every store backend must implement.

    Every method may raise ``NetworkError`` when the session fails;
    ``publish`` raises ``PublishError`` when the store rejects the record.
    """

    async def exists(self, checksum: str) -> bool:
        """Return True if a blob with this checksum is already stored."""
        ...

    async def ingest(self, chunks: AsyncIterator[bytes]) -> str:
        """Store the streamed bytes and return the digest the store computed."""
        ...

    def scan_by_type(self, record_type: str) -> AsyncIterator[StoredMessage]:
        """Yield every committed record of *record_type*, in publish order."""
        ...

    async def publish(self, content: dict[str, Any]) -> PublishedMessage:
        """Append *content* as a new record authored by the local identity."""
        ...

    async def aclose(self) -> None:
        ...

    async def __aenter__(self) -> ContentStore:
        ...

    async def __aexit__(self, *exc_info: object) -> None:
        ...


StoreFactory = Callable[[], ContentStore]


def is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def open_store(
    location: str,
    identity: Identity,
    *,
    timeout: float = 30.0,
) -> ContentStore:
    """Create a store session for *location*.

    ``http://`` and ``https://`` locations use the HTTP client; anything
    else is treated as the directory of a local store.
    """
    if is_remote(location):
        from treos_deploy.store.http import HttpContentStore

        return HttpContentStore(location, identity, timeout=timeout)

    from treos_deploy.store.local import LocalContentStore

    return LocalContentStore(Path(location).expanduser(), identity)


def store_factory(location: str, identity: Identity, *, timeout: float = 30.0) -> StoreFactory:
    """Bind a location so each pipeline phase can open a fresh session."""

    def _open() -> ContentStore:
        return open_store(location, identity, timeout=timeout)

    return _open

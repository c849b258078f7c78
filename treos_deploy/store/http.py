"""HTTP client for a remote content store.

Wire contract (client side)::

    HEAD /blobs/{checksum}      200 present, 404 absent
    POST /blobs                 streamed body -> {"digest": "..."}
    GET  /messages?type=T       newline-delimited JSON messages
    POST /messages              {"author", "content", "signature"} -> message

Messages are ``{"key", "author", "timestamp", "content", "previous"?}``.
Transport failures and unexpected statuses raise ``NetworkError``; a
rejected publish raises ``PublishError``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from treos_deploy import __version__
from treos_deploy.core.errors import NetworkError, PublishError
from treos_deploy.core.identity import Identity, sign_content
from treos_deploy.models.records import PublishedMessage, StoredMessage

logger = logging.getLogger(__name__)

AUTHOR_HEADER = "X-Treos-Author"


class HttpContentStore:
    """``ContentStore`` over HTTP, one ``httpx.AsyncClient`` per session.

    Parameters
    ----------
    base_url:
        Root URL of the store, e.g. ``http://localhost:8008``.
    identity:
        Author of everything this session publishes.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional custom transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        identity: Identity,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._identity = identity
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "User-Agent": f"treos-deploy/{__version__}",
                AUTHOR_HEADER: identity.id,
            },
        )

    def _network_error(self, action: str, exc: httpx.HTTPError) -> NetworkError:
        return NetworkError(f"{action} failed against {self.base_url}: {exc}")

    def _unexpected(self, action: str, response: httpx.Response) -> NetworkError:
        return NetworkError(
            f"{action} failed against {self.base_url}: "
            f"HTTP {response.status_code} {response.text.strip()[:200]}"
        )

    # ------------------------------------------------------------------
    # Blobs
    # ------------------------------------------------------------------

    async def exists(self, checksum: str) -> bool:
        try:
            response = await self._client.head(f"/blobs/{quote(checksum, safe='')}")
        except httpx.HTTPError as exc:
            raise self._network_error("blob lookup", exc) from exc
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise self._unexpected("blob lookup", response)

    async def ingest(self, chunks: AsyncIterator[bytes]) -> str:
        try:
            response = await self._client.post(
                "/blobs",
                content=chunks,
                headers={"Content-Type": "application/octet-stream"},
            )
        except httpx.HTTPError as exc:
            raise self._network_error("blob upload", exc) from exc
        if response.status_code not in (200, 201):
            raise self._unexpected("blob upload", response)
        try:
            return str(response.json()["digest"])
        except (ValueError, KeyError, TypeError) as exc:
            raise NetworkError(
                f"blob upload to {self.base_url} returned no digest: {response.text[:200]}"
            ) from exc

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def scan_by_type(self, record_type: str) -> AsyncIterator[StoredMessage]:
        try:
            async with self._client.stream(
                "GET", "/messages", params={"type": record_type}
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise self._unexpected("message scan", response)
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        yield StoredMessage.model_validate(json.loads(line))
                    except (ValueError, ValidationError) as exc:
                        raise NetworkError(
                            f"malformed message in scan from {self.base_url}: {exc}"
                        ) from exc
        except httpx.HTTPError as exc:
            raise self._network_error("message scan", exc) from exc

    async def publish(self, content: dict[str, Any]) -> PublishedMessage:
        body = {
            "author": self._identity.id,
            "content": content,
            "signature": sign_content(self._identity, content),
        }
        try:
            response = await self._client.post("/messages", json=body)
        except httpx.HTTPError as exc:
            raise self._network_error("publish", exc) from exc
        if response.status_code >= 400:
            raise PublishError(
                f"store rejected record: HTTP {response.status_code} "
                f"{response.text.strip()[:200]}"
            )
        try:
            return PublishedMessage.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise PublishError(f"store returned a malformed message: {exc}") from exc

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpContentStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

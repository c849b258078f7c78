"""Canonical hashing helpers for blob ids and message keys.

Blob ids and message keys use the store's textual form: the base64 SHA-256
digest followed by a ``.sha256`` suffix. Blobs may carry a leading ``&``
sigil and messages a leading ``%``.
"""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any

BLOB_SIGIL = "&"
MESSAGE_SIGIL = "%"
HASH_SUFFIX = ".sha256"


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes: deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def encode_digest(digest: bytes) -> str:
    """Render a raw SHA-256 digest as ``<base64>.sha256``."""
    return base64.b64encode(digest).decode("ascii") + HASH_SUFFIX


def blob_id(data: bytes) -> str:
    """Blob id of raw bytes, without the ``&`` sigil."""
    return encode_digest(hashlib.sha256(data).digest())


def message_key(message: dict[str, Any]) -> str:
    """Content-address a message dict as ``%<base64>.sha256``."""
    return MESSAGE_SIGIL + encode_digest(
        hashlib.sha256(canonical_json_bytes(message)).digest()
    )


def normalize_blob_id(value: str) -> str:
    """Strip the ``&`` sigil so declared and returned ids compare directly."""
    return value.strip().removeprefix(BLOB_SIGIL)


def blob_hex(value: str) -> str:
    """Hex form of a blob id, used for on-disk layout.

    Raises ValueError when the id is not ``<base64>.sha256``.
    """
    bare = normalize_blob_id(value)
    if not bare.endswith(HASH_SUFFIX):
        raise ValueError(f"not a sha256 blob id: {value!r}")
    raw = base64.b64decode(bare[: -len(HASH_SUFFIX)], validate=True)
    if len(raw) != hashlib.sha256().digest_size:
        raise ValueError(f"not a sha256 blob id: {value!r}")
    return raw.hex()

"""Local identity: the Ed25519 secret that authors published records.

The secret file is JSON with optional ``#`` comment lines::

    {
      "curve": "ed25519",
      "public": "<base64>.ed25519",
      "private": "<base64>.ed25519",
      "id": "@<base64>.ed25519"
    }

``private`` holds the 64-byte libsodium secret key (seed followed by the
public key). The identity is loaded once at startup and passed explicitly to
the components that need it; it is never mutated.

Signatures use PyNaCl (libsodium) and are rendered as ``<base64>.sig.ed25519``.
"""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Any

import nacl.signing
from nacl.exceptions import BadSignatureError
from pydantic import BaseModel, ConfigDict

from treos_deploy.core.errors import ConfigError
from treos_deploy.core.hasher import canonical_json_bytes

logger = logging.getLogger(__name__)

_CURVE = "ed25519"
_KEY_SUFFIX = ".ed25519"
_SIG_SUFFIX = ".sig.ed25519"


class Identity(BaseModel):
    """A loaded signing identity."""

    model_config = ConfigDict(frozen=True)

    id: str
    public: str
    private: str
    curve: str = _CURVE

    def __repr__(self) -> str:
        # never leak the private key into logs or tracebacks
        return f"Identity(id={self.id!r})"

    __str__ = __repr__


def _decode_key(value: str) -> bytes:
    return base64.b64decode(value.removesuffix(_KEY_SUFFIX), validate=True)


def _encode_key(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii") + _KEY_SUFFIX


def generate_identity() -> Identity:
    """Create a fresh Ed25519 identity."""
    sk = nacl.signing.SigningKey.generate()
    public = _encode_key(sk.verify_key.encode())
    return Identity(
        id=f"@{public}",
        public=public,
        private=_encode_key(sk.encode() + sk.verify_key.encode()),
    )


def dump_identity(identity: Identity) -> str:
    """Serialize an identity in secret-file form."""
    body = json.dumps(identity.model_dump(), indent=2)
    return (
        "# this is your SECRET name.\n"
        "# do not show it to anyone.\n"
        f"{body}\n"
    )


def load_identity(path: Path) -> Identity:
    """Read the secret file at *path*.

    Raises ConfigError when the file is missing, malformed, or not an
    Ed25519 key.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read secret {path}: {exc.strerror or exc}") from exc

    body = "\n".join(
        line for line in text.splitlines() if not line.lstrip().startswith("#")
    )
    try:
        data = json.loads(body)
        identity = Identity.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Malformed secret {path}: {exc}") from exc

    if identity.curve != _CURVE:
        raise ConfigError(f"Unsupported key curve {identity.curve!r} in {path}")
    try:
        secret = _decode_key(identity.private)
        public = _decode_key(identity.public)
    except ValueError as exc:
        raise ConfigError(f"Key in {path} is not base64") from exc
    if len(secret) != 64:
        raise ConfigError(f"Secret key in {path} has the wrong length")
    # the second half of an Ed25519 secret is its public key
    if public != secret[32:] or identity.id != f"@{identity.public}":
        raise ConfigError(f"Public key in {path} does not match its secret key")

    logger.debug("Loaded identity %s", identity.id[:8])
    return identity


def _signing_key(identity: Identity) -> nacl.signing.SigningKey:
    return nacl.signing.SigningKey(_decode_key(identity.private)[:32])


def sign_content(identity: Identity, content: Any) -> str:
    """Sign the canonical JSON of *content*."""
    signed = _signing_key(identity).sign(canonical_json_bytes(content))
    return base64.b64encode(signed.signature).decode("ascii") + _SIG_SUFFIX


def verify_content(public: str, content: Any, signature: str) -> bool:
    """Return True if *signature* is valid for *content* under *public*.

    *public* may be a bare key or an ``@``-prefixed id. Malformed keys or
    signatures verify as False.
    """
    if not signature:
        return False
    try:
        vk = nacl.signing.VerifyKey(_decode_key(public.removeprefix("@")))
        sig = base64.b64decode(signature.removesuffix(_SIG_SUFFIX), validate=True)
        vk.verify(canonical_json_bytes(content), sig)
        return True
    except (BadSignatureError, ValueError):
        return False

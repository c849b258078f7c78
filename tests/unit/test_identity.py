"""Tests for the local identity: secret file parsing, signing, verification."""

from __future__ import annotations

import base64
import json
from pathlib import Path

import pytest

from treos_deploy.core.errors import ConfigError
from treos_deploy.core.identity import (
    Identity,
    dump_identity,
    generate_identity,
    load_identity,
    sign_content,
    verify_content,
)


class TestIdentityFile:
    def test_generated_identity_shape(self, identity: Identity):
        assert identity.id == f"@{identity.public}"
        assert identity.public.endswith(".ed25519")
        assert identity.curve == "ed25519"

    def test_round_trip_through_secret_file(self, tmp_path: Path, identity: Identity):
        secret = tmp_path / "secret"
        secret.write_text(dump_identity(identity), encoding="utf-8")
        assert secret.read_text(encoding="utf-8").startswith("#")
        assert load_identity(secret) == identity

    def test_repr_hides_private_key(self, identity: Identity):
        assert identity.private not in repr(identity)
        assert identity.private not in str(identity)

    def test_missing_secret(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Cannot read secret"):
            load_identity(tmp_path / "nope")

    def test_malformed_secret(self, tmp_path: Path):
        secret = tmp_path / "secret"
        secret.write_text("# comment\n{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Malformed secret"):
            load_identity(secret)

    def test_incomplete_secret(self, tmp_path: Path):
        secret = tmp_path / "secret"
        secret.write_text(json.dumps({"curve": "ed25519"}), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_identity(secret)

    def test_unsupported_curve(self, tmp_path: Path, identity: Identity):
        secret = tmp_path / "secret"
        secret.write_text(
            json.dumps({**identity.model_dump(), "curve": "k256"}), encoding="utf-8"
        )
        with pytest.raises(ConfigError, match="Unsupported key curve"):
            load_identity(secret)

    def test_short_private_key(self, tmp_path: Path, identity: Identity):
        short = base64.b64encode(b"\x01" * 32).decode("ascii") + ".ed25519"
        secret = tmp_path / "secret"
        secret.write_text(
            json.dumps({**identity.model_dump(), "private": short}), encoding="utf-8"
        )
        with pytest.raises(ConfigError, match="wrong length"):
            load_identity(secret)

    def test_mismatched_public_key(
        self, tmp_path: Path, identity: Identity, other_identity: Identity
    ):
        secret = tmp_path / "secret"
        secret.write_text(
            json.dumps(
                {**identity.model_dump(), "id": other_identity.id, "public": other_identity.public}
            ),
            encoding="utf-8",
        )
        with pytest.raises(ConfigError, match="does not match"):
            load_identity(secret)

    def test_id_must_name_public_key(
        self, tmp_path: Path, identity: Identity, other_identity: Identity
    ):
        secret = tmp_path / "secret"
        secret.write_text(
            json.dumps({**identity.model_dump(), "id": other_identity.id}), encoding="utf-8"
        )
        with pytest.raises(ConfigError, match="does not match"):
            load_identity(secret)


class TestSignatures:
    def test_sign_and_verify(self, identity: Identity):
        content = {"type": "system", "name": "kiosk"}
        signature = sign_content(identity, content)
        assert signature.endswith(".sig.ed25519")
        assert verify_content(identity.id, content, signature)
        assert verify_content(identity.public, content, signature)

    def test_signature_covers_content(self, identity: Identity):
        signature = sign_content(identity, {"name": "kiosk"})
        assert not verify_content(identity.id, {"name": "kiosk2"}, signature)

    def test_signature_bound_to_key(self, identity: Identity):
        other = generate_identity()
        signature = sign_content(identity, {"name": "kiosk"})
        assert not verify_content(other.id, {"name": "kiosk"}, signature)

    @pytest.mark.parametrize("signature", ["", "garbage", "AAAA.sig.ed25519"])
    def test_malformed_signature_is_invalid(self, identity: Identity, signature: str):
        assert not verify_content(identity.id, {"name": "kiosk"}, signature)

"""Tests for configuration: env-driven settings and the .trerc file."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from treos_deploy.config import DeploySettings, TreConf, find_trerc, load_tre_conf
from treos_deploy.core.errors import ConfigError

TRE = {"branches": {"root": "%root.sha256", "systems": "%systems.sha256"}}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("LOG_LEVEL", "DEBUG", "STORE", "TRERC", "NAME", "DESCRIPTION", "HTTP_TIMEOUT"):
        monkeypatch.delenv(f"TREOS_{name}", raising=False)
    monkeypatch.chdir(tmp_path)


def _write_trerc(directory: Path, **data) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / ".trerc"
    path.write_text(json.dumps({"tre": TRE, **data}), encoding="utf-8")
    return path


class TestDeploySettings:
    def test_defaults(self):
        settings = DeploySettings()
        assert settings.log_level == "INFO"
        assert settings.debug is False
        assert settings.store is None
        assert settings.http_timeout == 30.0
        assert settings.chunk_size == 64 * 1024

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TREOS_STORE", "/srv/tre-store")
        monkeypatch.setenv("TREOS_DEBUG", "true")
        monkeypatch.setenv("TREOS_HTTP_TIMEOUT", "2.5")
        settings = DeploySettings()
        assert settings.store == "/srv/tre-store"
        assert settings.debug is True
        assert settings.http_timeout == 2.5

    def test_dotenv_file(self, tmp_path: Path):
        (tmp_path / ".env").write_text("TREOS_NAME=kiosk\n", encoding="utf-8")
        assert DeploySettings().name == "kiosk"


class TestTrerc:
    def test_found_in_parent(self, tmp_path: Path):
        path = _write_trerc(tmp_path / "net", store="store")
        nested = tmp_path / "net" / "kiosk" / "out"
        nested.mkdir(parents=True)
        assert find_trerc(nested) == path.resolve()

    def test_not_found(self, tmp_path: Path):
        assert find_trerc(tmp_path) is None

    def test_load(self, tmp_path: Path):
        _write_trerc(tmp_path / "net", store="store", caps={"shs": "x"})
        conf = load_tre_conf(tmp_path / "net")
        assert conf.root == "%root.sha256"
        assert conf.systems_branch == "%systems.sha256"
        assert conf.secret_path == (tmp_path / "net" / ".tre" / "secret").resolve()

    def test_explicit_path_wins(self, tmp_path: Path):
        _write_trerc(tmp_path / "a", store="a-store")
        explicit = _write_trerc(tmp_path / "b", store="b-store")
        conf = load_tre_conf(tmp_path / "a", explicit)
        assert conf.store == "b-store"

    def test_malformed(self, tmp_path: Path):
        (tmp_path / ".trerc").write_text("{", encoding="utf-8")
        with pytest.raises(ConfigError, match="Malformed"):
            load_tre_conf(tmp_path)

    def test_missing_branches(self, tmp_path: Path):
        (tmp_path / ".trerc").write_text(json.dumps({"tre": {}}), encoding="utf-8")
        with pytest.raises(ConfigError, match="tre.branches"):
            load_tre_conf(tmp_path)

    def test_unreadable_explicit(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Cannot read"):
            load_tre_conf(tmp_path, tmp_path / "missing.trerc")


class TestStoreLocation:
    def _conf(self, tmp_path: Path, **data) -> TreConf:
        return TreConf.model_validate({"config": tmp_path / ".trerc", "tre": TRE, **data})

    def test_override(self, tmp_path: Path):
        conf = self._conf(tmp_path, store="store")
        assert conf.store_location("http://elsewhere:9000") == "http://elsewhere:9000"

    def test_relative_directory(self, tmp_path: Path):
        conf = self._conf(tmp_path, store="store")
        assert conf.store_location() == str((tmp_path / "store").resolve())

    def test_url(self, tmp_path: Path):
        conf = self._conf(tmp_path, store="https://tre.example.org")
        assert conf.store_location() == "https://tre.example.org"

    def test_host_and_port(self, tmp_path: Path):
        conf = self._conf(tmp_path, host="localhost", port=8008)
        assert conf.store_location() == "http://localhost:8008"

    def test_nothing_configured(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="No store location"):
            self._conf(tmp_path).store_location()

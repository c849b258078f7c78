"""Configuration: env-driven settings and the tre conf file.

``DeploySettings`` uses pydantic-settings: every value can be overridden by a
``TREOS_*`` environment variable or a ``.env`` file.

``TreConf`` is the JSON ``.trerc`` file of the tre network the system is
published to. It is found by walking up from the working directory and
names the root and systems branches plus the store location. The local
secret lives next to it, in ``.tre/secret``.

Example ``.trerc``::

    {
      "store": "http://localhost:8008",
      "tre": {"branches": {"root": "%root...", "systems": "%sys..."}}
    }

``host``/``port`` may be given instead of ``store``.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from treos_deploy.core.errors import ConfigError

TRERC_NAME = ".trerc"
SECRET_RELPATH = Path(".tre") / "secret"


class DeploySettings(BaseSettings):
    """Process-wide settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export TREOS_LOG_LEVEL=DEBUG
        export TREOS_STORE=/srv/tre-store
        export TREOS_NAME="kiosk image"
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TREOS_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    debug: bool = False

    # Overrides for values otherwise taken from .trerc
    store: str | None = None
    trerc: Path | None = None

    # Store sessions
    http_timeout: float = 30.0
    chunk_size: int = 64 * 1024

    # Defaults for the record base fields
    name: str | None = None
    description: str | None = None


class Branches(BaseModel):
    model_config = ConfigDict(frozen=True)

    root: str
    systems: str


class TreSection(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    branches: Branches


class TreConf(BaseModel):
    """Parsed ``.trerc``.

    ``config`` is the path the file was loaded from.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    config: Path
    tre: TreSection
    store: str | None = None
    host: str | None = None
    port: int | None = None

    @property
    def root(self) -> str:
        return self.tre.branches.root

    @property
    def systems_branch(self) -> str:
        return self.tre.branches.systems

    @property
    def secret_path(self) -> Path:
        return self.config.parent / SECRET_RELPATH

    def store_location(self, override: str | None = None) -> str:
        """Store location: explicit override, ``store``, or ``host:port``."""
        if override:
            return override
        if self.store:
            if "://" in self.store:
                return self.store
            # relative store directories are relative to the .trerc
            return str((self.config.parent / self.store).resolve())
        if self.host and self.port:
            return f"http://{self.host}:{self.port}"
        raise ConfigError(f"No store location in {self.config} (set 'store' or 'host'/'port')")


def find_trerc(start: Path) -> Path | None:
    """Nearest ``.trerc`` in *start* or one of its parents."""
    start = Path(start).resolve()
    for directory in (start, *start.parents):
        candidate = directory / TRERC_NAME
        if candidate.is_file():
            return candidate
    return None


def load_tre_conf(start: Path, explicit: Path | None = None) -> TreConf:
    """Locate and parse the ``.trerc`` for *start*.

    Raises ConfigError when no file is found or it is malformed.
    """
    path = Path(explicit) if explicit else find_trerc(start)
    if path is None:
        raise ConfigError(f"{TRERC_NAME} not found in {Path(start).resolve()} or its parents")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc.strerror or exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Malformed {path}: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Malformed {path}: top level must be an object")

    try:
        return TreConf.model_validate({**data, "config": path.resolve()})
    except ValidationError as exc:
        missing = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        raise ConfigError(f"Incomplete {path}: {missing}") from exc

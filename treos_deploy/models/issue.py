"""Issue descriptor: the parsed build manifest (read-only input)."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from treos_deploy.core.errors import ParseError


class ArtifactKind(str, Enum):
    """The closed set of artifact kinds an issue can declare.

    The value is the manifest key the kind is read from.
    """

    KERNEL = "kernels"
    INITCPIO = "initcpios"
    DISK_IMAGE = "diskImages"
    SHRINKWRAP = "shrinkwrap"

    @property
    def record_type(self) -> str:
        """Type label stored on the artifact record."""
        if self is ArtifactKind.SHRINKWRAP:
            return "ssb-pacman shrinkwrap file"
        return self.value


# Categories that hold a mapping of artifact key -> entry, in upload order.
CATEGORY_KINDS: tuple[ArtifactKind, ...] = (
    ArtifactKind.KERNEL,
    ArtifactKind.INITCPIO,
    ArtifactKind.DISK_IMAGE,
)

SHRINKWRAP_NAME = "packages.shrinkwrap"


class IssueArtifact(BaseModel):
    """One artifact entry as declared in the manifest."""

    model_config = ConfigDict(frozen=True, extra="allow")

    path: str
    checksum: str
    size: int = 0


class IssueDescriptor(BaseModel):
    """A build manifest.

    Unknown top-level keys are preserved: every field of the issue is
    copied verbatim into the published system record.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    kernels: dict[str, IssueArtifact] = {}
    initcpios: dict[str, IssueArtifact] = {}
    disk_images: dict[str, IssueArtifact] = Field(default={}, alias="diskImages")
    shrinkwrap: IssueArtifact

    def category(self, kind: ArtifactKind) -> dict[str, IssueArtifact]:
        """Return the mapping for a category kind."""
        if kind is ArtifactKind.KERNEL:
            return self.kernels
        if kind is ArtifactKind.INITCPIO:
            return self.initcpios
        if kind is ArtifactKind.DISK_IMAGE:
            return self.disk_images
        raise ValueError(f"{kind.value} is not a category")

    def to_content(self) -> dict[str, Any]:
        """The issue as it appears inside a published record."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


def parse_issue(data: Any, *, source: str = "<issue>") -> IssueDescriptor:
    """Validate a decoded JSON document as an issue descriptor."""
    if not isinstance(data, dict):
        raise ParseError(source, "top level must be a JSON object")
    try:
        return IssueDescriptor.model_validate(data)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ParseError(source, errors) from exc


def load_issue(path: Path) -> IssueDescriptor:
    """Read and parse the issue file at *path*.

    Raises ParseError for unreadable files, malformed JSON, or a document
    that does not describe the expected artifacts.
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ParseError(str(path), exc.strerror or str(exc)) from exc
    try:
        data = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ParseError(str(path), f"not valid UTF-8 at byte {exc.start}") from exc
    except json.JSONDecodeError as exc:
        raise ParseError(str(path), exc.msg + f" (line {exc.lineno} column {exc.colno})") from exc
    return parse_issue(data, source=str(path))

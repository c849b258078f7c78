"""Artifact records derived from the issue descriptor."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from treos_deploy.models.issue import ArtifactKind


class ArtifactRecord(BaseModel):
    """A single artifact to be confirmed in the content store.

    Existence in the store is decided by ``checksum`` alone.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ArtifactKind
    path: Path  # absolute, resolved against the source root
    checksum: str
    size: int = 0
    exists: bool = False

    @property
    def record_type(self) -> str:
        return self.kind.record_type

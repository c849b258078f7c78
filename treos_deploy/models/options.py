"""Per-run options and the outcome of a publish run."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from treos_deploy.models.artifacts import ArtifactRecord
from treos_deploy.models.records import PublishedMessage, SystemRecord


class RunOptions(BaseModel):
    """Process flags for one publish run."""

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    force: bool = False
    no_commit_log: bool = False
    debug: bool = False
    name: str | None = None
    description: str | None = None


class PublishOutcome(BaseModel):
    """What a run produced.

    ``message`` is None for a dry run; ``record`` is then exactly the
    content that would have been published.
    """

    model_config = ConfigDict(frozen=True)

    record: SystemRecord
    message: PublishedMessage | None = None
    dry_run: bool = False
    artifacts: list[ArtifactRecord] = []
    predecessor: str | None = None

    @property
    def uploaded(self) -> list[ArtifactRecord]:
        """Artifacts that were not in the store before this run."""
        return [a for a in self.artifacts if not a.exists]

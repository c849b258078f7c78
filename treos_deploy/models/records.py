"""System records, repository snapshots, and store messages.

Wire keys follow the record format already present in existing stores:
``commit``, ``repository``, ``repositoryBranch``, ``revisionBranch``,
``revisionRoot`` and ``new-commits``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SYSTEM_TYPE = "system"

# a message without a timestamp sorts before every dated one
UNDATED = datetime(1970, 1, 1, tzinfo=timezone.utc)

_OPTIONAL_KEYS = ("description", "root", "branch", "revisionBranch", "revisionRoot")


class RepositorySnapshot(BaseModel):
    """Source-control state of the checkout, computed fresh every run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    commit: str  # `git describe --dirty --always`, may end in -dirty
    repository: str
    repository_branch: str = Field(alias="repositoryBranch")

    @property
    def is_dirty(self) -> bool:
        return "-dirty" in self.commit

    def to_content(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class WorkingTreeStatus(BaseModel):
    """Result of the precheck: porcelain status and its verdict."""

    model_config = ConfigDict(frozen=True)

    clean: bool
    status: str = ""


class CommitLogStatus(str, Enum):
    OMITTED = "omitted"
    LISTED = "listed"


class CommitLog(BaseModel):
    """Outcome of a commit range query.

    ``OMITTED`` means the range could not be trusted (a dirty endpoint) and
    no log should be embedded; ``LISTED`` carries the lines, possibly none.
    """

    model_config = ConfigDict(frozen=True)

    status: CommitLogStatus
    lines: tuple[str, ...] = ()

    @classmethod
    def omitted(cls) -> CommitLog:
        return cls(status=CommitLogStatus.OMITTED)

    @classmethod
    def empty(cls) -> CommitLog:
        return cls(status=CommitLogStatus.LISTED)

    @classmethod
    def listed(cls, lines: list[str] | tuple[str, ...]) -> CommitLog:
        return cls(status=CommitLogStatus.LISTED, lines=tuple(lines))

    @property
    def is_omitted(self) -> bool:
        return self.status is CommitLogStatus.OMITTED

    def as_list(self) -> list[str]:
        """Lines to embed in a record; an omitted log embeds nothing."""
        return list(self.lines)


class StoredMessage(BaseModel):
    """A previously committed record, as returned by a store scan."""

    model_config = ConfigDict(frozen=True)

    key: str
    author: str
    timestamp: datetime = UNDATED
    content: dict[str, Any]
    previous: str | None = None  # previous message in the author's feed

    @property
    def revision_root(self) -> str:
        """Stable chain identifier: the inherited root, or this record's key."""
        return self.content.get("revisionRoot") or self.key

    @property
    def revision_branch(self) -> str | None:
        return self.content.get("revisionBranch")


class PublishedMessage(StoredMessage):
    """The store's answer to a successful publish."""


class SystemRecord(BaseModel):
    """The content of a ``system`` record.

    Issue fields are carried as extra fields so they round-trip verbatim.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    type: str = SYSTEM_TYPE
    name: str
    description: str | None = None
    root: str | None = None
    branch: str | None = None
    commit: str
    repository: str
    repository_branch: str = Field(alias="repositoryBranch")
    revision_branch: str | None = Field(default=None, alias="revisionBranch")
    revision_root: str | None = Field(default=None, alias="revisionRoot")
    new_commits: list[str] = Field(default_factory=list, alias="new-commits")

    def to_content(self) -> dict[str, Any]:
        """Wire form sent to the publish endpoint.

        Absent optional fields are dropped, so a first deployment carries
        neither ``revisionBranch`` nor ``revisionRoot``.
        """
        content = self.model_dump(mode="json", by_alias=True)
        for key in _OPTIONAL_KEYS:
            if content.get(key) is None:
                content.pop(key, None)
        return content

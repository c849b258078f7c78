"""treos-deploy data models: all Pydantic v2, all frozen (immutable)."""

from treos_deploy.models.artifacts import ArtifactRecord
from treos_deploy.models.issue import (
    CATEGORY_KINDS,
    ArtifactKind,
    IssueArtifact,
    IssueDescriptor,
    load_issue,
    parse_issue,
)
from treos_deploy.models.options import PublishOutcome, RunOptions
from treos_deploy.models.phases import VALID_TRANSITIONS, PhaseTransition, PublishPhase
from treos_deploy.models.records import (
    SYSTEM_TYPE,
    CommitLog,
    CommitLogStatus,
    PublishedMessage,
    RepositorySnapshot,
    StoredMessage,
    SystemRecord,
    WorkingTreeStatus,
)

__all__ = [
    # issue
    "ArtifactKind",
    "CATEGORY_KINDS",
    "IssueArtifact",
    "IssueDescriptor",
    "load_issue",
    "parse_issue",
    # artifacts
    "ArtifactRecord",
    # records
    "SYSTEM_TYPE",
    "CommitLog",
    "CommitLogStatus",
    "PublishedMessage",
    "RepositorySnapshot",
    "StoredMessage",
    "SystemRecord",
    "WorkingTreeStatus",
    # phases
    "PublishPhase",
    "PhaseTransition",
    "VALID_TRANSITIONS",
    # options
    "RunOptions",
    "PublishOutcome",
]

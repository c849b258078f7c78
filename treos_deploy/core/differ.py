"""Commit range between the previously published commit and the current one."""

from __future__ import annotations

import logging

from treos_deploy.core.git import GitRepository
from treos_deploy.models.records import CommitLog

logger = logging.getLogger(__name__)

DIRTY_MARKER = "-dirty"


def is_dirty_descriptor(commit: str | None) -> bool:
    return bool(commit) and DIRTY_MARKER in commit


async def commit_range(
    git: GitRepository,
    previous: str | None,
    current: str | None,
) -> CommitLog:
    """Log lines for ``previous..current``.

    - no current commit: empty
    - either end dirty: omitted, since the range would be misleading
    - same commit: empty
    - otherwise the one-line log; git failures propagate
    """
    if not current:
        return CommitLog.empty()
    if is_dirty_descriptor(previous) or is_dirty_descriptor(current):
        logger.info("working tree was dirty at %s..%s; commit log omitted", previous, current)
        return CommitLog.omitted()
    if previous == current:
        return CommitLog.empty()

    logger.info("getting git log messages %s..%s", previous or "", current)
    return CommitLog.listed(await git.log_range(previous or None, current))

"""Repository inspection: cleanliness precheck and the repository snapshot."""

from __future__ import annotations

import logging

from treos_deploy.core.git import GitRepository
from treos_deploy.core.join import join_all
from treos_deploy.models.records import RepositorySnapshot, WorkingTreeStatus

logger = logging.getLogger(__name__)


def is_clean_status(status: str) -> bool:
    """A porcelain status is clean when it has no non-blank line."""
    return not any(line.strip() for line in status.splitlines())


async def check_clean(git: GitRepository) -> WorkingTreeStatus:
    status = await git.status()
    clean = is_clean_status(status)
    if not clean:
        logger.debug("working tree %s is dirty:\n%s", git.cwd, status.rstrip())
    return WorkingTreeStatus(clean=clean, status=status)


async def inspect_repository(git: GitRepository) -> RepositorySnapshot:
    """Query commit descriptor, origin URL and branch concurrently.

    All three must succeed; the first failure cancels the others and is
    raised as-is.
    """
    commit, url, branch = await join_all(
        git.describe(),
        git.remote_url(),
        git.current_branch(),
    )
    snapshot = RepositorySnapshot(
        commit=commit,
        repository=url,
        repository_branch=branch,
    )
    logger.info(
        "repository %s on %s at %s", snapshot.repository,
        snapshot.repository_branch, snapshot.commit,
    )
    return snapshot

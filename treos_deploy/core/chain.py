"""Revision chain resolution.

A system record belongs to the chain of an earlier record when both share
author, repository URL and repository branch. The new record links to its
direct predecessor (``revisionBranch``) and carries the chain's stable root
(``revisionRoot``): the key of the first record ever published in it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from treos_deploy.models.records import RepositorySnapshot, StoredMessage

logger = logging.getLogger(__name__)


def revision_root(message: StoredMessage) -> str:
    """The root a successor of *message* must carry."""
    return message.revision_root


def chain_links(predecessor: StoredMessage) -> dict[str, str]:
    """``revisionBranch``/``revisionRoot`` fields for a successor record."""
    return {
        "revisionBranch": predecessor.key,
        "revisionRoot": revision_root(predecessor),
    }


def _mismatch(
    author: str,
    candidate: RepositorySnapshot,
    message: StoredMessage,
) -> str | None:
    """Why *message* is not in the candidate's chain, or None if it is."""
    if message.author != author:
        return "wrong author"
    if message.content.get("repository") != candidate.repository:
        return "wrong repo"
    if message.content.get("repositoryBranch") != candidate.repository_branch:
        return "wrong repo branch"
    return None


def matching_records(
    author: str,
    candidate: RepositorySnapshot,
    messages: Iterable[StoredMessage],
    *,
    trace: bool = False,
) -> list[StoredMessage]:
    """All records of the candidate's chain, in scan order."""
    matches = []
    for message in messages:
        reason = _mismatch(author, candidate, message)
        if trace:
            logger.debug("%s: %s", message.key[:5], reason or "match")
        if reason is None:
            matches.append(message)
    return matches


def find_predecessor(
    author: str,
    candidate: RepositorySnapshot,
    messages: Iterable[StoredMessage],
    *,
    trace: bool = False,
) -> StoredMessage | None:
    """The record a new publish from *candidate* should follow.

    Returns None for a first deployment. When several records match, chain
    heads (records no other match names as ``revisionBranch``) are
    preferred, then the latest timestamp, then the later scan position.
    """
    matches = matching_records(author, candidate, messages, trace=trace)
    if not matches:
        return None

    superseded = {m.revision_branch for m in matches if m.revision_branch}
    heads = [(pos, m) for pos, m in enumerate(matches) if m.key not in superseded]
    if not heads:
        # every match is superseded: cyclic links, consider them all
        heads = list(enumerate(matches))
    if len(heads) > 1:
        logger.warning(
            "%d independent heads for %s on %s; following the latest",
            len(heads), candidate.repository, candidate.repository_branch,
        )

    _, chosen = max(heads, key=lambda item: (item[1].timestamp, item[0]))
    return chosen

"""Publish orchestrator: the central coordinator for a deploy run.

The PublishOrchestrator wires together the repository inspector, the
artifact verifier, the revision chain resolver and the commit range differ
into a single run:

    INIT -> PRECHECK -> GATHER -> RESOLVE -> DIFF -> ASSEMBLE -> DECIDE
         -> COMMIT | PREVIEW -> DONE

Any failure moves the run to ABORT and propagates. Store sessions are
opened per phase: one for the artifact uploads, one for the chain scan and
the publish.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from treos_deploy.config import TreConf
from treos_deploy.core.chain import chain_links, find_predecessor
from treos_deploy.core.differ import commit_range
from treos_deploy.core.errors import CleanlinessError, RepositoryQueryError
from treos_deploy.core.git import GitRepository
from treos_deploy.core.identity import Identity
from treos_deploy.core.inspector import check_clean, inspect_repository
from treos_deploy.core.join import join_all
from treos_deploy.core.phase_machine import PhaseMachine
from treos_deploy.core.verifier import DEFAULT_CHUNK_SIZE, ArtifactVerifier
from treos_deploy.models.artifacts import ArtifactRecord
from treos_deploy.models.issue import IssueDescriptor
from treos_deploy.models.options import PublishOutcome, RunOptions
from treos_deploy.models.phases import PublishPhase
from treos_deploy.models.records import (
    SYSTEM_TYPE,
    CommitLog,
    RepositorySnapshot,
    StoredMessage,
    SystemRecord,
)
from treos_deploy.store import StoreFactory

logger = logging.getLogger(__name__)

NAME_COMMIT_PREFIX = 4


def default_name(snapshot: RepositorySnapshot) -> str:
    """Fallback system name: the repository's basename."""
    tail = snapshot.repository.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    return tail.removesuffix(".git") or "system"


def assemble_record(
    base: dict[str, Any],
    snapshot: RepositorySnapshot,
    issue: IssueDescriptor,
    predecessor: StoredMessage | None,
    commits: list[str],
) -> SystemRecord:
    """Merge the record fields; later sources override earlier ones.

    base <- snapshot <- name with commit prefix <- issue <- chain links
    <- new-commits
    """
    content: dict[str, Any] = dict(base)
    content.update(snapshot.to_content())
    content["name"] = f"{base['name']} [{snapshot.commit[:NAME_COMMIT_PREFIX]}]"
    content.update(issue.to_content())
    if predecessor is not None:
        content.update(chain_links(predecessor))
    content["new-commits"] = list(commits)
    return SystemRecord.model_validate(content)


class PublishOrchestrator:
    """Runs one publish of an issue from a source checkout.

    Parameters
    ----------
    source_root:
        Checkout the issue belongs to; artifact paths are relative to it.
    identity:
        Local signing identity; only records it authored can be predecessors.
    conf:
        Loaded tre conf (root and systems branch of the base record).
    store:
        Factory returning a fresh store session for each phase.
    options:
        Run flags. Defaults to a plain, non-forced publish.
    git:
        Source-control accessor. Defaults to git in *source_root*.
    """

    def __init__(
        self,
        source_root: Path,
        identity: Identity,
        conf: TreConf,
        store: StoreFactory,
        options: RunOptions | None = None,
        *,
        git: GitRepository | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.source_root = Path(source_root)
        self.identity = identity
        self.conf = conf
        self.options = options or RunOptions()
        self.git = git or GitRepository(self.source_root)
        self.verifier = ArtifactVerifier(self.source_root, chunk_size=chunk_size)
        self.machine = PhaseMachine()
        self._open_store = store

    @property
    def phase(self) -> PublishPhase:
        return self.machine.phase

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, issue: IssueDescriptor) -> PublishOutcome:
        """Execute the whole run; returns the committed or previewed record."""
        try:
            return await self._run(issue)
        except BaseException as exc:
            self.machine.abort(f"{type(exc).__name__}: {exc}")
            raise

    async def _run(self, issue: IssueDescriptor) -> PublishOutcome:
        self.machine.advance(PublishPhase.PRECHECK)
        await self._precheck()

        self.machine.advance(PublishPhase.GATHER)
        artifacts, snapshot = await join_all(
            self._verify_artifacts(issue),
            inspect_repository(self.git),
        )

        async with self._open_store() as store:
            self.machine.advance(PublishPhase.RESOLVE)
            systems = [m async for m in store.scan_by_type(SYSTEM_TYPE)]
            for message in systems:
                _log_system(message)
            predecessor = find_predecessor(
                self.identity.id, snapshot, systems, trace=self.options.debug
            )
            if predecessor is None:
                logger.info("First deployment of this system")
            else:
                logger.info(
                    "Updating existing system %s", predecessor.revision_root[:5]
                )

            self.machine.advance(PublishPhase.DIFF)
            commits = await self._diff(predecessor, snapshot)

            self.machine.advance(PublishPhase.ASSEMBLE)
            record = assemble_record(
                self._base(snapshot), snapshot, issue, predecessor, commits
            )

            self.machine.advance(PublishPhase.DECIDE)
            if self.options.dry_run:
                self.machine.advance(PublishPhase.PREVIEW)
                self.machine.advance(PublishPhase.DONE)
                return PublishOutcome(
                    record=record,
                    dry_run=True,
                    artifacts=artifacts,
                    predecessor=predecessor.key if predecessor else None,
                )

            self.machine.advance(PublishPhase.COMMIT)
            message = await store.publish(record.to_content())
            logger.info("Published as %s", message.key)

        self.machine.advance(PublishPhase.DONE)
        return PublishOutcome(
            record=record,
            message=message,
            artifacts=artifacts,
            predecessor=predecessor.key if predecessor else None,
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _precheck(self) -> None:
        try:
            tree = await check_clean(self.git)
        except RepositoryQueryError as exc:
            if not self.options.force:
                raise
            logger.warning(
                "Cannot check working directory %s: %s (--force is set, so we continue anyway)",
                self.git.cwd,
                exc,
            )
            return
        if tree.clean:
            return
        if not self.options.force:
            raise CleanlinessError(str(self.git.cwd), tree.status)
        logger.warning(
            "Working directory is not clean: %s (--force is set, so we continue anyway)",
            self.git.cwd,
        )

    async def _verify_artifacts(self, issue: IssueDescriptor) -> list[ArtifactRecord]:
        async with self._open_store() as store:
            return await self.verifier.verify(issue, store)

    async def _diff(
        self, predecessor: StoredMessage | None, snapshot: RepositorySnapshot
    ) -> list[str]:
        previous = predecessor.content.get("commit") if predecessor else None
        log: CommitLog = await commit_range(self.git, previous or None, snapshot.commit)
        if self.options.no_commit_log:
            return []
        return log.as_list()

    def _base(self, snapshot: RepositorySnapshot) -> dict[str, Any]:
        return {
            "type": SYSTEM_TYPE,
            "name": self.options.name or default_name(snapshot),
            "description": self.options.description,
            "root": self.conf.root,
            "branch": self.conf.systems_branch,
        }


def _log_system(message: StoredMessage) -> None:
    content = message.content
    logger.debug(
        "%s:%s %s %s %s %s by %s",
        message.revision_root[:5],
        message.key[:5],
        content.get("name"),
        content.get("repositoryBranch"),
        content.get("commit"),
        message.timestamp.isoformat(timespec="seconds"),
        message.author[:5],
    )

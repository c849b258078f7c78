"""Shared test fixtures for treos-deploy."""

from __future__ import annotations

import json
import shutil
import subprocess
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from treos_deploy.config import TreConf
from treos_deploy.core.errors import RepositoryQueryError
from treos_deploy.core.git import GitRepository
from treos_deploy.core.hasher import blob_id, message_key, normalize_blob_id
from treos_deploy.core.identity import Identity, generate_identity
from treos_deploy.models.issue import IssueDescriptor, load_issue
from treos_deploy.models.records import PublishedMessage, StoredMessage

EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)
REPO_URL = "git@example.org:treos/kiosk.git"

ARTIFACTS: dict[str, bytes] = {
    "out/vmlinuz": b"kernel image bytes",
    "out/initramfs.img": b"initcpio bytes",
    "out/rootfs.img": b"disk image bytes" * 64,
    "out/packages.shrinkwrap": b'{"packages": {"linux": "6.9"}}',
}


# ---------------------------------------------------------------------------
# Identities and configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def identity() -> Identity:
    """Provide a fresh signing identity."""
    return generate_identity()


@pytest.fixture
def other_identity() -> Identity:
    """Provide a second, unrelated identity."""
    return generate_identity()


@pytest.fixture
def tre_conf(tmp_path: Path) -> TreConf:
    """Provide a tre conf rooted in the temp directory."""
    return TreConf.model_validate(
        {
            "config": tmp_path / ".trerc",
            "tre": {"branches": {"root": "%root.sha256", "systems": "%systems.sha256"}},
            "store": "store",
        }
    )


# ---------------------------------------------------------------------------
# Source tree and issue
# ---------------------------------------------------------------------------


def issue_document(artifacts: dict[str, bytes] = ARTIFACTS) -> dict[str, Any]:
    """An issue declaring every file of *artifacts* with its real checksum."""

    def entry(path: str) -> dict[str, Any]:
        data = artifacts[path]
        return {"path": path, "checksum": f"&{blob_id(data)}", "size": len(data)}

    return {
        "kernels": {"vmlinuz": entry("out/vmlinuz")},
        "initcpios": {"initramfs": entry("out/initramfs.img")},
        "diskImages": {"rootfs": entry("out/rootfs.img")},
        "shrinkwrap": entry("out/packages.shrinkwrap"),
        "version": "2026.1",
    }


def write_source_tree(root: Path, artifacts: dict[str, bytes] = ARTIFACTS) -> Path:
    """Write artifact files and ``issue.json`` under *root*; return the issue path."""
    for rel, data in artifacts.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    issue_path = root / "issue.json"
    issue_path.write_text(json.dumps(issue_document(artifacts), indent=2), encoding="utf-8")
    return issue_path


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    """Provide a source tree with built artifacts and an issue file."""
    root = tmp_path / "src"
    write_source_tree(root)
    return root


@pytest.fixture
def issue(source_root: Path) -> IssueDescriptor:
    """Provide the parsed issue of the source tree."""
    return load_issue(source_root / "issue.json")


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class FakeStore:
    """In-memory ``ContentStore`` that records every call."""

    def __init__(self, identity: Identity, *, digest_override: str | None = None) -> None:
        self.identity = identity
        self.digest_override = digest_override
        self.blobs: dict[str, bytes] = {}
        self.messages: list[StoredMessage] = []
        self.exists_calls: list[str] = []
        self.ingest_calls = 0
        self.publish_calls: list[dict[str, Any]] = []
        self.sessions = 0
        self.closed = 0

    def add_blob(self, data: bytes) -> str:
        digest = blob_id(data)
        self.blobs[digest] = data
        return digest

    def add_message(
        self,
        content: dict[str, Any],
        *,
        author: str | None = None,
        timestamp: datetime | None = None,
    ) -> StoredMessage:
        author = author or self.identity.id
        previous = next(
            (m.key for m in reversed(self.messages) if m.author == author), None
        )
        timestamp = timestamp or EPOCH + timedelta(minutes=len(self.messages))
        key = message_key(
            {
                "author": author,
                "previous": previous,
                "sequence": len(self.messages) + 1,
                "content": content,
            }
        )
        message = PublishedMessage(
            key=key, author=author, timestamp=timestamp, content=content, previous=previous
        )
        self.messages.append(message)
        return message

    async def exists(self, checksum: str) -> bool:
        self.exists_calls.append(checksum)
        return normalize_blob_id(checksum) in self.blobs

    async def ingest(self, chunks: AsyncIterator[bytes]) -> str:
        self.ingest_calls += 1
        data = b"".join([chunk async for chunk in chunks])
        digest = self.digest_override or blob_id(data)
        self.blobs[digest] = data
        return digest

    async def scan_by_type(self, record_type: str) -> AsyncIterator[StoredMessage]:
        for message in list(self.messages):
            if message.content.get("type") == record_type:
                yield message

    async def publish(self, content: dict[str, Any]) -> PublishedMessage:
        self.publish_calls.append(content)
        return self.add_message(content)  # type: ignore[return-value]

    async def aclose(self) -> None:
        self.closed += 1

    async def __aenter__(self) -> FakeStore:
        self.sessions += 1
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


@pytest.fixture
def fake_store(identity: Identity) -> FakeStore:
    """Provide an empty in-memory store authored by ``identity``."""
    return FakeStore(identity)


# ---------------------------------------------------------------------------
# Scripted git
# ---------------------------------------------------------------------------


class FakeGit(GitRepository):
    """``GitRepository`` answering from attributes instead of a checkout.

    Subcommands listed in ``fail`` raise RepositoryQueryError.
    """

    def __init__(
        self,
        cwd: Path,
        *,
        status: str = "",
        commit: str = "abc1234",
        url: str = REPO_URL,
        branch: str = "main",
        log: list[str] | None = None,
        fail: set[str] | None = None,
    ) -> None:
        super().__init__(cwd)
        self.status_text = status
        self.commit = commit
        self.url = url
        self.branch = branch
        self.log = log or []
        self.fail = fail or set()
        self.calls: list[tuple[str, ...]] = []

    async def run(self, *args: str) -> str:
        self.calls.append(args)
        subcommand = args[0]
        if subcommand in self.fail:
            raise RepositoryQueryError(f"git {' '.join(args)}", 128, f"fatal: {subcommand} failed")
        if subcommand == "status":
            return self.status_text
        if subcommand == "describe":
            return self.commit + "\n"
        if subcommand == "remote":
            return self.url + "\n"
        if subcommand == "symbolic-ref":
            return self.branch + "\n"
        if subcommand == "log":
            return "".join(f"{line}\n" for line in self.log)
        raise AssertionError(f"unexpected git call: {args}")


@pytest.fixture
def make_git(source_root: Path) -> Callable[..., FakeGit]:
    """Factory fixture: a FakeGit over the source tree."""

    def _factory(**overrides: Any) -> FakeGit:
        return FakeGit(source_root, **overrides)

    return _factory


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


@pytest.fixture
def make_message(identity: Identity) -> Callable[..., StoredMessage]:
    """Factory fixture: a stored ``system`` record with sensible defaults."""

    def _factory(
        key: str,
        *,
        author: str | None = None,
        repository: str = REPO_URL,
        branch: str = "main",
        commit: str = "abc1234",
        minutes: int = 0,
        **content: Any,
    ) -> StoredMessage:
        body = {
            "type": "system",
            "name": "kiosk",
            "commit": commit,
            "repository": repository,
            "repositoryBranch": branch,
            **content,
        }
        return StoredMessage(
            key=key,
            author=author or identity.id,
            timestamp=EPOCH + timedelta(minutes=minutes),
            content=body,
        )

    return _factory


# ---------------------------------------------------------------------------
# Real git repositories
# ---------------------------------------------------------------------------


def git(cwd: Path, *args: str) -> str:
    """Run git in *cwd* with a fixed committer; return stdout."""
    result = subprocess.run(
        [
            "git",
            "-c", "user.name=Build Bot",
            "-c", "user.email=build@example.org",
            "-c", "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def git_checkout(tmp_path: Path) -> Path:
    """Provide a committed git checkout of the source tree on ``main``."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    root = tmp_path / "net" / "kiosk"
    root.mkdir(parents=True)
    git(root, "init", "-q")
    git(root, "symbolic-ref", "HEAD", "refs/heads/main")
    git(root, "remote", "add", "origin", "https://example.org/treos/kiosk.git")
    write_source_tree(root)
    git(root, "add", "-A")
    git(root, "commit", "-q", "-m", "Initial image build")
    return root

"""Source-control accessor: async git queries against a checkout.

Every query runs ``git`` as a subprocess in the checkout with a C locale so
output parsing is stable. A non-zero exit raises ``RepositoryQueryError``
naming the command.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from treos_deploy.core.errors import RepositoryQueryError

logger = logging.getLogger(__name__)


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    env["LANG"] = "C"
    env["LC_ALL"] = "C"
    # never block on a credential or pager prompt
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GIT_PAGER"] = "cat"
    return env


class GitRepository:
    """Read-only view of a git checkout.

    Parameters
    ----------
    cwd:
        Any directory inside the working tree.
    git:
        The git executable.
    """

    def __init__(self, cwd: Path, *, git: str = "git") -> None:
        self.cwd = Path(cwd)
        self._git = git

    async def run(self, *args: str) -> str:
        """Run ``git *args`` and return its stdout as text."""
        command = " ".join([self._git, *args])
        logger.debug("running %s in %s", command, self.cwd)
        try:
            proc = await asyncio.create_subprocess_exec(
                self._git,
                *args,
                cwd=str(self.cwd),
                env=_git_env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise RepositoryQueryError(command, None, str(exc)) from exc

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            raise RepositoryQueryError(
                command, proc.returncode, stderr.decode("utf-8", errors="replace")
            )
        return stdout.decode("utf-8", errors="replace")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def status(self) -> str:
        """Porcelain working-tree status."""
        return await self.run("status", "--porcelain")

    async def describe(self) -> str:
        """Commit descriptor, suffixed with ``-dirty`` for local changes."""
        return (await self.run("describe", "--dirty", "--always")).strip()

    async def remote_url(self, remote: str = "origin") -> str:
        return (await self.run("remote", "get-url", remote)).strip()

    async def current_branch(self) -> str:
        return (await self.run("symbolic-ref", "--short", "HEAD")).strip()

    async def log_range(self, previous: str | None, current: str) -> list[str]:
        """One-line summaries of ``previous..current`` in git's order.

        With no *previous*, the full history up to *current*.
        """
        revision = f"{previous}..{current}" if previous else current
        output = await self.run("log", "--pretty=oneline", revision, "--")
        return [line for line in output.splitlines() if line.strip()]

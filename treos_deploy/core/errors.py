"""Error taxonomy for the publish pipeline.

Every phase fails fast: the first ``DeployError`` aborts the run and the CLI
reports it on stderr with a non-zero exit code. Each error carries its
diagnostic context as attributes as well as in the message.
"""

from __future__ import annotations


class DeployError(RuntimeError):
    """Base class for all errors that abort a publish run."""


class ConfigError(DeployError):
    """Missing or malformed identity, secret, .trerc, or store location."""


class ParseError(DeployError):
    """The issue descriptor could not be read or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot parse issue {path}: {reason}")


class CleanlinessError(DeployError):
    """The working tree has uncommitted changes and --force was not given."""

    def __init__(self, cwd: str, status: str) -> None:
        self.cwd = cwd
        self.status = status
        super().__init__(
            f"Working directory is not clean: {cwd}\n{status.rstrip()}\n"
            "Please commit and try again."
        )


class IntegrityError(DeployError):
    """The digest returned by the store differs from the declared checksum."""

    def __init__(self, name: str, actual: str, expected: str) -> None:
        self.name = name
        self.actual = actual
        self.expected = expected
        super().__init__(f"checksum mismatch: {name} {actual} should be {expected}")


class ArtifactNotFoundError(IntegrityError):
    """An artifact that must be uploaded is missing from the source tree."""

    def __init__(self, name: str, path: str, expected: str) -> None:
        self.name = name
        self.path = path
        self.actual = ""
        self.expected = expected
        DeployError.__init__(self, f"artifact {name} not found at {path}")


class NetworkError(DeployError):
    """A content store session or request failed."""


class RepositoryQueryError(DeployError):
    """A git query exited with an error."""

    def __init__(self, command: str, returncode: int | None, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        super().__init__(f"`{command}` failed (exit {returncode}): {detail}")


class PublishError(DeployError):
    """The store rejected the record at the publish endpoint."""

"""``treos-deploy publish ISSUE.JSON``: verify, link and publish a system.

The issue is parsed before anything touches the network. The source
checkout is the directory that holds the issue file.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from treos_deploy.cli.logs import configure_logging
from treos_deploy.cli.render import OutcomeRenderer
from treos_deploy.config import DeploySettings, load_tre_conf
from treos_deploy.core.errors import DeployError
from treos_deploy.core.identity import load_identity
from treos_deploy.core.orchestrator import PublishOrchestrator
from treos_deploy.models.issue import load_issue
from treos_deploy.models.options import RunOptions
from treos_deploy.store import store_factory

console = Console()
err_console = Console(stderr=True)


def publish_cmd(
    issue_file: Path = typer.Argument(
        ...,
        help="Path to the issue JSON produced by the image build.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "--dryRun",
        help="Assemble and print the record without publishing it.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Continue even if the working tree has uncommitted changes.",
    ),
    no_commit_log: bool = typer.Option(
        False,
        "--no-commit-log",
        "--noCommitLog",
        help="Do not embed the commit log since the previous publish.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Trace revision chain resolution.",
    ),
    name: str = typer.Option(None, "--name", help="System name (defaults to the repository name)."),
    description: str = typer.Option(None, "--description", help="System description."),
    store: str = typer.Option(
        None,
        "--store",
        "-s",
        help="Store URL or directory, overriding .trerc.",
    ),
) -> None:
    """Publish a system record for ISSUE_FILE.

    Steps:
    - Refuse a dirty working tree unless --force.
    - Upload artifacts missing from the store, checking every checksum.
    - Link to the previous record of this repository and branch.
    - Publish, or print the record with --dry-run.
    """
    settings = DeploySettings()
    configure_logging("DEBUG" if debug or settings.debug else settings.log_level)

    issue_path = issue_file.resolve()
    err_console.print(f"[bold]issue:[/bold] {escape(str(issue_path))}")
    try:
        issue = load_issue(issue_path)
        source_path = issue_path.parent
        err_console.print(f"[bold]source path:[/bold] {escape(str(source_path))}")

        conf = load_tre_conf(Path.cwd(), settings.trerc)
        identity = load_identity(conf.secret_path)
        location = conf.store_location(store or settings.store)

        options = RunOptions(
            dry_run=dry_run,
            force=force,
            no_commit_log=no_commit_log,
            debug=debug or settings.debug,
            name=name or settings.name,
            description=description or settings.description,
        )
        orchestrator = PublishOrchestrator(
            source_path,
            identity,
            conf,
            store_factory(location, identity, timeout=settings.http_timeout),
            options,
            chunk_size=settings.chunk_size,
        )
        outcome = asyncio.run(orchestrator.run(issue))
    except DeployError as exc:
        err_console.print(f"[bold red]{type(exc).__name__}:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    renderer = OutcomeRenderer(console=console, status_console=err_console)
    renderer.print_summary(outcome)
    renderer.print_record(outcome)

"""``treos-deploy history``: list the system records in the store."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from treos_deploy.cli.logs import configure_logging
from treos_deploy.cli.render import render_history
from treos_deploy.config import DeploySettings, load_tre_conf
from treos_deploy.core.errors import DeployError
from treos_deploy.core.identity import Identity, load_identity
from treos_deploy.models.records import SYSTEM_TYPE, StoredMessage
from treos_deploy.store import open_store

console = Console()
err_console = Console(stderr=True)


async def _scan(location: str, identity: Identity, timeout: float) -> list[StoredMessage]:
    async with open_store(location, identity, timeout=timeout) as store:
        return [m async for m in store.scan_by_type(SYSTEM_TYPE)]


def history_cmd(
    store: str = typer.Option(
        None,
        "--store",
        "-s",
        help="Store URL or directory, overriding .trerc.",
    ),
    show_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Include records published by other identities.",
    ),
) -> None:
    """Show the system records of the store, oldest first."""
    settings = DeploySettings()
    configure_logging(settings.log_level)
    try:
        conf = load_tre_conf(Path.cwd(), settings.trerc)
        identity = load_identity(conf.secret_path)
        location = conf.store_location(store or settings.store)
        messages = asyncio.run(_scan(location, identity, settings.http_timeout))
    except DeployError as exc:
        err_console.print(f"[bold red]{type(exc).__name__}:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    if not show_all:
        messages = [m for m in messages if m.author == identity.id]
    if not messages:
        console.print("[dim]No system records.[/dim]")
        return
    console.print(render_history(messages))

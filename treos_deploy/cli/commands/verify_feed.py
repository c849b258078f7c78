"""``treos-deploy verify-feed``: check the local store feed of this identity."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from treos_deploy.config import DeploySettings, load_tre_conf
from treos_deploy.core.errors import DeployError
from treos_deploy.core.identity import load_identity
from treos_deploy.store import is_remote
from treos_deploy.store.local import LocalContentStore

console = Console()
err_console = Console(stderr=True)


def verify_feed_cmd(
    store: str = typer.Option(
        None,
        "--store",
        "-s",
        help="Local store directory, overriding .trerc.",
    ),
) -> None:
    """Verify links, keys and signatures of every record this identity published."""
    settings = DeploySettings()
    try:
        conf = load_tre_conf(Path.cwd(), settings.trerc)
        identity = load_identity(conf.secret_path)
        location = conf.store_location(store or settings.store)
        if is_remote(location):
            err_console.print(
                f"[bold red]Only local stores can be verified:[/bold red] {escape(location)}"
            )
            raise typer.Exit(code=1)

        async def _verify() -> bool:
            async with LocalContentStore(Path(location), identity) as local:
                return await local.verify_feed()

        asyncio.run(_verify())
    except DeployError as exc:
        err_console.print(f"[bold red]{type(exc).__name__}:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    console.print(f"[bold green]Feed {escape(identity.id[:9])} is intact.[/bold green]")

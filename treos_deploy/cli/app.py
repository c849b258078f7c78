"""Main Typer application: imports and registers all CLI commands.

Entry point: ``treos-deploy`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from treos_deploy.cli.commands.history import history_cmd
from treos_deploy.cli.commands.publish import publish_cmd
from treos_deploy.cli.commands.verify_feed import verify_feed_cmd

app = typer.Typer(
    name="treos-deploy",
    help="Publish TreOS system images as signed, linked store records.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="publish", help="Verify artifacts and publish a system record.")(publish_cmd)
app.command(name="history", help="List published system records.")(history_cmd)
app.command(name="verify-feed", help="Verify the local feed of this identity.")(verify_feed_cmd)


@app.command(name="version", help="Show the treos-deploy version.")
def version_cmd() -> None:
    from treos_deploy import __version__

    typer.echo(f"treos-deploy {__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()

"""Rich terminal rendering for publish outcomes and system history.

Color scheme
------------
- green   : published / uploaded
- cyan    : dry-run preview
- yellow  : already present in the store
- dim     : keys and timestamps
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import datetime, timezone

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from treos_deploy.models.options import PublishOutcome
from treos_deploy.models.records import StoredMessage


def human_age(when: datetime, now: datetime | None = None) -> str:
    """Coarse relative time, e.g. ``3 hours ago``."""
    now = now or datetime.now(timezone.utc)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    seconds = int((now - when).total_seconds())
    if seconds < 0:
        return "in the future"
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "just now"


class OutcomeRenderer:
    """Renders run results.

    Parameters
    ----------
    console:
        Console for the record itself (stdout).
    status_console:
        Console for summaries (stderr). Defaults to a stderr console.
    """

    def __init__(self, console: Console | None = None, status_console: Console | None = None) -> None:
        self.console = console or Console()
        self.status_console = status_console or Console(stderr=True)

    def print_record(self, outcome: PublishOutcome) -> None:
        """Print the published or previewed record as JSON on stdout."""
        if outcome.message is not None:
            payload = outcome.message.model_dump(mode="json")
        else:
            payload = {"value": outcome.record.to_content()}
        self.console.print_json(json.dumps(payload))

    def render_summary(self, outcome: PublishOutcome) -> Panel:
        record = outcome.record
        table = Table(show_header=False, box=None, pad_edge=False)
        table.add_column("field", style="bold")
        table.add_column("value")
        table.add_row("Name", escape(record.name))
        table.add_row("Repository", escape(f"{record.repository} ({record.repository_branch})"))
        table.add_row("Commit", escape(record.commit))
        table.add_row("Revision root", record.revision_root or "[dim]new chain[/dim]")
        table.add_row("New commits", str(len(record.new_commits)))
        uploaded = len(outcome.uploaded)
        table.add_row(
            "Artifacts",
            f"{len(outcome.artifacts)} total, [green]{uploaded} uploaded[/green], "
            f"[yellow]{len(outcome.artifacts) - uploaded} present[/yellow]",
        )
        if outcome.message is not None:
            table.add_row("Key", outcome.message.key)
            title, style = "[bold]Published[/bold]", "green"
        else:
            title, style = "[bold]Dry run: not published[/bold]", "cyan"
        return Panel(table, title=title, border_style=style, padding=(1, 2))

    def print_summary(self, outcome: PublishOutcome) -> None:
        self.status_console.print(self.render_summary(outcome))


def render_history(messages: Iterable[StoredMessage], *, now: datetime | None = None) -> Table:
    """Table of system records: chain, name, branch, commit, age, author."""
    table = Table(title="System records")
    table.add_column("Root:Key", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Branch")
    table.add_column("Commit", style="green")
    table.add_column("Published", style="dim")
    table.add_column("By", style="dim")
    for message in messages:
        content = message.content
        table.add_row(
            f"{message.revision_root[:5]}:{message.key[:5]}",
            escape(str(content.get("name", ""))),
            escape(str(content.get("repositoryBranch", ""))),
            escape(str(content.get("commit", ""))),
            human_age(message.timestamp, now),
            message.author[:5],
        )
    return table

"""treos-deploy CLI: Typer-based command-line interface.

Provides the ``treos-deploy`` command with subcommands for publishing a
system, listing published records and verifying the local feed.

Status goes to stderr through Rich; records are printed as JSON on stdout.
"""

"""Terminal output for the statuswrap CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from statuswrap.core.credentials import Credentials
from statuswrap.types.context import CommitState, StatusContext

# Progress, status lines and errors go to stderr; listings go to stdout so they can be piped.
console = Console(stderr=True)
stdout_console = Console()

_STATE_STYLES = {
    CommitState.PENDING: "yellow",
    CommitState.SUCCESS: "green",
    CommitState.FAILURE: "red",
    CommitState.ERROR: "red",
}


def configure_logging(verbose: bool) -> None:
    """Route statuswrap logging through rich; DEBUG when verbose, else WARNING."""
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=verbose)
    root = logging.getLogger("statuswrap")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.propagate = False


def print_status(state: CommitState, context: StatusContext, sha: str) -> None:
    """Print one status transition, the way build logs show it."""
    line = Text("[statuswrap] ", style="dim")
    line.append("Setting ")
    line.append(state.name, style=f"bold {_STATE_STYLES[state]}")
    line.append(f" status for {context.label} on commit {sha}")
    console.print(line)


def print_error(message: str) -> None:
    console.print(Text(f"[statuswrap] {message}", style="bold red"))


def print_credentials(credentials: list[Credentials]) -> None:
    if not credentials:
        console.print("No credentials configured.")
        return
    table = Table(title="Credentials")
    table.add_column("ID", style="cyan")
    table.add_column("Username")
    for cred in credentials:
        table.add_row(cred.id, cred.username or "-")
    stdout_console.print(table)

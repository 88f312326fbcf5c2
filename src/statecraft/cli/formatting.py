"""Rich formatting helpers for the Statecraft CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from statecraft.lifecycle import LifecycleState
from statecraft.scoring import serialize_state

if TYPE_CHECKING:
    from statecraft.controller import DispatchResult
    from statecraft.lifecycle import AuditEntry

_STATE_STYLES = {
    LifecycleState.SETTLED: "green",
    LifecycleState.REJECTED: "red",
    LifecycleState.GATING: "yellow",
    LifecycleState.CORRECTING: "magenta",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def _state_cell(state: LifecycleState) -> str:
    style = _STATE_STYLES.get(state)
    return f"[{style}]{state.value}[/{style}]" if style else state.value


def format_audit_table(entries: list[AuditEntry], console: Console) -> None:
    """Display audit entries as a compact table."""
    if not entries:
        console.print("[dim]No transitions.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Id", style="yellow", width=12)
    table.add_column("Time", style="dim")
    table.add_column("Event", style="cyan")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Dispatch", style="dim", width=8)

    for entry in entries:
        table.add_row(
            entry.id[:12],
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.event.value,
            _state_cell(entry.from_state),
            _state_cell(entry.to_state),
            (entry.dispatch_id or "")[:8],
        )

    console.print(table)


def format_state(state: Any, console: Console) -> None:
    """Pretty-print a state value as JSON."""
    console.print_json(serialize_state(state))


def format_outcome(result: DispatchResult, console: Console) -> None:
    """One-line summary of a finished dispatch plus any error detail."""
    status = _state_cell(result.status)
    confidence = "n/a" if result.confidence is None else f"{result.confidence:.2f}"
    parts = [
        f"Status: {status}",
        f"attempts: {result.attempts}",
        f"confidence: {confidence}",
    ]
    if result.destructive:
        parts.append("[yellow]destructive[/yellow]")
    if result.usage is not None:
        parts.append(f"tokens: {result.usage.total_tokens} ({result.usage.source})")
    console.print(", ".join(parts), highlight=False)

    if result.error is not None:
        format_error(str(result.error), console)
        console.print(f"[dim]Suggestion:[/dim] {escape(result.error.suggestion)}", highlight=False)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)

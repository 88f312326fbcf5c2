"""statecraft history -- show persisted lifecycle transitions."""

from __future__ import annotations

import click

from statecraft.cli.formatting import format_audit_table, format_error, get_console


@click.command()
@click.option("--state-id", default=None, help="Only show transitions of this state.")
@click.option("-n", "--limit", default=50, type=int, help="Maximum number of transitions to show.")
@click.pass_context
def history(ctx: click.Context, state_id: str | None, limit: int) -> None:
    """Show the newest persisted transitions, oldest first."""
    from statecraft.cli import _open_store

    console = get_console()
    store = _open_store(ctx, must_exist=True)
    try:
        entries = store.list_transitions(state_id, limit=limit)
        format_audit_table(entries, console)
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
    finally:
        store.close()

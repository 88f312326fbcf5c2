"""statecraft providers -- list registered provider kinds."""

from __future__ import annotations

import click

from statecraft.cli.formatting import get_console


@click.command()
def providers() -> None:
    """List provider kinds accepted by --provider."""
    from statecraft.llm import available_providers

    console = get_console()
    for kind in available_providers():
        console.print(kind, highlight=False)

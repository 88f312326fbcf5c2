"""statecraft describe -- render a contract as the model sees it."""

from __future__ import annotations

import click

from statecraft.cli.formatting import get_console


@click.command()
@click.argument("contract")
def describe(contract: str) -> None:
    """Print the schema description of CONTRACT (module:attr)."""
    from statecraft.cli import _load_contract
    from statecraft.prompts import describe_contract

    console = get_console()
    console.print(describe_contract(_load_contract(contract)), markup=False, highlight=False)

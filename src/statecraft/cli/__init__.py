"""Statecraft CLI -- drive semantic state mutations from the terminal.

This module is NEVER imported from statecraft/__init__.py.
It is only loaded via the ``statecraft`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import importlib
import logging
import os
from typing import Any

import click

from statecraft.cli.formatting import format_error, get_console


@click.group()
@click.option(
    "--db",
    default=".statecraft.db",
    envvar="STATECRAFT_DB",
    help="Path to the history database.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log pipeline activity to stderr.")
@click.pass_context
def cli(ctx: click.Context, db: str, verbose: bool) -> None:
    """Statecraft: typed state mutated by natural-language intents."""
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db
    if verbose:
        from rich.console import Console
        from rich.logging import RichHandler

        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


def _load_contract(spec: str) -> Any:
    """Resolve ``module:attr`` to a contract object.

    Raises:
        click.BadParameter: If the reference is malformed or missing.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attr', got {spec!r}", param_hint="CONTRACT")
    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(f"cannot import {module_name!r}: {exc}", param_hint="CONTRACT") from None
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise click.BadParameter(f"{module_name!r} has no attribute {attr!r}", param_hint="CONTRACT") from None
    return target


def _open_store(ctx: click.Context, *, must_exist: bool = False):  # type: ignore[no-untyped-def]
    """Open the SqlHistoryStore at ``--db``."""
    from statecraft.storage import SqlHistoryStore

    db_path = ctx.obj["db_path"]
    if must_exist and db_path != ":memory:" and not os.path.exists(db_path):
        format_error(f"Database not found: {db_path}", get_console())
        raise SystemExit(1)
    return SqlHistoryStore.open(db_path)


# Register subcommands after cli group is defined
from statecraft.cli.commands.describe import describe  # noqa: E402
from statecraft.cli.commands.dispatch import dispatch  # noqa: E402
from statecraft.cli.commands.history import history  # noqa: E402
from statecraft.cli.commands.providers import providers  # noqa: E402

cli.add_command(describe)
cli.add_command(dispatch)
cli.add_command(history)
cli.add_command(providers)

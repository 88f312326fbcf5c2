"""statecraft dispatch -- apply one intent to a JSON state file."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import click
from pydantic_core import to_jsonable_python

from statecraft.cli.formatting import (
    format_audit_table,
    format_error,
    format_outcome,
    format_state,
    get_console,
)


@click.command()
@click.argument("contract")
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("intent")
@click.option("--provider", "provider_kind", default="openai", show_default=True, help="Provider kind (see `statecraft providers`).")
@click.option("--model", default=None, envvar="STATECRAFT_MODEL", help="Model name.")
@click.option("--base-url", default=None, help="Override the provider base URL.")
@click.option("--max-retries", default=3, show_default=True, type=click.IntRange(min=1), help="Inference calls allowed per dispatch.")
@click.option("--threshold", default=0.7, show_default=True, type=click.FloatRange(0.0, 1.0), help="Confidence below which changes need confirmation.")
@click.option("--context", default="", help="Context text placed at the top of the prompt.")
@click.option("--state-id", default=None, help="History key (defaults to the state file name).")
@click.option("-y", "--yes", is_flag=True, help="Approve gated changes without asking.")
@click.option("--write", is_flag=True, help="Write the committed state back to STATE_FILE.")
@click.pass_context
def dispatch(
    ctx: click.Context,
    contract: str,
    state_file: Path,
    intent: str,
    provider_kind: str,
    model: str | None,
    base_url: str | None,
    max_retries: int,
    threshold: float,
    context: str,
    state_id: str | None,
    yes: bool,
    write: bool,
) -> None:
    """Apply INTENT to the state in STATE_FILE, validated against CONTRACT."""
    from statecraft.cli import _load_contract, _open_store
    from statecraft.controller import SemanticState
    from statecraft.lifecycle import LifecycleState
    from statecraft.llm import create_provider
    from statecraft.models import ControllerConfig, ProviderConfig
    from statecraft.validation.schema import contract_adapter

    console = get_console()
    contract_obj = _load_contract(contract)
    try:
        initial = contract_adapter(contract_obj).validate_json(
            state_file.read_text(encoding="utf-8"), strict=True
        )
    except ValueError as e:
        format_error(f"{state_file} does not match {contract}: {e}", console)
        raise SystemExit(1) from None

    def gate(proposed: Any, current: Any, confidence: float) -> bool:
        if yes:
            return True
        console.print(f"[yellow]Confirmation required[/yellow] (confidence {confidence:.2f}). Proposed state:")
        format_state(proposed, console)
        return click.confirm("Apply this change?", default=False)

    async def run() -> Any:
        provider = create_provider(
            ProviderConfig.from_env(provider_kind, model=model, base_url=base_url)
        )
        try:
            controller = SemanticState(
                contract_obj,
                initial,
                provider.infer,
                config=ControllerConfig(
                    max_retries=max_retries,
                    confidence_threshold=threshold,
                    context=context,
                ),
                gate=gate,
                history_store=store,
                state_id=state_id or state_file.name,
            )
            result = await controller.dispatch(intent)
            return controller, result
        finally:
            await provider.aclose()

    store = _open_store(ctx)
    try:
        controller, result = asyncio.run(run())
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
    finally:
        store.close()

    format_audit_table(controller.history, console)
    format_outcome(result, console)
    if result.status is LifecycleState.REJECTED:
        raise SystemExit(1)

    format_state(result.state, console)
    if write:
        state_file.write_text(
            json.dumps(to_jsonable_python(result.state), indent=2) + "\n",
            encoding="utf-8",
        )
        console.print(f"Wrote {state_file}", highlight=False)

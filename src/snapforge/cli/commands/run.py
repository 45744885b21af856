"""snapforge run -- process one eligible snapshot."""

from __future__ import annotations

import click


@click.command()
@click.option("--model", default=None, help="Model name for the generative backend.")
@click.option("--max-retries", default=None, type=int, help="Attempts per snapshot.")
@click.pass_context
def run(ctx: click.Context, model: str | None, max_retries: int | None) -> None:
    """Run the Forge on the oldest ANNOTATED snapshot."""
    from snapforge.cli import _build_forge, _load_config, _store
    from snapforge.cli.formatting import format_forge_result
    from snapforge.sandbox.environment import ExecutionEnvironment

    with _store(ctx) as (repository, console):
        snapshot = repository.next_eligible()
        if snapshot is None:
            console.print("[dim]No ANNOTATED snapshots to process.[/dim]")
            return

        config = _load_config(model=model, max_retries=max_retries)
        with ExecutionEnvironment(timeout=config.execution_timeout) as environment:
            forge = _build_forge(config, environment)
            try:
                result = forge.process(snapshot)
            finally:
                forge.close()
        repository.save(snapshot)
        format_forge_result(result, console)

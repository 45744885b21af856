"""snapforge list -- list stored snapshots."""

from __future__ import annotations

import click

from snapforge.models.snapshot import PipelineState


@click.command("list")
@click.option(
    "--state",
    default=None,
    type=click.Choice([s.value for s in PipelineState], case_sensitive=False),
    help="Only show snapshots in this state.",
)
@click.option("-n", "--limit", default=50, type=int, help="Maximum number of snapshots to show.")
@click.pass_context
def list_snapshots(ctx: click.Context, state: str | None, limit: int) -> None:
    """List snapshots, oldest first."""
    from snapforge.cli import _store
    from snapforge.cli.formatting import format_snapshot_table

    with _store(ctx) as (repository, console):
        wanted = PipelineState(state.upper()) if state else None
        format_snapshot_table(repository.list(state=wanted, limit=limit), console)

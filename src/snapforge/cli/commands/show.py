"""snapforge show -- state, extractor and audit log of one snapshot."""

from __future__ import annotations

import click


@click.command()
@click.argument("snapshot_id")
@click.option("--no-source", is_flag=True, help="Hide the extractor source.")
@click.pass_context
def show(ctx: click.Context, snapshot_id: str, no_source: bool) -> None:
    """Show SNAPSHOT_ID (a unique prefix is enough)."""
    from snapforge.cli import _resolve, _store
    from snapforge.cli.formatting import format_snapshot_detail

    with _store(ctx) as (repository, console):
        snapshot = _resolve(repository, snapshot_id)
        format_snapshot_detail(snapshot, console, show_source=not no_source)

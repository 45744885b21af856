"""snapforge add -- store a captured document as an ANNOTATED snapshot."""

from __future__ import annotations

import json

import click


@click.command()
@click.argument("html_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-g",
    "--ground-truth",
    "ground_truth_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON file with the expected extraction result.",
)
@click.pass_context
def add(ctx: click.Context, html_file: str, ground_truth_file: str | None) -> None:
    """Add HTML_FILE to the store, ready for the Forge."""
    from snapforge.cli import _store
    from snapforge.models.snapshot import LogLevel, LogPhase, PipelineState, Snapshot

    with _store(ctx) as (repository, console):
        with open(html_file, encoding="utf-8") as fh:
            raw_document = fh.read()

        ground_truth = None
        if ground_truth_file is not None:
            with open(ground_truth_file, encoding="utf-8") as fh:
                ground_truth = json.load(fh)
            if not isinstance(ground_truth, dict):
                raise click.ClickException("Ground truth must be a JSON object")

        snapshot = Snapshot(raw_document=raw_document, ground_truth=ground_truth)
        snapshot.log(LogLevel.INFO, f"Captured from {html_file}", phase=LogPhase.MINER)
        if ground_truth is not None:
            snapshot.log(
                LogLevel.INFO,
                f"Ground truth attached ({len(ground_truth)} fields)",
                phase=LogPhase.ORACLE,
            )
        snapshot.state = PipelineState.ANNOTATED
        repository.add(snapshot)
        console.print(f"Added snapshot [yellow]{snapshot.snapshot_id}[/yellow]")

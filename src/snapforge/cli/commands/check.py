"""snapforge check -- run a local extractor against a stored snapshot."""

from __future__ import annotations

import click


@click.command()
@click.argument("snapshot_id")
@click.argument("source_file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--timeout", default=None, type=float, help="Sandbox timeout in seconds.")
@click.pass_context
def check(ctx: click.Context, snapshot_id: str, source_file: str | None, timeout: float | None) -> None:
    """Run SOURCE_FILE (or the stored extractor) through the Gauntlet.

    The result is diffed against the snapshot's ground truth when it has
    one. Exits 1 when the run fails.
    """
    from snapforge.cli import _load_config, _resolve, _store
    from snapforge.cli.formatting import format_gauntlet_result
    from snapforge.gauntlet import Gauntlet
    from snapforge.sandbox.environment import ExecutionEnvironment

    with _store(ctx) as (repository, console):
        snapshot = _resolve(repository, snapshot_id)
        if source_file is not None:
            with open(source_file, encoding="utf-8") as fh:
                source = fh.read()
        elif snapshot.extractor_source:
            source = snapshot.extractor_source
        else:
            raise click.ClickException("Snapshot has no stored extractor; pass SOURCE_FILE")

        config = _load_config(execution_timeout=timeout)
        with ExecutionEnvironment(timeout=config.execution_timeout) as environment:
            result = Gauntlet(environment, config).run(
                snapshot.raw_document, source, snapshot.ground_truth
            )
        format_gauntlet_result(result, console)
    if not result.success:
        raise SystemExit(1)

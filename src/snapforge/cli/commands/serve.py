"""snapforge serve -- poll for ANNOTATED snapshots until interrupted."""

from __future__ import annotations

import click


@click.command()
@click.option("--interval", default=None, type=float, help="Seconds between polls.")
@click.option("--model", default=None, help="Model name for the generative backend.")
@click.pass_context
def serve(ctx: click.Context, interval: float | None, model: str | None) -> None:
    """Run the Forge polling service (Ctrl-C to stop)."""
    from snapforge.cli import _build_forge, _load_config
    from snapforge.cli.formatting import format_error, get_console
    from snapforge.sandbox.environment import ExecutionEnvironment
    from snapforge.service import ForgeService
    from snapforge.storage.engine import create_forge_engine, create_session_factory, init_db

    console = get_console()
    try:
        config = _load_config(poll_interval=interval, model=model)
        engine = create_forge_engine(ctx.obj["db_path"])
        try:
            init_db(engine)
            environment = ExecutionEnvironment(timeout=config.execution_timeout)
            service = ForgeService(
                _build_forge(config, environment),
                create_session_factory(engine),
                environment,
            )
            console.print(
                f"Forge service started (poll interval {service.poll_interval:g}s, "
                f"max retries {config.max_retries})"
            )
            processed = service.serve()
            console.print(f"Stopped after processing {processed} snapshot(s)")
        finally:
            engine.dispose()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

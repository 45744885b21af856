"""snapforge CLI -- operate the snapshot store and the Forge from a terminal.

This module is never imported from snapforge/__init__.py. It is loaded via
the ``snapforge`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from snapforge.cli.formatting import format_error, get_console

if TYPE_CHECKING:
    from collections.abc import Iterator

    from snapforge.forge import Forge
    from snapforge.models.config import ForgeConfig
    from snapforge.sandbox.environment import ExecutionEnvironment
    from snapforge.storage.sqlite import SqliteSnapshotRepository


@click.group()
@click.option(
    "--db",
    default=".snapforge.db",
    envvar="SNAPFORGE_DB",
    help="Path to the snapshot database.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, db: str, verbose: bool) -> None:
    """snapforge: turn captured documents into verified extractors."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db


def _load_config(**overrides: object) -> ForgeConfig:
    from snapforge.models.config import ForgeConfig

    return ForgeConfig.from_env(**overrides)


@contextmanager
def _store(ctx: click.Context) -> Iterator[tuple[SqliteSnapshotRepository, Console]]:
    """Open the database, yield (repository, console), commit on success.

    Exceptions become a formatted error and exit code 1.
    """
    from snapforge.storage.engine import create_forge_engine, create_session_factory, init_db
    from snapforge.storage.sqlite import SqliteSnapshotRepository

    console = get_console()
    try:
        engine = create_forge_engine(ctx.obj["db_path"])
        try:
            init_db(engine)
            with create_session_factory(engine)() as session:
                yield SqliteSnapshotRepository(session), console
                session.commit()
        finally:
            engine.dispose()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


def _build_forge(config: ForgeConfig, environment: ExecutionEnvironment) -> Forge:
    """Wire the default OpenAI-compatible backend into a Forge."""
    from snapforge.forge import Forge
    from snapforge.gauntlet import Gauntlet
    from snapforge.generation.loop import CodeGenerator
    from snapforge.llm.client import OpenAIClient

    client = OpenAIClient(default_model=config.model)
    generator = CodeGenerator(client, config=config)
    return Forge(generator, Gauntlet(environment, config), config)


def _resolve(repository: SqliteSnapshotRepository, snapshot_id: str):
    snapshot = repository.get_by_prefix(snapshot_id)
    if snapshot is None:
        raise click.ClickException(f"Snapshot not found: {snapshot_id}")
    return snapshot


# Register subcommands after cli group is defined
from snapforge.cli.commands.add import add  # noqa: E402
from snapforge.cli.commands.check import check  # noqa: E402
from snapforge.cli.commands.list import list_snapshots  # noqa: E402
from snapforge.cli.commands.run import run  # noqa: E402
from snapforge.cli.commands.serve import serve  # noqa: E402
from snapforge.cli.commands.show import show  # noqa: E402

cli.add_command(add)
cli.add_command(list_snapshots)
cli.add_command(show)
cli.add_command(run)
cli.add_command(serve)
cli.add_command(check)

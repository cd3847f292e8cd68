"""Command line entry point: ``coprocessor-indexer process``."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer

from . import __version__
from .adapters.jsonl import load_stream_provider
from .config import IndexerSettings
from .coprocessors import build_coprocessors
from .exceptions import ConfigurationError, IndexerError
from .log import configure_logging
from .manager import ProcessorManager
from .persistence.sqlalchemy import (
    SQLAlchemyCheckpointStore,
    create_engine,
    create_schema,
    create_session_factory,
    sqlalchemy_unit_of_work_factory,
)
from .retry import RetryPolicy
from .supervisor import Supervisor

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .coprocessor import Coprocessor
    from .ports.stream import ITransactionStream

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="coprocessor-indexer",
    help="Index a ledger transaction stream into independently checkpointed coprocessors.",
    no_args_is_help=True,
)


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file without overriding the
    process environment."""
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
) -> None:
    """Ledger coprocessor indexer."""
    if not no_dotenv:
        _load_dotenv(env_file=env_file)


async def run_indexer(
    settings: IndexerSettings,
    *,
    coprocessors: Sequence[Coprocessor] | None = None,
    stream_factory: Callable[[], ITransactionStream] | None = None,
) -> Any:
    """Wire persistence, stream and coprocessors, then supervise the pipeline."""
    if stream_factory is None:
        if not settings.stream_provider:
            raise ConfigurationError(
                "no stream provider configured (set stream_provider)"
            )
        stream_factory = load_stream_provider(settings.stream_provider)
    if coprocessors is None:
        coprocessors = build_coprocessors(settings.chain_id)

    # The engine connects lazily; the first connection happens in prepare,
    # inside a supervised attempt.
    engine = create_engine(settings.db_connection_uri)

    async def prepare() -> None:
        await create_schema(engine)

    try:
        session_factory = create_session_factory(engine)
        manager = ProcessorManager(
            settings.chain_id,
            settings.starting_version,
            coprocessors,
            checkpoint_store=SQLAlchemyCheckpointStore(session_factory),
            uow_factory=sqlalchemy_unit_of_work_factory(session_factory),
            stream_factory=stream_factory,
            prepare=prepare,
        )
        supervisor = Supervisor(
            manager,
            retry_policy=RetryPolicy(
                max_attempts=settings.max_attempts,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
            ),
        )
        return await supervisor.run()
    finally:
        await engine.dispose()


@app.command()
def process(
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to a YAML config file. Defaults to environment variables.",
    ),
    perf: int | None = typer.Option(
        None,
        "--perf",
        help="Performance setting.",
    ),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Root log level (TRACE, DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Start the processor service."""
    try:
        configure_logging(log_level)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    try:
        if config is not None:
            settings = IndexerSettings.from_yaml_file(config)
        else:
            settings = IndexerSettings.from_env()
    except ConfigurationError as e:
        typer.echo(f"Failed to load configuration: {e}", err=True)
        raise typer.Exit(1) from None

    if perf is not None:
        logger.info("Performance setting applied: %d", perf)

    try:
        asyncio.run(run_indexer(settings))
    except IndexerError as e:
        typer.echo(f"Failed to run the processor: {e}", err=True)
        raise typer.Exit(1) from None


@app.command()
def version() -> None:
    """Print the package version."""
    typer.echo(f"coprocessor-indexer {__version__}")

"""llmcc CLI -- terminal interface for contract-checked decoding.

This module is NEVER imported from llmcc/__init__.py.
It is only loaded via the ``llmcc`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import click
from dotenv import load_dotenv

from llmcc.cli.formatting import format_error, get_console

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from llmcc.storage.sqlite import SqliteCompileRecordRepository

DEFAULT_DB_PATH = ".llmcc/records.db"


@click.group()
@click.option(
    "--db",
    default=DEFAULT_DB_PATH,
    envvar="LLMCC_DB",
    help="Path to the compile record database.",
)
@click.option(
    "--api-key",
    default=None,
    help="OpenAI API key (or set LLMCC_OPENAI_API_KEY).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, db: str, api_key: str | None, verbose: bool) -> None:
    """llmcc: compile LLM outputs against contracts."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db
    ctx.obj["api_key"] = api_key


@contextmanager
def _records_session(
    ctx: click.Context,
) -> Iterator[tuple[SqliteCompileRecordRepository, Console]]:
    """Open the record database, yield (repository, console), commit on success.

    Exceptions raised inside the ``with`` block are formatted as CLI errors.
    """
    from llmcc.storage.engine import create_llmcc_engine, create_session_factory, init_db
    from llmcc.storage.sqlite import SqliteCompileRecordRepository

    console = get_console()
    try:
        engine = create_llmcc_engine(ctx.obj["db_path"])
        try:
            init_db(engine)
            session = create_session_factory(engine)()
            try:
                yield SqliteCompileRecordRepository(session), console
                session.commit()
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()
        finally:
            engine.dispose()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


# Register subcommands after cli group is defined
from llmcc.cli.commands.check import check  # noqa: E402
from llmcc.cli.commands.compile import compile_  # noqa: E402
from llmcc.cli.commands.log import log  # noqa: E402
from llmcc.cli.commands.spec_hash import spec_hash  # noqa: E402
from llmcc.cli.commands.test import test  # noqa: E402

cli.add_command(compile_)
cli.add_command(spec_hash)
cli.add_command(check)
cli.add_command(test)
cli.add_command(log)

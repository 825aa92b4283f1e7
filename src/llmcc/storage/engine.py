"""SQLAlchemy engine and sessions for the compile-record database."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, create_engine, event, select
from sqlalchemy.orm import Session, sessionmaker

from llmcc.storage.schema import Base, LLMCCMetaRow

SCHEMA_VERSION = "1"
_VERSION_KEY = "schema_version"

_SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA busy_timeout=5000",
    "PRAGMA synchronous=NORMAL",
)


def _sqlite_url(db_path: str) -> str:
    if db_path == ":memory:":
        return "sqlite://"
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def _apply_pragmas(dbapi_conn, _connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_conn.cursor()
    for pragma in _SQLITE_PRAGMAS:
        cursor.execute(pragma)
    cursor.close()


def create_llmcc_engine(db_path: str = ":memory:", *, url: str | None = None) -> Engine:
    """Engine for a record database.

    *db_path* is a SQLite file (its parent directory is created) or
    ``":memory:"``. A full SQLAlchemy *url* takes precedence when given.
    SQLite connections run in WAL mode.
    """
    engine = create_engine(url or _sqlite_url(db_path), echo=False)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _apply_pragmas)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Rows are read after commit by the CLI, so keep them loaded.
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> str:
    """Create missing tables and return the stored schema version.

    A fresh database is stamped with SCHEMA_VERSION.
    """
    Base.metadata.create_all(engine)
    with create_session_factory(engine)() as session:
        row = session.execute(
            select(LLMCCMetaRow).where(LLMCCMetaRow.key == _VERSION_KEY)
        ).scalar_one_or_none()
        if row is not None:
            return row.value
        session.add(LLMCCMetaRow(key=_VERSION_KEY, value=SCHEMA_VERSION))
        session.commit()
        return SCHEMA_VERSION

"""Shared test fixtures for llmcc.

Provides in-memory SQLite fixtures, the slug contract used across the
decode tests, and ScriptedGenerator, a Generator that replays a fixed
script of candidates (or exceptions) and records every call.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.orm import sessionmaker

from llmcc.models.contract import Contract
from llmcc.storage.engine import create_llmcc_engine, init_db
from llmcc.storage.sqlite import SqliteCompileRecordRepository

COOKBOOK_DIR = Path(__file__).resolve().parent.parent / "cookbook"
SLUGIFY_DIR = COOKBOOK_DIR / "slugify"
API_RESPONSE_DIR = COOKBOOK_DIR / "api_response"

SLUG_SCHEMA: dict = {
    "type": "string",
    "minLength": 1,
    "maxLength": 80,
    "pattern": "^[a-z0-9]+(-[a-z0-9]+)*$",
}

SLUG_INVARIANTS = ("len(output) <= 80", 'matches(output, "^[a-z0-9-]+$")')


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    eng = create_llmcc_engine(":memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    """Session with automatic rollback after each test."""
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    sess = SessionLocal()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def record_repo(session) -> SqliteCompileRecordRepository:
    return SqliteCompileRecordRepository(session)


@pytest.fixture
def slug_contract() -> Contract:
    return make_slug_contract()


# ------------------------------------------------------------------
# Shared test helpers
# ------------------------------------------------------------------


def make_slug_contract(**overrides: Any) -> Contract:
    """Slug contract with the schema supplied inline (no output_schema locator)."""
    fields: dict[str, Any] = {
        "name": "slugify_title",
        "version": "v1",
        "intent": "Convert an arbitrary title into a web-safe slug.",
        "invariants": SLUG_INVARIANTS,
        "error_codes": ("SLUG_TOO_LONG", "SLUG_INVALID_CHAR"),
    }
    fields.update(overrides)
    return Contract(**fields)


class ScriptedGenerator:
    """Generator that replays a script of candidates.

    Each script entry is returned in turn; entries that are exceptions are
    raised instead. The last entry repeats once the script runs out.
    Every call is recorded in ``calls`` as a dict of its arguments.
    """

    decode_mode = "scripted"

    def __init__(self, script: list[Any], *, delay: float = 0.0) -> None:
        if not script:
            raise ValueError("script must not be empty")
        self._script = list(script)
        self._delay = delay
        self.calls: list[dict[str, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def generate(
        self,
        prompt: str,
        *,
        is_repair_round: bool = False,
        model: str | None = None,
        temperature: float | None = None,
    ) -> Any:
        index = min(len(self.calls), len(self._script) - 1)
        self.calls.append(
            {
                "prompt": prompt,
                "is_repair_round": is_repair_round,
                "model": model,
                "temperature": temperature,
            }
        )
        if self._delay:
            time.sleep(self._delay)
        item = self._script[index]
        if isinstance(item, BaseException):
            raise item
        return item

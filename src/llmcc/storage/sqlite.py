"""SQLite implementation of the compile record repository."""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from llmcc.storage.repositories import CompileRecordRepository
from llmcc.storage.schema import CompileRecordRow


class SqliteCompileRecordRepository(CompileRecordRepository):
    """SQLite implementation of compile record storage.

    The caller owns the session and its transaction; save() only flushes.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def save(self, record: CompileRecordRow) -> None:
        self._session.add(record)
        self._session.flush()

    def get(self, record_id: int) -> CompileRecordRow | None:
        stmt = select(CompileRecordRow).where(CompileRecordRow.record_id == record_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def list_recent(
        self, limit: int = 20, *, artifact: str | None = None
    ) -> Sequence[CompileRecordRow]:
        stmt = select(CompileRecordRow)
        if artifact is not None:
            stmt = stmt.where(CompileRecordRow.artifact == artifact)
        stmt = stmt.order_by(
            CompileRecordRow.created_at.desc(), CompileRecordRow.record_id.desc()
        ).limit(limit)
        return list(self._session.execute(stmt).scalars().all())

    def list_by_spec_hash(self, spec_hash: str) -> Sequence[CompileRecordRow]:
        stmt = (
            select(CompileRecordRow)
            .where(CompileRecordRow.spec_hash == spec_hash)
            .order_by(CompileRecordRow.created_at, CompileRecordRow.record_id)
        )
        return list(self._session.execute(stmt).scalars().all())

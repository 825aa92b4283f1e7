"""SQLAlchemy ORM schema for llmcc compile records.

Defines the compile_records table (one row per compile run) and the
_llmcc_meta key/value table that holds the schema version.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all llmcc ORM models."""

    pass


class CompileRecordRow(Base):
    """Metadata of one compile run: what was asked, how it went."""

    __tablename__ = "compile_records"

    record_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    artifact: Mapped[str] = mapped_column(String(255), nullable=False)
    spec_version: Mapped[str] = mapped_column(String(64), nullable=False)
    spec_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    temperature: Mapped[float] = mapped_column(Float, nullable=False)
    decode_mode: Mapped[str] = mapped_column(String(64), nullable=False)
    schema_pass: Mapped[bool] = mapped_column(Boolean, nullable=False)
    invariants_pass: Mapped[bool] = mapped_column(Boolean, nullable=False)
    valid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    repairs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    violations_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_compile_records_artifact_created", "artifact", "created_at"),
    )


class LLMCCMetaRow(Base):
    """Key/value metadata about the database itself."""

    __tablename__ = "_llmcc_meta"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(String(255), nullable=False)

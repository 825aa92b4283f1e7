"""Abstract repository interface for compile records.

No SQLAlchemy imports here -- pure abstract contract.
Concrete implementation is in sqlite.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from llmcc.storage.schema import CompileRecordRow


class CompileRecordRepository(ABC):
    """Abstract interface for compile record storage."""

    @abstractmethod
    def save(self, record: CompileRecordRow) -> None:
        """Persist a compile record."""
        ...

    @abstractmethod
    def get(self, record_id: int) -> CompileRecordRow | None:
        """Get a record by id. Returns None if not found."""
        ...

    @abstractmethod
    def list_recent(
        self, limit: int = 20, *, artifact: str | None = None
    ) -> Sequence[CompileRecordRow]:
        """Most recent records first, optionally for one artifact."""
        ...

    @abstractmethod
    def list_by_spec_hash(self, spec_hash: str) -> Sequence[CompileRecordRow]:
        """All records compiled against one contract fingerprint, oldest first."""
        ...

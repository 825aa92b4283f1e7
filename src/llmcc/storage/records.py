"""Conversion between decode results and compile records.

build_record() captures a DecodeResult as a CompileRecordRow;
record_to_dict() gives the JSON shape the metadata log has always used
(``artifact``, ``spec``, ``decode``, ``verify``...), and export_jsonl()
writes records in that shape, one per line.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from llmcc.storage.schema import CompileRecordRow

if TYPE_CHECKING:
    from llmcc.models.contract import Contract
    from llmcc.models.verdict import DecodeResult


def build_record(
    result: DecodeResult,
    contract: Contract,
    *,
    created_at: datetime | None = None,
) -> CompileRecordRow:
    info = result.model_info
    violations = result.verification.describe()
    return CompileRecordRow(
        artifact=contract.name,
        spec_version=contract.version,
        spec_hash=result.spec_hash,
        model=info.model if info else "unknown",
        temperature=info.temperature if info else 0.0,
        decode_mode=info.decode_mode if info else "unknown",
        schema_pass=result.verification.schema_pass,
        invariants_pass=result.verification.invariants_pass,
        valid=result.valid,
        repairs=result.repairs_attempted,
        latency_ms=result.latency_ms,
        violations_json=json.dumps(violations) if violations else None,
        created_at=created_at or datetime.now(timezone.utc).replace(tzinfo=None),
    )


def record_to_dict(row: CompileRecordRow) -> dict[str, Any]:
    data: dict[str, Any] = {
        "artifact": row.artifact,
        "spec": row.spec_version,
        "spec_hash": row.spec_hash,
        "model": row.model,
        "decode": {"mode": row.decode_mode, "temperature": row.temperature},
        "verify": {
            "schema_pass": row.schema_pass,
            "tests_pass": row.invariants_pass,
        },
        "valid": row.valid,
        "repairs": row.repairs,
        "latency_ms": row.latency_ms,
        "timestamp": row.created_at.isoformat(),
    }
    if row.violations_json:
        data["violations"] = json.loads(row.violations_json)
    return data


def export_jsonl(rows: Iterable[CompileRecordRow], path: str | Path) -> int:
    """Append records to a JSONL file. Returns the number written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("a", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(record_to_dict(row)) + "\n")
            count += 1
    return count

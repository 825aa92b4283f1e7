"""Deterministic contract fingerprinting for llmcc.

The spec hash identifies a contract's stable fields (name, version,
invariants, error codes) for audit trails and compile records. It is
never used for control flow inside the decode loop.

Hashing is order-sensitive over invariants and error codes: reordering
invariants changes the hash, because audit trails compare exact contract
text. Dict keys are canonicalised, so field order in the contract file
does not matter.
"""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from llmcc.models.contract import Contract

SPEC_HASH_LENGTH = 8


def canonical_json(data: Any) -> bytes:
    """Serialize data to canonical JSON bytes.

    Uses sorted keys, compact separators, and UTF-8 encoding
    to ensure deterministic output.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def spec_payload(contract: Contract) -> dict[str, Any]:
    """Return the subset of a contract that participates in the hash."""
    return {
        "name": contract.name,
        "version": contract.version,
        "invariants": list(contract.invariants),
        "error_codes": list(contract.error_codes),
    }


def hash_spec(contract: Contract) -> str:
    """Compute the short spec hash of a contract.

    Returns:
        The first 8 hex characters of the SHA-256 of the canonical payload.
    """
    digest = hashlib.sha256(canonical_json(spec_payload(contract))).hexdigest()
    return digest[:SPEC_HASH_LENGTH]


def format_spec_id(contract: Contract) -> str:
    """Return ``name@version#hash`` for display and compile records."""
    return f"{contract.name}@{contract.version}#{hash_spec(contract)}"

"""Contract model for llmcc.

A Contract declares what a generated artifact must satisfy: an output
JSON Schema (by locator) plus an ordered list of invariant expressions.
Contracts are immutable; one is built per compilation request and never
mutated during a decode loop.

Contract files are YAML or JSON documents with the same field names::

    name: slugify_title
    version: v1
    intent: Convert an arbitrary title into a web-safe slug.
    output_schema: ref://slugify.output.schema.json
    invariants:
      - len(output) <= 80
      - matches(output, "^[a-z0-9-]+$")
    error_codes:
      - SLUG_TOO_LONG
      - SLUG_INVALID_CHAR
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from llmcc.exceptions import ContractError


class Counterexample(BaseModel):
    """An input known to trip naive implementations. Informational only."""

    model_config = {"frozen": True}

    input: str
    fail_reason: str = ""


class Contract(BaseModel):
    """Immutable description of an expected artifact."""

    model_config = {"frozen": True, "extra": "ignore"}

    name: str
    version: str = "v1"
    intent: str = ""
    input_schema: Optional[str] = None
    output_schema: Optional[str] = None
    invariants: tuple[str, ...] = ()
    error_codes: tuple[str, ...] = ()
    counterexamples: tuple[Counterexample, ...] = ()
    spec_hash: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_is_identifier(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("contract name must not be empty")
        return value

    @field_validator("version")
    @classmethod
    def _version_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("contract version must not be empty")
        return value

    @field_validator("invariants", "error_codes", mode="before")
    @classmethod
    def _coerce_sequence(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return value

    @field_validator("invariants")
    @classmethod
    def _strip_invariants(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(v.strip() for v in value if v.strip())

    @classmethod
    def from_dict(cls, data: dict) -> Contract:
        """Build a Contract, converting pydantic errors to ContractError."""
        if not isinstance(data, dict):
            raise ContractError(
                f"Contract must be a mapping, got {type(data).__name__}"
            )
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ContractError(f"Invalid contract: {exc}") from exc


def load_contract(path: str | Path) -> Contract:
    """Load a contract from a YAML or JSON file.

    Raises:
        ContractError: If the file is missing, unparsable, or the contract
            is missing required fields.
    """
    path = Path(path)
    if not path.exists():
        raise ContractError(f"Contract file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ContractError(f"Cannot parse contract file {path}: {exc}") from exc

    return Contract.from_dict(data or {})

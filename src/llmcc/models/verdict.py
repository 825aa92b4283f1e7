"""Verdict and result types for the decode loop.

Violation describes one failed check, ValidationVerdict aggregates the
checks run against a single candidate, and DecodeResult is the terminal
record of one decode() call. All three are frozen: verdicts are derived
fresh for every candidate and results are immutable once returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

ViolationSource = Literal["schema", "invariant"]


@dataclass(frozen=True)
class Violation:
    """One failed schema check or invariant.

    Attributes:
        source: "schema" for JSON Schema failures, "invariant" for
            invariant expressions.
        message: Human-readable failure message.
        path: JSON path of the failing value for schema violations
            (e.g. ``$.data.user.id``), None for invariants.
        keyword: Failing JSON Schema keyword (``pattern``, ``maxLength``...),
            None for invariants.
        expression: Invariant source text, None for schema violations.
        error: Evaluation error text when the invariant raised instead of
            returning a value.
        limit: Numeric bound involved in the failure, when known
            (``maxLength`` value or an invariant's length bound).
        pattern: Regular expression involved in the failure, when known.
    """

    source: ViolationSource
    message: str
    path: str | None = None
    keyword: str | None = None
    expression: str | None = None
    error: str | None = None
    limit: int | None = None
    pattern: str | None = None

    @property
    def is_evaluation_error(self) -> bool:
        return self.error is not None

    def __str__(self) -> str:
        if self.source == "schema":
            return f"{self.path or '$'}: {self.message} [{self.keyword}]"
        if self.error is not None:
            return f"{self.expression} (evaluation error: {self.error})"
        return self.expression or self.message


@dataclass(frozen=True)
class ValidationVerdict:
    """Outcome of validating one candidate.

    Violations are ordered: schema violations first (sorted by path),
    then invariant violations in declaration order.
    """

    schema_pass: bool
    invariants_pass: bool
    violations: tuple[Violation, ...] = ()

    @property
    def passed(self) -> bool:
        return self.schema_pass and self.invariants_pass

    def describe(self) -> list[str]:
        """Return the violations as display strings, in check order."""
        return [str(v) for v in self.violations]

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_pass": self.schema_pass,
            "invariants_pass": self.invariants_pass,
            "violations": self.describe(),
        }


@dataclass(frozen=True)
class ModelInfo:
    """Generator settings used for a decode loop."""

    model: str
    temperature: float
    decode_mode: str = "json_schema+strict"


@dataclass(frozen=True)
class DecodeResult:
    """Terminal artifact of one decode() call.

    Attributes:
        output: The accepted candidate, or the last rejected one when
            ``valid`` is False.
        valid: Whether ``output`` passed schema and invariant checks.
        repairs_attempted: Repairs actually performed (never more than
            the loop's max_repairs).
        verification: Verdict for ``output``.
        spec_hash: Fingerprint of the contract's stable fields.
        latency_ms: Wall-clock time from loop entry to terminal state.
        model_info: Generator settings used.
        rounds: Number of generation rounds started.
        history: Brief log of each round's outcome, oldest first.
    """

    output: Any
    valid: bool
    repairs_attempted: int
    verification: ValidationVerdict
    spec_hash: str
    latency_ms: int
    model_info: ModelInfo | None = None
    rounds: int = 1
    history: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.repairs_attempted < 0:
            raise ValueError("repairs_attempted must be >= 0")
        if self.latency_ms < 0:
            raise ValueError("latency_ms must be >= 0")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "output": self.output,
            "valid": self.valid,
            "repairs_attempted": self.repairs_attempted,
            "verification": self.verification.to_dict(),
            "spec_hash": self.spec_hash,
            "latency_ms": self.latency_ms,
            "rounds": self.rounds,
        }
        if self.model_info is not None:
            data["model_info"] = {
                "model": self.model_info.model,
                "temperature": self.model_info.temperature,
                "decode_mode": self.model_info.decode_mode,
            }
        return data

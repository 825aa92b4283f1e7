"""Example-driven checks for hand-written implementations of a contract.

Examples are JSONL, one object per line::

    {"ok": true, "in": "Hello World", "out": "hello-world"}
    {"ok": false, "in": "   ", "reason": "SLUG_EMPTY"}

An ``ok`` example passes when the implementation returns ``out`` (or
anything, when ``out`` is absent) and, if a compiled contract is given,
the returned value satisfies it. A failing example passes when the
implementation raises.
"""

from __future__ import annotations

import importlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from llmcc.exceptions import ConfigurationError

if TYPE_CHECKING:
    from llmcc.decode import CompiledContract

logger = logging.getLogger(__name__)


class Example(BaseModel):
    """One line of an examples file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ok: bool
    input: Any = Field(alias="in")
    out: Any = None
    reason: Optional[str] = None

    @property
    def has_expected(self) -> bool:
        return "out" in self.model_fields_set


@dataclass(frozen=True)
class ExampleOutcome:
    example: Example
    passed: bool
    detail: str
    output: Any = None


@dataclass(frozen=True)
class ExampleReport:
    outcomes: tuple[ExampleOutcome, ...]

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.passed)

    @property
    def all_passed(self) -> bool:
        return self.passed == self.total


def load_examples(path: str | Path) -> list[Example]:
    """Read a JSONL examples file, skipping blank lines.

    Raises:
        ConfigurationError: If the file is missing or a line is malformed.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Examples file not found: {path}")

    examples: list[Example] = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
        if not line.strip():
            continue
        try:
            examples.append(Example.model_validate(json.loads(line)))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ConfigurationError(f"{path}:{lineno}: invalid example: {exc}") from exc
    return examples


def import_callable(target: str) -> Callable[[Any], Any]:
    """Resolve ``package.module:function`` to a callable.

    Raises:
        ConfigurationError: If the target is malformed or not callable.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(
            f"Expected 'module:function', got {target!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import {module_name}: {exc}") from exc
    fn = getattr(module, attr, None)
    if not callable(fn):
        raise ConfigurationError(f"{target} is not a callable")
    return fn


def run_examples(
    fn: Callable[[Any], Any],
    examples: Sequence[Example],
    compiled: CompiledContract | None = None,
) -> ExampleReport:
    """Run *fn* over every example. Never raises for implementation errors."""
    outcomes = [_run_one(fn, ex, compiled) for ex in examples]
    report = ExampleReport(tuple(outcomes))
    logger.info("Examples: %d/%d passed", report.passed, report.total)
    return report


def _run_one(
    fn: Callable[[Any], Any], example: Example, compiled: CompiledContract | None
) -> ExampleOutcome:
    try:
        output = fn(example.input)
    except Exception as exc:
        if not example.ok:
            return ExampleOutcome(example, True, f"correctly failed: {example.reason or exc}")
        return ExampleOutcome(example, False, f"unexpectedly failed: {exc}")

    if not example.ok:
        return ExampleOutcome(example, False, "should have failed", output)
    if example.has_expected and output != example.out:
        return ExampleOutcome(
            example, False, f"expected {example.out!r}, got {output!r}", output
        )
    if compiled is not None:
        verdict = compiled.validate(output)
        if not verdict.passed:
            return ExampleOutcome(
                example, False, "violates contract: " + "; ".join(verdict.describe()), output
            )
    return ExampleOutcome(example, True, "ok", output)

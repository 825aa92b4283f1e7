"""Deterministic repair of failing candidates.

A Repairer holds an ordered catalog of RepairRules. Each violation is
mapped to one or more categories (too long, disallowed characters, bad
separator) and every rule whose category was hit is applied in catalog
order. Rules are pure string transformations chosen so that running the
catalog twice gives the same value as running it once.

Repair never raises and never changes letter case. When no rule applies,
the candidate is returned unchanged (the same object), which tells the
decode loop that repair made no progress.

RepairRegistry maps a contract's declared shape (output schema plus
invariant set) to the Repairer used for it, so new artifact kinds plug in
without special-casing contract names.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import yaml
from pydantic import BaseModel, ValidationError

from llmcc.engine.hashing import canonical_json
from llmcc.exceptions import RepairConfigError
from llmcc.models.verdict import Violation

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = "-"
DEFAULT_MAX_LENGTH = 80


class RepairCategory(str, enum.Enum):
    """Violation categories the repair catalog is keyed by."""

    TOO_LONG = "too_long"
    DISALLOWED_CHARS = "disallowed_chars"
    BAD_SEPARATOR = "bad_separator"


def categorize(violation: Violation) -> frozenset[RepairCategory]:
    """Map a violation to the repair categories it calls for.

    Invariants that raised during evaluation are not repairable.
    """
    if violation.is_evaluation_error:
        return frozenset()
    categories: set[RepairCategory] = set()
    if violation.keyword == "maxLength" or violation.limit is not None:
        categories.add(RepairCategory.TOO_LONG)
    if violation.keyword == "pattern" or violation.pattern is not None:
        categories.add(RepairCategory.DISALLOWED_CHARS)
        categories.add(RepairCategory.BAD_SEPARATOR)
    return frozenset(categories)


@dataclass(frozen=True)
class RepairContext:
    """Parameters shared by the rules of one repair call."""

    separator: str = DEFAULT_SEPARATOR
    max_length: int = DEFAULT_MAX_LENGTH


# ---------------------------------------------------------------------------
# Built-in transformations
# ---------------------------------------------------------------------------


def _collapse(value: str, sep: str) -> str:
    escaped = re.escape(sep)
    value = re.sub(f"(?:{escaped})+", sep, value)
    return value.strip(sep)


def normalize_separators(value: str, ctx: RepairContext) -> str:
    """Whitespace, underscores and dots become the separator; runs collapse."""
    return _collapse(re.sub(r"[\s_.]+", ctx.separator, value), ctx.separator)


def strip_disallowed(value: str, ctx: RepairContext) -> str:
    """Replace anything but ASCII letters, digits and the separator."""
    disallowed = f"[^A-Za-z0-9{re.escape(ctx.separator)}]+"
    return _collapse(re.sub(disallowed, ctx.separator, value), ctx.separator)


def truncate(value: str, ctx: RepairContext) -> str:
    """Cut to the length limit, then drop trailing separators."""
    limit = max(0, ctx.max_length)
    if len(value) <= limit:
        return value
    return value[:limit].rstrip(ctx.separator)


@dataclass(frozen=True)
class RepairRule:
    """One catalogued transformation.

    Attributes:
        code: Identifier shown in logs and repair configs (often the
            contract's error code, e.g. ``SLUG_TOO_LONG``).
        categories: Violation categories that trigger this rule.
        action: Pure ``(str, RepairContext) -> str`` transformation.
    """

    code: str
    categories: frozenset[RepairCategory]
    action: Callable[[str, RepairContext], str]

    def applies_to(self, categories: frozenset[RepairCategory]) -> bool:
        return bool(self.categories & categories)


ACTIONS: dict[str, tuple[Callable[[str, RepairContext], str], frozenset[RepairCategory]]] = {
    "normalize_separators": (
        normalize_separators,
        frozenset({RepairCategory.BAD_SEPARATOR}),
    ),
    "strip_disallowed": (
        strip_disallowed,
        frozenset({RepairCategory.DISALLOWED_CHARS}),
    ),
    "truncate": (
        truncate,
        frozenset({RepairCategory.TOO_LONG}),
    ),
}


def default_rules() -> tuple[RepairRule, ...]:
    """The built-in catalog, in application order."""
    return tuple(
        RepairRule(code=name, categories=categories, action=action)
        for name, (action, categories) in ACTIONS.items()
    )


class Repairer:
    """Applies the repair catalog to a failing candidate.

    Usage::

        repairer = Repairer()
        fixed = repairer.repair("abc---", verdict.violations)
    """

    def __init__(
        self,
        rules: Sequence[RepairRule] | None = None,
        *,
        separator: str = DEFAULT_SEPARATOR,
        default_max_length: int = DEFAULT_MAX_LENGTH,
    ) -> None:
        if len(separator) != 1:
            raise ValueError(f"separator must be a single character, got {separator!r}")
        self._rules = tuple(rules) if rules is not None else default_rules()
        self._separator = separator
        self._default_max_length = default_max_length

    @property
    def rules(self) -> tuple[RepairRule, ...]:
        return self._rules

    def repair(self, candidate: Any, violations: Sequence[Violation]) -> Any:
        """Return a repaired candidate, or *candidate* itself if nothing applies."""
        if not isinstance(candidate, str):
            return candidate

        categories: frozenset[RepairCategory] = frozenset()
        limits: list[int] = []
        for violation in violations:
            found = categorize(violation)
            categories |= found
            if RepairCategory.TOO_LONG in found and violation.limit is not None:
                limits.append(violation.limit)
        if not categories:
            return candidate

        ctx = RepairContext(
            separator=self._separator,
            max_length=min(limits) if limits else self._default_max_length,
        )

        repaired = candidate
        for rule in self._rules:
            if not rule.applies_to(categories):
                continue
            try:
                repaired = rule.action(repaired, ctx)
            except Exception:
                logger.warning("Repair rule %s failed; skipping", rule.code, exc_info=True)

        if repaired == candidate:
            return candidate
        logger.debug("Repaired %r -> %r", candidate, repaired)
        return repaired

    __call__ = repair


# ---------------------------------------------------------------------------
# Repair configuration files
# ---------------------------------------------------------------------------


class RepairSpec(BaseModel):
    """One entry of a repair config's ``repairs`` list."""

    model_config = {"extra": "allow"}

    code: str
    action: str
    strategy: str = ""
    max_length: Optional[int] = None


class RepairConfig(BaseModel):
    """A repair config file: ordered repairs plus error-code descriptions."""

    repairs: list[RepairSpec] = []
    error_codes: dict[str, str] = {}
    separator: str = DEFAULT_SEPARATOR

    def build_repairer(self) -> Repairer:
        """Turn the config into a Repairer, preserving entry order.

        Raises:
            RepairConfigError: If an entry names an unknown action.
        """
        rules: list[RepairRule] = []
        max_length = DEFAULT_MAX_LENGTH
        for spec in self.repairs:
            if spec.action not in ACTIONS:
                raise RepairConfigError(
                    f"Unknown repair action {spec.action!r} for {spec.code}. "
                    f"Known actions: {', '.join(sorted(ACTIONS))}"
                )
            action, categories = ACTIONS[spec.action]
            rules.append(RepairRule(code=spec.code, categories=categories, action=action))
            if spec.max_length is not None:
                max_length = spec.max_length
        return Repairer(rules, separator=self.separator, default_max_length=max_length)


def load_repair_config(path: str | Path) -> RepairConfig:
    """Load a YAML repair config.

    Raises:
        RepairConfigError: If the file is missing, unparsable or malformed.
    """
    path = Path(path)
    if not path.exists():
        raise RepairConfigError(f"Repair config file not found: {path}")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return RepairConfig.model_validate(raw)
    except (yaml.YAMLError, ValidationError) as exc:
        raise RepairConfigError(f"Invalid repair config {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def shape_key(output_schema: Any, invariants: Sequence[str]) -> bytes:
    """Canonical key for a contract's declared shape."""
    return canonical_json({"schema": output_schema, "invariants": list(invariants)})


class RepairRegistry:
    """Maps contract shapes to Repairers.

    Shapes that were never registered get the default Repairer.
    """

    def __init__(self, default: Repairer | None = None) -> None:
        self._default = default or Repairer()
        self._by_shape: dict[bytes, Repairer] = {}

    def register(
        self, output_schema: Any, invariants: Sequence[str], repairer: Repairer
    ) -> None:
        self._by_shape[shape_key(output_schema, invariants)] = repairer

    def resolve(self, output_schema: Any, invariants: Sequence[str]) -> Repairer:
        return self._by_shape.get(shape_key(output_schema, invariants), self._default)

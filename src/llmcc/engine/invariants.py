"""Sandboxed invariant evaluation.

Invariants are boolean expressions over the candidate, which is bound to
the name ``output``::

    len(output) <= 80
    matches(output, "^[a-z0-9-]+$")
    output.success == true and output.data.user.id > 0

Expressions are parsed with :mod:`ast` and interpreted node by node by
this module. Nothing is ever handed to ``eval``/``exec``, and only the
node types and helper functions listed here are accepted, so an
expression can read the candidate and nothing else: no builtins, no
imports, no attribute access on Python objects, no dunder names.

Each invariant is checked independently. A parse error, a disallowed
construct or a runtime failure (missing field, type mismatch) is recorded
as a violation carrying the error text and evaluation continues with the
next invariant.
"""

from __future__ import annotations

import ast
import logging
import operator
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from llmcc.models.verdict import Violation

logger = logging.getLogger(__name__)

CANDIDATE_NAME = "output"

# Guard against expressions like "x" * 10**9.
_MAX_SEQUENCE_RESULT = 100_000


class InvariantSyntaxError(ValueError):
    """An invariant uses syntax outside the safe expression grammar."""


class InvariantEvaluationError(ValueError):
    """An invariant failed while being evaluated against a candidate."""


# ---------------------------------------------------------------------------
# Helper functions available inside expressions
# ---------------------------------------------------------------------------


def _require_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvariantEvaluationError(
            f"{name}() expects a string, got {_json_type(value)}"
        )
    return value


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _matches(value: Any, pattern: Any) -> bool:
    return re.fullmatch(_require_str("matches", pattern), _require_str("matches", value)) is not None


def _search(value: Any, pattern: Any) -> bool:
    return re.search(_require_str("search", pattern), _require_str("search", value)) is not None


def _keys(value: Any) -> list:
    if not isinstance(value, Mapping):
        raise InvariantEvaluationError(f"keys() expects an object, got {_json_type(value)}")
    return list(value.keys())


SAFE_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "len": len,
    "matches": _matches,
    "search": _search,
    "startswith": lambda value, prefix: _require_str("startswith", value).startswith(prefix),
    "endswith": lambda value, suffix: _require_str("endswith", value).endswith(suffix),
    "lower": lambda value: _require_str("lower", value).lower(),
    "upper": lambda value: _require_str("upper", value).upper(),
    "abs": abs,
    "min": min,
    "max": max,
    "all": all,
    "any": any,
    "type_of": _json_type,
    "keys": _keys,
    "is_null": lambda value: value is None,
}

_CONSTANT_NAMES: dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
}

_COMPARE_OPS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_ALLOWED_NODES: tuple[type, ...] = (
    ast.Expression,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.Attribute,
    ast.Subscript,
    ast.Slice,
    ast.Compare,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.BinOp,
    ast.IfExp,
    ast.Call,
    ast.List,
    ast.Tuple,
    *_COMPARE_OPS,
    *_BIN_OPS,
    *_UNARY_OPS,
)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _check_node(node: ast.AST) -> None:
    if not isinstance(node, _ALLOWED_NODES):
        raise InvariantSyntaxError(f"{type(node).__name__} is not allowed in invariants")
    if isinstance(node, ast.Constant) and not isinstance(
        node.value, (str, int, float, bool, type(None))
    ):
        raise InvariantSyntaxError(f"literal {node.value!r} is not allowed in invariants")
    if isinstance(node, ast.Name) and node.id != CANDIDATE_NAME and node.id not in _CONSTANT_NAMES:
        if node.id not in SAFE_FUNCTIONS:
            raise InvariantSyntaxError(f"unknown name {node.id!r}")
    if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
        raise InvariantSyntaxError(f"access to {node.attr!r} is not allowed")
    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in SAFE_FUNCTIONS:
            raise InvariantSyntaxError(
                f"only {', '.join(sorted(SAFE_FUNCTIONS))} may be called"
            )
        if node.keywords:
            raise InvariantSyntaxError("keyword arguments are not allowed")
        if any(isinstance(arg, ast.Starred) for arg in node.args):
            raise InvariantSyntaxError("star arguments are not allowed")


def parse_invariant(source: str) -> ast.Expression:
    """Parse and check an invariant against the safe grammar.

    Raises:
        InvariantSyntaxError: If the expression is not valid Python syntax
            or uses a construct outside the grammar.
    """
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise InvariantSyntaxError(f"invalid syntax: {exc.msg}") from exc
    for node in ast.walk(tree):
        _check_node(node)
    return tree


def _is_candidate_length(node: ast.AST) -> bool:
    """True for ``len(output)`` and ``output.length``."""
    if isinstance(node, ast.Call):
        return (
            isinstance(node.func, ast.Name)
            and node.func.id == "len"
            and len(node.args) == 1
            and isinstance(node.args[0], ast.Name)
            and node.args[0].id == CANDIDATE_NAME
        )
    return (
        isinstance(node, ast.Attribute)
        and node.attr == "length"
        and isinstance(node.value, ast.Name)
        and node.value.id == CANDIDATE_NAME
    )


def _int_constant(node: ast.AST) -> int | None:
    if isinstance(node, ast.Constant) and type(node.value) is int:
        return node.value
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
        value = _int_constant(node.operand)
        return -value if value is not None else None
    return None


def _length_limit(tree: ast.Expression) -> int | None:
    """Extract N from ``len(output) <= N`` style upper bounds, floored at 0."""
    for node in ast.walk(tree):
        if not isinstance(node, ast.Compare) or len(node.ops) != 1:
            continue
        left, op, right = node.left, node.ops[0], node.comparators[0]
        if _is_candidate_length(left) and _int_constant(right) is not None:
            bound = _int_constant(right)
            if isinstance(op, ast.LtE):
                return max(0, bound)
            if isinstance(op, ast.Lt):
                return max(0, bound - 1)
        if _is_candidate_length(right) and _int_constant(left) is not None:
            bound = _int_constant(left)
            if isinstance(op, ast.GtE):
                return max(0, bound)
            if isinstance(op, ast.Gt):
                return max(0, bound - 1)
    return None


def _pattern(tree: ast.Expression) -> str | None:
    """Extract the regex literal of a ``matches``/``search`` call, if any."""
    for node in ast.walk(tree):
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id in ("matches", "search")
            and len(node.args) == 2
            and isinstance(node.args[1], ast.Constant)
            and isinstance(node.args[1].value, str)
        ):
            return node.args[1].value
    return None


@dataclass(frozen=True)
class CompiledInvariant:
    """An invariant parsed once and reusable across candidates.

    Attributes:
        source: The expression text as declared in the contract.
        tree: Parsed expression, or None if parsing failed.
        parse_error: Why parsing failed, or None.
        length_limit: Upper length bound stated by the expression, if any.
        pattern: Regex the expression matches against, if any.
    """

    source: str
    tree: ast.Expression | None
    parse_error: str | None = None
    length_limit: int | None = None
    pattern: str | None = None

    @classmethod
    def compile(cls, source: str) -> CompiledInvariant:
        try:
            tree = parse_invariant(source)
        except InvariantSyntaxError as exc:
            logger.debug("Invariant %r rejected: %s", source, exc)
            return cls(source=source, tree=None, parse_error=str(exc))
        return cls(
            source=source,
            tree=tree,
            length_limit=_length_limit(tree),
            pattern=_pattern(tree),
        )


# ---------------------------------------------------------------------------
# Interpretation
# ---------------------------------------------------------------------------


class _Interpreter:
    """Walks a checked expression tree with the candidate bound to ``output``."""

    def __init__(self, candidate: Any) -> None:
        self._candidate = candidate

    def run(self, tree: ast.Expression) -> Any:
        return self._eval(tree.body)

    def _eval(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            if node.id == CANDIDATE_NAME:
                return self._candidate
            if node.id in _CONSTANT_NAMES:
                return _CONSTANT_NAMES[node.id]
            raise InvariantEvaluationError(f"{node.id!r} is a function, not a value")

        if isinstance(node, ast.Attribute):
            return self._field(self._eval(node.value), node.attr)

        if isinstance(node, ast.Subscript):
            base = self._eval(node.value)
            if isinstance(node.slice, ast.Slice):
                index = slice(
                    self._eval(node.slice.lower) if node.slice.lower else None,
                    self._eval(node.slice.upper) if node.slice.upper else None,
                    self._eval(node.slice.step) if node.slice.step else None,
                )
            else:
                index = self._eval(node.slice)
            return self._item(base, index)

        if isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result: Any = True
                for value in node.values:
                    result = self._eval(value)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self._eval(value)
                if result:
                    return result
            return result

        if isinstance(node, ast.UnaryOp):
            return _UNARY_OPS[type(node.op)](self._eval(node.operand))

        if isinstance(node, ast.BinOp):
            left = self._eval(node.left)
            right = self._eval(node.right)
            if isinstance(node.op, ast.Mult):
                self._check_repeat(left, right)
            return _BIN_OPS[type(node.op)](left, right)

        if isinstance(node, ast.Compare):
            left = self._eval(node.left)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator)
                if not _COMPARE_OPS[type(op)](left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            branch = node.body if self._eval(node.test) else node.orelse
            return self._eval(branch)

        if isinstance(node, ast.Call):
            func = SAFE_FUNCTIONS[node.func.id]  # type: ignore[attr-defined]
            return func(*(self._eval(arg) for arg in node.args))

        if isinstance(node, (ast.List, ast.Tuple)):
            return [self._eval(elt) for elt in node.elts]

        raise InvariantEvaluationError(f"cannot evaluate {type(node).__name__}")

    @staticmethod
    def _field(base: Any, name: str) -> Any:
        if isinstance(base, Mapping):
            if name not in base:
                raise InvariantEvaluationError(f"missing field {name!r}")
            return base[name]
        if name == "length" and isinstance(base, (str, list, tuple)):
            return len(base)
        raise InvariantEvaluationError(
            f"cannot read field {name!r} of {_json_type(base)}"
        )

    @staticmethod
    def _item(base: Any, index: Any) -> Any:
        if isinstance(base, Mapping):
            if index not in base:
                raise InvariantEvaluationError(f"missing key {index!r}")
            return base[index]
        if isinstance(base, (str, list, tuple)):
            if isinstance(index, bool) or not isinstance(index, (int, slice)):
                raise InvariantEvaluationError(
                    f"{_json_type(base)} index must be an integer"
                )
            return base[index]
        raise InvariantEvaluationError(f"cannot index {_json_type(base)}")

    @staticmethod
    def _check_repeat(left: Any, right: Any) -> None:
        for seq, count in ((left, right), (right, left)):
            if isinstance(seq, (str, list)) and isinstance(count, int):
                if len(seq) * count > _MAX_SEQUENCE_RESULT:
                    raise InvariantEvaluationError("sequence repetition too large")


# ---------------------------------------------------------------------------
# Public evaluator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvariantCheck:
    """Result of evaluating all invariants against one candidate."""

    valid: bool
    violations: tuple[Violation, ...] = ()


class InvariantEvaluator:
    """Evaluates a fixed list of invariants against candidates.

    Invariants are parsed once at construction; the evaluator holds no
    per-candidate state and can be shared freely.
    """

    def __init__(self, invariants: Sequence[str] = ()) -> None:
        self._invariants = tuple(CompiledInvariant.compile(src) for src in invariants)

    @property
    def invariants(self) -> tuple[CompiledInvariant, ...]:
        return self._invariants

    def evaluate(self, candidate: Any) -> InvariantCheck:
        violations: list[Violation] = []
        for inv in self._invariants:
            violation = self._check_one(inv, candidate)
            if violation is not None:
                violations.append(violation)
        return InvariantCheck(valid=not violations, violations=tuple(violations))

    __call__ = evaluate

    @staticmethod
    def _check_one(inv: CompiledInvariant, candidate: Any) -> Violation | None:
        error: str | None = inv.parse_error
        if inv.tree is not None:
            try:
                if _Interpreter(candidate).run(inv.tree):
                    return None
            except Exception as exc:
                error = f"{type(exc).__name__}: {exc}"
                logger.debug("Invariant %r raised: %s", inv.source, error)

        message = "invariant failed" if error is None else f"evaluation error: {error}"
        return Violation(
            source="invariant",
            message=message,
            expression=inv.source,
            error=error,
            limit=inv.length_limit,
            pattern=inv.pattern,
        )


def evaluate_invariants(candidate: Any, invariants: Sequence[str]) -> InvariantCheck:
    """Evaluate *invariants* against *candidate* in one call."""
    return InvariantEvaluator(invariants).evaluate(candidate)

"""Tests for sandboxed invariant evaluation."""

from __future__ import annotations

import pytest

from llmcc.engine.invariants import (
    CompiledInvariant,
    InvariantEvaluator,
    InvariantSyntaxError,
    evaluate_invariants,
    parse_invariant,
)


class TestExpressions:
    """Supported expression forms evaluate against the candidate."""

    @pytest.mark.parametrize(
        "expr, candidate",
        [
            ("len(output) <= 80", "hello-world"),
            ("output.length <= 80", "hello-world"),
            ('matches(output, "^[a-z0-9-]+$")', "hello-world"),
            ('search(output, "world")', "hello-world"),
            ('startswith(output, "hello")', "hello-world"),
            ('endswith(output, "world")', "hello-world"),
            ("lower(output) == output", "abc"),
            ("output.success == true", {"success": True}),
            ("output.data.user.id > 0", {"data": {"user": {"id": 7}}}),
            ('output["data"]["items"][0] == 1', {"data": {"items": [1, 2]}}),
            ("not is_null(output.metadata.timestamp)", {"metadata": {"timestamp": "t"}}),
            ("output.value == null", {"value": None}),
            ('type_of(output) == "object"', {}),
            ('"id" in keys(output)', {"id": 1}),
            ("1 if output else 0", "x"),
            ("0 < output < 10", 5),
            ("output.count * 2 == 8", {"count": 4}),
            ("len(output) == 3 and output[0] == 1", [1, 2, 3]),
            ("max(output) - min(output) <= 2", [1, 2, 3]),
            ("any([output > 5, output < 0])", -1),
        ],
    )
    def test_holds(self, expr: str, candidate) -> None:
        check = evaluate_invariants(candidate, [expr])
        assert check.valid, check.violations

    def test_failing_invariant_reported(self) -> None:
        check = evaluate_invariants("A" * 81, ["len(output) <= 80"])
        assert not check.valid
        (violation,) = check.violations
        assert violation.source == "invariant"
        assert violation.expression == "len(output) <= 80"
        assert violation.message == "invariant failed"
        assert violation.error is None
        assert violation.limit == 80

    def test_pattern_recorded_on_violation(self) -> None:
        check = evaluate_invariants("A", ['matches(output, "^[a-z]+$")'])
        assert check.violations[0].pattern == "^[a-z]+$"

    def test_each_invariant_independent(self) -> None:
        invariants = ["output.missing > 0", "len(output) > 100", "len(output) > 0"]
        check = evaluate_invariants({"a": 1}, invariants)
        assert [v.expression for v in check.violations] == invariants[:2]
        assert check.violations[0].is_evaluation_error
        assert not check.violations[1].is_evaluation_error

    def test_declaration_order_preserved(self) -> None:
        invariants = ["output > 10", "output > 20", "output > 30"]
        check = evaluate_invariants(5, invariants)
        assert [v.expression for v in check.violations] == invariants

    def test_empty_list_is_valid(self) -> None:
        assert evaluate_invariants("anything", []).valid

    def test_evaluator_reusable(self) -> None:
        evaluator = InvariantEvaluator(["output > 0"])
        assert evaluator(1).valid
        assert not evaluator(-1).valid
        assert evaluator.evaluate(2).valid


class TestRuntimeErrors:
    """Runtime failures become violations carrying the error text."""

    @pytest.mark.parametrize(
        "expr, candidate",
        [
            ("output.data.user.id > 0", {"data": {}}),
            ("output > 0", "text"),
            ('matches(output, "x")', 3),
            ("output[5] == 1", [1]),
            ("output.length > 1", 12),
            ("output / 0 == 1", 1),
            ('"ab" * output == ""', 10**9),
        ],
    )
    def test_error_becomes_violation(self, expr: str, candidate) -> None:
        check = evaluate_invariants(candidate, [expr])
        assert not check.valid
        violation = check.violations[0]
        assert violation.is_evaluation_error
        assert violation.message.startswith("evaluation error:")
        assert "evaluation error" in str(violation)

    def test_candidate_not_mutated(self) -> None:
        candidate = {"items": [3, 1, 2]}
        evaluate_invariants(candidate, ["len(output.items) == 3", "output.items[0] == 3"])
        assert candidate == {"items": [3, 1, 2]}


class TestSandbox:
    """Anything outside the expression grammar is rejected, never executed."""

    @pytest.mark.parametrize(
        "expr",
        [
            "__import__('os').system('echo hi')",
            "output.__class__",
            "output._private",
            "open('/etc/passwd')",
            "eval('1')",
            "(lambda: 1)()",
            "[x for x in output]",
            "{'a': 1}",
            "output.upper()",
            "x := 1",
            "len(output, *output)",
            "print(output)",
            "globals()",
            "len(output) <= 80; import os",
        ],
    )
    def test_rejected(self, expr: str) -> None:
        with pytest.raises(InvariantSyntaxError):
            parse_invariant(expr)

    @pytest.mark.parametrize(
        "expr",
        ["__import__('os')", "output.__class__", "(lambda: 1)()", "len(output"],
    )
    def test_rejected_invariant_is_violation(self, expr: str) -> None:
        check = evaluate_invariants("abc", [expr])
        assert not check.valid
        assert check.violations[0].is_evaluation_error

    def test_compiled_invariant_keeps_parse_error(self) -> None:
        inv = CompiledInvariant.compile("import os")
        assert inv.tree is None
        assert inv.parse_error

    def test_length_limit_extracted(self) -> None:
        assert CompiledInvariant.compile("len(output) <= 80").length_limit == 80
        assert CompiledInvariant.compile("output.length < 10").length_limit == 9
        assert CompiledInvariant.compile("len(output) >= 3").length_limit is None

    @pytest.mark.parametrize(
        "source", ["len(output) < 0", "len(output) <= -4", "0 > len(output)", "-2 >= len(output)"]
    )
    def test_length_limit_floored_at_zero(self, source) -> None:
        assert CompiledInvariant.compile(source).length_limit == 0

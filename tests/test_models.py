"""Tests for contract, option and result models."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from llmcc.exceptions import ContractError
from llmcc.models.config import DecodeOptions
from llmcc.models.contract import Contract, load_contract
from llmcc.models.verdict import DecodeResult, ModelInfo, ValidationVerdict, Violation

from tests.conftest import API_RESPONSE_DIR, SLUGIFY_DIR


class TestContract:
    def test_defaults(self) -> None:
        contract = Contract(name="f")
        assert contract.version == "v1"
        assert contract.invariants == ()
        assert contract.output_schema is None

    def test_frozen(self) -> None:
        contract = Contract(name="f")
        with pytest.raises(ValidationError):
            contract.name = "g"  # type: ignore[misc]

    def test_single_invariant_string(self) -> None:
        assert Contract(name="f", invariants="output > 1").invariants == ("output > 1",)

    def test_blank_invariants_dropped(self) -> None:
        contract = Contract(name="f", invariants=["  output > 1 ", "", "   "])
        assert contract.invariants == ("output > 1",)

    def test_unknown_fields_ignored(self) -> None:
        assert Contract.from_dict({"name": "f", "owner": "me"}).name == "f"

    @pytest.mark.parametrize("data", [{}, {"name": ""}, {"name": "   "}, {"name": "f", "version": ""}])
    def test_invalid(self, data) -> None:
        with pytest.raises(ContractError):
            Contract.from_dict(data)

    def test_from_dict_rejects_non_mapping(self) -> None:
        with pytest.raises(ContractError, match="mapping"):
            Contract.from_dict(["name"])  # type: ignore[arg-type]


class TestLoadContract:
    def test_yaml(self) -> None:
        contract = load_contract(SLUGIFY_DIR / "slugify.contract.yaml")
        assert contract.name == "slugify_title"
        assert contract.output_schema == "ref://slugify.output.schema.json"
        assert contract.invariants == ("len(output) <= 80", 'matches(output, "^[a-z0-9-]+$")')
        assert contract.error_codes == ("SLUG_TOO_LONG", "SLUG_INVALID_CHAR")
        assert contract.counterexamples[0].fail_reason == "em dash"

    def test_api_response_yaml(self) -> None:
        contract = load_contract(API_RESPONSE_DIR / "api_response.contract.yaml")
        assert len(contract.invariants) == 3

    def test_json(self, tmp_path) -> None:
        path = tmp_path / "c.json"
        path.write_text(json.dumps({"name": "f", "invariants": ["output > 0"]}))
        assert load_contract(path).invariants == ("output > 0",)

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ContractError, match="not found"):
            load_contract(tmp_path / "nope.yaml")

    def test_unparsable(self, tmp_path) -> None:
        path = tmp_path / "c.yaml"
        path.write_text("name: [unclosed\n")
        with pytest.raises(ContractError):
            load_contract(path)

    def test_empty_file(self, tmp_path) -> None:
        path = tmp_path / "c.yaml"
        path.write_text("")
        with pytest.raises(ContractError):
            load_contract(path)


class TestDecodeOptions:
    def test_defaults(self) -> None:
        options = DecodeOptions()
        assert options.max_repairs == 3
        assert options.temperature == 0.2
        assert options.model == "gpt-4o-mini"
        assert options.deadline_s is None

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_repairs": -1}, {"temperature": -0.1}, {"temperature": 2.5}, {"deadline_s": 0}],
    )
    def test_invalid(self, kwargs) -> None:
        with pytest.raises(ValidationError):
            DecodeOptions(**kwargs)


class TestVerdict:
    def test_violation_str(self) -> None:
        schema = Violation(source="schema", message="'A' does not match", path="$", keyword="pattern")
        assert str(schema) == "$: 'A' does not match [pattern]"
        inv = Violation(source="invariant", message="invariant failed", expression="output > 1")
        assert str(inv) == "output > 1"
        err = Violation(source="invariant", message="x", expression="output.a", error="KeyError")
        assert str(err) == "output.a (evaluation error: KeyError)"

    def test_passed_and_dict(self) -> None:
        v = Violation(source="invariant", message="invariant failed", expression="output > 1")
        verdict = ValidationVerdict(schema_pass=True, invariants_pass=False, violations=(v,))
        assert not verdict.passed
        assert verdict.to_dict() == {
            "schema_pass": True,
            "invariants_pass": False,
            "violations": ["output > 1"],
        }

    def test_result_rejects_negative_counts(self) -> None:
        verdict = ValidationVerdict(schema_pass=True, invariants_pass=True)
        with pytest.raises(ValueError):
            DecodeResult(output="x", valid=True, repairs_attempted=-1, verification=verdict, spec_hash="h", latency_ms=0)
        with pytest.raises(ValueError):
            DecodeResult(output="x", valid=True, repairs_attempted=0, verification=verdict, spec_hash="h", latency_ms=-5)

    def test_result_to_dict(self) -> None:
        verdict = ValidationVerdict(schema_pass=True, invariants_pass=True)
        result = DecodeResult(
            output="abc",
            valid=True,
            repairs_attempted=1,
            verification=verdict,
            spec_hash="deadbeef",
            latency_ms=12,
            model_info=ModelInfo(model="m", temperature=0.2),
        )
        data = result.to_dict()
        assert data["output"] == "abc"
        assert data["model_info"] == {"model": "m", "temperature": 0.2, "decode_mode": "json_schema+strict"}
        assert json.loads(json.dumps(data)) == data

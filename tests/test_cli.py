"""CLI tests for llmcc -- exercises every command via Click's CliRunner.

compile talks to a fake chat client patched over llmcc.llm.OpenAIClient,
so no network is used. Record databases live under tmp_path.
"""

from __future__ import annotations

import json
import sys

import pytest
from click.testing import CliRunner

from llmcc.cli import cli
from llmcc.engine.hashing import format_spec_id
from llmcc.models.contract import load_contract

from tests.conftest import SLUGIFY_DIR

CONTRACT = str(SLUGIFY_DIR / "slugify.contract.yaml")
EXAMPLES = str(SLUGIFY_DIR / "slugify.examples.jsonl")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner(monkeypatch):
    """Create a Click test runner with a wide console so lines do not wrap."""
    monkeypatch.setenv("COLUMNS", "200")
    return CliRunner()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "records.db")


@pytest.fixture
def restore_sys_path(monkeypatch):
    monkeypatch.setattr(sys, "path", list(sys.path))


class FakeChatClient:
    """Stands in for OpenAIClient; replies with queued results in order."""

    replies: list = []
    instances: list = []

    def __init__(self, api_key=None, base_url=None, default_model="gpt-4o-mini", **kwargs):
        self.api_key = api_key
        self.default_model = default_model
        self.calls: list[dict] = []
        FakeChatClient.instances.append(self)

    def chat(self, messages, *, model=None, temperature=None, max_tokens=None, **kwargs):
        self.calls.append({"messages": messages, "model": model, "temperature": temperature, **kwargs})
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        content = json.dumps({"result": self.replies[index]})
        return {"choices": [{"message": {"role": "assistant", "content": content}}]}

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args) -> None:
        self.close()


@pytest.fixture
def fake_client(monkeypatch):
    FakeChatClient.replies = ["hello-world"]
    FakeChatClient.instances = []
    monkeypatch.setattr("llmcc.llm.OpenAIClient", FakeChatClient)
    return FakeChatClient


# ---------------------------------------------------------------------------
# spec-hash
# ---------------------------------------------------------------------------


class TestSpecHash:
    def test_prints_spec_id(self, runner) -> None:
        result = runner.invoke(cli, ["spec-hash", CONTRACT])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == format_spec_id(load_contract(CONTRACT))

    def test_invalid_contract(self, runner, tmp_path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("version: v1\n")
        result = runner.invoke(cli, ["spec-hash", str(path)])
        assert result.exit_code == 1
        assert "Error" in result.output


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


class TestCheck:
    def test_valid_value(self, runner) -> None:
        result = runner.invoke(cli, ["check", CONTRACT, '"hello-world"'])
        assert result.exit_code == 0, result.output
        assert "Violations" not in result.output

    def test_invalid_value(self, runner) -> None:
        result = runner.invoke(cli, ["check", CONTRACT, '"abc---"'])
        assert result.exit_code == 1
        assert "Violations" in result.output

    def test_repair_fixes_value(self, runner) -> None:
        result = runner.invoke(cli, ["check", CONTRACT, '"abc---"', "--repair"])
        assert result.exit_code == 0, result.output
        assert "Repaired" in result.output
        assert '"abc"' in result.output

    def test_repair_not_applicable(self, runner) -> None:
        result = runner.invoke(cli, ["check", CONTRACT, '"ABC"', "--repair"])
        assert result.exit_code == 1
        assert "No repair applicable" in result.output

    def test_repair_config(self, runner) -> None:
        config = str(SLUGIFY_DIR / "slugify.repairs.yaml")
        result = runner.invoke(
            cli, ["check", CONTRACT, '"my_title.v2"', "--repair", "--repair-config", config]
        )
        assert result.exit_code == 0, result.output
        assert '"my-title-v2"' in result.output

    def test_candidate_not_json(self, runner) -> None:
        result = runner.invoke(cli, ["check", CONTRACT, "not json"])
        assert result.exit_code == 1
        assert "Error" in result.output


# ---------------------------------------------------------------------------
# test
# ---------------------------------------------------------------------------


class TestTestCommand:
    def test_reference_implementation_passes(self, runner, restore_sys_path) -> None:
        result = runner.invoke(
            cli,
            [
                "test",
                CONTRACT,
                "--impl",
                "slug_reference:slugify_title",
                "--examples",
                EXAMPLES,
                "--app-dir",
                str(SLUGIFY_DIR),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "9/9 examples passed" in result.output

    def test_wrong_implementation_fails(self, runner, restore_sys_path) -> None:
        result = runner.invoke(
            cli, ["test", CONTRACT, "--impl", "json:dumps", "--examples", EXAMPLES]
        )
        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_bad_impl_target(self, runner, restore_sys_path) -> None:
        result = runner.invoke(
            cli, ["test", CONTRACT, "--impl", "no_colon", "--examples", EXAMPLES]
        )
        assert result.exit_code == 1
        assert "module:function" in result.output


# ---------------------------------------------------------------------------
# compile and log
# ---------------------------------------------------------------------------


class TestCompile:
    def test_valid_output_saved(self, runner, db_path, fake_client) -> None:
        result = runner.invoke(cli, ["--db", db_path, "--api-key", "k", "compile", CONTRACT])
        assert result.exit_code == 0, result.output
        assert "valid" in result.output
        assert '"hello-world"' in result.output
        client = fake_client.instances[0]
        assert client.api_key == "k"
        assert client.calls[0]["model"] == "gpt-4o-mini"
        assert client.calls[0]["temperature"] == 0.2
        assert client.calls[0]["messages"][1]["content"].startswith("SYNTHESIZE:slugify_title")

        log = runner.invoke(cli, ["--db", db_path, "log"])
        assert log.exit_code == 0, log.output
        assert "slugify_title" in log.output

    def test_repaired_output(self, runner, db_path, fake_client) -> None:
        fake_client.replies = ["Hello World"]
        result = runner.invoke(cli, ["--db", db_path, "compile", CONTRACT, "--prompt", "x"])
        assert result.exit_code == 1, result.output
        fake_client.replies = ["hello world!"]
        result = runner.invoke(cli, ["--db", db_path, "compile", CONTRACT, "--prompt", "x"])
        assert result.exit_code == 0, result.output
        assert "Repairs:    1" in result.output

    def test_invalid_output_exits_1_and_is_recorded(self, runner, db_path, fake_client) -> None:
        fake_client.replies = ["NOT A SLUG"]
        result = runner.invoke(
            cli, ["--db", db_path, "compile", CONTRACT, "--prompt", "x", "--max-repairs", "1"]
        )
        assert result.exit_code == 1
        assert "invalid" in result.output
        assert len(fake_client.instances[0].calls) == 2

        log = runner.invoke(cli, ["--db", db_path, "log", "--artifact", "slugify_title"])
        assert log.exit_code == 0, log.output
        assert "slugify_title@v1" in log.output

    def test_no_record(self, runner, db_path, fake_client) -> None:
        result = runner.invoke(cli, ["--db", db_path, "compile", CONTRACT, "--no-record"])
        assert result.exit_code == 0, result.output
        log = runner.invoke(cli, ["--db", db_path, "log"])
        assert "No compile records" in log.output

    def test_options_forwarded(self, runner, db_path, fake_client) -> None:
        result = runner.invoke(
            cli,
            [
                "--db", db_path, "compile", CONTRACT,
                "--prompt", "make a slug",
                "--model", "tiny",
                "--temperature", "0.7",
            ],
        )
        assert result.exit_code == 0, result.output
        call = fake_client.instances[0].calls[0]
        assert call["model"] == "tiny"
        assert call["temperature"] == 0.7
        assert call["messages"][1]["content"] == "make a slug"

    def test_prompt_file_used_as_context(self, runner, db_path, fake_client, tmp_path) -> None:
        source = tmp_path / "title.txt"
        source.write_text("Title: Hello World")
        result = runner.invoke(
            cli, ["--db", db_path, "compile", CONTRACT, "--prompt-file", str(source)]
        )
        assert result.exit_code == 0, result.output
        content = fake_client.instances[0].calls[0]["messages"][1]["content"]
        assert "Source context:\nTitle: Hello World" in content

    def test_bad_schema_fails_before_generation(self, runner, db_path, fake_client, tmp_path) -> None:
        contract = tmp_path / "c.yaml"
        contract.write_text("name: f\noutput_schema: ref://missing.json\n")
        result = runner.invoke(cli, ["--db", db_path, "compile", str(contract)])
        assert result.exit_code == 1
        assert "Error" in result.output
        assert fake_client.instances == []


class TestLog:
    def test_empty(self, runner, db_path) -> None:
        result = runner.invoke(cli, ["--db", db_path, "log"])
        assert result.exit_code == 0, result.output
        assert "No compile records" in result.output

    def test_export(self, runner, db_path, fake_client, tmp_path) -> None:
        runner.invoke(cli, ["--db", db_path, "compile", CONTRACT])
        runner.invoke(cli, ["--db", db_path, "compile", CONTRACT])
        out = tmp_path / "metadata.jsonl"
        result = runner.invoke(cli, ["--db", db_path, "log", "--export", str(out), "-n", "1"])
        assert result.exit_code == 0, result.output
        lines = out.read_text().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["artifact"] == "slugify_title"
        assert record["verify"] == {"schema_pass": True, "tests_pass": True}

    def test_db_from_env(self, runner, db_path, monkeypatch) -> None:
        monkeypatch.setenv("LLMCC_DB", db_path)
        result = runner.invoke(cli, ["log"])
        assert result.exit_code == 0, result.output
        assert "No compile records" in result.output

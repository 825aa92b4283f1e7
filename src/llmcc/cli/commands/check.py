"""llmcc check -- validate a given value against a contract."""

from __future__ import annotations

import json
from pathlib import Path

import click

from llmcc.cli.formatting import format_error, format_output, format_verdict, get_console


@click.command()
@click.argument("contract_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("candidate")
@click.option("--repair", is_flag=True, help="Also show the repaired value.")
@click.option(
    "--repair-config",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML repair catalog to use instead of the built-in one.",
)
def check(contract_path: str, candidate: str, repair: bool, repair_config: str | None) -> None:
    """Check CANDIDATE (a JSON value) against CONTRACT_PATH.

    No model is called. Exits with status 1 when the value is invalid
    (after repair, when --repair is given).
    """
    from llmcc.decode import compile_contract
    from llmcc.engine.repair import Repairer, load_repair_config
    from llmcc.models.contract import load_contract

    console = get_console()
    try:
        contract = load_contract(contract_path)
        compiled = compile_contract(
            contract, schema_base_dir=str(Path(contract_path).resolve().parent)
        )
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"CANDIDATE is not valid JSON: {exc}") from exc
        repairer = load_repair_config(repair_config).build_repairer() if repair_config else Repairer()
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    verdict = compiled.validate(value)
    format_verdict(verdict, console)
    if verdict.passed or not repair:
        raise SystemExit(0 if verdict.passed else 1)

    repaired = repairer.repair(value, verdict.violations)
    if repaired is value:
        console.print("[yellow]No repair applicable.[/yellow]")
        raise SystemExit(1)

    console.print("\n[bold]Repaired:[/bold]")
    format_output(repaired, console)
    repaired_verdict = compiled.validate(repaired)
    format_verdict(repaired_verdict, console)
    if not repaired_verdict.passed:
        raise SystemExit(1)

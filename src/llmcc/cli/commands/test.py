"""llmcc test -- run an implementation over a contract's examples."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from llmcc.cli.formatting import format_error, format_example_report, get_console


@click.command()
@click.argument("contract_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--impl", "impl", required=True, help="Implementation as module:function.")
@click.option(
    "--examples",
    "examples_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Examples JSONL file.",
)
@click.option(
    "--app-dir",
    default=".",
    show_default=True,
    help="Directory added to sys.path before importing --impl.",
)
@click.option("--no-contract", is_flag=True, help="Only compare outputs; skip contract checks.")
def test(
    contract_path: str, impl: str, examples_path: str, app_dir: str, no_contract: bool
) -> None:
    """Test an implementation of CONTRACT_PATH against JSONL examples.

    Each successful output must match the example's ``out`` (when given)
    and satisfy the contract. Exits with status 1 if any example fails.
    """
    from llmcc.decode import compile_contract
    from llmcc.engine.hashing import format_spec_id
    from llmcc.harness import import_callable, load_examples, run_examples
    from llmcc.models.contract import load_contract

    console = get_console()
    try:
        contract = load_contract(contract_path)
        compiled = None
        if not no_contract:
            compiled = compile_contract(
                contract, schema_base_dir=str(Path(contract_path).resolve().parent)
            )
        app_path = str(Path(app_dir).resolve())
        if app_path not in sys.path:
            sys.path.insert(0, app_path)
        fn = import_callable(impl)
        examples = load_examples(examples_path)
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    console.print(f"Testing [bold]{format_spec_id(contract)}[/bold] with {impl}")
    if not examples:
        console.print("[yellow]No examples found.[/yellow]")
        return

    report = run_examples(fn, examples, compiled)
    format_example_report(report, console)
    if not report.all_passed:
        raise SystemExit(1)

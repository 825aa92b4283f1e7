"""llmcc spec-hash -- print a contract's fingerprint."""

from __future__ import annotations

import click

from llmcc.cli.formatting import format_error, get_console


@click.command("spec-hash")
@click.argument("contract_path", type=click.Path(exists=True, dir_okay=False))
def spec_hash(contract_path: str) -> None:
    """Print ``name@version#hash`` for CONTRACT_PATH."""
    from llmcc.engine.hashing import format_spec_id
    from llmcc.models.contract import load_contract

    console = get_console()
    try:
        contract = load_contract(contract_path)
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
    console.print(format_spec_id(contract), highlight=False)

"""llmcc compile -- run the decode loop for a contract."""

from __future__ import annotations

from pathlib import Path

import click

from llmcc.models.config import DEFAULT_MAX_REPAIRS, DEFAULT_MODEL, DEFAULT_TEMPERATURE


@click.command("compile")
@click.argument("contract_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--prompt", default=None, help="Prompt text sent to the model.")
@click.option(
    "--prompt-file",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="File used as source context for the default synthesis prompt.",
)
@click.option("--temperature", default=DEFAULT_TEMPERATURE, type=float, show_default=True)
@click.option("--model", default=DEFAULT_MODEL, show_default=True)
@click.option("--max-repairs", default=DEFAULT_MAX_REPAIRS, type=int, show_default=True)
@click.option("--deadline", default=None, type=float, help="Deadline in seconds.")
@click.option(
    "--repair-config",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML repair catalog to use instead of the built-in one.",
)
@click.option("--no-record", is_flag=True, help="Do not save a compile record.")
@click.pass_context
def compile_(
    ctx: click.Context,
    contract_path: str,
    prompt: str | None,
    prompt_file: str | None,
    temperature: float,
    model: str,
    max_repairs: int,
    deadline: float | None,
    repair_config: str | None,
    no_record: bool,
) -> None:
    """Generate an output for CONTRACT_PATH and check it against the contract.

    ``ref://`` schema locators are resolved relative to the contract file.
    Exits with status 1 when the result is invalid.
    """
    from llmcc.cli import _records_session
    from llmcc.cli.formatting import format_error, format_result, get_console
    from llmcc.decode import DecodeLoop
    from llmcc.engine.hashing import format_spec_id
    from llmcc.engine.repair import load_repair_config
    from llmcc.engine.schema import load_schema
    from llmcc.llm import LLMGenerator, OpenAIClient, build_synthesis_prompt
    from llmcc.models.config import DecodeOptions
    from llmcc.models.contract import load_contract
    from llmcc.storage.records import build_record

    console = get_console()
    try:
        contract = load_contract(contract_path)
        base_dir = str(Path(contract_path).resolve().parent)
        schema = load_schema(contract.output_schema, base_dir) if contract.output_schema else {}
        options = DecodeOptions(
            max_repairs=max_repairs,
            temperature=temperature,
            model=model,
            deadline_s=deadline,
            schema_base_dir=base_dir,
        )
        if prompt is None:
            context = Path(prompt_file).read_text(encoding="utf-8") if prompt_file else ""
            prompt = build_synthesis_prompt(contract, context)
        repairer = load_repair_config(repair_config).build_repairer() if repair_config else None

        console.print(f"Compiling [bold]{format_spec_id(contract)}[/bold] with [cyan]{model}[/cyan]")
        with OpenAIClient(api_key=ctx.obj["api_key"], default_model=model) as client:
            generator = LLMGenerator(client, output_schema=schema)
            result = DecodeLoop(generator, repairer=repairer).decode(
                prompt, contract, options, schema=schema
            )
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    format_result(result, format_spec_id(contract), console)

    if not no_record:
        with _records_session(ctx) as (repo, _):
            repo.save(build_record(result, contract))
        console.print(f"[dim]Record saved to {ctx.obj['db_path']}[/dim]")

    if not result.valid:
        raise SystemExit(1)

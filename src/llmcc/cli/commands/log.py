"""llmcc log -- show recent compile records."""

from __future__ import annotations

import click

from llmcc.cli.formatting import format_records


@click.command()
@click.option("-n", "--limit", default=20, type=int, help="Maximum number of records to show.")
@click.option("--artifact", default=None, help="Only show records for this contract name.")
@click.option(
    "--export",
    "export_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Append the shown records to a JSONL file.",
)
@click.pass_context
def log(ctx: click.Context, limit: int, artifact: str | None, export_path: str | None) -> None:
    """Show compile records, newest first."""
    from llmcc.cli import _records_session
    from llmcc.storage.records import export_jsonl

    with _records_session(ctx) as (repo, console):
        rows = repo.list_recent(limit, artifact=artifact)
        format_records(rows, console)
        if export_path:
            count = export_jsonl(rows, export_path)
            console.print(f"[dim]Exported {count} record(s) to {export_path}[/dim]")

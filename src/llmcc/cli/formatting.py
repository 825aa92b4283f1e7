"""Rich formatting helpers for the llmcc CLI.

Provides functions that format decode results, verdicts and compile
records for terminal display. Rich auto-detects TTY and degrades
gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from llmcc.harness import ExampleReport
    from llmcc.models.verdict import DecodeResult, ValidationVerdict
    from llmcc.storage.schema import CompileRecordRow


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def _mark(ok: bool) -> str:
    return "[green]pass[/green]" if ok else "[red]fail[/red]"


def format_output(value: Any, console: Console) -> None:
    """Print a candidate value as indented JSON."""
    console.print(escape(json.dumps(value, indent=2, ensure_ascii=False)), highlight=False)


def format_verdict(verdict: ValidationVerdict, console: Console) -> None:
    """Display schema/invariant status and the violation list."""
    console.print(f"Schema:     {_mark(verdict.schema_pass)}")
    console.print(f"Invariants: {_mark(verdict.invariants_pass)}")
    if verdict.violations:
        console.print("[yellow]Violations:[/yellow]")
        for line in verdict.describe():
            console.print(f"  - {escape(line)}", highlight=False)


def format_result(result: DecodeResult, spec_id: str, console: Console) -> None:
    """Display a decode result summary followed by its output."""
    status = "[green]valid[/green]" if result.valid else "[red]invalid[/red]"
    console.print(f"[bold]{escape(spec_id)}[/bold] {status} in {result.latency_ms}ms")
    if result.model_info is not None:
        console.print(
            f"Model:      [cyan]{escape(result.model_info.model)}[/cyan] "
            f"(temp {result.model_info.temperature}, {result.model_info.decode_mode})"
        )
    console.print(f"Rounds:     {result.rounds}")
    console.print(f"Repairs:    {result.repairs_attempted}")
    format_verdict(result.verification, console)
    console.print()
    format_output(result.output, console)


def format_records(rows: Sequence[CompileRecordRow], console: Console) -> None:
    """Display compile records in compact table format."""
    if not rows:
        console.print("[dim]No compile records.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Time", style="dim")
    table.add_column("Artifact", style="cyan")
    table.add_column("Hash", style="yellow", width=8)
    table.add_column("Model")
    table.add_column("Valid")
    table.add_column("Repairs", justify="right")
    table.add_column("Latency", justify="right", style="green")

    for row in rows:
        table.add_row(
            row.created_at.strftime("%Y-%m-%d %H:%M"),
            f"{escape(row.artifact)}@{escape(row.spec_version)}",
            row.spec_hash,
            escape(row.model),
            "yes" if row.valid else "no",
            str(row.repairs),
            f"{row.latency_ms}ms",
        )

    console.print(table)


def format_example_report(report: ExampleReport, console: Console) -> None:
    """Display one line per example, then the pass count."""
    for outcome in report.outcomes:
        mark = "[green]PASS[/green]" if outcome.passed else "[red]FAIL[/red]"
        shown = escape(json.dumps(outcome.example.input, ensure_ascii=False))
        console.print(f"  {mark} {shown} {escape(outcome.detail)}", highlight=False)
    console.print(f"\n{report.passed}/{report.total} examples passed")


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)

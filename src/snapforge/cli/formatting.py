"""Rich formatting helpers for the snapforge CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from snapforge.models.snapshot import LogLevel, PipelineState

if TYPE_CHECKING:
    from snapforge.forge import ForgeResult
    from snapforge.gauntlet import GauntletResult
    from snapforge.models.snapshot import Snapshot

_STATE_STYLES = {
    PipelineState.NEW: "dim",
    PipelineState.ANNOTATED: "cyan",
    PipelineState.VERIFIED: "green",
    PipelineState.EXTRACTED: "red",
}

_LEVEL_STYLES = {
    LogLevel.INFO: "green",
    LogLevel.WARN: "yellow",
    LogLevel.ERROR: "red",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)


def _state(state: PipelineState) -> str:
    style = _STATE_STYLES.get(state, "")
    return f"[{style}]{state.value}[/{style}]" if style else state.value


def format_snapshot_table(snapshots: list[Snapshot], console: Console) -> None:
    """Compact one-line-per-snapshot table."""
    if not snapshots:
        console.print("[dim]No snapshots.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("ID", style="yellow", width=12)
    table.add_column("State")
    table.add_column("Created", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Fields", justify="right")
    table.add_column("Log", justify="right")

    for snap in snapshots:
        fields = str(len(snap.ground_truth)) if snap.ground_truth is not None else "-"
        table.add_row(
            snap.snapshot_id[:12],
            _state(snap.state),
            snap.created_at.strftime("%Y-%m-%d %H:%M"),
            f"{len(snap.raw_document.encode('utf-8')):,}",
            fields,
            str(len(snap.logs)),
        )
    console.print(table)


def format_audit_log(snapshot: Snapshot, console: Console) -> None:
    if not snapshot.logs:
        console.print("[dim]No audit entries.[/dim]")
        return
    for entry in snapshot.logs:
        style = _LEVEL_STYLES.get(entry.level, "")
        console.print(
            f"  [dim]{entry.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/dim] "
            f"{entry.phase.value:<7} [{style}]{entry.level.value:<5}[/{style}] "
            f"{escape(entry.message)}",
            highlight=False,
        )


def format_snapshot_detail(snapshot: Snapshot, console: Console, *, show_source: bool = True) -> None:
    """Full view: header, ground truth, extractor source, audit log."""
    console.print(f"[yellow]snapshot {snapshot.snapshot_id}[/yellow]")
    console.print(f"  State:    {_state(snapshot.state)}")
    console.print(f"  Created:  {snapshot.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
    console.print(f"  Updated:  {snapshot.updated_at.strftime('%Y-%m-%d %H:%M:%S')}")
    console.print(f"  Document: {len(snapshot.raw_document.splitlines())} lines")

    console.print()
    console.print("[bold]Ground truth[/bold]")
    if snapshot.ground_truth is None:
        console.print("  [dim](none)[/dim]")
    else:
        console.print(escape(json.dumps(snapshot.ground_truth, indent=2, ensure_ascii=False)))

    if show_source:
        console.print()
        console.print("[bold]Extractor[/bold]")
        if snapshot.extractor_source:
            console.print(Syntax(snapshot.extractor_source, "python", line_numbers=True))
        else:
            console.print("  [dim](none)[/dim]")

    console.print()
    console.print("[bold]Audit log[/bold]")
    format_audit_log(snapshot, console)


def format_forge_result(result: ForgeResult, console: Console) -> None:
    console.print(
        f"Snapshot [yellow]{result.snapshot_id[:12]}[/yellow] -> {_state(result.state)} "
        f"after {result.attempts} attempt(s)"
    )
    for outcome in result.outcomes:
        mark = "[green]ok[/green]" if outcome.succeeded else "[red]x[/red]"
        console.print(f"  {mark} attempt {outcome.attempt}: {escape(outcome.message)}", highlight=False)


def format_gauntlet_result(result: GauntletResult, console: Console) -> None:
    if result.success:
        console.print(f"[green]PASS[/green] ({result.execution_time_ms:.0f}ms)")
    else:
        console.print(f"[red]FAIL[/red] ({result.execution_time_ms:.0f}ms): {escape(result.error or '')}", highlight=False)
        for error in result.validation_errors:
            console.print(f"  - {escape(error)}", highlight=False)
    if result.extracted_data is not None:
        console.print(escape(json.dumps(result.extracted_data, indent=2, ensure_ascii=False)))
    for line in result.console:
        console.print(f"[dim]| {escape(line)}[/dim]", highlight=False)

"""Console summary of a batch run."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from swatchr.core.batch.result import BatchResult


def build_summary_table(result: BatchResult) -> Table:
    """Per-config table of processed / skipped / failed units and status."""
    table = Table(title="Batch Summary", show_header=True)
    table.add_column("Config", style="cyan")
    table.add_column("Processed", style="green", justify="right")
    table.add_column("Skipped", style="yellow", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Status")

    for r in result.results:
        status = "[green]ok[/green]" if r.success else f"[red]{r.error_type}[/red]"
        table.add_row(
            r.config.name,
            str(r.stats.processed),
            str(r.stats.skipped),
            str(r.stats.failed),
            f"{r.duration_s:.1f}s",
            status,
        )
    for config in result.skipped_configs:
        table.add_row(config.name, "-", "-", "-", "-", "[dim]done earlier[/dim]")

    total = result.total_stats
    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        str(total.processed),
        str(total.skipped),
        str(total.failed),
        f"{result.duration_s:.1f}s",
        f"{result.success_count}/{len(result.results)} ok",
    )
    return table


def render_batch_summary(console: Console, result: BatchResult) -> None:
    console.print()
    console.print(build_summary_table(result))

    total = result.total_stats
    if total.granular.total:
        console.print(
            f"Granular cache: {total.granular.changed} changed, "
            f"{total.granular.skipped} unchanged of {total.granular.total} node(s)"
        )
    if result.resumed:
        console.print(f"[dim]Resumed batch: {result.skipped_count} config(s) already done[/dim]")

    if result.failures:
        console.print(f"\n[red]❌ {result.failure_count} config(s) failed:[/red]")
        for r in result.failures:
            console.print(f"   - {r.config.path}: {r.error}")
        console.print("\nRe-run with [bold]--resume[/bold] to retry only the failed configs.")
    else:
        console.print("\n[bold green]✅ All configs exported[/bold green]")

from __future__ import annotations

from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from bench_history.domain.document import format_date
from bench_history.domain.models import AverageScores, BestScores, Record


def _score_or_dash(value: Optional[int]) -> str:
    return f"{value:,}" if value is not None else "-"


def print_history(records: Sequence[Record], console: Optional[Console] = None) -> None:
    """
    Render benchmark records as a rich table, newest first.
    """
    console = console or Console()

    if not records:
        console.print("[yellow]No benchmark results recorded.[/yellow]")
        return

    table = Table(
        title="Benchmark History",
        box=box.ROUNDED,
        caption=f"{len(records)} result(s), newest first",
    )

    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Date (UTC)", style="white", no_wrap=True)
    table.add_column("Device", style="magenta")
    table.add_column("Type", style="blue")
    table.add_column("CPU", justify="right", style="green")
    table.add_column("GPU", justify="right", style="green")
    table.add_column("Memory", justify="right", style="green")
    table.add_column("Storage", justify="right", style="green")
    table.add_column("Total", justify="right", style="bold green")
    table.add_column("Grade", justify="center", style="bold")
    table.add_column("Duration", justify="right", style="yellow")

    for record in records:
        table.add_row(
            str(record.id)[:8],
            format_date(record.date),
            f"{record.device_name} ({record.device_model})",
            record.test_type,
            f"{record.cpu_score:,}",
            f"{record.gpu_score:,}",
            f"{record.memory_score:,}",
            f"{record.storage_score:,}",
            f"{record.total_score:,}",
            record.grade,
            record.formatted_duration,
        )

    console.print(table)


def print_aggregates(
    best: BestScores, average: AverageScores, console: Optional[Console] = None
) -> None:
    """
    Render best-ever and average scores per category.

    Best scores show "-" when there is no data; averages are 0.00 then.
    """
    console = console or Console()

    table = Table(title="Score Summary", box=box.ROUNDED)
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Best", justify="right", style="bold green")
    table.add_column("Average", justify="right", style="green")

    for label, best_value, average_value in (
        ("CPU", best.cpu, average.cpu),
        ("GPU", best.gpu, average.gpu),
        ("Memory", best.memory, average.memory),
        ("Storage", best.storage, average.storage),
    ):
        table.add_row(label, _score_or_dash(best_value), f"{average_value:,.2f}")

    console.print(table)

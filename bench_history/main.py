from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from bench_history.config import get_settings
from bench_history.domain.document import format_date
from bench_history.domain.models import earliest
from bench_history.errors import HistoryError, StorageFailure
from bench_history.reporter import print_aggregates, print_history
from bench_history.store import HistoryStore
from bench_history.utils.logging import configure_logging

app = typer.Typer(help="Benchmark history CLI.")


def _open_store() -> HistoryStore:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        return HistoryStore.from_settings(settings)
    except StorageFailure as exc:
        typer.echo(f"Cannot open history: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def info() -> None:
    """
    Show effective configuration values and a history summary.
    """
    settings = get_settings()
    location = (
        f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
        if settings.history_backend == "postgres"
        else settings.history_path
    )
    typer.echo(f"backend={settings.history_backend} location={location}")
    with _open_store() as store:
        oldest = earliest(store.history)
        typer.echo(
            f"records={len(store.history)} "
            f"oldest={format_date(oldest) if oldest else '-'}"
        )


@app.command("list")
def list_results(
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-n",
        help="Show only the N most recent results.",
    ),
) -> None:
    """
    List recorded results, newest first.
    """
    with _open_store() as store:
        print_history(store.filter_history(limit=limit))


@app.command()
def stats() -> None:
    """
    Show best-ever and average scores per category.
    """
    with _open_store() as store:
        print_aggregates(store.best_scores(), store.average_scores())


@app.command()
def save(
    cpu: int = typer.Option(..., "--cpu", min=0, help="CPU score."),
    gpu: int = typer.Option(..., "--gpu", min=0, help="GPU score."),
    memory: int = typer.Option(..., "--memory", min=0, help="Memory score."),
    storage: int = typer.Option(..., "--storage", min=0, help="Storage score."),
    total: int = typer.Option(..., "--total", min=0, help="Total score (stored as given)."),
    grade: str = typer.Option(..., "--grade", "-g", help="Grade label, e.g. S, A, B."),
    test_type: str = typer.Option("full", "--type", "-t", help="Benchmark suite or mode."),
    duration: float = typer.Option(..., "--duration", "-d", min=0.0, help="Elapsed seconds."),
    details: Optional[str] = typer.Option(None, "--details", help="Free-text notes."),
) -> None:
    """
    Record an already-computed benchmark result.
    """
    with _open_store() as store:
        try:
            record = store.save_result(
                cpu, gpu, memory, storage, total, grade, test_type, duration, details
            )
        except StorageFailure as exc:
            typer.echo(f"Save failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc
    typer.echo(f"Saved {record.id}")


@app.command()
def delete(record_id: str = typer.Argument(..., help="Identifier of the result to delete.")) -> None:
    """
    Delete one result (unknown ids are ignored).
    """
    with _open_store() as store:
        try:
            store.delete_result(record_id)
        except ValueError as exc:
            typer.echo(f"Invalid id: {record_id}", err=True)
            raise typer.Exit(code=1) from exc
        except StorageFailure as exc:
            typer.echo(f"Delete failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc
        typer.echo(f"{len(store.history)} result(s) remaining.")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """
    Delete every recorded result.
    """
    if not yes:
        typer.confirm("Delete the entire benchmark history?", abort=True)
    with _open_store() as store:
        try:
            store.clear_history()
        except StorageFailure as exc:
            typer.echo(f"Clear failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc
    typer.echo("History cleared.")


@app.command()
def export(
    fmt: str = typer.Option("json", "--format", "-f", help="Export format (json, csv)."),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory (default from settings).",
    ),
    include_details: bool = typer.Option(
        False,
        "--include-details",
        help="Add the details column (csv only; the JSON document never carries it).",
    ),
) -> None:
    """
    Write the history to latest.<format> plus a timestamped archive.
    """
    target = output or Path(get_settings().export_dir)
    with _open_store() as store:
        try:
            path = store.write_export(target, fmt=fmt, include_details=include_details)
        except (HistoryError, ValueError) as exc:
            typer.echo(f"Export failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc
    typer.echo(f"Exported to {path}")


@app.command("import")
def import_document(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Export document to import."),
) -> None:
    """
    Import a JSON export document; malformed entries are skipped.
    """
    with _open_store() as store:
        before = len(store.history)
        try:
            ok = store.import_from_file(path)
        except StorageFailure as exc:
            typer.echo(f"Import failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc
        if not ok:
            typer.echo(f"{path} is not a JSON list of results.", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Imported {len(store.history) - before} result(s).")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()

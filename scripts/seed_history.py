"""
Synthetic history generator for the benchmark history store.

Implements deterministic pseudo-random benchmark results, either saved
through a HistoryStore on the configured backend or written out as an export
document for later import.
"""

from __future__ import annotations

import random
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List
from uuid import UUID

import typer

from bench_history.config import get_settings
from bench_history.device import static_identity
from bench_history.domain.document import encode_document
from bench_history.domain.models import Record
from bench_history.store import HistoryStore
from bench_history.utils.logging import configure_logging

app = typer.Typer(help="Generate synthetic benchmark results (store or export document).")

GRADES = ["S", "A", "B", "C", "D"]
TEST_TYPES = ["quick", "full", "sustained"]
DEVICES = [("iPhone15,2", "Test iPhone 14 Pro"), ("iPhone16,1", "Test iPhone 15 Pro")]


def _grade_for(total: int) -> str:
    thresholds = [(12_000, "S"), (9_000, "A"), (6_000, "B"), (3_000, "C")]
    for floor, grade in thresholds:
        if total >= floor:
            return grade
    return GRADES[-1]


def _generate_records(rows: int, seed: int) -> List[Record]:
    rng = random.Random(seed)
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)

    records: List[Record] = []
    for i in range(rows):
        scores = [rng.randint(500, 4_000) for _ in range(4)]
        total = sum(scores)
        model, name = rng.choice(DEVICES)
        records.append(
            Record(
                id=UUID(int=rng.getrandbits(128), version=4),
                date=start + timedelta(hours=i, seconds=rng.randint(0, 3_599)),
                device_model=model,
                device_name=name,
                cpu_score=scores[0],
                gpu_score=scores[1],
                memory_score=scores[2],
                storage_score=scores[3],
                total_score=total,
                grade=_grade_for(total),
                test_type=rng.choice(TEST_TYPES),
                test_duration=round(rng.uniform(5, 600), 2),
            )
        )
    return records


def _save_through_store(rows: int, seed: int) -> int:
    rng = random.Random(seed)
    model, name = rng.choice(DEVICES)
    saved = 0
    with HistoryStore.from_settings(resolver=static_identity(model, name)) as store:
        for record in _generate_records(rows, seed):
            store.save_result(
                record.cpu_score,
                record.gpu_score,
                record.memory_score,
                record.storage_score,
                record.total_score,
                record.grade,
                record.test_type,
                record.test_duration,
                details=f"seed={seed}",
            )
            saved += 1
    return saved


@app.command()
def main(
    rows: int = typer.Option(
        20,
        "--rows",
        "-r",
        help="Number of results to generate.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Export document path used with --no-load.",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Only write an export document; do not touch the configured store.",
    ),
) -> None:
    """
    Generate synthetic results and save them or write them as a document.
    """
    start = time.perf_counter()

    if no_load:
        path = output or Path("synthetic_history.json")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(encode_document(_generate_records(rows, seed)), encoding="utf-8")
        typer.echo(f"Wrote {rows:,} results -> {path} (seed={seed})")
        return

    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    typer.echo(f"Saving {rows:,} results to the {settings.history_backend} backend (seed={seed})")
    saved = _save_through_store(rows, seed)
    duration = time.perf_counter() - start
    typer.echo(f"Saved {saved:,} results in {duration:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)

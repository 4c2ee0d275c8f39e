"""
Domain models for the benchmark history store.

`Record` is the immutable value persisted for every completed benchmark run.
Field aliases match the camelCase keys of the export document so the same
model can be validated from, and dumped to, either naming style.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field


class Record(BaseModel):
    """
    Representation of a single completed benchmark run.
    """

    id: UUID = Field(..., description="Unique identifier, never reused.")
    date: AwareDatetime = Field(..., description="Creation timestamp (store-assigned).")
    device_model: str = Field(..., alias="deviceModel", description="Hardware model identifier.")
    device_name: str = Field(..., alias="deviceName", description="User-visible device name.")
    cpu_score: int = Field(..., ge=0, alias="cpuScore")
    gpu_score: int = Field(..., ge=0, alias="gpuScore")
    memory_score: int = Field(..., ge=0, alias="memoryScore")
    storage_score: int = Field(..., ge=0, alias="storageScore")
    total_score: int = Field(
        ..., ge=0, alias="totalScore", description="Caller-computed total, stored as given."
    )
    grade: str = Field(..., description="Categorical label; mapping owned by the display layer.")
    test_type: str = Field(..., alias="testType", description="Benchmark suite or mode label.")
    test_duration: float = Field(
        ..., ge=0, allow_inf_nan=False, alias="testDuration", description="Elapsed seconds."
    )
    details: Optional[str] = Field(None, description="Free-text payload, not exported.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    @property
    def formatted_duration(self) -> str:
        """Human-readable duration, e.g. ``42 s`` or ``2 min 5 s``."""
        if self.test_duration < 60:
            return f"{self.test_duration:.0f} s"
        minutes = int(self.test_duration // 60)
        seconds = int(self.test_duration) % 60
        return f"{minutes} min {seconds} s"


@dataclass(frozen=True)
class BestScores:
    """Best-ever score per category; None means no data, not zero."""

    cpu: Optional[int] = None
    gpu: Optional[int] = None
    memory: Optional[int] = None
    storage: Optional[int] = None


@dataclass(frozen=True)
class AverageScores:
    """Arithmetic mean per category; all zero for an empty history."""

    cpu: float = 0.0
    gpu: float = 0.0
    memory: float = 0.0
    storage: float = 0.0


def newest_first(records: Iterable[Record]) -> List[Record]:
    """Sort records by date descending; equal dates keep their incoming order."""
    return sorted(records, key=lambda record: record.date, reverse=True)


def compute_best_scores(records: Iterable[Record]) -> BestScores:
    best: dict[str, Optional[int]] = {"cpu": None, "gpu": None, "memory": None, "storage": None}
    for record in records:
        for category, value in _category_scores(record):
            current = best[category]
            if current is None or value > current:
                best[category] = value
    return BestScores(**best)


def compute_average_scores(records: Iterable[Record]) -> AverageScores:
    items = list(records)
    if not items:
        return AverageScores()

    count = float(len(items))
    totals = {"cpu": 0, "gpu": 0, "memory": 0, "storage": 0}
    for record in items:
        for category, value in _category_scores(record):
            totals[category] += value
    return AverageScores(**{category: total / count for category, total in totals.items()})


def _category_scores(record: Record) -> tuple[tuple[str, int], ...]:
    return (
        ("cpu", record.cpu_score),
        ("gpu", record.gpu_score),
        ("memory", record.memory_score),
        ("storage", record.storage_score),
    )


def earliest(records: Iterable[Record]) -> Optional[datetime]:
    """Date of the oldest record, or None for an empty iterable."""
    dates = [record.date for record in records]
    return min(dates) if dates else None


__all__ = [
    "Record",
    "BestScores",
    "AverageScores",
    "newest_first",
    "compute_best_scores",
    "compute_average_scores",
    "earliest",
]

"""
Export/import codec for the portable history document.

The document is a JSON list with one object per record and a fixed key set.
Dates are written as UTC ISO-8601 truncated to whole seconds so re-import is
locale independent. `details` is not part of the document: it does not
survive an export/import round trip.

Usage:
    from bench_history.domain.document import encode_document, parse_document

    text = encode_document(records)
    records, skipped = validate_entries(parse_document(text))
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Tuple, Union
from uuid import UUID

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError, field_validator

from bench_history.domain.models import Record
from bench_history.errors import MalformedDocument
from bench_history.utils.logging import get_logger

log = get_logger(__name__)

DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

DOCUMENT_KEYS = (
    "id",
    "date",
    "deviceModel",
    "deviceName",
    "cpuScore",
    "gpuScore",
    "memoryScore",
    "storageScore",
    "totalScore",
    "grade",
    "testType",
    "testDuration",
)

CSV_HEADER = [
    "date",
    "device_model",
    "cpu_score",
    "gpu_score",
    "memory_score",
    "storage_score",
    "total_score",
    "grade",
    "test_type",
    "test_duration",
]


class ExportedRecord(BaseModel):
    """
    One entry of an import document.

    Stricter than `Record`: identifiers and dates must arrive as strings,
    scores as JSON integers. Anything else makes the entry invalid.
    """

    id: UUID
    date: datetime
    device_model: StrictStr = Field(..., alias="deviceModel")
    device_name: StrictStr = Field(..., alias="deviceName")
    cpu_score: StrictInt = Field(..., ge=0, alias="cpuScore")
    gpu_score: StrictInt = Field(..., ge=0, alias="gpuScore")
    memory_score: StrictInt = Field(..., ge=0, alias="memoryScore")
    storage_score: StrictInt = Field(..., ge=0, alias="storageScore")
    total_score: StrictInt = Field(..., ge=0, alias="totalScore")
    grade: StrictStr
    test_type: StrictStr = Field(..., alias="testType")
    test_duration: float = Field(..., ge=0, allow_inf_nan=False, alias="testDuration")

    model_config = {"extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _id_from_text(cls, value: Any) -> UUID:
        if not isinstance(value, str):
            raise ValueError("id must be a string")
        return UUID(value)

    @field_validator("date", mode="before")
    @classmethod
    def _date_from_iso8601(cls, value: Any) -> datetime:
        if not isinstance(value, str):
            raise ValueError("date must be an ISO-8601 string")
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            raise ValueError("date must carry a UTC designator or offset")
        try:
            parsed.astimezone(timezone.utc)
        except OverflowError as exc:
            raise ValueError("date is out of range once converted to UTC") from exc
        return parsed

    @field_validator("test_duration", mode="before")
    @classmethod
    def _duration_is_number(cls, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("testDuration must be a number")
        return float(value)

    def to_record(self) -> Record:
        return Record(
            id=self.id,
            date=self.date,
            device_model=self.device_model,
            device_name=self.device_name,
            cpu_score=self.cpu_score,
            gpu_score=self.gpu_score,
            memory_score=self.memory_score,
            storage_score=self.storage_score,
            total_score=self.total_score,
            grade=self.grade,
            test_type=self.test_type,
            test_duration=self.test_duration,
        )


def format_date(value: datetime) -> str:
    """Render an aware datetime as UTC ISO-8601 with second precision."""
    return value.astimezone(timezone.utc).strftime(DATE_FORMAT)


def to_document_entry(record: Record) -> Dict[str, Any]:
    """Map a record onto the ordered key set of the export document."""
    return {
        "id": str(record.id),
        "date": format_date(record.date),
        "deviceModel": record.device_model,
        "deviceName": record.device_name,
        "cpuScore": record.cpu_score,
        "gpuScore": record.gpu_score,
        "memoryScore": record.memory_score,
        "storageScore": record.storage_score,
        "totalScore": record.total_score,
        "grade": record.grade,
        "testType": record.test_type,
        "testDuration": float(record.test_duration),
    }


def encode_document(records: Iterable[Record]) -> str:
    """Serialize records into the export document (pretty-printed JSON)."""
    payload = [to_document_entry(record) for record in records]
    return json.dumps(payload, indent=2, ensure_ascii=False, allow_nan=False)


def parse_document(document: Union[str, bytes]) -> List[Any]:
    """
    Parse an import document into its raw list of entries.

    Raises
    ------
    MalformedDocument
        If the payload is not JSON or its top level is not a list.
    """
    try:
        payload = json.loads(document)
    except (TypeError, ValueError) as exc:
        raise MalformedDocument(f"document is not valid JSON: {exc}") from exc

    if not isinstance(payload, list):
        raise MalformedDocument(
            f"document must be a JSON list, got {type(payload).__name__}"
        )
    return payload


def validate_entries(items: Iterable[Any]) -> Tuple[List[Record], int]:
    """
    Validate raw document entries, skipping the ones that are not well formed.

    Returns
    -------
    tuple[list[Record], int]
        Valid records in document order and the number of skipped entries.
    """
    records: List[Record] = []
    skipped = 0
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            skipped += 1
            log.warning(
                "Skipping import entry that is not an object",
                extra={"index": index, "entry_type": type(item).__name__},
            )
            continue
        try:
            records.append(ExportedRecord.model_validate(item).to_record())
        except ValidationError as exc:
            skipped += 1
            log.warning(
                "Skipping invalid import entry",
                extra={
                    "index": index,
                    "fields": sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]}),
                },
            )
    return records, skipped


def render_csv(records: Iterable[Record], include_details: bool = False) -> str:
    """Render records as CSV with a header row; details only when requested."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER + (["details"] if include_details else []))
    for record in records:
        row = [
            format_date(record.date),
            record.device_model,
            record.cpu_score,
            record.gpu_score,
            record.memory_score,
            record.storage_score,
            record.total_score,
            record.grade,
            record.test_type,
            f"{record.test_duration:.2f}",
        ]
        if include_details:
            row.append(record.details or "")
        writer.writerow(row)
    return buffer.getvalue()


__all__ = [
    "DOCUMENT_KEYS",
    "ExportedRecord",
    "format_date",
    "to_document_entry",
    "encode_document",
    "parse_document",
    "validate_entries",
    "render_csv",
]

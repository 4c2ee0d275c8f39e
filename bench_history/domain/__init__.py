"""
Domain package for the benchmark history store.

Exports the record model, aggregate containers, and the export/import codec.
Keep this package focused on data definitions and validation concerns.
"""

from bench_history.domain.document import (
    ExportedRecord,
    encode_document,
    parse_document,
    render_csv,
    validate_entries,
)
from bench_history.domain.models import (
    AverageScores,
    BestScores,
    Record,
    compute_average_scores,
    compute_best_scores,
    newest_first,
)

__all__ = [
    "Record",
    "BestScores",
    "AverageScores",
    "compute_best_scores",
    "compute_average_scores",
    "newest_first",
    "ExportedRecord",
    "encode_document",
    "parse_document",
    "validate_entries",
    "render_csv",
]

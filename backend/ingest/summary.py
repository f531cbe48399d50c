"""
Summary and preview helpers: cheap-to-serialize artifacts for every file record.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

from core.models import (
    ColumnSampleStats,
    ColumnType,
    FileRecord,
    FileStats,
    NumericStats,
    Table,
    TableSummary,
)
from core.utils import format_file_size, is_empty, numeric_series
from ingest.infer import TYPE_SAMPLE_ROWS, TYPE_THRESHOLD, infer_column_types

PREVIEW_ROWS = 10


def build_preview(table: Table, k: int = PREVIEW_ROWS) -> List[Dict[str, Any]]:
    """Literal slice of the first `k` rows."""
    return [dict(row) for row in table.rows[:k]]


def numeric_stats(table: Table, column: str) -> Optional[NumericStats]:
    """min/max/average/count over the whole column; None if nothing parses."""
    s_num = numeric_series(pd.Series(table.column_values(column), dtype=object)).dropna()
    count = int(s_num.count())
    if count == 0:
        return None
    return NumericStats(
        min=float(s_num.min()),
        max=float(s_num.max()),
        average=float(s_num.sum()) / count,
        count=count,
    )


def column_stats(
    table: Table,
    *,
    sample_size: int = TYPE_SAMPLE_ROWS,
    threshold: float = TYPE_THRESHOLD,
    types: Optional[Dict[str, ColumnType]] = None,
) -> Dict[str, NumericStats]:
    """Stats for every numeric-classified column that has parseable values."""
    if types is None:
        types = infer_column_types(table, sample_size=sample_size, threshold=threshold)
    out: Dict[str, NumericStats] = {}
    for col, col_type in types.items():
        if col_type != ColumnType.numeric:
            continue
        stats = numeric_stats(table, col)
        if stats is not None:
            out[col] = stats
    return out


def data_quality(table: Table) -> float:
    """Fraction of filled cells across the entire table (0.0 when empty)."""
    total = table.row_count * len(table.columns)
    if total == 0:
        return 0.0
    filled = sum(
        1 for row in table.rows for col in table.columns if not is_empty(row.get(col))
    )
    return filled / total


def summarize(table: Table) -> TableSummary:
    types = infer_column_types(table, sample_size=TYPE_SAMPLE_ROWS, threshold=TYPE_THRESHOLD)
    return TableSummary(
        row_count=table.row_count,
        column_count=len(table.columns),
        column_types=types,
        numeric_stats=column_stats(table, types=types),
        data_quality=data_quality(table),
    )


# ---------------------------------------------------------------------------
# File stats (dashboard cards)
# ---------------------------------------------------------------------------

def _strictly_numeric(table: Table, column: str, sample_size: int) -> bool:
    """Every sampled value is a non-empty plain number."""
    sample = table.column_values(column)[:sample_size]
    if not sample:
        return False
    parsed = numeric_series(pd.Series(sample, dtype=object))
    return bool(parsed.notna().all())


def file_stats(record: FileRecord, *, sample_size: int = TYPE_SAMPLE_ROWS) -> FileStats:
    table = record.table
    strict_numeric = [c for c in table.columns if _strictly_numeric(table, c, sample_size)]

    sample_stats = None
    if strict_numeric:
        first = strict_numeric[0]
        stats = numeric_stats(table, first)
        if stats is not None:
            sample_stats = ColumnSampleStats(column=first, **stats.model_dump())

    return FileStats(
        total_rows=table.row_count,
        total_columns=len(table.columns),
        file_size=format_file_size(record.size_bytes),
        uploaded_at=record.uploaded_at[:10],
        numeric_columns=len(strict_numeric),
        text_columns=len(table.columns) - len(strict_numeric),
        sample_stats=sample_stats,
    )

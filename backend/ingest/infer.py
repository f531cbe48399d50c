"""
Column type inference skill.

One parameterized rule classifies a column as numeric / date / text from a
bounded prefix sample. Every call site passes its sample size explicitly;
types are never stored on the Table, consumers recompute them.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Sequence

from core.models import ColumnType, Table
from core.utils import date_value, is_empty, numeric_value

TYPE_SAMPLE_ROWS = 100       # type inference for prompts / summaries
NUMERIC_SAMPLE_ROWS = 50     # "does this column look numeric" checks
TYPE_THRESHOLD = 0.8


def column_sample(table: Table, column: str, sample_size: int) -> List[Any]:
    """First `sample_size` values of `column`, with empties removed afterwards."""
    head = table.rows[: max(sample_size, 0)]
    return [row.get(column) for row in head if not is_empty(row.get(column))]


def classify_values(values: Sequence[Any], threshold: float = TYPE_THRESHOLD) -> ColumnType:
    """
    Classify already-sampled, non-empty values.

    numeric if the parseable-number fraction is strictly above `threshold`,
    else date if the parseable-date fraction is strictly above it, else text.
    """
    n = len(values)
    if n == 0:
        return ColumnType.unknown

    numeric_count = sum(1 for v in values if not math.isnan(numeric_value(v)))
    if numeric_count / n > threshold:
        return ColumnType.numeric

    date_count = sum(1 for v in values if date_value(v) is not None)
    if date_count / n > threshold:
        return ColumnType.date

    return ColumnType.text


def classify_column(
    table: Table,
    column: str,
    *,
    sample_size: int = TYPE_SAMPLE_ROWS,
    threshold: float = TYPE_THRESHOLD,
) -> ColumnType:
    return classify_values(column_sample(table, column, sample_size), threshold)


def infer_column_types(
    table: Table,
    *,
    sample_size: int = TYPE_SAMPLE_ROWS,
    threshold: float = TYPE_THRESHOLD,
) -> Dict[str, ColumnType]:
    """Classify every column, keyed in column order."""
    return {
        c: classify_column(table, c, sample_size=sample_size, threshold=threshold)
        for c in table.columns
    }


def numeric_columns(
    table: Table,
    *,
    sample_size: int = NUMERIC_SAMPLE_ROWS,
    threshold: float = TYPE_THRESHOLD,
) -> List[str]:
    """Columns eligible for numeric aggregation / plotting."""
    types = infer_column_types(table, sample_size=sample_size, threshold=threshold)
    return [c for c, t in types.items() if t == ColumnType.numeric]

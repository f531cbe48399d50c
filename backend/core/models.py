"""
Core Pydantic models for the ingestion service.

All domain types live here so every module shares the same vocabulary.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FileKind(str, Enum):
    csv = "csv"
    spreadsheet = "spreadsheet"


class ColumnType(str, Enum):
    numeric = "numeric"
    date = "date"
    text = "text"
    unknown = "unknown"


# ---------------------------------------------------------------------------
# Table & file record
# ---------------------------------------------------------------------------

class Table(BaseModel):
    columns: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column_values(self, column: str) -> List[Any]:
        """All values of one column, in row order."""
        return [row.get(column, "") for row in self.rows]


class FileRecord(BaseModel):
    id: str
    name: str
    size_bytes: int
    uploaded_at: str                      # ISO-8601, UTC, "Z" suffix
    kind: FileKind
    table: Table
    preview: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def row_count(self) -> int:
        return self.table.row_count

    @property
    def columns(self) -> List[str]:
        return self.table.columns


class FileListItem(BaseModel):
    id: str
    name: str
    size_bytes: int
    uploaded_at: str
    kind: FileKind
    row_count: int
    columns: List[str]

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileListItem":
        return cls(
            id=record.id,
            name=record.name,
            size_bytes=record.size_bytes,
            uploaded_at=record.uploaded_at,
            kind=record.kind,
            row_count=record.row_count,
            columns=list(record.columns),
        )


# ---------------------------------------------------------------------------
# Derived statistics (never persisted)
# ---------------------------------------------------------------------------

class NumericStats(BaseModel):
    min: float
    max: float
    average: float
    count: int


class ColumnSampleStats(NumericStats):
    column: str


class TableSummary(BaseModel):
    row_count: int
    column_count: int
    column_types: Dict[str, ColumnType]
    numeric_stats: Dict[str, NumericStats] = Field(default_factory=dict)
    data_quality: float = 0.0             # filled cells / total cells


class FileStats(BaseModel):
    total_rows: int
    total_columns: int
    file_size: str                        # human readable, e.g. "1.5 KB"
    uploaded_at: str                      # date part of uploaded_at
    numeric_columns: int
    text_columns: int
    sample_stats: Optional[ColumnSampleStats] = None

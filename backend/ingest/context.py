"""
Data context handed to the chat/LLM layer.

The chat layer may only read rows, columns, inferred types and numeric
column statistics; this module assembles exactly that and nothing else.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from core.models import FileRecord
from ingest.infer import TYPE_SAMPLE_ROWS, TYPE_THRESHOLD, infer_column_types
from ingest.summary import column_stats

LLM_SAMPLE_ROWS = 5


def build_llm_context(record: FileRecord, *, sample_rows: int = LLM_SAMPLE_ROWS) -> Dict[str, Any]:
    table = record.table
    types = infer_column_types(table, sample_size=TYPE_SAMPLE_ROWS, threshold=TYPE_THRESHOLD)
    stats = column_stats(table, types=types)
    return {
        "file_id": record.id,
        "file_name": record.name,
        "total_rows": table.row_count,
        "columns": list(table.columns),
        "data_types": {c: t.value for c, t in types.items()},
        "numeric_stats": {c: s.model_dump() for c, s in stats.items()},
        "sample_data": [dict(r) for r in table.rows[:sample_rows]],
    }


def render_llm_context(context: Dict[str, Any]) -> str:
    """Format the context as the prompt block the chat layer prepends."""
    lines = [
        "Data Analysis Context:",
        f"- Total rows: {context['total_rows']}",
        f"- Columns: {', '.join(context['columns'])}",
        f"- Data types: {json.dumps(context['data_types'])}",
    ]
    if context.get("numeric_stats"):
        lines.append(f"- Numeric column stats: {json.dumps(context['numeric_stats'])}")
    n = len(context.get("sample_data") or [])
    lines.append(
        f"- Sample data (first {n} rows): "
        f"{json.dumps(context.get('sample_data') or [], indent=2, default=str)}"
    )
    return "\n".join(lines)

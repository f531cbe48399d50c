"""
Tabular parsing skill.

Turns an in-memory CSV or workbook buffer into a Table (ordered columns +
row dicts). No disk or network I/O happens here; callers hand us bytes.
"""

from __future__ import annotations

import io
import logging
from typing import Any, List, Union

import pandas as pd

from core.errors import EmptyDocument, MalformedInput, UnsupportedFileType
from core.models import FileKind, Table
from core.utils import cell_value, is_empty, unique_names

logger = logging.getLogger("uvicorn.error")

EXTENSION_KINDS = {
    "csv": FileKind.csv,
    "xlsx": FileKind.spreadsheet,
    "xls": FileKind.spreadsheet,
}


# ---------------------------------------------------------------------------
# Kind detection
# ---------------------------------------------------------------------------

def file_extension(filename: str) -> str:
    return (filename.rsplit(".", 1)[1].lower() if "." in filename else "").strip()


def detect_kind(filename: str) -> FileKind:
    """Map a filename to its FileKind, or raise UnsupportedFileType."""
    kind = EXTENSION_KINDS.get(file_extension(filename or ""))
    if kind is None:
        raise UnsupportedFileType(
            f"Unsupported file type for '{filename}'. Please upload CSV or XLSX files."
        )
    return kind


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _decode(content: Union[bytes, str]) -> str:
    if isinstance(content, str):
        return content.lstrip("\ufeff")
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _header_names(cells: List[Any]) -> List[str]:
    names = []
    for i, cell in enumerate(cells):
        if is_empty(cell):
            names.append(f"Unnamed: {i}")
        else:
            names.append(str(cell_value(cell)))
    return unique_names(names)


def _zip_rows(columns: List[str], body: List[List[Any]]) -> List[dict]:
    """Positionally zip each row against the header; missing cells become ""."""
    width = len(columns)
    rows = []
    for values in body:
        values = list(values[:width]) + [""] * (width - len(values))
        rows.append({col: cell_value(v) for col, v in zip(columns, values)})
    return rows


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def parse_csv(content: Union[bytes, str]) -> Table:
    """
    Parse CSV text. The first line is the header; blank lines are skipped.

    Values are kept as the exact strings in the file (no NA tokens, no
    numeric coercion). Short rows are padded with "".
    """
    text = _decode(content)
    try:
        # header=None so the first line fixes the field count and any
        # longer row is reported by the tokenizer instead of absorbed.
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="c",
        )
    except pd.errors.EmptyDataError as e:
        raise EmptyDocument("CSV file is empty.") from e
    except pd.errors.ParserError as e:
        msg = str(e).strip()
        logger.warning("CSV parsing error: %s", msg)
        raise MalformedInput(f"CSV parsing error: {msg}") from e

    records = df.values.tolist()
    if not records:
        raise EmptyDocument("CSV file is empty.")

    columns = _header_names(records[0])
    rows = _zip_rows(columns, records[1:])
    if not rows:
        raise EmptyDocument("CSV file has a header but no data rows.")
    return Table(columns=columns, rows=rows)


# ---------------------------------------------------------------------------
# Spreadsheet
# ---------------------------------------------------------------------------

def parse_spreadsheet(content: bytes) -> Table:
    """
    Parse the first sheet of an .xlsx/.xls workbook.

    Other sheets are ignored on purpose. Row 1 is the header; later rows
    are zipped positionally against it. Fully blank rows are skipped.
    """
    try:
        df = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object)
    except Exception as e:
        logger.warning("Failed to parse Excel file: %s", e)
        raise MalformedInput(f"Failed to parse Excel file: {e}") from e

    df = df.dropna(how="all")
    records = df.values.tolist()
    if not records:
        raise EmptyDocument("Excel file is empty.")

    header = list(records[0])
    while header and is_empty(header[-1]):
        header.pop()
    if not header:
        raise EmptyDocument("Excel file has no header row.")

    columns = _header_names(header)
    rows = _zip_rows(columns, records[1:])
    if not rows:
        raise EmptyDocument("Excel file has a header but no data rows.")
    return Table(columns=columns, rows=rows)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_table(content: Union[bytes, str], kind: FileKind) -> Table:
    if kind == FileKind.csv:
        return parse_csv(content)
    if isinstance(content, str):
        raise MalformedInput("Spreadsheet content must be binary.")
    return parse_spreadsheet(content)

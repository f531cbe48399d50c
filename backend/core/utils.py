"""
Shared utility helpers.

Pure functions with no I/O, no side effects (apart from reading the clock in
``utc_now_iso`` and the RNG in ``generate_file_id``).
"""

from __future__ import annotations

import datetime as dt
import math
import re
import secrets
import time
import warnings
from typing import Any, Container, Optional

import numpy as np
import pandas as pd


# ---------------------------------------------------------------------------
# Emptiness
# ---------------------------------------------------------------------------

def is_empty(value: Any) -> bool:
    """True for None, NaN/NaT and the empty string."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


# ---------------------------------------------------------------------------
# Numeric parsing
# ---------------------------------------------------------------------------

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def numeric_value(val: Any) -> float:
    """Parse a plain number (sign, decimals, exponent); NaN when it isn't one."""
    if val is None or isinstance(val, (bool, np.bool_)):
        return np.nan
    if isinstance(val, (int, float, np.integer, np.floating)):
        num = float(val)
        return num if math.isfinite(num) else np.nan
    text = str(val).strip()
    if not text or not _NUMBER_RE.match(text):
        return np.nan
    try:
        num = float(text)
    except ValueError:
        return np.nan
    return num if math.isfinite(num) else np.nan


def numeric_series(series: pd.Series) -> pd.Series:
    """Coerce a Series to floats, NaN where a value is not a plain number."""
    converted = series.map(numeric_value)
    return pd.to_numeric(converted, errors="coerce")


# ---------------------------------------------------------------------------
# Date parsing
# ---------------------------------------------------------------------------

_HAS_DIGIT = re.compile(r"\d")
# clock times and bare ordinals parse, but carry no calendar date
_NO_CALENDAR_PART = re.compile(
    r"^(?:\d{1,2}(?::\d{2}){0,2}(?:\.\d+)?\s*(?:[ap]\.?m\.?)?|\d{1,2}(?:st|nd|rd|th))$",
    re.IGNORECASE,
)


def date_value(val: Any) -> Optional[pd.Timestamp]:
    """Parse a calendar date (ISO-8601 or common date strings); None if not a date."""
    if isinstance(val, (dt.datetime, dt.date, np.datetime64)):
        ts = pd.Timestamp(val)
        return None if pd.isna(ts) else ts
    if not isinstance(val, str):
        return None
    text = val.strip()
    # keywords like "now"/"today" are not dates in the data
    if not text or not _HAS_DIGIT.search(text) or _NO_CALENDAR_PART.match(text):
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            ts = pd.to_datetime(text, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
    if ts is None or pd.isna(ts) or ts.year <= 1:
        return None
    return ts


# ---------------------------------------------------------------------------
# Cell normalization
# ---------------------------------------------------------------------------

def cell_value(val: Any) -> Any:
    """Normalize a workbook cell to a JSON-safe scalar; blanks become ""."""
    if is_empty(val):
        return ""
    if isinstance(val, (bool, np.bool_)):
        return bool(val)
    if isinstance(val, np.integer):
        return int(val)
    if isinstance(val, (float, np.floating)):
        num = float(val)
        if not math.isfinite(num):
            return ""
        return num
    if isinstance(val, (pd.Timestamp, dt.datetime, dt.date, dt.time)):
        return val.isoformat()
    if isinstance(val, (int, str)):
        return val
    return str(val)


def unique_names(names: list[str]) -> list[str]:
    """De-duplicate header names by suffixing repeats (a, a.1, a.2)."""
    seen: dict[str, int] = {}
    out: list[str] = []
    taken = set(names)
    for name in names:
        if name not in seen:
            seen[name] = 0
            out.append(name)
            continue
        n = seen[name]
        candidate = name
        while candidate in taken:
            n += 1
            candidate = f"{name}.{n}"
        seen[name] = n
        taken.add(candidate)
        out.append(candidate)
    return out


# ---------------------------------------------------------------------------
# Formatting & identifiers
# ---------------------------------------------------------------------------

def format_file_size(num_bytes: int) -> str:
    """Human readable size: '0 Bytes', '512 Bytes', '1.5 KB', '10 MB'."""
    if num_bytes <= 0:
        return "0 Bytes"
    sizes = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(num_bytes) / math.log(1024))), len(sizes) - 1)
    value = round(num_bytes / (1024 ** i), 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {sizes[i]}"


_B36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(n: int) -> str:
    if n < 0:
        raise ValueError("base36 expects a non-negative integer")
    if n == 0:
        return "0"
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_B36[r])
    return "".join(reversed(digits))


def generate_file_id(existing: Container[str] = ()) -> str:
    """Time-based prefix + random suffix; regenerated if it collides."""
    while True:
        prefix = to_base36(time.time_ns() // 1_000_000)
        suffix = "".join(secrets.choice(_B36) for _ in range(10))
        file_id = prefix + suffix
        if file_id not in existing:
            return file_id


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with a 'Z' suffix."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def parse_iso_timestamp(value: str) -> float:
    """Epoch seconds for an ISO timestamp; 0.0 when it can't be parsed."""
    if isinstance(value, str) and value:
        try:
            parsed = dt.datetime.fromisoformat(value.replace("Z", ""))
        except ValueError:
            return 0.0
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=dt.timezone.utc)
        return parsed.timestamp()
    return 0.0

"""
Tests for parsing, column type inference and summary statistics.
"""

import datetime as dt
import io
import math

import pytest
from openpyxl import Workbook

from core.errors import EmptyDocument, MalformedInput, UnsupportedFileType
from core.models import ColumnType, FileKind, FileRecord, Table
from core.utils import date_value, format_file_size, numeric_value, unique_names
from ingest.infer import classify_column, classify_values, infer_column_types, numeric_columns
from ingest.parse import detect_kind, parse_csv, parse_spreadsheet, parse_table
from ingest.summary import (
    build_preview,
    column_stats,
    data_quality,
    file_stats,
    numeric_stats,
    summarize,
)


def _table(**cols):
    """Build a Table from column -> values keyword args."""
    names = list(cols)
    n = len(next(iter(cols.values()))) if cols else 0
    rows = [{c: cols[c][i] for c in names} for i in range(n)]
    return Table(columns=names, rows=rows)


def _workbook(*sheets):
    """Serialize sheets (lists of rows) into .xlsx bytes."""
    wb = Workbook()
    for idx, rows in enumerate(sheets):
        ws = wb.active if idx == 0 else wb.create_sheet(f"Sheet{idx + 1}")
        for row in rows:
            ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


class TestDetectKind:
    """Tests for extension-based kind detection."""

    @pytest.mark.parametrize("filename,expected", [
        ("data.csv", FileKind.csv),
        ("DATA.CSV", FileKind.csv),
        ("book.xlsx", FileKind.spreadsheet),
        ("legacy.xls", FileKind.spreadsheet),
        ("archive.tar.csv", FileKind.csv),
    ])
    def test_recognized_extensions(self, filename, expected):
        assert detect_kind(filename) == expected

    @pytest.mark.parametrize("filename", ["report.pdf", "notes.txt", "noextension", "", "data.csv.bak"])
    def test_unsupported_extensions(self, filename):
        with pytest.raises(UnsupportedFileType):
            detect_kind(filename)


class TestCSVParsing:
    """Tests for CSV -> Table parsing."""

    def test_header_defines_columns_and_rows(self):
        table = parse_csv(b"name,value\na,1\nb,2\nc,3\n")
        assert table.columns == ["name", "value"]
        assert table.row_count == 3
        assert table.rows[0] == {"name": "a", "value": "1"}

    def test_values_kept_as_strings_verbatim(self):
        """No numeric coercion and no NA token interpretation."""
        table = parse_csv("id,code,note\n007,NA, spaced\n")
        assert table.rows[0] == {"id": "007", "code": "NA", "note": " spaced"}

    def test_short_rows_padded_with_empty_string(self):
        table = parse_csv("a,b,c\n1,2\n")
        assert table.rows == [{"a": "1", "b": "2", "c": ""}]

    def test_blank_lines_skipped(self):
        table = parse_csv("a,b\n1,2\n\n3,4\n\n")
        assert table.row_count == 2

    def test_quoted_fields(self):
        table = parse_csv('name,desc\nacme,"widgets, gadgets"\n')
        assert table.rows[0]["desc"] == "widgets, gadgets"

    def test_duplicate_headers_made_unique(self):
        table = parse_csv("a,a,b\n1,2,3\n")
        assert table.columns == ["a", "a.1", "b"]
        assert set(table.rows[0]) == set(table.columns)

    def test_utf8_bom_stripped(self):
        table = parse_csv("\ufeffname,value\nx,1\n".encode("utf-8"))
        assert table.columns == ["name", "value"]

    def test_latin1_fallback(self):
        table = parse_csv("city\nMálaga\n".encode("latin-1"))
        assert table.rows[0]["city"] == "Málaga"

    def test_unterminated_quote_is_malformed(self):
        with pytest.raises(MalformedInput) as exc_info:
            parse_csv('name,value\n"a,1\nb,2\n')
        assert "CSV parsing error" in exc_info.value.detail

    def test_too_many_fields_is_malformed(self):
        with pytest.raises(MalformedInput):
            parse_csv("a,b\n1,2\n3,4,5\n")

    def test_header_only_is_empty(self):
        with pytest.raises(EmptyDocument):
            parse_csv("name,value\n")

    @pytest.mark.parametrize("content", [b"", "", "\n\n"])
    def test_empty_input_is_empty(self, content):
        with pytest.raises(EmptyDocument):
            parse_csv(content)

    def test_every_row_has_every_column(self):
        table = parse_csv("a,b,c\n1\n1,2\n1,2,3\n")
        for row in table.rows:
            assert list(row) == table.columns


class TestSpreadsheetParsing:
    """Tests for workbook -> Table parsing."""

    def test_basic_sheet(self):
        content = _workbook([["name", "value"], ["a", 1], ["b", 2.5]])
        table = parse_spreadsheet(content)
        assert table.columns == ["name", "value"]
        assert table.rows == [{"name": "a", "value": 1}, {"name": "b", "value": 2.5}]

    def test_only_first_sheet_is_read(self):
        """Later sheets are ignored; changing this must be a deliberate decision."""
        content = _workbook(
            [["region", "sales"], ["north", 10]],
            [["other", "columns"], ["x", "y"], ["z", "w"]],
        )
        table = parse_spreadsheet(content)
        assert table.columns == ["region", "sales"]
        assert table.row_count == 1

    def test_missing_cells_filled_with_empty_string(self):
        content = _workbook([["name", "value", "note"], ["a", 1], ["b", None, "x"]])
        table = parse_spreadsheet(content)
        assert table.rows[0] == {"name": "a", "value": 1, "note": ""}
        assert table.rows[1] == {"name": "b", "value": "", "note": "x"}

    def test_zero_values_are_kept(self):
        content = _workbook([["n"], [0]])
        table = parse_spreadsheet(content)
        assert table.rows[0]["n"] == 0

    def test_dates_become_iso_strings(self):
        content = _workbook([["day"], [dt.datetime(2021, 3, 4)]])
        table = parse_spreadsheet(content)
        assert table.rows[0]["day"].startswith("2021-03-04")

    def test_empty_sheet_is_empty(self):
        with pytest.raises(EmptyDocument):
            parse_spreadsheet(_workbook([]))

    def test_header_only_sheet_is_empty(self):
        with pytest.raises(EmptyDocument):
            parse_spreadsheet(_workbook([["a", "b"]]))

    def test_garbage_bytes_are_malformed(self):
        with pytest.raises(MalformedInput):
            parse_spreadsheet(b"this is not a workbook")

    def test_parse_table_dispatch(self):
        content = _workbook([["k"], ["v"]])
        assert parse_table(content, FileKind.spreadsheet).rows == [{"k": "v"}]
        assert parse_table("k\nv\n", FileKind.csv).rows == [{"k": "v"}]


class TestValueParsing:
    """Tests for number/date recognition used by the inferencer."""

    @pytest.mark.parametrize("raw,expected", [
        ("12", 12.0),
        ("-3.5", -3.5),
        ("+4", 4.0),
        (".5", 0.5),
        ("5.", 5.0),
        ("1e3", 1000.0),
        (" 7 ", 7.0),
        (3, 3.0),
        (2.25, 2.25),
    ])
    def test_numbers(self, raw, expected):
        assert numeric_value(raw) == expected

    @pytest.mark.parametrize("raw", ["1,000", "abc", "", None, True, "inf", "nan", "12abc", float("nan")])
    def test_non_numbers(self, raw):
        assert math.isnan(numeric_value(raw))

    @pytest.mark.parametrize("raw", ["2021-01-05", "2021-01-05T10:30:00", "March 3, 2021", "2021/04/01"])
    def test_dates(self, raw):
        assert date_value(raw) is not None

    @pytest.mark.parametrize("raw", ["abc", "now", "today", "", 42, "5 PM", "17:30", "10:15:30 am", "1st"])
    def test_non_dates(self, raw):
        assert date_value(raw) is None

    def test_date_objects(self):
        assert date_value(dt.date(2020, 1, 1)) is not None

    def test_unique_names(self):
        assert unique_names(["a", "a", "a.1", "b"]) == ["a", "a.2", "a.1", "b"]


class TestTypeInference:
    """Tests for the numeric/date/text/unknown classification rule."""

    def test_numeric_column(self):
        table = _table(v=["1", "2.5", "-3", "4e2", "5", "abc"])
        assert classify_column(table, "v") == ColumnType.numeric

    def test_exactly_eighty_percent_is_text(self):
        """4 of 5 numeric is 0.8, which does not exceed the threshold."""
        table = _table(v=["1", "2", "abc", "4", "5"])
        assert classify_column(table, "v") == ColumnType.text

    def test_seventy_five_percent_is_text(self):
        table = _table(v=["1", "2", "3", "x"])
        assert classify_column(table, "v") == ColumnType.text

    def test_date_column(self):
        table = _table(d=["2021-01-05", "2021-02-10", "March 3, 2021", "2021/04/01", "2021-05-20"])
        assert classify_column(table, "d") == ColumnType.date

    def test_clock_times_are_text(self):
        table = _table(t=["9 AM", "10:30", "5 PM", "17:45", "8:00 pm"])
        assert classify_column(table, "t") == ColumnType.text

    def test_text_column(self):
        table = _table(t=["alpha", "beta", "gamma"])
        assert classify_column(table, "t") == ColumnType.text

    def test_empty_column_is_unknown(self):
        table = _table(e=["", None, ""])
        assert classify_column(table, "e") == ColumnType.unknown

    def test_empties_excluded_from_sample(self):
        table = _table(v=["1", "", "2", None, "3"])
        assert classify_column(table, "v") == ColumnType.numeric

    def test_spreadsheet_numbers(self):
        table = _table(v=[1, 2.5, 3, 4, 5])
        assert classify_column(table, "v") == ColumnType.numeric

    def test_sample_window_is_a_prefix(self):
        values = ["abc"] * 100 + ["1"] * 900
        table = _table(v=values)
        assert classify_column(table, "v", sample_size=100) == ColumnType.text
        assert classify_column(table, "v", sample_size=1000) == ColumnType.numeric

    def test_classification_is_deterministic(self):
        table = _table(v=["1", "x", "2", "3", "4", "5", "6", "7", "8", "9"] * 20)
        first = infer_column_types(table)
        for _ in range(5):
            assert infer_column_types(table) == first

    def test_infer_column_types_keys_in_column_order(self):
        table = _table(b=["x"], a=["1"])
        assert list(infer_column_types(table)) == ["b", "a"]

    def test_numeric_columns_uses_fifty_row_sample(self):
        values = ["1"] * 50 + ["text"] * 50
        table = _table(v=values, name=["n"] * 100)
        assert numeric_columns(table) == ["v"]
        assert numeric_columns(table, sample_size=100) == []

    def test_custom_threshold(self):
        assert classify_values(["1", "2", "x"], threshold=0.5) == ColumnType.numeric
        assert classify_values(["1", "2", "x"]) == ColumnType.text


class TestSummary:
    """Tests for previews, numeric stats and data quality."""

    def test_preview_is_first_ten_rows(self):
        table = _table(i=[str(i) for i in range(25)])
        assert build_preview(table) == table.rows[:10]

    def test_preview_of_small_table(self):
        table = _table(i=["1", "2", "3"])
        assert build_preview(table) == table.rows

    def test_numeric_stats_skip_unparseable(self):
        table = _table(v=["1", "x", "3", ""])
        stats = numeric_stats(table, "v")
        assert stats.model_dump() == {"min": 1.0, "max": 3.0, "average": 2.0, "count": 2}

    def test_numeric_stats_cover_entire_column(self):
        table = _table(v=[str(i) for i in range(1, 201)])
        stats = numeric_stats(table, "v")
        assert stats.count == 200
        assert stats.max == 200.0
        assert stats.average == sum(range(1, 201)) / 200

    def test_numeric_stats_omitted_without_values(self):
        table = _table(v=["a", "b"])
        assert numeric_stats(table, "v") is None

    def test_column_stats_only_numeric_columns(self):
        table = _table(name=["a", "b", "c"], value=["1", "2", "3"])
        stats = column_stats(table)
        assert list(stats) == ["value"]
        assert stats["value"].model_dump() == {"min": 1.0, "max": 3.0, "average": 2.0, "count": 3}

    def test_data_quality(self):
        table = _table(a=["1", ""], b=[None, "x"])
        assert data_quality(table) == 0.5

    def test_data_quality_empty_table(self):
        assert data_quality(Table(columns=["a"], rows=[])) == 0.0

    def test_summarize(self):
        table = _table(name=["a", "b", "c"], value=["1", "2", "3"])
        summary = summarize(table)
        assert summary.row_count == 3
        assert summary.column_count == 2
        assert summary.column_types == {"name": ColumnType.text, "value": ColumnType.numeric}
        assert summary.numeric_stats["value"].average == 2.0
        assert summary.data_quality == 1.0

    @pytest.mark.parametrize("size,expected", [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (10 * 1024 * 1024, "10 MB"),
    ])
    def test_format_file_size(self, size, expected):
        assert format_file_size(size) == expected

    def test_file_stats(self):
        table = _table(name=["a", "b"], qty=["3", "5"], mixed=["1", ""])
        record = FileRecord(
            id="abc",
            name="f.csv",
            size_bytes=1536,
            uploaded_at="2024-05-06T07:08:09.000000Z",
            kind=FileKind.csv,
            table=table,
            preview=build_preview(table),
        )
        stats = file_stats(record)
        assert stats.total_rows == 2
        assert stats.total_columns == 3
        assert stats.file_size == "1.5 KB"
        assert stats.uploaded_at == "2024-05-06"
        assert stats.numeric_columns == 1
        assert stats.text_columns == 2
        assert stats.sample_stats.column == "qty"
        assert stats.sample_stats.average == 4.0

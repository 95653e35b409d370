"""Unit tests for CSV / spreadsheet rendering."""
from datetime import datetime

from briefbot.ingest.tabular import (
    cell_to_text,
    csv_to_text,
    is_date_like,
    is_numeric,
    looks_like_header,
    render_rows,
    sheets_to_text,
)


def test_is_numeric():
    assert is_numeric("42")
    assert is_numeric("-3.5")
    assert is_numeric("1,200")
    assert is_numeric("15%")
    assert is_numeric("$9.99")
    assert not is_numeric("Q3")
    assert not is_numeric("")


def test_is_date_like():
    assert is_date_like("2024-01-31")
    assert is_date_like("01/31/2024")
    assert is_date_like("2024-01-31T09:30:00Z")
    assert not is_date_like("January")


def test_looks_like_header():
    assert looks_like_header(["name", "count"])
    assert looks_like_header(["", "owner"])
    assert not looks_like_header(["1", "2024-01-01", "3.5"])
    assert not looks_like_header(["", ""])


def test_cell_to_text_preserves_falsy():
    assert cell_to_text(None) == ""
    assert cell_to_text(0) == "0"
    assert cell_to_text(0.0) == "0"
    assert cell_to_text(False) == "false"
    assert cell_to_text(2.5) == "2.5"
    assert cell_to_text(datetime(2024, 3, 1)) == "2024-03-01"
    assert cell_to_text(datetime(2024, 3, 1, 14, 30)) == "2024-03-01 14:30:00"


def test_render_rows_with_header():
    text = render_rows([["owner", "task"], ["Ana", "Ship"], ["", "Review"]])
    assert text.splitlines() == [
        "Columns: owner, task",
        "Row 1:",
        "  owner: Ana",
        "  task: Ship",
        "Row 2:",
        '  owner: ""',
        "  task: Review",
    ]


def test_render_rows_without_header_names_columns():
    text = render_rows([[1, 2], [3, 4]])
    lines = text.splitlines()
    assert lines[0] == "Columns: Column 1, Column 2"
    assert "  Column 1: 1" in lines
    assert "Row 2:" in lines


def test_render_rows_ragged_and_trailing_empty():
    text = render_rows([["a"], ["x", "extra"], [None, None]])
    assert text.splitlines()[0] == "Columns: a, Column 2"
    assert "  Column 2: extra" in text
    assert "Row 2:" not in text


def test_render_rows_empty():
    assert render_rows([]) == ""
    assert render_rows([["", None]]) == ""


def test_csv_to_text_sniffs_semicolons():
    text = csv_to_text("item;cost\nServers;1200\n")
    assert text.startswith("Columns: item, cost")
    assert "  cost: 1200" in text


def test_csv_to_text_quoted_commas():
    text = csv_to_text('topic,notes\nBudget,"cut, then review"\n')
    assert "  notes: cut, then review" in text


def test_sheets_to_text_banners():
    text = sheets_to_text([("Plan", [["step"], ["Design"]]), ("Empty", [])])
    assert text == "=== Sheet: Plan ===\nColumns: step\nRow 1:\n  step: Design\n\n=== Sheet: Empty ===\n(empty sheet)"

"""
Tabular transcripts: turn CSV rows and spreadsheet sheets into readable "header: value" text.
Used by the extractor so the model sees every cell, including 0 / false / empty values.
"""
import csv
import io
import re
from datetime import date, datetime, time
from typing import Any, Iterable, List, Sequence

EMPTY_CELL = '""'

DATE_RE = re.compile(
    r"^(?:"
    r"\d{4}[-/.]\d{1,2}[-/.]\d{1,2}"  # 2024-01-31
    r"|\d{1,2}[-/.]\d{1,2}[-/.]\d{2,4}"  # 01/31/2024, 31.01.24
    r")(?:[ T]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)


def is_numeric(value: str) -> bool:
    """True for numbers as people write them in sheets: 42, -3.5, 1,200, 15%, $9.99."""
    s = (value or "").strip().lstrip("$€£").rstrip("%").replace(",", "")
    if not s:
        return False
    try:
        float(s)
    except ValueError:
        return False
    return True


def is_date_like(value: str) -> bool:
    return bool(DATE_RE.match((value or "").strip()))


def looks_like_header(row: Sequence[str]) -> bool:
    """Heuristic: a first row is a header when at least one non-empty cell is neither numeric nor date-shaped.
    A data row made only of text is misclassified as a header; callers accept that."""
    for cell in row:
        s = (cell or "").strip()
        if s and not is_numeric(s) and not is_date_like(s):
            return True
    return False


def cell_to_text(value: Any) -> str:
    """Render a spreadsheet cell as text without losing falsy values (0 stays "0", False becomes "false")."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def _drop_trailing_empty_rows(rows: List[List[str]]) -> List[List[str]]:
    out = list(rows)
    while out and not any((c or "").strip() for c in out[-1]):
        out.pop()
    return out


def render_rows(rows: Iterable[Sequence[Any]]) -> str:
    """Render rows as a transcript: a "Columns:" line, then one "Row N:" block of "header: value" lines per data row.
    If the first row does not look like a header, columns are named "Column 1", "Column 2", ... and every row is data.
    Empty or missing cells render as "" so no field is silently dropped."""
    table = _drop_trailing_empty_rows([[cell_to_text(c) for c in row] for row in rows])
    if not table:
        return ""

    if looks_like_header(table[0]):
        headers = [h.strip() or f"Column {i}" for i, h in enumerate(table[0], start=1)]
        data = table[1:]
    else:
        headers = []
        data = table

    width = max([len(headers)] + [len(r) for r in data])
    headers = headers + [f"Column {i}" for i in range(len(headers) + 1, width + 1)]

    lines = ["Columns: " + ", ".join(headers)]
    for n, row in enumerate(data, start=1):
        lines.append(f"Row {n}:")
        for i, header in enumerate(headers):
            value = row[i] if i < len(row) else ""
            lines.append(f"  {header}: {value if value != '' else EMPTY_CELL}")
    return "\n".join(lines)


def csv_to_text(text: str) -> str:
    """Parse CSV text and render it with render_rows. Comma-separated unless the first line has no comma, in which case the delimiter is sniffed."""
    first_line = text.split("\n", 1)[0]
    dialect = csv.excel
    if "," not in first_line:
        try:
            dialect = csv.Sniffer().sniff(text[:4096], delimiters=";\t|")
        except csv.Error:
            pass
    reader = csv.reader(io.StringIO(text), dialect)
    return render_rows(reader)


def sheets_to_text(sheets: Iterable[tuple]) -> str:
    """Render (sheet_name, rows) pairs in workbook order, each under a "=== Sheet: name ===" banner."""
    blocks: List[str] = []
    for name, rows in sheets:
        body = render_rows(rows)
        blocks.append(f"=== Sheet: {name} ===\n{body if body else '(empty sheet)'}")
    return "\n\n".join(blocks)

"""
Text extraction for meeting documents: PDF, DOCX, PPTX, TXT, MD, CSV, XLS, XLSX -> plain text.
The format comes from the declared MIME type when it is informative, otherwise from the filename extension.
"""
import io
import logging
import os
from typing import Callable, Dict, Optional

import docx
import openpyxl
import pdfplumber
import xlrd
from pptx import Presentation

from briefbot.ingest.tabular import csv_to_text, sheets_to_text

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ("pdf", "docx", "pptx", "txt", "md", "csv", "xls", "xlsx")

MIME_FORMATS: Dict[str, str] = {
    "application/pdf": "pdf",
    "application/x-pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "text/plain": "txt",
    "text/markdown": "md",
    "text/x-markdown": "md",
    "text/csv": "csv",
    "application/csv": "csv",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
}

# MIME types some clients send for several formats; the extension is more specific.
MIME_DEFERS_TO_EXTENSION: Dict[str, tuple] = {
    "txt": ("md", "csv"),
    "xls": ("csv",),
}


class ExtractionError(Exception):
    """Base for per-file extraction failures. The submission path logs and skips the file."""

    def __init__(self, filename: str, message: str):
        super().__init__(message)
        self.filename = filename


class UnsupportedFormatError(ExtractionError):
    def __init__(self, filename: str, declared_mime_type: Optional[str] = None):
        super().__init__(
            filename,
            f"Unsupported file type for {filename!r} (declared {declared_mime_type or 'none'}). "
            f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}",
        )
        self.declared_mime_type = declared_mime_type


class ParseFailureError(ExtractionError):
    def __init__(self, filename: str, cause: BaseException):
        super().__init__(filename, f"Failed to parse {filename!r}: {cause}")
        self.cause = cause


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


def resolve_format(declared_mime_type: Optional[str], filename: str) -> str:
    """Return one of SUPPORTED_EXTENSIONS for the upload. Generic or unknown MIME types (e.g. application/octet-stream) fall back to the extension.
    Raises UnsupportedFormatError when neither the MIME type nor the extension is recognized."""
    mime = (declared_mime_type or "").split(";", 1)[0].strip().lower()
    ext = file_extension(filename)
    from_mime = MIME_FORMATS.get(mime)

    if from_mime:
        if ext in MIME_DEFERS_TO_EXTENSION.get(from_mime, ()):
            return ext
        return from_mime
    if ext in SUPPORTED_EXTENSIONS:
        return ext
    raise UnsupportedFormatError(filename, declared_mime_type)


def _pdf_text(data: bytes) -> str:
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        return "\n".join((page.extract_text() or "") for page in pdf.pages)


def _docx_text(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    return "\n".join(p.text for p in document.paragraphs)


def _plain_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _pptx_text(data: bytes) -> str:
    """Text of every text frame, slide by slide. Falls back to reading the bytes as text if python-pptx cannot open the file."""
    try:
        deck = Presentation(io.BytesIO(data))
    except Exception as e:
        logger.warning("pptx_fallback_to_text", extra={"error": str(e)})
        return _plain_text(data)

    slides = []
    for n, slide in enumerate(deck.slides, start=1):
        parts = []
        for shape in slide.shapes:
            if getattr(shape, "has_text_frame", False) and shape.text_frame.text.strip():
                parts.append(shape.text_frame.text.strip())
        if parts:
            slides.append(f"Slide {n}:\n" + "\n".join(parts))
    return "\n\n".join(slides)


def _csv_text(data: bytes) -> str:
    return csv_to_text(data.decode("utf-8-sig", errors="replace"))


def _xlsx_text(data: bytes) -> str:
    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        sheets = [(ws.title, list(ws.iter_rows(values_only=True))) for ws in wb.worksheets]
    finally:
        wb.close()
    return sheets_to_text(sheets)


def _xls_cell(cell, datemode: int):
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_ERROR:
        return "#ERROR"
    return cell.value


def _xls_text(data: bytes) -> str:
    book = xlrd.open_workbook(file_contents=data)
    sheets = []
    for sheet in book.sheets():
        rows = [
            [_xls_cell(sheet.cell(r, c), book.datemode) for c in range(sheet.ncols)]
            for r in range(sheet.nrows)
        ]
        sheets.append((sheet.name, rows))
    return sheets_to_text(sheets)


_DECODERS: Dict[str, Callable[[bytes], str]] = {
    "pdf": _pdf_text,
    "docx": _docx_text,
    "pptx": _pptx_text,
    "txt": _plain_text,
    "md": _plain_text,
    "csv": _csv_text,
    "xls": _xls_text,
    "xlsx": _xlsx_text,
}


def extract(file_bytes: bytes, declared_mime_type: Optional[str], filename: str) -> str:
    """Extract plain text from an uploaded file. Raises UnsupportedFormatError or ParseFailureError (with the underlying cause chained).
    A file that decodes but yields only whitespace is a ParseFailureError.
    Why available: Uniform contract used by the submission path for every upload and by the calendar flow for attached files."""
    fmt = resolve_format(declared_mime_type, filename)
    try:
        text = _DECODERS[fmt](file_bytes)
    except Exception as e:
        raise ParseFailureError(filename, e) from e
    if not (text or "").strip():
        cause = ValueError("no extractable text")
        raise ParseFailureError(filename, cause) from cause
    return text


def extract_file(path: str, declared_mime_type: Optional[str], filename: Optional[str] = None) -> str:
    """Read a spooled upload from disk and extract its text."""
    name = filename or os.path.basename(path)
    with open(path, "rb") as f:
        data = f.read()
    return extract(data, declared_mime_type, name)

"""
Upload checks run before a bank file is parsed.

Rejects oversized files, unsupported types and content that looks like a
spreadsheet injection: formula prefixes or script markup in CSV text,
workbooks with too many sheets or rows, and command-running formulas or
script hyperlinks in Excel cells.
"""

import io
import logging
import re
import zipfile
from typing import Optional

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from home_account.utils.error_utils import ValidationError

logger = logging.getLogger("home_account.imports")

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MAX_SHEETS = 10
MAX_SHEET_ROWS = 10000
CSV_SCANNED_LINES = 10
SUSPICIOUS_CHAR_RATIO = 0.1

ALLOWED_CONTENT_TYPES = {
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/octet-stream",
    "text/csv",
    "text/plain",
}
ALLOWED_EXTENSIONS = (".xls", ".xlsx", ".csv")

NO_FILE = "No se ha proporcionado ningún archivo"
FILE_TOO_LARGE = "El archivo excede el tamaño máximo permitido (10MB)"
UNSUPPORTED_TYPE = "Solo se permiten archivos Excel (.xls, .xlsx) o CSV (.csv)"
MALICIOUS_CONTENT = "El archivo contiene contenido potencialmente malicioso y no puede ser procesado"

DANGEROUS_CSV_PATTERNS = [
    re.compile(r"^\s*=[^=]"),
    re.compile(r"^\s*\+[^+]"),
    re.compile(r"^\s*-[^-]"),
    re.compile(r"^\s*@[^@]"),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
]
SUSPICIOUS_CHARS = re.compile(r"[<>\"']")
DANGEROUS_FORMULA_WORDS = ("cmd", "powershell", "shell", "execute", "run", "eval", "javascript", "vbscript")
DANGEROUS_LINK_PREFIXES = ("javascript:", "data:text/html")


class UnsafeFileError(ValueError):
    """Raised by the content scanners; the reason is logged, not returned to the client."""


def is_csv(filename: str, content_type: Optional[str] = None) -> bool:
    return content_type == "text/csv" or (filename or "").lower().endswith(".csv")


def decode_text(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def scan_csv(content: bytes) -> None:
    text = decode_text(content)
    for line in text.splitlines()[:CSV_SCANNED_LINES]:
        for pattern in DANGEROUS_CSV_PATTERNS:
            if pattern.search(line):
                raise UnsafeFileError(f"CSV line matches {pattern.pattern!r}")

    suspicious = len(SUSPICIOUS_CHARS.findall(text))
    if suspicious > len(text) * SUSPICIOUS_CHAR_RATIO:
        raise UnsafeFileError(f"CSV has {suspicious} markup characters")


def _check_formula(formula: str) -> None:
    lowered = formula.lower()
    for word in DANGEROUS_FORMULA_WORDS:
        if word in lowered:
            raise UnsafeFileError(f"Formula contains {word!r}")


def scan_xlsx(content: bytes) -> None:
    try:
        workbook = load_workbook(io.BytesIO(content), data_only=False)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise UnsafeFileError(f"Unreadable workbook: {e}") from e

    try:
        if len(workbook.sheetnames) > MAX_SHEETS:
            raise UnsafeFileError(f"{len(workbook.sheetnames)} sheets")
        for sheet in workbook.worksheets:
            if sheet.max_row > MAX_SHEET_ROWS:
                raise UnsafeFileError(f"Sheet {sheet.title!r} has {sheet.max_row} rows")
            for row in sheet.iter_rows():
                for cell in row:
                    if cell.data_type == "f" and isinstance(cell.value, str):
                        _check_formula(cell.value)
                    if cell.hyperlink is not None and cell.hyperlink.target:
                        if cell.hyperlink.target.lower().startswith(DANGEROUS_LINK_PREFIXES):
                            raise UnsafeFileError(f"Hyperlink in {cell.coordinate}")
    finally:
        workbook.close()


def scan_xls(content: bytes) -> None:
    try:
        book = xlrd.open_workbook(file_contents=content)
    except xlrd.XLRDError as e:
        raise UnsafeFileError(f"Unreadable workbook: {e}") from e

    if book.nsheets > MAX_SHEETS:
        raise UnsafeFileError(f"{book.nsheets} sheets")
    for sheet in book.sheets():
        if sheet.nrows > MAX_SHEET_ROWS:
            raise UnsafeFileError(f"Sheet {sheet.name!r} has {sheet.nrows} rows")


def validate_upload(content: bytes, filename: Optional[str], content_type: Optional[str] = None) -> None:
    """
    Check an uploaded bank file before parsing.

    Raises:
        ValidationError: If the file is missing, too large, of an unsupported
            type, or its content looks malicious
    """
    filename = filename or ""
    if not content:
        raise ValidationError(NO_FILE)
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError(FILE_TOO_LARGE)

    lowered = filename.lower()
    if content_type not in ALLOWED_CONTENT_TYPES and not lowered.endswith(ALLOWED_EXTENSIONS):
        raise ValidationError(UNSUPPORTED_TYPE)

    try:
        if is_csv(filename, content_type):
            scan_csv(content)
        elif lowered.endswith(".xlsx"):
            scan_xlsx(content)
        elif lowered.endswith(".xls") or "excel" in (content_type or ""):
            scan_xls(content)
    except UnsafeFileError as e:
        logger.warning("[Import] Rejected %s: %s", filename or "upload", e)
        raise ValidationError(MALICIOUS_CONTENT) from e

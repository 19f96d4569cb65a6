"""
Bank file parser.

Two spreadsheet layouts are recognised:

    control_gastos  Household budget workbook with one sheet per month
                    (Enero..Diciembre). Columns: CATEGORÍA, SUBCATEGORÍA,
                    FECHA, DETALLE, IMPORTE. Amounts are spending and are
                    stored negative.
    movimientos_cc  Current-account statement export. Columns: F. VALOR,
                    CATEGORÍA, SUBCATEGORÍA, DESCRIPCIÓN, COMENTARIO, IMPORTE.
                    Amounts keep their sign.

Workbooks are read with ``pandas.read_excel`` (openpyxl for .xlsx, xlrd for
.xls) and CSV text with the csv module into a DataFrame; each sheet becomes a
raw cell grid and the header row is located by its marker text.
"""

import csv
import io
import logging
import re
import zipfile
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import xlrd

from home_account.core.imports.types import BankCategory, ImportFileType, ParsedTransaction, ParseResult
from home_account.core.imports.validation import decode_text, is_csv

logger = logging.getLogger("home_account.imports")

MONTH_SHEETS = (
    "Enero",
    "Febrero",
    "Marzo",
    "Abril",
    "Mayo",
    "Junio",
    "Julio",
    "Agosto",
    "Septiembre",
    "Octubre",
    "Noviembre",
    "Diciembre",
)

CONTROL_HEADER = "CATEGORÍA"
MOVIMIENTOS_HEADER = "F. VALOR"
CONTROL_HEADER_SCAN_ROWS = 20
MOVIMIENTOS_HEADER_SCAN_ROWS = 10

NO_DESCRIPTION = "Sin descripción"
HEADER_NOT_FOUND = "No se encontró la fila de encabezados"
UNKNOWN_FORMAT = (
    "Formato de archivo no reconocido. Use archivos de Control de Gastos (.xlsx) o Movimientos CC (.xls)"
)

EXCEL_EPOCH = datetime(1899, 12, 30)
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y", "%d.%m.%Y")
CURRENCY_NOISE = re.compile(r"[€\s]")
CSV_DELIMITERS = ";,\t"

Grid = List[List[Any]]


# ========================
# Cell conversion
# ========================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_iso_date(value: Any) -> Optional[str]:
    """
    ISO date for a spreadsheet date cell, or None when it is not a date.

    Accepts datetime values, Excel serial day numbers and day-first strings.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if _is_number(value):
        return (EXCEL_EPOCH + timedelta(days=int(value))).date().isoformat()
    if isinstance(value, str):
        text = value.strip()
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date().isoformat()
            except ValueError:
                continue
    return None


def to_amount(value: Any) -> Optional[float]:
    """Numeric cell value; strings use Spanish separators ("1.234,56 €")."""
    if _is_number(value):
        return float(value)
    if not isinstance(value, str):
        return None
    text = CURRENCY_NOISE.sub("", value)
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return None


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


# ========================
# Reading
# ========================

def _grid(frame: pd.DataFrame) -> Grid:
    """Raw cell grid with NaN cells turned into None."""
    frame = frame.astype(object)
    return frame.where(frame.notna(), None).values.tolist()


def _csv_frame(text: str) -> pd.DataFrame:
    """
    CSV text as a frame of strings.

    Bank exports put title lines above the header, so rows are read with the
    csv module and padded by the DataFrame constructor instead of letting
    read_csv reject the ragged lines.
    """
    sample = text[:4096]
    try:
        reader = csv.reader(io.StringIO(text), csv.Sniffer().sniff(sample, delimiters=CSV_DELIMITERS))
    except csv.Error:
        reader = csv.reader(io.StringIO(text), delimiter=";" if ";" in sample else ",")
    rows = [[cell.strip() or None for cell in row] for row in reader]
    return pd.DataFrame([row for row in rows if any(row)])


def read_sheets(content: bytes, filename: str, content_type: Optional[str] = None) -> Dict[str, Grid]:
    """Every sheet of the file as a cell grid, in workbook order. A CSV is one sheet."""
    if is_csv(filename, content_type):
        return {"CSV": _grid(_csv_frame(decode_text(content)))}

    sheets = pd.read_excel(io.BytesIO(content), sheet_name=None, header=None)
    return {name: _grid(frame) for name, frame in sheets.items()}


def _find_header(grid: Grid, marker: str, scan_rows: int) -> int:
    for index, row in enumerate(grid[:scan_rows]):
        if any(isinstance(cell, str) and marker in cell.upper() for cell in row):
            return index
    return -1


def _month_sheets(sheets: Dict[str, Grid]) -> List[str]:
    return [name for name in sheets if name.strip() in MONTH_SHEETS]


def detect_file_type(sheets: Dict[str, Grid]) -> ImportFileType:
    if _month_sheets(sheets):
        return ImportFileType.CONTROL_GASTOS
    first = next(iter(sheets.values()), [])
    if _find_header(first, MOVIMIENTOS_HEADER, MOVIMIENTOS_HEADER_SCAN_ROWS) >= 0:
        return ImportFileType.MOVIMIENTOS_CC
    return ImportFileType.UNKNOWN


# ========================
# Layouts
# ========================

class _Collector:
    """Accumulates parsed rows and the distinct bank categories they use."""

    def __init__(self):
        self.transactions: List[ParsedTransaction] = []
        self.categories: Dict[str, List[str]] = {}
        self.errors: List[str] = []

    def add(self, day: str, description: Any, amount: float, category: str, subcategory: str) -> None:
        self.transactions.append(
            ParsedTransaction(
                date=day,
                description=_text(description) or NO_DESCRIPTION,
                amount=amount,
                bank_category=category,
                bank_subcategory=subcategory,
            )
        )
        if not category:
            return
        subcategories = self.categories.setdefault(category, [])
        if subcategory and subcategory not in subcategories:
            subcategories.append(subcategory)

    def category_pairs(self) -> List[BankCategory]:
        pairs = []
        for category, subcategories in self.categories.items():
            if not subcategories:
                pairs.append(BankCategory(category=category))
            for subcategory in subcategories:
                pairs.append(BankCategory(category=category, subcategory=subcategory))
        return pairs


def _row_values(row: List[Any], width: int) -> Optional[Tuple[Any, ...]]:
    if len(row) < width:
        return None
    return tuple(row[:width])


def parse_control_gastos(sheets: Dict[str, Grid], sheet_name: Optional[str] = None) -> ParseResult:
    available = _month_sheets(sheets)
    target = sheet_name or (available[0] if available else None)

    def failure(message: str, sheet: Optional[str] = None) -> ParseResult:
        return ParseResult(
            success=False,
            file_type=ImportFileType.CONTROL_GASTOS,
            sheet_name=sheet,
            available_sheets=[name.strip() for name in available],
            errors=[message],
        )

    matching = [name for name in sheets if target is not None and name.strip() == target.strip()]
    if not matching:
        return failure(f'Hoja "{sheet_name}" no encontrada')

    grid = sheets[matching[0]]
    header = _find_header(grid, CONTROL_HEADER, CONTROL_HEADER_SCAN_ROWS)
    if header < 0:
        return failure(HEADER_NOT_FOUND, target)

    collector = _Collector()
    for index in range(header + 1, len(grid)):
        values = _row_values(grid[index], 5)
        if values is None:
            continue
        category, subcategory, day_value, description, amount_value = values
        # Summary and blank rows have no category, date or amount
        if not isinstance(category, str) or not category.strip() or day_value is None or amount_value is None:
            continue

        day = to_iso_date(day_value)
        amount = to_amount(amount_value)
        if day is None:
            collector.errors.append(f"Error en fila {index + 1}: fecha no válida")
            continue
        if amount is None:
            continue
        collector.add(day, description, -abs(amount), category.strip(), _text(subcategory))

    return ParseResult(
        success=True,
        file_type=ImportFileType.CONTROL_GASTOS,
        sheet_name=target.strip(),
        available_sheets=[name.strip() for name in available],
        transactions=collector.transactions,
        categories=collector.category_pairs(),
        errors=collector.errors,
    )


def parse_movimientos_cc(sheets: Dict[str, Grid]) -> ParseResult:
    grid = next(iter(sheets.values()), [])
    header = _find_header(grid, MOVIMIENTOS_HEADER, MOVIMIENTOS_HEADER_SCAN_ROWS)
    if header < 0:
        return ParseResult(success=False, file_type=ImportFileType.MOVIMIENTOS_CC, errors=[HEADER_NOT_FOUND])

    collector = _Collector()
    for index in range(header + 1, len(grid)):
        values = _row_values(grid[index], 6)
        if values is None:
            continue
        day_value, category, subcategory, description, _comment, amount_value = values
        if day_value is None or amount_value is None:
            continue

        day = to_iso_date(day_value)
        amount = to_amount(amount_value)
        if day is None:
            collector.errors.append(f"Error en fila {index + 1}: fecha no válida")
            continue
        if amount is None:
            continue
        collector.add(day, description, amount, _text(category), _text(subcategory))

    return ParseResult(
        success=True,
        file_type=ImportFileType.MOVIMIENTOS_CC,
        transactions=collector.transactions,
        categories=collector.category_pairs(),
        errors=collector.errors,
    )


def parse_bank_file(
    content: bytes,
    filename: str,
    sheet_name: Optional[str] = None,
    content_type: Optional[str] = None,
) -> ParseResult:
    """
    Parse an uploaded bank file into a transaction preview.

    Never raises for bad content: unreadable or unrecognised files come back
    as an unsuccessful result carrying the reason in ``errors``.

    Args:
        content: Raw file bytes
        filename: Original file name; its extension selects the reader
        sheet_name: Month sheet to read from a control_gastos workbook
            (defaults to the first month present)
        content_type: Upload MIME type
    """
    try:
        sheets = read_sheets(content, filename, content_type)
    except (ValueError, csv.Error, OSError, zipfile.BadZipFile, xlrd.XLRDError) as e:
        logger.warning("[Import] Could not read %s: %s", filename, e)
        return ParseResult(
            success=False,
            file_type=ImportFileType.UNKNOWN,
            errors=[f"Error al leer el archivo: {e}"],
        )

    file_type = detect_file_type(sheets)
    logger.info("[Import] %s detected as %s (%d sheets)", filename, file_type.value, len(sheets))

    if file_type == ImportFileType.CONTROL_GASTOS:
        return parse_control_gastos(sheets, sheet_name)
    if file_type == ImportFileType.MOVIMIENTOS_CC:
        return parse_movimientos_cc(sheets)
    return ParseResult(success=False, file_type=ImportFileType.UNKNOWN, errors=[UNKNOWN_FORMAT])

"""
Tests for bank file import: upload checks, the two spreadsheet layouts and
the confirmation service.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from conftest import CONTROL_HEADER, MOVIMIENTOS_CSV, XLSX, control_gastos_bytes, workbook_bytes

from home_account.api.schemas import ImportedTransaction
from home_account.core.imports import (
    ImportFileType,
    TransactionImporter,
    normalize_description,
    parse_bank_file,
    validate_upload,
)
from home_account.core.imports.parser import to_amount, to_iso_date
from home_account.core.imports.types import CategoryMapping
from home_account.core.imports.validation import (
    FILE_TOO_LARGE,
    MALICIOUS_CONTENT,
    MAX_UPLOAD_BYTES,
    NO_FILE,
    UNSUPPORTED_TYPE,
)
from home_account.db.models import Transaction
from home_account.db.repositories import (
    CategoryRepository,
    SubcategoryRepository,
    TransactionRepository,
    UserRepository,
)
from home_account.utils.error_utils import ForbiddenError, ValidationError


# ========================
# Cell conversion
# ========================


def test_to_iso_date_accepts_spreadsheet_formats():
    assert to_iso_date(datetime(2024, 3, 15, 10, 30)) == "2024-03-15"
    assert to_iso_date(date(2024, 3, 15)) == "2024-03-15"
    assert to_iso_date(45366) == "2024-03-15"
    assert to_iso_date("15/03/2024") == "2024-03-15"
    assert to_iso_date("2024-03-15") == "2024-03-15"
    assert to_iso_date("ayer") is None
    assert to_iso_date(None) is None


def test_to_amount_reads_spanish_separators():
    assert to_amount(45.5) == 45.5
    assert to_amount("1.234,56 €") == 1234.56
    assert to_amount("-45,50") == -45.5
    assert to_amount("12.5") == 12.5
    assert to_amount("n/a") is None
    assert to_amount(None) is None


# ========================
# Parsing
# ========================


class TestControlGastos:
    def test_first_month_sheet_by_default(self):
        result = parse_bank_file(control_gastos_bytes(), "gastos.xlsx", content_type=XLSX)

        assert result.success is True
        assert result.file_type == ImportFileType.CONTROL_GASTOS.value
        assert result.sheet_name == "Enero"
        assert result.available_sheets == ["Enero", "Febrero"]
        assert [(t.date, t.description, t.amount) for t in result.transactions] == [
            ("2024-01-05", "Mercadona", -45.5),
            ("2024-01-07", "La Tasca", -30.0),
            ("2024-01-09", "Sin descripción", -600.0),
        ]
        assert result.errors == ["Error en fila 7: fecha no válida"]

    def test_categories_are_collected_once(self):
        result = parse_bank_file(control_gastos_bytes(), "gastos.xlsx")

        pairs = [(c.category, c.subcategory) for c in result.categories]
        assert pairs == [("Comida", "Supermercado"), ("Comida", "Restaurantes"), ("Casa", "")]

    def test_selected_sheet(self):
        result = parse_bank_file(control_gastos_bytes(), "gastos.xlsx", sheet_name="Febrero")

        assert result.sheet_name == "Febrero"
        assert [t.description for t in result.transactions] == ["Cines Yelmo"]
        assert result.transactions[0].bank_category == "Ocio"

    def test_unknown_sheet(self):
        result = parse_bank_file(control_gastos_bytes(), "gastos.xlsx", sheet_name="Marzo")

        assert result.success is False
        assert result.errors == ['Hoja "Marzo" no encontrada']
        assert result.available_sheets == ["Enero", "Febrero"]

    def test_missing_header(self):
        content = workbook_bytes([("Enero", [["Sin cabecera"], ["Comida", "x", datetime(2024, 1, 1), "y", 1]])])

        result = parse_bank_file(content, "gastos.xlsx")

        assert result.success is False
        assert result.errors == ["No se encontró la fila de encabezados"]


class TestMovimientosCC:
    def test_csv_statement_keeps_signs(self):
        result = parse_bank_file(MOVIMIENTOS_CSV, "movimientos.csv", content_type="text/csv")

        assert result.success is True
        assert result.file_type == ImportFileType.MOVIMIENTOS_CC.value
        assert [(t.date, t.description, t.amount) for t in result.transactions] == [
            ("2024-03-15", "Mercadona", -45.5),
            ("2024-03-16", "Nómina marzo", 2500.0),
            ("2024-03-17", "Sin descripción", -12.0),
        ]
        assert [(c.category, c.subcategory) for c in result.categories] == [
            ("Compras", "Supermercado"),
            ("Ingresos", "Nómina"),
        ]

    def test_workbook_statement(self):
        content = workbook_bytes(
            [
                (
                    "Movimientos",
                    [
                        ["F. VALOR", "CATEGORÍA", "SUBCATEGORÍA", "DESCRIPCIÓN", "COMENTARIO", "IMPORTE"],
                        [datetime(2024, 4, 1), "Hogar", "Luz", "Iberdrola", None, -60.25],
                    ],
                )
            ]
        )

        result = parse_bank_file(content, "movimientos.xlsx")

        assert result.file_type == ImportFileType.MOVIMIENTOS_CC.value
        assert result.transactions[0].date == "2024-04-01"
        assert result.transactions[0].amount == -60.25


def test_unknown_layout():
    result = parse_bank_file(b"fecha,importe\n2024-01-01,10\n", "otro.csv")

    assert result.success is False
    assert result.file_type == ImportFileType.UNKNOWN.value
    assert result.errors[0].startswith("Formato de archivo no reconocido")


def test_unreadable_workbook_is_reported():
    result = parse_bank_file(b"not a workbook", "roto.xlsx")

    assert result.success is False
    assert result.errors[0].startswith("Error al leer el archivo")


# ========================
# Upload checks
# ========================


class TestValidateUpload:
    def _error(self, content, filename, content_type=None) -> str:
        with pytest.raises(ValidationError) as exc_info:
            validate_upload(content, filename, content_type)
        return exc_info.value.message

    def test_accepts_clean_files(self):
        validate_upload(control_gastos_bytes(), "gastos.xlsx", XLSX)
        validate_upload(MOVIMIENTOS_CSV, "movimientos.csv", "text/csv")

    def test_empty_file(self):
        assert self._error(b"", "gastos.xlsx") == NO_FILE

    def test_size_limit(self):
        assert self._error(b"x" * (MAX_UPLOAD_BYTES + 1), "big.csv", "text/csv") == FILE_TOO_LARGE

    def test_unsupported_type(self):
        assert self._error(b"%PDF-1.4", "extracto.pdf", "application/pdf") == UNSUPPORTED_TYPE

    def test_csv_formula_injection(self):
        content = b"=cmd|' /C calc'!A0;x\n15/03/2024;1\n"

        assert self._error(content, "movimientos.csv", "text/csv") == MALICIOUS_CONTENT

    def test_csv_script_markup(self):
        content = b"fecha;detalle\n15/03/2024;<script>alert(1)</script>\n"

        assert self._error(content, "movimientos.csv", "text/csv") == MALICIOUS_CONTENT

    def test_xlsx_command_formula(self):
        content = workbook_bytes([("Enero", [CONTROL_HEADER, ['=CALL("shell32.dll")']])])

        assert self._error(content, "gastos.xlsx", XLSX) == MALICIOUS_CONTENT

    def test_xlsx_too_many_sheets(self):
        content = workbook_bytes([(f"Hoja{i}", [["x"]]) for i in range(11)])

        assert self._error(content, "gastos.xlsx", XLSX) == MALICIOUS_CONTENT


# ========================
# Confirmation
# ========================


@pytest.fixture
def ana(db):
    user, account = UserRepository(db).create_with_account("ana@example.com", "secret-pass-1", "Ana", salt_rounds=4)
    db.commit()
    return user, account


@pytest.fixture
def supermercado(db, ana):
    user, account = ana
    category = CategoryRepository(db).create_category(user.id, account.id, "Comida")
    subcategory = SubcategoryRepository(db).create_subcategory(user.id, category.id, "Supermercado")
    db.commit()
    return subcategory


def row(day="2024-03-15", description="Mercadona", amount="-45.50", category="Compras", subcategory="Supermercado"):
    return ImportedTransaction(
        date=day,
        description=description,
        amount=amount,
        bank_category=category,
        bank_subcategory=subcategory,
    )


def account_transactions(db, account):
    return db.query(Transaction).filter(Transaction.account_id == account.id).order_by(Transaction.id).all()


def test_normalize_description():
    assert normalize_description("  MERCADONA,  S.A.\n") == "mercadona sa"


def test_confirm_maps_categories(db, ana, supermercado):
    user, account = ana
    mappings = [CategoryMapping(bank_category="Compras", bank_subcategory="Supermercado", subcategory_id=supermercado.id)]

    summary = TransactionImporter(db).confirm(
        account.id,
        user.id,
        [row(), row(day="2024-03-16", description="Nómina", amount="2500", category="Ingresos", subcategory="")],
        mappings,
    )
    db.commit()

    assert (summary.total, summary.inserted, summary.skipped, summary.errors) == (2, 2, 0, [])
    stored = account_transactions(db, account)
    assert [t.subcategory_id for t in stored] == [supermercado.id, None]
    assert stored[0].amount == Decimal("-45.50")
    assert stored[1].bank_subcategory is None


def test_confirm_skips_duplicates(db, ana):
    user, account = ana
    TransactionRepository(db).create_transaction(
        user.id, account.id, date(2024, 3, 15), "Mercadona.", Decimal("-45.5")
    )
    db.commit()

    summary = TransactionImporter(db).confirm(
        account.id,
        user.id,
        [row(description="MERCADONA"), row(day="2024-03-20"), row(day="2024-03-20")],
        [],
    )
    db.commit()

    assert (summary.total, summary.inserted, summary.skipped) == (3, 1, 2)
    assert len(account_transactions(db, account)) == 2


def test_confirm_truncates_bank_labels(db, ana):
    user, account = ana

    TransactionImporter(db).confirm(account.id, user.id, [row(category="C" * 150)], [])
    db.commit()

    assert account_transactions(db, account)[0].bank_category == "C" * 100


def test_confirm_rejects_empty_and_foreign_mappings(db, ana):
    user, account = ana
    other, other_account = UserRepository(db).create_with_account("luis@example.com", "secret-pass-2", "Luis", salt_rounds=4)
    category = CategoryRepository(db).create_category(other.id, other_account.id, "Ajena")
    foreign = SubcategoryRepository(db).create_subcategory(other.id, category.id, "Ajena")
    db.commit()
    importer = TransactionImporter(db)

    with pytest.raises(ValidationError, match="No hay transacciones para importar"):
        importer.confirm(account.id, user.id, [], [])
    with pytest.raises(ValidationError):
        importer.confirm(
            account.id,
            user.id,
            [row()],
            [CategoryMapping(bank_category="Compras", bank_subcategory="Supermercado", subcategory_id=foreign.id)],
        )
    with pytest.raises(ForbiddenError):
        importer.confirm(other_account.id, user.id, [row()], [])


def test_failed_batch_keeps_the_others(db, ana, monkeypatch):
    user, account = ana
    real_add_batch = TransactionRepository.add_batch
    calls = []

    def flaky_add_batch(self, transactions):
        calls.append(len(transactions))
        if len(calls) == 1:
            raise OperationalError("INSERT INTO transactions", {}, Exception("disk I/O error"))
        return real_add_batch(self, transactions)

    monkeypatch.setattr(TransactionRepository, "add_batch", flaky_add_batch)
    rows = [row(day="2024-03-01", description=f"Compra {n}") for n in range(150)]

    summary = TransactionImporter(db).confirm(account.id, user.id, rows, [])
    db.commit()

    assert calls == [100, 50]
    assert (summary.total, summary.inserted, summary.skipped) == (150, 50, 100)
    assert summary.errors == ["Error insertando lote 1: OperationalError"]
    assert len(account_transactions(db, account)) == 50


def test_saved_mappings_use_latest_assignment(db, ana, supermercado):
    user, account = ana
    other = SubcategoryRepository(db).create_subcategory(user.id, supermercado.category_id, "Hiper")
    db.commit()
    repo = TransactionRepository(db)
    repo.create_transaction(
        user.id, account.id, date(2024, 1, 1), "A", Decimal("-1"), subcategory_id=supermercado.id,
        bank_category="Compras", bank_subcategory="Supermercado",
    )
    repo.create_transaction(
        user.id, account.id, date(2024, 2, 1), "B", Decimal("-1"), subcategory_id=other.id,
        bank_category="Compras", bank_subcategory="Supermercado",
    )
    repo.create_transaction(
        user.id, account.id, date(2024, 2, 2), "C", Decimal("-1"), bank_category="Sin mapear",
    )
    db.commit()

    mappings = TransactionImporter(db).saved_mappings(account.id, user.id)

    assert [(m.bank_category, m.bank_subcategory, m.subcategory_id) for m in mappings] == [
        ("Compras", "Supermercado", other.id)
    ]

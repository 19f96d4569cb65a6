"""
Tests for the bank file import endpoints.
"""

import pytest

from conftest import MOVIMIENTOS_CSV, XLSX, control_gastos_bytes


@pytest.fixture
def supermercado(client, user):
    category = client.post(
        "/api/categories/",
        json={"account_id": user["account_id"], "name": "Comida"},
        headers=user["headers"],
    ).json()["category"]
    response = client.post(
        "/api/subcategories/",
        json={"category_id": category["id"], "name": "Supermercado"},
        headers=user["headers"],
    )
    return response.json()["subcategory"]


def upload(client, user, content, filename="movimientos.csv", content_type="text/csv", **form):
    return client.post(
        "/api/import/parse",
        files={"file": (filename, content, content_type)},
        data=form,
        headers=user["headers"],
    )


def confirm(client, user, transactions, mappings=None, account_id=None):
    return client.post(
        "/api/import/confirm",
        json={
            "account_id": account_id or user["account_id"],
            "transactions": transactions,
            "category_mappings": mappings or [],
        },
        headers=user["headers"],
    )


class TestParse:
    def test_csv_preview(self, client, user):
        response = upload(client, user, MOVIMIENTOS_CSV)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["file_type"] == "movimientos_cc"
        assert len(body["data"]["transactions"]) == 3
        assert body["data"]["transactions"][1] == {
            "date": "2024-03-16",
            "description": "Nómina marzo",
            "amount": 2500.0,
            "bank_category": "Ingresos",
            "bank_subcategory": "Nómina",
        }

    def test_workbook_sheet_selection(self, client, user):
        response = upload(client, user, control_gastos_bytes(), "gastos.xlsx", XLSX, sheet_name="Febrero")

        data = response.json()["data"]
        assert data["sheet_name"] == "Febrero"
        assert data["available_sheets"] == ["Enero", "Febrero"]
        assert data["transactions"][0]["amount"] == -18.0

    def test_unrecognised_file_is_not_an_http_error(self, client, user):
        response = upload(client, user, b"fecha,importe\n2024-01-01,10\n", "otro.csv")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["data"]["errors"]

    def test_missing_file(self, client, user):
        response = client.post("/api/import/parse", headers=user["headers"])

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "No se ha proporcionado ningún archivo"}

    def test_oversized_file(self, client, user):
        response = upload(client, user, b"x" * (10 * 1024 * 1024 + 1), "big.csv")

        assert response.status_code == 400
        assert "10MB" in response.json()["error"]

    def test_unsupported_type(self, client, user):
        response = upload(client, user, b"%PDF-1.4", "extracto.pdf", "application/pdf")

        assert response.status_code == 400
        assert response.json()["error"] == "Solo se permiten archivos Excel (.xls, .xlsx) o CSV (.csv)"

    def test_formula_injection_is_rejected(self, client, user):
        response = upload(client, user, b"=cmd|' /C calc'!A0;x\n")

        assert response.status_code == 400
        assert "malicioso" in response.json()["error"]

    def test_requires_authentication(self, client):
        response = client.post("/api/import/parse", files={"file": ("m.csv", MOVIMIENTOS_CSV, "text/csv")})

        assert response.status_code == 401


class TestConfirm:
    ROWS = [
        {
            "date": "2024-03-15",
            "description": "Mercadona",
            "amount": -45.5,
            "bank_category": "Compras",
            "bank_subcategory": "Supermercado",
        },
        {
            "date": "2024-03-16",
            "description": "Nómina marzo",
            "amount": 2500,
            "bank_category": "Ingresos",
            "bank_subcategory": "Nómina",
        },
    ]

    def test_inserts_with_mapped_subcategory(self, client, user, supermercado):
        mappings = [
            {"bank_category": "Compras", "bank_subcategory": "Supermercado", "subcategory_id": supermercado["id"]},
            {"bank_category": "Ingresos", "bank_subcategory": "Nómina", "subcategory_id": None},
        ]

        response = confirm(client, user, self.ROWS, mappings)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": {"total": 2, "inserted": 2, "skipped": 0, "errors": []},
        }
        listed = client.get(
            "/api/transactions/", params={"account_id": user["account_id"]}, headers=user["headers"]
        ).json()["transactions"]
        by_description = {t["description"]: t for t in listed}
        assert by_description["Mercadona"]["subcategory_name"] == "Supermercado"
        assert by_description["Nómina marzo"]["subcategory_id"] is None
        assert by_description["Nómina marzo"]["bank_category"] == "Ingresos"

    def test_second_import_skips_duplicates(self, client, user):
        confirm(client, user, self.ROWS)

        response = confirm(client, user, self.ROWS)

        assert response.json()["data"] == {"total": 2, "inserted": 0, "skipped": 2, "errors": []}

    def test_empty_import(self, client, user):
        response = confirm(client, user, [])

        assert response.status_code == 400
        assert response.json()["error"] == "No hay transacciones para importar"

    def test_outsider_is_forbidden(self, client, user, other_user):
        response = confirm(client, other_user, self.ROWS, account_id=user["account_id"])

        assert response.status_code == 403

    def test_foreign_subcategory_mapping(self, client, user, other_user, supermercado):
        mappings = [{"bank_category": "Compras", "bank_subcategory": "Supermercado", "subcategory_id": supermercado["id"]}]

        response = confirm(client, other_user, self.ROWS, mappings)

        assert response.status_code == 400


class TestCategoriesAndMappings:
    def test_categories_for_mapping(self, client, user, supermercado):
        response = client.get(
            "/api/import/categories", params={"account_id": user["account_id"]}, headers=user["headers"]
        )

        assert response.status_code == 200
        names = {c["name"]: [s["name"] for s in c["subcategories"]] for c in response.json()["categories"]}
        assert names["Comida"] == ["Supermercado"]

    def test_categories_outsider(self, client, user, other_user):
        response = client.get(
            "/api/import/categories", params={"account_id": user["account_id"]}, headers=other_user["headers"]
        )

        assert response.status_code == 403

    def test_saved_mappings_after_import(self, client, user, supermercado):
        mappings = [{"bank_category": "Compras", "bank_subcategory": "Supermercado", "subcategory_id": supermercado["id"]}]
        confirm(client, user, TestConfirm.ROWS, mappings)

        response = client.get(
            "/api/import/mappings", params={"account_id": user["account_id"]}, headers=user["headers"]
        )

        assert response.status_code == 200
        assert response.json()["mappings"] == [
            {"bank_category": "Compras", "bank_subcategory": "Supermercado", "subcategory_id": supermercado["id"]}
        ]

    def test_mappings_outsider(self, client, user, other_user):
        response = client.get(
            "/api/import/mappings", params={"account_id": user["account_id"]}, headers=other_user["headers"]
        )

        assert response.status_code == 403

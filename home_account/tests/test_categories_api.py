"""
Tests for the category and subcategory endpoints.
"""

import pytest


@pytest.fixture
def category(client, user):
    response = client.post(
        "/api/categories/",
        json={"account_id": user["account_id"], "name": "Comida", "color": "#22C55E", "icon": "cart"},
        headers=user["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["category"]


@pytest.fixture
def subcategory(client, user, category):
    response = client.post(
        "/api/subcategories/",
        json={"category_id": category["id"], "name": "Supermercado"},
        headers=user["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["subcategory"]


class TestCategories:
    def test_create_category(self, category, user):
        assert category["name"] == "Comida"
        assert category["color"] == "#22C55E"
        assert category["icon"] == "cart"
        assert category["account_id"] == user["account_id"]
        assert category["subcategories"] == []

    def test_create_uses_default_color(self, client, user):
        response = client.post(
            "/api/categories/",
            json={"account_id": user["account_id"], "name": "Ocio"},
            headers=user["headers"],
        )

        assert response.status_code == 201
        assert response.json()["category"]["color"] == "#6B7280"

    def test_invalid_color(self, client, user):
        response = client.post(
            "/api/categories/",
            json={"account_id": user["account_id"], "name": "Ocio", "color": "red"},
            headers=user["headers"],
        )

        assert response.status_code == 400

    def test_duplicate_name(self, client, user, category):
        response = client.post(
            "/api/categories/",
            json={"account_id": user["account_id"], "name": "Comida"},
            headers=user["headers"],
        )

        assert response.status_code == 409

    def test_list_includes_subcategories(self, client, user, subcategory):
        response = client.get(f"/api/categories/?account_id={user['account_id']}", headers=user["headers"])

        assert response.status_code == 200
        categories = response.json()["categories"]
        assert len(categories) == 1
        assert [s["name"] for s in categories[0]["subcategories"]] == ["Supermercado"]

    def test_list_requires_account_id(self, client, user):
        response = client.get("/api/categories/", headers=user["headers"])

        assert response.status_code == 400

    def test_update_category(self, client, user, category):
        response = client.put(
            f"/api/categories/{category['id']}",
            json={"name": "Alimentación"},
            headers=user["headers"],
        )

        assert response.status_code == 200
        updated = response.json()["category"]
        assert updated["name"] == "Alimentación"
        assert updated["color"] == "#22C55E"

    def test_delete_category(self, client, user, category):
        response = client.delete(f"/api/categories/{category['id']}", headers=user["headers"])

        assert response.status_code == 200
        assert response.json()["message"] == "Category deleted"
        assert client.get(f"/api/categories/{category['id']}", headers=user["headers"]).status_code == 404


class TestCategoryIsolation:
    def test_list_other_account(self, client, user, other_user):
        response = client.get(f"/api/categories/?account_id={user['account_id']}", headers=other_user["headers"])

        assert response.status_code == 403

    def test_create_in_other_account(self, client, user, other_user):
        response = client.post(
            "/api/categories/",
            json={"account_id": user["account_id"], "name": "Intrusa"},
            headers=other_user["headers"],
        )

        assert response.status_code == 403

    def test_single_category_of_other_account(self, client, other_user, category):
        get = client.get(f"/api/categories/{category['id']}", headers=other_user["headers"])
        put = client.put(f"/api/categories/{category['id']}", json={"name": "X"}, headers=other_user["headers"])
        delete = client.delete(f"/api/categories/{category['id']}", headers=other_user["headers"])

        for response in (get, put, delete):
            assert response.status_code == 404
            assert response.json()["error"] == "Category not found"

    def test_member_sees_shared_categories(self, client, user, other_user, category):
        client.post(
            f"/api/accounts/{user['account_id']}/members",
            json={"email": "luis@example.com"},
            headers=user["headers"],
        )

        response = client.get(f"/api/categories/?account_id={user['account_id']}", headers=other_user["headers"])

        assert response.status_code == 200
        assert [c["name"] for c in response.json()["categories"]] == ["Comida"]


class TestSubcategories:
    def test_create_subcategory(self, subcategory, category):
        assert subcategory["name"] == "Supermercado"
        assert subcategory["category_id"] == category["id"]

    def test_duplicate_name_in_category(self, client, user, category, subcategory):
        response = client.post(
            "/api/subcategories/",
            json={"category_id": category["id"], "name": "Supermercado"},
            headers=user["headers"],
        )

        assert response.status_code == 409

    def test_list_by_category(self, client, user, category, subcategory):
        response = client.get(f"/api/subcategories/?category_id={category['id']}", headers=user["headers"])

        assert response.status_code == 200
        assert [s["id"] for s in response.json()["subcategories"]] == [subcategory["id"]]

    def test_rename_subcategory(self, client, user, subcategory):
        response = client.put(
            f"/api/subcategories/{subcategory['id']}",
            json={"name": "Mercado"},
            headers=user["headers"],
        )

        assert response.status_code == 200
        assert response.json()["subcategory"]["name"] == "Mercado"

    def test_delete_subcategory(self, client, user, subcategory):
        response = client.delete(f"/api/subcategories/{subcategory['id']}", headers=user["headers"])

        assert response.status_code == 200
        assert response.json()["message"] == "Subcategory deleted"

    def test_subcategory_of_other_account(self, client, other_user, category, subcategory):
        create = client.post(
            "/api/subcategories/",
            json={"category_id": category["id"], "name": "Intrusa"},
            headers=other_user["headers"],
        )
        get = client.get(f"/api/subcategories/{subcategory['id']}", headers=other_user["headers"])
        listing = client.get(f"/api/subcategories/?category_id={category['id']}", headers=other_user["headers"])

        for response in (create, get, listing):
            assert response.status_code == 404

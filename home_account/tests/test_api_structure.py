"""
Test API structure and endpoint definitions.

These tests verify the API is properly configured without requiring
database connections or backend business logic.
"""

from fastapi.testclient import TestClient

from home_account.config import Settings


def test_api_can_import():
    """Test that API modules can be imported."""
    from home_account.api import main
    from home_account.api import schemas
    from home_account.api.routes import accounts, ai, auth, categories, imports, investment, subcategories, transactions

    assert main.app is not None
    assert hasattr(schemas, "TransactionCreate")
    for module in (accounts, ai, auth, categories, imports, investment, subcategories, transactions):
        assert hasattr(module, "router")


def test_repositories_defined():
    """Test that all repository classes are defined."""
    from home_account.db.repositories import (
        AccountRepository,
        CategoryRepository,
        InvestmentRepository,
        MarketCacheRepository,
        SubcategoryRepository,
        TransactionRepository,
        UserRepository,
    )

    assert AccountRepository is not None
    assert CategoryRepository is not None
    assert SubcategoryRepository is not None
    assert TransactionRepository is not None
    assert UserRepository is not None
    assert InvestmentRepository is not None
    assert MarketCacheRepository is not None


def test_app_metadata():
    """Test FastAPI app metadata is correctly configured."""
    from home_account.api.main import app

    assert app.title == "Home Account API"
    assert app.docs_url == "/api/docs"
    assert app.redoc_url == "/api/redoc"


def test_routes_registered():
    """Test that all routes are registered with the app."""
    from home_account.api.main import app

    routes = {getattr(route, "path", None) for route in app.routes} | set(app.openapi()["paths"])

    assert "/health" in routes
    assert "/health/db" in routes
    assert "/api/health" in routes
    assert "/api/auth/register" in routes
    assert "/api/auth/login" in routes
    assert "/api/auth/csrf-token" in routes
    assert "/api/accounts/" in routes
    assert "/api/accounts/{account_id}/members/{user_id}" in routes
    assert "/api/categories/" in routes
    assert "/api/subcategories/" in routes
    assert "/api/transactions/summary" in routes
    assert "/api/import/parse" in routes
    assert "/api/import/mappings" in routes
    assert "/api/ai/status" in routes
    assert "/api/ai/parse" in routes
    assert "/api/investment/{account_id}/overview" in routes
    assert "/api/investment/{account_id}/chat/{session_id}/message" in routes
    assert "/api/investment/{account_id}/education" in routes


def test_health_endpoint():
    """Test health check endpoint returns correct response."""
    from home_account.api.main import create_app

    client = TestClient(create_app(Settings({})))
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "home-account-api"


def test_root_endpoint():
    from home_account.api.main import create_app

    client = TestClient(create_app(Settings({})))
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["docs"] == "/api/docs"


def test_security_headers_present():
    from home_account.api.main import create_app

    client = TestClient(create_app(Settings({})))
    response = client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_openapi_schema_available():
    from home_account.api.main import create_app

    client = TestClient(create_app(Settings({})))
    response = client.get("/api/openapi.json")

    assert response.status_code == 200
    assert "/api/transactions/" in response.json()["paths"]

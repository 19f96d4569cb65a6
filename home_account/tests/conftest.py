"""
Shared test fixtures.

API tests run against an in-memory SQLite database (StaticPool, one
connection shared by every session) with the database, AI provider and
market feed dependencies overridden.
"""

import io
from datetime import datetime
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from home_account.api.auth import get_market_feeds, get_provider_factory
from home_account.api.main import create_app
from home_account.config import Settings
from home_account.core.ai.providers.base import ProviderAdapter
from home_account.core.market.feeds import MarketFeeds
from home_account.core.market.types import CryptoPrice, CurrencyRate, MarketIndex
from home_account.db.connection import get_db_session
from home_account.db.models import Base

TEST_ENV = {
    "SECRET_JWT_KEY": "test-secret-key",
    "SALT_ROUNDS": "4",
    "ENVIRONMENT": "test",
    "CSRF_ENABLED": "false",
    "AI_ENABLED": "true",
    "GROQ_API_KEY": "test-groq-key",
}


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class ScriptedProvider(ProviderAdapter):
    """Adapter answering from a shared list of canned replies; exceptions in the list are raised."""

    name = "Fake"

    def __init__(self, config, replies: list, prompts: list):
        super().__init__(config)
        self.replies = replies
        self.prompts = prompts

    async def _request(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else "{}"
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeAI:
    """Provider factory handing out ScriptedProviders that share one reply queue."""

    def __init__(self):
        self.replies: list = []
        self.prompts: List[str] = []
        self.configs = []

    def __call__(self, config):
        self.configs.append(config)
        return ScriptedProvider(config, self.replies, self.prompts)


class FakeFeeds(MarketFeeds):
    """Deterministic feeds; keys in `failing` raise instead of answering."""

    def __init__(self, failing: Optional[set] = None):
        super().__init__(alpha_vantage_api_key=None)
        self.failing = failing or set()
        self.calls: Dict[str, int] = {}

    def _record(self, key: str) -> None:
        self.calls[key] = self.calls.get(key, 0) + 1
        if key in self.failing:
            raise RuntimeError(f"{key} feed down")

    async def crypto_prices(self):
        self._record("crypto")
        return {
            "bitcoin": CryptoPrice(symbol="BTC", name="Bitcoin", price=60000.0, change24h=1.5),
            "ethereum": CryptoPrice(symbol="ETH", name="Ethereum", price=3000.0, change24h=-0.5),
        }

    async def currency_rates(self):
        self._record("currency")
        return {
            "USD": CurrencyRate(pair="EUR/USD", rate=1.1, change24h=0.1),
            "GBP": CurrencyRate(pair="EUR/GBP", rate=0.85, change24h=-0.1),
        }

    async def index_price(self, index_key: str):
        self._record(index_key)
        values = {"SP500": 500.0, "MSCI": 150.0, "NASDAQ": 450.0}
        return MarketIndex(symbol=index_key, name=index_key, value=values[index_key], change24h=0.4)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ---------------------------------------------------------------------------
# Bank files
# ---------------------------------------------------------------------------

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

CONTROL_HEADER = ["CATEGORÍA", "SUBCATEGORÍA", "FECHA", "DETALLE", "IMPORTE"]

MOVIMIENTOS_CSV = (
    "Movimientos de la cuenta;;;;;\n"
    "F. VALOR;CATEGORÍA;SUBCATEGORÍA;DESCRIPCIÓN;COMENTARIO;IMPORTE\n"
    "15/03/2024;Compras;Supermercado;Mercadona;;-45,50\n"
    "16/03/2024;Ingresos;Nómina;Nómina marzo;;2.500,00\n"
    "17/03/2024;Compras;Supermercado;;;-12,00\n"
).encode("utf-8")


def workbook_bytes(sheets) -> bytes:
    """xlsx file with one sheet per (title, rows) pair."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets:
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def control_gastos_bytes() -> bytes:
    return workbook_bytes(
        [
            (
                "Enero",
                [
                    ["Control de gastos 2024"],
                    CONTROL_HEADER,
                    ["Comida", "Supermercado", datetime(2024, 1, 5), "Mercadona", 45.5],
                    ["Comida", "Restaurantes", datetime(2024, 1, 7), "La Tasca", 30],
                    ["Casa", None, datetime(2024, 1, 9), None, 600],
                    [None, None, None, "TOTAL", 675.5],
                    ["Comida", "Supermercado", "no es fecha", "Lidl", 10],
                ],
            ),
            (
                "Febrero",
                [
                    CONTROL_HEADER,
                    ["Ocio", "Cine", datetime(2024, 2, 10), "Cines Yelmo", 18],
                ],
            ),
            ("Resumen", [["Total anual", 1000]]),
        ]
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@pytest.fixture
def settings():
    return Settings(dict(TEST_ENV))


@pytest.fixture
def fake_ai():
    return FakeAI()


@pytest.fixture
def fake_feeds():
    return FakeFeeds()


@pytest.fixture
def app(settings, session_factory, fake_ai, fake_feeds):
    application = create_app(settings)

    def override_get_db_session():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    application.dependency_overrides[get_db_session] = override_get_db_session
    application.dependency_overrides[get_provider_factory] = lambda: fake_ai
    application.dependency_overrides[get_market_feeds] = lambda: fake_feeds
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


def register_user(client: TestClient, email: str = "ana@example.com", name: str = "Ana", password: str = "secret-pass-1"):
    """Register a user and return (auth headers, response body)."""
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "name": name},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    # The bearer header takes precedence; drop the cookie so users do not leak into each other
    client.cookies.clear()
    return {"Authorization": f"Bearer {body['accessToken']}"}, body


def first_account_id(client: TestClient, headers) -> int:
    response = client.get("/api/accounts/", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["accounts"][0]["id"]


@pytest.fixture
def user(client):
    headers, body = register_user(client)
    return {"headers": headers, "id": body["user"]["id"], "account_id": first_account_id(client, headers)}


@pytest.fixture
def other_user(client):
    headers, body = register_user(client, email="luis@example.com", name="Luis")
    return {"headers": headers, "id": body["user"]["id"], "account_id": first_account_id(client, headers)}

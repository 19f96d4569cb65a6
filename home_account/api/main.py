"""
FastAPI application for Home Account.

Provides REST API endpoints for:
- Authentication (register, login, CSRF token)
- Accounts and their members
- Categories, subcategories and transactions
- Bank file import (Excel/CSV preview and confirmation)
- AI provider administration
- Investment advisor (profile, recommendations, market prices, chat, education)
"""

import os
import logging
import time
import traceback
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from home_account import __version__
from home_account.api.rate_limit import LoginRateLimiter
from home_account.api.routes import accounts, ai, auth, categories, imports, investment, subcategories, transactions
from home_account.config import ProviderSelection, Settings
from home_account.core.market.cache import MarketCache
from home_account.db.connection import db_session, get_db_session, get_engine, init_db
from home_account.utils.error_utils import HomeAccountError

logger = logging.getLogger("home_account")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    is_serverless = bool(os.getenv("VERCEL"))
    if not is_serverless:
        # Tables are pre-created on serverless deployments
        logger.info("Initializing database schema...")
        init_db()
        with db_session() as session:
            MarketCache(session).clear_expired()
    yield
    if not is_serverless:
        logger.info("Shutting down...")
        get_engine().dispose()


def _error_response(status_code: int, message: Any, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HomeAccountError)
    async def home_account_error_handler(request: Request, exc: HomeAccountError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s (%s)", type(exc).__name__, request.method, request.url.path, exc.message, exc.details)
        headers = None
        if getattr(exc, "retry_after", None) is not None:
            headers = {"Retry-After": str(exc.retry_after)}
        return _error_response(exc.status_code, exc.message, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, exc.detail, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, _validation_message(exc))

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all uncaught exceptions; details stay in the server log."""
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
        logger.error(traceback.format_exc())
        return _error_response(500, "Internal server error")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to serve with; read from the environment when omitted
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Home Account API",
        description="Household finance - shared accounts, transactions and AI investment advisor",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.selection = ProviderSelection()
    app.state.login_limiter = LoginRateLimiter()

    # CORS configuration for the frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    register_exception_handlers(app)

    # Health check endpoints
    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """API health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "service": "home-account-api",
        }

    @app.get("/api/health")
    async def api_health_check() -> Dict[str, Any]:
        return {"success": True, "status": "ok", "environment": settings.environment}

    @app.get("/health/db")
    def health_check_db(db: Session = Depends(get_db_session)):
        """Check database connection health and latency."""
        start = time.time()
        try:
            db.execute(text("SELECT 1"))
            latency_ms = (time.time() - start) * 1000
            return {
                "status": "healthy",
                "latency_ms": round(latency_ms, 2),
                "market_cache": MarketCache(db).get_stats(),
            }
        except SQLAlchemyError as e:
            latency_ms = (time.time() - start) * 1000
            logger.error("Database health check failed: %s", e)
            return {
                "status": "unhealthy",
                "latency_ms": round(latency_ms, 2),
                "error": "Database unavailable",
            }

    # Include routers
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(accounts.router, prefix="/api/accounts", tags=["Accounts"])
    app.include_router(categories.router, prefix="/api/categories", tags=["Categories"])
    app.include_router(subcategories.router, prefix="/api/subcategories", tags=["Subcategories"])
    app.include_router(transactions.router, prefix="/api/transactions", tags=["Transactions"])
    app.include_router(imports.router, prefix="/api/import", tags=["Import"])
    app.include_router(ai.router, prefix="/api/ai", tags=["AI"])
    app.include_router(investment.router, prefix="/api/investment", tags=["Investment"])

    # Root endpoint
    @app.get("/")
    async def root() -> Dict[str, Any]:
        """API root endpoint with service information."""
        return {
            "service": "Home Account API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "home_account.api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        log_level="info",
    )

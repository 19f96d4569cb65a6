"""
API route modules.

Contains FastAPI routers for different resource types.
"""

from home_account.api.routes import accounts, ai, auth, categories, imports, investment, subcategories, transactions

__all__ = ["accounts", "ai", "auth", "categories", "imports", "investment", "subcategories", "transactions"]

"""
Database repository layer.

Provides data access patterns using the Repository Pattern.
"""

from home_account.db.repositories.base import BaseRepository
from home_account.db.repositories.account_repository import AccountRepository
from home_account.db.repositories.user_repository import UserRepository
from home_account.db.repositories.category_repository import CategoryRepository, SubcategoryRepository
from home_account.db.repositories.transaction_repository import TransactionRepository
from home_account.db.repositories.investment_repository import InvestmentRepository
from home_account.db.repositories.market_cache_repository import MarketCacheRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "UserRepository",
    "CategoryRepository",
    "SubcategoryRepository",
    "TransactionRepository",
    "InvestmentRepository",
    "MarketCacheRepository",
]

"""
Home Account - Household finance backend

Shared family accounts with:
- Categorized transactions per account (tenant)
- Market data aggregation with a database cache
- Multi-provider AI investment advisor
"""

__version__ = "1.0.0"
__author__ = "Home Account Contributors"

"""
Database module for place-rank-tracker.

This module handles:
- Database connection management
- SQLAlchemy models
- Keyword, snapshot and run-log operations
"""

from db.models import Base, Customer, CustomerKeyword, KeywordAnalysisSnapshot, ScrapingLog
from db.database_manager import DatabaseManager
from db.keyword_service import KeywordStore

__version__ = "0.1.0"

__all__ = [
    "Base",
    "Customer",
    "CustomerKeyword",
    "KeywordAnalysisSnapshot",
    "ScrapingLog",
    "DatabaseManager",
    "KeywordStore",
]

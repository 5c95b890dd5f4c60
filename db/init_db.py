#!/usr/bin/env python3
"""
Database initialization script for place-rank-tracker.

This script:
- Loads environment variables from .env
- Creates database engine
- Creates all tables defined in models
- Prints "DB ready" on success

Usage:
    python -m db.init_db
    # or
    python -m runner.main --init-db
"""

import os
import sys
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

# Import Base and all models so every table is registered
from db.models import Base, Customer, CustomerKeyword, KeywordAnalysisSnapshot, ScrapingLog  # noqa: F401


def init_database(database_url: Optional[str] = None) -> List[str]:
    """
    Create all tables.

    Args:
        database_url: Database URL (default: DATABASE_URL from the environment)

    Returns:
        Names of the tables defined in the schema

    Raises:
        RuntimeError: If no database URL is configured
        SQLAlchemyError: If the schema cannot be created
    """
    database_url = database_url or os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL not set in .env file")

    engine = create_engine(database_url)
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()

    return list(Base.metadata.tables.keys())


def main():
    """Main entry point for database initialization."""
    print("=" * 60)
    print("place-rank-tracker Database Initialization")
    print("=" * 60)
    print()

    load_dotenv()

    try:
        tables = init_database()
    except RuntimeError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    except SQLAlchemyError as e:
        print(f"\nERROR: Database initialization failed")
        print(f"  {e}")
        print("\nPlease verify:")
        print("  1. PostgreSQL is running")
        print("  2. User credentials are correct")
        print("  3. DATABASE_URL in .env is correct")
        sys.exit(1)

    print("\n" + "=" * 60)
    print("DB ready")
    print("=" * 60)
    print(f"\nCreated tables:")
    for table_name in tables:
        print(f"  - {table_name}")
    print()


if __name__ == "__main__":
    main()

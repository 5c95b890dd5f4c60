"""
Database Connection Manager for place-rank-tracker
SQLAlchemy engine + sessionmaker built from DATABASE_URL
"""

import os
from contextlib import contextmanager
from typing import Generator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from runner.logging_setup import get_logger

# Load environment
load_dotenv()

logger = get_logger("database_manager")


class DatabaseManager:
    """Manages the database connection with connection pooling"""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or os.getenv("DATABASE_URL")
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None

        self._initialize_engine()

    def _initialize_engine(self):
        """Initialize the SQLAlchemy engine"""
        if not self.database_url:
            raise RuntimeError("DATABASE_URL not set in environment")

        try:
            if self.database_url.startswith("sqlite"):
                # Local smoke runs; SQLite does not take the pool arguments
                self.engine = create_engine(self.database_url, echo=False)
            else:
                self.engine = create_engine(
                    self.database_url,
                    poolclass=QueuePool,
                    pool_size=5,
                    max_overflow=10,
                    pool_pre_ping=True,  # Verify connections before using
                    pool_recycle=3600,  # Recycle connections after 1 hour
                    echo=False
                )
            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine
            )
            logger.info("Database engine initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database engine: {e}")
            raise

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions

        Usage:
            with db_manager.get_session() as session:
                session.execute(select(CustomerKeyword))

        Yields:
            Database session (committed on success, rolled back on error)
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def get_connection_health(self) -> dict:
        """
        Check database connection health

        Returns:
            dict with keys: connected (bool), error (str)
        """
        result = {
            'connected': False,
            'error': None
        }

        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
            result['connected'] = True
        except Exception as e:
            result['error'] = str(e)
            logger.error(f"Connection health check failed: {e}")

        return result

    def close(self):
        """Dispose the engine"""
        if self.engine:
            self.engine.dispose()
            logger.info("Database engine closed")


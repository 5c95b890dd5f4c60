"""
Database models for place-rank-tracker using SQLAlchemy 2.0 style.

Models:
- Customer: A business (place) tracked on behalf of an owner
- CustomerKeyword: A search keyword whose rank is measured for a customer
- KeywordAnalysisSnapshot: Full 1..300 ranking of a keyword on one calendar day
- ScrapingLog: One batch run (start/finish, counts, status)
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Customer(Base):
    """
    Customer (business) model.

    Attributes:
        id: Primary key
        user_id: Owner account id
        client_name: Business display name
        place_id: Naver Place id (customers without one are never measured)
        place_url: Profile URL as entered by the owner
        contact: Contact info
        extra_fields: Free-form owner fields
        business_type: Business category (e.g., 'restaurant', 'cafe', 'place')
        created_at: Record creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    place_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    place_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    extra_fields: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )
    business_type: Mapped[str] = mapped_column(String(50), nullable=False, default="place")

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, onupdate=func.now(), nullable=True
    )

    def __repr__(self) -> str:
        """String representation of Customer."""
        return f"<Customer(id={self.id}, client_name='{self.client_name}', place_id='{self.place_id}')>"


class CustomerKeyword(Base):
    """
    Keyword measured for a customer.

    A keyword without customer_id is analysis-only and owned via user_id.

    Attributes:
        id: Primary key
        customer_id: FK to customers.id (nullable)
        user_id: Owner of an analysis-only keyword
        keyword: Search keyword as entered
        is_active: Whether scheduled runs measure it
        is_main: Owner's headline keyword
        created_at: Record creation timestamp (selection order)
        updated_at: Last measurement touch
        deleted_at: Soft-delete timestamp
    """

    __tablename__ = "customer_keywords"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    customer_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=True, index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    keyword: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    is_main: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        """String representation of CustomerKeyword."""
        return f"<CustomerKeyword(id={self.id}, keyword='{self.keyword}', customer_id={self.customer_id}, active={self.is_active})>"


class KeywordAnalysisSnapshot(Base):
    """
    Daily measurement of one keyword for one customer keyword.

    At most one row per (customer_keyword_id, measured_date); writes update in
    place. The keyword column holds the normalized keyword so a day's ranking
    can be reused across owners.

    Attributes:
        id: Primary key
        user_id: Owner of the measured keyword
        customer_keyword_id: FK to customer_keywords.id
        keyword: Normalized keyword (lowercase, trimmed)
        measured_date: Calendar day in the pinned timezone
        total_results: Number of ranked entries
        rankings: Ranked entries (JSON list, JSONB on PostgreSQL)
        target_rank: The customer's place rank (None when not ranked)
        visitor_review_count: Target visitor review counter
        blog_review_count: Target blog review counter
        success: Whether the collection succeeded
        error: Human-readable failure reason
        extra_metadata: Target context and scrape details (column "metadata")
        created_at: Record creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "keyword_analysis_snapshots"
    __table_args__ = (
        UniqueConstraint("customer_keyword_id", "measured_date", name="uq_snapshot_keyword_day"),
        Index("ix_snapshot_keyword_day", "keyword", "measured_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    customer_keyword_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("customer_keywords.id", ondelete="CASCADE"), nullable=False
    )
    keyword: Mapped[str] = mapped_column(String(255), nullable=False)
    measured_date: Mapped[date] = mapped_column(Date, nullable=False)

    total_results: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rankings: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )

    target_rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    visitor_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    blog_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # "metadata" is reserved on declarative classes
    extra_metadata: Mapped[Dict[str, Any]] = mapped_column(
        "metadata", JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        """String representation of KeywordAnalysisSnapshot."""
        return (
            f"<KeywordAnalysisSnapshot(id={self.id}, keyword='{self.keyword}', "
            f"date='{self.measured_date}', rank={self.target_rank}, success={self.success})>"
        )


class ScrapingLog(Base):
    """
    Batch run log.

    Attributes:
        id: Primary key
        started_at: Run start
        completed_at: Run end
        total_keywords: Targets selected for the run
        processed_count: Targets measured successfully
        failed_count: Targets that failed
        status: running, completed or failed
        trigger_type: scheduled, manual or api
        error_message: Fatal error of a failed run
        execution_time_ms: Wall time of the run
        extra_metadata: Run counters (column "metadata")
    """

    __tablename__ = "scraping_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    total_keywords: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="running")
    trigger_type: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    execution_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    extra_metadata: Mapped[Dict[str, Any]] = mapped_column(
        "metadata", JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )

    def __repr__(self) -> str:
        """String representation of ScrapingLog."""
        return f"<ScrapingLog(id={self.id}, status='{self.status}', processed={self.processed_count}, failed={self.failed_count})>"

"""
Data types shared by the place ranking collector and the batch orchestrator.

Types:
- ScrapeTarget: one (keyword, place) pair to measure, read from the keyword store
- RankedEntity: one organic entry of a keyword's listing
- FullRankingResult: the full ranking of a keyword for one calendar day
- ReviewDetail: review counters read from a place's profile page
- TargetOutcome / BatchRunSummary: per-target and per-run reporting
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo


DEFAULT_TIMEZONE = "Asia/Seoul"

# Listings are never collected past this rank
MAX_RANK_DEPTH = 300


def normalize_keyword(keyword: str) -> str:
    """Case-insensitive, whitespace-trimmed keyword identity."""
    return (keyword or "").strip().lower()


def local_today(timezone: str = DEFAULT_TIMEZONE) -> date:
    """Current calendar day in the pinned measurement timezone."""
    return datetime.now(ZoneInfo(timezone)).date()


@dataclass(frozen=True)
class ScrapeTarget:
    """
    A keyword to measure and the place whose rank we care about.

    Attributes:
        keyword_id: customer_keywords.id
        keyword: Search keyword as entered by the owner
        place_id: Target place id (None for analysis-only keywords)
        customer_id: customers.id
        user_id: Owner of the customer/keyword
        client_name: Display name of the business
        business_type: Business category (e.g. 'restaurant', 'cafe')
    """

    keyword_id: int
    keyword: str
    place_id: Optional[str] = None
    customer_id: Optional[int] = None
    user_id: Optional[str] = None
    client_name: Optional[str] = None
    business_type: Optional[str] = None

    @property
    def normalized_keyword(self) -> str:
        return normalize_keyword(self.keyword)

    @property
    def label(self) -> str:
        return self.client_name or self.place_id or f"keyword#{self.keyword_id}"


@dataclass
class RankedEntity:
    """One organic (non-sponsored) entry of a listing."""

    rank: int
    place_id: str
    name: str
    category: Optional[str] = None
    href: Optional[str] = None
    review_count: Optional[int] = None        # approximate, from listing text
    review_count_raw: Optional[str] = None    # e.g. "2.2만"
    visitor_review_count: Optional[int] = None
    blog_review_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape stored in snapshots (None fields dropped)."""
        data = {
            "rank": self.rank,
            "place_id": self.place_id,
            "name": self.name,
            "category": self.category,
            "href": self.href,
            "review_count": self.review_count,
            "review_count_raw": self.review_count_raw,
            "visitor_review_count": self.visitor_review_count,
            "blog_review_count": self.blog_review_count,
        }
        return {key: value for key, value in data.items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RankedEntity":
        return cls(
            rank=int(data["rank"]),
            place_id=str(data["place_id"]),
            name=data.get("name") or "",
            category=data.get("category"),
            href=data.get("href"),
            review_count=data.get("review_count"),
            review_count_raw=data.get("review_count_raw"),
            visitor_review_count=data.get("visitor_review_count"),
            blog_review_count=data.get("blog_review_count"),
        )


@dataclass
class ReviewDetail:
    """Review counters read from a place profile page."""

    place_id: str
    visitor_review_count: int = 0
    blog_review_count: int = 0

    @property
    def total_review_count(self) -> int:
        return self.visitor_review_count + self.blog_review_count


@dataclass
class FullRankingResult:
    """
    Ranking of one keyword on one calendar day.

    Shared read-only by every target of the keyword group; target-specific
    copies are produced with for_target().
    """

    keyword: str
    measured_date: date
    rankings: List[RankedEntity] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None
    target_rank: Optional[int] = None
    target_visitor_review_count: Optional[int] = None
    target_blog_review_count: Optional[int] = None
    # Pagination ended once the requested places were found; deeper entries were not loaded
    stopped_early: bool = False

    @property
    def total_results(self) -> int:
        return len(self.rankings)

    @classmethod
    def failure(cls, keyword: str, measured_date: date, error: str) -> "FullRankingResult":
        return cls(keyword=keyword, measured_date=measured_date, success=False, error=error)

    def ranks_all(self, place_ids) -> bool:
        """True if every given place id is in the rankings."""
        ranked = {entity.place_id for entity in self.rankings}
        return all(place_id in ranked for place_id in place_ids if place_id)

    def find(self, place_id: Optional[str]) -> Optional[RankedEntity]:
        """Entry for a place id, if it is ranked."""
        if not place_id:
            return None
        for entity in self.rankings:
            if entity.place_id == place_id:
                return entity
        return None

    def with_review_details(self, details: Dict[str, ReviewDetail]) -> "FullRankingResult":
        """
        Copy of this result with profile-page counters merged into the rankings.

        The receiver is never mutated, so a result can be shared by
        concurrently running keyword groups.
        """
        if not details:
            return self

        merged = []
        for entity in self.rankings:
            detail = details.get(entity.place_id)
            if detail is None:
                merged.append(entity)
            else:
                merged.append(replace(
                    entity,
                    visitor_review_count=detail.visitor_review_count,
                    blog_review_count=detail.blog_review_count,
                ))
        return replace(self, rankings=merged)

    def for_target(
        self,
        target: ScrapeTarget,
        detail: Optional[ReviewDetail] = None,
    ) -> "FullRankingResult":
        """
        Target-specific copy: the target's own rank and review counters.

        Counter precedence: profile-page value, then the listing value, then 0.
        """
        entity = self.find(target.place_id)

        if detail is not None:
            visitor = detail.visitor_review_count
            blog = detail.blog_review_count
        else:
            visitor = None
            blog = None

        if visitor is None and entity is not None:
            visitor = entity.visitor_review_count
            if visitor is None:
                visitor = entity.review_count
        if blog is None and entity is not None:
            blog = entity.blog_review_count

        return replace(
            self,
            target_rank=entity.rank if entity else None,
            target_visitor_review_count=visitor or 0,
            target_blog_review_count=blog or 0,
        )

    def validate(self) -> None:
        """
        Check the ranking invariants.

        Raises:
            ValueError: If ranks are not 1..n or a place id repeats
        """
        if self.total_results > MAX_RANK_DEPTH:
            raise ValueError(f"{self.total_results} rankings exceed depth {MAX_RANK_DEPTH}")

        seen = set()
        for expected_rank, entity in enumerate(self.rankings, 1):
            if entity.rank != expected_rank:
                raise ValueError(f"rank {entity.rank} at position {expected_rank}")
            if entity.place_id in seen:
                raise ValueError(f"duplicate place id {entity.place_id}")
            seen.add(entity.place_id)


@dataclass
class TargetOutcome:
    """Result row for one target of a batch run."""

    keyword_id: int
    keyword: str
    client_name: Optional[str]
    success: bool
    place_id: Optional[str] = None
    rank: Optional[int] = None
    visitor_review_count: Optional[int] = None
    blog_review_count: Optional[int] = None
    total_results: Optional[int] = None
    reused: bool = False
    error: Optional[str] = None


@dataclass
class BatchRunSummary:
    """Counters and per-target results of one batch run."""

    total_targets: int = 0
    unique_keywords: int = 0
    processed_count: int = 0
    failed_count: int = 0
    reused_keyword_count: int = 0
    fresh_keyword_count: int = 0
    per_target_results: List[TargetOutcome] = field(default_factory=list)
    run_log_id: Optional[int] = None

    @property
    def duplicates_skipped(self) -> int:
        return self.total_targets - self.unique_keywords

    def record(self, outcome: TargetOutcome) -> None:
        self.per_target_results.append(outcome)
        if outcome.success:
            self.processed_count += 1
        else:
            self.failed_count += 1

    def exit_code(self) -> int:
        """Non-zero only when nothing succeeded and something failed."""
        if self.failed_count > 0 and self.processed_count == 0:
            return 1
        return 0

#!/usr/bin/env python3
"""
Unit tests for ranking data types and batch summaries.
"""

from datetime import date

import pytest

from scrape_place.place_types import (
    BatchRunSummary,
    FullRankingResult,
    RankedEntity,
    ReviewDetail,
    ScrapeTarget,
    TargetOutcome,
    normalize_keyword,
)


def make_result(*place_ids):
    return FullRankingResult(
        keyword="a",
        measured_date=date(2024, 5, 1),
        rankings=[
            RankedEntity(rank=rank, place_id=place_id, name=place_id, review_count=rank * 100)
            for rank, place_id in enumerate(place_ids, 1)
        ],
    )


def test_normalize_keyword():
    assert normalize_keyword("  Gangnam CAFE ") == "gangnam cafe"
    assert normalize_keyword(None) == ""


def test_entity_dict_drops_missing_fields():
    entity = RankedEntity(rank=1, place_id="1", name="A", review_count_raw="2.2만")

    data = entity.to_dict()

    assert data == {"rank": 1, "place_id": "1", "name": "A", "review_count_raw": "2.2만"}
    assert RankedEntity.from_dict(data) == entity


def test_with_review_details_does_not_mutate_shared_result():
    shared = make_result("1", "2")

    merged = shared.with_review_details({"2": ReviewDetail("2", visitor_review_count=7, blog_review_count=3)})

    assert merged.rankings[1].visitor_review_count == 7
    assert shared.rankings[1].visitor_review_count is None
    assert merged.rankings[0] is shared.rankings[0]


def test_for_target_prefers_detail_counts():
    target = ScrapeTarget(keyword_id=1, keyword="a", place_id="2")

    result = make_result("1", "2").for_target(target, ReviewDetail("2", 50, 4))

    assert result.target_rank == 2
    assert (result.target_visitor_review_count, result.target_blog_review_count) == (50, 4)


def test_for_target_falls_back_to_listing_count_then_zero():
    listed = ScrapeTarget(keyword_id=1, keyword="a", place_id="2")
    unlisted = ScrapeTarget(keyword_id=2, keyword="a", place_id="9")
    shared = make_result("1", "2")

    assert shared.for_target(listed).target_visitor_review_count == 200
    assert shared.for_target(listed).target_blog_review_count == 0

    missing = shared.for_target(unlisted)
    assert missing.target_rank is None
    assert (missing.target_visitor_review_count, missing.target_blog_review_count) == (0, 0)
    assert shared.target_rank is None


def test_validate_rejects_gaps_and_duplicates():
    make_result("1", "2", "3").validate()

    gap = make_result("1", "2")
    gap.rankings[1].rank = 3
    with pytest.raises(ValueError):
        gap.validate()

    duplicate = make_result("1", "1")
    with pytest.raises(ValueError):
        duplicate.validate()


def test_summary_exit_code():
    summary = BatchRunSummary(total_targets=3, unique_keywords=2)
    assert summary.duplicates_skipped == 1
    assert summary.exit_code() == 0

    summary.record(TargetOutcome(keyword_id=1, keyword="a", client_name=None, success=False, error="x"))
    assert summary.exit_code() == 1

    summary.record(TargetOutcome(keyword_id=2, keyword="a", client_name=None, success=True))
    assert (summary.processed_count, summary.failed_count) == (1, 1)
    assert summary.exit_code() == 0

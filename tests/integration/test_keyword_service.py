#!/usr/bin/env python3
"""
Unit tests for the keyword store (targets, snapshots, run logs).

Uses an in-memory SQLite database.
"""

from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from conftest import seed_keyword
from db.models import CustomerKeyword, KeywordAnalysisSnapshot, ScrapingLog
from scrape_place.place_types import FullRankingResult, RankedEntity


TODAY = date(2024, 5, 1)

pytestmark = pytest.mark.integration


def ranking(*place_ids, measured_date=TODAY, keyword="강남 맛집", target_rank=None):
    return FullRankingResult(
        keyword=keyword,
        measured_date=measured_date,
        rankings=[
            RankedEntity(rank=index, place_id=place_id, name=f"Place {place_id}")
            for index, place_id in enumerate(place_ids, 1)
        ],
        target_rank=target_rank,
    )


def count_snapshots(session_factory):
    session = session_factory()
    try:
        return session.execute(select(func.count()).select_from(KeywordAnalysisSnapshot)).scalar_one()
    finally:
        session.close()


def test_active_targets_filters_inactive_deleted_and_placeless(store, session_factory):
    active = seed_keyword(session_factory, "강남 맛집", place_id="1")
    seed_keyword(session_factory, "inactive", place_id="2", is_active=False)
    seed_keyword(session_factory, "deleted", place_id="3", deleted=True)
    seed_keyword(session_factory, "no place", place_id=None)

    targets = store.list_active_targets(TODAY)

    assert targets == [active]


def test_active_targets_exclude_only_successful_measurements_today(store, session_factory):
    done = seed_keyword(session_factory, "done", place_id="1")
    failed = seed_keyword(session_factory, "failed", place_id="2")
    yesterday = seed_keyword(session_factory, "yesterday", place_id="3")

    store.upsert_snapshot(done, ranking("1"))
    store.upsert_snapshot(failed, FullRankingResult.failure("failed", TODAY, "Navigation timed out after 30000ms"))
    store.upsert_snapshot(yesterday, ranking("3", measured_date=TODAY - timedelta(days=1)))

    keyword_ids = [target.keyword_id for target in store.list_active_targets(TODAY)]

    assert keyword_ids == [failed.keyword_id, yesterday.keyword_id]


def test_targets_for_user(store, session_factory):
    mine = seed_keyword(session_factory, "a", user_id="owner-1")
    seed_keyword(session_factory, "b", user_id="owner-2")

    assert store.list_targets_for_user("owner-1") == [mine]
    assert store.list_targets_for_user("nobody") == []


def test_upsert_is_idempotent_per_keyword_and_day(store, session_factory):
    target = seed_keyword(session_factory, "강남 맛집", place_id="2")

    first_id = store.upsert_snapshot(target, ranking("1", "2", target_rank=2))
    second_id = store.upsert_snapshot(target, ranking("2", "1", "3", target_rank=1))

    assert first_id == second_id
    assert count_snapshots(session_factory) == 1

    session = session_factory()
    try:
        snapshot = session.get(KeywordAnalysisSnapshot, first_id)
        assert snapshot.target_rank == 1
        assert snapshot.total_results == 3
        assert [item["place_id"] for item in snapshot.rankings] == ["2", "1", "3"]
        assert snapshot.keyword == "강남 맛집"
        assert snapshot.extra_metadata["client_name"] == "Test Shop"
    finally:
        session.close()


def test_upsert_on_a_new_day_inserts(store, session_factory):
    target = seed_keyword(session_factory, "강남 맛집")

    store.upsert_snapshot(target, ranking("1"))
    store.upsert_snapshot(target, ranking("1", measured_date=TODAY + timedelta(days=1)))

    assert count_snapshots(session_factory) == 2


def test_today_snapshot_matches_normalized_keyword_of_any_owner(store, session_factory):
    owner_a = seed_keyword(session_factory, "  강남 맛집 ", user_id="a")
    store.upsert_snapshot(owner_a, ranking("1", "2"))

    result = store.get_today_snapshot("강남 맛집", TODAY)

    assert result is not None
    assert result.success
    assert [entity.place_id for entity in result.rankings] == ["1", "2"]
    assert result.target_rank is None
    assert store.get_today_snapshot("강남 맛집", TODAY + timedelta(days=1)) is None


def test_today_snapshot_keeps_early_stop_flag(store, session_factory):
    target = seed_keyword(session_factory, "강남 맛집")
    early = ranking("1", "2")
    early.stopped_early = True

    store.upsert_snapshot(target, early)

    assert store.get_today_snapshot("강남 맛집", TODAY).stopped_early

    store.upsert_snapshot(target, ranking("1", "2", "3"))

    assert not store.get_today_snapshot("강남 맛집", TODAY).stopped_early


def test_today_snapshot_ignores_failures(store, session_factory):
    target = seed_keyword(session_factory, "홍대 카페")
    store.upsert_snapshot(target, FullRankingResult.failure("홍대 카페", TODAY, "boom"))

    assert store.get_today_snapshot("홍대 카페", TODAY) is None


def test_today_snapshot_prefers_most_recent_write(store, session_factory):
    first = seed_keyword(session_factory, "홍대 카페", user_id="a")
    second = seed_keyword(session_factory, "홍대 카페", user_id="b")

    store.upsert_snapshot(first, ranking("1"))
    store.upsert_snapshot(second, ranking("9", "8"))

    result = store.get_today_snapshot("홍대 카페", TODAY)

    assert [entity.place_id for entity in result.rankings] == ["9", "8"]


def test_touch_target_timestamp(store, session_factory):
    target = seed_keyword(session_factory, "a")

    store.touch_target_timestamp(target.keyword_id)
    store.touch_target_timestamp(999)  # unknown id is only logged

    session = session_factory()
    try:
        assert session.get(CustomerKeyword, target.keyword_id).updated_at is not None
    finally:
        session.close()


def test_run_log_lifecycle(store, session_factory):
    run_log_id = store.create_run_log(5, "manual")
    store.update_run_log(run_log_id, processed_count=4, failed_count=1, status="completed",
                         metadata={"uniqueKeywords": 3})

    session = session_factory()
    try:
        log = session.get(ScrapingLog, run_log_id)
        assert log.status == "completed"
        assert log.trigger_type == "manual"
        assert (log.total_keywords, log.processed_count, log.failed_count) == (5, 4, 1)
        assert log.execution_time_ms >= 0
        assert log.extra_metadata == {"uniqueKeywords": 3}
    finally:
        session.close()


def test_run_log_rejects_unknown_values(store):
    with pytest.raises(ValueError):
        store.create_run_log(1, "cron")

    run_log_id = store.create_run_log(1)
    with pytest.raises(ValueError):
        store.update_run_log(run_log_id, 0, 0, status="done")


def test_recent_run_logs_newest_first(store):
    ids = [store.create_run_log(n) for n in range(3)]

    logs = store.get_recent_run_logs(limit=2)

    assert [log["id"] for log in logs] == [ids[2], ids[1]]
    assert logs[0]["status"] == "running"


def test_recent_ranking_history(store, session_factory):
    target = seed_keyword(session_factory, "a", place_id="1")
    for offset in range(4):
        store.upsert_snapshot(target, ranking("1", measured_date=TODAY - timedelta(days=offset), target_rank=1))

    history = store.get_recent_ranking_history(target.keyword_id, limit=3)

    assert [row["measured_date"] for row in history] == [TODAY - timedelta(days=n) for n in range(3)]
    assert all(row["target_rank"] == 1 for row in history)

#!/usr/bin/env python3
"""
Unit tests for same-day snapshot reuse.
"""

from datetime import timedelta
from unittest.mock import Mock

from scrape_place.place_types import FullRankingResult, RankedEntity, local_today
from scrape_place.snapshot_cache import SnapshotCache


def snapshot(measured_date, success=True):
    return FullRankingResult(
        keyword="강남 맛집",
        measured_date=measured_date,
        rankings=[RankedEntity(rank=1, place_id="1", name="A")],
        success=success,
    )


def test_lookup_uses_normalized_keyword_and_today():
    store = Mock()
    store.get_today_snapshot.return_value = snapshot(local_today())
    cache = SnapshotCache(store)

    result = cache.lookup_today("  강남 맛집 ")

    store.get_today_snapshot.assert_called_once_with("강남 맛집", local_today())
    assert result.total_results == 1


def test_miss_returns_none():
    store = Mock()
    store.get_today_snapshot.return_value = None

    assert SnapshotCache(store).lookup_today("a") is None


def test_store_errors_are_treated_as_miss():
    store = Mock()
    store.get_today_snapshot.side_effect = RuntimeError("database unavailable")

    assert SnapshotCache(store).lookup_today("a") is None


def test_stale_or_failed_snapshots_are_not_reused():
    store = Mock()
    cache = SnapshotCache(store)

    store.get_today_snapshot.return_value = snapshot(local_today() - timedelta(days=1))
    assert cache.lookup_today("a") is None

    store.get_today_snapshot.return_value = snapshot(local_today(), success=False)
    assert cache.lookup_today("a") is None


def test_is_fresh():
    cache = SnapshotCache(Mock())

    assert cache.is_fresh(local_today())
    assert not cache.is_fresh(local_today() - timedelta(days=1))


def test_early_stopped_snapshot_must_rank_requested_places():
    store = Mock()
    early = snapshot(local_today())
    early.stopped_early = True
    store.get_today_snapshot.return_value = early
    cache = SnapshotCache(store)

    assert cache.lookup_today("a", ["1"]) is early
    assert cache.lookup_today("a", ["1", "150"]) is None
    assert cache.lookup_today("a") is early

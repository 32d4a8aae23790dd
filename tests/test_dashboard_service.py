"""Tests for the cached dashboard view and snapshot-changed handling."""

import pytest

from admin_metrics.core import cache
from admin_metrics.core.cache import DummyRedis
from admin_metrics.core.exceptions import DataStoreError
from admin_metrics.services.dashboard_service import (
    ANALYTICS_CACHE_PREFIX,
    clear_dashboard_cache,
    dashboard_cache_key,
    fetch_snapshot,
    get_dashboard_stats,
    handle_snapshot_changed,
    participation_series,
)

from tests.conftest import NOW


def test_fetch_snapshot_pulls_every_collection(store):
    snapshot = fetch_snapshot(store)
    assert len(snapshot.challenges) == 4
    assert len(snapshot.workouts) == 3
    assert len(snapshot.profiles) == 4
    done = next(c for c in snapshot.challenges if c.id == "c-done")
    assert len(done.participants) == 3


def test_dashboard_is_cached_with_ttl(store, fake_redis):
    view = get_dashboard_stats(store)
    key = dashboard_cache_key()
    assert key.startswith(f"{ANALYTICS_CACHE_PREFIX}:")
    assert key in fake_redis.store
    assert fake_redis.ttls[key] == 300

    # Served from cache even when the store changes underneath
    store.challenges = []
    cached = get_dashboard_stats(store)
    assert cached.total_challenges == view.total_challenges == 4


def test_force_refresh_recomputes(store):
    get_dashboard_stats(store)
    store.challenges = []
    assert get_dashboard_stats(store, force_refresh=True).total_challenges == 0


def test_snapshot_changed_overwrites_cache(store, fake_redis):
    get_dashboard_stats(store)
    store.challenges = store.challenges[:1]

    view = handle_snapshot_changed({"table": "challenges", "event": "DELETE"}, store)
    assert view.total_challenges == 1
    assert get_dashboard_stats(store).total_challenges == 1


def test_snapshot_changed_is_idempotent(store):
    volatile = {"generated_at", "participation_over_time"}
    first = handle_snapshot_changed(None, store)
    second = handle_snapshot_changed(None, store)
    assert first.model_dump(exclude=volatile) == second.model_dump(exclude=volatile)


def test_stale_cache_entry_is_recomputed(store, fake_redis):
    fake_redis.setex(dashboard_cache_key(), 300, '{"unexpected": true}')
    assert get_dashboard_stats(store).total_challenges == 4


def test_store_failure_propagates(store):
    store.fail_reads = True
    with pytest.raises(DataStoreError):
        get_dashboard_stats(store)


def test_works_without_redis(store):
    cache.set_redis_client(DummyRedis())
    assert get_dashboard_stats(store).total_challenges == 4
    assert clear_dashboard_cache() == 0


def test_clear_cache_only_touches_dashboard_keys(store, fake_redis):
    get_dashboard_stats(store)
    get_dashboard_stats(store, window_days=7)
    fake_redis.setex("analytics:user:1", 60, "{}")

    assert clear_dashboard_cache() == 2
    assert list(fake_redis.store) == ["analytics:user:1"]


def test_participation_series_has_running_totals(store):
    points = participation_series(store, 120, now=NOW)
    assert len(points) == 120
    assert points[-1].cumulative == 5
    assert [p.cumulative for p in points] == sorted(p.cumulative for p in points)

"""
Dashboard snapshot service.

Pulls a fresh snapshot from the data store, derives the StatsView and keeps
it in Redis under analytics:dashboard:*. A "snapshot changed" signal always
triggers a full recompute that overwrites the cached view; nothing is
patched incrementally.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Union

import redis
from pydantic import ValidationError

from admin_metrics.core.cache import get_redis_client
from admin_metrics.core.config import settings
from admin_metrics.models.analytics import (
    ParticipationPoint,
    Snapshot,
    SnapshotChangedSignal,
    StatsView,
)
from admin_metrics.services.aggregator import compute_dashboard_stats
from admin_metrics.services.bucketizer import bucketize, cumulative_series
from admin_metrics.services.data_store import DataStore, SupabaseDataStore

logger = logging.getLogger(__name__)

ANALYTICS_CACHE_PREFIX = "analytics:dashboard"


def dashboard_cache_key(window_days: Optional[int] = None, tz: Optional[str] = None) -> str:
    if window_days is None:
        window_days = settings.ANALYTICS_WINDOW_DAYS
    tz = tz or settings.ANALYTICS_TIMEZONE
    return f"{ANALYTICS_CACHE_PREFIX}:{tz}:{window_days}"


def fetch_snapshot(store: Optional[DataStore] = None) -> Snapshot:
    store = store or SupabaseDataStore()
    return Snapshot(
        challenges=store.fetch_challenges(),
        workouts=store.fetch_workouts(),
        profiles=store.fetch_profiles(),
    )


def _read_cached(key: str) -> Optional[StatsView]:
    client = get_redis_client()
    if client is None:
        return None
    try:
        cached = client.get(key)
    except redis.RedisError as e:
        logger.warning(f"Dashboard cache read failed: {e}", extra={"cache_key": key})
        return None
    if not cached:
        return None
    try:
        return StatsView.model_validate_json(cached)
    except ValidationError:
        # Stale shape from an older release; recompute
        logger.info("Discarding stale dashboard cache entry", extra={"cache_key": key})
        return None


def _write_cached(key: str, view: StatsView) -> None:
    client = get_redis_client()
    if client is None:
        return
    try:
        client.setex(key, settings.ANALYTICS_CACHE_TTL_SECONDS, view.model_dump_json())
    except redis.RedisError as e:
        logger.warning(f"Dashboard cache write failed: {e}", extra={"cache_key": key})


def refresh_dashboard_stats(
    store: Optional[DataStore] = None,
    *,
    window_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> StatsView:
    """Recompute from a fresh snapshot and overwrite the cached view."""
    snapshot = fetch_snapshot(store)
    view = compute_dashboard_stats(snapshot, now, window_days=window_days)
    _write_cached(dashboard_cache_key(window_days), view)
    logger.info(
        "Dashboard stats recomputed",
        extra={
            "challenges": len(snapshot.challenges),
            "workouts": len(snapshot.workouts),
            "profiles": len(snapshot.profiles),
        },
    )
    return view


def get_dashboard_stats(
    store: Optional[DataStore] = None,
    *,
    window_days: Optional[int] = None,
    force_refresh: bool = False,
) -> StatsView:
    """Cached StatsView, recomputed on miss or when force_refresh is set."""
    if not force_refresh:
        cached = _read_cached(dashboard_cache_key(window_days))
        if cached is not None:
            return cached
    return refresh_dashboard_stats(store, window_days=window_days)


def handle_snapshot_changed(
    signal: Union[SnapshotChangedSignal, Mapping[str, Any], None] = None,
    store: Optional[DataStore] = None,
) -> StatsView:
    """
    Inbound boundary for store change notifications.

    The signal's content is only logged; every call is an idempotent full
    recompute of the default dashboard view.
    """
    if signal is not None and not isinstance(signal, SnapshotChangedSignal):
        signal = SnapshotChangedSignal.model_validate(dict(signal))
    logger.info(
        "Snapshot changed, recomputing dashboard",
        extra={"signal": signal.model_dump() if signal else None},
    )
    return refresh_dashboard_stats(store)


def clear_dashboard_cache() -> int:
    """Delete every cached dashboard view. Returns number of keys removed."""
    client = get_redis_client()
    if client is None:
        return 0
    deleted = 0
    for key in client.scan_iter(match=f"{ANALYTICS_CACHE_PREFIX}:*", count=100):
        deleted += client.delete(key)
    logger.info(f"Cleared {deleted} dashboard cache entries")
    return deleted


def participation_series(
    store: Optional[DataStore] = None,
    days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[ParticipationPoint]:
    """Daily challenge joins over the last ``days`` days, with running totals."""
    store = store or SupabaseDataStore()
    days = settings.ANALYTICS_WINDOW_DAYS if days is None else days
    now = now or datetime.now(timezone.utc)
    join_times = [
        p.created_at
        for c in store.fetch_challenges()
        for p in c.participants
        if p.created_at is not None
    ]
    buckets = bucketize(join_times, days, now=now)
    return [
        ParticipationPoint(**bucket.model_dump(), cumulative=total)
        for bucket, total in cumulative_series(buckets)
    ]

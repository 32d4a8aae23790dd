"""
Admin Analytics Endpoints
Dashboard statistics, participation chart, user progress and cache control
"""

from fastapi import APIRouter, Body, Depends, Query
from typing import Optional
import redis
from admin_metrics.core.admin_auth import get_current_admin
from admin_metrics.core.config import settings
from admin_metrics.api.deps import get_data_store
from admin_metrics.models.analytics import SnapshotChangedSignal, StatsView
from admin_metrics.services.aggregator import summarize_profiles
from admin_metrics.services.segment_service import user_progress
from admin_metrics.services.data_store import DataStore
from admin_metrics.services.dashboard_service import (
    clear_dashboard_cache,
    get_dashboard_stats,
    handle_snapshot_changed,
    participation_series,
)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/dashboard", response_model=StatsView)
async def dashboard_stats(
    refresh: bool = Query(False, description="Bypass the cached view"),
    store: DataStore = Depends(get_data_store),
    current_admin: dict = Depends(get_current_admin),
):
    """
    Get main dashboard statistics
    """
    return get_dashboard_stats(store, force_refresh=refresh)


@router.get("/participation")
async def participation_over_time(
    days: int = Query(settings.ANALYTICS_WINDOW_DAYS, ge=1, le=365),
    store: DataStore = Depends(get_data_store),
    current_admin: dict = Depends(get_current_admin),
):
    """Daily challenge joins with running totals"""
    points = participation_series(store, days)
    return {
        "days": days,
        "total": points[-1].cumulative if points else 0,
        "points": [p.model_dump(mode="json") for p in points],
    }


@router.get("/user-progress")
async def user_progress_table(
    level: Optional[str] = Query(None, description="Level preset, e.g. 11-25"),
    streak: Optional[str] = Query(None, description="Streak preset, e.g. 8-14"),
    activity: Optional[str] = Query(None, description="very_active, active, moderate or low"),
    search: Optional[str] = Query(None, description="Name or email"),
    store: DataStore = Depends(get_data_store),
    current_admin: dict = Depends(get_current_admin),
):
    """
    Per-user level, streak and workout activity with console filters.
    Summary covers all profiles, not just the filtered rows.
    """
    profiles = store.fetch_profiles()
    rows = user_progress(profiles, level, streak, activity, search)
    return {
        "items": [r.model_dump(mode="json") for r in rows],
        "total": len(rows),
        "summary": summarize_profiles(profiles).model_dump(),
    }


@router.post("/snapshot-changed")
async def snapshot_changed(
    signal: Optional[SnapshotChangedSignal] = Body(None),
    background: bool = Query(False, description="Recompute in a Celery worker"),
    store: DataStore = Depends(get_data_store),
    current_admin: dict = Depends(get_current_admin),
):
    """
    Notify that underlying data changed. Always a full recompute.
    """
    if background:
        from admin_metrics.services.tasks.analytics_tasks import (
            recompute_dashboard_stats_task,
        )

        task = recompute_dashboard_stats_task.delay(
            signal.model_dump() if signal else None
        )
        return {"queued": True, "task_id": task.id}

    view = handle_snapshot_changed(signal, store)
    return {"queued": False, "generated_at": view.generated_at.isoformat()}


@router.delete("/cache")
async def clear_analytics_cache(current_admin: dict = Depends(get_current_admin)):
    """
    Clear all cached dashboard views.
    """
    try:
        deleted = clear_dashboard_cache()
    except redis.RedisError as e:
        return {
            "success": False,
            "deleted_keys": 0,
            "message": f"Error: {str(e)}",
        }

    return {
        "success": True,
        "deleted_keys": deleted,
        "message": f"Cleared {deleted} analytics cache entries",
    }

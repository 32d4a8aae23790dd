"""
Analytics Celery Tasks

Recomputes the cached dashboard view off the request path.
"""

from typing import Any, Dict, Optional

from admin_metrics.core.celery_client import celery_app
from admin_metrics.core.exceptions import AdminMetricsError
from admin_metrics.services.dashboard_service import handle_snapshot_changed


@celery_app.task(name="admin.recompute_dashboard_stats")
def recompute_dashboard_stats_task(signal: Optional[Dict[str, Any]] = None) -> dict:
    try:
        view = handle_snapshot_changed(signal)
    except AdminMetricsError as e:
        return {"success": False, **e.to_dict()}
    return {
        "success": True,
        "generated_at": view.generated_at.isoformat(),
        "total_challenges": view.total_challenges,
    }

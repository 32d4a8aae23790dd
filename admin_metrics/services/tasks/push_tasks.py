"""
Push Celery Tasks

Enqueued by CeleryPushChannel after notifications are committed. The request
has already returned; failures here only affect device delivery.
"""

import logging
from typing import Any, Dict, List, Optional

from admin_metrics.core.celery_client import celery_app
from admin_metrics.services.push_service import SEND_PUSH_BATCH_TASK, ExpoPushChannel

logger = logging.getLogger(__name__)


@celery_app.task(name=SEND_PUSH_BATCH_TASK)
def send_push_batch_task(
    user_ids: List[str],
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None,
) -> dict:
    """
    Publish one push message to every active device of each user.
    Returns delivered count and the users whose push failed.
    """
    try:
        report = ExpoPushChannel().dispatch(user_ids, title, body, data)
    except Exception as e:
        logger.error(f"Push batch failed: {e}", extra={"recipients": len(user_ids)})
        return {"success": False, "error": str(e), "requested": len(user_ids)}

    if report.failed_user_ids:
        logger.warning(
            f"Push failed for {len(report.failed_user_ids)} of {len(user_ids)} users",
            extra={"failed_user_ids": report.failed_user_ids},
        )
    return {
        "success": not report.failed_user_ids,
        "requested": report.requested,
        "delivered": report.delivered,
        "failed_user_ids": report.failed_user_ids,
    }

"""
Notification console: broadcasts, audience preview and resend
"""

from fastapi import APIRouter, Body, Depends
from typing import Any, Dict, Optional
from admin_metrics.core.admin_auth import get_current_admin, log_admin_action
from admin_metrics.api.deps import get_data_store, get_push
from admin_metrics.models.notifications import BroadcastRequest
from admin_metrics.services.broadcast_service import (
    preview_segment,
    resend_notification_by_id,
    send_notification,
)
from admin_metrics.services.data_store import DataStore
from admin_metrics.services.push_service import PushChannel

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("/send")
async def send(
    data: BroadcastRequest,
    store: DataStore = Depends(get_data_store),
    push_channel: PushChannel = Depends(get_push),
    current_admin: dict = Depends(get_current_admin),
):
    """Send a notification to all users, one user or a segment"""
    result = send_notification(data, store=store, push_channel=push_channel)

    if result.notifications_created:
        log_admin_action(
            admin_user_id=current_admin["id"],
            action="send_notification",
            resource_type="notification",
            details={
                "target_type": result.target_type,
                "type": data.type,
                "recipients_count": result.recipients_count,
            },
        )

    return result.model_dump(mode="json")


@router.post("/preview")
async def preview(
    filters: Optional[Dict[str, Any]] = Body(None),
    store: DataStore = Depends(get_data_store),
    current_admin: dict = Depends(get_current_admin),
):
    """Count the users a segment filter would reach"""
    resolution = preview_segment(filters, store=store)
    return {
        "recipients_count": resolution.count,
        "warnings": [w.to_dict() for w in resolution.warnings],
    }


@router.post("/{notification_id}/resend")
async def resend(
    notification_id: str,
    store: DataStore = Depends(get_data_store),
    current_admin: dict = Depends(get_current_admin),
):
    """Re-deliver a notification as a new unread copy"""
    copy = resend_notification_by_id(notification_id, store=store)

    log_admin_action(
        admin_user_id=current_admin["id"],
        action="resend_notification",
        resource_type="notification",
        resource_id=notification_id,
    )

    return {"success": True, "notification": copy.model_dump(mode="json")}

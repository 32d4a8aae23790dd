"""
Operator broadcasts from the notification console.

Targets: every profile ("all"), one profile by email ("specific") or a
segment of profiles ("segment"). Notifications for all recipients are
written in one insert; push follows on a best-effort basis.
"""

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from admin_metrics.core.exceptions import (
    InvalidParameterError,
    NoRecipientsWarning,
    NotificationNotFoundError,
)
from admin_metrics.models.notifications import (
    BroadcastRequest,
    BroadcastResult,
    NotificationRecord,
)
from admin_metrics.models.profiles import SegmentFilter, SegmentResolution
from admin_metrics.services.data_store import DataStore, SupabaseDataStore
from admin_metrics.services.push_service import (
    PushChannel,
    deliver_best_effort,
    get_push_channel,
)
from admin_metrics.services.segment_service import as_segment_filter, resolve_segment

logger = logging.getLogger(__name__)


def _as_request(request: Union[BroadcastRequest, Mapping[str, Any]]) -> BroadcastRequest:
    if isinstance(request, BroadcastRequest):
        return request
    try:
        return BroadcastRequest.model_validate(dict(request))
    except ValidationError as e:
        raise InvalidParameterError(
            "Invalid notification request",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        ) from e


def resolve_recipients(store: DataStore, request: BroadcastRequest) -> SegmentResolution:
    if request.target == "segment":
        seg = request.segment or SegmentFilter()
        return resolve_segment(seg, store.fetch_profiles(segment_filter=seg))

    if request.target == "specific":
        if not request.specific_email:
            raise InvalidParameterError(
                "specific_email is required when target is 'specific'"
            )
        email = request.specific_email.strip().lower()
        profiles = store.fetch_profiles(email=email)
        if not profiles:
            logger.warning("No profile for broadcast email", extra={"email": email})
            return SegmentResolution(
                profiles=[],
                warnings=[NoRecipientsWarning("User not found", email=email)],
            )
        return SegmentResolution(profiles=profiles[:1])

    profiles = store.fetch_profiles()
    if not profiles:
        logger.warning("Broadcast to all users found no profiles")
        return SegmentResolution(
            profiles=[], warnings=[NoRecipientsWarning("No users to notify")]
        )
    return SegmentResolution(profiles=profiles)


def send_notification(
    request: Union[BroadcastRequest, Mapping[str, Any]],
    *,
    store: Optional[DataStore] = None,
    push_channel: Optional[PushChannel] = None,
) -> BroadcastResult:
    """
    Send an operator notification to its target audience.

    Zero recipients is not an error: nothing is written and the result
    carries a NoRecipientsWarning.

    Raises:
        InvalidParameterError: bad request or segment filter
        DataStoreError: profile read or notification insert failed
    """
    request = _as_request(request)
    store = store or SupabaseDataStore()

    resolution = resolve_recipients(store, request)
    if not resolution.profiles:
        return BroadcastResult(
            target_type=request.target,
            recipients_count=0,
            notifications_created=0,
            warnings=resolution.warnings,
        )

    push_channel = push_channel or get_push_channel()
    user_ids = resolution.user_ids
    records = [
        NotificationRecord(
            user_id=user_id,
            type=request.type,
            title=request.title,
            body=request.body,
            data={"target_type": request.target, "recipients_count": len(user_ids)},
        ).to_row()
        for user_id in user_ids
    ]
    created = store.insert_notifications(records)
    logger.info(
        f"Sent {request.type} notification to {created} users",
        extra={"target_type": request.target, "recipients": len(user_ids)},
    )

    dispatched, push_warnings = deliver_best_effort(
        push_channel,
        user_ids,
        request.title,
        request.body,
        {"type": request.type},
        target_type=request.target,
    )

    return BroadcastResult(
        target_type=request.target,
        recipients_count=len(user_ids),
        notifications_created=created,
        push_dispatched=dispatched,
        warnings=resolution.warnings + push_warnings,
    )


def preview_segment(
    segment_filter: Union[SegmentFilter, Mapping[str, Any], None],
    *,
    store: Optional[DataStore] = None,
) -> SegmentResolution:
    """Resolve a segment without writing anything."""
    store = store or SupabaseDataStore()
    seg = as_segment_filter(segment_filter)
    return resolve_segment(seg, store.fetch_profiles(segment_filter=seg))


def resend_notification(
    notification: Union[NotificationRecord, Mapping[str, Any]],
    *,
    store: Optional[DataStore] = None,
) -> NotificationRecord:
    """Insert a fresh unread copy of an existing notification."""
    store = store or SupabaseDataStore()
    try:
        original = (
            notification
            if isinstance(notification, NotificationRecord)
            else NotificationRecord.model_validate(dict(notification))
        )
    except ValidationError as e:
        raise InvalidParameterError(
            "Invalid notification",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        ) from e

    copy = original.model_copy(update={"id": None, "is_read": False})
    store.insert_notifications([copy.to_row()])
    logger.info(
        "Resent notification",
        extra={"source_id": original.id, "user_id": original.user_id},
    )
    return copy


def resend_notification_by_id(
    notification_id: str, *, store: Optional[DataStore] = None
) -> NotificationRecord:
    store = store or SupabaseDataStore()
    original = store.fetch_notification(notification_id)
    if original is None:
        raise NotificationNotFoundError(
            f"Notification {notification_id} not found", notification_id=notification_id
        )
    return resend_notification(original, store=store)

"""
Push delivery for admin-triggered notifications.

Push is the secondary, best-effort channel: the notifications table is the
record of truth. Failures here are reported back as PartialDeliveryWarning
and never undo the primary write.

Channels:
- CeleryPushChannel (default): enqueue admin.send_push_batch on the admin queue
- ExpoPushChannel: publish inline through the Expo push service
- NullPushChannel: push disabled

Expo preference check matches the main API for admin notifications:
only the global enabled + push_notifications toggles are honoured.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from exponent_server_sdk import (
    DeviceNotRegisteredError,
    PushClient,
    PushMessage,
    PushServerError,
    PushTicketError,
)

from admin_metrics.core.config import settings
from admin_metrics.core.exceptions import InvalidParameterError, PartialDeliveryWarning
from admin_metrics.models.notifications import PushDispatchReport

logger = logging.getLogger(__name__)

SEND_PUSH_BATCH_TASK = "admin.send_push_batch"


def truncate_body(body: str, max_chars: Optional[int] = None) -> str:
    """Shorten a notification body for the push banner."""
    limit = settings.PUSH_BODY_MAX_CHARS if max_chars is None else max_chars
    if len(body) <= limit:
        return body
    return body[:limit] + "..."


def is_valid_expo_token(token: str) -> bool:
    """Check if token is a valid Expo push token format."""
    return token.startswith("ExponentPushToken[") and token.endswith("]")


class PushChannel(ABC):
    @abstractmethod
    def dispatch(
        self,
        user_ids: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> PushDispatchReport:
        """Hand a batch to the channel. May raise; callers treat it as best-effort."""


class NullPushChannel(PushChannel):
    def dispatch(self, user_ids, title, body, data=None) -> PushDispatchReport:
        return PushDispatchReport(requested=len(user_ids))


class CeleryPushChannel(PushChannel):
    """Fire-and-forget: the worker owns retries and token cleanup."""

    def __init__(self, celery_app: Any = None) -> None:
        if celery_app is None:
            from admin_metrics.core.celery_client import celery_app as default_app

            celery_app = default_app
        self.celery_app = celery_app

    def dispatch(self, user_ids, title, body, data=None) -> PushDispatchReport:
        result = self.celery_app.send_task(
            SEND_PUSH_BATCH_TASK,
            kwargs={
                "user_ids": list(user_ids),
                "title": title,
                "body": body,
                "data": data or {},
            },
        )
        logger.info(
            f"Queued push batch for {len(user_ids)} users",
            extra={"task_id": result.id, "recipients": len(user_ids)},
        )
        return PushDispatchReport(requested=len(user_ids), queued=True, task_id=result.id)


class ExpoPushChannel(PushChannel):
    def __init__(self, client: Any = None, push_client: Optional[PushClient] = None) -> None:
        if client is None:
            from admin_metrics.core.database import get_supabase_client

            client = get_supabase_client()
        self.client = client
        self.push_client = push_client or PushClient()

    def should_send(self, user_id: str) -> Tuple[bool, str]:
        """
        Check if user has push notifications enabled.

        Returns:
            Tuple of (should_send: bool, reason: str)
        """
        try:
            prefs_result = (
                self.client.table("notification_preferences")
                .select("enabled, push_notifications")
                .eq("user_id", user_id)
                .maybe_single()
                .execute()
            )
            prefs = prefs_result.data if prefs_result else None
        except Exception as e:
            logger.warning(
                f"Error checking push notification preference for {user_id}: {e}"
            )
            return (True, "ok")

        if not prefs:
            return (True, "ok")
        if not prefs.get("enabled", True):
            return (False, "notifications_disabled")
        if not prefs.get("push_notifications", True):
            return (False, "push_notifications_disabled")
        return (True, "ok")

    def _active_tokens(self, user_id: str) -> List[dict]:
        result = (
            self.client.table("device_tokens")
            .select("fcm_token, id")
            .eq("user_id", user_id)
            .eq("is_active", True)
            .execute()
        )
        return [
            row
            for row in result.data or []
            if isinstance(row.get("fcm_token"), str)
            and is_valid_expo_token(row["fcm_token"])
        ]

    def _deactivate(self, token_ids: List[str]) -> None:
        try:
            self.client.table("device_tokens").update({"is_active": False}).in_(
                "id", token_ids
            ).execute()
        except Exception as e:
            logger.warning(f"Failed to deactivate invalid tokens: {e}")

    def send_to_user(
        self, user_id: str, title: str, body: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Publish to every active device of one user."""
        should_send, reason = self.should_send(user_id)
        if not should_send:
            logger.info(
                f"Push notification skipped for user {user_id}",
                extra={"user_id": user_id, "skip_reason": reason},
            )
            return {"success": True, "delivered": 0, "skipped": True, "reason": reason}

        tokens = self._active_tokens(user_id)
        if not tokens:
            return {"success": True, "delivered": 0, "reason": "no_tokens"}

        messages = [
            PushMessage(
                to=row["fcm_token"],
                title=title,
                body=body,
                data=data,
                sound="default",
                priority="high",
            )
            for row in tokens
        ]

        delivered = 0
        invalid_token_ids: List[str] = []
        try:
            responses = self.push_client.publish_multiple(messages)
        except PushServerError as exc:
            logger.error(f"Batch push failed for user {user_id}: {exc}")
            return {"success": False, "delivered": 0, "error": str(exc)}

        for token_row, response in zip(tokens, responses):
            try:
                response.validate_response()
                delivered += 1
            except DeviceNotRegisteredError:
                invalid_token_ids.append(token_row["id"])
            except PushTicketError as exc:
                logger.warning(
                    f"Push failed for token {token_row['fcm_token'][:20]}...: {exc}"
                )
                invalid_token_ids.append(token_row["id"])

        if invalid_token_ids:
            self._deactivate(invalid_token_ids)

        return {"success": delivered > 0, "delivered": delivered, "total_tokens": len(tokens)}

    def dispatch(self, user_ids, title, body, data=None) -> PushDispatchReport:
        report = PushDispatchReport(requested=len(user_ids))
        for user_id in user_ids:
            try:
                outcome = self.send_to_user(user_id, title, body, data or {})
            except Exception as e:
                logger.error(f"Failed to send push to user {user_id}: {e}")
                outcome = {"success": False}
            report.delivered += outcome.get("delivered", 0)
            if not outcome.get("success"):
                report.failed_user_ids.append(user_id)
        return report


def get_push_channel() -> PushChannel:
    channel = settings.PUSH_CHANNEL.lower()
    if channel == "celery":
        return CeleryPushChannel()
    if channel == "expo":
        return ExpoPushChannel()
    if channel == "none":
        return NullPushChannel()
    raise InvalidParameterError(
        f"Unknown push channel '{settings.PUSH_CHANNEL}'", push_channel=settings.PUSH_CHANNEL
    )


def deliver_best_effort(
    channel: PushChannel,
    user_ids: Sequence[str],
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None,
    **context: Any,
) -> Tuple[bool, List[PartialDeliveryWarning]]:
    """
    Push after the primary commit. Never raises.

    Returns:
        (dispatched, warnings): dispatched is True when the channel accepted
        the batch; warnings holds a PartialDeliveryWarning on any failure.
    """
    if not user_ids:
        return False, []

    try:
        report = channel.dispatch(user_ids, title, truncate_body(body), data)
    except Exception as e:
        logger.error(
            f"Push dispatch failed: {e}",
            extra={"recipients": len(user_ids), **context},
        )
        return False, [
            PartialDeliveryWarning(
                "Notifications were saved but push delivery failed",
                failed_user_ids=list(user_ids),
                error=str(e),
                **context,
            )
        ]

    if report.failed_user_ids:
        logger.warning(
            f"Push failed for {len(report.failed_user_ids)} of {len(user_ids)} users",
            extra={"failed_user_ids": report.failed_user_ids, **context},
        )
        return True, [
            PartialDeliveryWarning(
                "Notifications were saved but push failed for some users",
                failed_user_ids=report.failed_user_ids,
                **context,
            )
        ]
    return True, []

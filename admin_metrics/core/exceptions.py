"""
Error taxonomy for the metrics & targeting engine.

Errors abort the requested operation and surface to the caller unchanged.
Warnings are collected on result objects (``result.warnings``) and logged;
they are never raised.
"""

from typing import Any, Dict, Optional


class AdminMetricsError(Exception):
    """Base class for every error raised by the engine."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            **({"context": self.context} if self.context else {}),
        }


class InvalidParameterError(AdminMetricsError, ValueError):
    """A caller-supplied parameter is out of range."""


class InvalidWindowError(InvalidParameterError):
    """Bucketing window must cover at least one day."""


class InvalidTopKError(InvalidParameterError):
    """Winner selection needs top_k >= 1."""


class MalformedSnapshotError(AdminMetricsError):
    """Input rows have the wrong shape (not merely empty)."""


class EmptyLeaderboardError(AdminMetricsError):
    """Operation requires at least one participant."""


class AlreadyAnnouncedError(AdminMetricsError):
    """Winners were already announced for this challenge."""


class ChallengeNotFoundError(AdminMetricsError):
    pass


class NotificationNotFoundError(AdminMetricsError):
    pass


class ChallengeNotCompletedError(AdminMetricsError):
    """Winners can only be announced once the challenge has ended."""


class DataStoreError(AdminMetricsError):
    """The backing store rejected or failed a read/write."""


class AdminMetricsWarning(UserWarning):
    """Non-fatal condition reported alongside a successful result."""

    code = "warning"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": self.context}

    def __eq__(self, other: object) -> bool:
        return (
            type(self) is type(other)
            and self.message == getattr(other, "message", None)
            and self.context == getattr(other, "context", None)
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.message))


class NoRecipientsWarning(AdminMetricsWarning):
    """Targeting resolved to zero users."""

    code = "no_recipients"


class PartialDeliveryWarning(AdminMetricsWarning):
    """Push channel failed after the primary commit succeeded."""

    code = "partial_delivery"

    def __init__(
        self,
        message: str,
        failed_user_ids: Optional[list] = None,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.failed_user_ids = list(failed_user_ids or [])
        if self.failed_user_ids:
            self.context["failed_count"] = len(self.failed_user_ids)

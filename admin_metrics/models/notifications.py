from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from admin_metrics.core.exceptions import AdminMetricsWarning
from admin_metrics.models.profiles import SegmentFilter


TargetType = Literal["all", "specific", "segment"]

NotificationType = Literal[
    "streak_reminder",
    "mission_completed",
    "challenge_invite",
    "challenge_winner",
    "achievement_unlocked",
    "workout_reminder",
    "social_update",
    "general",
]


class NotificationRecord(BaseModel):
    """Row for the notifications table (one per recipient)."""

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    id: Optional[str] = None
    user_id: str
    type: str
    title: str
    body: str
    is_read: bool = False
    data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Audit payload; always carries target_type and recipients_count",
    )

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id"} if self.id is None else None)


class BroadcastRequest(BaseModel):
    target: TargetType = "all"
    type: NotificationType = "general"
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    segment: Optional[SegmentFilter] = None
    specific_email: Optional[str] = None


class BroadcastResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    target_type: TargetType
    recipients_count: int
    notifications_created: int
    push_dispatched: bool = False
    warnings: List[AdminMetricsWarning] = Field(default_factory=list)

    @field_serializer("warnings")
    def _serialize_warnings(self, warnings: List[AdminMetricsWarning]) -> List[Dict[str, Any]]:
        return [w.to_dict() for w in warnings]


class PushDispatchReport(BaseModel):
    """Outcome of handing a batch to the push channel."""

    requested: int = 0
    delivered: int = 0
    queued: bool = False
    failed_user_ids: List[str] = Field(default_factory=list)
    task_id: Optional[str] = None

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from admin_metrics.core.exceptions import AdminMetricsWarning
from admin_metrics.models.challenges import Winner


class AnnouncementState(str, Enum):
    NOT_COMPLETED = "not_completed"
    AWAITING_ANNOUNCEMENT = "awaiting_announcement"
    ANNOUNCED = "announced"


class AnnouncementRequest(BaseModel):
    top_k: Optional[int] = Field(None, ge=1, le=100)
    title: Optional[str] = None
    message: Optional[str] = None


class AnnouncementResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    challenge_id: str
    announced_at: datetime
    winners: List[Winner]
    notifications_created: int
    recipients_count: int
    push_dispatched: bool = False
    warnings: List[AdminMetricsWarning] = Field(default_factory=list)

    @field_serializer("warnings")
    def _serialize_warnings(self, warnings: List[AdminMetricsWarning]) -> List[Dict[str, Any]]:
        return [w.to_dict() for w in warnings]

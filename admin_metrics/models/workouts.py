from __future__ import annotations

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from admin_metrics.models.common import OptionalTimestamp


class WorkoutSession(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, allow_inf_nan=False, extra="ignore")

    id: str
    status: Optional[str] = None
    created_at: OptionalTimestamp = None


class Workout(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, allow_inf_nan=False, extra="ignore")

    id: str
    title: Optional[str] = None
    category: Optional[str] = None
    duration_minutes: Optional[float] = None
    created_at: OptionalTimestamp = None
    sessions: List[WorkoutSession] = Field(
        default_factory=list,
        validation_alias=AliasChoices("sessions", "workout_sessions"),
    )

    @field_validator("sessions", mode="before")
    @classmethod
    def _absent_sessions_are_empty(cls, value: Any) -> Any:
        return [] if value is None else value

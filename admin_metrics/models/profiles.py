from __future__ import annotations

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from admin_metrics.core.exceptions import AdminMetricsWarning
from admin_metrics.models.common import OptionalTimestamp


class Profile(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, allow_inf_nan=False, extra="ignore")

    id: str
    display_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("display_name", "full_name")
    )
    email: Optional[str] = None
    level: Optional[float] = None
    streak: Optional[float] = Field(
        None, validation_alias=AliasChoices("current_streak", "streak")
    )
    last_active: OptionalTimestamp = Field(
        None, validation_alias=AliasChoices("last_active", "last_active_at")
    )
    total_workouts: int = Field(
        0,
        validation_alias=AliasChoices("total_workouts", "workout_sessions"),
        description="Workout sessions logged (embedded workout_sessions rows)",
    )

    @field_validator("total_workouts", mode="before")
    @classmethod
    def _count_sessions(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, list):
            return len(value)
        return value


class SegmentFilter(BaseModel):
    """
    Audience filter for notification targeting.

    Exactly five recognized fields, all optional. An unset field places no
    constraint on its dimension; bounds are inclusive. Accepts snake_case
    names or the console's camelCase keys (levelMin, activeAfter, ...).
    """

    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False, extra="forbid")

    level_min: Optional[float] = Field(None, alias="levelMin")
    level_max: Optional[float] = Field(None, alias="levelMax")
    streak_min: Optional[float] = Field(None, alias="streakMin")
    streak_max: Optional[float] = Field(None, alias="streakMax")
    active_after: OptionalTimestamp = Field(None, alias="activeAfter")

    @property
    def is_unconstrained(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class SegmentResolution(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    profiles: List[Profile]
    warnings: List[AdminMetricsWarning] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.profiles)

    @property
    def user_ids(self) -> List[str]:
        return [profile.id for profile in self.profiles]


class UserProgressRow(BaseModel):
    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    level: Optional[float] = None
    streak: Optional[float] = None
    total_workouts: int = 0
    streak_tag: str
    activity_tier: str

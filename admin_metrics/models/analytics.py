from __future__ import annotations

import datetime as dt
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from admin_metrics.core.exceptions import MalformedSnapshotError
from admin_metrics.models.challenges import Challenge, ChallengeStatus
from admin_metrics.models.profiles import Profile
from admin_metrics.models.workouts import Workout


class Bucket(BaseModel):
    date: dt.date
    label: str = Field(..., description="Display label, e.g. 'Mar 07'")
    count: int = 0


class Snapshot(BaseModel):
    """Point-in-time copy of the collections the dashboard is derived from."""

    challenges: List[Challenge] = Field(default_factory=list)
    workouts: List[Workout] = Field(default_factory=list)
    profiles: List[Profile] = Field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "Snapshot":
        """
        Build a snapshot from raw Supabase rows.

        Absent or null collections are empty; anything with the wrong shape
        raises MalformedSnapshotError.
        """
        if not isinstance(raw, Mapping):
            raise MalformedSnapshotError(
                "Snapshot must be a mapping of collections",
                received=type(raw).__name__,
            )
        payload = {
            name: raw.get(name) if raw.get(name) is not None else []
            for name in ("challenges", "workouts", "profiles")
        }
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise MalformedSnapshotError(
                "Snapshot rows failed validation",
                errors=[
                    {"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()
                ],
            ) from e


class ChallengeStats(BaseModel):
    id: str
    title: str
    type: str
    status: ChallengeStatus
    participants: int
    completed: int
    completion_rate: float = Field(..., ge=0, le=1)
    created_at: Optional[datetime] = None


class WorkoutStats(BaseModel):
    id: str
    title: Optional[str] = None
    category: Optional[str] = None
    sessions: int
    completed_sessions: int
    completion_rate: float = Field(..., ge=0, le=1)


class WorkoutSummary(BaseModel):
    total_workouts: int = 0
    total_sessions: int = 0
    most_popular_category: Optional[str] = None
    avg_duration_minutes: int = 0


class ProfileSummary(BaseModel):
    total_profiles: int = 0
    active_users: int = Field(0, description="Profiles with at least one workout session")
    avg_level: float = 0
    avg_streak: int = 0


class StatsView(BaseModel):
    total_challenges: int
    active_challenges: int
    challenges_by_type: Dict[str, int]
    total_participants: int
    completed_participants: int
    completion_rate: float = Field(..., ge=0, le=1)
    challenges: List[ChallengeStats]
    top_challenges: List[ChallengeStats]
    participation_over_time: List[Bucket]
    workouts: List[WorkoutStats]
    workout_summary: WorkoutSummary
    profile_summary: ProfileSummary
    generated_at: datetime


class ParticipationPoint(Bucket):
    cumulative: int = 0


class SnapshotChangedSignal(BaseModel):
    """Inbound "data changed" message; it only triggers a full recompute."""

    table: Optional[str] = None
    event: Optional[str] = Field(None, description="INSERT, UPDATE or DELETE")
    record_id: Optional[str] = None

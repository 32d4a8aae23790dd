from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from admin_metrics.models.common import NumberOrZero, OptionalTimestamp, Timestamp


ChallengeType = Literal["local", "verified", "community"]
ChallengeStatus = Literal["upcoming", "active", "completed"]
ScoreField = Literal["progress", "score"]


class ParticipantProfile(BaseModel):
    """Profile columns embedded on leaderboard rows (profiles:user_id join)."""

    model_config = ConfigDict(coerce_numbers_to_str=True, allow_inf_nan=False, extra="ignore")

    id: Optional[str] = None
    display_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("display_name", "full_name")
    )
    avatar_url: Optional[str] = None
    level: Optional[float] = None


class Participant(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, allow_inf_nan=False, extra="ignore")

    id: str
    challenge_id: Optional[str] = None
    user_id: Optional[str] = None
    progress: NumberOrZero = Field(0, description="Progress towards the target (100 = done)")
    score: Optional[float] = Field(
        None,
        validation_alias=AliasChoices("score", "points"),
        description="Points earned; stored as challenge_participants.points",
    )
    created_at: OptionalTimestamp = Field(None, description="Join timestamp")
    profile: Optional[ParticipantProfile] = Field(
        None, validation_alias=AliasChoices("profile", "profiles")
    )

    def score_for(self, field: ScoreField) -> float:
        value = self.progress if field == "progress" else self.score
        return float(value or 0)

    @property
    def display_name(self) -> Optional[str]:
        return self.profile.display_name if self.profile else None


class Challenge(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, allow_inf_nan=False, extra="ignore")

    id: str
    title: str = ""
    type: ChallengeType = Field(validation_alias=AliasChoices("type", "challenge_type"))
    start_date: Timestamp
    end_date: Timestamp
    target_value: Optional[float] = None
    reward_amount: NumberOrZero = 0
    winner_announced_at: OptionalTimestamp = None
    winner_data: Optional[List[Dict[str, Any]]] = None
    created_at: OptionalTimestamp = None
    participants: List[Participant] = Field(
        default_factory=list,
        validation_alias=AliasChoices("participants", "challenge_participants"),
    )

    @field_validator("title", mode="before")
    @classmethod
    def _title_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("participants", mode="before")
    @classmethod
    def _absent_participants_are_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def is_active(self, now: datetime) -> bool:
        return self.start_date <= now <= self.end_date

    def status(self, now: datetime) -> ChallengeStatus:
        if now < self.start_date:
            return "upcoming"
        if now <= self.end_date:
            return "active"
        return "completed"

    @property
    def is_announced(self) -> bool:
        return self.winner_announced_at is not None


class RankedParticipant(BaseModel):
    """A leaderboard row: participant plus its dense rank."""

    rank: int
    id: str
    challenge_id: Optional[str] = None
    user_id: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    level: Optional[float] = None
    progress: float = 0
    score: Optional[float] = None
    ranking_value: float = Field(..., description="Value of the configured score field")
    created_at: Optional[datetime] = None


class Winner(BaseModel):
    """Entry of challenges.winner_data."""

    rank: int
    user_id: Optional[str] = None
    user_name: str = "User"
    points: float = 0

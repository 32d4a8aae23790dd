"""
Leaderboard Ranker

Orders the participants of one challenge and assigns dense ranks.

Ordering:
  1. Score field (progress or score) descending
  2. Earlier join (created_at) first
  3. Participant id ascending (deterministic fallback)

Ranks are always computed over the full participant set; truncation to the
top K happens afterwards, so a row's rank never depends on the limit.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from admin_metrics.core.config import settings
from admin_metrics.core.exceptions import (
    EmptyLeaderboardError,
    InvalidParameterError,
    InvalidTopKError,
    MalformedSnapshotError,
)
from admin_metrics.models.challenges import (
    Participant,
    RankedParticipant,
    ScoreField,
    Winner,
)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)
SCORE_FIELDS = ("progress", "score")


def _coerce_participants(
    participants: Iterable[Union[Participant, Mapping[str, Any]]],
) -> List[Participant]:
    try:
        return [
            p if isinstance(p, Participant) else Participant.model_validate(p)
            for p in participants
        ]
    except ValidationError as e:
        raise MalformedSnapshotError(
            "Participant rows failed validation",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        ) from e


def _resolve_score_field(score_field: Optional[str]) -> ScoreField:
    field = score_field or settings.LEADERBOARD_SCORE_FIELD
    if field not in SCORE_FIELDS:
        raise InvalidParameterError(
            f"Unknown score field '{field}'. Must be one of: {list(SCORE_FIELDS)}",
            score_field=field,
        )
    return field  # type: ignore[return-value]


def rank_participants(
    participants: List[Participant], score_field: ScoreField
) -> List[RankedParticipant]:
    ordered = sorted(
        participants,
        key=lambda p: (
            -p.score_for(score_field),
            p.created_at or _FAR_FUTURE,
            p.id,
        ),
    )
    return [
        RankedParticipant(
            rank=rank,
            id=p.id,
            challenge_id=p.challenge_id,
            user_id=p.user_id,
            display_name=p.display_name,
            avatar_url=p.profile.avatar_url if p.profile else None,
            level=p.profile.level if p.profile else None,
            progress=p.progress,
            score=p.score,
            ranking_value=p.score_for(score_field),
            created_at=p.created_at,
        )
        for rank, p in enumerate(ordered, start=1)
    ]


def compute_leaderboard(
    challenge_id: str,
    participants: Iterable[Union[Participant, Mapping[str, Any]]],
    top_k: Optional[int] = None,
    score_field: Optional[str] = None,
) -> List[RankedParticipant]:
    """
    Rank a challenge's participants.

    Args:
        challenge_id: Challenge the participants belong to
        participants: Participant models or raw challenge_participants rows
        top_k: Optional number of rows to return (ranks stay global)
        score_field: "progress" or "score" (default LEADERBOARD_SCORE_FIELD)

    Returns:
        Ranked rows, rank 1 first. Empty input gives an empty leaderboard.

    Raises:
        MalformedSnapshotError: bad rows, or a row from another challenge
    """
    field = _resolve_score_field(score_field)
    rows = _coerce_participants(participants)

    foreign = [
        p.id
        for p in rows
        if p.challenge_id is not None and str(p.challenge_id) != str(challenge_id)
    ]
    if foreign:
        raise MalformedSnapshotError(
            f"Participants do not belong to challenge {challenge_id}",
            challenge_id=challenge_id,
            participant_ids=foreign,
        )

    ranked = rank_participants(rows, field)
    if top_k is not None:
        ranked = ranked[: max(top_k, 0)]
    return ranked


def select_winners(ranked: List[RankedParticipant], top_k: int) -> List[Winner]:
    """
    Take the top K rows of a ranked leaderboard as winners.

    Raises:
        InvalidTopKError: top_k < 1
        EmptyLeaderboardError: nobody participated
    """
    if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k < 1:
        raise InvalidTopKError("top_k must be a positive integer", top_k=top_k)
    if not ranked:
        raise EmptyLeaderboardError("Cannot select winners from zero participants")

    return [
        Winner(
            rank=row.rank,
            user_id=row.user_id,
            user_name=row.display_name or "User",
            points=row.ranking_value,
        )
        for row in ranked[:top_k]
    ]

"""
Aggregator

Dashboard statistics derived from a snapshot of challenges, workouts and
profiles. Every function here is a pure transform of its arguments; callers
recompute from a fresh snapshot instead of patching previous results.

Rounding policy (fixed, tested):
- rates are fractions in [0, 1], never rounded, 0 for empty sets
- average level: one decimal place, half-up (2.25 -> 2.3)
- average streak and duration: nearest integer, half-up (2.5 -> 3)
"""

from collections import Counter
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from admin_metrics.core.config import settings
from admin_metrics.models.analytics import (
    ChallengeStats,
    ProfileSummary,
    Snapshot,
    StatsView,
    WorkoutStats,
    WorkoutSummary,
)
from admin_metrics.models.challenges import Challenge, Participant
from admin_metrics.models.profiles import Profile
from admin_metrics.models.workouts import Workout
from admin_metrics.services.bucketizer import bucketize

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def completion_rate(completed: int, total: int) -> float:
    """completed / total, or 0 when there is nothing to complete."""
    if total <= 0:
        return 0.0
    return completed / total


def count_completed(
    participants: Iterable[Participant], threshold: Optional[float] = None
) -> int:
    if threshold is None:
        threshold = settings.COMPLETION_THRESHOLD
    return sum(1 for p in participants if p.progress >= threshold)


def challenge_counts(challenges: List[Challenge], now: datetime) -> Dict[str, Any]:
    by_type: Counter = Counter(c.type for c in challenges)
    return {
        "total": len(challenges),
        "active": sum(1 for c in challenges if c.is_active(now)),
        "by_type": dict(sorted(by_type.items())),
    }


def challenge_stats(
    challenges: List[Challenge],
    now: datetime,
    threshold: Optional[float] = None,
) -> List[ChallengeStats]:
    """Per-challenge participant counts and completion rates, input order."""
    rows = []
    for challenge in challenges:
        total = len(challenge.participants)
        completed = count_completed(challenge.participants, threshold)
        rows.append(
            ChallengeStats(
                id=challenge.id,
                title=challenge.title,
                type=challenge.type,
                status=challenge.status(now),
                participants=total,
                completed=completed,
                completion_rate=completion_rate(completed, total),
                created_at=challenge.created_at,
            )
        )
    return rows


def top_by_participants(stats: List[ChallengeStats], limit: int) -> List[ChallengeStats]:
    """
    Most joined challenges first; ties go to the earlier created challenge,
    then the smaller id. Challenges without created_at sort after dated ones.
    """
    ordered = sorted(
        stats,
        key=lambda s: (-s.participants, s.created_at or _FAR_FUTURE, s.id),
    )
    return ordered[: max(limit, 0)]


def workout_stats(workouts: List[Workout]) -> List[WorkoutStats]:
    rows = []
    for workout in workouts:
        total = len(workout.sessions)
        completed = sum(1 for s in workout.sessions if s.status == "completed")
        rows.append(
            WorkoutStats(
                id=workout.id,
                title=workout.title,
                category=workout.category,
                sessions=total,
                completed_sessions=completed,
                completion_rate=completion_rate(completed, total),
            )
        )
    return rows


def summarize_workouts(workouts: List[Workout]) -> WorkoutSummary:
    if not workouts:
        return WorkoutSummary()

    categories: Counter = Counter(w.category for w in workouts if w.category)
    most_popular = None
    if categories:
        # Highest count wins; equal counts resolve alphabetically
        most_popular = min(categories.items(), key=lambda item: (-item[1], item[0]))[0]

    total_duration = sum(w.duration_minutes or 0 for w in workouts)
    return WorkoutSummary(
        total_workouts=len(workouts),
        total_sessions=sum(len(w.sessions) for w in workouts),
        most_popular_category=most_popular,
        avg_duration_minutes=int(round_half_up(total_duration / len(workouts))),
    )


def summarize_profiles(profiles: List[Profile]) -> ProfileSummary:
    if not profiles:
        return ProfileSummary()

    count = len(profiles)
    avg_level = sum(p.level or 0 for p in profiles) / count
    avg_streak = sum(p.streak or 0 for p in profiles) / count
    return ProfileSummary(
        total_profiles=count,
        active_users=sum(1 for p in profiles if p.total_workouts > 0),
        avg_level=round_half_up(avg_level, 1),
        avg_streak=int(round_half_up(avg_streak)),
    )


def compute_dashboard_stats(
    snapshot: Union[Snapshot, Mapping[str, Any]],
    now: Optional[datetime] = None,
    *,
    window_days: Optional[int] = None,
    top_n: Optional[int] = None,
    completion_threshold: Optional[float] = None,
    tz: Any = None,
) -> StatsView:
    """
    Derive the full dashboard view from one snapshot.

    Args:
        snapshot: Snapshot or raw mapping of collections (absent = empty)
        now: Reference time for active/completed status and the chart window
        window_days: Participation chart window (default ANALYTICS_WINDOW_DAYS)
        top_n: Size of the top challenges list (default TOP_CHALLENGES_LIMIT)
        completion_threshold: Progress counted as completed (default 100)
        tz: Time zone for calendar buckets (default ANALYTICS_TIMEZONE)

    Raises:
        MalformedSnapshotError: rows have the wrong shape
        InvalidWindowError: window_days <= 0
    """
    if not isinstance(snapshot, Snapshot):
        snapshot = Snapshot.from_raw(snapshot)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    window_days = window_days if window_days is not None else settings.ANALYTICS_WINDOW_DAYS
    top_n = top_n if top_n is not None else settings.TOP_CHALLENGES_LIMIT

    challenges = snapshot.challenges
    counts = challenge_counts(challenges, now)
    per_challenge = challenge_stats(challenges, now, completion_threshold)

    total_participants = sum(s.participants for s in per_challenge)
    completed_participants = sum(s.completed for s in per_challenge)

    join_times = [
        p.created_at
        for c in challenges
        for p in c.participants
        if p.created_at is not None
    ]

    return StatsView(
        total_challenges=counts["total"],
        active_challenges=counts["active"],
        challenges_by_type=counts["by_type"],
        total_participants=total_participants,
        completed_participants=completed_participants,
        completion_rate=completion_rate(completed_participants, total_participants),
        challenges=per_challenge,
        top_challenges=top_by_participants(per_challenge, top_n),
        participation_over_time=bucketize(join_times, window_days, now=now, tz=tz),
        workouts=workout_stats(snapshot.workouts),
        workout_summary=summarize_workouts(snapshot.workouts),
        profile_summary=summarize_profiles(snapshot.profiles),
        generated_at=now,
    )

"""
Segment Resolver

Evaluates a SegmentFilter against profiles to build a notification audience.
Every set bound must hold (conjunction); unset bounds are ignored.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from admin_metrics.core.exceptions import (
    InvalidParameterError,
    MalformedSnapshotError,
    NoRecipientsWarning,
)
from admin_metrics.models.profiles import (
    Profile,
    SegmentFilter,
    SegmentResolution,
    UserProgressRow,
)

logger = logging.getLogger(__name__)

# Console presets (UserProgress screen); bounds are inclusive
LEVEL_PRESETS: Dict[str, Tuple[Optional[int], Optional[int]]] = {
    "0-10": (None, 10),
    "11-25": (11, 25),
    "26-50": (26, 50),
    "50+": (51, None),
}

STREAK_PRESETS: Dict[str, Tuple[Optional[int], Optional[int]]] = {
    "0-7": (None, 7),
    "8-14": (8, 14),
    "15-30": (15, 30),
    "30+": (31, None),
}

# Workout-count tiers
ACTIVITY_PRESETS: Dict[str, Tuple[Optional[int], Optional[int]]] = {
    "very_active": (50, None),
    "active": (20, 49),
    "moderate": (5, 19),
    "low": (None, 4),
}


def as_segment_filter(
    segment_filter: Union[SegmentFilter, Mapping[str, Any], None],
) -> SegmentFilter:
    if segment_filter is None:
        return SegmentFilter()
    if isinstance(segment_filter, SegmentFilter):
        return segment_filter
    try:
        return SegmentFilter.model_validate(dict(segment_filter))
    except ValidationError as e:
        raise InvalidParameterError(
            "Invalid segment filter",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        ) from e


def _within(value: Optional[float], low: Optional[float], high: Optional[float]) -> bool:
    if low is None and high is None:
        return True
    if value is None:
        return False
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def matches(profile: Profile, segment_filter: SegmentFilter) -> bool:
    if not _within(profile.level, segment_filter.level_min, segment_filter.level_max):
        return False
    if not _within(profile.streak, segment_filter.streak_min, segment_filter.streak_max):
        return False
    if segment_filter.active_after is not None:
        if profile.last_active is None or profile.last_active < segment_filter.active_after:
            return False
    return True


def resolve_segment(
    segment_filter: Union[SegmentFilter, Mapping[str, Any], None],
    profiles: Iterable[Union[Profile, Mapping[str, Any]]],
) -> SegmentResolution:
    """
    Select the profiles satisfying every constraint of the filter.

    An empty filter returns all profiles unchanged. An empty match is a valid
    result carrying a NoRecipientsWarning.

    Raises:
        InvalidParameterError: unknown or invalid filter fields
        MalformedSnapshotError: profile rows with the wrong shape
    """
    seg = as_segment_filter(segment_filter)
    try:
        rows: List[Profile] = [
            p if isinstance(p, Profile) else Profile.model_validate(p) for p in profiles
        ]
    except ValidationError as e:
        raise MalformedSnapshotError(
            "Profile rows failed validation",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        ) from e

    selected = rows if seg.is_unconstrained else [p for p in rows if matches(p, seg)]

    warnings = []
    if not selected:
        criteria = seg.model_dump(mode="json", exclude_none=True)
        warnings.append(
            NoRecipientsWarning("No users match the specified criteria", criteria=criteria)
        )
        logger.warning(
            "Segment resolved to zero recipients",
            extra={"criteria": criteria, "profiles_scanned": len(rows)},
        )

    return SegmentResolution(profiles=selected, warnings=warnings)


def segment_from_presets(
    level: Optional[str] = None, streak: Optional[str] = None
) -> SegmentFilter:
    """Build a filter from the console's level/streak preset buckets ("all" = none)."""
    values: Dict[str, Any] = {}
    if level and level != "all":
        if level not in LEVEL_PRESETS:
            raise InvalidParameterError(f"Unknown level preset '{level}'", level=level)
        values["level_min"], values["level_max"] = LEVEL_PRESETS[level]
    if streak and streak != "all":
        if streak not in STREAK_PRESETS:
            raise InvalidParameterError(f"Unknown streak preset '{streak}'", streak=streak)
        values["streak_min"], values["streak_max"] = STREAK_PRESETS[streak]
    return SegmentFilter(**values)


def streak_tag(streak: Optional[float]) -> str:
    streak = streak or 0
    if streak >= 30:
        return "On Fire!"
    if streak >= 14:
        return "Hot Streak"
    if streak >= 7:
        return "Good"
    return "Active"


def activity_tier(total_workouts: int) -> str:
    for tier, (low, high) in ACTIVITY_PRESETS.items():
        if _within(total_workouts, low, high):
            return tier
    return "low"


def user_progress(
    profiles: Iterable[Profile],
    level: Optional[str] = None,
    streak: Optional[str] = None,
    activity: Optional[str] = None,
    search: Optional[str] = None,
) -> List[UserProgressRow]:
    """
    Profiles for the user progress table, highest level first.

    level/streak/activity take preset names ("all" or None = no filter);
    search matches display name or email, case-insensitive.

    Raises:
        InvalidParameterError: unknown preset name
    """
    seg = segment_from_presets(level, streak)
    if activity and activity != "all" and activity not in ACTIVITY_PRESETS:
        raise InvalidParameterError(f"Unknown activity preset '{activity}'", activity=activity)
    needle = search.strip().lower() if search else ""

    rows = []
    for profile in profiles:
        if not matches(profile, seg):
            continue
        tier = activity_tier(profile.total_workouts)
        if activity and activity != "all" and tier != activity:
            continue
        if needle and not any(
            needle in (value or "").lower() for value in (profile.display_name, profile.email)
        ):
            continue
        rows.append(
            UserProgressRow(
                id=profile.id,
                display_name=profile.display_name,
                email=profile.email,
                level=profile.level,
                streak=profile.streak,
                total_workouts=profile.total_workouts,
                streak_tag=streak_tag(profile.streak),
                activity_tier=tier,
            )
        )

    # Unleveled profiles last; equal levels keep id order
    rows.sort(key=lambda r: (r.level is None, -(r.level or 0), r.id))
    return rows

"""
Announcement Orchestrator

Announces the winners of a completed challenge exactly once:

1. Load the challenge and check it has ended and is not yet announced
2. Rank participants and pick the top K (before anything is written)
3. Conditional update of winner_announced_at (check-and-set on null)
4. One challenge_winner notification per participant, single bulk insert
5. Best-effort push

A lost race at step 3 surfaces as AlreadyAnnouncedError. If step 4 fails the
announcement is reset so it can be retried. Push failures come back as
PartialDeliveryWarning on the result.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from admin_metrics.core.config import settings
from admin_metrics.core.exceptions import (
    AlreadyAnnouncedError,
    ChallengeNotCompletedError,
    ChallengeNotFoundError,
    NoRecipientsWarning,
)
from admin_metrics.models.announcements import AnnouncementResult, AnnouncementState
from admin_metrics.models.challenges import Challenge, Participant, Winner
from admin_metrics.models.notifications import NotificationRecord
from admin_metrics.services.data_store import ChallengeQuery, DataStore, SupabaseDataStore
from admin_metrics.services.leaderboard_service import compute_leaderboard, select_winners
from admin_metrics.services.push_service import (
    PushChannel,
    deliver_best_effort,
    get_push_channel,
)

logger = logging.getLogger(__name__)

RECIPIENT_TARGET_TYPE = "challenge_participants"

_PLACES = [("🥇", "1st"), ("🥈", "2nd"), ("🥉", "3rd")]


def announcement_state(challenge: Challenge, now: Optional[datetime] = None) -> AnnouncementState:
    now = now or datetime.now(timezone.utc)
    if challenge.is_announced:
        return AnnouncementState.ANNOUNCED
    if challenge.end_date < now:
        return AnnouncementState.AWAITING_ANNOUNCEMENT
    return AnnouncementState.NOT_COMPLETED


def default_announcement_title(challenge: Challenge) -> str:
    return f"{challenge.title} - Winners Announced!"


def podium_message(winners: List[Winner]) -> str:
    lines = ["Congratulations to our winners! 🏆", ""]
    for (medal, place), winner in zip(_PLACES, winners):
        lines.append(f"{medal} {place} Place: {winner.user_name} ({winner.points:g} points)")
    lines += ["", "Thank you to all participants for your amazing effort!"]
    return "\n".join(lines)


def recipient_ids(participants: List[Participant]) -> List[str]:
    """Distinct participant user ids, in leaderboard input order."""
    seen = set()
    ids = []
    for p in participants:
        if p.user_id and p.user_id not in seen:
            seen.add(p.user_id)
            ids.append(p.user_id)
    return ids


def list_awaiting_announcement(
    store: DataStore, now: Optional[datetime] = None
) -> List[Challenge]:
    """Completed challenges whose winners have not been announced."""
    now = now or datetime.now(timezone.utc)
    challenges = store.fetch_challenges(
        ChallengeQuery(awaiting_announcement=True, now=now)
    )
    return [
        c
        for c in challenges
        if announcement_state(c, now) == AnnouncementState.AWAITING_ANNOUNCEMENT
    ]


def load_challenge(store: DataStore, challenge_id: str) -> Challenge:
    rows = store.fetch_challenges(ChallengeQuery(ids=[challenge_id]))
    for challenge in rows:
        if challenge.id == str(challenge_id):
            return challenge
    raise ChallengeNotFoundError(
        f"Challenge {challenge_id} not found", challenge_id=challenge_id
    )


def _reset_announcement(store: DataStore, challenge_id: str) -> None:
    try:
        store.update_challenge(
            challenge_id, {"winner_announced_at": None, "winner_data": None}
        )
    except Exception as e:
        logger.error(
            f"Failed to reset announcement for challenge {challenge_id}: {e}",
            extra={"challenge_id": challenge_id},
        )


def announce_winners(
    challenge_id: str,
    top_k: Optional[int] = None,
    *,
    store: Optional[DataStore] = None,
    push_channel: Optional[PushChannel] = None,
    title: Optional[str] = None,
    message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AnnouncementResult:
    """
    Announce the top K participants of a completed challenge.

    Args:
        challenge_id: Challenge to announce
        top_k: Number of winners (default WINNER_TOP_K)
        store: Data store (default SupabaseDataStore)
        push_channel: Push channel (default from PUSH_CHANNEL)
        title: Notification title (default "<title> - Winners Announced!")
        message: Notification body (default podium message)

    Raises:
        ChallengeNotFoundError, ChallengeNotCompletedError,
        AlreadyAnnouncedError, EmptyLeaderboardError, InvalidTopKError,
        DataStoreError
    """
    store = store or SupabaseDataStore()
    now = now or datetime.now(timezone.utc)
    top_k = settings.WINNER_TOP_K if top_k is None else top_k

    challenge = load_challenge(store, challenge_id)
    state = announcement_state(challenge, now)
    if state == AnnouncementState.ANNOUNCED:
        raise AlreadyAnnouncedError(
            f"Winners already announced for challenge {challenge_id}",
            challenge_id=challenge_id,
            announced_at=challenge.winner_announced_at.isoformat(),
        )
    if state == AnnouncementState.NOT_COMPLETED:
        raise ChallengeNotCompletedError(
            f"Challenge {challenge_id} has not ended yet",
            challenge_id=challenge_id,
            end_date=challenge.end_date.isoformat(),
        )

    participants = store.fetch_participants(challenge_id)
    ranked = compute_leaderboard(challenge_id, participants)
    winners = select_winners(ranked, top_k)
    winner_data = [w.model_dump() for w in winners]

    if push_channel is None:
        push_channel = get_push_channel()

    updated = store.update_challenge(
        challenge_id,
        {"winner_announced_at": now.isoformat(), "winner_data": winner_data},
        only_if_unannounced=True,
    )
    if not updated:
        raise AlreadyAnnouncedError(
            f"Winners already announced for challenge {challenge_id}",
            challenge_id=challenge_id,
        )

    title = title or default_announcement_title(challenge)
    message = message or podium_message(winners)
    user_ids = recipient_ids(participants)
    records = [
        NotificationRecord(
            user_id=user_id,
            type="challenge_winner",
            title=title,
            body=message,
            data={
                "challenge_id": challenge.id,
                "winners": winner_data,
                "target_type": RECIPIENT_TARGET_TYPE,
                "recipients_count": len(user_ids),
            },
        ).to_row()
        for user_id in user_ids
    ]

    try:
        created = store.insert_notifications(records)
    except Exception:
        logger.error(
            f"Notification insert failed, resetting announcement for {challenge_id}",
            extra={"challenge_id": challenge_id, "recipients": len(user_ids)},
        )
        _reset_announcement(store, challenge_id)
        raise

    logger.info(
        f"Announced {len(winners)} winners for challenge {challenge_id}",
        extra={
            "challenge_id": challenge_id,
            "winners": len(winners),
            "notifications_created": created,
        },
    )

    dispatched, warnings = deliver_best_effort(
        push_channel,
        user_ids,
        title,
        message,
        {"challenge_id": challenge.id, "type": "challenge_winner", "screen": "challenge_detail"},
        challenge_id=challenge.id,
    )
    if not user_ids:
        warnings.append(
            NoRecipientsWarning("No participants to notify", challenge_id=challenge.id)
        )
        logger.warning(
            f"Winners announced for {challenge_id} with no one to notify",
            extra={"challenge_id": challenge_id, "participants": len(participants)},
        )

    return AnnouncementResult(
        challenge_id=challenge.id,
        announced_at=now,
        winners=winners,
        notifications_created=created,
        recipients_count=len(user_ids),
        push_dispatched=dispatched,
        warnings=warnings,
    )

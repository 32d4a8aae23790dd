"""
Challenge leaderboards and winner announcements
"""

from fastapi import APIRouter, Body, Depends, Query
from typing import Optional
from admin_metrics.core.admin_auth import get_current_admin, log_admin_action
from admin_metrics.core.config import settings
from admin_metrics.api.deps import get_data_store, get_push
from admin_metrics.models.announcements import AnnouncementRequest
from admin_metrics.services.announcement_service import (
    announce_winners,
    list_awaiting_announcement,
    load_challenge,
)
from admin_metrics.services.data_store import DataStore
from admin_metrics.services.leaderboard_service import compute_leaderboard
from admin_metrics.services.push_service import PushChannel

router = APIRouter(prefix="/challenges", tags=["Challenges"])


@router.get("/awaiting-announcement")
async def challenges_awaiting_announcement(
    store: DataStore = Depends(get_data_store),
    current_admin: dict = Depends(get_current_admin),
):
    """Completed challenges without winners announced"""
    challenges = list_awaiting_announcement(store)
    items = [
        {
            "id": c.id,
            "title": c.title,
            "type": c.type,
            "end_date": c.end_date.isoformat(),
            "reward_amount": c.reward_amount,
            "participants_count": len(c.participants),
        }
        for c in challenges
    ]
    return {"items": items, "total": len(items)}


@router.get("/{challenge_id}/leaderboard")
async def challenge_leaderboard(
    challenge_id: str,
    limit: Optional[int] = Query(None, ge=1, le=500),
    score_field: Optional[str] = Query(None, description="progress or score"),
    store: DataStore = Depends(get_data_store),
    current_admin: dict = Depends(get_current_admin),
):
    """Ranked participants of one challenge"""
    challenge = load_challenge(store, challenge_id)
    participants = store.fetch_participants(challenge_id)
    entries = compute_leaderboard(
        challenge_id,
        participants,
        top_k=limit or settings.LEADERBOARD_DISPLAY_LIMIT,
        score_field=score_field,
    )
    return {
        "challenge_id": challenge.id,
        "title": challenge.title,
        "score_field": score_field or settings.LEADERBOARD_SCORE_FIELD,
        "total_participants": len(participants),
        "entries": [e.model_dump(mode="json") for e in entries],
    }


@router.post("/{challenge_id}/announce-winners")
async def announce_challenge_winners(
    challenge_id: str,
    data: Optional[AnnouncementRequest] = Body(None),
    store: DataStore = Depends(get_data_store),
    push_channel: PushChannel = Depends(get_push),
    current_admin: dict = Depends(get_current_admin),
):
    """
    Announce winners once. A second call returns 409.
    """
    data = data or AnnouncementRequest()
    result = announce_winners(
        challenge_id,
        data.top_k,
        store=store,
        push_channel=push_channel,
        title=data.title,
        message=data.message,
    )

    log_admin_action(
        admin_user_id=current_admin["id"],
        action="announce_winners",
        resource_type="challenge",
        resource_id=challenge_id,
        details={
            "winners": [w.model_dump() for w in result.winners],
            "recipients_count": result.recipients_count,
        },
    )

    return result.model_dump(mode="json")

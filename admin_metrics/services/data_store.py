"""
Data access for the metrics engine.

DataStore is the contract the engine consumes: five reads and two writes.
SupabaseDataStore implements it over the service-role Supabase client.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from postgrest.exceptions import APIError
from pydantic import BaseModel, ValidationError

from admin_metrics.core.exceptions import DataStoreError, MalformedSnapshotError
from admin_metrics.models.challenges import Challenge, Participant
from admin_metrics.models.notifications import NotificationRecord
from admin_metrics.models.profiles import Profile, SegmentFilter
from admin_metrics.models.workouts import Workout

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# PostgREST caps a single response; page through larger tables
PAGE_SIZE = 1000

PARTICIPANT_COLUMNS = "id, challenge_id, user_id, progress, points, created_at"
PROFILE_EMBED = "profiles:user_id (id, display_name, avatar_url, level)"


class ChallengeQuery(BaseModel):
    ids: Optional[List[str]] = None
    # Completed challenges whose winners have not been announced yet
    awaiting_announcement: bool = False
    # Reference time for "completed"; wall clock when unset
    now: Optional[datetime] = None


class DataStore(ABC):
    """Storage collaborator. Implementations must be safe to share."""

    @abstractmethod
    def fetch_challenges(self, query: Optional[ChallengeQuery] = None) -> List[Challenge]:
        """Challenges with embedded participants."""

    @abstractmethod
    def fetch_profiles(
        self,
        segment_filter: Optional[SegmentFilter] = None,
        email: Optional[str] = None,
    ) -> List[Profile]:
        """Profiles, optionally pre-filtered by the store."""

    @abstractmethod
    def fetch_participants(self, challenge_id: str) -> List[Participant]:
        """Participants of one challenge with embedded profile."""

    @abstractmethod
    def fetch_workouts(self) -> List[Workout]:
        """Workouts with embedded sessions."""

    @abstractmethod
    def fetch_notification(self, notification_id: str) -> Optional[NotificationRecord]:
        """One notification row, or None."""

    @abstractmethod
    def update_challenge(
        self,
        challenge_id: str,
        values: Dict[str, Any],
        only_if_unannounced: bool = False,
    ) -> bool:
        """
        Update one challenge. With only_if_unannounced the write is a single
        conditional update on a null winner_announced_at.

        Returns:
            True when a row was updated
        """

    @abstractmethod
    def insert_notifications(self, records: Sequence[Dict[str, Any]]) -> int:
        """Bulk insert, all-or-nothing. Returns number of rows written."""


def _validate_rows(model: Type[M], rows: List[Dict[str, Any]], table: str) -> List[M]:
    try:
        return [model.model_validate(row) for row in rows]
    except ValidationError as e:
        raise MalformedSnapshotError(
            f"Rows from {table} failed validation",
            table=table,
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        ) from e


class SupabaseDataStore(DataStore):
    def __init__(self, client: Any = None) -> None:
        if client is None:
            from admin_metrics.core.database import get_supabase_client

            client = get_supabase_client()
        self.client = client

    def _fetch_all(self, table: str, build: Callable[[Any], Any]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        offset = 0
        try:
            while True:
                query = build(self.client.table(table))
                result = query.range(offset, offset + PAGE_SIZE - 1).execute()
                page = result.data or []
                rows.extend(page)
                if len(page) < PAGE_SIZE:
                    break
                offset += PAGE_SIZE
        except APIError as e:
            logger.error(f"Failed to read {table}: {e}", extra={"table": table})
            raise DataStoreError(f"Failed to read {table}", table=table, detail=str(e)) from e
        return rows

    def fetch_challenges(self, query: Optional[ChallengeQuery] = None) -> List[Challenge]:
        query = query or ChallengeQuery()

        def build(table):
            q = table.select(f"*, challenge_participants ({PARTICIPANT_COLUMNS})")
            if query.ids is not None:
                q = q.in_("id", query.ids)
            if query.awaiting_announcement:
                now = (query.now or datetime.now(timezone.utc)).isoformat()
                q = q.is_("winner_announced_at", "null").lt("end_date", now)
                return q.order("end_date", desc=True)
            return q.order("created_at")

        if query.ids is not None and not query.ids:
            return []
        return _validate_rows(Challenge, self._fetch_all("challenges", build), "challenges")

    def fetch_profiles(
        self,
        segment_filter: Optional[SegmentFilter] = None,
        email: Optional[str] = None,
    ) -> List[Profile]:
        def build(table):
            q = table.select("*, workout_sessions (id)")
            if email is not None:
                q = q.eq("email", email)
            if segment_filter is not None:
                if segment_filter.level_min is not None:
                    q = q.gte("level", segment_filter.level_min)
                if segment_filter.level_max is not None:
                    q = q.lte("level", segment_filter.level_max)
                if segment_filter.streak_min is not None:
                    q = q.gte("current_streak", segment_filter.streak_min)
                if segment_filter.streak_max is not None:
                    q = q.lte("current_streak", segment_filter.streak_max)
                if segment_filter.active_after is not None:
                    q = q.gte("last_active", segment_filter.active_after.isoformat())
            return q.order("id")

        return _validate_rows(Profile, self._fetch_all("profiles", build), "profiles")

    def fetch_participants(self, challenge_id: str) -> List[Participant]:
        def build(table):
            return (
                table.select(f"*, {PROFILE_EMBED}")
                .eq("challenge_id", challenge_id)
                .order("id")
            )

        rows = self._fetch_all("challenge_participants", build)
        return _validate_rows(Participant, rows, "challenge_participants")

    def fetch_workouts(self) -> List[Workout]:
        def build(table):
            return table.select(
                "*, workout_sessions (id, status, created_at)"
            ).order("created_at", desc=True)

        return _validate_rows(Workout, self._fetch_all("workouts", build), "workouts")

    def fetch_notification(self, notification_id: str) -> Optional[NotificationRecord]:
        def build(table):
            return table.select("*").eq("id", notification_id)

        rows = self._fetch_all("notifications", build)
        records = _validate_rows(NotificationRecord, rows, "notifications")
        return records[0] if records else None

    def update_challenge(
        self,
        challenge_id: str,
        values: Dict[str, Any],
        only_if_unannounced: bool = False,
    ) -> bool:
        try:
            q = self.client.table("challenges").update(values).eq("id", challenge_id)
            if only_if_unannounced:
                q = q.is_("winner_announced_at", "null")
            result = q.execute()
        except APIError as e:
            logger.error(
                f"Failed to update challenge {challenge_id}: {e}",
                extra={"challenge_id": challenge_id},
            )
            raise DataStoreError(
                "Failed to update challenge", challenge_id=challenge_id, detail=str(e)
            ) from e
        return bool(result.data)

    def insert_notifications(self, records: Sequence[Dict[str, Any]]) -> int:
        if not records:
            return 0
        try:
            result = self.client.table("notifications").insert(list(records)).execute()
        except APIError as e:
            logger.error(
                f"Failed to insert {len(records)} notifications: {e}",
                extra={"record_count": len(records)},
            )
            raise DataStoreError(
                "Failed to insert notifications", record_count=len(records), detail=str(e)
            ) from e
        return len(result.data) if result.data else len(records)

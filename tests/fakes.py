"""In-memory stand-ins for the data store, Redis and push channel."""

import copy
import fnmatch
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from admin_metrics.core.exceptions import DataStoreError
from admin_metrics.models.challenges import Challenge, Participant
from admin_metrics.models.common import parse_timestamp
from admin_metrics.models.notifications import NotificationRecord, PushDispatchReport
from admin_metrics.models.profiles import Profile, SegmentFilter
from admin_metrics.models.workouts import Workout
from admin_metrics.services.data_store import ChallengeQuery, DataStore, _validate_rows
from admin_metrics.services.push_service import PushChannel
from admin_metrics.services.segment_service import matches


class InMemoryDataStore(DataStore):
    """Rows are kept the way Supabase returns them (plain dicts)."""

    def __init__(
        self,
        challenges: Optional[List[dict]] = None,
        participants: Optional[List[dict]] = None,
        profiles: Optional[List[dict]] = None,
        workouts: Optional[List[dict]] = None,
        notifications: Optional[List[dict]] = None,
    ) -> None:
        self.challenges = copy.deepcopy(challenges or [])
        self.participants = copy.deepcopy(participants or [])
        self.profiles = copy.deepcopy(profiles or [])
        self.workouts = copy.deepcopy(workouts or [])
        self.notifications = copy.deepcopy(notifications or [])
        self.updates: List[Dict[str, Any]] = []
        self.fail_insert = False
        self.fail_reads = False

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise DataStoreError("store unavailable")

    def _profile_by_id(self, user_id: Optional[str]) -> Optional[dict]:
        for row in self.profiles:
            if row["id"] == user_id:
                return row
        return None

    def fetch_challenges(self, query: Optional[ChallengeQuery] = None) -> List[Challenge]:
        self._check_reads()
        query = query or ChallengeQuery()
        now = query.now or datetime.now(timezone.utc)
        rows = []
        for row in self.challenges:
            if query.ids is not None and row["id"] not in query.ids:
                continue
            if query.awaiting_announcement and (
                row.get("winner_announced_at") is not None
                or parse_timestamp(row["end_date"]) >= now
            ):
                continue
            embedded = [p for p in self.participants if p["challenge_id"] == row["id"]]
            rows.append({**row, "challenge_participants": embedded})
        return _validate_rows(Challenge, rows, "challenges")

    def fetch_profiles(
        self,
        segment_filter: Optional[SegmentFilter] = None,
        email: Optional[str] = None,
    ) -> List[Profile]:
        self._check_reads()
        profiles = [Profile.model_validate(row) for row in self.profiles]
        if email is not None:
            profiles = [p for p in profiles if p.email == email]
        if segment_filter is not None:
            profiles = [p for p in profiles if matches(p, segment_filter)]
        return profiles

    def fetch_participants(self, challenge_id: str) -> List[Participant]:
        self._check_reads()
        rows = []
        for row in self.participants:
            if row["challenge_id"] != challenge_id:
                continue
            profile = self._profile_by_id(row.get("user_id"))
            rows.append({**row, "profiles": profile})
        return _validate_rows(Participant, rows, "challenge_participants")

    def fetch_workouts(self) -> List[Workout]:
        self._check_reads()
        return [Workout.model_validate(row) for row in self.workouts]

    def fetch_notification(self, notification_id: str) -> Optional[NotificationRecord]:
        for row in self.notifications:
            if row.get("id") == notification_id:
                return NotificationRecord.model_validate(row)
        return None

    def update_challenge(
        self,
        challenge_id: str,
        values: Dict[str, Any],
        only_if_unannounced: bool = False,
    ) -> bool:
        self.updates.append(
            {"challenge_id": challenge_id, "values": values, "conditional": only_if_unannounced}
        )
        for row in self.challenges:
            if row["id"] != challenge_id:
                continue
            if only_if_unannounced and row.get("winner_announced_at") is not None:
                return False
            row.update(values)
            return True
        return False

    def insert_notifications(self, records: Sequence[Dict[str, Any]]) -> int:
        if self.fail_insert:
            raise DataStoreError("insert rejected", record_count=len(records))
        for record in records:
            self.notifications.append({"id": str(uuid.uuid4()), **record})
        return len(records)

    def challenge_row(self, challenge_id: str) -> dict:
        return next(row for row in self.challenges if row["id"] == challenge_id)


class RacingDataStore(InMemoryDataStore):
    """Another console instance announces between our read and our write."""

    def update_challenge(self, challenge_id, values, only_if_unannounced=False):
        if only_if_unannounced:
            self.challenge_row(challenge_id)["winner_announced_at"] = "2024-01-01T00:00:00Z"
        return super().update_challenge(challenge_id, values, only_if_unannounced)


class FakeRedis:
    def __init__(self) -> None:
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def scan_iter(self, match: str = "*", count: Optional[int] = None):
        return iter([key for key in list(self.store) if fnmatch.fnmatch(key, match)])

    def ping(self) -> bool:
        return True


class RecordingPushChannel(PushChannel):
    def __init__(self, fail: bool = False, failed_user_ids: Optional[List[str]] = None) -> None:
        self.fail = fail
        self.failed_user_ids = failed_user_ids or []
        self.batches: List[Dict[str, Any]] = []

    def dispatch(self, user_ids, title, body, data=None) -> PushDispatchReport:
        if self.fail:
            raise ConnectionError("push provider unreachable")
        self.batches.append(
            {"user_ids": list(user_ids), "title": title, "body": body, "data": data}
        )
        return PushDispatchReport(
            requested=len(user_ids),
            delivered=len(user_ids) - len(self.failed_user_ids),
            queued=True,
            failed_user_ids=list(self.failed_user_ids),
        )

"""
Pytest configuration and fixtures for the admin metrics tests.

Unit and API tests run against an in-memory data store, a dict-backed Redis
and a recording push channel. Live-store tests need SUPABASE_URL and
SUPABASE_SERVICE_KEY and are skipped otherwise.
"""

import os
from datetime import datetime, timezone
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from admin_metrics.api.deps import get_data_store, get_push
from admin_metrics.core import cache, database
from admin_metrics.core.admin_auth import get_current_admin
from main import app
from tests.fakes import FakeRedis, InMemoryDataStore, RecordingPushChannel


def _supabase_configured() -> bool:
    """Check if Supabase is configured for integration tests."""
    return bool(os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_SERVICE_KEY"))


requires_supabase = pytest.mark.skipif(
    not _supabase_configured(),
    reason="SUPABASE_URL and SUPABASE_SERVICE_KEY required for integration tests",
)

# Reference time for deterministic windows and statuses
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)

ADMIN_USER = {
    "id": "admin-1",
    "email": "admin@example.com",
    "display_name": "Admin",
    "role": "admin",
}


def challenge_rows() -> list:
    return [
        {
            "id": "c-done",
            "title": "January Step Challenge",
            "type": "community",
            "start_date": "2024-01-01T00:00:00Z",
            "end_date": "2024-01-31T23:59:59Z",
            "reward_amount": 50,
            "winner_announced_at": None,
            "winner_data": None,
            "created_at": "2023-12-20T09:00:00Z",
        },
        {
            "id": "c-active",
            "title": "Spring Plank",
            "type": "verified",
            "start_date": "2024-03-01T00:00:00Z",
            "end_date": "2099-12-31T00:00:00Z",
            "reward_amount": None,
            "created_at": "2024-02-20T09:00:00Z",
        },
        {
            "id": "c-announced",
            "title": "New Year Sprint",
            "type": "local",
            "start_date": "2023-12-01T00:00:00Z",
            "end_date": "2023-12-31T00:00:00Z",
            "reward_amount": 10,
            "winner_announced_at": "2024-01-02T10:00:00Z",
            "winner_data": [{"rank": 1, "user_id": "u2", "user_name": "Bob", "points": 40}],
            "created_at": "2023-11-25T09:00:00Z",
        },
        {
            "id": "c-empty",
            "title": "Ghost Challenge",
            "type": "local",
            "start_date": "2024-02-01T00:00:00Z",
            "end_date": "2024-02-10T00:00:00Z",
            "created_at": "2024-01-25T09:00:00Z",
        },
    ]


def participant_rows() -> list:
    return [
        # Equal points on p1/p2: the earlier join (p2) ranks first
        {"id": "p1", "challenge_id": "c-done", "user_id": "u1", "progress": 100, "points": 90,
         "created_at": "2024-01-03T08:00:00Z"},
        {"id": "p2", "challenge_id": "c-done", "user_id": "u2", "progress": 80, "points": 90,
         "created_at": "2024-01-02T08:00:00Z"},
        {"id": "p3", "challenge_id": "c-done", "user_id": "u3", "progress": 100, "points": 70,
         "created_at": "2024-01-01T08:00:00Z"},
        {"id": "p4", "challenge_id": "c-active", "user_id": "u1", "progress": 20, "points": 10,
         "created_at": "2024-03-14T08:00:00Z"},
        {"id": "p5", "challenge_id": "c-announced", "user_id": "u2", "progress": 100,
         "points": 40, "created_at": "2023-12-02T08:00:00Z"},
    ]


def _sessions(count: int) -> list:
    return [{"id": f"ws{i}"} for i in range(count)]


def profile_rows() -> list:
    return [
        {"id": "u1", "display_name": "Alice", "email": "alice@example.com", "level": 12,
         "current_streak": 9, "last_active": "2024-03-10T07:00:00Z",
         "workout_sessions": _sessions(6)},
        {"id": "u2", "display_name": "Bob", "email": "bob@example.com", "level": 30,
         "current_streak": 31, "last_active": "2024-02-01T07:00:00Z",
         "workout_sessions": _sessions(52)},
        {"id": "u3", "display_name": "Cara", "email": "cara@example.com", "level": 5,
         "current_streak": 2, "last_active": None},
        {"id": "u4", "display_name": "Dan", "email": "dan@example.com", "level": 55,
         "current_streak": 16, "last_active": "2024-03-14T07:00:00Z",
         "workout_sessions": _sessions(20)},
    ]


def workout_rows() -> list:
    return [
        {"id": "w1", "title": "Morning Run", "category": "cardio", "duration_minutes": 30,
         "workout_sessions": [
             {"id": "s1", "status": "completed"},
             {"id": "s2", "status": "completed"},
             {"id": "s3", "status": "abandoned"},
         ]},
        {"id": "w2", "title": "HIIT Blast", "category": "cardio", "duration_minutes": 20,
         "workout_sessions": []},
        {"id": "w3", "title": "Sunrise Yoga", "category": "flexibility", "duration_minutes": 45,
         "workout_sessions": [{"id": "s4", "status": "completed"}]},
    ]


@pytest.fixture
def store() -> InMemoryDataStore:
    return InMemoryDataStore(
        challenges=challenge_rows(),
        participants=participant_rows(),
        profiles=profile_rows(),
        workouts=workout_rows(),
    )


@pytest.fixture
def push() -> RecordingPushChannel:
    return RecordingPushChannel()


@pytest.fixture(autouse=True)
def fake_redis() -> Generator[FakeRedis, None, None]:
    """Every test gets an empty in-memory Redis."""
    client = FakeRedis()
    cache.set_redis_client(client)
    yield client
    cache.set_redis_client(None)


@pytest.fixture(autouse=True)
def mock_supabase(monkeypatch) -> MagicMock:
    """Keep audit logging and health checks off the network."""
    client = MagicMock()
    monkeypatch.setattr(database, "_supabase_client", client)
    return client


@pytest.fixture
def client(store, push) -> Generator[TestClient, None, None]:
    """Test client with the store, push channel and admin dependency swapped out."""
    app.dependency_overrides[get_data_store] = lambda: store
    app.dependency_overrides[get_push] = lambda: push
    app.dependency_overrides[get_current_admin] = lambda: ADMIN_USER
    with TestClient(app, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def api_base() -> str:
    return "/api"

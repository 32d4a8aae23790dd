"""Tests for the admin Celery tasks, run eagerly in-process."""

from unittest.mock import MagicMock

from admin_metrics.core.celery_client import celery_app
from admin_metrics.models.notifications import PushDispatchReport
from admin_metrics.services import dashboard_service
from admin_metrics.services.dashboard_service import dashboard_cache_key
from admin_metrics.services.tasks import analytics_tasks, push_tasks
from admin_metrics.services.tasks import (
    recompute_dashboard_stats_task,
    send_push_batch_task,
)


def test_tasks_are_routed_to_admin_queue():
    assert "admin.send_push_batch" in celery_app.tasks
    assert "admin.recompute_dashboard_stats" in celery_app.tasks
    assert celery_app.conf.task_routes == {"admin.*": {"queue": "admin"}}


def test_recompute_task_refreshes_cache(store, fake_redis, monkeypatch):
    monkeypatch.setattr(dashboard_service, "SupabaseDataStore", lambda: store)

    result = recompute_dashboard_stats_task({"table": "challenge_participants", "event": "INSERT"})
    assert result["success"] is True
    assert result["total_challenges"] == 4
    assert dashboard_cache_key() in fake_redis.store


def test_recompute_task_reports_store_errors(store, monkeypatch):
    store.fail_reads = True
    monkeypatch.setattr(dashboard_service, "SupabaseDataStore", lambda: store)

    result = recompute_dashboard_stats_task()
    assert result["success"] is False
    assert result["error"] == "DataStoreError"


def test_recompute_task_uses_handler(monkeypatch):
    handler = MagicMock()
    handler.return_value.total_challenges = 0
    handler.return_value.generated_at.isoformat.return_value = "2024-03-15T12:00:00+00:00"
    monkeypatch.setattr(analytics_tasks, "handle_snapshot_changed", handler)

    assert recompute_dashboard_stats_task(None)["generated_at"] == "2024-03-15T12:00:00+00:00"
    handler.assert_called_once_with(None)


def test_push_batch_reports_failed_users(monkeypatch):
    channel = MagicMock()
    channel.dispatch.return_value = PushDispatchReport(
        requested=2, delivered=1, failed_user_ids=["u2"]
    )
    monkeypatch.setattr(push_tasks, "ExpoPushChannel", lambda: channel)

    result = send_push_batch_task(["u1", "u2"], "t", "b", {"type": "general"})
    assert result == {
        "success": False,
        "requested": 2,
        "delivered": 1,
        "failed_user_ids": ["u2"],
    }
    channel.dispatch.assert_called_once_with(["u1", "u2"], "t", "b", {"type": "general"})


def test_push_batch_survives_provider_outage(monkeypatch):
    channel = MagicMock()
    channel.dispatch.side_effect = ConnectionError("expo down")
    monkeypatch.setattr(push_tasks, "ExpoPushChannel", lambda: channel)

    result = send_push_batch_task(["u1"], "t", "b")
    assert result["success"] is False
    assert result["requested"] == 1

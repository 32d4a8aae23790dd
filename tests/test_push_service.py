"""Tests for push channels."""

from unittest.mock import MagicMock

import pytest
from exponent_server_sdk import DeviceNotRegisteredError, PushServerError

from admin_metrics.core.config import settings
from admin_metrics.core.exceptions import InvalidParameterError
from admin_metrics.services import push_service
from admin_metrics.services.push_service import (
    CeleryPushChannel,
    ExpoPushChannel,
    NullPushChannel,
    deliver_best_effort,
    get_push_channel,
    truncate_body,
)

from tests.fakes import RecordingPushChannel

VALID_TOKEN = "ExponentPushToken[abc123]"


def test_truncate_body():
    assert truncate_body("short") == "short"
    assert truncate_body("a" * 100) == "a" * 100
    assert truncate_body("a" * 101) == "a" * 100 + "..."
    assert truncate_body("abcdef", max_chars=3) == "abc..."


def test_token_format():
    assert push_service.is_valid_expo_token(VALID_TOKEN)
    assert not push_service.is_valid_expo_token("fcm:xyz")


def test_celery_channel_enqueues_named_task():
    app = MagicMock()
    app.send_task.return_value.id = "task-1"
    report = CeleryPushChannel(app).dispatch(["u1", "u2"], "t", "b", {"k": "v"})

    app.send_task.assert_called_once_with(
        "admin.send_push_batch",
        kwargs={"user_ids": ["u1", "u2"], "title": "t", "body": "b", "data": {"k": "v"}},
    )
    assert report.queued is True
    assert report.task_id == "task-1"
    assert report.requested == 2


def test_null_channel():
    report = NullPushChannel().dispatch(["u1"], "t", "b")
    assert report.requested == 1
    assert report.delivered == 0


def test_get_push_channel(monkeypatch):
    monkeypatch.setattr(settings, "PUSH_CHANNEL", "none")
    assert isinstance(get_push_channel(), NullPushChannel)
    monkeypatch.setattr(settings, "PUSH_CHANNEL", "carrier-pigeon")
    with pytest.raises(InvalidParameterError):
        get_push_channel()


def test_deliver_best_effort_never_raises():
    dispatched, warnings = deliver_best_effort(
        RecordingPushChannel(fail=True), ["u1", "u2"], "t", "b", challenge_id="c1"
    )
    assert dispatched is False
    assert warnings[0].failed_user_ids == ["u1", "u2"]
    assert warnings[0].context["challenge_id"] == "c1"


def test_deliver_best_effort_skips_empty_audience():
    push = RecordingPushChannel()
    assert deliver_best_effort(push, [], "t", "b") == (False, [])
    assert push.batches == []


def _supabase(prefs=None, tokens=None):
    """Supabase mock answering the preference and token queries."""
    client = MagicMock()
    tables = {}

    def table(name):
        if name not in tables:
            query = MagicMock()
            chain = query.select.return_value.eq.return_value
            if name == "notification_preferences":
                chain.maybe_single.return_value.execute.return_value.data = prefs
            elif name == "device_tokens":
                chain.eq.return_value.execute.return_value.data = tokens or []
            tables[name] = query
        return tables[name]

    client.table.side_effect = table
    client.tables = tables
    return client


def _response(error=None):
    response = MagicMock()
    if error is not None:
        response.validate_response.side_effect = error
    return response


def test_expo_channel_delivers_to_active_tokens():
    push_client = MagicMock()
    push_client.publish_multiple.return_value = [_response()]
    channel = ExpoPushChannel(
        client=_supabase(tokens=[{"id": "t1", "fcm_token": VALID_TOKEN}]),
        push_client=push_client,
    )
    report = channel.dispatch(["u1"], "t", "b", {"type": "general"})

    assert report.delivered == 1
    assert report.failed_user_ids == []
    (messages,), _ = push_client.publish_multiple.call_args
    assert messages[0].to == VALID_TOKEN
    assert messages[0].data == {"type": "general"}


def test_expo_channel_respects_disabled_preferences():
    push_client = MagicMock()
    channel = ExpoPushChannel(
        client=_supabase(prefs={"enabled": True, "push_notifications": False}),
        push_client=push_client,
    )
    report = channel.dispatch(["u1"], "t", "b")
    assert report.delivered == 0
    assert report.failed_user_ids == []
    push_client.publish_multiple.assert_not_called()


def test_expo_channel_users_without_tokens_are_not_failures():
    channel = ExpoPushChannel(client=_supabase(tokens=[]), push_client=MagicMock())
    assert channel.dispatch(["u1"], "t", "b").failed_user_ids == []


def test_expo_channel_reports_failed_users():
    push_client = MagicMock()
    push_client.publish_multiple.side_effect = PushServerError("down", MagicMock())
    channel = ExpoPushChannel(
        client=_supabase(tokens=[{"id": "t1", "fcm_token": VALID_TOKEN}]),
        push_client=push_client,
    )
    assert channel.dispatch(["u1"], "t", "b").failed_user_ids == ["u1"]


def test_expo_channel_deactivates_unregistered_devices():
    supabase = _supabase(
        tokens=[
            {"id": "t1", "fcm_token": VALID_TOKEN},
            {"id": "t2", "fcm_token": "ExponentPushToken[gone]"},
        ]
    )
    push_client = MagicMock()
    push_client.publish_multiple.return_value = [
        _response(),
        _response(DeviceNotRegisteredError(MagicMock())),
    ]
    report = ExpoPushChannel(client=supabase, push_client=push_client).dispatch(
        ["u1"], "t", "b"
    )
    assert report.delivered == 1
    assert report.failed_user_ids == []
    tokens = supabase.tables["device_tokens"]
    tokens.update.assert_called_once_with({"is_active": False})
    tokens.update.return_value.in_.assert_called_once_with("id", ["t2"])

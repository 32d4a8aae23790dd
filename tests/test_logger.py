"""Tests for the package log format."""

import logging
import sys

from admin_metrics.services.logger import configure_logging


def _format(msg, extra=None, exc_info=None):
    logger = configure_logging()
    record = logger.makeRecord(
        "admin_metrics.services.push_service",
        logging.WARNING,
        __file__,
        1,
        msg,
        None,
        exc_info,
        extra=extra,
    )
    return logger.handlers[0].format(record)


def test_extra_context_is_rendered_on_the_line():
    line = _format(
        "Push failed for 1 of 2 users",
        extra={"failed_user_ids": ["u2"], "challenge_id": "c1"},
    )
    assert "WARNING [admin_metrics.services.push_service] Push failed for 1 of 2 users" in line
    assert line.endswith("challenge_id='c1' failed_user_ids=['u2']")


def test_plain_records_have_no_trailing_context():
    assert _format("Dashboard stats recomputed").endswith("Dashboard stats recomputed")


def test_context_stays_on_the_first_line_of_a_traceback():
    try:
        raise ValueError("boom")
    except ValueError:
        line = _format("Insert failed", extra={"table": "notifications"}, exc_info=sys.exc_info())
    first, _, rest = line.partition("\n")
    assert first.endswith("Insert failed table='notifications'")
    assert "ValueError: boom" in rest

"""Tests for notice construction and sinks."""
from __future__ import annotations

import io
from unittest.mock import MagicMock

from slack_sdk.errors import SlackApiError

from feedback_lens.notices import (
    ConsoleNoticeSink,
    Notice,
    SlackNoticeSink,
    batch_failure_notice,
    completion_notice,
    insights_failure_notice,
)
from feedback_lens.pipeline.outcome import FailureKind, Outcome


def test_batch_failure_notice_capacity():
    notice = batch_failure_notice(2, 3, Outcome.failure(RuntimeError("429 Too Many Requests")))
    assert notice.title == "Batch 2 Analysis Error"
    assert notice.kind is FailureKind.CAPACITY
    assert "API limits" in notice.message
    assert notice.level == "error"


def test_batch_failure_notice_other():
    notice = batch_failure_notice(1, 1, Outcome.failure(KeyError("id")))
    assert notice.kind is FailureKind.OTHER
    assert "batch 1 of 1 failed" in notice.message
    assert "Check the logs" in notice.message


def test_insights_and_completion_notices():
    assert insights_failure_notice(Outcome.failure(RuntimeError("quota exceeded"))).title == (
        "Key Insight Generation Limited"
    )
    done = completion_notice(17, 32)
    assert done.title == "Analysis Complete!"
    assert "17 of 32" in done.message


def test_console_sink_writes_line():
    stream = io.StringIO()
    ConsoleNoticeSink(stream)(Notice("Heads up", "something", level="warning"))
    assert stream.getvalue() == "[!] Heads up: something\n"


def test_slack_sink_posts_message():
    client = MagicMock()
    SlackNoticeSink(client, "C1")(Notice("Done", "all good"))
    client.chat_postMessage.assert_called_once_with(channel="C1", text="*Done*\nall good")


def test_slack_sink_swallows_api_errors(caplog):
    client = MagicMock()
    client.chat_postMessage.side_effect = SlackApiError(
        "boom", {"ok": False, "error": "channel_not_found"}
    )
    SlackNoticeSink(client, "C1")(Notice("Done", "all good"))
    assert "channel_not_found" in caplog.text

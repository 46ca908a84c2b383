"""User-visible notices raised while a run progresses.

A *notice* is the toast-style message a user sees when something non-fatal
happens (a batch failed, insights are unavailable) or when a run finishes.
Sinks are plain callables so the CLI, Slack or a test can receive them.
"""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Callable, Optional, TextIO

from slack_sdk.errors import SlackApiError

from feedback_lens.pipeline.outcome import FailureKind, Outcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    """A short titled message for the user."""

    title: str
    message: str
    level: str = "info"  # "info" | "warning" | "error"
    kind: Optional[FailureKind] = None


NoticeSink = Callable[[Notice], None]


def batch_failure_notice(
    batch_number: int, batch_count: int, outcome: Outcome
) -> Notice:
    if outcome.kind is FailureKind.CAPACITY:
        message = (
            f"Analysis for batch {batch_number} of {batch_count} failed due to API "
            "limits or service unavailability. Some results may be missing."
        )
    else:
        message = (
            f"Analysis for batch {batch_number} of {batch_count} failed: "
            f"{outcome.describe()}. Check the logs."
        )
    return Notice(
        title=f"Batch {batch_number} Analysis Error",
        message=message,
        level="error",
        kind=outcome.kind,
    )


def insights_failure_notice(outcome: Outcome) -> Notice:
    if outcome.kind is FailureKind.CAPACITY:
        message = (
            "Could not generate key insights due to API limits or service "
            "unavailability. Some insights might be unavailable."
        )
    else:
        message = f"Could not generate key insights: {outcome.describe()}. Check the logs."
    return Notice(
        title="Key Insight Generation Limited",
        message=message,
        level="warning",
        kind=outcome.kind,
    )


def completion_notice(labeled: int, total: int) -> Notice:
    return Notice(
        title="Analysis Complete!",
        message=f"{labeled} of {total} items fully analyzed. Your report is ready.",
    )


class ConsoleNoticeSink:
    """Print notices to a text stream (stderr by default)."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    def __call__(self, notice: Notice) -> None:
        stream = self._stream or sys.stderr
        marker = {"error": "✗", "warning": "!"}.get(notice.level, "✓")
        print(f"[{marker}] {notice.title}: {notice.message}", file=stream)


class SlackNoticeSink:
    """Post notices to a Slack channel using a ``slack_sdk`` WebClient."""

    def __init__(self, client, channel: str) -> None:
        self._client = client
        self._channel = channel

    def __call__(self, notice: Notice) -> None:
        try:
            self._client.chat_postMessage(
                channel=self._channel,
                text=f"*{notice.title}*\n{notice.message}",
            )
        except SlackApiError as exc:
            logger.warning(
                "Failed to post notice '%s' to %s: %s",
                notice.title,
                self._channel,
                exc.response.get("error"),
            )

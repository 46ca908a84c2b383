"""Context dataclass for rendering analysis reports.

This module defines `ReportContext`, a typed container that holds all
values expected by the master Jinja2 template located in
`feedback_lens/reporting/templates/report.md.j2`.

Keeping context building apart from template rendering gives a clear
contract between the aggregation logic and Jinja2, and lets the business
logic be unit-tested without touching template strings.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from datetime import datetime as _dt
from datetime import timezone as _tz
from typing import Any, Dict, List, Optional

from feedback_lens.reporting import config
from feedback_lens.reporting.aggregator import sentiment_totals, top_topics
from feedback_lens.reporting.models import ProcessedReport

__all__ = [
    "Stats",
    "ReportContext",
    "build_report_context",
]


@dataclass(slots=True)
class Stats:
    """Classification coverage displayed in the report."""

    labeled: int
    total: int

    @property
    def unlabeled(self) -> int:
        return self.total - self.labeled

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["unlabeled"] = self.unlabeled
        return d


@dataclass(slots=True)
class ReportContext:
    """Container with all fields used by the report template."""

    # Header & meta
    title: str
    date: str  # ISO-8601 date string (UTC)

    # Coverage & sentiment
    stats: Stats
    emoji_bar: str
    sentiment_counts: Dict[str, int]

    # Aggregates
    sentiment_over_time: List[Dict[str, Any]] = field(default_factory=list)
    topics: List[Dict[str, Any]] = field(default_factory=list)

    # Key insights (both empty when unavailable)
    urgent_issue: str = ""
    overall_sentiment: str = ""

    # Verbatim comments (capped)
    comments: List[Dict[str, Any]] = field(default_factory=list)
    omitted_comments: int = 0

    version: str = "1"
    source_file_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return a *plain* ``dict`` (recursively) for Jinja rendering."""
        d = asdict(self)
        d["stats"] = self.stats.to_dict()
        return d

    # Alias for convenience (e.g. template kwargs)
    __call__ = to_dict


def _emoji_bar(counts: Dict[str, int], max_emoji: int = 20) -> str:
    """Return a string bar of emojis based on *counts*.

    Positive → 😊, Neutral → 😐, Negative → 🙁.  Limit total length to
    *max_emoji*.
    """

    pos = counts.get("positive", 0)
    neu = counts.get("neutral", 0)
    neg = counts.get("negative", 0)
    total = pos + neu + neg or 1

    scale = max_emoji / total
    pos_e = "😊" * max(1 if pos else 0, round(pos * scale))
    neu_e = "😐" * max(1 if neu else 0, round(neu * scale))
    neg_e = "🙁" * max(1 if neg else 0, round(neg * scale))
    return pos_e + neu_e + neg_e


def build_report_context(
    report: ProcessedReport,
    *,
    title: str = "Feedback Analysis",
    source_file_name: Optional[str] = None,
) -> ReportContext:
    """Convert a :class:`ProcessedReport` into a :class:`ReportContext`.

    The function is *pure*; it does not mutate *report*.
    """

    counts = sentiment_totals(report.feedback_items)
    comments = [
        {
            "text": unit.feedback_text,
            "sentiment": unit.sentiment.value if unit.sentiment else "unlabeled",
            "topics": ", ".join(unit.topics or []),
        }
        for unit in report.feedback_items
    ]
    shown = comments[: config.MAX_COMMENTS]
    insights = report.key_insights

    return ReportContext(
        title=title,
        date=_dt.now(tz=_tz.utc).strftime("%Y-%m-%d"),
        stats=Stats(labeled=report.labeled_count, total=len(report.feedback_items)),
        emoji_bar=_emoji_bar(counts, config.MAX_EMOJI_BAR),
        sentiment_counts=counts,
        sentiment_over_time=[
            {
                "bucket": point.bucket_key,
                "positive": point.positive,
                "negative": point.negative,
                "neutral": point.neutral,
            }
            for point in report.sentiment_over_time
        ],
        topics=[
            {
                "name": entry.topic,
                "positive": entry.positive,
                "negative": entry.negative,
                "neutral": entry.neutral,
                "total": entry.total,
            }
            for entry in top_topics(report.topic_distribution, config.TOP_TOPICS)
        ],
        urgent_issue=insights.urgent_issue if insights else "",
        overall_sentiment=insights.overall_sentiment if insights else "",
        comments=shown,
        omitted_comments=len(comments) - len(shown),
        version=os.getenv("REPORT_VERSION", "0.1"),
        source_file_name=source_file_name,
    )

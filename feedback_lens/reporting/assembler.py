"""Assemble a :class:`ProcessedReport` and convert it to/from its stored form.

The stored form is a JSON-compatible ``dict``. The only representational
change is the unit timestamp, which becomes an ISO-8601 UTC string with
millisecond precision (``2024-01-05T10:30:00.000Z``) or is omitted.
"""
from __future__ import annotations

import datetime
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from feedback_lens.analysis.units import AnalysisUnit
from feedback_lens.exceptions import ReportValidationError
from feedback_lens.reporting.aggregator import sentiment_over_time, topic_distribution
from feedback_lens.reporting.models import (
    KeyInsights,
    ProcessedReport,
    SentimentDataPoint,
    TopicSentimentDistribution,
)
from feedback_lens.reporting.schema import ProcessedReportDocument


def assemble_report(
    units: Iterable[AnalysisUnit], key_insights: Optional[KeyInsights] = None
) -> ProcessedReport:
    """Combine *units* (in original order) with both projections and insights."""
    ordered = sorted(units, key=lambda unit: unit.original_index)
    return ProcessedReport(
        feedback_items=ordered,
        sentiment_over_time=sentiment_over_time(ordered),
        topic_distribution=topic_distribution(ordered),
        key_insights=key_insights,
    )


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------
def format_timestamp(timestamp: datetime.datetime) -> str:
    """Return *timestamp* as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` (UTC)."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=datetime.timezone.utc)
    utc = timestamp.astimezone(datetime.timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_stored_timestamp(value: str) -> datetime.datetime:
    """Inverse of :func:`format_timestamp` (accepts any UTC offset)."""
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    return datetime.datetime.fromisoformat(text).astimezone(datetime.timezone.utc)


# ---------------------------------------------------------------------------
# Report <-> document
# ---------------------------------------------------------------------------
def _timestamp_text(unit: AnalysisUnit) -> str:
    # A loaded report keeps its original string as long as the value is unchanged
    if unit.timestamp_text and parse_stored_timestamp(unit.timestamp_text) == unit.timestamp:
        return unit.timestamp_text
    return format_timestamp(unit.timestamp)


def _unit_to_document(unit: AnalysisUnit) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": unit.id,
        "originalIndex": unit.original_index,
        "fullData": dict(unit.full_data),
        "feedbackText": unit.feedback_text,
    }
    if unit.timestamp is not None:
        doc["timestamp"] = _timestamp_text(unit)
    if unit.sentiment is not None:
        doc["sentiment"] = unit.sentiment.value
    if unit.sentiment_score is not None:
        doc["sentimentScore"] = unit.sentiment_score
    if unit.topics is not None:
        doc["topics"] = list(unit.topics)
    return doc


def report_to_document(report: ProcessedReport) -> Dict[str, Any]:
    """Return the JSON-compatible storage form of *report*."""
    insights = report.key_insights
    return {
        "feedbackItems": [_unit_to_document(unit) for unit in report.feedback_items],
        "sentimentOverTime": [
            {
                "date": point.bucket_key,
                "positive": point.positive,
                "negative": point.negative,
                "neutral": point.neutral,
            }
            for point in report.sentiment_over_time
        ],
        "topicDistribution": [
            {
                "name": entry.topic,
                "positive": entry.positive,
                "negative": entry.negative,
                "neutral": entry.neutral,
                "total": entry.total,
            }
            for entry in report.topic_distribution
        ],
        "keyInsights": (
            {
                "urgentIssue": insights.urgent_issue,
                "overallSentiment": insights.overall_sentiment,
            }
            if insights is not None
            else None
        ),
    }


def _score(value: Optional[float]) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def report_from_document(document: Any) -> ProcessedReport:
    """Validate *document* and rebuild the in-memory report.

    Raises
    ------
    ReportValidationError
        If *document* does not have the expected report structure.
    """
    try:
        doc = ProcessedReportDocument.model_validate(document)
    except PydanticValidationError as exc:
        raise ReportValidationError(
            f"Stored report failed validation ({exc.error_count()} error(s))"
        ) from exc

    units = [
        AnalysisUnit(
            id=item.id,
            original_index=item.originalIndex,
            full_data=dict(item.fullData),
            feedback_text=item.feedbackText,
            timestamp=(
                parse_stored_timestamp(item.timestamp) if item.timestamp else None
            ),
            timestamp_text=item.timestamp or None,
            sentiment=item.sentiment,
            sentiment_score=_score(item.sentimentScore),
            topics=list(item.topics) if item.topics is not None else None,
        )
        for item in doc.feedbackItems
    ]
    insights = (
        KeyInsights(
            urgent_issue=doc.keyInsights.urgentIssue,
            overall_sentiment=doc.keyInsights.overallSentiment,
        )
        if doc.keyInsights is not None
        else None
    )
    return ProcessedReport(
        feedback_items=units,
        sentiment_over_time=[
            SentimentDataPoint(
                bucket_key=point.date,
                positive=point.positive,
                negative=point.negative,
                neutral=point.neutral,
            )
            for point in doc.sentimentOverTime
        ],
        topic_distribution=[
            TopicSentimentDistribution(
                topic=entry.name,
                positive=entry.positive,
                negative=entry.negative,
                neutral=entry.neutral,
                total=entry.total,
            )
            for entry in doc.topicDistribution
        ],
        key_insights=insights,
    )

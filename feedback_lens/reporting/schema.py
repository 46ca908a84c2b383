"""Pydantic schema for the stored form of a processed report.

Stored documents keep the camelCase keys of the original document layout;
this module is the single place that knows them.
"""
from __future__ import annotations

import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from feedback_lens.analysis.sentiment import SentimentLabel


class _Document(BaseModel):
    model_config = ConfigDict(extra="ignore")


class FeedbackItemDocument(_Document):
    id: str
    originalIndex: int
    fullData: Dict[str, str]
    feedbackText: str
    timestamp: Optional[str] = None
    sentiment: Optional[SentimentLabel] = None
    sentimentScore: Optional[float] = None
    topics: Optional[List[str]] = None

    @field_validator("timestamp")
    @classmethod
    def _iso_datetime_with_offset(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"timestamp is not an ISO-8601 datetime: {value!r}") from exc
        if parsed.tzinfo is None:
            raise ValueError("timestamp must carry a UTC offset")
        try:
            parsed.astimezone(datetime.timezone.utc)
        except OverflowError as exc:
            raise ValueError(f"timestamp is out of range in UTC: {value!r}") from exc
        return value


class SentimentDataPointDocument(_Document):
    date: str
    positive: int
    negative: int
    neutral: int


class TopicDistributionDocument(_Document):
    name: str
    positive: int
    negative: int
    neutral: int
    total: int


class KeyInsightsDocument(_Document):
    urgentIssue: str
    overallSentiment: str


class ProcessedReportDocument(_Document):
    feedbackItems: List[FeedbackItemDocument]
    sentimentOverTime: List[SentimentDataPointDocument]
    topicDistribution: List[TopicDistributionDocument]
    keyInsights: Optional[KeyInsightsDocument] = None

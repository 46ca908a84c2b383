"""Data structures for the reporting pipeline."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from feedback_lens.analysis.units import AnalysisUnit

# Bucket key used when no labeled unit carries a timestamp
OVERALL_BUCKET = "Overall"


@dataclass(slots=True)
class SentimentDataPoint:
    """Sentiment counts for one calendar date (or the ``Overall`` bucket)."""

    bucket_key: str
    positive: int = 0
    negative: int = 0
    neutral: int = 0

    @property
    def total(self) -> int:
        return self.positive + self.negative + self.neutral


@dataclass(slots=True)
class TopicSentimentDistribution:
    """How often a topic was mentioned, split by sentiment."""

    topic: str
    positive: int = 0
    negative: int = 0
    neutral: int = 0
    total: int = 0


@dataclass(frozen=True)
class KeyInsights:
    """Report-wide summary produced by the insights call."""

    urgent_issue: str
    overall_sentiment: str


@dataclass(slots=True)
class ProcessedReport:
    """Full aggregated output of one analysis run."""

    feedback_items: List[AnalysisUnit]
    sentiment_over_time: List[SentimentDataPoint] = field(default_factory=list)
    topic_distribution: List[TopicSentimentDistribution] = field(default_factory=list)
    key_insights: Optional[KeyInsights] = None

    @property
    def labeled_count(self) -> int:
        return sum(1 for unit in self.feedback_items if unit.is_labeled)


@dataclass(frozen=True)
class StoredReportRecord:
    """A saved report as read back from the store.

    ``processed_data`` is the storage document (timestamps as ISO strings);
    use :func:`feedback_lens.reporting.assembler.report_from_document` to
    turn it back into a :class:`ProcessedReport`.
    """

    storage_id: str
    user_id: str
    analysis_name: str
    source_file_name: str
    processed_data: Dict[str, Any]
    created_at: datetime.datetime


@dataclass(frozen=True)
class ReportSummary:
    """Listing entry for a saved report."""

    storage_id: str
    analysis_name: str
    created_at: datetime.datetime

"""Derive the dashboard projections from labeled analysis units."""

from __future__ import annotations

import datetime
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from feedback_lens.analysis.sentiment import empty_counts
from feedback_lens.analysis.units import AnalysisUnit
from feedback_lens.reporting import config
from feedback_lens.reporting.models import (
    OVERALL_BUCKET,
    SentimentDataPoint,
    TopicSentimentDistribution,
)

logger = logging.getLogger(__name__)


def _date_key(timestamp: datetime.datetime) -> str:
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(datetime.timezone.utc)
    return timestamp.date().isoformat()


def sentiment_over_time(units: Iterable[AnalysisUnit]) -> List[SentimentDataPoint]:
    """Return per-day sentiment counts, or a single ``Overall`` bucket.

    Labeled units with a timestamp are counted under their UTC date. Labeled
    units without one are counted under ``Overall``, which is only emitted
    when no dated bucket exists at all. The series is therefore either
    wholly date based (ascending) or a single aggregate; never both.
    """
    dated: Dict[str, Dict[str, int]] = {}
    overall: Optional[Dict[str, int]] = None

    for unit in units:
        if unit.sentiment is None:
            continue
        if unit.timestamp is not None:
            bucket = dated.setdefault(_date_key(unit.timestamp), empty_counts())
        else:
            if overall is None:
                overall = empty_counts()
            bucket = overall
        bucket[unit.sentiment.value] += 1

    if dated:
        if overall is not None:
            logger.debug(
                "Discarding %d undated labeled items from dated series",
                sum(overall.values()),
            )
        return [
            SentimentDataPoint(bucket_key=key, **dated[key]) for key in sorted(dated)
        ]
    if overall is not None:
        return [SentimentDataPoint(bucket_key=OVERALL_BUCKET, **overall)]
    return []


def topic_distribution(
    units: Iterable[AnalysisUnit],
) -> List[TopicSentimentDistribution]:
    """Count topic mentions split by sentiment, most mentioned first.

    Every (unit, topic) pair increments the topic's ``total``; labeled units
    also increment the matching sentiment counter.
    """
    by_topic: Dict[str, TopicSentimentDistribution] = {}
    for unit in units:
        if not unit.topics:
            continue
        for topic in unit.topics:
            entry = by_topic.get(topic)
            if entry is None:
                entry = by_topic[topic] = TopicSentimentDistribution(topic=topic)
            entry.total += 1
            if unit.sentiment is not None:
                name = unit.sentiment.value
                setattr(entry, name, getattr(entry, name) + 1)

    # sorted() is stable: ties keep first-seen order
    return sorted(by_topic.values(), key=lambda entry: entry.total, reverse=True)


def top_topics(
    distribution: Sequence[TopicSentimentDistribution], limit: Optional[int] = None
) -> List[TopicSentimentDistribution]:
    """Return the *limit* most mentioned topics (display truncation)."""
    limit = config.TOP_TOPICS if limit is None else limit
    ordered = sorted(distribution, key=lambda entry: entry.total, reverse=True)
    return ordered[:limit]


def sentiment_totals(units: Iterable[AnalysisUnit]) -> Dict[str, int]:
    """Return label→count over all labeled units."""
    counts = empty_counts()
    for unit in units:
        if unit.sentiment is not None:
            counts[unit.sentiment.value] += 1
    return counts


def filter_by_topic(
    units: Iterable[AnalysisUnit], topic: Optional[str]
) -> List[AnalysisUnit]:
    """Return units mentioning *topic*; all units when *topic* is falsy."""
    if not topic:
        return list(units)
    return [unit for unit in units if unit.topics and topic in unit.topics]


def search_units(units: Iterable[AnalysisUnit], term: str) -> List[AnalysisUnit]:
    """Case-insensitive search over comment text, sentiment and topics."""
    needle = term.strip().lower()
    if not needle:
        return list(units)
    matches: List[AnalysisUnit] = []
    for unit in units:
        haystack = [unit.feedback_text]
        if unit.sentiment is not None:
            haystack.append(unit.sentiment.value)
        haystack.extend(unit.topics or [])
        if any(needle in value.lower() for value in haystack):
            matches.append(unit)
    return matches

"""Sentiment labels shared by the classifier, the units and the aggregates."""
from __future__ import annotations

from enum import Enum
from typing import Dict


class SentimentLabel(str, Enum):
    """Enumeration of supported sentiment classes."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


_SCORES: Dict[SentimentLabel, int] = {
    SentimentLabel.POSITIVE: 1,
    SentimentLabel.NEGATIVE: -1,
    SentimentLabel.NEUTRAL: 0,
}


def sentiment_score(label: SentimentLabel) -> int:
    """Return the numeric score derived from *label* (1, -1 or 0)."""
    return _SCORES[SentimentLabel(label)]


def empty_counts() -> Dict[str, int]:
    """Return a fresh ``{"positive": 0, "negative": 0, "neutral": 0}`` tally."""
    return {label.value: 0 for label in (
        SentimentLabel.POSITIVE,
        SentimentLabel.NEGATIVE,
        SentimentLabel.NEUTRAL,
    )}

"""Per-row records carried through the analysis pipeline."""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from feedback_lens.analysis.sentiment import SentimentLabel, sentiment_score

RawRow = Dict[str, str]


@dataclass(frozen=True)
class ColumnMapping:
    """Which CSV columns hold the comment text and (optionally) its date."""

    feedback_text_column: str
    timestamp_column: Optional[str] = None


@dataclass(slots=True)
class AnalysisUnit:
    """One normalized feedback row.

    ``id`` and ``original_index`` are fixed when the unit is created. The
    label fields (``sentiment``, ``sentiment_score`` and ``topics``) start
    empty and are written at most once, by :py:meth:`apply_label`. A unit
    whose batch failed simply stays unlabeled.
    """

    id: str
    original_index: int
    full_data: RawRow
    feedback_text: str
    timestamp: Optional[datetime.datetime] = None
    sentiment: Optional[SentimentLabel] = None
    sentiment_score: Optional[int] = None
    topics: Optional[List[str]] = field(default=None)
    # Timestamp exactly as read from a stored report, written back unchanged
    timestamp_text: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def is_labeled(self) -> bool:
        return self.sentiment is not None

    def apply_label(self, sentiment: SentimentLabel, topics: List[str]) -> None:
        """Record the classifier's verdict for this unit.

        Raises
        ------
        RuntimeError
            If the unit already carries a label.
        """
        if self.sentiment is not None:
            raise RuntimeError(f"Unit {self.id} has already been labeled.")
        label = SentimentLabel(sentiment)
        self.sentiment = label
        self.sentiment_score = sentiment_score(label)
        self.topics = list(topics)

"""Compare two reports metric by metric (current vs. previous)."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional

from feedback_lens.reporting.aggregator import sentiment_totals
from feedback_lens.reporting.models import ProcessedReport


@dataclass(frozen=True)
class KpiDelta:
    """Change of one metric between two reports."""

    metric: str
    current: float
    previous: float
    positive_is_good: bool = True
    unit: str = ""

    @property
    def change(self) -> float:
        return self.current - self.previous

    @property
    def percentage_change(self) -> float:
        """Relative change in percent; ``inf`` when the metric is new."""
        if self.previous != 0:
            return (self.current - self.previous) / abs(self.previous) * 100
        if self.current != 0:
            return math.inf
        return 0.0

    @property
    def direction(self) -> str:
        if self.change > 0:
            return "up"
        if self.change < 0:
            return "down"
        return "flat"

    @property
    def is_improvement(self) -> Optional[bool]:
        """*True*/*False* for a good/bad move, *None* when unchanged."""
        if self.change == 0:
            return None
        return (self.change > 0) == self.positive_is_good

    @property
    def formatted_percentage(self) -> str:
        pct = self.percentage_change
        if math.isinf(pct):
            return "New"
        if math.isnan(pct):
            return "N/A"
        return f"{pct:.0f}%"


def _positive_share(report: ProcessedReport) -> float:
    labeled = report.labeled_count
    if not labeled:
        return 0.0
    return round(sentiment_totals(report.feedback_items)["positive"] / labeled * 100, 1)


def compare_reports(current: ProcessedReport, previous: ProcessedReport) -> List[KpiDelta]:
    """Return the KPI deltas shown when comparing *current* against *previous*."""
    cur = sentiment_totals(current.feedback_items)
    prev = sentiment_totals(previous.feedback_items)
    return [
        KpiDelta("Total feedback", len(current.feedback_items), len(previous.feedback_items)),
        KpiDelta("Analyzed items", current.labeled_count, previous.labeled_count),
        KpiDelta("Positive", cur["positive"], prev["positive"]),
        KpiDelta("Negative", cur["negative"], prev["negative"], positive_is_good=False),
        KpiDelta("Neutral", cur["neutral"], prev["neutral"]),
        KpiDelta("Positive share", _positive_share(current), _positive_share(previous), unit="%"),
    ]

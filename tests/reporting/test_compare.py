"""Tests for the report-to-report KPI comparison."""
from __future__ import annotations

import math

import pytest

from feedback_lens.analysis.sentiment import SentimentLabel
from feedback_lens.analysis.units import AnalysisUnit
from feedback_lens.reporting.assembler import assemble_report
from feedback_lens.reporting.compare import KpiDelta, compare_reports


def _report(*labels):
    units = []
    for i, label in enumerate(labels):
        unit = AnalysisUnit(id=f"u{i}", original_index=i, full_data={}, feedback_text=str(i))
        if label:
            unit.apply_label(SentimentLabel(label), [])
        units.append(unit)
    return assemble_report(units)


def test_compare_reports_metrics():
    current = _report("positive", "positive", "negative", None)
    previous = _report("positive", "negative", "negative")

    deltas = {d.metric: d for d in compare_reports(current, previous)}

    assert deltas["Total feedback"].change == 1
    assert deltas["Analyzed items"].change == 0
    assert deltas["Positive"].is_improvement is True
    assert deltas["Negative"].direction == "down"
    assert deltas["Negative"].is_improvement is True
    assert deltas["Neutral"].is_improvement is None
    assert deltas["Positive share"].current == pytest.approx(66.7)
    assert deltas["Positive share"].previous == pytest.approx(33.3)


def test_positive_share_without_labels():
    deltas = {d.metric: d for d in compare_reports(_report(None), _report())}
    assert deltas["Positive share"].current == 0.0


@pytest.mark.parametrize(
    "current, previous, expected",
    [(15, 10, "50%"), (5, 10, "-50%"), (3, 0, "New"), (0, 0, "0%")],
)
def test_formatted_percentage(current, previous, expected):
    assert KpiDelta("m", current, previous).formatted_percentage == expected


def test_percentage_change_is_infinite_for_new_metric():
    assert math.isinf(KpiDelta("m", 1, 0).percentage_change)
    assert KpiDelta("m", 5, 5).direction == "flat"

"""Per-batch classification, result merging and the insights call.

These are the building blocks composed by
:class:`feedback_lens.pipeline.run.AnalysisRun`. The classifier and the
summarizer are injected as async callables so the OpenAI implementations in
:mod:`feedback_lens.analysis` can be swapped for stubs.
"""
from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from feedback_lens.analysis.classify import BatchItem, ClassifiedFeedback, validate_results
from feedback_lens.analysis.units import AnalysisUnit
from feedback_lens.pipeline.outcome import Outcome, attempt
from feedback_lens.reporting.models import KeyInsights

logger = logging.getLogger(__name__)

Classifier = Callable[[Sequence[BatchItem]], Awaitable[Sequence[ClassifiedFeedback]]]
Summarizer = Callable[[str], Awaitable[KeyInsights]]


def batch_items(batch: Iterable[AnalysisUnit]) -> List[BatchItem]:
    """Return the ``(id, feedback_text)`` pairs submitted for *batch*."""
    return [BatchItem(id=unit.id, feedback_text=unit.feedback_text) for unit in batch]


async def classify_batch(
    classifier: Classifier, batch: Sequence[AnalysisUnit]
) -> Outcome[List[ClassifiedFeedback]]:
    """Submit exactly the units of *batch* and record the outcome.

    A classifier that raises, or returns something that is not a list of
    well-formed results, yields a failed outcome.
    """

    async def _call() -> List[ClassifiedFeedback]:
        raw = await classifier(batch_items(batch))
        return validate_results(list(raw) if raw is not None else None)

    return await attempt(_call)


def merge_results(
    batch: Sequence[AnalysisUnit], results: Iterable[ClassifiedFeedback]
) -> int:
    """Fold *results* onto the matching units of *batch*; return how many.

    Results are indexed by id. The first result for an id wins and ids that
    are not part of *batch* are ignored. Units already labeled are left
    untouched.
    """
    by_id: Dict[str, ClassifiedFeedback] = {}
    for result in results:
        by_id.setdefault(result.id, result)

    labeled = 0
    for unit in batch:
        result = by_id.get(unit.id)
        if result is None or unit.is_labeled:
            continue
        unit.apply_label(result.sentiment, result.topics)
        labeled += 1

    stray = set(by_id) - {unit.id for unit in batch}
    if stray:
        logger.debug("Ignoring %d result(s) with ids outside the batch", len(stray))
    return labeled


def insights_payload(units: Iterable[AnalysisUnit]) -> List[Dict[str, str]]:
    """Return ``[{text, sentiment}]`` for labeled units with non-empty text."""
    return [
        {"text": unit.feedback_text, "sentiment": unit.sentiment.value}
        for unit in units
        if unit.sentiment is not None and unit.feedback_text
    ]


async def summarize_units(
    summarizer: Summarizer, units: Iterable[AnalysisUnit]
) -> Outcome[Optional[KeyInsights]]:
    """Request key insights for the labeled units.

    When no unit is labeled the summarizer is not called and the outcome is
    a success carrying *None*.
    """
    payload = insights_payload(units)
    if not payload:
        logger.info("No labeled feedback; skipping key insights")
        return Outcome.success(None)
    return await attempt(summarizer, json.dumps(payload, ensure_ascii=False))

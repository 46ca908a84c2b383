"""Run controller: drives one analysis run from rows to report.

An :class:`AnalysisRun` owns the mutable state of a single run: the unit
collection and the progress counter. Nothing else writes to either. The
:class:`AnalysisController` keeps at most one *active* run; :py:meth:`reset`
abandons it. In-flight calls are not cancelled, but whatever they return
after the reset is dropped instead of being merged.
"""
from __future__ import annotations

import asyncio
import datetime
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence

from feedback_lens import config
from feedback_lens.analysis.batching import make_batches
from feedback_lens.analysis.classify import ClassifiedFeedback, openai_classifier
from feedback_lens.analysis.insights import openai_summarizer
from feedback_lens.analysis.normalize import normalize_rows, run_id_factory
from feedback_lens.analysis.units import AnalysisUnit, ColumnMapping, RawRow
from feedback_lens.exceptions import (
    BatchClassificationError,
    InputError,
    SummarizationError,
)
from feedback_lens.notices import (
    Notice,
    NoticeSink,
    batch_failure_notice,
    completion_notice,
    insights_failure_notice,
)
from feedback_lens.pipeline.orchestrator import (
    Classifier,
    Summarizer,
    classify_batch,
    merge_results,
    summarize_units,
)
from feedback_lens.pipeline.outcome import FailureKind, Outcome
from feedback_lens.reporting.assembler import assemble_report
from feedback_lens.reporting.models import KeyInsights, ProcessedReport

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    CLASSIFYING = "classifying"
    SUMMARIZED = "summarized"
    AGGREGATED = "aggregated"
    COMPLETE = "complete"


# Position of each later phase inside the non-classification share of the bar
_PHASE_FRACTION = {
    RunPhase.SUMMARIZED: 0.5,
    RunPhase.AGGREGATED: 5 / 6,
    RunPhase.COMPLETE: 1.0,
}


@dataclass(frozen=True)
class ProgressEvent:
    """Progress snapshot emitted after each batch and at each later phase."""

    phase: RunPhase
    attempted: int
    total: int

    @property
    def ratio(self) -> float:
        """Units whose batch has been attempted / all units (1.0 when empty)."""
        return self.attempted / self.total if self.total else 1.0

    def percent(self, classify_share: Optional[float] = None) -> int:
        """Map the event onto a 0–100 bar where classification gets *classify_share*."""
        share = config.CLASSIFY_PROGRESS_SHARE if classify_share is None else classify_share
        if self.phase is RunPhase.CLASSIFYING:
            return round(self.ratio * share * 100)
        return round((share + (1 - share) * _PHASE_FRACTION[self.phase]) * 100)


ProgressCallback = Callable[[ProgressEvent], None]


class AnalysisRun:
    """State and lifecycle of a single analysis run.

    The run is created with already-normalized units. :py:meth:`execute`
    classifies them batch by batch, asks for key insights and assembles the
    report. Batch and insights failures are recorded, logged and announced
    through the notice sinks; they never abort the run.
    """

    def __init__(
        self,
        units: List[AnalysisUnit],
        *,
        classifier: Classifier,
        summarizer: Summarizer,
        batch_size: int,
        max_concurrency: int = 1,
        on_progress: Optional[ProgressCallback] = None,
        notice_sinks: Sequence[NoticeSink] = (),
        run_id: Optional[str] = None,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be a positive integer")
        self.run_id: str = run_id or uuid.uuid4().hex
        self.units: List[AnalysisUnit] = units
        self.batch_size = batch_size
        self.max_concurrency = max_concurrency
        self.created_at: datetime.datetime = datetime.datetime.now(
            datetime.timezone.utc
        )
        self.attempted: int = 0
        self.labeled: int = 0
        self.batch_errors: List[BatchClassificationError] = []
        self.summarization_error: Optional[SummarizationError] = None
        self.key_insights: Optional[KeyInsights] = None
        self.report: Optional[ProcessedReport] = None
        self._classifier = classifier
        self._summarizer = summarizer
        self._on_progress = on_progress
        self._notice_sinks = list(notice_sinks)
        self._discarded = False

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    @property
    def total(self) -> int:
        return len(self.units)

    @property
    def is_discarded(self) -> bool:
        return self._discarded

    @property
    def is_complete(self) -> bool:
        return self.report is not None

    def discard(self) -> None:
        """Abandon the run; late responses will no longer touch its state."""
        self._discarded = True

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def classify(self) -> None:
        """Classify every batch in ascending order, tolerating failures."""
        batches = make_batches(self.units, self.batch_size)
        batch_count = len(batches)
        logger.info(
            "Run %s: classifying %d items in %d batches",
            self.run_id,
            self.total,
            batch_count,
        )

        if self.max_concurrency == 1:
            for number, batch in enumerate(batches, start=1):
                if self._discarded:
                    return
                outcome = await classify_batch(self._classifier, batch)
                self._resolve_batch(number, batch_count, batch, outcome)
            return

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _dispatch(number: int, batch: List[AnalysisUnit]) -> None:
            async with semaphore:
                if self._discarded:
                    return
                outcome = await classify_batch(self._classifier, batch)
            self._resolve_batch(number, batch_count, batch, outcome)

        await asyncio.gather(
            *(_dispatch(number, batch) for number, batch in enumerate(batches, start=1))
        )

    def _resolve_batch(
        self,
        number: int,
        batch_count: int,
        batch: List[AnalysisUnit],
        outcome: Outcome[List[ClassifiedFeedback]],
    ) -> None:
        if self._discarded:
            logger.debug("Run %s discarded; dropping batch %d result", self.run_id, number)
            return

        if outcome.ok:
            merged = merge_results(batch, outcome.value or [])
            self.labeled += merged
            if merged < len(batch):
                logger.info(
                    "Batch %d of %d: classifier returned %d of %d items",
                    number,
                    batch_count,
                    merged,
                    len(batch),
                )
        else:
            error = BatchClassificationError(
                number,
                batch_count,
                outcome.kind.value if outcome.kind else FailureKind.OTHER.value,
                f"Batch {number} of {batch_count} failed: {outcome.describe()}",
            )
            self.batch_errors.append(error)
            if outcome.kind is FailureKind.CAPACITY:
                logger.warning("Batch %d analysis error: %s", number, outcome.error)
            else:
                logger.error(
                    "Batch %d analysis error: %s",
                    number,
                    outcome.error,
                    exc_info=outcome.error,
                )
            self._notify(batch_failure_notice(number, batch_count, outcome))

        self.attempted += len(batch)
        self._emit(RunPhase.CLASSIFYING)

    async def summarize(self) -> None:
        """Request key insights; a failure leaves them absent."""
        outcome = await summarize_units(self._summarizer, self.units)
        if self._discarded:
            return
        if outcome.ok:
            self.key_insights = outcome.value
        else:
            kind = outcome.kind or FailureKind.OTHER
            self.summarization_error = SummarizationError(
                kind.value, f"Key insights failed: {outcome.describe()}"
            )
            if kind is FailureKind.CAPACITY:
                logger.warning("Key insight generation limited: %s", outcome.error)
            else:
                logger.error(
                    "Key insight generation failed: %s",
                    outcome.error,
                    exc_info=outcome.error,
                )
            self._notify(insights_failure_notice(outcome))
        self._emit(RunPhase.SUMMARIZED)

    async def execute(self) -> Optional[ProcessedReport]:
        """Run every phase and return the report (*None* if discarded)."""
        await self.classify()
        if self._discarded:
            return None
        await self.summarize()
        if self._discarded:
            return None

        report = assemble_report(self.units, self.key_insights)
        self._emit(RunPhase.AGGREGATED)
        self.report = report
        self._emit(RunPhase.COMPLETE)
        logger.info(
            "Run %s complete: %d of %d items labeled, %d failed batch(es)",
            self.run_id,
            self.labeled,
            self.total,
            len(self.batch_errors),
        )
        self._notify(completion_notice(self.labeled, self.total))
        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _emit(self, phase: RunPhase) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(ProgressEvent(phase, self.attempted, self.total))
        except Exception:  # noqa: BLE001 – a broken callback must not stop the run
            logger.exception("Progress callback failed during %s", phase.value)

    def _notify(self, notice: Notice) -> None:
        for sink in self._notice_sinks:
            try:
                sink(notice)
            except Exception:  # noqa: BLE001 – a broken sink must not stop the run
                logger.exception("Notice sink failed for '%s'", notice.title)

    def __repr__(self) -> str:
        parts = [
            f"run_id='{self.run_id}'",
            f"created_at='{self.created_at.isoformat()}'",
            f"total={self.total}",
            f"attempted={self.attempted}",
            f"labeled={self.labeled}",
            f"is_complete={self.is_complete}",
        ]
        if self.batch_errors:
            parts.append(f"failed_batches={len(self.batch_errors)}")
        if self._discarded:
            parts.append("discarded=True")
        return f"AnalysisRun({', '.join(parts)})"


class AnalysisController:
    """Starts analysis runs and keeps track of the active one."""

    def __init__(
        self,
        *,
        classifier: Classifier = openai_classifier,
        summarizer: Summarizer = openai_summarizer,
        batch_size: Optional[int] = None,
        max_concurrency: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        notice_sinks: Sequence[NoticeSink] = (),
    ) -> None:
        self._classifier = classifier
        self._summarizer = summarizer
        self._batch_size = config.BATCH_SIZE if batch_size is None else batch_size
        self._max_concurrency = (
            config.MAX_CONCURRENCY if max_concurrency is None else max_concurrency
        )
        if self._batch_size <= 0 or self._max_concurrency <= 0:
            raise ValueError("batch_size and max_concurrency must be positive integers")
        self._on_progress = on_progress
        self._notice_sinks = list(notice_sinks)
        self._active: Optional[AnalysisRun] = None

    @property
    def active_run(self) -> Optional[AnalysisRun]:
        return self._active

    def start(
        self,
        rows: Sequence[RawRow],
        mapping: ColumnMapping,
        *,
        headers: Optional[Iterable[str]] = None,
    ) -> AnalysisRun:
        """Normalize *rows* and make a new run the active one.

        Raises
        ------
        InputError
            If there are no rows or the mapping is invalid. No run is
            created in that case.
        """
        if not rows:
            raise InputError("There are no feedback rows to analyze.")
        run_id = uuid.uuid4().hex
        units = normalize_rows(
            rows, mapping, headers=headers, id_factory=run_id_factory(run_id[:12])
        )
        if self._active is not None:
            self._active.discard()
        self._active = AnalysisRun(
            units,
            classifier=self._classifier,
            summarizer=self._summarizer,
            batch_size=self._batch_size,
            max_concurrency=self._max_concurrency,
            on_progress=self._on_progress,
            notice_sinks=self._notice_sinks,
            run_id=run_id,
        )
        return self._active

    async def analyze(
        self,
        rows: Sequence[RawRow],
        mapping: ColumnMapping,
        *,
        headers: Optional[Iterable[str]] = None,
    ) -> Optional[ProcessedReport]:
        """Start a run and execute it to completion."""
        run = self.start(rows, mapping, headers=headers)
        return await run.execute()

    def reset(self) -> None:
        """Discard the active run's in-memory state."""
        if self._active is not None:
            logger.info("Resetting run %s", self._active.run_id)
            self._active.discard()
        self._active = None

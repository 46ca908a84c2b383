"""End-to-end tests for AnalysisRun / AnalysisController with stub services."""
from __future__ import annotations

import asyncio
import datetime

import pytest

from feedback_lens.analysis.units import ColumnMapping
from feedback_lens.exceptions import InputError, InvalidMappingError
from feedback_lens.notices import Notice
from feedback_lens.pipeline.run import AnalysisController, ProgressEvent, RunPhase
from feedback_lens.reporting.models import OVERALL_BUCKET, KeyInsights

MAPPING = ColumnMapping("Comment", "Date")


def _rows(n: int, *, dated: bool = False) -> list[dict[str, str]]:
    return [
        {"Comment": f"comment {i}", "Date": f"2024-05-0{1 + i % 2}" if dated else ""}
        for i in range(n)
    ]


class _Classifier:
    """Labels everything positive; fails the batches listed in *fail_calls*."""

    def __init__(self, fail_calls=(), error=RuntimeError("503 service unavailable")):
        self.fail_calls = set(fail_calls)
        self.error = error
        self.calls: list[list[str]] = []

    async def __call__(self, items):
        self.calls.append([item.id for item in items])
        if len(self.calls) in self.fail_calls:
            raise self.error
        return [{"id": item.id, "sentiment": "positive", "topics": ["General"]} for item in items]


class _Summarizer:
    def __init__(self, error=None):
        self.error = error
        self.payloads: list[str] = []

    async def __call__(self, payload):
        self.payloads.append(payload)
        if self.error:
            raise self.error
        return KeyInsights("Billing", "Overall sentiment is 100% Positive.")


def _controller(classifier, summarizer=None, **kwargs):
    notices: list[Notice] = []
    events: list[ProgressEvent] = []
    controller = AnalysisController(
        classifier=classifier,
        summarizer=summarizer or _Summarizer(),
        batch_size=kwargs.pop("batch_size", 15),
        on_progress=events.append,
        notice_sinks=[notices.append],
        **kwargs,
    )
    return controller, notices, events


def test_failed_middle_batch_keeps_all_units():
    classifier = _Classifier(fail_calls={2})
    controller, notices, events = _controller(classifier)

    report = asyncio.run(controller.analyze(_rows(32), MAPPING))

    assert [len(c) for c in classifier.calls] == [15, 15, 2]
    assert len(report.feedback_items) == 32
    assert sorted(u.original_index for u in report.feedback_items) == list(range(32))
    labeled = [u for u in report.feedback_items if u.is_labeled]
    assert len(labeled) == 17
    assert all(not u.is_labeled for u in report.feedback_items[15:30])
    assert all(u.topics is None and u.sentiment_score is None for u in report.feedback_items[15:30])

    run = controller.active_run
    assert run.labeled == 17
    assert [(e.batch_number, e.batch_count, e.kind) for e in run.batch_errors] == [(2, 3, "capacity")]

    titles = [n.title for n in notices]
    assert "Batch 2 Analysis Error" in titles
    assert "API limits" in notices[0].message
    assert titles[-1] == "Analysis Complete!"
    assert "17 of 32" in notices[-1].message


def test_other_failure_notice_includes_cause():
    classifier = _Classifier(fail_calls={1}, error=ValueError("Model response did not contain a JSON array"))
    controller, notices, _ = _controller(classifier)
    asyncio.run(controller.analyze(_rows(3), MAPPING))
    assert "did not contain a JSON array" in notices[0].message
    assert notices[0].kind.value == "other"


def test_progress_reports_attempted_units_per_batch():
    controller, _, events = _controller(_Classifier(fail_calls={2}))
    asyncio.run(controller.analyze(_rows(32), MAPPING))

    classifying = [e for e in events if e.phase is RunPhase.CLASSIFYING]
    assert [e.attempted for e in classifying] == [15, 30, 32]
    assert all(e.total == 32 for e in events)
    assert [e.phase for e in events[-3:]] == [RunPhase.SUMMARIZED, RunPhase.AGGREGATED, RunPhase.COMPLETE]
    percents = [e.percent(0.7) for e in events]
    assert percents == sorted(percents)
    assert percents[:3] == [33, 66, 70]
    assert percents[-3:] == [85, 95, 100]


def test_all_batches_failed_skips_summarizer():
    summarizer = _Summarizer()
    controller, notices, _ = _controller(_Classifier(fail_calls={1, 2}), summarizer, batch_size=5)

    report = asyncio.run(controller.analyze(_rows(10), MAPPING))

    assert summarizer.payloads == []
    assert report.key_insights is None
    assert report.sentiment_over_time == []
    assert report.topic_distribution == []
    assert len(report.feedback_items) == 10


def test_summarizer_failure_does_not_abort():
    summarizer = _Summarizer(error=RuntimeError("Quota exceeded"))
    controller, notices, _ = _controller(_Classifier(), summarizer)

    report = asyncio.run(controller.analyze(_rows(4), MAPPING))

    assert report is not None
    assert report.key_insights is None
    assert controller.active_run.summarization_error.kind == "capacity"
    assert any(n.title == "Key Insight Generation Limited" for n in notices)


def test_full_success_with_insights_and_overall_bucket():
    controller, _, _ = _controller(_Classifier())
    report = asyncio.run(controller.analyze(_rows(6), MAPPING))

    assert report.key_insights.urgent_issue == "Billing"
    assert [u.sentiment_score for u in report.feedback_items] == [1] * 6
    assert [p.bucket_key for p in report.sentiment_over_time] == [OVERALL_BUCKET]
    assert report.topic_distribution[0].topic == "General"
    assert report.topic_distribution[0].total == 6


def test_dated_rows_produce_date_buckets():
    controller, _, _ = _controller(_Classifier())
    report = asyncio.run(controller.analyze(_rows(6, dated=True), MAPPING))
    assert [(p.bucket_key, p.positive) for p in report.sentiment_over_time] == [
        ("2024-05-01", 3),
        ("2024-05-02", 3),
    ]
    assert report.feedback_items[0].timestamp == datetime.datetime(2024, 5, 1, tzinfo=datetime.timezone.utc)


def test_concurrent_dispatch_merges_by_id():
    class _SlowFirst(_Classifier):
        async def __call__(self, items):
            # Earlier batches finish later
            await asyncio.sleep(0.01 * (10 - int(items[0].id.split("-")[1]) // 5))
            return await super().__call__(items)

    classifier = _SlowFirst(fail_calls=set())
    controller, _, events = _controller(classifier, batch_size=5, max_concurrency=4)
    report = asyncio.run(controller.analyze(_rows(23), MAPPING))

    assert all(u.is_labeled for u in report.feedback_items)
    assert [u.original_index for u in report.feedback_items] == list(range(23))
    attempted = [e.attempted for e in events if e.phase is RunPhase.CLASSIFYING]
    assert attempted == sorted(attempted) and attempted[-1] == 23


def test_late_response_after_reset_is_ignored():
    async def scenario():
        started = asyncio.Event()
        release = asyncio.Event()

        async def classifier(items):
            started.set()
            await release.wait()
            return [{"id": i.id, "sentiment": "negative", "topics": ["API"]} for i in items]

        controller, notices, events = _controller(classifier)
        run = controller.start(_rows(5), MAPPING)
        task = asyncio.create_task(run.execute())
        await started.wait()
        controller.reset()
        release.set()
        return run, await task, controller, notices, events

    run, result, controller, notices, events = asyncio.run(scenario())

    assert result is None
    assert run.is_discarded
    assert run.attempted == 0
    assert not any(u.is_labeled for u in run.units)
    assert controller.active_run is None
    assert notices == [] and events == []


def test_new_run_supersedes_in_flight_run():
    async def scenario():
        release = asyncio.Event()
        calls = 0

        async def classifier(items):
            nonlocal calls
            calls += 1
            if calls == 1:
                await release.wait()
            return [{"id": i.id, "sentiment": "neutral", "topics": []} for i in items]

        controller, _, _ = _controller(classifier)
        old = controller.start(_rows(3), MAPPING)
        old_task = asyncio.create_task(old.execute())
        await asyncio.sleep(0)
        new_report = await controller.analyze(_rows(4), MAPPING)
        release.set()
        return old, await old_task, new_report, controller

    old, old_result, new_report, controller = asyncio.run(scenario())

    assert old_result is None
    assert not any(u.is_labeled for u in old.units)
    assert len(new_report.feedback_items) == 4
    assert all(u.is_labeled for u in new_report.feedback_items)
    assert controller.active_run is not old


def test_input_errors_abort_before_any_call():
    classifier = _Classifier()
    controller, _, _ = _controller(classifier)

    with pytest.raises(InputError):
        asyncio.run(controller.analyze([], MAPPING))
    with pytest.raises(InvalidMappingError):
        controller.start(_rows(2), ColumnMapping("Missing"))

    assert classifier.calls == []
    assert controller.active_run is None


def test_progress_event_percent():
    assert ProgressEvent(RunPhase.CLASSIFYING, 15, 30).percent(0.7) == 35
    assert ProgressEvent(RunPhase.CLASSIFYING, 0, 0).ratio == 1.0
    assert ProgressEvent(RunPhase.COMPLETE, 30, 30).percent(0.5) == 100


@pytest.mark.parametrize("max_concurrency", [1, 3])
def test_failing_progress_callback_does_not_stop_run(max_concurrency, caplog):
    classifier = _Classifier()
    calls: list[ProgressEvent] = []

    def _broken(event):
        calls.append(event)
        raise RuntimeError("display went away")

    controller = AnalysisController(
        classifier=classifier,
        summarizer=_Summarizer(),
        batch_size=5,
        max_concurrency=max_concurrency,
        on_progress=_broken,
    )

    report = asyncio.run(controller.analyze(_rows(20), MAPPING))

    assert report is not None
    assert report.labeled_count == 20
    assert len(classifier.calls) == 4
    assert calls[-1].phase is RunPhase.COMPLETE
    assert "Progress callback failed" in caplog.text


@pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"batch_size": -1}, {"max_concurrency": 0}])
def test_non_positive_sizes_rejected(kwargs):
    with pytest.raises(ValueError):
        AnalysisController(classifier=_Classifier(), summarizer=_Summarizer(), **kwargs)

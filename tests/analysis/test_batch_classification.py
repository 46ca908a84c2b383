"""Unit tests for the OpenAI batch classifier."""
from __future__ import annotations

import asyncio
import json

import pytest

from feedback_lens.analysis import classify as cl
from feedback_lens.analysis.sentiment import SentimentLabel


def _reply(content: str):
    return {"choices": [{"message": {"content": content}}]}


@pytest.fixture()
def captured(monkeypatch):
    calls: list = []

    def _fake_chat(messages, **kwargs):
        calls.append({"messages": messages, **kwargs})
        batch = json.loads(messages[1]["content"].split("\n", 1)[1])
        results = [
            {
                "id": item["id"],
                "sentiment": "negative" if "slow" in item["feedbackText"] else "positive",
                "topics": ["Performance"] if "slow" in item["feedbackText"] else ["General"],
            }
            for item in batch
        ]
        return _reply("Here you go:\n" + json.dumps(results))

    monkeypatch.setattr(cl, "chat_completion", _fake_chat)
    return calls


def test_classifies_each_item(captured):
    items = [cl.BatchItem("a", "Love it"), cl.BatchItem("b", "App is slow")]
    results = cl.classify_feedback_batch(items)

    assert [(r.id, r.sentiment, r.topics) for r in results] == [
        ("a", SentimentLabel.POSITIVE, ["General"]),
        ("b", SentimentLabel.NEGATIVE, ["Performance"]),
    ]
    assert len(captured) == 1
    sent = json.loads(captured[0]["messages"][1]["content"].split("\n", 1)[1])
    assert sent == [{"id": "a", "feedbackText": "Love it"}, {"id": "b", "feedbackText": "App is slow"}]


def test_empty_batch_skips_call(captured):
    assert cl.classify_feedback_batch([]) == []
    assert captured == []


def test_async_adapter(captured):
    results = asyncio.run(cl.openai_classifier([cl.BatchItem("a", "Love it")]))
    assert results[0].id == "a"


def test_unknown_topics_dropped_and_sentiment_normalised():
    parsed = cl._parse_response(
        '[{"id": "x", "sentiment": "Positive", "topics": ["Billing", "Weather"]}]'
    )
    assert parsed[0].sentiment is SentimentLabel.POSITIVE
    assert parsed[0].topics == ["Billing"]


@pytest.mark.parametrize(
    "content",
    [
        "no json here",
        "[not valid json]",
        '[{"id": "x", "sentiment": "furious", "topics": []}]',
        '[{"sentiment": "positive", "topics": []}]',
    ],
)
def test_malformed_response_rejects_batch(monkeypatch, content):
    monkeypatch.setattr(cl, "chat_completion", lambda *a, **k: _reply(content))
    with pytest.raises(ValueError):
        cl.classify_feedback_batch([cl.BatchItem("x", "text")])


def test_missing_choices_rejected(monkeypatch):
    monkeypatch.setattr(cl, "chat_completion", lambda *a, **k: {"choices": []})
    with pytest.raises(ValueError):
        cl.classify_feedback_batch([cl.BatchItem("x", "text")])


def test_validate_results_accepts_dicts_and_models():
    model = cl.ClassifiedFeedback(id="m", sentiment="neutral", topics=[])
    out = cl.validate_results([model, {"id": "d", "sentiment": "negative", "topics": ["API"]}])
    assert [r.id for r in out] == ["m", "d"]
    with pytest.raises(ValueError):
        cl.validate_results({"id": "d"})

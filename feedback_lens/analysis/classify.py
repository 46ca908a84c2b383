"""Batch sentiment and topic classification using OpenAI.

``classify_feedback_batch`` sends one batch of comments in a single
ChatCompletion call and returns a validated list of
:class:`ClassifiedFeedback`. The prompt asks the model to answer *only*
with a JSON array so parsing stays deterministic.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from pydantic import BaseModel, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from feedback_lens.analysis.sentiment import SentimentLabel
from feedback_lens.openai_client import chat_completion

_logger = logging.getLogger(__name__)

# Closed topic vocabulary the classifier may assign
ALLOWED_TOPICS: tuple[str, ...] = (
    "UI/UX",
    "Billing",
    "Performance",
    "Customer Support",
    "Feature Request",
    "Mobile App",
    "API",
    "General",
)


@dataclass(frozen=True)
class BatchItem:
    """What the classifier sees of a unit."""

    id: str
    feedback_text: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "feedbackText": self.feedback_text}


class ClassifiedFeedback(BaseModel):
    """One labeled comment as returned by the classifier."""

    id: str
    sentiment: SentimentLabel
    topics: List[str] = []

    @field_validator("sentiment", mode="before")
    @classmethod
    def _lowercase_sentiment(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("topics", mode="after")
    @classmethod
    def _closed_vocabulary(cls, value: List[str]) -> List[str]:
        kept = [topic for topic in value if topic in ALLOWED_TOPICS]
        if len(kept) != len(value):
            _logger.debug("Dropped topics outside vocabulary: %s", set(value) - set(kept))
        return kept


_RESULTS_ADAPTER = TypeAdapter(List[ClassifiedFeedback])

_RESPONSE_RE = re.compile(r"\[[\s\S]*\]")  # outermost JSON array in string


def _parse_response(content: str) -> List[ClassifiedFeedback]:
    """Extract classified items from the model's raw string response.

    Raises
    ------
    ValueError
        If no JSON array is present or any item is malformed (missing id,
        unknown sentiment). One bad item rejects the whole batch.
    """

    match = _RESPONSE_RE.search(content)
    if not match:
        raise ValueError("Model response did not contain a JSON array")

    try:
        payload: Any = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ValueError("Failed to parse JSON from model response") from exc

    try:
        return _RESULTS_ADAPTER.validate_python(payload)
    except PydanticValidationError as exc:
        raise ValueError(f"Malformed classification payload: {exc.error_count()} error(s)") from exc


_PROMPT_SYSTEM = (
    "You are an expert data analyst specializing in customer feedback for a "
    "SaaS company. For each comment classify the sentiment as exactly one of "
    '"positive", "negative" or "neutral", and assign zero or more topics from '
    f"this list only: {json.dumps(list(ALLOWED_TOPICS))}. "
    "Return ONLY a minified JSON array of objects with the keys "
    '"id" (unchanged from the input), "sentiment" and "topics".'
)


def classify_feedback_batch(
    items: Sequence[BatchItem], *, temperature: float = 0.0
) -> List[ClassifiedFeedback]:
    """Classify every comment in *items* with one OpenAI call.

    The model may omit items; callers must match results back by id.
    """

    if not items:
        return []

    batch_json = json.dumps([item.to_dict() for item in items], ensure_ascii=False)
    messages = [
        {"role": "system", "content": _PROMPT_SYSTEM},
        {
            "role": "user",
            "content": "Here is the batch of comments to analyze:\n" + batch_json,
        },
    ]

    response = chat_completion(messages, temperature=temperature)
    try:
        content: str = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError("Model response missing expected fields") from exc
    if not content:
        raise ValueError("AI analysis returned no output for the batch.")

    return _parse_response(content)


async def openai_classifier(items: Sequence[BatchItem]) -> List[ClassifiedFeedback]:
    """Async adapter running :func:`classify_feedback_batch` off the event loop."""
    return await asyncio.to_thread(classify_feedback_batch, items)


def validate_results(raw: Any) -> List[ClassifiedFeedback]:
    """Coerce a classifier's return value into :class:`ClassifiedFeedback` items.

    Raises
    ------
    ValueError
        If *raw* is not a list of well-formed results.
    """
    try:
        return _RESULTS_ADAPTER.validate_python(raw)
    except PydanticValidationError as exc:
        raise ValueError(f"Malformed classification payload: {exc.error_count()} error(s)") from exc

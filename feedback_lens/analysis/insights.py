"""Surface the most urgent issue and an overall sentiment line using OpenAI."""
from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from feedback_lens.openai_client import chat_completion
from feedback_lens.reporting.models import KeyInsights

_logger = logging.getLogger(__name__)

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

_SYSTEM_PROMPT = (
    "You are an expert UX researcher. You receive a JSON array of customer "
    'feedback objects, each with a "text" and a "sentiment" field. Identify '
    "the topic with the highest volume of negative feedback and summarise the "
    "overall sentiment in one short sentence (for example "
    '"Overall sentiment is 75% Positive."). Respond ONLY with a minified JSON '
    'object {"urgentIssue": "...", "overallSentiment": "..."}.'
)


class _InsightsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    urgent_issue: str = Field(alias="urgentIssue")
    overall_sentiment: str = Field(alias="overallSentiment")


def _parse(content: str) -> KeyInsights:
    match = _OBJECT_RE.search(content)
    if not match:
        raise ValueError("Model response lacked JSON object")
    try:
        payload = _InsightsPayload.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, PydanticValidationError) as exc:
        raise ValueError("Failed to parse key insights from model response") from exc
    return KeyInsights(
        urgent_issue=payload.urgent_issue,
        overall_sentiment=payload.overall_sentiment,
    )


def surface_urgent_issues(feedback_data: str, *, temperature: float = 0.2) -> KeyInsights:
    """Return :class:`KeyInsights` for the JSON array in *feedback_data*.

    Raises
    ------
    ValueError
        If *feedback_data* is not a JSON array or the model answer cannot be
        parsed.
    """

    try:
        feedback: Any = json.loads(feedback_data)
    except json.JSONDecodeError as exc:
        raise ValueError("Feedback data must be valid JSON.") from exc
    if not isinstance(feedback, list):
        raise ValueError("Feedback data must be a JSON array.")

    messages = [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": "Here is the feedback data:\n" + feedback_data},
    ]
    resp = chat_completion(messages, temperature=temperature)
    content: str = resp["choices"][0]["message"]["content"] or ""
    insights = _parse(content)
    _logger.debug("Key insights generated from %d items", len(feedback))
    return insights


async def openai_summarizer(feedback_data: str) -> KeyInsights:
    """Async adapter running :func:`surface_urgent_issues` in a worker thread."""
    return await asyncio.to_thread(surface_urgent_issues, feedback_data)

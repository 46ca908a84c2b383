"""Lightweight OpenAI client helper.

Centralises API-key handling so the rest of the codebase can simply do:

    from feedback_lens.openai_client import chat_completion

and know that the ``openai`` package is configured with credentials.
"""
from __future__ import annotations

import os
import types
from typing import Any, Dict, List, Optional

from feedback_lens import config


class OpenAIClientError(RuntimeError):
    """Raised when client configuration is invalid (e.g., missing API key)."""


_client: Optional[Any] = None


def _load_openai() -> types.ModuleType:
    """Import ``openai`` lazily.

    Loading is deferred so that unit tests can inject a stub into
    ``sys.modules`` before this function runs.
    """

    import importlib

    return importlib.import_module("openai")


def _ensure_api_key_present() -> str:
    """Return the ``OPENAI_API_KEY`` env var or raise.

    Raises
    ------
    OpenAIClientError
        If the env var is missing or empty.
    """

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise OpenAIClientError("OPENAI_API_KEY environment variable is not set.")
    return api_key


def get_openai_client() -> Any:
    """Build (once) and return an ``openai.OpenAI`` client.

    The organisation is taken from ``OPENAI_ORG`` when set. Subsequent calls
    reuse the same client instance.
    """

    global _client
    if _client is not None:
        return _client

    openai = _load_openai()
    _client = openai.OpenAI(
        api_key=_ensure_api_key_present(),
        organization=os.getenv("OPENAI_ORG") or None,
    )
    return _client


def reset_client() -> None:
    """Forget the cached client (used when credentials change)."""
    global _client
    _client = None


def chat_completion(
    messages: List[Dict[str, str]],
    *,
    model: Optional[str] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """Wrapper around ``client.chat.completions.create`` with sane defaults.

    Parameters
    ----------
    messages
        Chat messages in OpenAI format.
    model
        Model id to use (default: ``config.OPENAI_MODEL``).
    kwargs
        Additional parameters forwarded to ``chat.completions.create``.

    The response is flattened into a plain ``dict`` shaped like
    ``{"choices": [{"message": {"content": ...}}], "model": ...}`` so callers
    and tests never depend on the SDK's response classes.
    """

    client = get_openai_client()
    completion = client.chat.completions.create(
        model=model or config.OPENAI_MODEL, messages=messages, **kwargs
    )
    choices = [
        {"message": {"content": choice.message.content}}
        for choice in completion.choices
    ]
    return {"choices": choices, "model": completion.model}

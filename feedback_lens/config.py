"""Runtime configuration for the analysis pipeline.

Values are read once from the environment (after loading an optional
``.env`` file) so that the rest of the code can import plain constants.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _int_from_env(name: str, default: int) -> int:
    raw_val = os.getenv(name)
    if not raw_val:
        return default
    try:
        parsed = int(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; must be integer.", name, raw_val)
        return default
    if parsed <= 0:
        logger.warning("Ignoring %s=%s (must be positive int)", name, raw_val)
        return default
    return parsed


def _float_from_env(name: str, default: float) -> float:
    raw_val = os.getenv(name)
    if not raw_val:
        return default
    try:
        parsed = float(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; must be a number.", name, raw_val)
        return default
    if not 0.0 < parsed <= 1.0:
        logger.warning("Ignoring %s=%s (must be in (0, 1])", name, raw_val)
        return default
    return parsed


# Number of feedback rows sent to the classifier in one request
BATCH_SIZE: int = _int_from_env("FEEDBACK_LENS_BATCH_SIZE", 15)

# Batches allowed in flight at once (1 == strictly sequential)
MAX_CONCURRENCY: int = _int_from_env("FEEDBACK_LENS_MAX_CONCURRENCY", 1)

# Fraction of the overall progress bar allotted to the classification phase
CLASSIFY_PROGRESS_SHARE: float = _float_from_env(
    "FEEDBACK_LENS_CLASSIFY_PROGRESS_SHARE", 0.7
)

DATABASE_URL: str = os.getenv(
    "FEEDBACK_LENS_DATABASE_URL", "sqlite:///feedback_lens.sqlite"
)

USER_ID_PATH: Path = Path(
    os.getenv("FEEDBACK_LENS_USER_ID_PATH", "~/.feedback_lens/user_id")
).expanduser()

LOG_LEVEL: str = os.getenv("FEEDBACK_LENS_LOG_LEVEL", "INFO")

OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4.1")

"""Locally persisted client identity.

Reports are grouped by an opaque user id generated once per machine and
stored in a small file. It only keeps one person's reports apart from
another's on a shared store; it is not a security credential.
"""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Optional, Union

from feedback_lens import config

logger = logging.getLogger(__name__)


class FileUserIdProvider:
    """Read the user id from *path*, creating it on first use."""

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self.path = Path(path) if path is not None else config.USER_ID_PATH

    def get(self) -> Optional[str]:
        """Return the stored id, generating it if needed.

        Returns *None* (and logs a warning) if the file cannot be read or
        written; callers must then refuse to save reports.
        """
        try:
            if self.path.exists():
                existing = self.path.read_text(encoding="utf-8").strip()
                if existing:
                    return existing
            user_id = str(uuid.uuid4())
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(user_id + "\n", encoding="utf-8")
            logger.info("Generated new client user id at %s", self.path)
            return user_id
        except OSError as exc:
            logger.warning("Could not establish a client user id at %s: %s", self.path, exc)
            return None

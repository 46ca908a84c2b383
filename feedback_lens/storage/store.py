"""Report store interface and a thread-safe in-memory implementation."""
from __future__ import annotations

import abc
import copy
import datetime
import itertools
import logging
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from feedback_lens.reporting.models import ReportSummary, StoredReportRecord

Clock = Callable[[], datetime.datetime]


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ReportStore(abc.ABC):
    """Append-only document store for saved reports."""

    @abc.abstractmethod
    def save(
        self,
        user_id: str,
        analysis_name: str,
        source_file_name: str,
        processed_data: Dict[str, Any],
    ) -> str:
        """Persist a report document and return its storage id."""

    @abc.abstractmethod
    def get_by_id(self, storage_id: str) -> Optional[StoredReportRecord]:
        """Return the record for *storage_id* or *None*."""

    @abc.abstractmethod
    def list_by_user(self, user_id: str) -> List[ReportSummary]:
        """Return summaries of *user_id*'s reports, newest first."""


class InMemoryReportStore(ReportStore):
    """A thread-safe store keeping report documents in memory."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._records: Dict[str, Tuple[int, StoredReportRecord]] = {}
        self._lock = threading.Lock()
        self._sequence = itertools.count()
        self._clock = clock or utc_now
        self._logger = logging.getLogger(__name__)

    def save(
        self,
        user_id: str,
        analysis_name: str,
        source_file_name: str,
        processed_data: Dict[str, Any],
    ) -> str:
        storage_id = uuid.uuid4().hex
        record = StoredReportRecord(
            storage_id=storage_id,
            user_id=user_id,
            analysis_name=analysis_name,
            source_file_name=source_file_name,
            # Copy so later mutation by the caller cannot alter the stored report
            processed_data=copy.deepcopy(processed_data),
            created_at=self._clock(),
        )
        with self._lock:
            self._records[storage_id] = (next(self._sequence), record)
        self._logger.info("report_saved", extra={"storage_id": storage_id})
        return storage_id

    def get_by_id(self, storage_id: str) -> Optional[StoredReportRecord]:
        with self._lock:
            entry = self._records.get(storage_id)
        if entry is None:
            return None
        record = entry[1]
        return StoredReportRecord(
            storage_id=record.storage_id,
            user_id=record.user_id,
            analysis_name=record.analysis_name,
            source_file_name=record.source_file_name,
            processed_data=copy.deepcopy(record.processed_data),
            created_at=record.created_at,
        )

    def list_by_user(self, user_id: str) -> List[ReportSummary]:
        with self._lock:
            entries = [entry for entry in self._records.values() if entry[1].user_id == user_id]
        # Sequence breaks ties between reports saved within the same clock tick
        entries.sort(key=lambda entry: (entry[1].created_at, entry[0]), reverse=True)
        return [
            ReportSummary(
                storage_id=record.storage_id,
                analysis_name=record.analysis_name,
                created_at=record.created_at,
            )
            for _, record in entries
        ]

    def count(self) -> int:
        with self._lock:
            return len(self._records)

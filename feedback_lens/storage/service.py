"""Save, fetch and list reports on top of a :class:`ReportStore`.

The service is where the storage-side error policy lives: store failures
become :class:`PersistenceError`, and documents that no longer match the
report schema are logged and treated as "not found".
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import List, Optional

from feedback_lens.exceptions import PersistenceError, ReportValidationError
from feedback_lens.reporting.assembler import report_from_document, report_to_document
from feedback_lens.reporting.models import ProcessedReport, ReportSummary
from feedback_lens.storage.store import ReportStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedReport:
    """A saved report together with its details."""

    storage_id: str
    analysis_name: str
    source_file_name: str
    created_at: datetime.datetime
    report: ProcessedReport


class ReportService:
    def __init__(self, store: ReportStore) -> None:
        self._store = store

    def save(
        self,
        user_id: Optional[str],
        analysis_name: str,
        source_file_name: str,
        report: ProcessedReport,
    ) -> str:
        """Persist *report* and return its storage id.

        Raises
        ------
        PersistenceError
            If the user id or name is missing, or the store fails.
        """
        if not user_id:
            raise PersistenceError(
                "User session ID is missing; the report cannot be saved."
            )
        name = analysis_name.strip()
        if not name:
            raise PersistenceError("A report name is required to save the analysis.")

        document = report_to_document(report)
        try:
            storage_id = self._store.save(user_id, name, source_file_name, document)
        except Exception as exc:  # noqa: BLE001 – any store failure
            logger.error("Error saving analysis: %s", exc, exc_info=True)
            raise PersistenceError(f"Failed to save analysis: {exc}") from exc
        logger.info("Saved analysis '%s' as %s", name, storage_id)
        return storage_id

    def get(self, storage_id: str) -> Optional[LoadedReport]:
        """Return the saved report or *None* if missing or invalid.

        Raises
        ------
        PersistenceError
            If the store itself fails.
        """
        try:
            record = self._store.get_by_id(storage_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error fetching analysis report %s: %s", storage_id, exc, exc_info=True)
            raise PersistenceError(f"Failed to fetch report: {exc}") from exc

        if record is None:
            logger.warning("Analysis report with ID %s not found.", storage_id)
            return None
        if not record.analysis_name or not record.source_file_name:
            logger.warning("Report data incomplete for ID %s.", storage_id)
            return None

        try:
            report = report_from_document(record.processed_data)
        except ReportValidationError as exc:
            logger.error("Validation error for report ID %s: %s", storage_id, exc)
            return None

        return LoadedReport(
            storage_id=record.storage_id,
            analysis_name=record.analysis_name,
            source_file_name=record.source_file_name,
            created_at=record.created_at,
            report=report,
        )

    def list(self, user_id: str) -> List[ReportSummary]:
        """Return *user_id*'s saved reports, newest first."""
        try:
            return self._store.list_by_user(user_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error listing analyses: %s", exc, exc_info=True)
            raise PersistenceError(f"Failed to list analyses: {exc}") from exc

"""Project-wide custom exception types."""
from __future__ import annotations

from typing import Optional


class FeedbackLensError(RuntimeError):
    """Base class for all errors raised by the analysis pipeline."""


class InputError(FeedbackLensError):
    """Raised when an analysis run cannot start because its input is unusable."""


class CsvParseError(InputError):
    """Raised when uploaded CSV text yields no headers or no rows."""


class InvalidMappingError(InputError):
    """Raised when a column mapping names a column the input does not have."""

    def __init__(self, column: str, known_columns: Optional[list] = None) -> None:
        self.column = column
        self.known_columns = list(known_columns or [])
        super().__init__(f"Column '{column}' does not exist in the uploaded data.")


class BatchClassificationError(FeedbackLensError):
    """A single classification batch failed or returned malformed data."""

    def __init__(
        self, batch_number: int, batch_count: int, kind: str, message: str
    ) -> None:
        self.batch_number = batch_number
        self.batch_count = batch_count
        self.kind = kind
        super().__init__(message)


class SummarizationError(FeedbackLensError):
    """The key-insights call failed."""

    def __init__(self, kind: str, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class PersistenceError(FeedbackLensError):
    """Saving or fetching a report against the store failed."""


class ReportValidationError(FeedbackLensError):
    """A stored document does not match the expected report structure."""

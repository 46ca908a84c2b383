"""Turn parsed CSV rows into :class:`AnalysisUnit` records."""
from __future__ import annotations

import datetime
import itertools
import logging
import uuid
from typing import Callable, Iterable, List, Optional, Sequence

from feedback_lens.analysis.units import AnalysisUnit, ColumnMapping, RawRow
from feedback_lens.exceptions import InvalidMappingError

logger = logging.getLogger(__name__)

IdFactory = Callable[[int], str]

# Non-ISO layouts commonly found in exported feedback spreadsheets
_FALLBACK_FORMATS = (
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)


def parse_timestamp(raw: Optional[str]) -> Optional[datetime.datetime]:
    """Parse *raw* into an aware UTC ``datetime`` or return *None*.

    ISO-8601 is tried first (a trailing ``Z`` is accepted), then a handful of
    common spreadsheet layouts. Values without an offset are taken as UTC.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None

    parsed: Optional[datetime.datetime] = None
    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.datetime.fromisoformat(iso_text)
    except ValueError:
        for fmt in _FALLBACK_FORMATS:
            try:
                parsed = datetime.datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    try:
        return parsed.astimezone(datetime.timezone.utc)
    except (OverflowError, ValueError):
        # offset pushes the value outside year 1..9999
        return None


def run_id_factory(run_token: Optional[str] = None) -> IdFactory:
    """Return an id factory whose ids are unique for the lifetime of a run.

    Ids combine the row index, a per-factory counter and a run token
    (a fresh UUID by default) so two factories never collide either.
    """
    token = run_token or uuid.uuid4().hex[:12]
    counter = itertools.count()

    def _next_id(index: int) -> str:
        return f"fb-{index}-{token}-{next(counter)}"

    return _next_id


def _known_columns(
    rows: Sequence[RawRow], headers: Optional[Iterable[str]]
) -> List[str]:
    if headers is not None:
        return list(headers)
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def normalize_rows(
    rows: Sequence[RawRow],
    mapping: ColumnMapping,
    *,
    headers: Optional[Iterable[str]] = None,
    id_factory: Optional[IdFactory] = None,
) -> List[AnalysisUnit]:
    """Map *rows* onto analysis units, preserving order.

    Raises
    ------
    InvalidMappingError
        If the mapping names a column that is not among the known columns
        (*headers* when given, otherwise every key seen in *rows*).
    """
    known = _known_columns(rows, headers)
    if mapping.feedback_text_column not in known:
        raise InvalidMappingError(mapping.feedback_text_column, known)
    if mapping.timestamp_column and mapping.timestamp_column not in known:
        raise InvalidMappingError(mapping.timestamp_column, known)

    next_id = id_factory or run_id_factory()
    units: List[AnalysisUnit] = []
    unparsable = 0
    for index, row in enumerate(rows):
        timestamp = None
        if mapping.timestamp_column:
            raw_ts = row.get(mapping.timestamp_column)
            timestamp = parse_timestamp(raw_ts)
            if timestamp is None and raw_ts:
                unparsable += 1
        units.append(
            AnalysisUnit(
                id=next_id(index),
                original_index=index,
                full_data=dict(row),
                feedback_text=row.get(mapping.feedback_text_column) or "",
                timestamp=timestamp,
            )
        )

    if unparsable:
        logger.info(
            "%d of %d rows had an unparsable value in column '%s'",
            unparsable,
            len(units),
            mapping.timestamp_column,
        )
    return units

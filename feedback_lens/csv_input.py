"""Parse uploaded CSV text into header names and column-keyed rows."""
from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import List, Tuple, Union

from feedback_lens.analysis.units import RawRow
from feedback_lens.exceptions import CsvParseError

logger = logging.getLogger(__name__)


def parse_csv(text: str) -> Tuple[List[str], List[RawRow]]:
    """Return ``(headers, rows)`` for CSV *text*.

    Quoted fields may contain commas, newlines and doubled quotes. Header
    names and values are trimmed; missing trailing values become ``""`` and
    surplus values are dropped. Blank lines are skipped.

    Raises
    ------
    CsvParseError
        If the text yields no headers or no data rows.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff").strip()), skipinitialspace=True)
    try:
        records = [record for record in reader if any(cell.strip() for cell in record)]
    except csv.Error as exc:
        raise CsvParseError(f"CSV file is improperly formatted: {exc}") from exc

    if not records:
        raise CsvParseError("CSV file is empty or improperly formatted.")

    headers = [name.strip() for name in records[0]]
    if not any(headers):
        raise CsvParseError("CSV file has no header row.")

    rows: List[RawRow] = []
    for record in records[1:]:
        values = [value.strip() for value in record]
        rows.append(
            {
                header: values[index] if index < len(values) else ""
                for index, header in enumerate(headers)
            }
        )
    if not rows:
        raise CsvParseError("CSV file is empty or improperly formatted.")

    logger.debug("Parsed CSV with %d columns and %d rows", len(headers), len(rows))
    return headers, rows


def read_csv_file(path: Union[str, Path]) -> Tuple[List[str], List[RawRow]]:
    """Read and parse the CSV file at *path* (UTF-8, BOM tolerated)."""
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise CsvParseError(f"Could not read CSV file {path}: {exc}") from exc
    return parse_csv(text)

"""Split analysis units into bounded batches for the classifier."""
from __future__ import annotations

from typing import List, Sequence, TypeVar

T = TypeVar("T")


def make_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """Return contiguous slices of *items*, each at most *batch_size* long.

    Concatenating the slices reproduces *items* exactly; an empty input
    yields no batches.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be a positive integer")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]

"""Unit tests for make_batches."""
from __future__ import annotations

import pytest

from feedback_lens.analysis.batching import make_batches


@pytest.mark.parametrize("size, batch_size", [(0, 15), (1, 15), (15, 15), (32, 15), (31, 4), (7, 1)])
def test_concatenation_reproduces_input(size, batch_size):
    items = list(range(size))
    batches = make_batches(items, batch_size)

    assert [x for batch in batches for x in batch] == items
    assert all(len(batch) == batch_size for batch in batches[:-1])
    if batches:
        assert 0 < len(batches[-1]) <= batch_size


def test_32_items_in_batches_of_15():
    assert [len(b) for b in make_batches(list(range(32)), 15)] == [15, 15, 2]


def test_empty_input_yields_no_batches():
    assert make_batches([], 15) == []


@pytest.mark.parametrize("bad", [0, -3])
def test_non_positive_batch_size_rejected(bad):
    with pytest.raises(ValueError):
        make_batches([1, 2, 3], bad)

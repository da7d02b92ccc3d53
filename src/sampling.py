"""
Random catalog sample for the discovery grid.

Two independent layers of randomness: the database returns n rows in random
order, then the list is Fisher–Yates shuffled here. Repeated calls with the
same n are very unlikely to repeat membership or order.
"""

import random
from typing import List, NamedTuple, Optional, TypeVar

from records import CatalogRecord

DEFAULT_SAMPLE_SIZE = 8

T = TypeVar('T')


class SampleResult(NamedTuple):
    records: List[CatalogRecord]
    total: int  # size of the whole catalog, not of the sample


def coerce_sample_size(n) -> int:
    """Non-numeric or non-positive sizes fall back to DEFAULT_SAMPLE_SIZE."""
    if isinstance(n, bool):
        return DEFAULT_SAMPLE_SIZE
    try:
        size = int(n)
    except (TypeError, ValueError):
        return DEFAULT_SAMPLE_SIZE
    if size <= 0:
        return DEFAULT_SAMPLE_SIZE
    return size


def fisher_yates_shuffle(items: List[T], rng: Optional[random.Random] = None) -> List[T]:
    """Uniformly shuffled copy of ``items``; the input list is not modified."""
    rng = rng or random.Random()
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def sample_catalog(store, n=DEFAULT_SAMPLE_SIZE, rng: Optional[random.Random] = None) -> SampleResult:
    """
    ``store`` needs ``random_sample(n)`` and ``count()`` (CatalogStore provides both).
    """
    size = coerce_sample_size(n)
    records = store.random_sample(size)
    total = store.count()
    return SampleResult(fisher_yates_shuffle(records, rng), total)

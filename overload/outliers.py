"""
Overload Analytics — Outlier filter for logged sets.

Drops mis-keyed entries (a warm-up typed as a work set, an extra zero)
before they reach any max/average.
"""
from typing import Callable, Sequence, TypeVar

import numpy as np

from overload.config import OUTLIER_STDDEV

T = TypeVar("T")


def filter_outliers(
    items: Sequence[T],
    key: Callable[[T], float],
    threshold: float = OUTLIER_STDDEV,
) -> list[T]:
    """
    Remove items whose value lies more than `threshold` population standard
    deviations from the mean.

    Returns the input unchanged when there are fewer than 3 items, when all
    values are equal, or when the rule would drop every item.
    """
    items = list(items)
    if len(items) < 3:
        return items

    values = np.array([key(item) for item in items], dtype=float)
    std = values.std()
    if std == 0:
        return items

    keep = np.abs(values - values.mean()) <= threshold * std
    kept = [item for item, ok in zip(items, keep) if ok]
    return kept or items

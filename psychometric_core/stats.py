"""
Item Statistics Module
======================

Descriptive statistics and classical item diagnostics for response matrices:
distribution shape per item, corrected item-total correlations and the
inter-item correlation summary.
"""

from dataclasses import asdict, dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats

from . import config
from .data import ResponseData, prepare_responses
from .matrix import correlation, correlation_matrix


@dataclass(frozen=True)
class ItemTotalCorrelation:
    item_id: str
    correlation: float
    flag: str


@dataclass(frozen=True)
class ItemDescriptives:
    item_id: str
    mean: float
    sd: float
    skewness: float
    kurtosis: float


@dataclass(frozen=True)
class InterItemSummary:
    """Off-diagonal inter-item correlation summary."""
    mean: float
    minimum: float
    maximum: float
    in_range: bool


def item_total_correlations(
    data: ResponseData,
    item_ids: Optional[Sequence[str]] = None
) -> list[ItemTotalCorrelation]:
    """
    Corrected item-total correlations.

    Each item is correlated with the sum of the remaining items, then flagged
    good / acceptable / poor / problematic.

    Parameters:
        data: Response matrix (n_subjects x n_items)
        item_ids: Optional item identifiers

    Returns:
        One ItemTotalCorrelation per item
    """
    matrix, ids = prepare_responses(data, item_ids)
    totals = matrix.sum(axis=1)

    results = []
    for i, item_id in enumerate(ids):
        r = correlation(matrix[:, i], totals - matrix[:, i])
        results.append(ItemTotalCorrelation(item_id, r, config.get_item_total_flag(r)))
    return results


def describe_items(
    data: ResponseData,
    item_ids: Optional[Sequence[str]] = None
) -> list[ItemDescriptives]:
    """
    Mean, population SD, skewness and excess kurtosis per item.

    Zero-variance items report 0 for skewness and kurtosis.
    """
    matrix, ids = prepare_responses(data, item_ids)
    means = matrix.mean(axis=0)
    sds = matrix.std(axis=0)

    results = []
    for i, item_id in enumerate(ids):
        if sds[i] > 0:
            skewness = float(scipy_stats.skew(matrix[:, i]))
            kurtosis = float(scipy_stats.kurtosis(matrix[:, i], fisher=True))
        else:
            skewness = kurtosis = 0.0
        results.append(ItemDescriptives(item_id, float(means[i]), float(sds[i]), skewness, kurtosis))
    return results


def inter_item_summary(data: ResponseData) -> InterItemSummary:
    """
    Summarise the off-diagonal inter-item correlations.

    in_range is True when the mean lies within config.INTER_ITEM_RANGE.
    """
    corr = correlation_matrix(data)
    n_items = corr.shape[0]
    if n_items < 2:
        return InterItemSummary(0.0, 0.0, 0.0, False)

    off_diagonal = corr[~np.eye(n_items, dtype=bool)]
    mean = float(off_diagonal.mean())
    low, high = config.INTER_ITEM_RANGE
    return InterItemSummary(
        mean=mean,
        minimum=float(off_diagonal.min()),
        maximum=float(off_diagonal.max()),
        in_range=low <= mean <= high,
    )


def to_frame(records: Sequence) -> pd.DataFrame:
    """DataFrame with one row per dataclass record, indexed by item_id."""
    frame = pd.DataFrame([asdict(record) for record in records])
    if 'item_id' in frame.columns:
        frame = frame.set_index('item_id')
    return frame

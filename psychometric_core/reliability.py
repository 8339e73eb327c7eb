"""
Reliability Module
==================

Internal-consistency estimators for multi-item scales:

- Cronbach's alpha and alpha-if-item-deleted (from raw responses)
- McDonald's omega and omega-hierarchical (from factor loadings)
- Split-half reliability with Spearman-Brown correction
- Guttman's lambda-6 (from a correlation matrix)

Every coefficient is clamped to [0, 1]; degenerate input (zero variance)
yields 0 rather than NaN.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from . import config
from .data import ResponseData, as_response_matrix, prepare_responses
from .logging_config import get_logger
from .matrix import correlation
from .stats import ItemTotalCorrelation, describe_items, item_total_correlations

logger = get_logger(__name__)


@dataclass(frozen=True)
class AlphaIfDeleted:
    item_id: str
    alpha_if_deleted: float
    should_delete: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class ReliabilityAnalysis:
    """Alpha with its item-level diagnostics."""
    cronbach_alpha: float
    interpretation: str
    item_total_correlations: tuple[ItemTotalCorrelation, ...]
    alpha_if_deleted: tuple[AlphaIfDeleted, ...]


@dataclass(frozen=True)
class ItemAnalysis:
    """Pilot-study view of one item."""
    item_id: str
    mean: float
    sd: float
    skewness: float
    kurtosis: float
    item_total_correlation: float
    alpha_if_deleted: float
    recommendation: str  # 'keep', 'review' or 'remove'


def _clamp(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


# =============================================================================
# RAW-DATA ESTIMATORS
# =============================================================================

def cronbach_alpha(data: ResponseData) -> float:
    """
    Cronbach's alpha: (p / (p - 1)) * (1 - sum(item variances) / total variance).

    Uses population variances. Returns 0 for fewer than two items or a
    constant total score.

    Parameters:
        data: Response matrix (n_subjects x n_items)

    Returns:
        Alpha clamped to [0, 1]
    """
    matrix = as_response_matrix(data)
    n_items = matrix.shape[1]
    if n_items < 2:
        return 0.0

    totals = matrix.sum(axis=1)
    if np.ptp(totals) == 0:
        return 0.0

    item_variances = matrix.var(axis=0)
    alpha = (n_items / (n_items - 1)) * (1 - item_variances.sum() / totals.var())
    return _clamp(alpha)


def alpha_if_item_deleted(
    data: ResponseData,
    item_ids: Optional[Sequence[str]] = None
) -> list[AlphaIfDeleted]:
    """
    Alpha recomputed without each item in turn.

    An item is marked for deletion when dropping it raises alpha by more than
    config.ALPHA_IF_DELETED_MARGIN.

    Parameters:
        data: Response matrix (n_subjects x n_items)
        item_ids: Optional item identifiers

    Returns:
        One AlphaIfDeleted per item
    """
    matrix, ids = prepare_responses(data, item_ids)
    original = cronbach_alpha(matrix)

    results = []
    for i, item_id in enumerate(ids):
        reduced = np.delete(matrix, i, axis=1)
        alpha_without = cronbach_alpha(reduced) if reduced.shape[1] else 0.0
        should_delete = alpha_without > original + config.ALPHA_IF_DELETED_MARGIN
        reason = None
        if should_delete:
            reason = f"Removing would raise alpha from {original:.2f} to {alpha_without:.2f}"
        results.append(AlphaIfDeleted(item_id, alpha_without, should_delete, reason))
    return results


def split_half(data: ResponseData) -> float:
    """
    Odd-even split-half reliability with Spearman-Brown correction.

    Items at even and odd column positions are summed into two half scores
    per subject; their correlation r is stepped up as 2r / (1 + r).
    """
    matrix = as_response_matrix(data)
    even_half = matrix[:, 0::2].sum(axis=1)
    odd_half = matrix[:, 1::2].sum(axis=1)

    r = correlation(even_half, odd_half)
    if 1 + r == 0:
        return 0.0
    return _clamp(2 * r / (1 + r))


def interpret_reliability(alpha: float) -> str:
    """Qualitative label: excellent, good, acceptable, questionable or unacceptable."""
    return config.get_reliability_label(alpha)


# =============================================================================
# LOADING- AND CORRELATION-BASED ESTIMATORS
# =============================================================================

def mcdonald_omega(loadings: Sequence[float]) -> float:
    """
    McDonald's omega: (sum l)^2 / ((sum l)^2 + sum(1 - l^2)).

    Parameters:
        loadings: Primary-factor loading of each item

    Returns:
        Omega clamped to [0, 1]
    """
    loadings = np.asarray(loadings, dtype=float).ravel()
    true_variance = loadings.sum() ** 2
    denominator = true_variance + np.sum(1 - loadings ** 2)
    if denominator == 0:
        return 0.0
    return _clamp(true_variance / denominator)


def omega_hierarchical(
    general_loadings: Sequence[float],
    group_loadings: Sequence[Sequence[float]]
) -> float:
    """
    Omega-hierarchical: share of total-score variance due to the general factor.

    The denominator adds group-factor variance (squared sum of each group's
    loadings) and residual variance (1 - g^2 - sum of squared group loadings
    per item). Group vectors shorter than the general vector are zero-padded.

    Parameters:
        general_loadings: General-factor loading of each item
        group_loadings: One loading vector per group factor

    Returns:
        Omega-h clamped to [0, 1]; 0 when the denominator is not positive
    """
    general = np.asarray(general_loadings, dtype=float).ravel()
    n_items = general.size

    groups = np.zeros((len(group_loadings), n_items))
    for k, group in enumerate(group_loadings):
        values = np.asarray(group, dtype=float).ravel()[:n_items]
        groups[k, :values.size] = values

    numerator = general.sum() ** 2
    group_variance = np.sum(groups.sum(axis=1) ** 2)
    error_variance = np.sum(1 - general ** 2 - np.sum(groups ** 2, axis=0))
    denominator = numerator + group_variance + error_variance

    if denominator <= 0:
        return 0.0
    return _clamp(numerator / denominator)


def guttman_lambda6(r: Sequence[Sequence[float]]) -> float:
    """
    Guttman's lambda-6 with a simplified squared multiple correlation.

    Each item's SMC is approximated by its largest squared correlation with
    any other item; lambda-6 = 1 - (p - sum SMC) / sum(R).

    Parameters:
        r: Item correlation matrix

    Returns:
        Lambda-6 clamped to [0, 1]; 0 when sum(R) is 0
    """
    r = np.asarray(r, dtype=float)
    if r.ndim != 2 or r.shape[0] != r.shape[1]:
        raise ValueError(f"Expected a square correlation matrix, got shape {r.shape}")

    n_items = r.shape[0]
    total = r.sum()
    if total == 0:
        return 0.0

    squared = r ** 2
    np.fill_diagonal(squared, 0.0)
    smc = squared.max(axis=1) if n_items > 1 else np.zeros(n_items)
    return _clamp(1 - (n_items - smc.sum()) / total)


# =============================================================================
# ITEM-LEVEL ANALYSIS
# =============================================================================

def analyze_reliability(
    data: ResponseData,
    item_ids: Optional[Sequence[str]] = None
) -> ReliabilityAnalysis:
    """Alpha, its interpretation, item-total correlations and alpha-if-deleted."""
    matrix, ids = prepare_responses(data, item_ids)
    alpha = cronbach_alpha(matrix)
    return ReliabilityAnalysis(
        cronbach_alpha=alpha,
        interpretation=interpret_reliability(alpha),
        item_total_correlations=tuple(item_total_correlations(matrix, ids)),
        alpha_if_deleted=tuple(alpha_if_item_deleted(matrix, ids)),
    )


def analyze_items(
    data: ResponseData,
    item_ids: Optional[Sequence[str]] = None
) -> list[ItemAnalysis]:
    """
    Per-item keep / review / remove recommendations.

    Items with a corrected item-total correlation below the 'poor' threshold
    are removed, below 'acceptable' reviewed. Strongly skewed or peaked items
    are reviewed as well.

    Parameters:
        data: Response matrix (n_subjects x n_items)
        item_ids: Optional item identifiers

    Returns:
        One ItemAnalysis per item
    """
    matrix, ids = prepare_responses(data, item_ids)
    reliability = analyze_reliability(matrix, ids)
    descriptives = describe_items(matrix, ids)

    results = []
    for desc, item_total, deleted in zip(descriptives,
                                         reliability.item_total_correlations,
                                         reliability.alpha_if_deleted):
        recommendation = 'keep'
        if item_total.correlation < config.ITEM_TOTAL_THRESHOLDS['poor']:
            recommendation = 'remove'
        elif item_total.correlation < config.ITEM_TOTAL_THRESHOLDS['acceptable']:
            recommendation = 'review'
        if (abs(desc.skewness) > config.MAX_ABS_SKEWNESS
                or abs(desc.kurtosis) > config.MAX_ABS_KURTOSIS):
            recommendation = 'review' if recommendation == 'keep' else recommendation

        results.append(ItemAnalysis(
            item_id=desc.item_id,
            mean=desc.mean,
            sd=desc.sd,
            skewness=desc.skewness,
            kurtosis=desc.kurtosis,
            item_total_correlation=item_total.correlation,
            alpha_if_deleted=deleted.alpha_if_deleted,
            recommendation=recommendation,
        ))

    flagged = sum(item.recommendation != 'keep' for item in results)
    logger.debug("Item analysis: %d of %d items flagged", flagged, len(results))
    return results


def print_item_analysis(items: Sequence[ItemAnalysis]) -> None:
    """Print item analysis table."""
    print("\n" + "-" * 60)
    print("ITEM ANALYSIS")
    print("-" * 60)
    print(f"  {'Item':<12} {'M':>6} {'SD':>6} {'Skew':>6} {'r_it':>6} {'a-del':>6}  Recommendation")
    for item in items:
        print(f"  {item.item_id:<12} {item.mean:>6.2f} {item.sd:>6.2f} {item.skewness:>6.2f} "
              f"{item.item_total_correlation:>6.2f} {item.alpha_if_deleted:>6.3f}  {item.recommendation}")

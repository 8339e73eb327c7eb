"""
Validity Metrics Module
=======================

Convergent and discriminant validity from factor loadings and item
correlations:

- Average Variance Extracted (AVE): convergent validity (threshold >= 0.50)
- Composite Reliability (CR): construct reliability (threshold >= 0.70)
- Heterotrait-Monotrait ratio (HTMT): discriminant validity (threshold < 0.85)
- Fornell-Larcker criterion: sqrt(AVE) must exceed inter-construct correlations

Also grades confirmatory fit indices supplied by the caller; model fitting
itself happens elsewhere.

References:
- Fornell, C. & Larcker, D.F. (1981). Evaluating SEM with unobserved variables
- Henseler, J., Ringle, C.M. & Sarstedt, M. (2015). A new criterion for
  assessing discriminant validity in variance-based SEM
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from . import config
from .logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class FornellLarckerViolation:
    construct: int
    other: int
    sqrt_ave: float
    correlation: float

    def describe(self) -> str:
        return (f"Construct {self.construct + 1}: sqrt(AVE) ({self.sqrt_ave:.2f}) < "
                f"correlation with construct {self.other + 1} ({self.correlation:.2f})")


@dataclass(frozen=True)
class FornellLarckerResult:
    passes: bool
    violations: tuple[FornellLarckerViolation, ...] = ()

    @property
    def issues(self) -> list[str]:
        return [violation.describe() for violation in self.violations]


@dataclass(frozen=True)
class ConvergentValidity:
    ave: float
    composite_reliability: float
    meets_threshold: bool
    ave_values: tuple[float, ...] = ()
    cr_values: tuple[float, ...] = ()


@dataclass(frozen=True, eq=False)
class DiscriminantValidity:
    htmt: np.ndarray
    fornell_larcker: FornellLarckerResult
    meets_threshold: bool


@dataclass(frozen=True, eq=False)
class ValidityAssessment:
    convergent: ConvergentValidity
    discriminant: DiscriminantValidity
    factors: tuple[int, ...] = field(default=())


@dataclass(frozen=True)
class ModelFitIndices:
    """Fit indices estimated by an external CFA/SEM routine."""
    chisq: float
    df: float
    cfi: float
    tli: float
    rmsea: float
    srmr: float
    pvalue: Optional[float] = None
    rmsea_ci: Optional[tuple[float, float]] = None

    @property
    def chisq_df_ratio(self) -> float:
        return self.chisq / self.df if self.df > 0 else float('inf')


def _clamp(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def _unique_in_order(values: Sequence[int]) -> list[int]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


# =============================================================================
# CONVERGENT VALIDITY
# =============================================================================

def average_variance_extracted(loadings: Sequence[float]) -> float:
    """
    AVE = sum(l^2) / (sum(l^2) + sum(1 - l^2)), clamped to [0, 1].

    Parameters:
        loadings: Standardised loadings of the construct's items
    """
    loadings = np.asarray(loadings, dtype=float).ravel()
    explained = np.sum(loadings ** 2)
    denominator = explained + np.sum(1 - loadings ** 2)
    if denominator == 0:
        return 0.0
    return _clamp(explained / denominator)


def composite_reliability(loadings: Sequence[float]) -> float:
    """
    CR = (sum l)^2 / ((sum l)^2 + sum(1 - l^2)), clamped to [0, 1].

    Parameters:
        loadings: Standardised loadings of the construct's items
    """
    loadings = np.asarray(loadings, dtype=float).ravel()
    true_variance = loadings.sum() ** 2
    denominator = true_variance + np.sum(1 - loadings ** 2)
    if denominator == 0:
        return 0.0
    return _clamp(true_variance / denominator)


# =============================================================================
# DISCRIMINANT VALIDITY
# =============================================================================

def _mean_abs_within(r: np.ndarray, items: list[int]) -> float:
    """Mean absolute monotrait correlation; 1 for single-item factors."""
    values = [abs(r[a, b]) for i, a in enumerate(items) for b in items[i + 1:]]
    return float(np.mean(values)) if values else 1.0


def htmt(
    correlation_matrix: Sequence[Sequence[float]],
    factor_assignments: Sequence[int]
) -> np.ndarray:
    """
    Heterotrait-monotrait ratio matrix.

    For each factor pair: mean absolute correlation between their items,
    divided by the geometric mean of each factor's mean absolute within-factor
    correlation. Values are capped at 1. Factors appear in order of first
    occurrence in factor_assignments.

    Parameters:
        correlation_matrix: Item correlation matrix (n_items x n_items)
        factor_assignments: Factor index of each item

    Returns:
        Symmetric (k x k) array with unit diagonal
    """
    r = np.asarray(correlation_matrix, dtype=float)
    assignments = list(factor_assignments)
    if r.ndim != 2 or r.shape[0] != r.shape[1] or r.shape[0] != len(assignments):
        raise ValueError(
            f"Correlation matrix {r.shape} does not match {len(assignments)} assignments"
        )

    factors = _unique_in_order(assignments)
    members = {f: [i for i, a in enumerate(assignments) if a == f] for f in factors}
    k = len(factors)
    result = np.eye(k)

    for i in range(k):
        items_i = members[factors[i]]
        mono_i = _mean_abs_within(r, items_i)
        for j in range(i + 1, k):
            items_j = members[factors[j]]
            hetero = float(np.mean(np.abs(r[np.ix_(items_i, items_j)])))
            denominator = np.sqrt(mono_i * _mean_abs_within(r, items_j))

            if denominator > 0:
                ratio = hetero / denominator
            else:
                ratio = 1.0 if hetero > 0 else 0.0
            result[i, j] = min(1.0, ratio)
            result[j, i] = result[i, j]

    return result


def fornell_larcker(
    ave_values: Sequence[float],
    construct_correlations: Sequence[Sequence[float]]
) -> FornellLarckerResult:
    """
    Fornell-Larcker criterion.

    A construct violates the criterion when the square root of its AVE is
    smaller than its absolute correlation with another construct.

    Parameters:
        ave_values: AVE of each construct
        construct_correlations: Inter-construct correlation matrix

    Returns:
        FornellLarckerResult with every violating (construct, other) pair
    """
    sqrt_ave = np.sqrt(np.asarray(ave_values, dtype=float))
    corr = np.asarray(construct_correlations, dtype=float)

    violations = []
    for i in range(len(sqrt_ave)):
        for j in range(len(sqrt_ave)):
            if i != j and sqrt_ave[i] < abs(corr[i, j]):
                violations.append(
                    FornellLarckerViolation(i, j, float(sqrt_ave[i]), float(corr[i, j]))
                )

    return FornellLarckerResult(passes=not violations, violations=tuple(violations))


def assess_validity(
    factor_loadings: Sequence[Sequence[float]],
    correlation_matrix: Sequence[Sequence[float]],
    factor_assignments: Sequence[int]
) -> ValidityAssessment:
    """
    Combined convergent and discriminant validity.

    AVE and CR are computed per factor from each item's loading on its
    assigned factor. Construct correlations for Fornell-Larcker are
    approximated as HTMT * sqrt(AVE_i * AVE_j).

    Parameters:
        factor_loadings: Loading matrix (n_items x n_factors)
        correlation_matrix: Item correlation matrix
        factor_assignments: Factor index of each item

    Returns:
        ValidityAssessment; headline AVE/CR refer to the first factor
    """
    loadings = np.atleast_2d(np.asarray(factor_loadings, dtype=float))
    assignments = list(factor_assignments)
    factors = _unique_in_order(assignments)

    ave_values, cr_values = [], []
    for factor in factors:
        column = factor if factor < loadings.shape[1] else 0
        construct = [loadings[i, column] for i, a in enumerate(assignments) if a == factor]
        ave_values.append(average_variance_extracted(construct))
        cr_values.append(composite_reliability(construct))

    htmt_matrix = htmt(correlation_matrix, assignments)

    ave_ok = all(ave >= config.AVE_THRESHOLD for ave in ave_values)
    cr_ok = all(cr >= config.CR_THRESHOLD for cr in cr_values)
    upper = htmt_matrix[np.triu_indices(len(factors), k=1)]
    htmt_ok = bool(np.all(upper < config.HTMT_THRESHOLD))

    ave_array = np.array(ave_values)
    construct_corr = htmt_matrix * np.sqrt(np.outer(ave_array, ave_array))
    fl_result = fornell_larcker(ave_values, construct_corr)

    logger.debug("Validity: AVE=%s CR=%s HTMT ok=%s Fornell-Larcker ok=%s",
                 np.round(ave_values, 3), np.round(cr_values, 3), htmt_ok, fl_result.passes)

    return ValidityAssessment(
        convergent=ConvergentValidity(
            ave=ave_values[0] if ave_values else 0.0,
            composite_reliability=cr_values[0] if cr_values else 0.0,
            meets_threshold=ave_ok and cr_ok,
            ave_values=tuple(ave_values),
            cr_values=tuple(cr_values),
        ),
        discriminant=DiscriminantValidity(
            htmt=htmt_matrix,
            fornell_larcker=fl_result,
            meets_threshold=htmt_ok and fl_result.passes,
        ),
        factors=tuple(factors),
    )


# =============================================================================
# MODEL FIT
# =============================================================================

def _meets(index: str, value: float, level: str) -> bool:
    threshold = config.MODEL_FIT_THRESHOLDS[index][level]
    if index in config.LOWER_IS_BETTER:
        return value <= threshold
    return value >= threshold


def interpret_model_fit(fit: ModelFitIndices) -> str:
    """
    Grade externally estimated fit indices.

    excellent: every index meets its excellent cut-off
    good: every index acceptable and at least half excellent
    acceptable: every index acceptable
    poor: otherwise
    """
    values = {
        'cfi': fit.cfi,
        'tli': fit.tli,
        'rmsea': fit.rmsea,
        'srmr': fit.srmr,
        'chisq_df_ratio': fit.chisq_df_ratio,
    }
    excellent = [_meets(name, value, 'excellent') for name, value in values.items()]
    acceptable = [_meets(name, value, 'acceptable') for name, value in values.items()]

    if all(excellent):
        return 'excellent'
    if all(acceptable):
        return 'good' if sum(excellent) * 2 >= len(excellent) else 'acceptable'
    return 'poor'

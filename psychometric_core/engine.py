"""
Psychometric Engine
===================

Orchestrates a complete scale evaluation from a raw response matrix:

1. Correlation matrix and factorability tests
2. Parallel analysis to choose the number of factors
3. Varimax EFA with that many factors
4. Reliability (alpha, omega, split-half, lambda-6)
5. Validity (AVE, CR, HTMT when more than one factor is retained)
6. Item analysis and plain-language recommendations

Every call is independent; randomness comes only from the rng argument.
"""

from dataclasses import asdict, dataclass, is_dataclass
from typing import Optional, Sequence

import numpy as np

from . import config
from .data import ResponseData, prepare_responses
from .efa import (
    FactorabilityResult,
    FactorLoading,
    check_factorability,
    kaiser_criterion,
    parallel_analysis,
    run_efa,
)
from .logging_config import get_logger
from .matrix import RandomSource, correlation_matrix
from .reliability import (
    ItemAnalysis,
    alpha_if_item_deleted,
    analyze_items,
    cronbach_alpha,
    guttman_lambda6,
    interpret_reliability,
    mcdonald_omega,
    split_half,
)
from .stats import InterItemSummary, inter_item_summary
from .validity import assess_validity, average_variance_extracted, composite_reliability

logger = get_logger(__name__)

calculate_cronbach_alpha = cronbach_alpha


# =============================================================================
# REPORT TYPES
# =============================================================================

@dataclass(frozen=True)
class ReliabilitySummary:
    cronbach_alpha: float
    mcdonald_omega: float
    split_half: float
    interpretation: str
    guttman_lambda6: float = 0.0


@dataclass(frozen=True, eq=False)
class FactorAnalysisSummary:
    suggested_factors: int
    eigenvalues: np.ndarray
    variance_explained: np.ndarray
    loadings: tuple[FactorLoading, ...]
    kaiser_factors: int = 0
    random_eigenvalues: Optional[np.ndarray] = None


@dataclass(frozen=True, eq=False)
class ValiditySummary:
    ave: float
    composite_reliability: float
    convergent_ok: bool
    discriminant_ok: bool
    htmt: Optional[np.ndarray] = None


@dataclass(frozen=True, eq=False)
class PsychometricReport:
    """Everything generate_report() computes for one response matrix."""
    reliability: ReliabilitySummary
    factor_analysis: FactorAnalysisSummary
    validity: ValiditySummary
    recommendations: tuple[str, ...]
    item_analysis: tuple[ItemAnalysis, ...] = ()
    factorability: Optional[FactorabilityResult] = None
    inter_item: Optional[InterItemSummary] = None
    n_subjects: int = 0
    n_items: int = 0

    def to_dict(self) -> dict:
        """Plain nested dict with lists in place of arrays."""
        return _plain(self)


def _plain(value):
    if is_dataclass(value) and not isinstance(value, type):
        return {name: _plain(item) for name, item in asdict(value).items()}
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


# =============================================================================
# REPORT GENERATION
# =============================================================================

def build_recommendations(
    alpha: float,
    ave: float,
    loadings: Sequence[FactorLoading],
    deletable_items: Sequence[str] = (),
    n_subjects: Optional[int] = None
) -> list[str]:
    """
    Plain-language recommendations, most important first.

    Parameters:
        alpha: Cronbach's alpha
        ave: Average variance extracted of the primary loadings
        loadings: Per-item factor loadings
        deletable_items: Items whose removal would raise alpha
        n_subjects: Sample size, checked against EFA guidelines when given

    Returns:
        List of recommendation strings
    """
    recommendations = []
    acceptable = config.ALPHA_THRESHOLDS['acceptable']

    if alpha < acceptable:
        recommendations.append(
            f"Reliability below {acceptable:.2f} (alpha = {alpha:.2f}) - review item-total correlations"
        )
    if alpha > config.ALPHA_TOO_HIGH:
        recommendations.append(
            f"Very high reliability (alpha > {config.ALPHA_TOO_HIGH:.2f}) may indicate redundant items"
        )
    if ave < config.AVE_THRESHOLD:
        recommendations.append(
            f"AVE ({ave:.2f}) < {config.AVE_THRESHOLD:.2f} - convergent validity not established"
        )

    low = [fl.item_id for fl in loadings if abs(fl.primary_loading) < config.LOADING_THRESHOLD]
    if low:
        recommendations.append(
            f"{len(low)} item(s) with factor loading < {config.LOADING_THRESHOLD:.2f} - "
            f"review recommended ({', '.join(low)})"
        )

    if deletable_items:
        recommendations.append(
            f"Removing {', '.join(deletable_items)} would raise alpha by more than "
            f"{config.ALPHA_IF_DELETED_MARGIN:.2f}"
        )

    if n_subjects is not None and loadings:
        minimum = max(config.EFA_MIN_SUBJECTS, config.EFA_SUBJECTS_PER_ITEM * len(loadings))
        if n_subjects < minimum:
            recommendations.append(
                f"Sample size (n = {n_subjects}) is below the EFA guideline of {minimum} - "
                f"treat factor results as preliminary"
            )

    return recommendations


def generate_report(
    data: ResponseData,
    item_ids: Optional[Sequence[str]] = None,
    iterations: Optional[int] = None,
    rng: RandomSource = None
) -> PsychometricReport:
    """
    Generate a comprehensive psychometric report.

    Parameters:
        data: Response matrix (n_subjects x n_items)
        item_ids: Optional item identifiers, defaults to item_1..item_p
        iterations: Parallel-analysis simulations. Defaults to config.REPORT_PARALLEL_ITERATIONS
        rng: numpy Generator or seed

    Returns:
        PsychometricReport
    """
    if iterations is None:
        iterations = config.REPORT_PARALLEL_ITERATIONS

    matrix, ids = prepare_responses(data, item_ids)
    n_subjects, n_items = matrix.shape
    rng = np.random.default_rng(rng)
    logger.info("Generating psychometric report: %d subjects x %d items", n_subjects, n_items)

    corr = correlation_matrix(matrix)
    factorability = check_factorability(matrix, ids)

    parallel = parallel_analysis(matrix, iterations=iterations, rng=rng)
    efa_result = run_efa(matrix, parallel.suggested_factors, rotation='varimax',
                         item_ids=ids, rng=rng)
    primary = efa_result.primary_loadings

    alpha = cronbach_alpha(matrix)
    reliability = ReliabilitySummary(
        cronbach_alpha=alpha,
        mcdonald_omega=mcdonald_omega(primary),
        split_half=split_half(matrix),
        interpretation=interpret_reliability(alpha),
        guttman_lambda6=guttman_lambda6(corr),
    )

    ave = average_variance_extracted(primary)
    cr = composite_reliability(primary)
    discriminant_ok, htmt_matrix = True, None
    if efa_result.factor_count > 1:
        assessment = assess_validity(efa_result.loading_matrix, corr,
                                     efa_result.factor_assignments)
        discriminant_ok = assessment.discriminant.meets_threshold
        htmt_matrix = assessment.discriminant.htmt

    validity = ValiditySummary(
        ave=ave,
        composite_reliability=cr,
        convergent_ok=ave >= config.AVE_THRESHOLD and cr >= config.CR_THRESHOLD,
        discriminant_ok=discriminant_ok,
        htmt=htmt_matrix,
    )

    deletable = [item.item_id for item in alpha_if_item_deleted(matrix, ids) if item.should_delete]
    recommendations = build_recommendations(alpha, ave, efa_result.factor_loadings,
                                            deletable, n_subjects)

    logger.info("Report complete: alpha=%.3f (%s), %d factor(s), %d recommendation(s)",
                alpha, reliability.interpretation, efa_result.factor_count, len(recommendations))

    return PsychometricReport(
        reliability=reliability,
        factor_analysis=FactorAnalysisSummary(
            suggested_factors=parallel.suggested_factors,
            eigenvalues=parallel.real_eigenvalues,
            variance_explained=efa_result.variance_explained,
            loadings=efa_result.factor_loadings,
            kaiser_factors=kaiser_criterion(parallel.real_eigenvalues),
            random_eigenvalues=parallel.random_eigenvalues,
        ),
        validity=validity,
        recommendations=tuple(recommendations),
        item_analysis=tuple(analyze_items(matrix, ids)),
        factorability=factorability,
        inter_item=inter_item_summary(matrix),
        n_subjects=n_subjects,
        n_items=n_items,
    )


# =============================================================================
# TEXT OUTPUT
# =============================================================================

def format_report(report: PsychometricReport) -> str:
    """Render a report as plain text."""
    rel = report.reliability
    fa = report.factor_analysis
    val = report.validity

    lines = [
        "=" * 60,
        f"PSYCHOMETRIC REPORT (n = {report.n_subjects}, {report.n_items} items)",
        "=" * 60,
        "",
        "Reliability:",
        f"  Cronbach's alpha: {rel.cronbach_alpha:.3f} ({rel.interpretation})",
        f"  McDonald's omega: {rel.mcdonald_omega:.3f}",
        f"  Split-half (Spearman-Brown): {rel.split_half:.3f}",
        f"  Guttman's lambda-6: {rel.guttman_lambda6:.3f}",
        "",
        "Factor Analysis:",
        f"  Suggested factors (parallel analysis): {fa.suggested_factors}",
        f"  Kaiser criterion (eigenvalue > 1): {fa.kaiser_factors}",
        "  Eigenvalues: " + ", ".join(f"{ev:.3f}" for ev in fa.eigenvalues),
        "  Variance explained: " + ", ".join(f"{ve:.1f}%" for ve in fa.variance_explained),
        "",
        "  Loadings:",
    ]
    for fl in fa.loadings:
        values = " ".join(f"{value:>7.3f}" for value in fl.loadings)
        lines.append(f"    {fl.item_id:<12} {values}   h2={fl.communality:.3f}  "
                     f"F{fl.primary_factor + 1}")

    lines += [
        "",
        "Validity:",
        f"  AVE: {val.ave:.3f}",
        f"  Composite reliability: {val.composite_reliability:.3f}",
        f"  Convergent validity: {'PASS' if val.convergent_ok else 'FAIL'}",
        f"  Discriminant validity: {'PASS' if val.discriminant_ok else 'FAIL'}",
        "",
        "-" * 60,
        "RECOMMENDATIONS",
        "-" * 60,
    ]
    if report.recommendations:
        lines += [f"  - {rec}" for rec in report.recommendations]
    else:
        lines.append("  None - scale meets all checked criteria")

    return "\n".join(lines)


def print_report(report: PsychometricReport) -> None:
    """Print a report to the console."""
    print("\n" + format_report(report))

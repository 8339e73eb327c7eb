"""
Exploratory Factor Analysis Module
==================================

Core EFA functions for factorability testing, factor-count selection
(parallel analysis and Kaiser criterion) and factor extraction with
optional varimax rotation.
"""

import warnings
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from factor_analyzer.factor_analyzer import calculate_bartlett_sphericity, calculate_kmo

from . import config
from .data import ResponseData, as_response_matrix, prepare_responses
from .logging_config import get_logger
from .matrix import RandomSource, correlation_matrix, eigen_decomposition, varimax

logger = get_logger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class FactorLoading:
    """Loadings of one item on every extracted factor."""
    item_id: str
    loadings: tuple[float, ...]
    communality: float
    primary_factor: int

    @property
    def primary_loading(self) -> float:
        return self.loadings[self.primary_factor]


@dataclass(frozen=True, eq=False)
class EFAResult:
    """Output of run_efa()."""
    factor_count: int
    requested_factors: int
    factor_loadings: tuple[FactorLoading, ...]
    eigenvalues: np.ndarray
    variance_explained: np.ndarray
    rotated_variance_explained: np.ndarray
    rotation_method: str
    rotation_iterations: int = 0
    rotation_delta: float = 0.0
    rotation_converged: bool = True
    extraction_iterations: tuple[int, ...] = ()
    extraction_deltas: tuple[float, ...] = ()
    extraction_converged: bool = True

    @property
    def item_ids(self) -> list[str]:
        return [fl.item_id for fl in self.factor_loadings]

    @property
    def factor_names(self) -> list[str]:
        return [f'Factor_{i + 1}' for i in range(self.factor_count)]

    @property
    def loading_matrix(self) -> np.ndarray:
        """Loadings as an (n_items x factor_count) array."""
        return np.array([fl.loadings for fl in self.factor_loadings], dtype=float)

    @property
    def primary_loadings(self) -> np.ndarray:
        return np.array([fl.primary_loading for fl in self.factor_loadings], dtype=float)

    @property
    def factor_assignments(self) -> list[int]:
        return [fl.primary_factor for fl in self.factor_loadings]

    @property
    def communalities(self) -> np.ndarray:
        return np.array([fl.communality for fl in self.factor_loadings], dtype=float)

    def loadings_frame(self) -> pd.DataFrame:
        """Loadings DataFrame indexed by item, one column per factor."""
        return pd.DataFrame(self.loading_matrix, index=self.item_ids, columns=self.factor_names)

    def communalities_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {'Communality': self.communalities,
             'Primary_Factor': [self.factor_names[f] for f in self.factor_assignments]},
            index=self.item_ids
        )


@dataclass(frozen=True, eq=False)
class ParallelAnalysisResult:
    """Output of parallel_analysis()."""
    suggested_factors: int
    real_eigenvalues: np.ndarray
    random_eigenvalues: np.ndarray
    iterations: int
    percentile: float

    @property
    def kaiser_factors(self) -> int:
        return kaiser_criterion(self.real_eigenvalues)


@dataclass(frozen=True)
class FactorabilityResult:
    """Bartlett's test of sphericity and the KMO measure."""
    bartlett_chi_square: float
    bartlett_p_value: float
    bartlett_pass: bool
    kmo_overall: float
    kmo_label: str
    kmo_per_item: dict

    @property
    def factorable(self) -> bool:
        return self.bartlett_pass and self.kmo_overall >= config.KMO_MINIMUM


# =============================================================================
# FACTORABILITY
# =============================================================================

def check_factorability(
    data: ResponseData,
    item_ids: Optional[Sequence[str]] = None
) -> FactorabilityResult:
    """
    Test whether data is suitable for factor analysis.

    Performs:
    - Bartlett's Test of Sphericity: Should be significant (p < 0.05)
    - KMO (Kaiser-Meyer-Olkin): Should be > 0.6, ideally > 0.8

    Singular correlation matrices (e.g. duplicated items) give NaN statistics
    and a failing verdict rather than an exception.

    Parameters:
        data: Response matrix (n_subjects x n_items)
        item_ids: Optional item identifiers

    Returns:
        FactorabilityResult
    """
    matrix, ids = prepare_responses(data, item_ids)
    chi_square = p_value = kmo_model = np.nan
    kmo_all = np.full(len(ids), np.nan)

    if matrix.shape[1] < 2:
        logger.warning("Factorability needs at least two items, got %d", matrix.shape[1])
    else:
        with warnings.catch_warnings(), np.errstate(all='ignore'):
            warnings.simplefilter('ignore')
            try:
                chi_square, p_value = calculate_bartlett_sphericity(matrix)
                kmo_all, kmo_model = calculate_kmo(matrix)
            except (np.linalg.LinAlgError, ValueError) as exc:
                logger.warning("Factorability tests failed on degenerate data: %s", exc)

    chi_square, p_value, kmo_model = float(chi_square), float(p_value), float(kmo_model)
    return FactorabilityResult(
        bartlett_chi_square=chi_square,
        bartlett_p_value=p_value,
        bartlett_pass=bool(p_value < config.BARTLETT_ALPHA),
        kmo_overall=kmo_model,
        kmo_label=config.get_kmo_label(kmo_model),
        kmo_per_item={item: float(kmo) for item, kmo in zip(ids, np.atleast_1d(kmo_all))},
    )


# =============================================================================
# FACTOR COUNT
# =============================================================================

def kaiser_criterion(eigenvalues: Sequence[float]) -> int:
    """Number of eigenvalues strictly greater than 1."""
    return int(np.sum(np.asarray(eigenvalues, dtype=float) > config.KAISER_EIGENVALUE))


def standard_normal(rng: np.random.Generator, shape: tuple[int, ...]) -> np.ndarray:
    """Standard-normal draws via the Box-Muller transform."""
    u1 = 1.0 - rng.random(shape)  # (0, 1], keeps log finite
    u2 = rng.random(shape)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def parallel_analysis(
    data: ResponseData,
    iterations: Optional[int] = None,
    percentile: Optional[float] = None,
    rng: RandomSource = None
) -> ParallelAnalysisResult:
    """
    Determine the number of factors with Horn's parallel analysis.

    Real eigenvalues are compared rank by rank against the given percentile
    of eigenvalues from random normal data of the same shape. Counting stops
    at the first real eigenvalue that does not exceed its baseline; at least
    one factor is always suggested.

    Parameters:
        data: Response matrix (n_subjects x n_items)
        iterations: Number of simulated matrices. Defaults to config.PARALLEL_ANALYSIS_ITERATIONS
        percentile: Baseline percentile. Defaults to config.PARALLEL_ANALYSIS_PERCENTILE
        rng: numpy Generator or seed

    Returns:
        ParallelAnalysisResult
    """
    if iterations is None:
        iterations = config.PARALLEL_ANALYSIS_ITERATIONS
    if percentile is None:
        percentile = config.PARALLEL_ANALYSIS_PERCENTILE
    if iterations < 1:
        raise ValueError(f"iterations must be positive, got {iterations}")

    matrix = as_response_matrix(data)
    n_subjects, n_items = matrix.shape
    rng = np.random.default_rng(rng)

    real_eigenvalues = eigen_decomposition(correlation_matrix(matrix), rng=rng).values

    simulated = np.zeros((iterations, n_items))
    for i in range(iterations):
        random_data = standard_normal(rng, (n_subjects, n_items))
        values = eigen_decomposition(correlation_matrix(random_data), rng=rng).values
        simulated[i, :len(values)] = values

    index = min(int(np.floor(percentile * iterations)), iterations - 1)
    random_eigenvalues = np.sort(simulated, axis=0)[index]

    suggested = 0
    for real, baseline in zip(real_eigenvalues, random_eigenvalues):
        if real > baseline:
            suggested += 1
        else:
            break

    logger.info("Parallel analysis (%d iterations): %d factor(s) above random baseline",
                iterations, suggested)

    return ParallelAnalysisResult(
        suggested_factors=max(1, suggested),
        real_eigenvalues=real_eigenvalues,
        random_eigenvalues=random_eigenvalues,
        iterations=iterations,
        percentile=percentile,
    )


# =============================================================================
# EXTRACTION
# =============================================================================

def run_efa(
    data: ResponseData,
    n_factors: int,
    rotation: Optional[str] = None,
    item_ids: Optional[Sequence[str]] = None,
    rng: RandomSource = None
) -> EFAResult:
    """
    Run Exploratory Factor Analysis with specified rotation.

    Loadings are eigenvector * sqrt(|eigenvalue|) of the correlation matrix,
    rotated with varimax when more than one factor is extracted. If fewer
    eigenpairs exist than requested, the factor count is reduced.

    Parameters:
        data: Response matrix (n_subjects x n_items)
        n_factors: Number of factors to extract
        rotation: 'varimax' or 'none'. Defaults to config.DEFAULT_ROTATION
        item_ids: Optional item identifiers
        rng: numpy Generator or seed for power iteration

    Returns:
        EFAResult with loadings, communalities and variance explained
    """
    if rotation is None:
        rotation = config.DEFAULT_ROTATION
    if rotation not in config.SUPPORTED_ROTATIONS:
        raise ValueError(
            f"Unsupported rotation '{rotation}'; choose from {config.SUPPORTED_ROTATIONS}"
        )

    matrix, ids = prepare_responses(data, item_ids)
    n_items = matrix.shape[1]
    if not 1 <= n_factors <= n_items:
        raise ValueError(f"n_factors must be between 1 and {n_items}, got {n_factors}")

    corr = correlation_matrix(matrix)
    decomposition = eigen_decomposition(corr, k=n_factors, rng=rng)
    eigenvalues = decomposition.values
    factor_count = len(eigenvalues)
    if factor_count < n_factors:
        logger.warning("Only %d of %d requested factors have non-zero eigenvalues",
                       factor_count, n_factors)

    loadings = decomposition.vectors * np.sqrt(np.abs(eigenvalues))

    iterations, delta, converged = 0, 0.0, True
    if rotation == 'varimax' and factor_count > 1:
        rotated = varimax(loadings)
        loadings = rotated.loadings
        iterations, delta, converged = rotated.iterations, rotated.delta, rotated.converged

    factor_loadings = []
    for item_id, row in zip(ids, loadings):
        factor_loadings.append(FactorLoading(
            item_id=item_id,
            loadings=tuple(float(value) for value in row),
            communality=float(np.sum(row ** 2)),
            primary_factor=int(np.argmax(np.abs(row))) if factor_count else 0,
        ))

    logger.debug("EFA extracted %d factor(s) with %s rotation", factor_count, rotation)

    return EFAResult(
        factor_count=factor_count,
        requested_factors=n_factors,
        factor_loadings=tuple(factor_loadings),
        eigenvalues=eigenvalues,
        variance_explained=eigenvalues / n_items * 100,
        rotated_variance_explained=np.sum(loadings ** 2, axis=0) / n_items * 100,
        rotation_method=rotation,
        rotation_iterations=iterations,
        rotation_delta=delta,
        rotation_converged=converged,
        extraction_iterations=tuple(pair.iterations for pair in decomposition.pairs),
        extraction_deltas=tuple(float(pair.delta) for pair in decomposition.pairs),
        extraction_converged=decomposition.converged,
    )


def interpret_factors(
    result: EFAResult,
    threshold: Optional[float] = None
) -> dict[str, list[tuple[str, float]]]:
    """
    List the items loading on each factor above a threshold.

    Parameters:
        result: Output of run_efa()
        threshold: Minimum absolute loading. Defaults to config.LOADING_THRESHOLD

    Returns:
        Dictionary mapping factor names to (item, loading) tuples, strongest first
    """
    if threshold is None:
        threshold = config.LOADING_THRESHOLD

    loadings = result.loadings_frame()
    interpretations = {}
    for col in loadings.columns:
        high_loaders = loadings[abs(loadings[col]) > threshold][col]
        high_loaders = high_loaders.reindex(high_loaders.abs().sort_values(ascending=False).index)
        interpretations[col] = [(item, float(loading)) for item, loading in high_loaders.items()]

    return interpretations


def print_efa_results(result: EFAResult) -> None:
    """Print EFA loadings and communalities in readable format."""
    print("\n" + "=" * 60)
    print(f"FACTOR ANALYSIS ({result.factor_count} factors, {result.rotation_method} rotation)")
    print("=" * 60)

    print("\nFactor Loadings:")
    print("-" * 50)
    print(result.loadings_frame().round(3).to_string())

    print("\nCommunalities:")
    print("-" * 50)
    for item, comm in zip(result.item_ids, result.communalities):
        status = "LOW" if comm < config.LOADING_THRESHOLD else "OK"
        print(f"  {item}: {comm:.3f} [{status}]")

    print(f"\nTotal variance explained: {result.variance_explained.sum():.1f}%")


def print_factorability(result: FactorabilityResult) -> None:
    """Print sampling adequacy and sphericity checks, weakest items first."""
    print("\n" + "=" * 60)
    print("FACTORABILITY")
    print("=" * 60)

    verdict = 'suitable' if result.factorable else 'NOT suitable'
    print(f"\n  Data are {verdict} for factoring "
          f"(Bartlett p < {config.BARTLETT_ALPHA}, KMO >= {config.KMO_MINIMUM:.2f})")
    print(f"  Sphericity: chi2 = {result.bartlett_chi_square:,.2f}, "
          f"p = {result.bartlett_p_value:.2e} [{'PASS' if result.bartlett_pass else 'FAIL'}]")
    print(f"  Sampling adequacy: KMO = {result.kmo_overall:.3f} [{result.kmo_label}]")

    print("\n  Item KMO (weakest first):")
    ranked = sorted(result.kmo_per_item.items(),
                    key=lambda kv: kv[1] if kv[1] == kv[1] else -1.0)
    for item, kmo in ranked:
        flag = "  <- below minimum" if kmo < config.KMO_MINIMUM else ""
        print(f"    {item:<12} {kmo:.3f} {config.get_kmo_label(kmo)}{flag}")

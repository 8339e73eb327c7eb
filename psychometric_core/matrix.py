"""
Matrix Operations Module
========================

Linear-algebra primitives for factor analysis: correlation and covariance
matrices, power-iteration eigen-decomposition with deflation, and varimax
rotation.

Nothing here has statistical meaning of its own. Iterative routines never
raise on non-convergence; they return their best estimate together with the
iteration count and final change so callers can judge precision.
"""

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Union

import numpy as np

from . import config
from .data import as_response_matrix
from .logging_config import get_logger

logger = get_logger(__name__)

RandomSource = Union[np.random.Generator, int, None]


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True, eq=False)
class EigenPair:
    """One eigenvalue/eigenvector estimate from power iteration."""
    value: float
    vector: np.ndarray
    iterations: int
    delta: float
    converged: bool


@dataclass(frozen=True, eq=False)
class EigenDecomposition:
    """Leading eigenpairs ordered by descending eigenvalue magnitude."""
    pairs: tuple[EigenPair, ...]
    size: int

    @property
    def values(self) -> np.ndarray:
        return np.array([pair.value for pair in self.pairs], dtype=float)

    @property
    def vectors(self) -> np.ndarray:
        """Eigenvectors as columns, shape (size, len(pairs))."""
        if not self.pairs:
            return np.empty((self.size, 0))
        return np.column_stack([pair.vector for pair in self.pairs])

    @property
    def converged(self) -> bool:
        return all(pair.converged for pair in self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)


@dataclass(frozen=True, eq=False)
class VarimaxResult:
    """Rotated loadings plus the orthogonal matrix that produced them."""
    loadings: np.ndarray
    rotation: np.ndarray
    iterations: int
    delta: float
    converged: bool


# =============================================================================
# BASIC OPERATIONS
# =============================================================================

def identity(n: int) -> np.ndarray:
    """Return the n x n identity matrix."""
    return np.eye(n)


def multiply(a: Sequence, b: Sequence) -> np.ndarray:
    """
    Matrix product a @ b.

    Raises:
        ValueError: If the inner dimensions differ
    """
    a = np.atleast_2d(np.asarray(a, dtype=float))
    b = np.atleast_2d(np.asarray(b, dtype=float))
    if a.shape[1] != b.shape[0]:
        raise ValueError(f"Cannot multiply {a.shape} by {b.shape}")
    return a @ b


def transpose(a: Sequence) -> np.ndarray:
    """Return a transposed copy of a 2-D matrix."""
    return np.atleast_2d(np.asarray(a, dtype=float)).T.copy()


def _as_vector_pair(x: Sequence[float], y: Sequence[float]) -> tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=float).ravel()
    y = np.asarray(y, dtype=float).ravel()
    if x.shape != y.shape:
        raise ValueError(f"Vectors differ in length: {x.size} vs {y.size}")
    if x.size < 2:
        raise ValueError("At least two observations are required")
    return x, y


def covariance(x: Sequence[float], y: Sequence[float]) -> float:
    """Sample covariance (n - 1 denominator) of two vectors."""
    x, y = _as_vector_pair(x, y)
    return float(np.sum((x - x.mean()) * (y - y.mean())) / (x.size - 1))


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation of two vectors.

    Returns 0 when either vector has zero variance.
    """
    x, y = _as_vector_pair(x, y)
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return 0.0
    dx = x - x.mean()
    dy = y - y.mean()
    denominator = np.sqrt(np.sum(dx * dx) * np.sum(dy * dy))
    return float(np.clip(np.sum(dx * dy) / denominator, -1.0, 1.0))


def correlation_matrix(data: Sequence) -> np.ndarray:
    """
    Pearson correlation matrix across the item columns of a data matrix.

    Zero-variance items get correlation 0 with every other item, and the
    diagonal is exactly 1.

    Parameters:
        data: Data matrix (n_subjects x n_items)

    Returns:
        Symmetric array (n_items x n_items)
    """
    matrix = as_response_matrix(data)
    centered = matrix - matrix.mean(axis=0)
    cross = centered.T @ centered
    sums_sq = np.diag(cross).copy()
    denominator = np.sqrt(np.outer(sums_sq, sums_sq))

    with np.errstate(divide='ignore', invalid='ignore'):
        corr = np.where(denominator > 0, cross / denominator, 0.0)

    constant = np.ptp(matrix, axis=0) == 0
    corr[constant, :] = 0.0
    corr[:, constant] = 0.0

    corr = np.clip((corr + corr.T) / 2, -1.0, 1.0)
    np.fill_diagonal(corr, 1.0)
    return corr


def covariance_matrix(data: Sequence) -> np.ndarray:
    """Sample covariance matrix (n - 1 denominator) across item columns."""
    matrix = as_response_matrix(data)
    centered = matrix - matrix.mean(axis=0)
    cov = centered.T @ centered / (matrix.shape[0] - 1)
    return (cov + cov.T) / 2


# =============================================================================
# EIGEN-DECOMPOSITION
# =============================================================================

def _as_square(a: Sequence) -> np.ndarray:
    a = np.array(a, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {a.shape}")
    return a


def power_iteration(
    a: Sequence,
    max_iter: Optional[int] = None,
    tol: Optional[float] = None,
    rng: RandomSource = None
) -> EigenPair:
    """
    Dominant eigenpair of a symmetric matrix by power iteration.

    Starts from a random unit vector, then repeats: multiply, Rayleigh
    quotient, renormalise. Stops when successive eigenvalue estimates differ
    by less than tol, or after max_iter steps with the last estimate.

    Parameters:
        a: Symmetric square matrix
        max_iter: Iteration cap. Defaults to config.POWER_ITERATION_MAX_ITER
        tol: Convergence tolerance. Defaults to config.POWER_ITERATION_TOL
        rng: numpy Generator or seed for the starting vector

    Returns:
        EigenPair with convergence diagnostics
    """
    if max_iter is None:
        max_iter = config.POWER_ITERATION_MAX_ITER
    if tol is None:
        tol = config.POWER_ITERATION_TOL

    a = _as_square(a)
    rng = np.random.default_rng(rng)
    n = a.shape[0]

    v = rng.random(n)
    norm = np.linalg.norm(v)
    v = v / norm if norm > 0 else np.full(n, 1.0 / np.sqrt(n))

    eigenvalue = 0.0
    delta = np.inf

    for iteration in range(1, max_iter + 1):
        av = a @ v
        new_eigenvalue = float(av @ v)
        delta = abs(new_eigenvalue - eigenvalue)

        norm = np.linalg.norm(av)
        if norm == 0:
            # v is in the null space; the remaining spectrum is zero
            return EigenPair(0.0, v, iteration, delta, True)
        new_v = av / norm

        if delta < tol:
            return EigenPair(new_eigenvalue, new_v, iteration, delta, True)

        eigenvalue = new_eigenvalue
        v = new_v

    logger.debug("Power iteration stopped after %d iterations (delta=%.3e)", max_iter, delta)
    return EigenPair(eigenvalue, v, max_iter, delta, False)


def eigen_decomposition(
    a: Sequence,
    k: Optional[int] = None,
    max_iter: Optional[int] = None,
    tol: Optional[float] = None,
    rng: RandomSource = None
) -> EigenDecomposition:
    """
    Leading eigenpairs of a symmetric matrix via power iteration and deflation.

    After each pair (lambda, v) the working matrix becomes A - lambda * v v^T.
    Extraction stops early once an eigenvalue magnitude falls below
    config.EIGENVALUE_FLOOR, so fewer than k pairs may come back.

    Parameters:
        a: Symmetric square matrix
        k: Number of pairs wanted. Defaults to the matrix size
        max_iter: Power-iteration cap per pair
        tol: Power-iteration tolerance
        rng: numpy Generator or seed for starting vectors

    Returns:
        EigenDecomposition ordered by descending |eigenvalue|
    """
    a = _as_square(a)
    n = a.shape[0]
    if k is None:
        k = n
    if k < 0:
        raise ValueError(f"k must be non-negative, got {k}")
    k = min(int(k), n)
    rng = np.random.default_rng(rng)

    deflated = a.copy()
    pairs = []
    for _ in range(k):
        pair = power_iteration(deflated, max_iter=max_iter, tol=tol, rng=rng)
        if abs(pair.value) < config.EIGENVALUE_FLOOR:
            break

        if pair.vector.sum() < 0:
            pair = replace(pair, vector=-pair.vector)
        pairs.append(pair)
        deflated = deflated - pair.value * np.outer(pair.vector, pair.vector)

    if len(pairs) < k:
        logger.debug("Eigen-decomposition truncated at %d of %d pairs", len(pairs), k)

    pairs.sort(key=lambda pair: abs(pair.value), reverse=True)
    return EigenDecomposition(tuple(pairs), n)


# =============================================================================
# ROTATION
# =============================================================================

def varimax_criterion(loadings: np.ndarray) -> float:
    """Summed per-column variance of squared loadings."""
    squared = np.asarray(loadings, dtype=float) ** 2
    return float(np.sum((squared - squared.mean(axis=0)) ** 2))


def varimax(
    loadings: Sequence,
    max_iter: Optional[int] = None,
    tol: Optional[float] = None,
    normalize: bool = False
) -> VarimaxResult:
    """
    Orthogonal varimax rotation by pairwise planar rotations.

    Each sweep visits every factor pair and rotates it by the closed-form
    angle phi = atan2(b, a) / 4. Sweeps stop when the varimax criterion
    changes by less than tol, or after max_iter sweeps. Columns are then
    reflected so each has a non-negative sum. Item communalities are
    unchanged.

    Parameters:
        loadings: Loading matrix (n_items x n_factors)
        max_iter: Sweep cap. Defaults to config.VARIMAX_MAX_ITER
        tol: Criterion tolerance. Defaults to config.VARIMAX_TOL
        normalize: Apply Kaiser row normalisation during rotation

    Returns:
        VarimaxResult with rotated loadings and rotation matrix
    """
    if max_iter is None:
        max_iter = config.VARIMAX_MAX_ITER
    if tol is None:
        tol = config.VARIMAX_TOL

    rotated = np.array(loadings, dtype=float)
    if rotated.ndim != 2:
        raise ValueError(f"Loadings must be 2-D, got shape {rotated.shape}")

    n_items, n_factors = rotated.shape
    rotation = np.eye(n_factors)
    if n_factors < 2 or n_items == 0:
        return VarimaxResult(rotated, rotation, 0, 0.0, True)

    weights = np.ones(n_items)
    if normalize:
        weights = np.sqrt(np.sum(rotated ** 2, axis=1))
        weights[weights == 0] = 1.0
        rotated = rotated / weights[:, None]

    previous = -np.inf
    delta = np.inf
    sweeps = 0
    converged = False

    while sweeps < max_iter:
        criterion = varimax_criterion(rotated)
        delta = abs(criterion - previous)
        if delta < tol:
            converged = True
            break
        previous = criterion

        for j in range(n_factors - 1):
            for l in range(j + 1, n_factors):
                x = rotated[:, j]
                y = rotated[:, l]
                u = x * x - y * y
                v = 2 * x * y
                a = np.sum(u * u - v * v) - (u.sum() ** 2 - v.sum() ** 2) / n_items
                b = 2 * np.sum(u * v) - 2 * u.sum() * v.sum() / n_items
                phi = np.arctan2(b, a) / 4

                cos, sin = np.cos(phi), np.sin(phi)
                new_x = x * cos + y * sin
                new_y = -x * sin + y * cos
                rotated[:, j] = new_x
                rotated[:, l] = new_y

                rot_j = rotation[:, j].copy()
                rot_l = rotation[:, l].copy()
                rotation[:, j] = rot_j * cos + rot_l * sin
                rotation[:, l] = -rot_j * sin + rot_l * cos

        sweeps += 1

    if not converged:
        logger.debug("Varimax stopped after %d sweeps (delta=%.3e)", sweeps, delta)

    rotated = rotated * weights[:, None]

    signs = np.where(rotated.sum(axis=0) < 0, -1.0, 1.0)
    rotated = rotated * signs
    rotation = rotation * signs

    return VarimaxResult(rotated, rotation, sweeps, float(delta), converged)

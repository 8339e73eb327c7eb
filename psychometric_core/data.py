"""
Response Data Module
====================

Functions for coercing and validating response matrices before analysis.

A response matrix has one row per subject and one column per item. It may be
passed as nested lists, a 2-D numpy array, or a pandas DataFrame whose column
names serve as item identifiers.
"""

from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from .logging_config import get_logger

logger = get_logger(__name__)

ResponseData = Union[Sequence[Sequence[float]], np.ndarray, pd.DataFrame]


def as_response_matrix(data: ResponseData, min_subjects: int = 2) -> np.ndarray:
    """
    Convert response data to a validated float matrix.

    The input is copied, never modified.

    Parameters:
        data: Response matrix (n_subjects x n_items)
        min_subjects: Minimum number of rows required

    Returns:
        Float array of shape (n_subjects, n_items)

    Raises:
        ValueError: If the data is empty, ragged, non-numeric or non-finite
    """
    if isinstance(data, pd.DataFrame):
        values = data.to_numpy()
    elif isinstance(data, np.ndarray):
        values = data
    else:
        rows = list(data)
        if len(rows) == 0:
            raise ValueError("Response matrix has no subjects")
        lengths = {len(row) for row in rows}
        if len(lengths) > 1:
            raise ValueError(
                f"Response matrix is ragged: row lengths {sorted(lengths)}"
            )
        values = rows

    try:
        matrix = np.array(values, dtype=float)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Response matrix must be numeric: {exc}") from exc

    if matrix.ndim != 2:
        raise ValueError(f"Response matrix must be 2-D, got {matrix.ndim} dimension(s)")

    n_subjects, n_items = matrix.shape
    if n_items == 0:
        raise ValueError("Response matrix has no items")
    if n_subjects < min_subjects:
        raise ValueError(
            f"Response matrix needs at least {min_subjects} subjects, got {n_subjects}"
        )
    if not np.all(np.isfinite(matrix)):
        raise ValueError("Response matrix contains missing or non-finite values")

    return matrix


def default_item_ids(n_items: int) -> list[str]:
    """Return positional item ids: item_1, item_2, ..."""
    return [f"item_{i + 1}" for i in range(n_items)]


def resolve_item_ids(
    data: ResponseData,
    n_items: int,
    item_ids: Optional[Sequence[str]] = None
) -> list[str]:
    """
    Pick item identifiers for a response matrix.

    Explicit ids win, then DataFrame column names, then positional ids.

    Parameters:
        data: The original response data
        n_items: Number of item columns
        item_ids: Optional explicit identifiers

    Returns:
        List of n_items identifiers
    """
    if item_ids is None:
        if isinstance(data, pd.DataFrame):
            return [str(col) for col in data.columns]
        return default_item_ids(n_items)

    item_ids = [str(item) for item in item_ids]
    if len(item_ids) != n_items:
        raise ValueError(
            f"Expected {n_items} item ids, got {len(item_ids)}"
        )
    return item_ids


def prepare_responses(
    data: ResponseData,
    item_ids: Optional[Sequence[str]] = None,
    min_subjects: int = 2
) -> tuple[np.ndarray, list[str]]:
    """
    Convenience function: validate the matrix and resolve item ids.

    Parameters:
        data: Response matrix
        item_ids: Optional explicit identifiers
        min_subjects: Minimum number of rows required

    Returns:
        Tuple of (float matrix, item ids)
    """
    matrix = as_response_matrix(data, min_subjects=min_subjects)
    ids = resolve_item_ids(data, matrix.shape[1], item_ids)
    logger.debug("Prepared response matrix: %d subjects x %d items", *matrix.shape)
    return matrix, ids

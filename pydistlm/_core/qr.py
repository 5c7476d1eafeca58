"""
TSQR helpers shared by the backends.

Each partition reduces its augmented matrix ``A = [1 | X | Y]`` to the
upper-trapezoidal factor ``R`` of ``A = QR``. Stacking the factors of all
partitions and factoring again gives the ``R`` of the full matrix, because
``Q`` is orthogonal and drops out of the normal equations.
"""

import numpy as np


def augmented_matrix(
    features: np.ndarray,
    labels: np.ndarray,
    fit_intercept: bool,
) -> np.ndarray:
    """
    Build ``[1 | X | Y]`` (or ``[X | Y]`` without intercept).

    Parameters
    ----------
    features : ndarray, shape (n, p)
        Feature matrix
    labels : ndarray, shape (n, k)
        Label matrix
    fit_intercept : bool
        Prepend a column of ones

    Returns
    -------
    ndarray, shape (n, p + k) or (n, p + k + 1)
    """
    if features.shape[0] != labels.shape[0]:
        raise ValueError(
            f"features has {features.shape[0]} rows but labels has {labels.shape[0]}"
        )
    blocks = [features, labels]
    if fit_intercept:
        blocks.insert(0, np.ones((features.shape[0], 1), dtype=np.float64))
    return np.ascontiguousarray(np.hstack(blocks), dtype=np.float64)


def canonical_sign(R: np.ndarray) -> np.ndarray:
    """
    Flip rows of ``R`` so its diagonal is non-negative.

    ``R`` is unique up to row signs; fixing the sign makes merged factors
    independent of the order in which partials were stacked.
    """
    if R.shape[0] == 0:
        return R
    signs = np.sign(np.diag(R)).astype(np.float64)
    signs[signs == 0] = 1.0
    return R * signs[:, np.newaxis]


def stack_factors(factors, n_cols: int) -> np.ndarray:
    """Vertically stack ``R`` factors, skipping empty ones."""
    non_empty = [r for r in factors if r.shape[0] > 0]
    if not non_empty:
        return np.zeros((0, n_cols), dtype=np.float64)
    for r in non_empty:
        if r.shape[1] != n_cols:
            raise ValueError(
                f"Partial results disagree on width: {r.shape[1]} != {n_cols}"
            )
    return np.vstack(non_empty)

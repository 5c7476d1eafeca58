"""
Abstract base classes for backends.

Defines the interface all training kernels must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy.linalg import solve_triangular


@dataclass
class PartialResult:
    """
    Intermediate state of one partition (or of a merge).

    ``r`` is the upper-trapezoidal QR factor of the augmented matrix
    ``[1 | X | Y]`` with a non-negative diagonal.
    """
    r: np.ndarray           # shape (min(n, m), m)
    n_obs: int              # Rows that went into r
    n_features: int         # Feature columns (excluding intercept)
    n_responses: int        # Label columns
    fit_intercept: bool

    @property
    def n_coef(self) -> int:
        """Coefficients per response, including the intercept slot."""
        return self.n_features + int(self.fit_intercept)


@dataclass
class LinearRegressionModel:
    """Trained linear regression model."""
    beta: np.ndarray        # shape (n_responses, n_coef); intercept first when fitted
    r: np.ndarray           # Final QR factor, shape (m, m)
    n_obs: int
    n_features: int
    fit_intercept: bool

    @property
    def n_responses(self) -> int:
        return self.beta.shape[0]

    @property
    def rss(self) -> np.ndarray:
        """Residual sum of squares per response (from the label block of R)."""
        c = self.beta.shape[1]
        tail = self.r[c:, c:]
        return np.sum(tail ** 2, axis=0)

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Predictions of every response, shape (n, n_responses)."""
        X = np.asarray(X, dtype=np.float64)
        if self.fit_intercept:
            return X @ self.beta[:, 1:].T + self.beta[:, 0]
        return X @ self.beta.T


class TrainingBackend(ABC):
    """
    Abstract base class for all training kernels.

    Backends implement the two QR steps with their native types and only
    convert to NumPy at entry/exit. ``finalize`` works on the small
    ``m x m`` factor and is shared.
    """

    name = "base"

    @abstractmethod
    def compute_partial(
        self,
        features: np.ndarray,
        labels: np.ndarray,
        fit_intercept: bool = True,
    ) -> PartialResult:
        """
        Local training step on one partition.

        Parameters
        ----------
        features : ndarray, shape (n, p)
            Feature matrix (WITHOUT intercept)
        labels : ndarray, shape (n, k)
            Label matrix
        fit_intercept : bool
            Whether to estimate an intercept term

        Returns
        -------
        PartialResult
        """
        pass

    @abstractmethod
    def merge_partials(self, partials: Sequence[PartialResult]) -> PartialResult:
        """
        Master step: combine partial results into one.

        The result must not depend on the order of ``partials``.
        """
        pass

    @abstractmethod
    def get_device_info(self) -> dict:
        """Get backend information."""
        pass

    def finalize(self, merged: PartialResult) -> LinearRegressionModel:
        """
        Solve ``R_xx beta = R_xy`` for the merged factor.

        Raises
        ------
        ValueError
            Fewer observations than coefficients, or rank-deficient design
        """
        c = merged.n_coef
        R = merged.r

        if merged.n_obs < c or R.shape[0] < c:
            raise ValueError(
                f"Not enough observations to fit {c} coefficients "
                f"(got {merged.n_obs})"
            )

        R_xx = R[:c, :c]
        R_xy = R[:c, c:]

        # Rank check on the diagonal of R (relative to the largest pivot)
        diag = np.abs(np.diag(R_xx))
        tol = max(merged.n_obs, c) * np.finfo(np.float64).eps * diag.max()
        if diag.max() == 0 or np.any(diag <= tol):
            rank = int(np.sum(diag > tol))
            raise ValueError(f"Singular fit: rank {rank} < {c} columns")

        coef = solve_triangular(R_xx, R_xy, lower=False)

        m = R.shape[1]
        r_full = np.zeros((m, m), dtype=np.float64)
        rows = min(R.shape[0], m)
        r_full[:rows] = R[:rows]

        return LinearRegressionModel(
            beta=np.ascontiguousarray(coef.T),
            r=r_full,
            n_obs=merged.n_obs,
            n_features=merged.n_features,
            fit_intercept=merged.fit_intercept,
        )

    @staticmethod
    def _check_compatible(partials: Sequence[PartialResult]):
        if len(partials) == 0:
            raise ValueError("No partial results to merge")
        first = partials[0]
        for p in partials[1:]:
            if (p.n_features, p.n_responses, p.fit_intercept) != \
                    (first.n_features, first.n_responses, first.fit_intercept):
                raise ValueError("Partial results were trained with different layouts")


class CPUBackend(TrainingBackend):
    """CPU backend base class (always FP64)."""
    pass


class GPUBackendFP64(TrainingBackend):
    """GPU backend base class for FP64."""
    pass

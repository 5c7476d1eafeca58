"""
CPU backend using NumPy + SciPy.

This is the reference kernel; other backends are validated against it.
"""

import numpy as np
from scipy.linalg import qr
from typing import Sequence

from .base import CPUBackend, PartialResult
from .._core.qr import augmented_matrix, canonical_sign, stack_factors


def _r_factor(A: np.ndarray) -> np.ndarray:
    """Economic R factor of ``A`` (LAPACK dgeqrf), shape (min(n, m), m)."""
    n, m = A.shape
    if n == 0:
        return np.zeros((0, m), dtype=np.float64)
    R, = qr(A, mode='r', overwrite_a=True, check_finite=False)
    return canonical_sign(R[:min(n, m)])


class CPUBackendFP64(CPUBackend):
    """
    CPU backend using NumPy + SciPy.

    Reference implementation. Always uses FP64 precision.
    """

    def __init__(self):
        self.name = "cpu_fp64"
        self.precision = "fp64"

    def compute_partial(
        self,
        features: np.ndarray,
        labels: np.ndarray,
        fit_intercept: bool = True,
    ) -> PartialResult:
        """Factor ``[1 | X | Y]`` of one partition."""
        A = augmented_matrix(features, labels, fit_intercept)
        return PartialResult(
            r=_r_factor(A),
            n_obs=A.shape[0],
            n_features=features.shape[1],
            n_responses=labels.shape[1],
            fit_intercept=fit_intercept,
        )

    def merge_partials(self, partials: Sequence[PartialResult]) -> PartialResult:
        """Stack every partial factor and factor again."""
        self._check_compatible(partials)
        first = partials[0]
        m = first.n_coef + first.n_responses

        stacked = stack_factors([p.r for p in partials], m)
        return PartialResult(
            r=_r_factor(stacked),
            n_obs=sum(p.n_obs for p in partials),
            n_features=first.n_features,
            n_responses=first.n_responses,
            fit_intercept=first.fit_intercept,
        )

    def get_device_info(self) -> dict:
        """Get backend information."""
        import scipy
        return {
            'backend': 'cpu',
            'precision': 'fp64',
            'library': f'NumPy {np.__version__}, SciPy {scipy.__version__}',
        }

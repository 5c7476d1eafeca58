"""
GPU backend using PyTorch with FP64 precision.

For data center GPUs: A100, H100, V100. Falls back to the torch CPU device
when CUDA is unavailable.
"""

import numpy as np
import warnings
from typing import Optional, Sequence

from .base import GPUBackendFP64, PartialResult
from .._core.qr import augmented_matrix, canonical_sign, stack_factors


class PyTorchBackendFP64(GPUBackendFP64):
    """
    PyTorch backend with FP64 precision.

    Both QR steps run on the device; only the R factors come back to NumPy.
    """

    def __init__(self, device: Optional[str] = None):
        """Initialize PyTorch FP64 backend."""
        self.name = "pytorch_fp64"
        self.precision = "fp64"

        try:
            import torch
            self.torch = torch
        except ImportError:
            raise ImportError(
                "PyTorch required for GPU backend. "
                "Install: pip install torch"
            )

        # Device selection (no Metal for FP64)
        if device == 'mps':
            raise RuntimeError(
                "FP64 not supported on Apple Metal. "
                "Use the CPU backend."
            )

        if device is None:
            if torch.cuda.is_available():
                device = 'cuda'
            else:
                warnings.warn("No CUDA GPU available, using CPU")
                device = 'cpu'

        self.device = torch.device(device)

    def _r_factor(self, A: np.ndarray) -> np.ndarray:
        """Economic R factor computed on the device."""
        torch = self.torch
        n, m = A.shape
        if n == 0:
            return np.zeros((0, m), dtype=np.float64)

        A_gpu = torch.from_numpy(np.ascontiguousarray(A)).double().to(self.device)
        _, R = torch.linalg.qr(A_gpu, mode='r')
        return canonical_sign(R.cpu().numpy()[:min(n, m)])

    def compute_partial(
        self,
        features: np.ndarray,
        labels: np.ndarray,
        fit_intercept: bool = True,
    ) -> PartialResult:
        A = augmented_matrix(features, labels, fit_intercept)
        return PartialResult(
            r=self._r_factor(A),
            n_obs=A.shape[0],
            n_features=features.shape[1],
            n_responses=labels.shape[1],
            fit_intercept=fit_intercept,
        )

    def merge_partials(self, partials: Sequence[PartialResult]) -> PartialResult:
        self._check_compatible(partials)
        first = partials[0]
        m = first.n_coef + first.n_responses

        stacked = stack_factors([p.r for p in partials], m)
        return PartialResult(
            r=self._r_factor(stacked),
            n_obs=sum(p.n_obs for p in partials),
            n_features=first.n_features,
            n_responses=first.n_responses,
            fit_intercept=first.fit_intercept,
        )

    def get_device_info(self) -> dict:
        """Get backend information."""
        return {
            'backend': 'gpu' if self.device.type == 'cuda' else 'cpu',
            'precision': 'fp64',
            'device': str(self.device),
            'library': f'PyTorch {self.torch.__version__}',
        }

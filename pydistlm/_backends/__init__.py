"""
Backend selection and management.

Provides a unified interface for the CPU (NumPy/SciPy) and PyTorch kernels.
"""

import warnings

from .base import TrainingBackend, PartialResult, LinearRegressionModel
from ..exceptions import ConfigurationError

# Try importing CPU backend (always available)
try:
    from .cpu_fp64_backend import CPUBackendFP64
    CPU_AVAILABLE = True
except ImportError:
    CPU_AVAILABLE = False
    warnings.warn("CPU backend unavailable - installation error!")

# Try importing PyTorch backend (optional dependency)
try:
    import torch  # noqa: F401
    from .gpu_fp64_backend import PyTorchBackendFP64
    PYTORCH_AVAILABLE = True
except ImportError:
    PYTORCH_AVAILABLE = False


def _cuda_available() -> bool:
    if not PYTORCH_AVAILABLE:
        return False
    import torch
    return torch.cuda.is_available()


def get_backend(backend='auto') -> TrainingBackend:
    """
    Get training backend.

    Parameters
    ----------
    backend : str or TrainingBackend
        Backend selection:
        - 'auto': PyTorch on CUDA when available, otherwise CPU
        - 'cpu': NumPy/SciPy (FP64)
        - 'gpu': PyTorch on CUDA (fails without a GPU)
        - 'pytorch': PyTorch on its default device
        A ``TrainingBackend`` instance is returned unchanged.

    Returns
    -------
    TrainingBackend
        Backend instance

    Examples
    --------
    >>> backend = get_backend('auto')
    >>> backend = get_backend('cpu')
    """
    if isinstance(backend, TrainingBackend):
        return backend

    if backend == 'auto':
        if _cuda_available():
            return PyTorchBackendFP64(device='cuda')
        if not CPU_AVAILABLE:
            raise RuntimeError("No backends available!")
        return CPUBackendFP64()

    elif backend == 'cpu':
        if not CPU_AVAILABLE:
            raise RuntimeError("CPU backend unavailable!")
        return CPUBackendFP64()

    elif backend == 'gpu':
        if not _cuda_available():
            raise ConfigurationError(
                "No CUDA GPU detected.\n"
                "Options:\n"
                "  - Use backend='cpu'\n"
                "  - Install PyTorch with CUDA for NVIDIA"
            )
        return PyTorchBackendFP64(device='cuda')

    elif backend == 'pytorch':
        if not PYTORCH_AVAILABLE:
            raise RuntimeError(
                "PyTorch backend unavailable.\n"
                "Install: pip install torch"
            )
        return PyTorchBackendFP64()

    else:
        raise ConfigurationError(
            f"Unknown backend: '{backend}'\n"
            f"Valid options: 'auto', 'cpu', 'gpu', 'pytorch'"
        )


def list_available_backends() -> list:
    """List names of available backends."""
    backends = []
    if CPU_AVAILABLE:
        backends.append('cpu')
    if PYTORCH_AVAILABLE:
        backends.append('pytorch')
    return backends


__all__ = [
    'get_backend',
    'list_available_backends',
    'TrainingBackend',
    'PartialResult',
    'LinearRegressionModel',
    'CPU_AVAILABLE',
    'PYTORCH_AVAILABLE',
]

"""
Core algorithms (backend-agnostic).
"""

from .qr import augmented_matrix, canonical_sign, stack_factors
from .distributed import DistributedAlgorithm

__all__ = [
    "augmented_matrix",
    "canonical_sign",
    "stack_factors",
    "DistributedAlgorithm",
]

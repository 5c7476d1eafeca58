"""
Two-phase distributed training protocol.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

P = TypeVar('P')
R = TypeVar('R')


class DistributedAlgorithm(ABC, Generic[P, R]):
    """
    Algorithm trained as a parallel map followed by a single merge.

    ``compute_partial_results`` runs independently on every partition;
    ``merge_partial_results`` runs once, at the driver, after all
    partitions have finished.
    """

    @abstractmethod
    def compute_partial_results(self) -> Any:
        """Distributed collection of per-partition partial results."""
        pass

    @abstractmethod
    def merge_partial_results(self, partials) -> R:
        """Combine every partial result into the final result."""
        pass

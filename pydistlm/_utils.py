"""
Utility functions.
"""

import numpy as np
from pandas.api.types import is_bool_dtype, is_numeric_dtype


def check_array(X, name='X', dtype=np.float64):
    """Validate array input and return it C-contiguous."""
    X = np.ascontiguousarray(X, dtype=dtype)
    if X.ndim != 2:
        raise ValueError(f"{name} must be 2-dimensional")
    if not np.all(np.isfinite(X)):
        raise ValueError(f"{name} contains NaN or Inf")
    return X


def is_numeric_column(dtype) -> bool:
    """True for int/float dtypes; booleans are not accepted as numeric."""
    return is_numeric_dtype(dtype) and not is_bool_dtype(dtype)

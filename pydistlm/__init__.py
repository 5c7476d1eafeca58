"""
PyDistLM: distributed linear regression with QR decomposition.

Copyright (C) 2024 SGCX
Licensed under GPL-3.0
"""

import logging

__version__ = "1.0.0"

# Import main user-facing API
from .algorithm import train, LinearTrainAlgorithm
from .model import (
    LinearRegressionModelData,
    LinearRegressionTestReturn,
    deserialize_model,
    serialize_model,
)
from .frame import PartitionedFrame, SparkFrame, as_frame
from .exceptions import (
    LinearTrainError,
    ConfigurationError,
    ComputationError,
    SerializationError,
)

# Import backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    'train',
    'LinearTrainAlgorithm',
    'LinearRegressionModelData',
    'LinearRegressionTestReturn',
    'serialize_model',
    'deserialize_model',
    'PartitionedFrame',
    'SparkFrame',
    'as_frame',
    'LinearTrainError',
    'ConfigurationError',
    'ComputationError',
    'SerializationError',
    'get_backend',
    'list_available_backends',
]

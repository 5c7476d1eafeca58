"""
Conversion of distributed frames into per-partition labeled tables.

A ``LabeledTable`` pairs a features matrix with a labels matrix, both in
the layout the training kernels expect (C-contiguous float64, 2-D).
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
import pandas as pd

from ._utils import check_array
from .exceptions import ConfigurationError, ComputationError, stage
from .frame import SparkFrame

logger = logging.getLogger(__name__)


@dataclass
class LabeledTable:
    """Features and labels of one partition (row i matches row i)."""
    features: np.ndarray   # shape (n, p)
    labels: np.ndarray     # shape (n, k)

    @property
    def num_rows(self) -> int:
        return self.features.shape[0]

    @property
    def num_features(self) -> int:
        return self.features.shape[1]


def validate_columns(frame, observation_columns: Sequence[str], value_columns: Sequence[str]):
    """
    Check that every requested column exists and is numeric.

    Raises
    ------
    ConfigurationError
        Empty feature list, missing, duplicated or non-numeric column
    """
    if isinstance(observation_columns, str):
        raise ConfigurationError("observation_columns must be a list of column names")
    if len(observation_columns) == 0:
        raise ConfigurationError("observation_columns must not be empty")
    if len(value_columns) == 0:
        raise ConfigurationError("value column must be specified")

    requested = list(observation_columns) + list(value_columns)
    duplicated = sorted({c for c in requested if requested.count(c) > 1})
    if duplicated:
        raise ConfigurationError(f"Columns requested more than once: {duplicated}")

    available = set(frame.columns)
    missing = [c for c in requested if c not in available]
    if missing:
        raise ConfigurationError(
            f"Columns not found in frame: {missing}. "
            f"Available columns: {list(frame.columns)}"
        )

    non_numeric = [c for c in requested if not frame.is_numeric(c)]
    if non_numeric:
        raise ConfigurationError(
            "Columns must be numeric: "
            + ", ".join(f"{c} ({frame.dtypes[c]})" for c in non_numeric)
        )


def to_labeled_table(
    part: pd.DataFrame,
    observation_columns: List[str],
    value_columns: List[str],
) -> LabeledTable:
    """Convert one partition's rows into a ``LabeledTable``."""
    with stage("Could not convert partition to table", ComputationError):
        features = check_array(part[observation_columns].to_numpy(), name='features')
        labels = check_array(part[value_columns].to_numpy(), name='labels')
    logger.debug("Converted partition with %d rows", features.shape[0])
    return LabeledTable(features=features, labels=labels)


class DistributedLabeledTable:
    """
    Distributed collection of ``LabeledTable`` (one per partition).

    Examples
    --------
    >>> tables = DistributedLabeledTable.create_table(frame, ['x1', 'x2'], ['y'])
    >>> [t.num_rows for t in tables.rdd.collect()]
    """

    def __init__(self, rdd, num_features: int, num_labels: int):
        self.rdd = rdd
        self.num_features = num_features
        self.num_labels = num_labels

    @classmethod
    def create_table(
        cls,
        frame,
        observation_columns: Sequence[str],
        value_columns: Sequence[str],
    ) -> 'DistributedLabeledTable':
        """
        Validate columns, then lazily map partitions into labeled tables.

        Parameters
        ----------
        frame : PartitionedFrame or SparkFrame
            Input frame
        observation_columns : list of str
            Feature columns
        value_columns : list of str
            Label columns
        """
        validate_columns(frame, observation_columns, value_columns)
        obs = list(observation_columns)
        values = list(value_columns)

        def convert(part):
            return to_labeled_table(part, obs, values)

        if isinstance(frame, SparkFrame):
            rdd = frame.map_partitions(convert, columns=obs + values)
        else:
            rdd = frame.map_partitions(convert)
        return cls(rdd, num_features=len(obs), num_labels=len(values))

"""
Distributed linear regression training with QR decomposition.

This is the user-facing API.
"""

import logging
from typing import List, Optional

from ._backends import get_backend
from ._backends.base import LinearRegressionModel, PartialResult
from ._core.distributed import DistributedAlgorithm
from .exceptions import (
    ComputationError,
    ConfigurationError,
    LinearTrainError,
    SerializationError,
    stage,
)
from .frame import as_frame
from .model import (
    LinearRegressionModelData,
    get_weights_and_intercept,
    serialize_model,
)
from .tables import DistributedLabeledTable

logger = logging.getLogger(__name__)


class LinearTrainAlgorithm(DistributedAlgorithm[PartialResult, LinearRegressionModel]):
    """
    Train a linear regression model using QR decomposition.

    Each partition factors its own rows (local step); the driver collects
    every partial factor and merges them (master step), then solves for the
    coefficients.

    Examples
    --------
    >>> algo = LinearTrainAlgorithm(frame, ['x1', 'x2'], 'y')
    >>> data = algo.train()
    >>> data.weights, data.intercept
    """

    def __init__(
        self,
        frame,
        observation_columns: List[str],
        value_column: str,
        fit_intercept: bool = True,
        backend='auto',
    ):
        """
        Parameters
        ----------
        frame : PartitionedFrame, SparkFrame or pandas/pyspark DataFrame
            Input frame
        observation_columns : list of str
            Feature columns
        value_column : str
            Dependent variable column
        fit_intercept : bool
            Whether to fit an intercept term
        backend : str or TrainingBackend
            Training kernel: 'auto', 'cpu', 'gpu', 'pytorch'

        Raises
        ------
        ConfigurationError
            Missing or non-numeric columns (before any computation)
        """
        if not isinstance(value_column, str):
            raise ConfigurationError("value_column must be a single column name")

        self.frame = as_frame(frame)
        self.observation_columns = list(observation_columns)
        self.value_column = value_column
        self.fit_intercept = bool(fit_intercept)
        self.backend = get_backend(backend)
        self.train_tables = DistributedLabeledTable.create_table(
            self.frame, self.observation_columns, [value_column]
        )

    def train(self) -> LinearRegressionModelData:
        """
        Train the model and serialize it.

        Returns
        -------
        LinearRegressionModelData

        Raises
        ------
        ComputationError
            Local training or merge failed
        SerializationError
            Model could not be serialized
        """
        logger.info(
            "Training linear regression on %s (features=%s, label=%s, "
            "fit_intercept=%s, backend=%s)",
            self.frame, self.observation_columns, self.value_column,
            self.fit_intercept, self.backend.name
        )
        with stage("Could not train linear regression model"):
            partials = self.compute_partial_results()
            trained_model = self.merge_partial_results(partials)

            weights, intercept = get_weights_and_intercept(trained_model, self.fit_intercept)
            serialized = serialize_model(trained_model)

        logger.info("Trained linear regression on %d observations", trained_model.n_obs)
        return LinearRegressionModelData(
            serialized_model=serialized,
            weights=weights,
            intercept=intercept,
            observation_columns=tuple(self.observation_columns),
            value_column=self.value_column,
        )

    def compute_partial_results(self):
        """
        Local step: factor every partition independently.

        Returns
        -------
        Distributed collection of ``PartialResult`` (lazy)
        """
        backend = self.backend
        fit_intercept = self.fit_intercept

        def train_partition(table):
            with stage("Could not compute partial results for linear regression"):
                partial = backend.compute_partial(table.features, table.labels, fit_intercept)
            logger.debug("Partial result from %d rows", partial.n_obs)
            return partial

        return self.train_tables.rdd.map(train_partition)

    def merge_partial_results(self, partials) -> LinearRegressionModel:
        """
        Master step: collect every partial result and merge at the driver.

        Parameters
        ----------
        partials : distributed collection or list of PartialResult

        Returns
        -------
        LinearRegressionModel
        """
        collected = partials.collect() if hasattr(partials, 'collect') else list(partials)
        logger.info("Merging %d partial results", len(collected))

        with stage("Could not merge partial results for linear regression"):
            merged = self.backend.merge_partials(collected)
            return self.backend.finalize(merged)


def train(
    frame,
    observation_columns: List[str],
    value_column: str,
    fit_intercept: bool = True,
    backend='auto',
    num_partitions: Optional[int] = None,
) -> LinearRegressionModelData:
    """
    Train a linear regression model (convenience function).

    Parameters
    ----------
    frame : pandas DataFrame, PartitionedFrame or Spark DataFrame
        Training data
    observation_columns : list of str
        Feature columns
    value_column : str
        Dependent variable column
    fit_intercept : bool
        Whether to fit an intercept term
    backend : str
        Training kernel
    num_partitions : int, optional
        Partition count when ``frame`` is a pandas DataFrame

    Returns
    -------
    LinearRegressionModelData

    Examples
    --------
    >>> data = train(df, ['x1', 'x2'], 'y', num_partitions=4)
    >>> data.predict(df)
    """
    frame = as_frame(frame, num_partitions=num_partitions)
    return LinearTrainAlgorithm(
        frame, observation_columns, value_column,
        fit_intercept=fit_intercept, backend=backend,
    ).train()


__all__ = [
    'LinearTrainAlgorithm',
    'train',
    'LinearTrainError',
    'ConfigurationError',
    'ComputationError',
    'SerializationError',
]

"""
Trained model extraction, serialization and scoring.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ._backends.base import LinearRegressionModel
from .exceptions import ConfigurationError, SerializationError, stage
from .frame import as_frame

logger = logging.getLogger(__name__)

MODEL_FORMAT = "pydistlm.linear_regression.qr/1"

PREDICTION_COLUMN = "predicted_value"


def get_weights_and_intercept(
    model: LinearRegressionModel,
    fit_intercept: bool,
) -> Tuple[np.ndarray, float]:
    """
    Split the coefficient vector of the first response.

    With an intercept the vector is ``[intercept, w_1, ..., w_p]``;
    without one it is ``[w_1, ..., w_p]`` and the intercept is 0. Models
    trained without an intercept carry no ``beta0`` slot, so the returned
    weights always have one entry per feature column.

    Raises
    ------
    ConfigurationError
        The model has no coefficients
    """
    betas = np.asarray(model.beta, dtype=np.float64)
    beta = betas[0] if betas.ndim == 2 and betas.shape[0] > 0 else betas.ravel()

    if beta.size == 0 or (fit_intercept and beta.size < 2):
        raise ConfigurationError(
            f"Model has {beta.size} coefficients; cannot extract weights "
            f"(fit_intercept={fit_intercept})"
        )

    if fit_intercept:
        return beta[1:].copy(), float(beta[0])
    return beta.copy(), 0.0


def serialize_model(model: LinearRegressionModel) -> bytes:
    """
    Serialize a trained model to bytes (NumPy ``.npz`` archive).

    Raises
    ------
    SerializationError
        With the underlying cause attached
    """
    try:
        buffer = io.BytesIO()
        np.savez(
            buffer,
            format=np.array(MODEL_FORMAT),
            beta=np.asarray(model.beta, dtype=np.float64),
            r=np.asarray(model.r, dtype=np.float64),
            n_obs=np.array(model.n_obs, dtype=np.int64),
            n_features=np.array(model.n_features, dtype=np.int64),
            fit_intercept=np.array(model.fit_intercept, dtype=np.bool_),
        )
        return buffer.getvalue()
    except Exception as e:
        logger.error("Unable to serialize linear regression model: %s", e)
        raise SerializationError(
            f"Unable to serialize linear regression model: {e}"
        ) from e


def deserialize_model(data: bytes) -> LinearRegressionModel:
    """
    Rebuild a model from ``serialize_model`` output.

    Raises
    ------
    SerializationError
        Corrupt input or unknown format
    """
    with stage("Unable to deserialize linear regression model", SerializationError):
        with np.load(io.BytesIO(bytes(data)), allow_pickle=False) as archive:
            fmt = str(archive["format"])
            if fmt != MODEL_FORMAT:
                raise ValueError(f"unknown model format '{fmt}'")
            return LinearRegressionModel(
                beta=archive["beta"],
                r=archive["r"],
                n_obs=int(archive["n_obs"]),
                n_features=int(archive["n_features"]),
                fit_intercept=bool(archive["fit_intercept"]),
            )


@dataclass(frozen=True)
class _Moments:
    """Count, mean and centered sum of squares of one partition's values."""
    n: int = 0
    mean: float = 0.0
    m2: float = 0.0

    @classmethod
    def of(cls, values: np.ndarray) -> '_Moments':
        if len(values) == 0:
            return cls()
        mean = float(values.mean())
        return cls(len(values), mean, float(((values - mean) ** 2).sum()))

    def merge(self, other: '_Moments') -> '_Moments':
        """Chan et al. pairwise update; no large-offset cancellation."""
        if other.n == 0:
            return self
        if self.n == 0:
            return other
        n = self.n + other.n
        delta = other.mean - self.mean
        return _Moments(
            n=n,
            mean=self.mean + delta * other.n / n,
            m2=self.m2 + other.m2 + delta ** 2 * self.n * other.n / n,
        )


@dataclass(frozen=True)
class LinearRegressionTestReturn:
    """Regression metrics of a model on a labeled frame."""
    explained_variance: float
    mean_absolute_error: float
    mean_squared_error: float
    r2: float
    root_mean_squared_error: float


@dataclass(frozen=True, eq=False)
class LinearRegressionModelData:
    """
    Output of distributed training.

    Attributes
    ----------
    serialized_model : bytes
        Serialized model (see ``deserialize_model``)
    weights : ndarray
        Feature weights, in ``observation_columns`` order
    intercept : float
        Intercept (0 when not fitted)
    observation_columns : tuple of str
        Feature columns the model was trained on
    value_column : str, optional
        Label column the model was trained on
    """
    serialized_model: bytes
    weights: np.ndarray
    intercept: float
    observation_columns: Tuple[str, ...] = field(default=())
    value_column: Optional[str] = None

    @property
    def model(self) -> LinearRegressionModel:
        """Deserialized model."""
        return deserialize_model(self.serialized_model)

    def _resolve_columns(self, observation_columns):
        columns = list(observation_columns or self.observation_columns)
        if len(columns) != len(self.weights):
            raise ConfigurationError(
                f"Model has {len(self.weights)} weights but "
                f"{len(columns)} observation columns were given"
            )
        return columns

    def _predict_values(self, X: np.ndarray) -> np.ndarray:
        return X @ self.weights + self.intercept

    def predict(self, frame, observation_columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """
        Predict on every row of ``frame``.

        Parameters
        ----------
        frame : DataFrame, PartitionedFrame or SparkFrame
            Rows to score
        observation_columns : list of str, optional
            Defaults to the training feature columns

        Returns
        -------
        DataFrame
            Input rows with a ``predicted_value`` column appended
        """
        columns = self._resolve_columns(observation_columns)
        frame = as_frame(frame)
        _check_frame_columns(frame, columns)

        def score(part):
            out = part.copy()
            X = part[columns].to_numpy(dtype=np.float64)
            out[PREDICTION_COLUMN] = self._predict_values(X)
            return out

        parts = frame.map_partitions(score).collect()
        return pd.concat(parts, ignore_index=True)

    def test(
        self,
        frame,
        value_column: Optional[str] = None,
        observation_columns: Optional[Sequence[str]] = None,
    ) -> LinearRegressionTestReturn:
        """
        Score the model against labeled rows.

        Per-partition counts, means and centered sums of squares are merged
        at the driver; ``explained_variance`` is ``mean((y_hat - mean(y))**2)``.
        """
        columns = self._resolve_columns(observation_columns)
        value_column = value_column or self.value_column
        if value_column is None:
            raise ConfigurationError("value_column must be specified")
        frame = as_frame(frame)
        _check_frame_columns(frame, columns + [value_column])

        def partition_summary(part):
            X = part[columns].to_numpy(dtype=np.float64)
            y = part[value_column].to_numpy(dtype=np.float64)
            y_hat = self._predict_values(X)
            err = y - y_hat
            return (
                _Moments.of(y), _Moments.of(y_hat),
                float(np.abs(err).sum()), float((err ** 2).sum()),
            )

        summaries = frame.map_partitions(partition_summary).collect()
        y_moments, pred_moments = _Moments(), _Moments()
        sae = sse = 0.0
        for y_part, pred_part, abs_err, sq_err in summaries:
            y_moments = y_moments.merge(y_part)
            pred_moments = pred_moments.merge(pred_part)
            sae += abs_err
            sse += sq_err

        n = y_moments.n
        if n == 0:
            raise ConfigurationError("Cannot test model on an empty frame")

        sst = y_moments.m2
        # mean((y_hat - mean(y))**2) == var(y_hat) + (mean(y_hat) - mean(y))**2
        explained = (pred_moments.m2 + n * (pred_moments.mean - y_moments.mean) ** 2) / n
        mse = sse / n

        return LinearRegressionTestReturn(
            explained_variance=float(explained),
            mean_absolute_error=float(sae / n),
            mean_squared_error=float(mse),
            r2=float(1 - sse / sst) if sst > 0 else float('nan'),
            root_mean_squared_error=float(np.sqrt(mse)),
        )

    def __repr__(self):
        return (
            f"LinearRegressionModelData(weights={np.round(self.weights, 6).tolist()}, "
            f"intercept={self.intercept:.6g}, "
            f"serialized_model=<{len(self.serialized_model)} bytes>)"
        )


def _check_frame_columns(frame, columns: List[str]):
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise ConfigurationError(f"Columns not found in frame: {missing}")

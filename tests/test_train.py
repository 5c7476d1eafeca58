"""
Test distributed training end to end.
"""

import pytest
import numpy as np
import pandas as pd

import pydistlm
from pydistlm import (
    train,
    LinearTrainAlgorithm,
    PartitionedFrame,
    ConfigurationError,
    ComputationError,
    SerializationError,
    LinearTrainError,
)
from pydistlm._backends import get_backend
from pydistlm._backends.cpu_fp64_backend import CPUBackendFP64


def make_df(n=200, seed=42, noise=0.1):
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        'x1': rng.standard_normal(n),
        'x2': rng.uniform(-3, 3, n),
    })
    df['y'] = 2.5 + 1.5 * df['x1'] - 0.75 * df['x2'] + noise * rng.standard_normal(n)
    return df


def reference_coef(df, columns, value, fit_intercept=True):
    X = df[columns].to_numpy()
    if fit_intercept:
        X = np.column_stack([np.ones(len(df)), X])
    coef, *_ = np.linalg.lstsq(X, df[value].to_numpy(), rcond=None)
    return coef


class CountingBackend(CPUBackendFP64):
    """CPU backend that records kernel calls."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def compute_partial(self, features, labels, fit_intercept=True):
        self.calls.append('partial')
        return super().compute_partial(features, labels, fit_intercept)

    def merge_partials(self, partials):
        self.calls.append('merge')
        return super().merge_partials(partials)


class TestTrain:
    """End-to-end training scenarios."""

    def test_two_partitions_with_intercept(self):
        """Columns [x1, x2, y], 2 partitions, intercept."""
        df = make_df()
        frame = PartitionedFrame.from_pandas(df, num_partitions=2)

        result = LinearTrainAlgorithm(frame, ['x1', 'x2'], 'y', fit_intercept=True).train()

        assert len(result.weights) == 2
        assert np.isfinite(result.intercept)
        assert isinstance(result.serialized_model, bytes)
        assert len(result.serialized_model) > 0

        coef = reference_coef(df, ['x1', 'x2'], 'y')
        assert result.intercept == pytest.approx(coef[0], rel=1e-10)
        np.testing.assert_allclose(result.weights, coef[1:], rtol=1e-10)

    def test_intercept_is_head_of_beta(self):
        df = make_df()
        result = train(df, ['x1', 'x2'], 'y', num_partitions=3)

        beta = result.model.beta[0]
        assert result.intercept == beta[0]
        np.testing.assert_array_equal(result.weights, beta[1:])

    def test_without_intercept(self):
        df = make_df()
        result = train(df, ['x1', 'x2'], 'y', fit_intercept=False, num_partitions=4)

        assert result.intercept == 0.0
        assert len(result.weights) == 2
        np.testing.assert_array_equal(result.weights, result.model.beta[0])
        np.testing.assert_allclose(
            result.weights, reference_coef(df, ['x1', 'x2'], 'y', False), rtol=1e-10
        )

    @pytest.mark.parametrize("num_partitions", [1, 2, 5, 17])
    def test_partition_count_does_not_change_fit(self, num_partitions):
        df = make_df(n=150)
        result = train(df, ['x1', 'x2'], 'y', num_partitions=num_partitions)
        coef = reference_coef(df, ['x1', 'x2'], 'y')

        np.testing.assert_allclose(
            np.r_[result.intercept, result.weights], coef, rtol=1e-9, atol=1e-12
        )

    def test_recovers_true_coefficients(self):
        result = train(make_df(n=2000), ['x1', 'x2'], 'y', num_partitions=8)
        assert result.intercept == pytest.approx(2.5, abs=0.02)
        np.testing.assert_allclose(result.weights, [1.5, -0.75], atol=0.02)

    def test_merge_order_invariant(self):
        """Merging [A, B] and [B, A] gives the same model."""
        frame = PartitionedFrame.from_pandas(make_df(), num_partitions=2)
        algo = LinearTrainAlgorithm(frame, ['x1', 'x2'], 'y')

        a, b = algo.compute_partial_results().collect()
        ab = algo.merge_partial_results([a, b])
        ba = algo.merge_partial_results([b, a])

        np.testing.assert_allclose(ab.beta, ba.beta, rtol=1e-10, atol=1e-12)
        np.testing.assert_allclose(ab.r, ba.r, rtol=1e-10, atol=1e-10)

    def test_empty_partitions(self):
        df = make_df(n=6, noise=0.0)
        frame = PartitionedFrame.from_pandas(df, num_partitions=10)

        result = LinearTrainAlgorithm(frame, ['x1', 'x2'], 'y').train()
        assert result.intercept == pytest.approx(2.5)
        np.testing.assert_allclose(result.weights, [1.5, -0.75])

    def test_integer_columns(self):
        df = pd.DataFrame({'x': np.arange(10), 'y': 3 * np.arange(10) + 1})
        result = train(df, ['x'], 'y', num_partitions=2)
        assert result.intercept == pytest.approx(1.0)
        assert result.weights[0] == pytest.approx(3.0)

    def test_result_records_columns(self):
        result = train(make_df(), ['x1', 'x2'], 'y', num_partitions=2)
        assert result.observation_columns == ('x1', 'x2')
        assert result.value_column == 'y'


class TestTrainErrors:
    """Every failure surfaces as one taxonomy error."""

    def test_missing_column_before_computation(self):
        backend = CountingBackend()
        with pytest.raises(ConfigurationError, match="x3"):
            LinearTrainAlgorithm(make_df(), ['x1', 'x3'], 'y', backend=backend)
        assert backend.calls == []

    def test_missing_label_before_computation(self):
        backend = CountingBackend()
        with pytest.raises(ConfigurationError, match="target"):
            LinearTrainAlgorithm(make_df(), ['x1'], 'target', backend=backend)
        assert backend.calls == []

    def test_non_numeric_partition_before_computation(self):
        """Strings in any partition are rejected before training starts."""
        df = make_df(n=20)
        bad = df.iloc[10:].copy()
        bad['x1'] = bad['x1'].astype(str)
        frame = PartitionedFrame([df.iloc[:10], bad])
        backend = CountingBackend()

        with pytest.raises(ConfigurationError, match="numeric.*x1"):
            LinearTrainAlgorithm(frame, ['x1'], 'y', backend=backend)
        assert backend.calls == []

    def test_value_column_must_be_string(self):
        with pytest.raises(ConfigurationError, match="single column"):
            LinearTrainAlgorithm(make_df(), ['x1'], ['y'])

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError, match="Unknown backend"):
            LinearTrainAlgorithm(make_df(), ['x1'], 'y', backend='quantum')

    def test_singular_design(self):
        df = make_df()
        df['x3'] = df['x1'] * 2
        with pytest.raises(ComputationError, match="Could not merge partial results.*Singular"):
            train(df, ['x1', 'x2', 'x3'], 'y', num_partitions=2)

    def test_local_failure(self, monkeypatch):
        def boom(self, features, labels, fit_intercept=True):
            raise RuntimeError("kernel exploded")

        monkeypatch.setattr(CPUBackendFP64, 'compute_partial', boom)
        with pytest.raises(ComputationError, match="Could not compute partial results.*kernel exploded"):
            train(make_df(), ['x1', 'x2'], 'y', backend='cpu', num_partitions=2)

    def test_serialization_failure(self, monkeypatch):
        def boom(*args, **kwargs):
            raise OSError("disk on fire")

        monkeypatch.setattr(pydistlm.model.np, 'savez', boom)
        with pytest.raises(SerializationError, match="disk on fire") as excinfo:
            train(make_df(), ['x1', 'x2'], 'y', num_partitions=2)

        assert isinstance(excinfo.value.__cause__, OSError)
        assert isinstance(excinfo.value, LinearTrainError)

    def test_nan_in_data(self):
        df = make_df()
        df.loc[5, 'x1'] = np.nan
        with pytest.raises(ComputationError, match="NaN"):
            train(df, ['x1', 'x2'], 'y', num_partitions=2)

    def test_unexpected_error_wrapped(self, monkeypatch):
        def broken(model, fit_intercept):
            raise KeyError('beta')

        monkeypatch.setattr(pydistlm.algorithm, 'get_weights_and_intercept', broken)
        with pytest.raises(ComputationError, match="Could not train linear regression model"):
            train(make_df(), ['x1', 'x2'], 'y', num_partitions=2)

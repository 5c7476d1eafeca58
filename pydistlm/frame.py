"""
Distributed frame abstraction.

Training only needs a small RDD-like surface from the compute framework:
a frame knows its columns and can map a function over its partitions, and
the resulting collection supports ``map`` and ``collect``. Two frames are
provided:

- ``PartitionedFrame``: in-process partitions of a pandas DataFrame,
  executed on a thread pool (NumPy/LAPACK release the GIL).
- ``SparkFrame``: a thin adapter over a ``pyspark.sql.DataFrame``; the
  returned collection is the Spark RDD itself.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from ._utils import is_numeric_column

logger = logging.getLogger(__name__)

# Spark SQL type names accepted as numeric columns
SPARK_NUMERIC_TYPES = ('tinyint', 'smallint', 'int', 'bigint', 'float', 'double')


class PartitionedCollection:
    """
    In-process distributed collection with one element per partition.

    Elements are computed lazily: ``map`` composes functions, ``collect``
    runs one task per partition and returns the results in partition order.
    A failure in any task propagates out of ``collect``; there is no retry.

    Parameters
    ----------
    partitions : sequence
        Source element of each partition
    fn : callable, optional
        Function producing the element of a partition from its source
    max_workers : int, optional
        Thread pool size (default: one thread per partition, capped at CPUs)
    """

    def __init__(
        self,
        partitions: Sequence[Any],
        fn: Optional[Callable[[Any], Any]] = None,
        max_workers: Optional[int] = None,
    ):
        self._partitions = list(partitions)
        self._fn = fn
        self.max_workers = max_workers

    @property
    def num_partitions(self) -> int:
        return len(self._partitions)

    def getNumPartitions(self) -> int:
        """Spark RDD spelling of ``num_partitions``."""
        return self.num_partitions

    def map(self, fn: Callable[[Any], Any]) -> 'PartitionedCollection':
        """Lazily apply ``fn`` to every element."""
        inner = self._fn
        if inner is None:
            composed = fn
        else:
            def composed(part):
                return fn(inner(part))
        return PartitionedCollection(self._partitions, composed, self.max_workers)

    def collect(self) -> List[Any]:
        """Compute every element and return them in partition order."""
        if self._fn is None:
            return list(self._partitions)
        if not self._partitions:
            return []

        workers = self.max_workers
        if workers is None:
            workers = min(len(self._partitions), os.cpu_count() or 1)

        logger.debug(
            "Running %d partition tasks on %d workers",
            len(self._partitions), workers
        )
        if workers <= 1:
            return [self._fn(part) for part in self._partitions]

        with ThreadPoolExecutor(max_workers=workers) as pool:
            # map() re-raises the first task failure when iterated
            return list(pool.map(self._fn, self._partitions))

    def count(self) -> int:
        return len(self.collect())

    def __repr__(self):
        return f"PartitionedCollection(num_partitions={self.num_partitions})"


def _common_dtype(dtypes):
    """Shared dtype of one column; disagreeing partitions widen to float64 or object."""
    first = dtypes[0]
    if all(d == first for d in dtypes[1:]):
        return first
    if all(is_numeric_column(d) for d in dtypes):
        return np.dtype(np.float64)
    return np.dtype(object)


class PartitionedFrame:
    """
    Distributed frame stored as pandas DataFrame partitions.

    All partitions share the column layout of the first one.

    Examples
    --------
    >>> frame = PartitionedFrame.from_pandas(df, num_partitions=4)
    >>> frame.num_rows == len(df)
    True
    """

    def __init__(self, partitions: Iterable[pd.DataFrame], max_workers: Optional[int] = None):
        self.partitions = [p.reset_index(drop=True) for p in partitions]
        if not self.partitions:
            raise ValueError("PartitionedFrame requires at least one partition")

        columns = list(self.partitions[0].columns)
        for i, part in enumerate(self.partitions[1:], start=1):
            if list(part.columns) != columns:
                raise ValueError(
                    f"Partition {i} columns {list(part.columns)} "
                    f"do not match {columns}"
                )
        self.max_workers = max_workers

    @classmethod
    def from_pandas(
        cls,
        df: pd.DataFrame,
        num_partitions: Optional[int] = None,
        max_workers: Optional[int] = None,
    ) -> 'PartitionedFrame':
        """
        Split ``df`` into contiguous row blocks.

        Parameters
        ----------
        df : DataFrame
            Source rows (row order is preserved across partitions)
        num_partitions : int, optional
            Number of partitions (default: CPU count, at most one per row)
        """
        if num_partitions is None:
            num_partitions = max(1, min(os.cpu_count() or 1, len(df)))
        if num_partitions < 1:
            raise ValueError(f"num_partitions must be >= 1, got {num_partitions}")

        bounds = np.linspace(0, len(df), num_partitions + 1).astype(int)
        parts = [df.iloc[lo:hi] for lo, hi in zip(bounds[:-1], bounds[1:])]
        return cls(parts, max_workers=max_workers)

    @property
    def columns(self) -> List[str]:
        return list(self.partitions[0].columns)

    @property
    def dtypes(self) -> dict:
        """Column dtypes combined across non-empty partitions."""
        parts = [p for p in self.partitions if len(p) > 0] or self.partitions[:1]
        return {
            column: _common_dtype([p[column].dtype for p in parts])
            for column in self.columns
        }

    @property
    def num_partitions(self) -> int:
        return len(self.partitions)

    @property
    def num_rows(self) -> int:
        return sum(len(p) for p in self.partitions)

    def is_numeric(self, column: str) -> bool:
        return is_numeric_column(self.dtypes[column])

    def map_partitions(self, fn: Callable[[pd.DataFrame], Any]) -> PartitionedCollection:
        """One element per partition, computed by ``fn(partition_df)``."""
        return PartitionedCollection(self.partitions, fn, self.max_workers)

    def to_pandas(self) -> pd.DataFrame:
        return pd.concat(self.partitions, ignore_index=True)

    def __repr__(self):
        return (
            f"PartitionedFrame(num_partitions={self.num_partitions}, "
            f"columns={self.columns})"
        )


class SparkFrame:
    """
    Adapter exposing a ``pyspark.sql.DataFrame`` as a training frame.

    ``map_partitions`` hands each partition's rows to ``fn`` as a pandas
    DataFrame and returns the Spark RDD (one element per partition), so
    ``map``/``collect`` are Spark's own.
    """

    def __init__(self, df):
        self.df = df

    @property
    def columns(self) -> List[str]:
        return list(self.df.columns)

    @property
    def dtypes(self) -> dict:
        return dict(self.df.dtypes)

    @property
    def num_partitions(self) -> int:
        return self.df.rdd.getNumPartitions()

    def is_numeric(self, column: str) -> bool:
        return self.dtypes[column] in SPARK_NUMERIC_TYPES or \
            self.dtypes[column].startswith('decimal')

    def map_partitions(self, fn: Callable[[pd.DataFrame], Any], columns: Optional[List[str]] = None):
        columns = columns or self.columns
        selected = self.df.select(*columns)

        def run_partition(rows):
            part = pd.DataFrame([tuple(r) for r in rows], columns=columns)
            yield fn(part)

        return selected.rdd.mapPartitions(run_partition)

    def to_pandas(self) -> pd.DataFrame:
        return self.df.toPandas()

    def __repr__(self):
        return f"SparkFrame(columns={self.columns})"


def _is_spark_dataframe(obj) -> bool:
    cls = type(obj)
    return cls.__name__ == 'DataFrame' and cls.__module__.startswith('pyspark.')


def as_frame(obj, num_partitions: Optional[int] = None):
    """
    Coerce supported inputs into a training frame.

    Parameters
    ----------
    obj : PartitionedFrame, SparkFrame, pandas.DataFrame or pyspark DataFrame
        Input dataset
    num_partitions : int, optional
        Partition count when splitting a pandas DataFrame
    """
    if isinstance(obj, (PartitionedFrame, SparkFrame)):
        return obj
    if isinstance(obj, pd.DataFrame):
        return PartitionedFrame.from_pandas(obj, num_partitions=num_partitions)
    if _is_spark_dataframe(obj):
        return SparkFrame(obj)
    raise TypeError(
        f"Unsupported dataset type: {type(obj).__name__}\n"
        f"Expected pandas.DataFrame, PartitionedFrame or pyspark DataFrame"
    )

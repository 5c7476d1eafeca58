#!/usr/bin/env python3
"""
Python Benchmark - Distributed training (500K rows, 50 predictors)

Times training across partition counts and backends.
"""

import numpy as np
import pandas as pd
import time
from pydistlm import train, PartitionedFrame, list_available_backends

N_ROWS = 500_000
N_PREDICTORS = 50

print()
print("="*80)
print("PYTHON BENCHMARK - Distributed linear regression")
print("="*80)
print()

# ============================================================================
# GENERATE DATA
# ============================================================================

rng = np.random.default_rng(42)
start_gen = time.time()
X = rng.standard_normal((N_ROWS, N_PREDICTORS))
beta = rng.uniform(-2, 2, N_PREDICTORS)
predictors = [f"x{i}" for i in range(N_PREDICTORS)]
data = pd.DataFrame(X, columns=predictors)
data['outcome'] = 1.0 + X @ beta + rng.standard_normal(N_ROWS)
gen_time = time.time() - start_gen

print(f"✓ Data generated in {gen_time:.2f} seconds")
print(f"  Observations: {len(data):,}")
print(f"  Predictors: {len(predictors)}")
print(f"  Memory: {data.memory_usage(deep=True).sum() / 1e9:.2f} GB")
print()

# ============================================================================
# PARTITION SWEEP
# ============================================================================

print(f"{'Backend':<10} {'Partitions':>10} {'Fit (s)':>10} {'Rows/s':>14} {'Max |err|':>12}")
print("-"*80)

for backend in list_available_backends():
    for num_partitions in [1, 2, 4, 8, 16]:
        frame = PartitionedFrame.from_pandas(data, num_partitions=num_partitions)

        start = time.time()
        result = train(frame, predictors, 'outcome', backend=backend)
        fit_time = time.time() - start

        err = np.max(np.abs(result.weights - beta))
        print(f"{backend:<10} {num_partitions:>10d} {fit_time:>10.2f} "
              f"{N_ROWS / fit_time:>14,.0f} {err:>12.2e}")

print()
print(f"Serialized model size: {len(result.serialized_model):,} bytes")
print("="*80)

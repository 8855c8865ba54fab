# opencl_mm/bench.py
"""Benchmark harness: repeated device multiplies inside one session."""

import logging
from typing import Any, Dict, Optional

import numpy as np

from .core import Timer, calculate_gflops, estimate_memory_usage, generate_matrix
from .session import scope

logger = logging.getLogger(__name__)


class DurationStats:
    """Accumulates device durations reported by a multiply sink."""

    def __init__(self):
        self.samples = []

    def __call__(self, elapsed_ns: int) -> None:
        self.samples.append(int(elapsed_ns))

    @property
    def count(self) -> int:
        return len(self.samples)

    def mean(self) -> float:
        if not self.samples:
            return 0.0
        return sum(self.samples) / len(self.samples)


def benchmark_multiply(N: int, M: int, K: int, dtype=np.int32,
                       low=0, high=100, iterations: int = 10, warmup: int = 1,
                       runtime=None, seed: Optional[int] = None) -> Dict[str, Any]:
    """
    Benchmark an N x M by M x K device multiply.

    Both operands are generated once; each iteration stages them, runs the
    kernel and reads the result back. Device time comes from the queue's
    profiling counters, wall time covers the whole multiply call.

    Args:
        N, M, K: Matrix dimensions (N and K must be multiples of 4)
        dtype: Element type
        low, high: Range of the random elements
        iterations: Number of timed multiplies
        warmup: Number of untimed multiplies run first
        runtime: device runtime (default: pyopencl)
        seed: Random seed for the operands

    Returns:
        Dictionary with timing statistics
    """
    A = generate_matrix(N, M, low, high, dtype=dtype, seed=seed)
    B = generate_matrix(M, K, low, high, dtype=dtype, seed=None if seed is None else seed + 1)

    def body(s):
        left = s.create_with(A)
        right = s.create_with(B)

        for _ in range(warmup):
            s.multiply(left, right)

        durations = DurationStats()
        wall = []
        for _ in range(iterations):
            with Timer() as timer:
                s.multiply(left, right, sink=durations)
            wall.append(timer.elapsed)
        return durations, np.array(wall)

    durations, wall = scope(body, runtime=runtime)

    device_ns = np.array(durations.samples, dtype=np.float64)
    mean_device_s = durations.mean() / 1e9
    result = {
        'matrix_size': f"{N}x{M} @ {M}x{K}",
        'dtype': str(np.dtype(dtype)),
        'iterations': iterations,
        'warmup': warmup,
        'device_samples_ns': durations.samples,
        'device_mean_ns': durations.mean(),
        'device_median_ns': float(np.median(device_ns)) if durations.count else 0.0,
        'device_min_ns': float(np.min(device_ns)) if durations.count else 0.0,
        'device_max_ns': float(np.max(device_ns)) if durations.count else 0.0,
        'device_mean_ms': durations.mean() / 1e6,
        'wall_mean_ms': float(np.mean(wall)) * 1000 if len(wall) else 0.0,
        'device_gflops': calculate_gflops(N, M, K, mean_device_s),
        'memory': estimate_memory_usage([(N, M), (M, K), (N, K)], dtype)['human_readable'],
    }
    logger.debug("benchmark %s: %.0f ns mean device time", result['matrix_size'], result['device_mean_ns'])
    return result

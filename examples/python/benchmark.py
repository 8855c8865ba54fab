#!/usr/bin/env python3
"""
Device multiply benchmark.

Runs repeated multiplies for a few square sizes and element types and
reports the device-side kernel time taken from the queue's profiling events.
"""

import logging

import numpy as np

import opencl_mm as mm


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    print("📊 OpenCL Multiply Benchmark")
    print("=" * 40)

    cases = [
        (np.int32, 0, 100),
        (np.float64, 0.0, 100.0),
    ]
    sizes = [100, 256, 512]

    print("Size\tType\tDevice (ms)\tWall (ms)\tGFLOPS")
    print("-" * 56)
    for dtype, low, high in cases:
        for size in sizes:
            try:
                result = mm.benchmark_multiply(size, size, size, dtype=dtype, low=low, high=high,
                                               iterations=10, seed=0)
            except mm.KernelResolutionError as e:
                print(f"{size}\t{np.dtype(dtype)}\tskipped ({e})")
                continue
            print(f"{size}\t{result['dtype']}\t{result['device_mean_ms']:.3f}\t\t"
                  f"{result['wall_mean_ms']:.3f}\t\t{result['device_gflops']:.2f}")


if __name__ == "__main__":
    main()

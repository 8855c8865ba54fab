#!/usr/bin/env python3
"""Simple opencl_mm example script."""

import logging

import numpy as np

import opencl_mm as mm


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    print("🚀 Simple OpenCL Matrix Multiply Example")

    A = mm.generate_matrix(100, 90, 0.0, 100.0, dtype=np.float32, seed=0)
    B = mm.generate_matrix(90, 80, 0.0, 100.0, dtype=np.float32, seed=1)
    print(f"   A shape: {A.shape}")
    print(f"   B shape: {B.shape}")

    timings = []

    def body(s):
        left = s.create_with(A)
        right = s.create_with(B)
        return s.multiply(left, right, sink=timings.append).to_numpy()

    C_device = mm.scope(body)
    C_host = mm.reference_matmul(A, B)

    report = mm.compare_matrices(C_device, C_host, rtol=1e-5, atol=1e-2)
    print(f"   Result shape: {C_device.shape}")
    print(f"   Results match: {'✅ YES' if report['matrices_close'] else '❌ NO'}")
    print(f"   Max error: {report['max_absolute_error']:.2e}")
    print(f"   Kernel time: {timings[0] / 1e3:.1f} us")


if __name__ == "__main__":
    main()

# opencl_mm/core.py
"""
Host-side utilities for opencl_mm.

This module provides device discovery, random test matrices, the host
reference multiply used as an oracle, matrix comparison and timing helpers.
None of it is needed on the device multiply path itself.
"""

import time
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pyopencl as cl

# =============================================================================
# Device Discovery
# =============================================================================

_DEVICE_TYPE_NAMES = ('CPU', 'GPU', 'ACCELERATOR')


def _device_info(device, platform) -> Dict[str, Any]:
    types = [name for name in _DEVICE_TYPE_NAMES if device.type & getattr(cl.device_type, name)]
    return {
        'platform': platform.name.strip(),
        'name': device.name.strip(),
        'vendor': device.vendor.strip(),
        'version': device.version.strip(),
        'driver_version': device.driver_version.strip(),
        'type': '|'.join(types) or 'OTHER',
        'max_compute_units': device.max_compute_units,
        'max_work_group_size': device.max_work_group_size,
        'global_mem_size': device.global_mem_size,
        'fp64': 'cl_khr_fp64' in device.extensions,
    }


def list_devices() -> List[Dict[str, Any]]:
    """
    Describe every OpenCL device visible to this process.

    Returns:
        One dictionary per device; empty when no platform is installed
    """
    try:
        platforms = cl.get_platforms()
    except cl.Error:
        return []

    devices = []
    for platform in platforms:
        try:
            platform_devices = platform.get_devices(device_type=cl.device_type.ALL)
        except cl.Error:
            continue
        devices.extend(_device_info(device, platform) for device in platform_devices)
    return devices


def opencl_available() -> bool:
    """Check whether at least one OpenCL device is visible."""
    return bool(list_devices())


def print_device_info():
    """Print formatted OpenCL device information."""
    devices = list_devices()

    print("🖥️  OpenCL Devices:")
    if not devices:
        print("   none found (install an OpenCL driver, e.g. pip install pyopencl[pocl])")
        return

    for index, info in enumerate(devices):
        print(f"   [{index}] {info['name']} ({info['type']})")
        print(f"       Platform: {info['platform']}")
        print(f"       Version: {info['version']}, driver {info['driver_version']}")
        print(f"       Compute units: {info['max_compute_units']}, max work-group: {info['max_work_group_size']}")
        print(f"       Global memory: {format_bytes(info['global_mem_size'])}")
        status = "✅" if info['fp64'] else "❌"
        print(f"       fp64: {status}")

# =============================================================================
# Matrix and Memory Utilities
# =============================================================================

def estimate_memory_usage(shapes: List[Tuple[int, int]], dtype=np.float32) -> Dict[str, Union[int, str]]:
    """Device bytes needed to hold one buffer per shape in ``shapes``."""
    elements = sum(rows * cols for rows, cols in shapes)
    nbytes = elements * np.dtype(dtype).itemsize
    return {'elements': elements, 'bytes': nbytes, 'human_readable': format_bytes(nbytes)}


def format_bytes(nbytes: int) -> str:
    """``40000`` -> ``'39.1 KB'``."""
    size = float(nbytes)
    units = ['B', 'KB', 'MB', 'GB', 'TB']
    for unit in units[:-1]:
        if size < 1024:
            break
        size /= 1024
    else:
        unit = units[-1]
    return f"{size:.1f} {unit}"


def generate_matrix(rows: int, cols: int, low, high,
                    dtype=np.int32, seed: Optional[int] = None) -> np.ndarray:
    """
    Generate a random matrix with elements drawn uniformly from [low, high).

    Args:
        rows, cols: Matrix dimensions
        low, high: Sampling range (high excluded)
        dtype: NumPy data type; integer types sample integers
        seed: Random seed for reproducibility

    Returns:
        A rows x cols array of the requested dtype
    """
    rng = np.random.default_rng(seed)
    dtype = np.dtype(dtype)

    if dtype.kind in 'iu':
        return rng.integers(low, high, size=(rows, cols), dtype=dtype)
    if dtype.kind == 'f':
        return rng.uniform(low, high, size=(rows, cols)).astype(dtype)
    raise TypeError(f"Cannot generate random values of dtype {dtype}")


def reference_matmul(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    """
    Host matrix multiply used to check device results.

    The result keeps the operand dtype, so integer overflow wraps the same
    way it does in the kernels.
    """
    A = np.asarray(A)
    B = np.asarray(B)
    if A.ndim != 2 or B.ndim != 2:
        raise ValueError("Both matrices must be 2-dimensional")
    if A.shape[1] != B.shape[0]:
        raise ValueError(f"Inner dimensions differ: {A.shape} @ {B.shape}")
    if A.dtype != B.dtype:
        raise TypeError(f"Operand dtypes differ: {A.dtype} and {B.dtype}")
    return np.matmul(A, B).astype(A.dtype, copy=False)

# =============================================================================
# Performance Utilities
# =============================================================================

class Timer:
    """Wall-clock stopwatch; use as a context manager."""

    def __init__(self):
        self._start: Optional[float] = None
        self._stop: Optional[float] = None

    def __enter__(self):
        self._start = time.perf_counter()
        self._stop = None
        return self

    def __exit__(self, *exc):
        self._stop = time.perf_counter()

    @property
    def elapsed(self) -> float:
        """Seconds between entry and exit (or now, while still running)."""
        if self._start is None:
            raise RuntimeError("Timer not started")
        end = self._stop if self._stop is not None else time.perf_counter()
        return end - self._start


def calculate_gflops(N: int, M: int, K: int, time_seconds: float) -> float:
    """
    Calculate GFLOPS for an N x M by M x K multiply.

    Args:
        N, M, K: Matrix dimensions
        time_seconds: Execution time in seconds
    """
    # one multiply and one add per inner-product term
    ops = 2 * N * M * K
    if time_seconds <= 0:
        return float('inf')
    return ops / (time_seconds * 1e9)

# =============================================================================
# Debugging and Diagnostics
# =============================================================================

def compare_matrices(A: np.ndarray, B: np.ndarray,
                     rtol: float = 0.0, atol: float = 1e-4) -> Dict[str, Any]:
    """
    Compare two matrices and provide detailed difference analysis.

    Args:
        A, B: Matrices to compare
        rtol: Relative tolerance
        atol: Absolute tolerance

    Returns:
        Dictionary with comparison results
    """
    A = np.asarray(A)
    B = np.asarray(B)
    if A.shape != B.shape:
        return {
            'shapes_match': False,
            'A_shape': A.shape,
            'B_shape': B.shape,
            'error': 'Shape mismatch'
        }

    diff = np.abs(A.astype(np.float64) - B.astype(np.float64))

    return {
        'shapes_match': True,
        'matrices_close': bool(np.allclose(A, B, rtol=rtol, atol=atol)),
        'exact_match': bool(np.array_equal(A, B)),
        'max_absolute_error': float(np.max(diff)),
        'mean_absolute_error': float(np.mean(diff)),
        'fraction_elements_close': float(np.mean(np.isclose(A, B, rtol=rtol, atol=atol))),
        'tolerance_used': {'rtol': rtol, 'atol': atol},
    }


__all__ = [
    # Devices
    'list_devices', 'opencl_available', 'print_device_info',

    # Matrix utilities
    'estimate_memory_usage', 'format_bytes',
    'generate_matrix', 'reference_matmul',

    # Performance
    'Timer', 'calculate_gflops',

    # Debugging
    'compare_matrices',
]

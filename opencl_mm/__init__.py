# opencl_mm/__init__.py
"""
opencl_mm: scoped OpenCL sessions for dense matrix multiplication.

This package stages numpy matrices to an OpenCL device, runs a compiled
multiply kernel and guarantees that every device resource is released
exactly once when the enclosing scope ends.
"""

from .errors import *
from .dtypes import ElementType, supported_dtypes
from .matrix import Matrix, multiply
from .session import Scope, Session, scope
from .core import (
    compare_matrices,
    generate_matrix,
    list_devices,
    opencl_available,
    print_device_info,
    reference_matmul,
)
from .bench import benchmark_multiply

# Import submodules
from . import core

# Version information
__version__ = "1.0.0"

# Public API
__all__ = [
    "Session",
    "Scope",
    "scope",
    "Matrix",
    "multiply",
    "ElementType",
    "supported_dtypes",
    "generate_matrix",
    "reference_matmul",
    "compare_matrices",
    "list_devices",
    "opencl_available",
    "print_device_info",
    "benchmark_multiply",
    "core",
    "DeviceError",
    "PlatformUnavailableError",
    "DeviceUnavailableError",
    "ContextCreationError",
    "QueueCreationError",
    "ProgramBuildError",
    "BufferAllocationError",
    "TransferError",
    "KernelResolutionError",
    "DispatchError",
    "ReleaseError",
    "TeardownError",
    "SessionClosedError",
    "DimensionError",
    "__version__",
]


def version():
    """Return version string."""
    return __version__

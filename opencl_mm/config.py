# opencl_mm/config.py
"""
Configuration constants for opencl_mm.

The kernel source defaults to the file bundled with the package. Set
OPENCL_MM_KERNEL_SOURCE to point a session at a different file.
"""

import os
from pathlib import Path
from typing import Optional, Tuple, Union

# Local work-group shape used for every dispatch. Output dimensions must be
# multiples of these.
WORK_GROUP_SHAPE: Tuple[int, int] = (4, 4)

KERNEL_PREFIX = "mul_"

KERNEL_SOURCE_ENV = "OPENCL_MM_KERNEL_SOURCE"

DEFAULT_KERNEL_SOURCE = Path(__file__).parent / "kernels" / "mul.cl"


def kernel_source_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Resolve the kernel source file.

    Search order:
      1. explicit ``path`` argument
      2. OPENCL_MM_KERNEL_SOURCE environment variable
      3. kernels/mul.cl shipped with the package
    """
    if path is not None:
        return Path(path)
    custom = os.environ.get(KERNEL_SOURCE_ENV)
    if custom:
        return Path(custom)
    return DEFAULT_KERNEL_SOURCE


def load_kernel_source(path: Optional[Union[str, Path]] = None) -> str:
    """Read the kernel source text."""
    return kernel_source_path(path).read_text()

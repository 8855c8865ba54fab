# opencl_mm/dtypes.py
"""
Element types supported by the multiply kernels.

Each member maps one numpy dtype to one kernel entry point. Supporting a new
type means adding a member here and a matching ``mul_<name>`` kernel to
kernels/mul.cl.
"""

import enum

import numpy as np

from .config import KERNEL_PREFIX
from .errors import KernelResolutionError


class ElementType(enum.Enum):
    I8 = ("i8", np.int8)
    I16 = ("i16", np.int16)
    I32 = ("i32", np.int32)
    I64 = ("i64", np.int64)
    U8 = ("u8", np.uint8)
    U16 = ("u16", np.uint16)
    U32 = ("u32", np.uint32)
    U64 = ("u64", np.uint64)
    F32 = ("f32", np.float32)
    F64 = ("f64", np.float64)

    def __init__(self, type_name: str, scalar_type):
        self.type_name = type_name
        self.dtype = np.dtype(scalar_type)

    @property
    def kernel_name(self) -> str:
        return f"{KERNEL_PREFIX}{self.type_name}"

    @property
    def is_float(self) -> bool:
        return self.dtype.kind == "f"

    @classmethod
    def of(cls, dtype) -> "ElementType":
        """Return the member for ``dtype``.

        Raises:
            KernelResolutionError: if no kernel exists for the dtype
        """
        dtype = np.dtype(dtype)
        for member in cls:
            if member.dtype == dtype:
                return member
        raise KernelResolutionError(
            f"no multiply kernel for element type {dtype}",
            call="ElementType.of",
        )


def supported_dtypes():
    """List the numpy dtypes that have a multiply kernel."""
    return [member.dtype for member in ElementType]

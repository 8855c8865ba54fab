# opencl_mm/matrix.py
"""
Buffer-backed matrices and the device multiply.

A :class:`Matrix` pairs a host numpy array with a device buffer owned by its
session. The matrix never releases the buffer itself; the session does, at
teardown, after which every operation on the matrix raises
:class:`SessionClosedError`.
"""

import logging
from typing import Any, Callable, Optional, Tuple

import numpy as np

from .config import WORK_GROUP_SHAPE
from .dtypes import ElementType
from .errors import DimensionError, ReleaseError

logger = logging.getLogger(__name__)

_NUMERIC_KINDS = "biufc"


class Matrix:
    """
    Fixed-shape, fixed-dtype matrix with a device buffer.

    Created through ``Session.create`` / ``Session.create_with`` (or the
    corresponding :class:`Scope` methods), not directly.
    """

    def __init__(self, session, data: np.ndarray):
        if data.ndim != 2:
            raise ValueError(f"Matrix data must be 2-dimensional, got shape {data.shape}")
        rows, cols = data.shape
        if rows <= 0 or cols <= 0:
            raise ValueError(f"Matrix dimensions must be positive, got {rows}x{cols}")
        if data.dtype.kind not in _NUMERIC_KINDS:
            raise TypeError(f"Matrix elements must be numeric, got dtype {data.dtype}")

        self._session = session
        self._host = np.ascontiguousarray(data)
        self._handle = session.allocate(self._host.nbytes)

    def __repr__(self) -> str:
        return f"Matrix({self.rows}x{self.cols}, dtype={self.dtype}, handle={self._handle})"

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------

    @property
    def shape(self) -> Tuple[int, int]:
        return self._host.shape

    @property
    def rows(self) -> int:
        return self._host.shape[0]

    @property
    def cols(self) -> int:
        return self._host.shape[1]

    @property
    def dtype(self) -> np.dtype:
        return self._host.dtype

    @property
    def nbytes(self) -> int:
        return self._host.nbytes

    @property
    def handle(self) -> int:
        return self._handle

    # ------------------------------------------------------------------
    # Host <-> device
    # ------------------------------------------------------------------

    def _buffer(self):
        return self._session.buffer(self._handle)

    def stage(self) -> None:
        """Copy the host array into the device buffer (blocking)."""
        buffer = self._buffer()
        self._session.runtime.write_buffer(self._session.queue, buffer, self._host)

    def retrieve(self) -> None:
        """Copy the device buffer back into the host array (blocking)."""
        buffer = self._buffer()
        self._session.runtime.read_buffer(self._session.queue, buffer, self._host)

    # ------------------------------------------------------------------
    # Host access
    # ------------------------------------------------------------------

    def _in_bounds(self, i: int, j: int) -> bool:
        return 0 <= i < self.rows and 0 <= j < self.cols

    def get(self, i: int, j: int):
        """Element ``(i, j)``, or ``None`` when out of range."""
        self._session.check_open()
        if not self._in_bounds(i, j):
            return None
        return self._host[i, j]

    def set(self, i: int, j: int, value):
        """Store ``value`` at ``(i, j)`` and return the stored element.

        Returns ``None`` and writes nothing when out of range.
        """
        self._session.check_open()
        if not self._in_bounds(i, j):
            return None
        self._host[i, j] = value
        return self._host[i, j]

    def __getitem__(self, index: Tuple[int, int]):
        i, j = index
        value = self.get(i, j)
        if value is None:
            raise IndexError(f"index ({i}, {j}) out of range for {self.rows}x{self.cols} matrix")
        return value

    def __setitem__(self, index: Tuple[int, int], value) -> None:
        i, j = index
        if self.set(i, j, value) is None:
            raise IndexError(f"index ({i}, {j}) out of range for {self.rows}x{self.cols} matrix")

    def host(self) -> np.ndarray:
        """Read-only view of the host array."""
        self._session.check_open()
        view = self._host.view()
        view.flags.writeable = False
        return view

    def to_numpy(self) -> np.ndarray:
        """Writable copy of the host array."""
        self._session.check_open()
        return self._host.copy()

    def __eq__(self, other):
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self.host(), other.host()))

    __hash__ = None

    # ------------------------------------------------------------------
    # Multiply
    # ------------------------------------------------------------------

    def multiply(self, other: "Matrix", sink: Optional[Callable[[int], Any]] = None) -> "Matrix":
        return multiply(self, other, sink)

    def __matmul__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        return multiply(self, other)

    __mul__ = __matmul__


def _release_quietly(runtime, resources) -> None:
    # The error already propagating is the one the caller sees.
    for kind, handle in resources:
        if handle is None:
            continue
        try:
            runtime.release(kind, handle)
        except ReleaseError as e:
            logger.error("failed to release %s after multiply error: %s", kind, e)


def _release_all(runtime, resources) -> None:
    # Every release is attempted; the first failure is raised afterwards.
    failures = []
    for kind, handle in resources:
        try:
            runtime.release(kind, handle)
        except ReleaseError as e:
            logger.warning("failed to release %s after multiply: %s", kind, e)
            failures.append(e)
    if failures:
        raise failures[0]


def multiply(left: Matrix, right: Matrix,
             sink: Optional[Callable[[int], Any]] = None) -> Matrix:
    """
    Multiply ``left`` (N x M) by ``right`` (M x K) on the device.

    Both operands are staged, a fresh N x K output is allocated, the
    ``mul_<type>`` kernel runs over an (N, K) grid with 4x4 work-groups, and
    the output is read back. N and K must be multiples of the work-group
    shape; this is not checked here and the runtime may reject the dispatch.

    Args:
        left, right: matrices of the same open session and dtype
        sink: called with the kernel's device time in nanoseconds

    Returns:
        The output matrix, with its host array populated.

    Raises:
        DimensionError: if the inner dimensions differ
        KernelResolutionError: if no kernel exists for the dtype
        DispatchError: if the kernel could not be run
    """
    session = left._session
    if right._session is not session:
        raise ValueError("Matrices belong to different sessions")
    session.check_open()
    if left.dtype != right.dtype:
        raise TypeError(f"Matrix element types differ: {left.dtype} and {right.dtype}")
    if left.cols != right.rows:
        raise DimensionError(
            f"Matrix dimensions incompatible: left is {left.rows}x{left.cols}, "
            f"right is {right.rows}x{right.cols}"
        )
    n, m, k = left.rows, left.cols, right.cols

    left.stage()
    right.stage()

    out = Matrix(session, np.zeros((n, k), dtype=left.dtype))

    runtime = session.runtime
    queue = session.queue
    element_type = ElementType.of(left.dtype)
    kernel = runtime.create_kernel(session.program, element_type.kernel_name)
    event = None
    try:
        runtime.set_kernel_args(kernel, [
            np.int32(n), np.int32(m), np.int32(k),
            left._buffer(), right._buffer(), out._buffer(),
        ])
        event = runtime.enqueue_kernel(queue, kernel, (n, k), WORK_GROUP_SHAPE)
        out.retrieve()
        runtime.finish(queue)
        elapsed = runtime.elapsed_ns(event)
    except Exception:
        _release_quietly(runtime, [("event", event), ("kernel", kernel)])
        raise
    _release_all(runtime, [("event", event), ("kernel", kernel)])

    logger.debug("%s %dx%d @ %dx%d: %d ns", element_type.kernel_name, n, m, m, k, elapsed)
    if sink is not None:
        sink(elapsed)
    return out

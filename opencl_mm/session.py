# opencl_mm/session.py
"""
Device sessions.

A :class:`Session` owns every device-level handle: device, context, command
queue, the compiled multiply program and all buffers handed out to matrices.
Matrices only hold an index into the session's buffer table, so tearing the
session down invalidates all of them at once.

Typical use goes through :func:`scope`::

    import opencl_mm as mm

    def body(s):
        a = s.create_with(A)
        b = s.create_with(B)
        return (a @ b).to_numpy()

    C = mm.scope(body)
"""

import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, TypeVar, Union

import numpy as np

from .config import load_kernel_source
from .core import format_bytes
from .errors import ProgramBuildError, ReleaseError, SessionClosedError, TeardownError
from .matrix import Matrix, multiply
from .runtime import PyOpenCLRuntime

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Session:
    """
    One OpenCL device, context, profiling queue and compiled program.

    Construction acquires the resources in order and releases whatever was
    already acquired if a later step fails. :meth:`close` releases buffers,
    program, queue, context and device, in that order, attempting every
    release even after one fails.
    """

    def __init__(self, runtime=None, kernel_source: Optional[Union[str, Path]] = None):
        """
        Args:
            runtime: object performing the device calls (default: pyopencl)
            kernel_source: path of the kernel file (default: see config)
        """
        self._runtime = runtime if runtime is not None else PyOpenCLRuntime()
        self._buffers: List[Any] = []
        self._closed = False

        self._device = None
        self._context = None
        self._queue = None
        self._program = None

        acquired: List[Tuple[str, Any]] = []
        try:
            platform = self._runtime.get_platform()
            self._device = self._runtime.get_device(platform)
            acquired.append(("device", self._device))
            self._context = self._runtime.create_context(self._device)
            acquired.append(("context", self._context))
            self._queue = self._runtime.create_queue(self._context, self._device)
            acquired.append(("queue", self._queue))
            self._program = self._runtime.build_program(
                self._context, self._device, self._read_source(kernel_source)
            )
        except Exception:
            self._closed = True
            self._device = self._context = self._queue = self._program = None
            while acquired:
                kind, handle = acquired.pop()
                try:
                    self._runtime.release(kind, handle)
                except ReleaseError as e:
                    logger.error("failed to release %s after construction error: %s", kind, e)
                del handle
            raise

        logger.debug("session opened on %s", self.device_name)

    @staticmethod
    def _read_source(kernel_source) -> str:
        try:
            return load_kernel_source(kernel_source)
        except OSError as e:
            raise ProgramBuildError(f"cannot read kernel source: {e}", call="load_kernel_source") from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
            return False
        try:
            self.close()
        except TeardownError as e:
            logger.error("teardown failed while handling %s: %s", exc_type.__name__, e)
        return False

    def __repr__(self) -> str:
        if self._closed:
            return "Session(closed)"
        return f"Session(device={self.device_name!r}, buffers={len(self._buffers)})"

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def device_name(self) -> str:
        self.check_open()
        return self._runtime.device_name(self._device)

    @property
    def buffer_count(self) -> int:
        """Number of buffers currently tracked by the session."""
        return len(self._buffers)

    @property
    def runtime(self):
        return self._runtime

    @property
    def queue(self):
        self.check_open()
        return self._queue

    @property
    def program(self):
        self.check_open()
        return self._program

    def check_open(self) -> None:
        if self._closed:
            raise SessionClosedError("session has been torn down")

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------

    def allocate(self, nbytes: int) -> int:
        """Allocate a read/write device buffer and return its handle.

        The buffer is tracked before the handle is returned, so it is released
        at teardown whatever the caller does next.

        Raises:
            BufferAllocationError: if the device rejects the request
        """
        self.check_open()
        buffer = self._runtime.create_buffer(self._context, nbytes)
        self._buffers.append(buffer)
        handle = len(self._buffers) - 1
        logger.debug("allocated buffer %d (%s)", handle, format_bytes(nbytes))
        return handle

    def buffer(self, handle: int):
        """Resolve a handle returned by :meth:`allocate`."""
        self.check_open()
        return self._buffers[handle]

    # ------------------------------------------------------------------
    # Matrices
    # ------------------------------------------------------------------

    def create(self, rows: int, cols: int, dtype=np.int32) -> Matrix:
        """Create a zero-initialized ``rows x cols`` matrix."""
        self.check_open()
        return Matrix(self, np.zeros((rows, cols), dtype=dtype))

    def create_with(self, data, dtype=None) -> Matrix:
        """Create a matrix holding a copy of the 2-D array-like ``data``."""
        self.check_open()
        return Matrix(self, np.array(data, dtype=dtype))

    def multiply(self, left: Matrix, right: Matrix,
                 sink: Optional[Callable[[int], Any]] = None) -> Matrix:
        """Multiply two matrices of this session. See :func:`opencl_mm.matrix.multiply`."""
        return multiply(left, right, sink)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release every device resource owned by the session.

        Runs at most once; later calls do nothing.

        Raises:
            TeardownError: if any release failed (all releases are attempted)
        """
        if self._closed:
            return
        self._closed = True

        resources = [("buffer", buffer) for buffer in self._buffers]
        resources += [
            ("program", self._program),
            ("queue", self._queue),
            ("context", self._context),
            ("device", self._device),
        ]
        self._buffers = []
        self._device = self._context = self._queue = self._program = None

        # pyopencl frees most objects when their last reference goes, so each
        # handle is dropped right after its release call.
        count = len(resources)
        failures = []
        while resources:
            kind, handle = resources.pop(0)
            try:
                self._runtime.release(kind, handle)
            except ReleaseError as e:
                logger.warning("teardown: %s", e)
                failures.append(e)
            del handle

        logger.debug("session closed (%d resources, %d failures)", count, len(failures))
        if failures:
            raise TeardownError(failures)


class Scope:
    """
    The handle passed to a :func:`scope` body.

    It can create matrices and multiply them; teardown belongs to
    :func:`scope` alone.
    """

    def __init__(self, session: Session):
        self._session = session

    def create(self, rows: int, cols: int, dtype=np.int32) -> Matrix:
        return self._session.create(rows, cols, dtype)

    def create_with(self, data, dtype=None) -> Matrix:
        return self._session.create_with(data, dtype)

    def multiply(self, left: Matrix, right: Matrix,
                 sink: Optional[Callable[[int], Any]] = None) -> Matrix:
        return self._session.multiply(left, right, sink)

    def __repr__(self) -> str:
        return f"Scope({self._session!r})"


def scope(body: Callable[[Scope], T], runtime=None,
          kernel_source: Optional[Union[str, Path]] = None) -> T:
    """
    Run ``body`` against a fresh session and always tear the session down.

    Session construction errors propagate before ``body`` runs. If ``body``
    raises, teardown still runs and the body's exception propagates (a
    teardown failure is then only logged). If only teardown fails,
    :class:`TeardownError` is raised.

    Args:
        body: callable receiving a :class:`Scope`
        runtime: device runtime (default: pyopencl)
        kernel_source: alternative kernel file

    Returns:
        Whatever ``body`` returned.
    """
    with Session(runtime=runtime, kernel_source=kernel_source) as session:
        return body(Scope(session))

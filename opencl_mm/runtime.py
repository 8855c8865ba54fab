# opencl_mm/runtime.py
"""
Thin adapter over pyopencl.

Every method performs one device call and turns ``pyopencl.Error`` into the
matching opencl_mm exception, tagged with the name of the call that failed.
Sessions only talk to the device through an object with these methods, so a
stand-in runtime can be supplied (the test-suite does this to simulate
devices and inject failures).
"""

import logging
from typing import Sequence, Tuple

import numpy as np
import pyopencl as cl

from .errors import (
    BufferAllocationError,
    ContextCreationError,
    DeviceUnavailableError,
    DispatchError,
    KernelResolutionError,
    PlatformUnavailableError,
    ProgramBuildError,
    QueueCreationError,
    ReleaseError,
    TransferError,
)

logger = logging.getLogger(__name__)


class PyOpenCLRuntime:
    """Device calls used by a session, backed by pyopencl."""

    def get_platform(self):
        try:
            platforms = cl.get_platforms()
        except cl.Error as e:
            raise PlatformUnavailableError(f"no OpenCL platform: {e}", call="clGetPlatformIDs") from e
        if not platforms:
            raise PlatformUnavailableError("no OpenCL platform", call="clGetPlatformIDs")
        return platforms[0]

    def get_device(self, platform):
        try:
            devices = platform.get_devices(device_type=cl.device_type.ALL)
        except cl.Error as e:
            raise DeviceUnavailableError(
                f"no device on platform {platform.name!r}: {e}", call="clGetDeviceIDs"
            ) from e
        if not devices:
            raise DeviceUnavailableError(f"no device on platform {platform.name!r}", call="clGetDeviceIDs")
        return devices[0]

    def device_name(self, device) -> str:
        return device.name.strip()

    def create_context(self, device):
        try:
            return cl.Context(devices=[device])
        except cl.Error as e:
            raise ContextCreationError(str(e), call="clCreateContext") from e

    def create_queue(self, context, device):
        try:
            return cl.CommandQueue(
                context, device, properties=cl.command_queue_properties.PROFILING_ENABLE
            )
        except cl.Error as e:
            raise QueueCreationError(str(e), call="clCreateCommandQueue") from e

    def build_program(self, context, device, source: str):
        try:
            return cl.Program(context, source).build(devices=[device])
        except cl.Error as e:
            raise ProgramBuildError(str(e), call="clBuildProgram") from e

    def create_buffer(self, context, nbytes: int):
        try:
            return cl.Buffer(context, cl.mem_flags.READ_WRITE, size=nbytes)
        except cl.Error as e:
            raise BufferAllocationError(
                f"failed to allocate {nbytes} bytes: {e}", call="clCreateBuffer"
            ) from e

    def write_buffer(self, queue, buffer, host: np.ndarray) -> None:
        try:
            cl.enqueue_copy(queue, buffer, host, is_blocking=True)
        except cl.Error as e:
            raise TransferError(str(e), call="clEnqueueWriteBuffer") from e

    def read_buffer(self, queue, buffer, host: np.ndarray) -> None:
        try:
            cl.enqueue_copy(queue, host, buffer, is_blocking=True)
        except cl.Error as e:
            raise TransferError(str(e), call="clEnqueueReadBuffer") from e

    def create_kernel(self, program, name: str):
        try:
            return cl.Kernel(program, name)
        except cl.Error as e:
            raise KernelResolutionError(f"no kernel {name!r}: {e}", call="clCreateKernel") from e

    def set_kernel_args(self, kernel, args: Sequence) -> None:
        for index, arg in enumerate(args):
            try:
                kernel.set_arg(index, arg)
            except cl.Error as e:
                raise DispatchError(f"argument {index}: {e}", call="clSetKernelArg") from e

    def enqueue_kernel(self, queue, kernel, global_size: Tuple[int, int], local_size: Tuple[int, int]):
        try:
            return cl.enqueue_nd_range_kernel(queue, kernel, global_size, local_size)
        except cl.Error as e:
            raise DispatchError(
                f"global size {global_size}, local size {local_size}: {e}",
                call="clEnqueueNDRangeKernel",
            ) from e

    def finish(self, queue) -> None:
        try:
            queue.finish()
        except cl.Error as e:
            raise DispatchError(str(e), call="clFinish") from e

    def elapsed_ns(self, event) -> int:
        """Device time between the start and end of ``event``, in nanoseconds."""
        try:
            return int(event.profile.end - event.profile.start)
        except cl.Error as e:
            raise DispatchError(str(e), call="clGetEventProfilingInfo") from e

    def release(self, kind: str, handle) -> None:
        """Release one device resource.

        Buffers are released explicitly and the queue is drained. pyopencl
        drops the remaining objects (events, kernels, programs, contexts,
        devices) when the caller lets go of its last reference.
        """
        try:
            if isinstance(handle, cl.MemoryObjectHolder):
                handle.release()
            elif isinstance(handle, cl.CommandQueue):
                handle.finish()
        except cl.Error as e:
            raise ReleaseError(f"failed to release {kind}: {e}", call=f"release({kind})") from e
        logger.debug("released %s", kind)

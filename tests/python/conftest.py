"""
Shared fixtures for the opencl_mm test-suite.

``FakeRuntime`` stands in for the pyopencl runtime: buffers are byte arrays,
kernels are evaluated with numpy, and every call and release is recorded so
tests can check ordering and inject failures.
"""

import re
import sys
from pathlib import Path

import numpy as np
import pytest

# Make the repo root importable without installing the package.
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opencl_mm.dtypes import ElementType
from opencl_mm.errors import (
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

_KERNEL_DTYPES = {member.kernel_name: member.dtype for member in ElementType}


class FakeHandle:
    def __init__(self, kind, **attrs):
        self.kind = kind
        self.released = False
        self.__dict__.update(attrs)

    def __repr__(self):
        return f"FakeHandle({self.kind})"


class FakeRuntime:
    """In-memory device with failure injection."""

    def __init__(self, platforms=1, devices=1, fail=(), fail_release=(),
                 fp64=True, max_buffers=None, elapsed=1234):
        self.platforms = platforms
        self.devices = devices
        self.fail = set(fail)
        self.fail_release = set(fail_release)
        self.fp64 = fp64
        self.max_buffers = max_buffers
        self.elapsed = elapsed

        self.calls = []
        self.released = []
        self.buffers = []
        self.writes = []
        self.reads = []
        self.sources = []
        self.launches = []

    # -- helpers -------------------------------------------------------

    def released_kinds(self):
        return [kind for kind, _ in self.released]

    def _call(self, name):
        self.calls.append(name)

    # -- construction --------------------------------------------------

    def get_platform(self):
        self._call("get_platform")
        if not self.platforms:
            raise PlatformUnavailableError("no OpenCL platform", call="clGetPlatformIDs")
        return FakeHandle("platform")

    def get_device(self, platform):
        self._call("get_device")
        if not self.devices:
            raise DeviceUnavailableError("no device", call="clGetDeviceIDs")
        return FakeHandle("device")

    def device_name(self, device):
        return "Fake Device"

    def create_context(self, device):
        self._call("create_context")
        if "create_context" in self.fail:
            raise ContextCreationError("injected", call="clCreateContext")
        return FakeHandle("context")

    def create_queue(self, context, device):
        self._call("create_queue")
        if "create_queue" in self.fail:
            raise QueueCreationError("injected", call="clCreateCommandQueue")
        return FakeHandle("queue")

    def build_program(self, context, device, source):
        self._call("build_program")
        self.sources.append(source)
        if "build_program" in self.fail:
            raise ProgramBuildError("injected", call="clBuildProgram")
        kernels = {f"mul_{name}" for name in re.findall(r"DEFINE_MUL\((\w+),", source)}
        if not self.fp64:
            kernels.discard(ElementType.F64.kernel_name)
        return FakeHandle("program", kernels=kernels)

    # -- buffers -------------------------------------------------------

    def create_buffer(self, context, nbytes):
        self._call("create_buffer")
        if "create_buffer" in self.fail or nbytes <= 0:
            raise BufferAllocationError(f"failed to allocate {nbytes} bytes", call="clCreateBuffer")
        if self.max_buffers is not None and len(self.buffers) >= self.max_buffers:
            raise BufferAllocationError("out of device memory", call="clCreateBuffer")
        buffer = FakeHandle("buffer", nbytes=nbytes, data=bytes(nbytes))
        self.buffers.append(buffer)
        return buffer

    def write_buffer(self, queue, buffer, host):
        self._call("write_buffer")
        if "write_buffer" in self.fail:
            raise TransferError("injected", call="clEnqueueWriteBuffer")
        assert not buffer.released
        assert host.nbytes == buffer.nbytes
        buffer.data = host.tobytes()
        self.writes.append(buffer)

    def read_buffer(self, queue, buffer, host):
        self._call("read_buffer")
        assert not buffer.released
        assert host.nbytes == buffer.nbytes
        host[...] = np.frombuffer(buffer.data, dtype=host.dtype).reshape(host.shape)
        self.reads.append(buffer)

    # -- kernels -------------------------------------------------------

    def create_kernel(self, program, name):
        self._call("create_kernel")
        if name not in program.kernels:
            raise KernelResolutionError(f"no kernel {name!r}", call="clCreateKernel")
        return FakeHandle("kernel", name=name, args=None)

    def set_kernel_args(self, kernel, args):
        self._call("set_kernel_args")
        kernel.args = list(args)

    def enqueue_kernel(self, queue, kernel, global_size, local_size):
        self._call("enqueue_kernel")
        self.launches.append((kernel.name, tuple(global_size), tuple(local_size), kernel.args))
        if "enqueue_kernel" in self.fail:
            raise DispatchError("injected", call="clEnqueueNDRangeKernel")
        if any(g % l for g, l in zip(global_size, local_size)):
            raise DispatchError("INVALID_WORK_GROUP_SIZE", call="clEnqueueNDRangeKernel")

        n, m, k, left, right, out = kernel.args
        dtype = _KERNEL_DTYPES[kernel.name]
        a = np.frombuffer(left.data, dtype=dtype).reshape(int(n), int(m))
        b = np.frombuffer(right.data, dtype=dtype).reshape(int(m), int(k))
        out.data = np.matmul(a, b).astype(dtype).tobytes()
        return FakeHandle("event", elapsed=self.elapsed)

    def finish(self, queue):
        self._call("finish")

    def elapsed_ns(self, event):
        return event.elapsed

    # -- teardown ------------------------------------------------------

    def release(self, kind, handle):
        self._call(f"release:{kind}")
        assert not handle.released, f"{kind} released twice"
        handle.released = True
        self.released.append((kind, handle))
        if kind in self.fail_release:
            raise ReleaseError(f"failed to release {kind}: injected", call=f"release({kind})")


class TrackedHandle(FakeHandle):
    """Handle that records its kind in ``dropped`` when garbage collected."""

    def __init__(self, kind, dropped, **attrs):
        super().__init__(kind, **attrs)
        self._dropped = dropped

    def __del__(self):
        self._dropped.append(self.kind)


class DroppingRuntime(FakeRuntime):
    """
    Runtime whose device, context, queue and program are freed by reference
    count alone, the way pyopencl frees them. Releases are recorded without
    keeping the handle alive.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.dropped = []

    def get_device(self, platform):
        super().get_device(platform)
        return TrackedHandle("device", self.dropped)

    def create_context(self, device):
        super().create_context(device)
        return TrackedHandle("context", self.dropped)

    def create_queue(self, context, device):
        super().create_queue(context, device)
        return TrackedHandle("queue", self.dropped)

    def build_program(self, context, device, source):
        kernels = super().build_program(context, device, source).kernels
        return TrackedHandle("program", self.dropped, kernels=kernels)

    def release(self, kind, handle):
        self._call(f"release:{kind}")
        handle.released = True
        self.released.append((kind, None))
        if kind in self.fail_release:
            raise ReleaseError(f"failed to release {kind}: injected", call=f"release({kind})")


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def make_runtime():
    return FakeRuntime


@pytest.fixture
def dropping_runtime():
    return DroppingRuntime()

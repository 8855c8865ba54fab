# opencl_mm/errors.py
"""Exceptions raised by opencl_mm."""

from typing import List, Optional


class DeviceError(RuntimeError):
    """Base exception for opencl_mm device errors.

    ``call`` names the device call that failed, when there is one.
    """

    def __init__(self, message: str, call: Optional[str] = None):
        self.call = call
        self.message = message
        super().__init__(f"{call}: {message}" if call else message)


class PlatformUnavailableError(DeviceError):
    """No OpenCL platform is available."""


class DeviceUnavailableError(DeviceError):
    """The selected platform exposes no device."""


class ContextCreationError(DeviceError):
    pass


class QueueCreationError(DeviceError):
    pass


class ProgramBuildError(DeviceError):
    """The kernel program failed to load or compile."""


class BufferAllocationError(DeviceError):
    pass


class TransferError(DeviceError):
    """A blocking host/device copy failed."""


class KernelResolutionError(DeviceError):
    """No kernel entry point exists for the requested element type."""


class DispatchError(DeviceError):
    """Binding, enqueueing, finishing or profiling a kernel failed."""


class ReleaseError(DeviceError):
    """Releasing a single device resource failed."""


class TeardownError(DeviceError):
    """One or more releases failed while tearing a session down.

    The message describes the first failure; ``failures`` holds all of them
    in the order they occurred.
    """

    def __init__(self, failures: List[ReleaseError]):
        self.failures = list(failures)
        first = self.failures[0]
        message = first.message
        if len(self.failures) > 1:
            message += f" (and {len(self.failures) - 1} more release failure(s))"
        super().__init__(message, call=first.call)


class SessionClosedError(DeviceError):
    """A session, or a matrix belonging to it, was used after teardown."""


class DimensionError(DeviceError, ValueError):
    """Matrix dimensions are incompatible."""


__all__ = [
    'DeviceError', 'PlatformUnavailableError', 'DeviceUnavailableError',
    'ContextCreationError', 'QueueCreationError', 'ProgramBuildError',
    'BufferAllocationError', 'TransferError', 'KernelResolutionError',
    'DispatchError', 'ReleaseError', 'TeardownError', 'SessionClosedError',
    'DimensionError',
]

"""
Thin layer over numba.cuda: device selection, kernel compilation,
blocking transfers and profiled kernel dispatch.

Every driver failure leaves this module as a BackendError carrying the
numeric CUDA error code and its symbolic name.
"""

import time
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field

import numpy as np
import nvtx
from numba import cuda
from numba.core.errors import NumbaError
from numba.cuda.cudadrv.driver import CudaAPIError

from .errors import BackendError, BuildError

# CUresult codes most likely to surface from allocation, transfer or launch
CUDA_ERRORS = {
    0: "CUDA_SUCCESS",
    1: "CUDA_ERROR_INVALID_VALUE",
    2: "CUDA_ERROR_OUT_OF_MEMORY",
    3: "CUDA_ERROR_NOT_INITIALIZED",
    4: "CUDA_ERROR_DEINITIALIZED",
    5: "CUDA_ERROR_PROFILER_DISABLED",
    46: "CUDA_ERROR_DEVICES_UNAVAILABLE",
    100: "CUDA_ERROR_NO_DEVICE",
    101: "CUDA_ERROR_INVALID_DEVICE",
    200: "CUDA_ERROR_INVALID_IMAGE",
    201: "CUDA_ERROR_INVALID_CONTEXT",
    209: "CUDA_ERROR_NO_BINARY_FOR_GPU",
    218: "CUDA_ERROR_INVALID_PTX",
    222: "CUDA_ERROR_UNSUPPORTED_PTX_VERSION",
    300: "CUDA_ERROR_INVALID_SOURCE",
    301: "CUDA_ERROR_FILE_NOT_FOUND",
    400: "CUDA_ERROR_INVALID_HANDLE",
    500: "CUDA_ERROR_NOT_FOUND",
    600: "CUDA_ERROR_NOT_READY",
    700: "CUDA_ERROR_ILLEGAL_ADDRESS",
    701: "CUDA_ERROR_LAUNCH_OUT_OF_RESOURCES",
    702: "CUDA_ERROR_LAUNCH_TIMEOUT",
    716: "CUDA_ERROR_MISALIGNED_ADDRESS",
    719: "CUDA_ERROR_LAUNCH_FAILED",
    999: "CUDA_ERROR_UNKNOWN",
}


def error_string(code):
    """Symbolic name of a CUDA driver error code."""
    return CUDA_ERRORS.get(code, "CUDA_ERROR_UNKNOWN")


def backend_error(err, operation):
    args = getattr(err, "args", ())
    code = getattr(err, "code", None)
    if code is None and args and isinstance(args[0], int):
        code = args[0]
    message = getattr(err, "msg", None)
    if message is None:
        message = args[1] if len(args) > 1 else str(err)
    return BackendError(f"{operation}: {message}", code=code, name=error_string(code))


@contextmanager
def driver_call(operation):
    """Translate CUDA driver failures raised inside the block."""
    try:
        yield
    except CudaAPIError as err:
        raise backend_error(err, operation) from err


@dataclass
class StageTiming:
    """
    Profiling timestamps of one kernel dispatch, in nanoseconds.

    ``queued``, ``submitted`` and ``ended`` are host clock stamps taken
    before recording the start event, after the launch call returns and
    after the device has finished. ``execution`` is measured by the CUDA
    events around the kernel, so the start of execution on the host clock
    is ``ended - execution``.
    """
    name: str
    queued: int
    submitted: int
    ended: int
    execution: int

    @property
    def started(self):
        return self.ended - self.execution

    @property
    def submit_time(self):
        return self.submitted - self.queued

    @property
    def start_delay(self):
        return max(0, self.started - self.submitted)

    @property
    def total_time(self):
        return self.ended - self.queued


@dataclass
class BuildResult:
    """Outcome of compiling the kernels: status, options and full log."""
    status: str
    options: dict = field(default_factory=dict)
    log: str = ""

    @property
    def ok(self):
        return self.status == "success"

    def raise_for_status(self):
        if not self.ok:
            raise BuildError(self)
        return self


def list_devices():
    """Human readable listing of every CUDA device numba can see."""
    gpus = list(cuda.gpus)
    lines = [f"Found {len(gpus)} CUDA device(s)"]
    for index, gpu in enumerate(gpus):
        name = getattr(gpu, "name", "unknown")
        if isinstance(name, bytes):
            name = name.decode()
        cc = getattr(gpu, "compute_capability", None)
        lines.append(f"Device {index}: {name} (compute capability {cc})")
    return "\n".join(lines)


class Backend:
    """The selected CUDA device and the operations the pipeline runs on it."""

    def __init__(self, device_id=0):
        self.device_id = device_id
        self.device = None

    @classmethod
    def create(cls, device_id=0):
        if not cuda.is_available():
            raise BackendError("CUDA not available. Check your runtime/drivers.")
        backend = cls(device_id)
        with driver_call(f"selecting device {device_id}"):
            backend.device = cuda.select_device(device_id)
        return backend

    def compile(self, warmups, options=None):
        """
        Compile every kernel by launching it once on tiny inputs.

        ``warmups`` is a sequence of ``(name, kernel, blocks, threads, args)``.
        Failures are returned in the BuildResult, never raised.
        """
        options = dict(options or {})
        log = []
        for name, kernel, blocks, threads, args in warmups:
            try:
                with nvtx.annotate(f"compile_{name}"):
                    kernel[blocks, threads](*args)
                    cuda.synchronize()
            except (NumbaError, CudaAPIError) as err:
                log.append(f"{name}: failed")
                log.append("".join(traceback.format_exception(type(err), err, err.__traceback__)))
                return BuildResult("error", options, "\n".join(log))
            log.append(f"{name}: ok")
        return BuildResult("success", options, "\n".join(log))

    def to_device(self, array):
        with nvtx.annotate("host_to_device"), driver_call("host to device copy"):
            d_array = cuda.to_device(np.ascontiguousarray(array))
            cuda.synchronize()
        return d_array

    def device_array(self, shape, dtype):
        with driver_call("device allocation"):
            return cuda.device_array(shape, dtype=dtype)

    def copy_to_host(self, d_array):
        with nvtx.annotate("device_to_host"), driver_call("device to host copy"):
            return d_array.copy_to_host()

    def launch(self, name, kernel, blocks, threads, *args):
        """Dispatch one kernel and block until it has finished."""
        start = cuda.event()
        end = cuda.event()
        with nvtx.annotate(name), driver_call(f"launch of {name}"):
            queued = time.perf_counter_ns()
            start.record()
            kernel[blocks, threads](*args)
            submitted = time.perf_counter_ns()
            end.record()
            end.synchronize()
            cuda.synchronize()
            ended = time.perf_counter_ns()
            elapsed_ms = start.elapsed_time(end)
        return StageTiming(name, queued, submitted, ended, int(elapsed_ms * 1e6))

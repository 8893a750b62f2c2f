"""
Device-offload SAXPY driver.

    result[i] = alpha * x[i] + y[i]

One call owns three device buffers (x, y, result) for its whole duration and
gives them back on every exit path. A device handle serves one call at a time;
concurrent benchmarks each open their own handle. Device faults never escape the call: they
are printed to stderr and handed back inside the outcome, and the caller must
not trust ``result`` when ``outcome.ok`` is false.

Timeline of a call:

    allocate x, y, result
    [overall timer ---------------------------------------------------]
      copy x in, copy y in | event, kernel, event, sync | poll | copy out
                             [kernel-only -----------]
    free result, y, x
"""

from __future__ import annotations

import sys
import time
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Optional

import numpy as np
import nvtx

from .device import FLOAT_BYTES, Device
from .errors import OffloadError
from .kernels import GROUP_SIZE
from .timing import SaxpyReport

MAX_ELEMENTS = int(np.iinfo(np.int32).max)


@dataclass(frozen=True)
class SaxpyOutcome:
    report: Optional[SaxpyReport] = None
    error: Optional[OffloadError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def check(self) -> SaxpyReport:
        if self.error is not None:
            raise self.error
        return self.report


@contextmanager
def device_buffer(device: Device, nbytes: int, release_errors: list):
    buf = device.allocate(nbytes)
    try:
        yield buf
    finally:
        # Never let a failed free mask the fault that is unwinding the call
        try:
            device.free(buf)
        except OffloadError as exc:
            release_errors.append(exc)


def _check_args(n, x, y, result, group_size):
    if n < 0:
        raise ValueError(f"element count must be non-negative, got {n}")
    if n > MAX_ELEMENTS:
        raise ValueError(f"element count {n} exceeds the kernel's int32 index range ({MAX_ELEMENTS})")
    if group_size <= 0:
        raise ValueError(f"group size must be positive, got {group_size}")
    for name, vec in (("x", x), ("y", y), ("result", result)):
        if len(vec) < n:
            raise ValueError(f"{name} holds {len(vec)} elements, need at least {n}")


def saxpy(device: Device, n: int, alpha: float, x, y, result,
          group_size: int = GROUP_SIZE, verbose: bool = True) -> SaxpyOutcome:
    _check_args(n, x, y, result, group_size)

    if n == 0:
        report = SaxpyReport(0, 0.0, 0.0, device.label)
        if verbose:
            print("\n".join(report.lines()))
        return SaxpyOutcome(report)

    nbytes = n * FLOAT_BYTES
    release_errors = []
    error = None
    try:
        with ExitStack() as stack:
            with nvtx.annotate("Allocate device buffers"):
                d_x = stack.enter_context(device_buffer(device, nbytes, release_errors))
                d_y = stack.enter_context(device_buffer(device, nbytes, release_errors))
                d_result = stack.enter_context(device_buffer(device, nbytes, release_errors))

            start_time = time.perf_counter()

            with nvtx.annotate("Transfer in"):
                device.copy_to_device(d_x, x, n)
                device.copy_to_device(d_y, y, n)

            with nvtx.annotate("saxpy kernel"):
                kernel_start = device.record_event()
                device.launch_saxpy(n, alpha, d_x, d_y, d_result, group_size)
                kernel_end = device.record_event()
                device.synchronize()
            kernel_ms = device.elapsed_ms(kernel_start, kernel_end)

            # A faulted kernel leaves garbage in d_result; don't ship it back
            fault = device.poll_fault()
            if fault is not None:
                raise fault

            with nvtx.annotate("Transfer out"):
                device.copy_to_host(result, d_result, n)

            overall_ms = (time.perf_counter() - start_time) * 1000
    except OffloadError as exc:
        error = exc

    faults = ([error] if error is not None else []) + release_errors
    for fault in faults:
        print(f"Error: {fault.describe()}", file=sys.stderr)
    if faults:
        # a fault raised during the call outranks any failed free it caused
        return SaxpyOutcome(error=faults[0])

    report = SaxpyReport(n, overall_ms, kernel_ms, device.label)
    if verbose:
        print("\n".join(report.lines()))
    return SaxpyOutcome(report)

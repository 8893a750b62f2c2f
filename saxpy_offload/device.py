"""
Accelerator handles.

A driver call never touches global device state: it is handed one of these
objects and goes through it for every allocation, copy, launch and event.

- ``CupyDevice``: a CUDA device driven through CuPy (runtime malloc/memcpy,
  one non-blocking stream, a RawKernel, CUDA events).
- ``HostDevice``: a NumPy stand-in with the same surface. Buffers are plain
  byte arrays and events are host timestamps. Used for the CPU comparison
  runs and for exercising the driver without a GPU.

Both count outstanding allocations so leaks and double frees are visible.
A handle serves one driver call at a time: it has a single stream (or fault
slot) and a fault polled from it belongs to whichever call is running. Threads
that benchmark concurrently each open their own handle.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from .errors import AllocationFailure, AsynchronousComputeFault, ReleaseFailure, TransferFailure
from .kernels import GROUP_SIZE, SAXPY_KERNEL_CODE, SAXPY_KERNEL_NAME, num_groups, saxpy_groups

FLOAT_BYTES = np.dtype(np.float32).itemsize


def _cupy() -> Any:
    import cupy

    return cupy


@dataclass(eq=False)
class DeviceBuffer:
    handle: Any
    nbytes: int


class Device:
    label = "DEVICE"

    def __init__(self, name):
        self.name = name
        self._live = set()
        self._lock = threading.Lock()

    def __repr__(self):
        return f"<{type(self).__name__} {self.name!r}>"

    @property
    def outstanding(self) -> int:
        with self._lock:
            return len(self._live)

    def allocate(self, nbytes) -> DeviceBuffer:
        buf = self._malloc(nbytes)
        with self._lock:
            self._live.add(buf)
        return buf

    def free(self, buf: DeviceBuffer) -> None:
        with self._lock:
            if buf not in self._live:
                raise RuntimeError(f"buffer of {buf.nbytes} bytes is not live on {self.name}")
            self._live.remove(buf)
        self._release(buf)

    def _malloc(self, nbytes):
        raise NotImplementedError

    def _release(self, buf):
        raise NotImplementedError

    def copy_to_device(self, buf, host, n):
        raise NotImplementedError

    def copy_to_host(self, host, buf, n):
        raise NotImplementedError

    def launch_saxpy(self, n, alpha, d_x, d_y, d_result, group_size=GROUP_SIZE):
        raise NotImplementedError

    def record_event(self):
        raise NotImplementedError

    def elapsed_ms(self, start, end) -> float:
        raise NotImplementedError

    def synchronize(self):
        raise NotImplementedError

    def poll_fault(self) -> Optional[AsynchronousComputeFault]:
        raise NotImplementedError


class HostDevice(Device):
    label = "HOST"

    def __init__(self, name="host"):
        super().__init__(name)
        self._fault = None

    def _malloc(self, nbytes):
        try:
            raw = np.empty(nbytes, dtype=np.uint8)
        except MemoryError as exc:
            raise AllocationFailure("allocate", device=self.name, detail=f"{nbytes} bytes") from exc
        return DeviceBuffer(raw, nbytes)

    def _release(self, buf):
        buf.handle = None

    def _view(self, buf, n):
        return buf.handle[: n * FLOAT_BYTES].view(np.float32)

    def copy_to_device(self, buf, host, n):
        try:
            np.copyto(self._view(buf, n), host[:n], casting="same_kind")
        except (TypeError, ValueError) as exc:
            raise TransferFailure("copy to device", device=self.name, detail=str(exc)) from exc

    def copy_to_host(self, host, buf, n):
        try:
            np.copyto(host[:n], self._view(buf, n), casting="same_kind")
        except (TypeError, ValueError) as exc:
            raise TransferFailure("copy to host", device=self.name, detail=str(exc)) from exc

    def launch_saxpy(self, n, alpha, d_x, d_y, d_result, group_size=GROUP_SIZE):
        # The host "stream" runs the kernel inline; faults are parked until polled.
        try:
            saxpy_groups(
                n, alpha, self._view(d_x, n), self._view(d_y, n), self._view(d_result, n), group_size
            )
        except ArithmeticError as exc:
            with self._lock:
                self._fault = AsynchronousComputeFault("compute", device=self.name, detail=str(exc))

    def record_event(self):
        return time.perf_counter()

    def elapsed_ms(self, start, end):
        return (end - start) * 1000

    def synchronize(self):
        pass

    def poll_fault(self):
        with self._lock:
            fault, self._fault = self._fault, None
        return fault


class CupyDevice(Device):
    label = "CUDA"

    def __init__(self, ordinal=0):
        cp = _cupy()
        self.ordinal = ordinal
        self._device = cp.cuda.Device(ordinal)
        props = cp.cuda.runtime.getDeviceProperties(ordinal)
        name = props["name"]
        if isinstance(name, bytes):
            name = name.decode()
        super().__init__(f"cuda:{ordinal} ({name})")
        with self._device:
            self.stream = cp.cuda.Stream(non_blocking=True)
            self._kernel = cp.RawKernel(SAXPY_KERNEL_CODE, SAXPY_KERNEL_NAME)

    def _malloc(self, nbytes):
        cp = _cupy()
        with self._device:
            try:
                ptr = cp.cuda.runtime.malloc(nbytes)
            except cp.cuda.runtime.CUDARuntimeError as exc:
                raise AllocationFailure("allocate", code=exc.status, device=self.name) from exc
        return DeviceBuffer(ptr, nbytes)

    def _release(self, buf):
        cp = _cupy()
        with self._device:
            try:
                cp.cuda.runtime.free(buf.handle)
            except cp.cuda.runtime.CUDARuntimeError as exc:
                # a sticky fault from the kernel is returned by cudaFree too
                raise ReleaseFailure("free", code=exc.status, device=self.name) from exc

    def _as_array(self, buf, n):
        cp = _cupy()
        mem = cp.cuda.UnownedMemory(buf.handle, buf.nbytes, buf, self.ordinal)
        return cp.ndarray((n,), dtype=cp.float32, memptr=cp.cuda.MemoryPointer(mem, 0))

    def copy_to_device(self, buf, host, n):
        cp = _cupy()
        src = np.ascontiguousarray(host[:n], dtype=np.float32)
        with self._device:
            try:
                cp.cuda.runtime.memcpyAsync(
                    buf.handle, src.ctypes.data, n * FLOAT_BYTES,
                    cp.cuda.runtime.memcpyHostToDevice, self.stream.ptr,
                )
                self.stream.synchronize()
            except cp.cuda.runtime.CUDARuntimeError as exc:
                raise TransferFailure("copy to device", code=exc.status, device=self.name) from exc

    def copy_to_host(self, host, buf, n):
        cp = _cupy()
        out = host[:n]
        direct = out.dtype == np.float32 and out.flags.c_contiguous and out.flags.writeable
        dst = out if direct else np.empty(n, dtype=np.float32)
        with self._device:
            try:
                cp.cuda.runtime.memcpyAsync(
                    dst.ctypes.data, buf.handle, n * FLOAT_BYTES,
                    cp.cuda.runtime.memcpyDeviceToHost, self.stream.ptr,
                )
                self.stream.synchronize()
            except cp.cuda.runtime.CUDARuntimeError as exc:
                raise TransferFailure("copy to host", code=exc.status, device=self.name) from exc
        if not direct:
            out[...] = dst

    def launch_saxpy(self, n, alpha, d_x, d_y, d_result, group_size=GROUP_SIZE):
        cp = _cupy()
        groups = num_groups(n, group_size)
        args = (
            np.int32(n), np.float32(alpha),
            self._as_array(d_x, n), self._as_array(d_y, n), self._as_array(d_result, n),
        )
        with self._device, self.stream:
            try:
                self._kernel((groups,), (group_size,), args)
            except (cp.cuda.runtime.CUDARuntimeError, cp.cuda.driver.CUDADriverError) as exc:
                raise AsynchronousComputeFault(
                    "launch", code=getattr(exc, "status", None), device=self.name
                ) from exc

    def record_event(self):
        cp = _cupy()
        with self._device:
            try:
                event = cp.cuda.Event()
                event.record(self.stream)
            except cp.cuda.runtime.CUDARuntimeError as exc:
                raise AsynchronousComputeFault("record event", code=exc.status, device=self.name) from exc
        return event

    def elapsed_ms(self, start, end):
        cp = _cupy()
        try:
            end.synchronize()
            return cp.cuda.get_elapsed_time(start, end)
        except cp.cuda.runtime.CUDARuntimeError as exc:
            raise AsynchronousComputeFault("read events", code=exc.status, device=self.name) from exc

    def synchronize(self):
        cp = _cupy()
        with self._device:
            try:
                self.stream.synchronize()
            except cp.cuda.runtime.CUDARuntimeError as exc:
                raise AsynchronousComputeFault("synchronize", code=exc.status, device=self.name) from exc

    def poll_fault(self):
        cp = _cupy()
        with self._device:
            try:
                # cudaStreamQuery: raises on a sticky error, never blocks
                self.stream.done
            except cp.cuda.runtime.CUDARuntimeError as exc:
                return AsynchronousComputeFault("compute", code=exc.status, device=self.name)
        return None


def open_device(kind="cuda", ordinal=0) -> Device:
    if kind == "cuda":
        return CupyDevice(ordinal)
    if kind == "host":
        return HostDevice()
    raise ValueError(f"unknown device kind: {kind!r} (expected 'cuda' or 'host')")

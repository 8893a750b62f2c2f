from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure repo root is importable regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from saxpy_offload.device import HostDevice
from saxpy_offload.errors import AllocationFailure, AsynchronousComputeFault, ReleaseFailure, TransferFailure


class FaultyHostDevice(HostDevice):
    """HostDevice that fails on the Nth call of a chosen step and counts everything."""

    def __init__(self, fail_alloc_at=None, fail_copy_in_at=None, fail_copy_out=False, fault_compute=False,
                 fail_release=False):
        super().__init__("faulty-host")
        self.fail_alloc_at = fail_alloc_at
        self.fail_copy_in_at = fail_copy_in_at
        self.fail_copy_out = fail_copy_out
        self.fault_compute = fault_compute
        self.fail_release = fail_release
        self.alloc_calls = 0
        self.freed = 0
        self.copy_in_calls = 0
        self.copy_out_calls = 0
        self.launches = 0

    def _malloc(self, nbytes):
        self.alloc_calls += 1
        if self.alloc_calls == self.fail_alloc_at:
            raise AllocationFailure("allocate", code=2, device=self.name)
        return super()._malloc(nbytes)

    def _release(self, buf):
        self.freed += 1
        super()._release(buf)
        if self.fail_release:
            # what cudaFree reports once a kernel has left a sticky error behind
            raise ReleaseFailure("free", code=700, device=self.name)

    def copy_to_device(self, buf, host, n):
        self.copy_in_calls += 1
        if self.copy_in_calls == self.fail_copy_in_at:
            raise TransferFailure("copy to device", code=1, device=self.name)
        super().copy_to_device(buf, host, n)

    def copy_to_host(self, host, buf, n):
        self.copy_out_calls += 1
        if self.fail_copy_out:
            raise TransferFailure("copy to host", code=1, device=self.name)
        super().copy_to_host(host, buf, n)

    def launch_saxpy(self, n, alpha, d_x, d_y, d_result, group_size=512):
        self.launches += 1
        if self.fault_compute:
            self._fault = AsynchronousComputeFault("compute", code=700, device=self.name)
            return
        super().launch_saxpy(n, alpha, d_x, d_y, d_result, group_size)


@pytest.fixture
def host_device():
    return HostDevice()


@pytest.fixture
def faulty_device():
    return FaultyHostDevice

"""
Device faults raised at the accelerator boundary.

Backend exceptions (CuPy runtime errors, out-of-memory) are translated into
these classes by the device handles so the driver only deals with one family.
"""

from __future__ import annotations


class OffloadError(RuntimeError):
    kind = "device fault"

    def __init__(self, step, code=None, device=None, detail=None):
        self.step = step
        self.code = code
        self.device = device
        self.detail = detail
        super().__init__(self.describe())

    def describe(self):
        where = f" on {self.device}" if self.device else ""
        msg = f"{self.step} failed{where}: {self.kind}"
        if self.detail:
            msg += f" ({self.detail})"
        if self.code is not None:
            msg += f" (code {self.code})"
        return msg


class AllocationFailure(OffloadError):
    kind = "allocation failure"


class TransferFailure(OffloadError):
    kind = "transfer failure"


class AsynchronousComputeFault(OffloadError):
    kind = "asynchronous compute fault"


class ReleaseFailure(OffloadError):
    kind = "release failure"

from __future__ import annotations

from dataclasses import dataclass

# Two vectors read, one written
BYTES_PER_ELEMENT = 3 * 4


def total_bytes(n):
    return BYTES_PER_ELEMENT * n


def gb_per_sec(nbytes, seconds):
    if seconds <= 0:
        return 0.0
    return nbytes / (1024.0 ** 3) / seconds


@dataclass(frozen=True)
class SaxpyReport:
    n: int
    overall_ms: float
    kernel_ms: float
    device_label: str = "CUDA"

    @property
    def bandwidth_gbps(self) -> float:
        return gb_per_sec(total_bytes(self.n), self.overall_ms / 1000.0)

    def lines(self):
        return [
            f"Effective BW by {self.device_label} saxpy: {self.overall_ms:.3f} ms\t\t"
            f"[{self.bandwidth_gbps:.3f} GB/s]",
            f"Kernel-only execution time (using events): {self.kernel_ms:.3f} ms",
        ]

    def to_dict(self):
        return {
            "n": self.n,
            "overall_ms": self.overall_ms,
            "kernel_ms": self.kernel_ms,
            "bandwidth_gbps": self.bandwidth_gbps,
            "device": self.device_label,
        }

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from .kernels import GROUP_SIZE

# Defaults
DATA_N = 20 * 1000 * 1000
ALPHA = 2.0
DEVICE_KIND = "cuda"
ITERATIONS = 3
SWEEP_SIZES = (1 << 10, 1 << 14, 1 << 18, 1 << 20, 1 << 22, 1 << 24)


def _env(name, cast, default):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"invalid value for {name}: {raw!r}") from exc


@dataclass(frozen=True)
class BenchConfig:
    n: int = DATA_N
    alpha: float = ALPHA
    device: str = DEVICE_KIND
    ordinal: int = 0
    group_size: int = GROUP_SIZE
    iterations: int = ITERATIONS
    verify: bool = True

    def __post_init__(self):
        if self.n < 0:
            raise ValueError(f"n must be non-negative, got {self.n}")
        if self.group_size <= 0:
            raise ValueError(f"group_size must be positive, got {self.group_size}")
        if self.iterations <= 0:
            raise ValueError(f"iterations must be positive, got {self.iterations}")
        if self.device not in ("cuda", "host"):
            raise ValueError(f"device must be 'cuda' or 'host', got {self.device!r}")

    @classmethod
    def from_env(cls):
        return cls(
            n=_env("SAXPY_N", int, DATA_N),
            alpha=_env("SAXPY_ALPHA", float, ALPHA),
            device=_env("SAXPY_DEVICE", str, DEVICE_KIND),
            ordinal=_env("SAXPY_ORDINAL", int, 0),
            group_size=_env("SAXPY_GROUP_SIZE", int, GROUP_SIZE),
            iterations=_env("SAXPY_ITERATIONS", int, ITERATIONS),
        )

    def override(self, **changes):
        """Return a copy with every non-None value in ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

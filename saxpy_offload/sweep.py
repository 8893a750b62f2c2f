"""
Run the driver over a range of sizes and plot achieved bandwidth.
"""

from __future__ import annotations

import numpy as np
import nvtx

from .driver import saxpy
from .kernels import GROUP_SIZE


def make_inputs(n, seed=0):
    rng = np.random.default_rng(seed)
    x = rng.random(n, dtype=np.float32)
    y = rng.random(n, dtype=np.float32)
    return x, y


def run_sweep(device, sizes, alpha=2.0, group_size=GROUP_SIZE):
    """Return one row per size; a failed size is recorded and the sweep moves on."""
    rows = []
    for n in sizes:
        x, y = make_inputs(n)
        result = np.empty(n, dtype=np.float32)
        with nvtx.annotate(f"Sweep n={n}"):
            outcome = saxpy(device, n, alpha, x, y, result, group_size=group_size, verbose=False)
        if outcome.ok:
            row = outcome.report.to_dict()
            row["ok"] = True
        else:
            row = {"n": n, "ok": False, "error": str(outcome.error)}
        print(f"n={n}: " + (f"{row['overall_ms']:.3f} ms, {row['bandwidth_gbps']:.3f} GB/s"
                            if row["ok"] else row["error"]))
        rows.append(row)
    return rows


def plot_sweep(rows, path):
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    good = [r for r in rows if r["ok"] and r["n"] > 0]
    sizes = [r["n"] for r in good]

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(sizes, [r["bandwidth_gbps"] for r in good], label="overall", marker="o")
    ax.set_xscale("log")
    ax.set_xlabel("Elements (N)")
    ax.set_ylabel("Effective bandwidth (GB/s)")
    ax.set_title("saxpy effective bandwidth vs N")
    ax.legend()
    ax.grid(True)
    fig.savefig(path)
    plt.close(fig)
    print(f"Plot saved as '{path}'.")
    return path

from __future__ import annotations

import argparse
import sys

import numpy as np
import nvtx

from .config import SWEEP_SIZES, BenchConfig
from .device import open_device
from .devices import format_devices, list_devices
from .driver import saxpy
from .kernels import saxpy_reference
from .sweep import plot_sweep, run_sweep


def make_vectors(n):
    x = (np.arange(n, dtype=np.int64) % 10).astype(np.float32)
    y = x.copy()
    return x, y


def results_match(result, expected):
    return bool(np.allclose(result, expected, rtol=1e-5, atol=1e-6))


def _open(kind, ordinal):
    """Open a device handle, or print why not and return None."""
    try:
        return open_device(kind, ordinal)
    except (ImportError, RuntimeError) as exc:
        # CuPy missing, or no usable CUDA device at that ordinal
        print(f"Error: cannot open {kind} device {ordinal}: {exc}", file=sys.stderr)
        return None


def run_benchmark(config: BenchConfig, device=None) -> int:
    if device is None:
        device = _open(config.device, config.ordinal)
        if device is None:
            return 1

    print(f"Running saxpy on {device.name} with N={config.n}, alpha={config.alpha}")
    with nvtx.annotate("Data Generation"):
        x, y = make_vectors(config.n)
        result = np.zeros(config.n, dtype=np.float32)

    status = 0
    for i in range(config.iterations):
        with nvtx.annotate(f"Iteration {i + 1}"):
            outcome = saxpy(device, config.n, config.alpha, x, y, result, group_size=config.group_size)
        if not outcome.ok:
            return 1

    if config.verify:
        print("Comparing device and host results...")
        if results_match(result, saxpy_reference(config.alpha, x, y)):
            print("Results match.")
        else:
            print("Results do not match!")
            status = 1
    return status


def _build_parser():
    parser = argparse.ArgumentParser(prog="saxpy-offload", description="Device-offload saxpy benchmark.")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="time saxpy end to end and kernel only")
    run.add_argument("-n", type=int, default=None, help="number of elements")
    run.add_argument("--alpha", type=float, default=None)
    run.add_argument("--device", choices=("cuda", "host"), default=None)
    run.add_argument("--ordinal", type=int, default=None, help="CUDA device index")
    run.add_argument("--group-size", type=int, default=None, help="lanes per group (threads per block)")
    run.add_argument("--iterations", type=int, default=None)
    run.add_argument("--no-verify", dest="verify", action="store_false", default=None)

    sw = sub.add_parser("sweep", help="measure bandwidth over a range of sizes")
    sw.add_argument("--sizes", type=int, nargs="+", default=list(SWEEP_SIZES))
    sw.add_argument("--alpha", type=float, default=None)
    sw.add_argument("--device", choices=("cuda", "host"), default=None)
    sw.add_argument("--ordinal", type=int, default=None)
    sw.add_argument("--out", default="saxpy_bandwidth_vs_n.png")

    sub.add_parser("devices", help="list CUDA devices")
    return parser


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "devices":
        try:
            devices = list_devices()
        except (ImportError, RuntimeError) as exc:
            print(f"Error: cannot enumerate CUDA devices: {exc}", file=sys.stderr)
            return 1
        print(format_devices(devices))
        return 0

    try:
        config = BenchConfig.from_env().override(
            n=getattr(args, "n", None),
            alpha=args.alpha,
            device=args.device,
            ordinal=args.ordinal,
            group_size=getattr(args, "group_size", None),
            iterations=getattr(args, "iterations", None),
            verify=getattr(args, "verify", None),
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if args.command == "run":
        return run_benchmark(config)

    device = _open(config.device, config.ordinal)
    if device is None:
        return 1
    rows = run_sweep(device, args.sizes, alpha=config.alpha, group_size=config.group_size)
    plot_sweep(rows, args.out)
    return 0 if all(r["ok"] for r in rows) else 1


if __name__ == "__main__":
    sys.exit(main())

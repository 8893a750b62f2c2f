"""
Device enumeration report. Purely informational; nothing here affects a run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .device import _cupy

MB = 1024 ** 2


@dataclass(frozen=True)
class DeviceInfo:
    index: int
    name: str
    sm_count: int
    global_mem_mb: float
    capability: tuple
    free_mem_mb: Optional[float] = None
    used_mem_mb: Optional[float] = None


def _nvml_memory(count):
    try:
        import pynvml
    except ImportError:
        return {}

    try:
        pynvml.nvmlInit()
    except pynvml.NVMLError:
        return {}
    try:
        mem = {}
        for i in range(count):
            handle = pynvml.nvmlDeviceGetHandleByIndex(i)
            mem_info = pynvml.nvmlDeviceGetMemoryInfo(handle)
            mem[i] = (mem_info.free / MB, mem_info.used / MB)
        return mem
    finally:
        pynvml.nvmlShutdown()


def list_devices() -> List[DeviceInfo]:
    cp = _cupy()
    count = cp.cuda.runtime.getDeviceCount()
    mem = _nvml_memory(count)

    devices = []
    for i in range(count):
        props = cp.cuda.runtime.getDeviceProperties(i)
        name = props["name"]
        if isinstance(name, bytes):
            name = name.decode()
        free, used = mem.get(i, (None, None))
        devices.append(DeviceInfo(
            index=i,
            name=name,
            sm_count=props["multiProcessorCount"],
            global_mem_mb=props["totalGlobalMem"] / MB,
            capability=(props["major"], props["minor"]),
            free_mem_mb=free,
            used_mem_mb=used,
        ))
    return devices


def format_devices(devices):
    lines = ["---------------------------------------------------------",
             f"Found {len(devices)} CUDA devices"]
    for d in devices:
        lines.append(f"Device {d.index}: {d.name}")
        lines.append(f"   SMs:        {d.sm_count}")
        lines.append(f"   Global mem: {d.global_mem_mb:.0f} MB")
        lines.append(f"   CUDA Cap:   {d.capability[0]}.{d.capability[1]}")
        if d.free_mem_mb is not None:
            lines.append(f"   Free mem:   {d.free_mem_mb:.0f} MB")
            lines.append(f"   Used mem:   {d.used_mem_mb:.0f} MB")
    lines.append("---------------------------------------------------------")
    return "\n".join(lines)

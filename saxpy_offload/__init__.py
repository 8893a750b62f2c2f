from .device import CupyDevice, Device, HostDevice, open_device
from .driver import SaxpyOutcome, saxpy
from .errors import AllocationFailure, AsynchronousComputeFault, OffloadError, ReleaseFailure, TransferFailure
from .timing import SaxpyReport

__version__ = "0.1.0"

import pytest

from saxpy_offload.timing import SaxpyReport, gb_per_sec, total_bytes


def test_total_bytes_counts_two_reads_one_write():
    assert total_bytes(1000) == 12000


def test_gb_per_sec():
    assert gb_per_sec(1024 ** 3, 0.5) == pytest.approx(2.0)
    assert gb_per_sec(1024, 0.0) == 0.0


def test_report_lines():
    report = SaxpyReport(n=1 << 20, overall_ms=12.0, kernel_ms=0.5)
    lines = report.lines()

    assert lines[0] == "Effective BW by CUDA saxpy: 12.000 ms\t\t[0.977 GB/s]"
    assert lines[1] == "Kernel-only execution time (using events): 0.500 ms"


def test_report_to_dict():
    d = SaxpyReport(n=10, overall_ms=1.0, kernel_ms=0.1, device_label="HOST").to_dict()
    assert d["device"] == "HOST"
    assert d["bandwidth_gbps"] == pytest.approx(120 / 1024 ** 3 / 0.001)

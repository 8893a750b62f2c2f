import pytest

from saxpy_offload.config import DATA_N, BenchConfig


def test_defaults(monkeypatch):
    for name in ("SAXPY_N", "SAXPY_ALPHA", "SAXPY_DEVICE", "SAXPY_ORDINAL", "SAXPY_GROUP_SIZE", "SAXPY_ITERATIONS"):
        monkeypatch.delenv(name, raising=False)
    cfg = BenchConfig.from_env()
    assert cfg.n == DATA_N
    assert cfg.device == "cuda"
    assert cfg.group_size == 512


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SAXPY_N", "4096")
    monkeypatch.setenv("SAXPY_ALPHA", "0.5")
    monkeypatch.setenv("SAXPY_DEVICE", "host")
    monkeypatch.setenv("SAXPY_GROUP_SIZE", "128")
    cfg = BenchConfig.from_env()
    assert (cfg.n, cfg.alpha, cfg.device, cfg.group_size) == (4096, 0.5, "host", 128)


def test_bad_env_value_names_variable(monkeypatch):
    monkeypatch.setenv("SAXPY_N", "lots")
    with pytest.raises(ValueError, match="SAXPY_N"):
        BenchConfig.from_env()


def test_override_ignores_none():
    cfg = BenchConfig(n=10).override(n=None, alpha=3.0)
    assert cfg.n == 10
    assert cfg.alpha == 3.0


@pytest.mark.parametrize("kwargs", [{"n": -1}, {"group_size": 0}, {"iterations": 0}, {"device": "tpu"}])
def test_validation(kwargs):
    with pytest.raises(ValueError):
        BenchConfig(**kwargs)

import pytest

from pahydro.core import ConfigurationError, HydroConfig


def test_defaults():
    c = HydroConfig(dim=2)
    assert c.backend == "host"
    assert c.effective_quad_order == 3 * 2 + 1 - 1
    assert c.nqp1d == 4
    assert c.quads_per_zone == 16
    T = c.build_tensors()
    assert T.nqp1d == 4 and T.h1_dofs1d == 3 and T.l2_dofs1d == 2


def test_explicit_quad_order():
    c = HydroConfig(dim=3, h1_order=1, l2_order=0, quad_order=1)
    assert c.nqp1d == 1 and c.quads_per_zone == 1


@pytest.mark.parametrize("kwargs", [
    dict(dim=1), dict(dim=4), dict(dim=2, h1_order=0), dict(dim=2, l2_order=-1),
    dict(dim=2, backend="cuda"), dict(dim=2, gamma=1.0), dict(dim=2, cfl=0.0),
    dict(dim=2, num_threads=0),
])
def test_invalid(kwargs):
    with pytest.raises(ConfigurationError):
        HydroConfig(**kwargs)


def test_from_env(monkeypatch):
    monkeypatch.setenv("PAHYDRO_BACKEND", "Device")
    monkeypatch.setenv("PAHYDRO_NUM_THREADS", "3")
    c = HydroConfig.from_env(3)
    assert c.backend == "device" and c.num_threads == 3
    # explicit arguments win over the environment
    assert HydroConfig.from_env(2, backend="host").backend == "host"
    monkeypatch.setenv("PAHYDRO_NUM_THREADS", "many")
    with pytest.raises(ConfigurationError):
        HydroConfig.from_env(2)


def test_with_backend_validates():
    c = HydroConfig(dim=2)
    assert c.with_backend("device").backend == "device"
    with pytest.raises(ConfigurationError):
        c.with_backend("gpu")

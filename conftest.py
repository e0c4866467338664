# conftest.py
from types import SimpleNamespace

import numpy as np
import pytest

from pahydro.core import CartesianMesh, H1Space, HydroConfig, L2Space
from pahydro.hydro.quadrature_data import QuadratureData


def _smooth_displacement(x, dim, amp):
    X = x.reshape(dim, -1)
    bump = np.prod(np.sin(np.pi * X), axis=0)
    return (X + amp * bump[None, :]).ravel()


def make_problem(dim, n=2, h1_order=2, l2_order=1, amp=0.03, rho0=1.0, gamma=5.0 / 3.0,
                 use_viscosity=True, seed=0, refresh=True):
    """Small hydro state: spaces, tables, QuadratureData snapshot and one stress refresh."""
    config = HydroConfig(dim=dim, h1_order=h1_order, l2_order=l2_order, gamma=gamma,
                         use_viscosity=use_viscosity)
    mesh = CartesianMesh((n,) * dim)
    h1 = H1Space(mesh, h1_order, vdim=dim)
    l2 = L2Space(mesh, l2_order)
    tensors = config.build_tensors()
    qdata = QuadratureData.initialize(dim, mesh.n_elements, config.quads_per_zone)
    x0 = h1.node_coordinates()
    qdata.snapshot_initial_geometry(h1, x0, rho0, tensors, l2=l2)

    rng = np.random.default_rng(seed)
    x = _smooth_displacement(x0, dim, amp)
    v = 0.1 * rng.standard_normal(h1.vsize)
    e = 1.0 + rng.random(l2.ndofs)
    if refresh:
        qdata.refresh_stress(h1, l2, x, v, e, tensors, gamma=gamma,
                             use_viscosity=use_viscosity)
    return SimpleNamespace(config=config, mesh=mesh, h1=h1, l2=l2, tensors=tensors,
                           qdata=qdata, x0=x0, x=x, v=v, e=e, rng=rng)


@pytest.fixture
def problem_factory():
    return make_problem


@pytest.fixture(params=[2, 3], ids=["quad", "hex"])
def problem(request):
    return make_problem(request.param)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)

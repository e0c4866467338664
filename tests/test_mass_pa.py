import numpy as np
import pytest
from numpy.testing import assert_allclose

from pahydro.assembly.integrators import assemble_density_rhs
from pahydro.assembly.mass_pa import MassPAOperator
from pahydro.assembly.operator import build_mass_operator
from pahydro.core import CartesianMesh, ConfigurationError, H1Space, L2Space, SizeMismatchError
from pahydro.fem.tensors1d import Tensors1D
from pahydro.hydro.quadrature_data import QuadratureData
from pahydro.solvers.mass_solver import solve_mass


def test_symmetric_positive(problem):
    P = problem
    M = MassPAOperator(P.qdata, P.h1, P.tensors)
    x = P.rng.standard_normal(P.h1.vsize)
    y = P.rng.standard_normal(P.h1.vsize)
    assert np.isclose(np.dot(M.mult(x), y), np.dot(x, M.mult(y)), rtol=1e-12)
    assert np.dot(M.mult(x), x) > 0.0


def test_total_mass(problem_factory):
    P = problem_factory(2, rho0=2.0)
    scalar = H1Space(P.mesh, P.h1.order)
    M = MassPAOperator(P.qdata, scalar, P.tensors)
    ones = np.ones(scalar.ndofs)
    assert np.isclose(ones @ M.mult(ones), 2.0, rtol=1e-12)


def test_vector_components_are_independent(problem_factory):
    P = problem_factory(3, n=1)
    scalar = H1Space(P.mesh, P.h1.order)
    Ms = MassPAOperator(P.qdata, scalar, P.tensors)
    Mv = MassPAOperator(P.qdata, P.h1, P.tensors)
    x = P.rng.standard_normal(P.h1.vsize)
    blocks = [Ms.mult(xc) for xc in x.reshape(3, -1)]
    assert_allclose(Mv.mult(x), np.concatenate(blocks), rtol=1e-12)


def test_essential_dofs_act_as_identity(problem):
    P = problem
    M = MassPAOperator(P.qdata, P.h1, P.tensors)
    ess = P.h1.boundary_vdofs(0)
    M.set_essential_true_dofs(ess)
    x = P.rng.standard_normal(P.h1.vsize)
    y = M.mult(x)
    assert_allclose(y[ess], x[ess], rtol=0, atol=0)

    M.set_essential_true_dofs(np.array([], dtype=np.int64))
    free = np.setdiff1d(np.arange(P.h1.vsize), ess)
    assert not np.allclose(M.mult(x)[ess], x[ess])
    # free rows are the unconstrained action on the free part of x
    xf = x.copy()
    xf[ess] = 0.0
    assert_allclose(y[free], M.mult(xf)[free])


def test_essential_columns_are_eliminated(problem):
    P = problem
    M = MassPAOperator(P.qdata, P.h1, P.tensors)
    ess = P.h1.boundary_vdofs(0)
    M.set_essential_true_dofs(ess)
    free = np.setdiff1d(np.arange(P.h1.vsize), ess)
    unit = np.zeros(P.h1.vsize)
    unit[ess[0]] = 1.0
    y = M.mult(unit)
    assert_allclose(y[free], 0.0, atol=0)
    assert y[ess[0]] == 1.0

    a = P.rng.standard_normal(P.h1.vsize)
    b = P.rng.standard_normal(P.h1.vsize)
    assert np.isclose(np.dot(M.mult(a), b), np.dot(a, M.mult(b)), rtol=1e-12)


def test_positive_on_free_dofs(problem):
    P = problem
    M = MassPAOperator(P.qdata, P.h1, P.tensors)
    ess = P.h1.boundary_vdofs(1)
    M.set_essential_true_dofs(ess)
    for _ in range(3):
        x = P.rng.standard_normal(P.h1.vsize)
        x[ess] = 0.0
        assert np.dot(M.mult(x), x) > 0.0


def test_output_may_not_alias_input(problem):
    P = problem
    M = MassPAOperator(P.qdata, P.h1, P.tensors)
    x = P.rng.standard_normal(P.h1.vsize)
    with pytest.raises(ConfigurationError):
        M.mult(x, out=x)
    out = np.empty_like(x)
    assert M.mult(x, out=out) is out


def test_apply_lifting(problem_factory):
    P = problem_factory(2)
    free_op = MassPAOperator(P.qdata, P.h1, P.tensors)
    M = MassPAOperator(P.qdata, P.h1, P.tensors)
    ess = P.h1.boundary_vdofs(0)
    M.set_essential_true_dofs(ess)
    values = P.rng.standard_normal(P.h1.vsize)
    u = np.zeros(P.h1.vsize)
    u[ess] = values[ess]
    b = np.zeros(P.h1.vsize)
    M.apply_lifting(b, values)
    free = np.setdiff1d(np.arange(P.h1.vsize), ess)
    assert_allclose(b[free], -free_op.mult(u)[free], rtol=1e-12, atol=1e-15)
    assert_allclose(b[ess], 0.0)


def test_single_hex_all_essential():
    mesh = CartesianMesh((1, 1, 1))
    h1 = H1Space(mesh, 2, vdim=3)
    T = Tensors1D.build(2, 1, 4)
    qd = QuadratureData.initialize(3, 1, T.nqp(3))
    qd.snapshot_initial_geometry(h1, h1.node_coordinates(), 1.0, T)
    M = MassPAOperator(qd, h1, T)
    M.set_essential_true_dofs(np.arange(h1.vsize))
    x = np.random.default_rng(3).standard_normal(h1.vsize)
    assert np.array_equal(M.mult(x), x)


def test_invalid_essential_dofs(problem):
    P = problem
    M = MassPAOperator(P.qdata, P.h1, P.tensors)
    with pytest.raises(ConfigurationError):
        M.set_essential_true_dofs(np.array([0, P.h1.vsize]))
    with pytest.raises(ConfigurationError):
        M.set_essential_true_dofs(np.array([-1]))
    with pytest.raises(ConfigurationError):
        M.set_essential_true_dofs(np.array([2, 2]))
    with pytest.raises(ConfigurationError):
        build_mass_operator(P.qdata, P.h1, P.tensors, "gpu")


def test_eliminate_rhs_idempotent(problem):
    P = problem
    M = MassPAOperator(P.qdata, P.h1, P.tensors)
    ess = P.h1.boundary_vdofs(1)
    M.set_essential_true_dofs(ess)
    b = P.rng.standard_normal(P.h1.vsize)
    values = P.rng.standard_normal(P.h1.vsize)
    once = M.eliminate_rhs(b.copy(), values)
    twice = M.eliminate_rhs(M.eliminate_rhs(b.copy(), values), values)
    assert np.array_equal(once, twice)
    assert_allclose(once[ess], values[ess])
    assert_allclose(M.eliminate_rhs(b.copy())[ess], 0.0)
    with pytest.raises(SizeMismatchError):
        M.eliminate_rhs(np.zeros(3))


def test_density_rhs_is_mass_of_constant(problem_factory):
    P = problem_factory(2, rho0=lambda p: 1.0 + 0.5 * p[:, 0] - 0.25 * p[:, 1])
    M = MassPAOperator(P.qdata, P.l2, P.tensors)
    b = assemble_density_rhs(P.qdata, P.l2, P.tensors)
    assert_allclose(b, M.mult(np.ones(P.l2.ndofs)), rtol=1e-12)
    # mass conservation: the rho-weighted projection of 1 stays 1 after motion
    assert_allclose(solve_mass(M, b, rtol=1e-12), 1.0, rtol=1e-8)


def test_current_density_mode(problem_factory):
    P = problem_factory(2, refresh=False)
    x = np.ones(P.h1.vsize)
    M0 = MassPAOperator(P.qdata, P.h1, P.tensors, density="initial")
    M1 = MassPAOperator(P.qdata, P.h1, P.tensors, density="current")
    # at time zero detJ == detJ0
    assert_allclose(M0.mult(x), M1.mult(x), rtol=1e-13)
    P.qdata.refresh_stress(P.h1, P.l2, P.x, P.v, P.e, P.tensors, gamma=P.config.gamma)
    assert not np.allclose(M0.mult(x), M1.mult(x))
    with pytest.raises(ConfigurationError):
        MassPAOperator(P.qdata, P.h1, P.tensors, density="other")


def test_empty_mesh_mass():
    mesh = CartesianMesh((2, 0))
    l2 = L2Space(mesh, 1)
    h1 = H1Space(mesh, 1, vdim=2)
    T = Tensors1D.build(1, 1, 2)
    qd = QuadratureData.initialize(2, 0, 4)
    qd.snapshot_initial_geometry(h1, h1.node_coordinates(), 1.0, T)
    M = MassPAOperator(qd, l2, T)
    assert M.mult(np.zeros(0)).shape == (0,)

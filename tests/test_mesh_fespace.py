import numpy as np
import pytest

from pahydro.core import (CartesianMesh, ConfigurationError, H1Space, L2Space,
                          structured_hex, structured_quad)


def test_mesh_basic():
    m = structured_quad(3, 2, Lx=3.0, Ly=1.0)
    assert m.dim == 2 and m.element_type == 'quad'
    assert m.n_elements == 6
    assert np.allclose(m.spacing, [1.0, 0.5])
    assert m.zone_index()[:4].tolist() == [[0, 0], [1, 0], [2, 0], [0, 1]]
    assert np.isclose(m.total_volume(), 3.0)


def test_mesh_rejects_bad_shape():
    with pytest.raises(ConfigurationError):
        CartesianMesh((1, 1, 1, 1))
    with pytest.raises(ConfigurationError):
        CartesianMesh((2, -1))
    with pytest.raises(ConfigurationError):
        CartesianMesh((2, 2), extent=(1.0, 0.0))


def test_h1_dofs_shared_between_zones():
    m = structured_quad(2, 2)
    h1 = H1Space(m, 2)
    assert h1.ndofs == 25
    assert h1.nloc == 9
    # the right column of zone 0 is the left column of zone 1
    e0 = h1.element_dofs[0].reshape(3, 3)
    e1 = h1.element_dofs[1].reshape(3, 3)
    assert np.array_equal(e0[:, -1], e1[:, 0])
    with pytest.raises(ValueError):
        h1.element_dofs[0, 0] = 7


def test_h1_node_coordinates():
    m = structured_hex(1, 1, 1, Lx=2.0)
    h1 = H1Space(m, 1, vdim=3)
    X = h1.node_coordinates().reshape(3, -1)
    assert h1.vsize == 24
    assert np.allclose(X[:, 0], [0.0, 0.0, 0.0])
    assert np.allclose(X[:, 1], [2.0, 0.0, 0.0])
    assert np.allclose(X[:, 7], [2.0, 1.0, 1.0])


def test_boundary_dofs():
    m = structured_quad(2, 2)
    h1 = H1Space(m, 1, vdim=2)
    assert h1.boundary_dofs().size == 8
    left = h1.boundary_dofs(axis=0, side=0)
    assert left.tolist() == [0, 3, 6]
    assert np.array_equal(h1.boundary_vdofs(1, axis=0, side=0), left + h1.ndofs)
    with pytest.raises(ConfigurationError):
        h1.boundary_vdofs(2)


def test_l2_dofs_are_zone_owned():
    m = structured_quad(2, 3)
    l2 = L2Space(m, 1)
    assert l2.ndofs == 24
    assert np.array_equal(l2.element_dofs[5], np.arange(20, 24))
    assert np.array_equal(l2.element_vdofs(0), l2.element_dofs)


def test_empty_mesh():
    m = CartesianMesh((0, 2))
    h1 = H1Space(m, 1, vdim=2)
    l2 = L2Space(m, 0)
    assert h1.nzones == 0 and l2.ndofs == 0
    assert h1.element_dofs.shape == (0, 4)


def test_invalid_orders():
    m = structured_quad(1, 1)
    with pytest.raises(ConfigurationError):
        H1Space(m, 0)
    with pytest.raises(ConfigurationError):
        L2Space(m, -1)

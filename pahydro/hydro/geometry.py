"""pahydro.hydro.geometry
Evaluation of H1/L2 fields and of the mesh Jacobian at quadrature points.

All results are flattened over ``zone * nqp + q`` like the QuadratureData arrays.
"""
from __future__ import annotations

import numpy as np

from pahydro.assembly.sumfact import SumFactorization
from pahydro.core.fespace import H1Space, L2Space
from pahydro.fem.tensors1d import Tensors1D


def _components(space, vec: np.ndarray):
    vec = np.asarray(vec, dtype=float)
    for c in range(space.vdim):
        yield vec[space.element_vdofs(c)]


def evaluate(space, vec: np.ndarray, tensors: Tensors1D) -> np.ndarray:
    """Values at the points, shape (nzones*nqp,) or (nzones*nqp, vdim)."""
    sf = SumFactorization(space.dim)
    B = tensors.shape_table(space.family)
    vals = [sf.to_quad(u, (B,) * space.dim).ravel() for u in _components(space, vec)]
    return vals[0] if space.vdim == 1 else np.stack(vals, axis=-1)


def jacobians(h1: H1Space, positions: np.ndarray, tensors: Tensors1D) -> np.ndarray:
    """
    Reference-to-physical Jacobians J[a, b] = dx_a/dxi_b of the position field,
    shape (nzones*nqp, dim, dim).
    """
    return vector_gradient(h1, positions, tensors)


def vector_gradient(h1: H1Space, vec: np.ndarray, tensors: Tensors1D) -> np.ndarray:
    """Reference gradient of a vdim=dim H1 field, shape (nzones*nqp, vdim, dim)."""
    sf = SumFactorization(h1.dim)
    grads = [sf.reference_gradient(u, tensors.hq_shape, tensors.hq_grad)
             for u in _components(h1, vec)]
    G = np.stack(grads, axis=2)                     # (nz, nqp, vdim, dim)
    return G.reshape(-1, h1.vdim, h1.dim)


def determinants(J: np.ndarray) -> np.ndarray:
    dim = J.shape[-1]
    if dim == 2:
        return J[:, 0, 0] * J[:, 1, 1] - J[:, 0, 1] * J[:, 1, 0]
    return np.linalg.det(J)


def physical_points(h1: H1Space, positions: np.ndarray, tensors: Tensors1D) -> np.ndarray:
    """Physical coordinates of the quadrature points, (nzones*nqp, dim)."""
    return evaluate(h1, positions, tensors).reshape(-1, h1.dim)


def point_weights(space, tensors: Tensors1D) -> np.ndarray:
    """Reference quadrature weights repeated over zones, (nzones*nqp,)."""
    return np.tile(tensors.quad_weights(space.dim), space.nzones)


def l2_values(l2: L2Space, vec: np.ndarray, tensors: Tensors1D) -> np.ndarray:
    return evaluate(l2, vec, tensors)

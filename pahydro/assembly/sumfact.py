"""pahydro.assembly.sumfact
Batched sum-factorization contractions over all zones (numpy/einsum).

Local zone arrays are indexed ``u[z, iy, ix]`` in 2D and ``u[z, iz, iy, ix]`` in
3D, i.e. the C-order reshape of a lexicographic local vector. A 1D table
``T`` has shape ``(n_dofs1d, n_quad1d)``; ``mats`` lists one table per reference
axis in the order (x, y[, z]).
"""
import numpy as np


# -------------------------------------------------------------------------
# quadrilaterals
# -------------------------------------------------------------------------
def _to_quad_2d(u, mats):
    mx, my = mats
    t = np.einsum('zyx,xk->zyk', u, mx, optimize=True)      # contract in x
    return np.einsum('zyk,yl->zlk', t, my, optimize=True)   # contract in y


def _from_quad_2d(v, mats):
    mx, my = mats
    t = np.einsum('zlk,ik->zli', v, mx, optimize=True)
    return np.einsum('zli,jl->zji', t, my, optimize=True)


# -------------------------------------------------------------------------
# hexahedra
# -------------------------------------------------------------------------
def _to_quad_3d(u, mats):
    mx, my, mz = mats
    t = np.einsum('zwyx,xk->zwyk', u, mx, optimize=True)
    t = np.einsum('zwyk,yl->zwlk', t, my, optimize=True)
    return np.einsum('zwlk,wm->zmlk', t, mz, optimize=True)


def _from_quad_3d(v, mats):
    mx, my, mz = mats
    t = np.einsum('zmlk,ik->zmli', v, mx, optimize=True)
    t = np.einsum('zmli,jl->zmji', t, my, optimize=True)
    return np.einsum('zmji,hm->zhji', t, mz, optimize=True)


KERNELS = {
    2: (_to_quad_2d, _from_quad_2d),
    3: (_to_quad_3d, _from_quad_3d),
}


class SumFactorization:
    """
    Dimension-specialized pair of contractions, resolved once.

    ``to_quad(u_loc, mats)``   : (nz, nloc) dof values -> (nz, nqp) point values
    ``from_quad(v_q, mats)``   : (nz, nqp) point values -> (nz, nloc), the transpose
    """

    def __init__(self, dim: int):
        if dim not in KERNELS:
            raise KeyError(dim)
        self.dim = dim
        self._to, self._from = KERNELS[dim]

    def to_quad(self, u_loc: np.ndarray, mats) -> np.ndarray:
        nz = u_loc.shape[0]
        u = u_loc.reshape((nz,) + tuple(m.shape[0] for m in mats[::-1]))
        return self._to(u, mats).reshape(nz, -1)

    def from_quad(self, v_q: np.ndarray, mats) -> np.ndarray:
        nz = v_q.shape[0]
        v = v_q.reshape((nz,) + tuple(m.shape[1] for m in mats[::-1]))
        return self._from(v, mats).reshape(nz, -1)

    def gradient_tables(self, shape1d: np.ndarray, grad1d: np.ndarray):
        """For each reference direction d, the tables giving d/dxi_d."""
        return [tuple(grad1d if a == d else shape1d for a in range(self.dim))
                for d in range(self.dim)]

    def reference_gradient(self, u_loc: np.ndarray, shape1d, grad1d) -> np.ndarray:
        """(nz, nloc) -> (nz, nqp, dim) reference gradient at the quadrature points."""
        return np.stack([self.to_quad(u_loc, mats)
                         for mats in self.gradient_tables(shape1d, grad1d)], axis=-1)

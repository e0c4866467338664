"""pahydro.fem.tensors1d
One-dimensional shape/gradient tables at the 1D quadrature points.

The tables are the only basis information the partial-assembly kernels need:
every multi-dimensional evaluation is a sequence of 1D contractions with them.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import reduce

import numpy as np

from pahydro.fem.reference import h1_nodes, l2_nodes, tabulate
from pahydro.integration.quadrature import gl01


def _frozen(a: np.ndarray) -> np.ndarray:
    a = np.ascontiguousarray(a, dtype=np.float64)
    a.flags.writeable = False
    return a


@dataclass(frozen=True)
class Tensors1D:
    """
    Values of the 1D shape functions and gradients at all 1D quadrature points.
    All tables are (dofs1D x quads1D) and read-only.

    hq_shape, hq_grad : H1 (Gauss-Lobatto Lagrange) shape functions and derivatives
    lq_shape          : L2 (Gauss-Legendre Lagrange) shape functions
    qpoints, qweights : the 1D Gauss-Legendre rule on [0, 1]
    """
    h1_order: int
    l2_order: int
    hq_shape: np.ndarray
    hq_grad: np.ndarray
    lq_shape: np.ndarray
    qpoints: np.ndarray
    qweights: np.ndarray

    @classmethod
    def build(cls, h1_order: int, l2_order: int, nqp1d: int) -> "Tensors1D":
        if nqp1d < 1:
            raise ValueError(f"need at least one quadrature point, got {nqp1d}")
        qpts, qwts = gl01(nqp1d)
        hq_shape, hq_grad = tabulate(h1_nodes(h1_order), qpts)
        lq_shape, _ = tabulate(l2_nodes(l2_order), qpts)
        return cls(h1_order=int(h1_order), l2_order=int(l2_order),
                   hq_shape=_frozen(hq_shape), hq_grad=_frozen(hq_grad),
                   lq_shape=_frozen(lq_shape),
                   qpoints=_frozen(qpts), qweights=_frozen(qwts))

    @property
    def nqp1d(self) -> int:
        return self.qpoints.shape[0]

    @property
    def h1_dofs1d(self) -> int:
        return self.hq_shape.shape[0]

    @property
    def l2_dofs1d(self) -> int:
        return self.lq_shape.shape[0]

    def nqp(self, dim: int) -> int:
        return self.nqp1d ** dim

    def shape_table(self, family: str) -> np.ndarray:
        if family == "H1":
            return self.hq_shape
        if family == "L2":
            return self.lq_shape
        raise KeyError(family)

    # ------------------------------------------------------------------
    # full tensor-product tables (full-assembly path only)
    # ------------------------------------------------------------------
    def quad_weights(self, dim: int) -> np.ndarray:
        """Tensor weights, lexicographic over the points (x fastest)."""
        return reduce(lambda acc, w: np.outer(w, acc).ravel(), [self.qweights] * dim, np.ones(1))

    @staticmethod
    def _expand(tables) -> np.ndarray:
        # tables[a] is the (n, nq) table applied along reference axis a;
        # result is (nqp, nloc) with both indices lexicographic, axis 0 fastest.
        out = np.ones((1, 1))
        for T in tables:
            out = np.einsum('iq,pa->qpia', T, out).reshape(out.shape[0] * T.shape[1],
                                                         out.shape[1] * T.shape[0])
        return out

    def full_shape(self, family: str, dim: int) -> np.ndarray:
        """(nqp, nloc) values of the dim-dimensional tensor basis."""
        return self._expand([self.shape_table(family)] * dim)

    def full_h1_grad(self, dim: int) -> np.ndarray:
        """(nqp, nloc, dim) reference gradients of the H1 tensor basis."""
        cols = []
        for d in range(dim):
            tables = [self.hq_grad if a == d else self.hq_shape for a in range(dim)]
            cols.append(self._expand(tables))
        return np.stack(cols, axis=-1)

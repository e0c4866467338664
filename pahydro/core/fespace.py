"""pahydro.core.fespace
Tensor-product finite element spaces on a CartesianMesh.

Local dofs of a zone are always numbered in tensor (lexicographic) order with
the first reference axis varying fastest, which is the order the sum
factorization kernels expect. Vector-valued spaces store components one after
another: true dof ``c * ndofs + i``.
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from pahydro.core.errors import ConfigurationError
from pahydro.core.mesh import CartesianMesh
from pahydro.fem.reference import h1_nodes

logger = logging.getLogger(__name__)

__all__ = ["H1Space", "L2Space"]


def _lexicographic(extents) -> np.ndarray:
    """(prod(extents), len(extents)) multi-indices, axis 0 fastest."""
    if int(np.prod(extents)) == 0:
        return np.zeros((0, len(extents)), dtype=np.int64)
    grids = np.meshgrid(*[np.arange(n) for n in extents[::-1]], indexing="ij")
    return np.stack([g.ravel() for g in grids[::-1]], axis=-1).astype(np.int64)


class _TensorSpace:
    family: str = ""

    def __init__(self, mesh: CartesianMesh, order: int, vdim: int):
        if vdim < 1:
            raise ConfigurationError(f"vdim must be >= 1, got {vdim}")
        self.mesh = mesh
        self.order = int(order)
        self.vdim = int(vdim)
        self.dim = mesh.dim
        self.nzones = mesh.n_elements

    @property
    def dofs1d(self) -> int:
        return self.order + 1

    @property
    def nloc(self) -> int:
        return self.dofs1d ** self.dim

    @property
    def vsize(self) -> int:
        """Number of true dofs over all components."""
        return self.vdim * self.ndofs

    def element_vdofs(self, component: int) -> np.ndarray:
        return component * self.ndofs + self.element_dofs


class H1Space(_TensorSpace):
    """Continuous Q_p space with Gauss-Lobatto nodes shared across zone faces."""
    family = "H1"

    def __init__(self, mesh: CartesianMesh, order: int, vdim: int = 1):
        if order < 1:
            raise ConfigurationError(f"H1 order must be >= 1, got {order}")
        super().__init__(mesh, order, vdim)
        p = self.order
        self.lattice = tuple(n * p + 1 for n in mesh.shape)
        self.ndofs = int(np.prod(self.lattice))
        strides = np.cumprod((1,) + self.lattice[:-1]).astype(np.int64)
        local = _lexicographic((p + 1,) * self.dim)
        zones = mesh.zone_index()
        gidx = zones[:, None, :] * p + local[None, :, :]
        self.element_dofs = np.ascontiguousarray((gidx * strides).sum(axis=-1), dtype=np.int64)
        self.element_dofs.flags.writeable = False
        logger.debug("H1Space order %d on %r: %d dofs x %d components",
                     p, mesh, self.ndofs, self.vdim)

    def _lattice_index(self) -> np.ndarray:
        return _lexicographic(self.lattice)

    def node_coordinates(self) -> np.ndarray:
        """Initial position field as a vdim=dim true-dof vector (components blocked)."""
        nodes = h1_nodes(self.order)
        h = self.mesh.spacing
        axes = []
        for a, n in enumerate(self.mesh.shape):
            x = np.zeros(self.lattice[a])
            for k in range(n):
                x[k * self.order:(k + 1) * self.order + 1] = (k + nodes) * h[a]
            axes.append(x)
        g = self._lattice_index()
        return np.concatenate([axes[a][g[:, a]] for a in range(self.dim)])

    def boundary_dofs(self, axis: Optional[int] = None, side: Optional[int] = None) -> np.ndarray:
        """Scalar dofs on the domain boundary, optionally restricted to one face."""
        g = self._lattice_index()
        mask = np.zeros(self.ndofs, dtype=bool)
        axes = range(self.dim) if axis is None else (axis,)
        sides = (0, 1) if side is None else (side,)
        for a in axes:
            for s in sides:
                mask |= g[:, a] == (0 if s == 0 else self.lattice[a] - 1)
        return np.flatnonzero(mask).astype(np.int64)

    def boundary_vdofs(self, component: int, axis: Optional[int] = None,
                       side: Optional[int] = None) -> np.ndarray:
        if not 0 <= component < self.vdim:
            raise ConfigurationError(f"component {component} out of range for vdim {self.vdim}")
        return component * self.ndofs + self.boundary_dofs(axis, side)


class L2Space(_TensorSpace):
    """Discontinuous Q_p space, dofs owned by exactly one zone."""
    family = "L2"

    def __init__(self, mesh: CartesianMesh, order: int):
        if order < 0:
            raise ConfigurationError(f"L2 order must be >= 0, got {order}")
        super().__init__(mesh, order, 1)
        self.ndofs = self.nzones * self.nloc
        self.element_dofs = np.arange(self.ndofs, dtype=np.int64).reshape(self.nzones, self.nloc)
        self.element_dofs.flags.writeable = False
        logger.debug("L2Space order %d on %r: %d dofs", self.order, mesh, self.ndofs)

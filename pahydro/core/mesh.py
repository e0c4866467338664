"""pahydro.core.mesh
Structured Cartesian meshes of quadrilaterals and hexahedra for tests and drivers.
"""
from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from pahydro.core.errors import ConfigurationError

__all__ = ["CartesianMesh", "structured_quad", "structured_hex"]


class CartesianMesh:
    """
    Axis-aligned grid of ``prod(shape)`` zones covering ``[0, extent]``.

    Zones are numbered lexicographically with the first axis varying fastest.
    A zone count of zero along any axis is allowed and yields an empty mesh.
    """

    _ELEMENT_TYPE = {1: 'segment', 2: 'quad', 3: 'hex'}

    def __init__(self, shape: Sequence[int], extent: Sequence[float] = None):
        shape = tuple(int(n) for n in shape)
        if not 1 <= len(shape) <= 3:
            raise ConfigurationError(f"mesh dimension must be 1, 2 or 3, got {len(shape)}")
        if any(n < 0 for n in shape):
            raise ConfigurationError(f"zone counts must be non-negative, got {shape}")
        if extent is None:
            extent = (1.0,) * len(shape)
        extent = tuple(float(L) for L in extent)
        if len(extent) != len(shape) or any(L <= 0.0 for L in extent):
            raise ConfigurationError(f"invalid extent {extent} for shape {shape}")
        self.shape: Tuple[int, ...] = shape
        self.extent: Tuple[float, ...] = extent
        self.dim = len(shape)
        self.element_type = self._ELEMENT_TYPE[self.dim]
        self.n_elements = int(np.prod(shape))

    @property
    def spacing(self) -> np.ndarray:
        return np.array([L / max(n, 1) for L, n in zip(self.extent, self.shape)])

    def zone_index(self) -> np.ndarray:
        """(n_elements, dim) integer zone coordinates, axis 0 fastest."""
        if self.n_elements == 0:
            return np.zeros((0, self.dim), dtype=np.int64)
        grids = np.meshgrid(*[np.arange(n) for n in self.shape[::-1]], indexing="ij")
        return np.stack([g.ravel() for g in grids[::-1]], axis=-1).astype(np.int64)

    def total_volume(self) -> float:
        return float(np.prod(self.extent)) if self.n_elements else 0.0

    def __repr__(self):
        return f"CartesianMesh(shape={self.shape}, extent={self.extent})"


def structured_quad(nx: int, ny: int, Lx: float = 1.0, Ly: float = 1.0) -> CartesianMesh:
    return CartesianMesh((nx, ny), (Lx, Ly))


def structured_hex(nx: int, ny: int, nz: int,
                   Lx: float = 1.0, Ly: float = 1.0, Lz: float = 1.0) -> CartesianMesh:
    return CartesianMesh((nx, ny, nz), (Lx, Ly, Lz))

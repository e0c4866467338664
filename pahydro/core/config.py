"""pahydro.core.config
Run configuration for the partial-assembly operators.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from pahydro.core.errors import ConfigurationError
from pahydro.fem.tensors1d import Tensors1D
from pahydro.integration.quadrature import points_for_order

BACKENDS = ("host", "device")


@dataclass(frozen=True)
class HydroConfig:
    """
    dim           2 (quadrilaterals) or 3 (hexahedra)
    h1_order      polynomial order of the kinematic (H1) space
    l2_order      polynomial order of the thermodynamic (L2) space
    quad_order    polynomial degree integrated exactly; default 3*h1 + l2 - 1
    backend       "host" (numpy) or "device" (numba parallel kernels)

    Environment
    -----------
    PAHYDRO_BACKEND=device     select the backend in from_env()
    PAHYDRO_NUM_THREADS=N      thread count of the device backend
    """
    dim: int
    h1_order: int = 2
    l2_order: int = 1
    quad_order: Optional[int] = None
    backend: str = "host"
    gamma: float = 5.0 / 3.0
    cfl: float = 0.5
    use_viscosity: bool = True
    num_threads: Optional[int] = None

    def __post_init__(self):
        if self.dim not in (2, 3):
            raise ConfigurationError(f"unsupported dimension {self.dim}; expected 2 or 3")
        if self.h1_order < 1:
            raise ConfigurationError(f"h1_order must be >= 1, got {self.h1_order}")
        if self.l2_order < 0:
            raise ConfigurationError(f"l2_order must be >= 0, got {self.l2_order}")
        if self.quad_order is not None and self.quad_order < 0:
            raise ConfigurationError(f"quad_order must be >= 0, got {self.quad_order}")
        if self.backend not in BACKENDS:
            raise ConfigurationError(f"unknown backend {self.backend!r}; choose from {BACKENDS}")
        if self.gamma <= 1.0:
            raise ConfigurationError(f"gamma must be > 1, got {self.gamma}")
        if not 0.0 < self.cfl <= 1.0:
            raise ConfigurationError(f"cfl must be in (0, 1], got {self.cfl}")
        if self.num_threads is not None and self.num_threads < 1:
            raise ConfigurationError(f"num_threads must be >= 1, got {self.num_threads}")

    @classmethod
    def from_env(cls, dim: int, **kwargs) -> "HydroConfig":
        backend = os.getenv("PAHYDRO_BACKEND", "").strip().lower()
        if backend and "backend" not in kwargs:
            kwargs["backend"] = backend
        threads = os.getenv("PAHYDRO_NUM_THREADS", "").strip()
        if threads and "num_threads" not in kwargs:
            try:
                kwargs["num_threads"] = int(threads)
            except ValueError:
                raise ConfigurationError(f"PAHYDRO_NUM_THREADS must be an integer, got {threads!r}")
        return cls(dim=dim, **kwargs)

    def with_backend(self, backend: str) -> "HydroConfig":
        return replace(self, backend=backend)

    @property
    def effective_quad_order(self) -> int:
        if self.quad_order is not None:
            return self.quad_order
        return 3 * self.h1_order + self.l2_order - 1

    @property
    def nqp1d(self) -> int:
        return points_for_order(self.effective_quad_order)

    @property
    def quads_per_zone(self) -> int:
        return self.nqp1d ** self.dim

    def build_tensors(self) -> Tensors1D:
        return Tensors1D.build(self.h1_order, self.l2_order, self.nqp1d)

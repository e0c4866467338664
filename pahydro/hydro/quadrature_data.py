"""pahydro.hydro.quadrature_data
Container for all data needed at quadrature points, and its lifecycle.

Arrays are indexed by ``zone * quads_per_zone + q`` with ``q`` lexicographic
over the tensor quadrature points.

* ``jac0inv``, ``detj0`` and ``rho0_detj0_w`` are written once at time zero by
  :meth:`QuadratureData.snapshot_initial_geometry` and are read-only after that.
* ``stress_jinvt``, ``detj`` and ``dt_est`` are rewritten by
  :meth:`QuadratureData.refresh_stress` every time step, in place, so
  operators holding references always read the current values.

Pointwise mass conservation gives the density at any later time as
``rho = rho0_detj0_w / (detJ * w)``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from numbers import Real
from typing import Callable, Optional, Union

import numpy as np

from pahydro.core.errors import ConfigurationError, DegenerateJacobianError, SizeMismatchError
from pahydro.core.fespace import H1Space, L2Space
from pahydro.fem.tensors1d import Tensors1D
from pahydro.hydro import geometry
from pahydro.hydro.eos import ideal_gas_pressure, ideal_gas_sound_speed

logger = logging.getLogger(__name__)

Density = Union[float, Callable[[np.ndarray], np.ndarray], np.ndarray]
DENSITY_MODES = ("initial", "current")


@dataclass
class QuadratureData:
    dim: int
    nzones: int
    quads_per_zone: int
    # Inverse reference-to-physical Jacobian of the initial mesh.
    jac0inv: np.ndarray = field(repr=False)
    # stress * J^{-T} * det(J) * weight; must be recomputed every time step.
    stress_jinvt: np.ndarray = field(repr=False)
    # rho0 * det(J0) * weight
    rho0_detj0_w: np.ndarray = field(repr=False)
    detj0: np.ndarray = field(repr=False)
    detj: np.ndarray = field(repr=False)
    # Initial length scale; all initial zones are assumed to have similar size.
    h0: float = 0.0
    # Minimum time step estimate over all quadrature points of the last refresh.
    dt_est: float = np.inf
    geometry_version: int = 0
    stress_version: int = 0

    @classmethod
    def initialize(cls, dim: int, nzones: int, quads_per_zone: int) -> "QuadratureData":
        if dim not in (2, 3):
            raise ConfigurationError(f"unsupported dimension {dim}; expected 2 or 3")
        if nzones < 0 or quads_per_zone < 1:
            raise ConfigurationError(
                f"invalid sizes: nzones={nzones}, quads_per_zone={quads_per_zone}")
        n = nzones * quads_per_zone
        return cls(dim=dim, nzones=nzones, quads_per_zone=quads_per_zone,
                   jac0inv=np.zeros((n, dim, dim)),
                   stress_jinvt=np.zeros((n, dim, dim)),
                   rho0_detj0_w=np.zeros(n),
                   detj0=np.zeros(n),
                   detj=np.zeros(n))

    @property
    def size(self) -> int:
        return self.nzones * self.quads_per_zone

    @property
    def has_initial_geometry(self) -> bool:
        return self.geometry_version > 0

    def mark_stress_modified(self) -> None:
        """Record that stress_jinvt/detj were written directly rather than by refresh_stress."""
        self.stress_version += 1

    def mass_coefficients(self, density: str = "initial") -> np.ndarray:
        """
        Pointwise mass weights, (nzones*nqp,).

        "initial": rho0 * det(J0) * w, which by pointwise mass conservation equals
                   rho * det(J) * w at any time.
        "current": rho * det(J0) * w with the recovered density
                   rho = rho0 * det(J0) / det(J).
        """
        if density == "initial":
            return self.rho0_detj0_w
        if density == "current":
            return self.rho0_detj0_w * (self.detj0 / self.detj)
        raise ConfigurationError(f"unknown density mode {density!r}; choose from {DENSITY_MODES}")

    # ------------------------------------------------------------------
    # consistency checks
    # ------------------------------------------------------------------
    def check_compatible(self, space, tensors: Tensors1D) -> None:
        if space.dim != self.dim:
            raise ConfigurationError(
                f"space dimension {space.dim} does not match quadrature data dimension {self.dim}")
        if space.nzones != self.nzones:
            raise ConfigurationError(
                f"space has {space.nzones} zones, quadrature data has {self.nzones}")
        if tensors.nqp(self.dim) != self.quads_per_zone:
            raise ConfigurationError(
                f"basis tables give {tensors.nqp(self.dim)} points per zone, "
                f"quadrature data has {self.quads_per_zone}")
        expected = tensors.h1_dofs1d if space.family == "H1" else tensors.l2_dofs1d
        if space.dofs1d != expected:
            raise ConfigurationError(
                f"{space.family} space of order {space.order} does not match basis tables "
                f"with {expected} dofs per direction")

    def _check_position_field(self, h1: H1Space, name: str, vec) -> np.ndarray:
        if h1.vdim != self.dim:
            raise ConfigurationError(f"{name} must live in a vdim={self.dim} H1 space")
        vec = np.asarray(vec, dtype=float)
        if vec.shape != (h1.vsize,):
            raise SizeMismatchError(name, h1.vsize, vec.size)
        return vec

    def _check_determinants(self, det: np.ndarray) -> None:
        bad = ~np.isfinite(det) | (det <= 0.0)
        if bad.any():
            idx = int(np.argmax(bad))
            zone, q = divmod(idx, self.quads_per_zone)
            # forces the driver to repeat the step with a smaller dt
            self.dt_est = 0.0
            raise DegenerateJacobianError(zone, q, float(det[idx]))

    # ------------------------------------------------------------------
    # time zero
    # ------------------------------------------------------------------
    def snapshot_initial_geometry(self, h1: H1Space, positions, rho0: Density,
                                  tensors: Tensors1D, l2: Optional[L2Space] = None) -> None:
        """
        Store the initial inverse Jacobians, det(J0) and rho0*det(J0)*w and the
        initial length scale. Runs once; the stored arrays become read-only.
        """
        if self.has_initial_geometry:
            raise ConfigurationError("initial geometry has already been recorded")
        self.check_compatible(h1, tensors)
        x = self._check_position_field(h1, "positions", positions)

        w = geometry.point_weights(h1, tensors)
        rho = self._initial_density(rho0, h1, x, tensors, l2)
        if self.size:
            J = geometry.jacobians(h1, x, tensors)
            det = geometry.determinants(J)
            self._check_determinants(det)
            np.copyto(self.jac0inv, np.linalg.inv(J))
            np.copyto(self.detj0, det)
            np.copyto(self.detj, det)
            np.copyto(self.rho0_detj0_w, rho * det * w)
            volume = float(np.sum(det * w))
            self.h0 = (volume / self.nzones) ** (1.0 / self.dim) / h1.order

        for a in (self.jac0inv, self.detj0, self.rho0_detj0_w):
            a.flags.writeable = False
        self.geometry_version += 1
        self.stress_version += 1
        logger.debug("initial geometry recorded: %d points, h0=%g", self.size, self.h0)

    def _initial_density(self, rho0: Density, h1, x, tensors, l2) -> np.ndarray:
        if isinstance(rho0, Real):
            return np.full(self.size, float(rho0))
        if callable(rho0):
            pts = geometry.physical_points(h1, x, tensors)
            return np.broadcast_to(np.asarray(rho0(pts), dtype=float), (self.size,))
        if l2 is None:
            raise ConfigurationError("an L2 space is required to evaluate a density coefficient vector")
        self.check_compatible(l2, tensors)
        rho0 = np.asarray(rho0, dtype=float)
        if rho0.shape != (l2.ndofs,):
            raise SizeMismatchError("rho0", l2.ndofs, rho0.size)
        return geometry.l2_values(l2, rho0, tensors)

    # ------------------------------------------------------------------
    # every time step
    # ------------------------------------------------------------------
    def refresh_stress(self, h1: H1Space, l2: L2Space, positions, velocity, energy,
                       tensors: Tensors1D, *, gamma: float, cfl: float = 0.5,
                       use_viscosity: bool = True) -> None:
        """
        Recompute stress_jinvt, detj and dt_est from the current position,
        velocity (H1, vdim=dim) and specific internal energy (L2) fields.

        dt_est is reset to +inf and becomes the minimum estimate over all points.
        """
        if not self.has_initial_geometry:
            raise ConfigurationError("snapshot_initial_geometry must run before refresh_stress")
        self.check_compatible(h1, tensors)
        self.check_compatible(l2, tensors)
        x = self._check_position_field(h1, "positions", positions)
        v = self._check_position_field(h1, "velocity", velocity)
        e = np.asarray(energy, dtype=float)
        if e.shape != (l2.ndofs,):
            raise SizeMismatchError("energy", l2.ndofs, e.size)

        self.dt_est = np.inf
        if self.size == 0:
            self.stress_version += 1
            return

        J = geometry.jacobians(h1, x, tensors)
        det = geometry.determinants(J)
        self._check_determinants(det)
        w = geometry.point_weights(h1, tensors)
        Jinv = np.linalg.inv(J)

        rho = self.rho0_detj0_w / (det * w)
        e_q = geometry.l2_values(l2, e, tensors)
        p = ideal_gas_pressure(rho, e_q, gamma)
        cs = ideal_gas_sound_speed(e_q, gamma)

        stress = -p[:, None, None] * np.eye(self.dim)[None, :, :]
        visc = np.zeros(self.size)
        if use_viscosity:
            visc, sgrad_v = self._artificial_viscosity(h1, v, tensors, J, Jinv, rho, cs)
            stress += visc[:, None, None] * sgrad_v

        # Time step estimate at the point. The length scale is the minimal
        # singular value of the ref->physical Jacobian.
        h_min = np.linalg.svd(J, compute_uv=False)[:, -1] / h1.order
        inv_dt = cs / h_min + 2.5 * visc / rho / h_min ** 2
        with np.errstate(divide='ignore'):
            dt = np.where(inv_dt > 0.0, cfl / inv_dt, np.inf)

        np.copyto(self.stress_jinvt,
                  np.einsum('nab,ncb->nac', stress, Jinv) * (det * w)[:, None, None])
        np.copyto(self.detj, det)
        self.dt_est = float(dt.min())
        self.stress_version += 1
        logger.debug("stress refreshed (version %d), dt_est=%g", self.stress_version, self.dt_est)

    def _artificial_viscosity(self, h1, v, tensors, J, Jinv, rho, cs):
        # physical velocity gradient dv_a/dx_b = dv_a/dxi_c dxi_c/dx_b
        grad_v = geometry.vector_gradient(h1, v, tensors) @ Jinv
        sgrad_v = 0.5 * (grad_v + np.swapaxes(grad_v, 1, 2))

        # The first eigenvector of the symmetric velocity gradient gives the
        # direction of maximal compression.
        eig_val, eig_vec = np.linalg.eigh(sgrad_v)
        mu = eig_val[:, 0]
        compr_dir = eig_vec[:, :, 0]
        ph_dir = np.einsum('nab,nb->na', J @ self.jac0inv, compr_dir)
        h = self.h0 * np.linalg.norm(ph_dir, axis=1) / np.linalg.norm(compr_dir, axis=1)

        visc = 2.0 * rho * h * h * np.abs(mu)
        visc += np.where(mu < 0.0, 0.5 * rho * h * cs, 0.0)
        return visc, sgrad_v

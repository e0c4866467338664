"""pahydro.jit.device
Execution target and device-resident staging for the numba backend.

The device is numba's parallel threading layer. Data it reads lives in
contiguous arrays owned by the staging objects below; host arrays are only
copied in through :meth:`Device.to_device` and results copied out through
:meth:`Device.to_host`, so the transfer boundary is explicit.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

import numba
import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Device:
    num_threads: Optional[int] = None

    @contextmanager
    def launch(self):
        """Run kernels with the configured thread count; kernels complete before exit."""
        if self.num_threads is None:
            yield
            return
        previous = numba.get_num_threads()
        numba.set_num_threads(min(self.num_threads, numba.config.NUMBA_NUM_THREADS))
        try:
            yield
        finally:
            numba.set_num_threads(previous)

    @staticmethod
    def to_device(a, dtype=np.float64) -> np.ndarray:
        return np.array(a, dtype=dtype, order="C", copy=True)

    @staticmethod
    def to_host(a: np.ndarray, out: np.ndarray) -> np.ndarray:
        np.copyto(out, a)
        return out


def build_gather_map(element_dofs: np.ndarray, ndofs: int):
    """
    CSR map from each global dof to the flat local entries ``z * nloc + i``
    that contribute to it. Returns (offsets, entries).
    """
    flat = np.asarray(element_dofs, dtype=np.int64).ravel()
    entries = np.argsort(flat, kind="stable").astype(np.int64)
    counts = np.bincount(flat, minlength=ndofs)
    offsets = np.zeros(ndofs + 1, dtype=np.int64)
    np.cumsum(counts, out=offsets[1:])
    return offsets, entries


class DeviceSpace:
    """Device copy of a space's dof layout together with its gather map."""

    def __init__(self, space, device: Device):
        self.family = space.family
        self.ndofs = space.ndofs
        self.vdim = space.vdim
        self.nloc = space.nloc
        self.nzones = space.nzones
        self.element_dofs = device.to_device(space.element_dofs, np.int64)
        self.offsets, self.entries = build_gather_map(space.element_dofs, space.ndofs)


class DeviceQuadratureData:
    """
    Device-resident mirror of the QuadratureData arrays the kernels read.

    The copy is keyed by the geometry/stress version counters of the host
    object: :meth:`is_stale` compares them and :meth:`sync` copies only what
    changed since the last transfer.
    """

    def __init__(self, qdata, device: Device):
        self.qdata = qdata
        self.device = device
        self._geometry_version = -1
        self._stress_version = -1
        self.stress_jinvt: Optional[np.ndarray] = None
        self.rho0_detj0_w: Optional[np.ndarray] = None
        self.detj0: Optional[np.ndarray] = None
        self.detj: Optional[np.ndarray] = None
        self._coefficients = {}

    def is_stale(self) -> bool:
        return (self._geometry_version != self.qdata.geometry_version
                or self._stress_version != self.qdata.stress_version)

    def sync(self, force: bool = False) -> bool:
        """Copy stale arrays to the device. Returns True when anything was copied."""
        if not force and not self.is_stale():
            return False
        q = self.qdata
        if force or self._geometry_version != q.geometry_version:
            self.rho0_detj0_w = self.device.to_device(q.rho0_detj0_w)
            self.detj0 = self.device.to_device(q.detj0)
            self._geometry_version = q.geometry_version
        self.stress_jinvt = self.device.to_device(q.stress_jinvt)
        self.detj = self.device.to_device(q.detj)
        self._stress_version = q.stress_version
        self._coefficients.clear()
        logger.debug("staged quadrature data (geometry v%d, stress v%d)",
                     self._geometry_version, self._stress_version)
        return True

    def mass_coefficients(self, density: str) -> np.ndarray:
        if density not in self._coefficients:
            if density == "initial":
                coeff = self.rho0_detj0_w
            else:
                coeff = np.ascontiguousarray(self.rho0_detj0_w * (self.detj0 / self.detj))
            self._coefficients[density] = coeff
        return self._coefficients[density]

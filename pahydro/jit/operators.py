"""pahydro.jit.operators
Force and mass operators on the device backend.

Same capabilities and results as the host operators in
:mod:`pahydro.assembly`; the arithmetic runs in the numba kernels of
:mod:`pahydro.jit.kernels` on device-resident copies of the data.
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from pahydro.assembly.operator import (check_input, check_spaces, prepare_output,
                                       validate_essential_dofs)
from pahydro.core.errors import ConfigurationError, SizeMismatchError
from pahydro.hydro.quadrature_data import DENSITY_MODES
from pahydro.jit.device import Device, DeviceQuadratureData, DeviceSpace
from pahydro.jit.kernels import (FORCE_KERNELS, MASS_KERNELS, copy_essential_kernel, gather_kernel,
                                 zero_essential_kernel)

logger = logging.getLogger(__name__)


class DeviceForceOperator:
    def __init__(self, qdata, h1, l2, tensors, device: Optional[Device] = None):
        check_spaces(qdata, h1, l2, tensors)
        self.device = device or Device()
        self.dim = h1.dim
        self.nzones = h1.nzones
        self.shape = (h1.vsize, l2.ndofs)
        self.qdata = qdata
        self._h1 = DeviceSpace(h1, self.device)
        self._l2 = DeviceSpace(l2, self.device)
        self._qd = DeviceQuadratureData(qdata, self.device)
        self._B = self.device.to_device(tensors.hq_shape)
        self._G = self.device.to_device(tensors.hq_grad)
        self._LQ = self.device.to_device(tensors.lq_shape)
        self._kernel, self._kernel_t = FORCE_KERNELS[self.dim]
        logger.debug("DeviceForceOperator: %d zones, shape %s", self.nzones, self.shape)

    def sync(self, force: bool = False) -> bool:
        """Stage quadrature data changed since the last call; every mult calls it."""
        return self._qd.sync(force)

    def mult(self, vec_l2: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """vec_h1 = F vec_l2"""
        vec_l2 = check_input("vec_l2", vec_l2, self.shape[1])
        vec_h1 = prepare_output(out, self.shape[0], vec_l2)
        if self.nzones == 0:
            return vec_h1
        self.sync()
        x = self.device.to_device(vec_l2)
        loc = np.empty((self.dim, self.nzones, self._h1.nloc))
        y = np.empty(self.shape[0])
        with self.device.launch():
            self._kernel(x, self._l2.element_dofs, self._LQ, self._B, self._G,
                         self._qd.stress_jinvt, loc)
            gather_kernel(loc.reshape(self.dim, -1), self._h1.offsets, self._h1.entries, y)
        return self.device.to_host(y, vec_h1)

    def mult_transpose(self, vec_h1: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """vec_l2 = F^T vec_h1"""
        vec_h1 = check_input("vec_h1", vec_h1, self.shape[0])
        vec_l2 = prepare_output(out, self.shape[1], vec_h1)
        if self.nzones == 0:
            return vec_l2
        self.sync()
        x = self.device.to_device(vec_h1)
        loc = np.empty((1, self.nzones, self._l2.nloc))
        y = np.empty(self.shape[1])
        with self.device.launch():
            self._kernel_t(x, self._h1.element_dofs, self._h1.ndofs, self._LQ, self._B,
                           self._G, self._qd.stress_jinvt, loc)
            gather_kernel(loc.reshape(1, -1), self._l2.offsets, self._l2.entries, y)
        return self.device.to_host(y, vec_l2)


class DeviceMassOperator:
    def __init__(self, qdata, space, tensors, density: str = "initial",
                 device: Optional[Device] = None):
        check_spaces(qdata, space, None, tensors)
        if density not in DENSITY_MODES:
            raise ConfigurationError(f"unknown density mode {density!r}; choose from {DENSITY_MODES}")
        self.device = device or Device()
        self.dim = space.dim
        self.nzones = space.nzones
        self.density = density
        self.shape = (space.vsize, space.vsize)
        self.qdata = qdata
        self._space = DeviceSpace(space, self.device)
        self._qd = DeviceQuadratureData(qdata, self.device)
        self._B = self.device.to_device(tensors.shape_table(space.family))
        self._kernel = MASS_KERNELS[self.dim]
        self.ess_tdofs = np.zeros(0, dtype=np.int64)
        self._ess = self.device.to_device(self.ess_tdofs, np.int64)

    def sync(self, force: bool = False) -> bool:
        return self._qd.sync(force)

    def set_essential_true_dofs(self, dofs) -> None:
        self.ess_tdofs = validate_essential_dofs(dofs, self.shape[0])
        self._ess = self.device.to_device(self.ess_tdofs, np.int64)
        logger.debug("DeviceMassOperator: %d essential dofs", self.ess_tdofs.size)

    def _apply(self, xd: np.ndarray, y: np.ndarray) -> None:
        # device arrays in and out; y is overwritten with M xd
        if self.nzones == 0:
            return
        self.sync()
        vdim = self._space.vdim
        loc = np.empty((vdim, self.nzones, self._space.nloc))
        self._kernel(xd, self._space.element_dofs, self._space.ndofs, self._B,
                     self._qd.mass_coefficients(self.density), loc)
        gather_kernel(loc.reshape(vdim, -1), self._space.offsets, self._space.entries, y)

    def mult(self, x: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Constrained action, identity on essential rows and columns."""
        x = check_input("x", x, self.shape[0])
        y_host = prepare_output(out, self.shape[0], x)
        xd = self.device.to_device(x)
        y = np.zeros(self.shape[0])
        with self.device.launch():
            if self._ess.size:
                xf = xd.copy()
                zero_essential_kernel(xf, self._ess)
                self._apply(xf, y)
                copy_essential_kernel(xd, self._ess, y)
            else:
                self._apply(xd, y)
        return self.device.to_host(y, y_host)

    def apply_lifting(self, b: np.ndarray, values: np.ndarray) -> np.ndarray:
        """``b_free -= M_free,ess values_ess`` in place; call once per right-hand side."""
        if not isinstance(b, np.ndarray) or b.shape != (self.shape[0],):
            raise SizeMismatchError("b", self.shape[0], np.size(b))
        values = check_input("values", values, self.shape[0])
        if self._ess.size:
            u = np.zeros(self.shape[0])
            copy_essential_kernel(self.device.to_device(values), self._ess, u)
            Mu = np.zeros(self.shape[0])
            with self.device.launch():
                self._apply(u, Mu)
                zero_essential_kernel(Mu, self._ess)
            b -= Mu
        return b

    def eliminate_rhs(self, b: np.ndarray, values: Optional[np.ndarray] = None) -> np.ndarray:
        """Set the essential entries of `b` to `values` (zero when omitted), in place."""
        if not isinstance(b, np.ndarray) or b.shape != (self.shape[0],):
            raise SizeMismatchError("b", self.shape[0], np.size(b))
        if values is None:
            b[self.ess_tdofs] = 0.0
        else:
            values = check_input("values", values, self.shape[0])
            b[self.ess_tdofs] = values[self.ess_tdofs]
        return b

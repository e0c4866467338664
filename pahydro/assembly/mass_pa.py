"""pahydro.assembly.mass_pa
Partial assembly of the mass operator (host backend).
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from pahydro.assembly.operator import (check_input, check_spaces, prepare_output,
                                       validate_essential_dofs)
from pahydro.assembly.sumfact import SumFactorization
from pahydro.core.errors import ConfigurationError, SizeMismatchError
from pahydro.fem.tensors1d import Tensors1D
from pahydro.hydro.quadrature_data import DENSITY_MODES, QuadratureData

logger = logging.getLogger(__name__)


class MassPAOperator:
    """
    Mass matrix action on one space (H1 with any vdim, or L2), one component
    at a time. Essential true dofs are eliminated as an identity action.
    """

    def __init__(self, qdata: QuadratureData, space, tensors: Tensors1D,
                 density: str = "initial"):
        check_spaces(qdata, space, None, tensors)
        if density not in DENSITY_MODES:
            raise ConfigurationError(f"unknown density mode {density!r}; choose from {DENSITY_MODES}")
        self.dim = space.dim
        self.nzones = space.nzones
        self.qdata = qdata
        self.space = space
        self.tensors = tensors
        self.density = density
        self.shape = (space.vsize, space.vsize)
        self.ess_tdofs = np.zeros(0, dtype=np.int64)
        self._sf = SumFactorization(self.dim)
        self._tables = (tensors.shape_table(space.family),) * self.dim

    def set_essential_true_dofs(self, dofs) -> None:
        self.ess_tdofs = validate_essential_dofs(dofs, self.shape[0])
        logger.debug("MassPAOperator: %d essential dofs", self.ess_tdofs.size)

    def _apply(self, x: np.ndarray, y: np.ndarray) -> None:
        """y += M x without any essential-dof treatment."""
        if self.nzones == 0:
            return
        coeff = self.qdata.mass_coefficients(self.density).reshape(self.nzones, -1)
        for c in range(self.space.vdim):
            vdofs = self.space.element_vdofs(c)
            QQ = self._sf.to_quad(x[vdofs], self._tables) * coeff
            np.add.at(y, vdofs, self._sf.from_quad(QQ, self._tables))

    def mult(self, x: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Constrained action: essential rows and columns are replaced by the
        identity, so the result is symmetric on the whole space.
        """
        x = check_input("x", x, self.shape[0])
        y = prepare_output(out, self.shape[0], x)
        if self.ess_tdofs.size:
            xf = x.copy()
            xf[self.ess_tdofs] = 0.0
            self._apply(xf, y)
            y[self.ess_tdofs] = x[self.ess_tdofs]
        else:
            self._apply(x, y)
        return y

    def apply_lifting(self, b: np.ndarray, values: np.ndarray) -> np.ndarray:
        """
        Move the prescribed essential `values` to the right-hand side:
        ``b_free -= M_free,ess values_ess``, in place. Not idempotent; call it
        once per right-hand side, before :meth:`eliminate_rhs`.
        """
        if not isinstance(b, np.ndarray) or b.shape != (self.shape[0],):
            raise SizeMismatchError("b", self.shape[0], np.size(b))
        values = check_input("values", values, self.shape[0])
        if self.ess_tdofs.size:
            u = np.zeros(self.shape[0])
            u[self.ess_tdofs] = values[self.ess_tdofs]
            Mu = np.zeros(self.shape[0])
            self._apply(u, Mu)
            Mu[self.ess_tdofs] = 0.0
            b -= Mu
        return b

    def eliminate_rhs(self, b: np.ndarray, values: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Set the essential entries of `b` to the prescribed `values` (zero when
        omitted), in place. Applying it twice is the same as applying it once.
        """
        if not isinstance(b, np.ndarray) or b.shape != (self.shape[0],):
            raise SizeMismatchError("b", self.shape[0], np.size(b))
        if values is None:
            b[self.ess_tdofs] = 0.0
        else:
            values = check_input("values", values, self.shape[0])
            b[self.ess_tdofs] = values[self.ess_tdofs]
        return b

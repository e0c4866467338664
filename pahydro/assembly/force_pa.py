"""pahydro.assembly.force_pa
Partial assembly of the force operator (host backend).
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from pahydro.assembly.operator import check_input, check_spaces, prepare_output
from pahydro.assembly.sumfact import SumFactorization
from pahydro.core.fespace import H1Space, L2Space
from pahydro.fem.tensors1d import Tensors1D
from pahydro.hydro.quadrature_data import QuadratureData

logger = logging.getLogger(__name__)


class ForcePAOperator:
    """
    Action of the force matrix F (H1^dim x L2) and of its transpose, evaluated
    from ``qdata.stress_jinvt`` and the 1D basis tables without forming F.

        F[(i, c), j] = sum_q  psi_j(q)  sum_d  stress_jinvt[q, c, d]  dphi_i/dxi_d(q)
    """

    def __init__(self, qdata: QuadratureData, h1: H1Space, l2: L2Space, tensors: Tensors1D):
        check_spaces(qdata, h1, l2, tensors)
        self.dim = h1.dim
        self.nzones = h1.nzones
        self.qdata = qdata
        self.h1 = h1
        self.l2 = l2
        self.tensors = tensors
        self.shape = (h1.vsize, l2.ndofs)
        # quad vs hex contractions, fixed for the lifetime of the operator
        self._sf = SumFactorization(self.dim)
        self._l2_tables = (tensors.lq_shape,) * self.dim
        self._grad_tables = self._sf.gradient_tables(tensors.hq_shape, tensors.hq_grad)
        logger.debug("ForcePAOperator: %d zones, shape %s", self.nzones, self.shape)

    def _stress(self) -> np.ndarray:
        nqp = self.qdata.quads_per_zone
        return self.qdata.stress_jinvt.reshape(self.nzones, nqp, self.dim, self.dim)

    def mult(self, vec_l2: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """vec_h1 = F vec_l2"""
        vec_l2 = check_input("vec_l2", vec_l2, self.shape[1])
        vec_h1 = prepare_output(out, self.shape[0], vec_l2)
        if self.nzones == 0:
            return vec_h1

        # Note that the local numbering for L2 is the tensor numbering.
        E = vec_l2[self.l2.element_dofs]
        QQ = self._sf.to_quad(E, self._l2_tables)
        S = self._stress()

        # Iterate over the components of the result.
        for c in range(self.dim):
            Y = np.zeros((self.nzones, self.h1.nloc))
            for d, tables in enumerate(self._grad_tables):
                Y += self._sf.from_quad(QQ * S[:, :, c, d], tables)
            np.add.at(vec_h1, self.h1.element_vdofs(c), Y)
        return vec_h1

    def mult_transpose(self, vec_h1: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        """vec_l2 = F^T vec_h1"""
        vec_h1 = check_input("vec_h1", vec_h1, self.shape[0])
        vec_l2 = prepare_output(out, self.shape[1], vec_h1)
        if self.nzones == 0:
            return vec_l2

        S = self._stress()
        QQ = np.zeros((self.nzones, self.qdata.quads_per_zone))
        for c in range(self.dim):
            V = vec_h1[self.h1.element_vdofs(c)]
            for d, tables in enumerate(self._grad_tables):
                QQ += S[:, :, c, d] * self._sf.to_quad(V, tables)

        E = self._sf.from_quad(QQ, self._l2_tables)
        np.add.at(vec_l2, self.l2.element_dofs, E)
        return vec_l2

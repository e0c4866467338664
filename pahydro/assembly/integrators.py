"""pahydro.assembly.integrators
Element-by-element full assembly of the force matrix and the density RHS.
"""
import numpy as np, scipy.sparse as sp

from pahydro.fem.tensors1d import Tensors1D


class ForceIntegrator:
    """Dense zone block of F, rows ordered (component, local H1 dof)."""

    def __init__(self, qdata, tensors: Tensors1D, dim: int):
        self.qdata = qdata
        self.dim = dim
        self.psi = tensors.full_shape("L2", dim)          # (nqp, nL2)
        self.dphi = tensors.full_h1_grad(dim)             # (nqp, nH1, dim)

    def assemble_element_matrix(self, zone: int) -> np.ndarray:
        nqp = self.qdata.quads_per_zone
        S = self.qdata.stress_jinvt[zone * nqp:(zone + 1) * nqp]
        # Fe[c, i, j] = sum_q sum_d S[q, c, d] dphi_i/dxi_d psi_j
        Fe = np.einsum('qcd,qid,qj->cij', S, self.dphi, self.psi, optimize=True)
        return Fe.reshape(self.dim * self.dphi.shape[1], self.psi.shape[1])


class DensityIntegrator:
    def __init__(self, qdata, tensors: Tensors1D, dim: int):
        self.qdata = qdata
        self.psi = tensors.full_shape("L2", dim)

    def assemble_element_vector(self, zone: int) -> np.ndarray:
        nqp = self.qdata.quads_per_zone
        w = self.qdata.rho0_detj0_w[zone * nqp:(zone + 1) * nqp]
        return self.psi.T @ w


def assemble_force_matrix(qdata, h1, l2, tensors: Tensors1D) -> sp.csr_matrix:
    integ = ForceIntegrator(qdata, tensors, h1.dim)
    rows, cols, data = [], [], []
    for z in range(h1.nzones):
        Fe = integ.assemble_element_matrix(z)
        vrows = np.concatenate([h1.element_vdofs(c)[z] for c in range(h1.dim)])
        R, C = np.meshgrid(vrows, l2.element_dofs[z], indexing="ij")
        rows.append(R.ravel()); cols.append(C.ravel()); data.append(Fe.ravel())
    if not data:
        return sp.csr_matrix((h1.vsize, l2.ndofs))
    F = sp.csr_matrix((np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))),
                      shape=(h1.vsize, l2.ndofs))
    return F


def assemble_density_rhs(qdata, l2, tensors: Tensors1D) -> np.ndarray:
    """b_j = sum_q rho0 det(J0) w psi_j; the L2 projection of rho is M_rho^{-1} b."""
    integ = DensityIntegrator(qdata, tensors, l2.dim)
    b = np.zeros(l2.ndofs)
    for z in range(l2.nzones):
        np.add.at(b, l2.element_dofs[z], integ.assemble_element_vector(z))
    return b

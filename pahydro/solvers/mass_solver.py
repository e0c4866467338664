"""pahydro.solvers.mass_solver
Conjugate-gradient solve with a matrix-free mass operator.
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import scipy.sparse.linalg as spla

from pahydro.assembly.operator import as_linear_operator, check_input

logger = logging.getLogger(__name__)


def solve_mass(mass_op, rhs: np.ndarray, x0: Optional[np.ndarray] = None,
               rtol: float = 1e-10, maxiter: Optional[int] = None,
               values: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Solve ``M x = rhs`` with essential dofs fixed to `values` (zero by default).

    `rhs` is the unconstrained right-hand side; the essential values are
    lifted out of it before the solve with the constrained (symmetric) M.
    """
    n = mass_op.shape[0]
    b = check_input("rhs", rhs, n).copy()
    if values is not None:
        mass_op.apply_lifting(b, values)
    mass_op.eliminate_rhs(b, values)
    x = None if x0 is None else check_input("x0", x0, n).copy()

    x, info = spla.cg(as_linear_operator(mass_op), b, x0=x, rtol=rtol, atol=0.0,
                      maxiter=maxiter)
    if info < 0:
        raise ValueError(f"CG received illegal input (info={info})")
    if info > 0:
        logger.warning("CG did not converge in %d iterations (rtol=%g)", info, rtol)
    return x

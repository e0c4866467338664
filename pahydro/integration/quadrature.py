"""pahydro.integration.quadrature
Gauss-Legendre and Gauss-Lobatto rules on the unit interval.
"""
import numpy as np
from functools import lru_cache
from numpy.polynomial.legendre import leggauss


# -------------------------------------------------------------------------
# 1-D Gauss-Legendre
# -------------------------------------------------------------------------
def gauss_legendre(order: int):
    if order < 1:
        raise ValueError(order)
    return leggauss(order)  # (points, weights) on [-1, 1]


@lru_cache(maxsize=None)
def gl01(npts: int):
    """Gauss-Legendre nodes and weights mapped to [0,1]."""
    xi, w = gauss_legendre(int(npts))
    lam = 0.5 * (xi + 1.0)
    wl = 0.5 * w
    lam.flags.writeable = False
    wl.flags.writeable = False
    return lam, wl


@lru_cache(maxsize=None)
def gauss_lobatto01(npts: int):
    """Gauss-Lobatto nodes on [0,1] (end points included)."""
    if npts < 2:
        raise ValueError(f"Gauss-Lobatto needs at least 2 points, got {npts}")
    n = npts - 1
    interior = np.polynomial.legendre.Legendre.basis(n).deriv().roots()
    nodes = np.concatenate(([-1.0], np.sort(interior.real), [1.0]))
    nodes = 0.5 * (nodes + 1.0)
    nodes.flags.writeable = False
    return nodes


def points_for_order(quad_order: int) -> int:
    """Number of 1D Gauss points integrating polynomials of degree quad_order exactly."""
    if quad_order < 0:
        raise ValueError(quad_order)
    return quad_order // 2 + 1


from functools import lru_cache
import sympy as sp
import numpy as np

from pahydro.integration.quadrature import gl01, gauss_lobatto01


@lru_cache(maxsize=None)
def _lagrange_basis_1d(nodes: tuple):
    """Return 1D Lagrange basis + first derivative on `nodes` as NUMPY-callable lambdas."""
    x = sp.symbols('x')
    L, dL = [], []
    for i, xi in enumerate(nodes):
        num = sp.Integer(1)
        den = 1.0
        for j, xj in enumerate(nodes):
            if i == j:
                continue
            num *= (x - xj)
            den *= (xi - xj)
        Li = sp.expand(num / den)
        L.append(sp.lambdify(x, Li, 'numpy'))
        dL.append(sp.lambdify(x, sp.diff(Li, x), 'numpy'))
    return L, dL


def _eval_1d(fns, z):
    # constant lambdas return a scalar; broadcast to the point set
    z = np.asarray(z, dtype=float)
    return np.array([np.broadcast_to(f(z), z.shape) for f in fns], dtype=float)


def h1_nodes(order: int) -> np.ndarray:
    """Closed Gauss-Lobatto nodes on [0,1] for the continuous (H1) family."""
    if order < 1:
        raise ValueError(f"H1 order must be >= 1, got {order}")
    return gauss_lobatto01(order + 1)


def l2_nodes(order: int) -> np.ndarray:
    """Open Gauss-Legendre nodes on [0,1] for the discontinuous (L2) family."""
    if order < 0:
        raise ValueError(f"L2 order must be >= 0, got {order}")
    return gl01(order + 1)[0]


def tabulate(nodes, points):
    """
    Shape values and derivatives of the Lagrange basis on `nodes` at `points`.
    Returns (B, G), both (len(nodes), len(points)).
    """
    L, dL = _lagrange_basis_1d(tuple(float(n) for n in nodes))
    return _eval_1d(L, points), _eval_1d(dL, points)


if __name__ == "__main__":
    for p in (1, 2, 3, 4):
        nodes = h1_nodes(p)
        B, G = tabulate(nodes, nodes)
        assert np.allclose(B, np.eye(p + 1), atol=1e-12)
        B, G = tabulate(nodes, np.array([0.123, 0.77]))
        assert np.allclose(B.sum(axis=0), 1.0) and np.allclose(G.sum(axis=0), 0.0)
    print("lagrange_1d OK")

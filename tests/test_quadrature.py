import numpy as np
import pytest
from pahydro.integration import quadrature as q


def test_gl01_exact_degree():
    # n points integrate x^(2n-1) exactly on [0, 1]
    for n in range(1, 6):
        x, w = q.gl01(n)
        k = 2 * n - 1
        assert np.isclose((w * x ** k).sum(), 1.0 / (k + 1), rtol=1e-12)


def test_gl01_is_cached_and_read_only():
    x, w = q.gl01(4)
    assert q.gl01(4)[0] is x
    with pytest.raises(ValueError):
        x[0] = 0.0


def test_gauss_lobatto_contains_end_points():
    nodes = q.gauss_lobatto01(4)
    assert nodes[0] == 0.0 and nodes[-1] == 1.0
    assert np.all(np.diff(nodes) > 0)
    assert np.allclose(nodes, 1.0 - nodes[::-1])
    with pytest.raises(ValueError):
        q.gauss_lobatto01(1)


def test_points_for_order():
    assert q.points_for_order(0) == 1
    assert q.points_for_order(1) == 1
    assert q.points_for_order(5) == 3
    assert q.points_for_order(6) == 4

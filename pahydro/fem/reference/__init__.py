# pahydro.fem.reference
"""
One-dimensional reference bases used to build the tensor-product tables.
"""
from .lagrange_1d import h1_nodes, l2_nodes, tabulate

__all__ = ["h1_nodes", "l2_nodes", "tabulate"]

"""
Geometry module: B-spline and rational (NURBS) basis functions.
"""

from .bspline import eval_basis_1d, eval_basis_ders_1d
from .nurbs import rational_basis_derivatives, derivative_multi_indices

"""
Discretization module for nonlinear IGA.

Provides:
- KnotVector: Knot vector representation
- ControlPoint: Control point with NURBS weight
- Element: Knot span with connectivity and extraction operators
- Mesh: Analysis-ready mesh consumed by the solver
- EquationMap, DirichletBC: Equation numbering and Dirichlet data
- Bézier extraction operators
"""

from .knot_vector import KnotVector, make_open_knot_vector, make_uniform_knot_vector
from .control_point import ControlPoint, control_points_to_arrays
from .element import Element
from .extraction import (
    compute_extraction_operators_1d,
    BernsteinBasis,
    BezierExtraction,
)

# Import mesh components separately to avoid circular imports
# Users should import these directly: from nlIGA.discretization.mesh import ...

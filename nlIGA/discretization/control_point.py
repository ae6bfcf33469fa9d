"""
Control points of an analysis mesh.

A control point generalizes a finite-element node: it carries physical
coordinates (1 to 3 components) and a NURBS weight. The weight must be
strictly positive, otherwise the rational basis is not defined. During a
solve the mesh keeps control points fixed; displacements live in the field
vectors.
"""

import numpy as np
from typing import Sequence, Tuple
from dataclasses import dataclass


@dataclass(frozen=True)
class ControlPoint:
    """
    Immutable control point.

    Attributes:
        coordinates: Physical coordinates (x,), (x, y) or (x, y, z)
        weight: NURBS weight (1.0 for B-splines)
    """
    coordinates: Tuple[float, ...]
    weight: float = 1.0

    def __post_init__(self):
        coordinates = tuple(float(c) for c in np.atleast_1d(self.coordinates))
        if not 1 <= len(coordinates) <= 3:
            raise ValueError(f"Control point needs 1 to 3 coordinates, got {len(coordinates)}")
        if not self.weight > 0:
            raise ValueError(f"Control point weight must be positive, got {self.weight}")
        object.__setattr__(self, 'coordinates', coordinates)
        object.__setattr__(self, 'weight', float(self.weight))

    @property
    def n_dim(self) -> int:
        return len(self.coordinates)


def control_points_to_arrays(control_points: Sequence[ControlPoint]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Stack control points into coordinate and weight arrays.

    Returns:
        (coordinates, weights) of shapes (n, n_dim) and (n,)
    """
    if len(control_points) == 0:
        raise ValueError("Need at least one control point")
    n_dim = control_points[0].n_dim
    if any(cp.n_dim != n_dim for cp in control_points):
        raise ValueError("All control points must have the same dimension")

    coordinates = np.array([cp.coordinates for cp in control_points], dtype=np.float64)
    weights = np.array([cp.weight for cp in control_points], dtype=np.float64)
    return coordinates, weights

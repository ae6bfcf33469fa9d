"""
Element abstraction for IGA.

An element is a non-zero measure knot span. It is all the element kernel
needs to know about the spline space:

- the control points whose basis functions are supported on it
  (connectivity, direction 1 running fastest),
- one Bezier extraction operator per parametric direction,
- one parametric size per direction (the affine scaling between the
  reference element [0, 1]^d and the knot span).

Elements are immutable once built; a mesh owns a fixed ordered tuple of
them.
"""

import numpy as np
from typing import Tuple
from dataclasses import dataclass

from .extraction import BezierExtraction


@dataclass(frozen=True)
class Element:
    """
    Immutable IGA element.

    Attributes:
        id: Position of the element in the mesh
        connectivity: Control point indices, shape (n_local,)
        extraction_operators: C_d per direction, each (p_d+1, p_d+1)
        sizes: Parametric size h_d per direction
    """
    id: int
    connectivity: np.ndarray
    extraction_operators: Tuple[np.ndarray, ...]
    sizes: Tuple[float, ...]

    def __post_init__(self):
        connectivity = np.asarray(self.connectivity, dtype=np.int64).copy()
        connectivity.setflags(write=False)
        operators = []
        for C in self.extraction_operators:
            C = np.array(C, dtype=np.float64)
            if C.ndim != 2 or C.shape[0] != C.shape[1]:
                raise ValueError(f"Extraction operator must be square, got shape {C.shape}")
            C.setflags(write=False)
            operators.append(C)
        sizes = tuple(float(h) for h in self.sizes)

        if len(operators) != len(sizes):
            raise ValueError("Need one element size per extraction operator")
        if any(h <= 0 for h in sizes):
            raise ValueError(f"Element sizes must be positive, got {sizes}")
        n_local = int(np.prod([C.shape[0] for C in operators]))
        if connectivity.shape != (n_local,):
            raise ValueError(
                f"Element {self.id} has {connectivity.size} control points, "
                f"extraction operators need {n_local}"
            )

        object.__setattr__(self, 'connectivity', connectivity)
        object.__setattr__(self, 'extraction_operators', tuple(operators))
        object.__setattr__(self, 'sizes', sizes)

    @property
    def n_dim(self) -> int:
        """Number of parametric dimensions."""
        return len(self.sizes)

    @property
    def degrees(self) -> Tuple[int, ...]:
        return tuple(C.shape[0] - 1 for C in self.extraction_operators)

    @property
    def n_local_basis(self) -> int:
        return len(self.connectivity)

    @property
    def extraction(self) -> BezierExtraction:
        """Bezier-to-spline mapper for this element."""
        return BezierExtraction(self.extraction_operators, self.sizes)

    @property
    def reference_measure(self) -> float:
        """Determinant of the reference-to-parametric map, prod(h_d)."""
        return float(np.prod(self.sizes))

"""
Knot vectors for building analysis meshes.

The solver core never sees knot vectors: it consumes per-element Bezier
extraction operators and element sizes. Knot vectors only appear while a
mesh is being prepared (see mesh.build_mesh), where they give

- the element intervals (non-zero measure knot spans),
- the p+1 basis functions active on each element,
- the parametric size h_e of each element.

An open knot vector repeats its end knots p+1 times, so the spline basis
interpolates the first and last control points.
"""

import numpy as np
from typing import List, Tuple
from dataclasses import dataclass


@dataclass
class KnotVector:
    """
    Univariate knot vector.

    Attributes:
        knots: Non-decreasing knot values
        degree: Polynomial degree p
    """
    knots: np.ndarray
    degree: int

    def __post_init__(self):
        self.knots = np.asarray(self.knots, dtype=np.float64)
        if self.degree < 0:
            raise ValueError(f"Degree must be non-negative, got {self.degree}")
        if len(self.knots) < 2 * (self.degree + 1):
            raise ValueError(
                f"Knot vector too short for degree {self.degree}. "
                f"Need at least {2 * (self.degree + 1)} knots, got {len(self.knots)}."
            )
        if not np.all(np.diff(self.knots) >= 0):
            raise ValueError("Knot vector must be non-decreasing.")

        self._unique_knots = np.unique(self.knots)
        self._elements = []
        self._spans = []
        for xi_start, xi_end in zip(self._unique_knots[:-1], self._unique_knots[1:]):
            self._elements.append((float(xi_start), float(xi_end)))
            # Last occurrence of xi_start is the span index of the element
            span = int(np.searchsorted(self.knots, xi_start, side='right')) - 1
            self._spans.append(max(self.degree, min(span, self.n_basis - 1)))

    @property
    def n_basis(self) -> int:
        """Number of basis functions."""
        return len(self.knots) - self.degree - 1

    @property
    def n_elements(self) -> int:
        """Number of non-zero measure knot spans."""
        return len(self._elements)

    @property
    def elements(self) -> List[Tuple[float, float]]:
        """Element intervals as (xi_start, xi_end) tuples."""
        return list(self._elements)

    @property
    def element_sizes(self) -> np.ndarray:
        """Parametric length of every element."""
        return np.array([b - a for a, b in self._elements])

    @property
    def unique_knots(self) -> np.ndarray:
        """Breakpoints of the knot vector."""
        return self._unique_knots.copy()

    @property
    def domain(self) -> Tuple[float, float]:
        return (float(self._unique_knots[0]), float(self._unique_knots[-1]))

    def find_span(self, xi: float) -> int:
        """
        Knot span index i with xi in [xi_i, xi_{i+1}).

        The last span is closed, so xi at the end of the domain belongs
        to the last element.
        """
        span = int(np.searchsorted(self.knots, xi, side='right')) - 1
        return max(self.degree, min(span, self.n_basis - 1))

    def element_to_span(self, element_idx: int) -> int:
        return self._spans[element_idx]

    def active_basis_indices(self, element_idx: int) -> np.ndarray:
        """Indices of the p+1 basis functions supported on an element."""
        span = self.element_to_span(element_idx)
        return np.arange(span - self.degree, span + 1)


def make_open_knot_vector(n_basis: int, degree: int,
                          domain: Tuple[float, float] = (0.0, 1.0)) -> KnotVector:
    """
    Create an open knot vector with uniform interior knots.

    Parameters:
        n_basis: Number of basis functions
        degree: Polynomial degree p
        domain: Parametric domain (start, end)

    Returns:
        KnotVector with p+1 repeated knots at both ends
    """
    n_internal = n_basis - degree - 1
    if n_internal < 0:
        raise ValueError(
            f"Cannot create knot vector: n_basis={n_basis} too small for degree={degree}"
        )

    a, b = domain
    internal = np.linspace(a, b, n_internal + 2)[1:-1]
    knots = np.concatenate([np.full(degree + 1, a), internal, np.full(degree + 1, b)])
    return KnotVector(knots, degree)


def make_uniform_knot_vector(n_elements: int, degree: int,
                             domain: Tuple[float, float] = (0.0, 1.0)) -> KnotVector:
    """Open knot vector of maximal continuity with n_elements equal spans."""
    return make_open_knot_vector(n_elements + degree, degree, domain)

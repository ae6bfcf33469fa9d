"""
Gauss-Legendre quadrature on the reference element [0, 1]^d.

n points integrate polynomials up to degree 2n-1 exactly. The reference
domain is [0, 1] to match the Bernstein basis, so the standard points on
[-1, 1] are mapped accordingly.

Tensor-product points are ordered with direction 1 running fastest, the
same ordering the Bezier extraction uses for basis functions:

    q = q_1 + n_1 * (q_2 + n_2 * q_3)

Usage:
    rule = QuadratureRule.for_degrees((2, 2, 2))
    rule.points       # (n_points, 3)
    rule.weights      # (n_points,)
    rule.points_1d    # per-direction points, for tabulating bases
"""

import numpy as np
from typing import Tuple
from functools import lru_cache
from dataclasses import dataclass


@lru_cache(maxsize=16)
def gauss_legendre_1d(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre points and weights on [0, 1].

    Parameters:
        n: Number of quadrature points

    Returns:
        (points, weights), both of shape (n,); the weights sum to 1
    """
    if n < 1:
        raise ValueError("Need at least 1 quadrature point")

    points_std, weights_std = np.polynomial.legendre.leggauss(n)

    # x = (xi + 1) / 2, dx = dxi / 2
    points = 0.5 * (points_std + 1.0)
    weights = 0.5 * weights_std
    points.setflags(write=False)
    weights.setflags(write=False)
    return points, weights


@dataclass(frozen=True)
class QuadratureRule:
    """
    Immutable tensor-product Gauss rule shared by all elements of a degree.

    Attributes:
        n_points_per_dir: Number of points in each parametric direction
    """
    n_points_per_dir: Tuple[int, ...]

    def __post_init__(self):
        if not 1 <= len(self.n_points_per_dir) <= 3:
            raise ValueError(f"Unsupported dimension: {len(self.n_points_per_dir)}")
        object.__setattr__(self, 'n_points_per_dir', tuple(int(n) for n in self.n_points_per_dir))

    @property
    def n_dim(self) -> int:
        return len(self.n_points_per_dir)

    @property
    def n_points(self) -> int:
        return int(np.prod(self.n_points_per_dir))

    @property
    def points_1d(self) -> Tuple[np.ndarray, ...]:
        return tuple(gauss_legendre_1d(n)[0] for n in self.n_points_per_dir)

    @property
    def weights_1d(self) -> Tuple[np.ndarray, ...]:
        return tuple(gauss_legendre_1d(n)[1] for n in self.n_points_per_dir)

    @property
    def points(self) -> np.ndarray:
        """Tensor-product points, shape (n_points, n_dim)."""
        grids = np.meshgrid(*self.points_1d, indexing='ij')
        return np.column_stack([g.ravel(order='F') for g in grids])

    @property
    def weights(self) -> np.ndarray:
        """Tensor-product weights, shape (n_points,)."""
        weights = self.weights_1d[0]
        for w in self.weights_1d[1:]:
            weights = np.kron(w, weights)
        return weights

    @classmethod
    def for_degrees(cls, degrees: Tuple[int, ...],
                    rule: str = "full") -> 'QuadratureRule':
        """
        Quadrature appropriate for the given polynomial degrees.

        Parameters:
            degrees: Polynomial degrees in each direction
            rule: "full" for p+1 points, "reduced" for p points per direction
        """
        if rule == "full":
            n_pts = tuple(p + 1 for p in degrees)
        elif rule == "reduced":
            n_pts = tuple(max(p, 1) for p in degrees)
        else:
            raise ValueError(f"Unknown rule: {rule}")

        return cls(n_pts)

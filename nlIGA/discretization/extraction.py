"""
Bernstein polynomials and Bezier extraction.

On each element the p+1 spline basis functions are a linear combination of
the p+1 Bernstein polynomials on the reference interval [0, 1]:

    N_local(xi) = C_e @ B(t),    t = (xi - xi_start) / h_e

The extraction operator C_e is what the solver receives for every element
and direction; knot vectors never reach the element kernel. Derivatives
pick up the affine scaling of the reference-to-parametric map:

    d^k N_local / dxi^k = (1 / h_e^k) * C_e @ d^k B / dt^k

For tensor-product elements the multivariate basis is the Kronecker product
of the univariate bases with direction 1 running fastest:

    N^{(k1,k2,k3)} = N3^{(k3)} ⊗ N2^{(k2)} ⊗ N1^{(k1)}

Reference:
- Borden et al., "Isogeometric finite element data structures
  based on Bezier extraction of NURBS"
"""

import math
import numpy as np
from typing import Dict, List, Sequence, Tuple

from .knot_vector import KnotVector


def bernstein_basis(p: int, t: float) -> np.ndarray:
    """
    Evaluate all Bernstein polynomials of degree p at t in [0, 1].

    B_{i,p}(t) = C(p,i) * t^i * (1-t)^(p-i)

    Returns:
        Array of shape (p+1,)
    """
    B = np.zeros(p + 1)
    B[0] = 1.0

    # de Casteljau-like recurrence
    for j in range(1, p + 1):
        saved = 0.0
        for k in range(j):
            temp = B[k]
            B[k] = saved + (1.0 - t) * temp
            saved = t * temp
        B[j] = saved

    return B


def bernstein_basis_ders(p: int, t: float, n_ders: int = 1) -> np.ndarray:
    """
    Evaluate Bernstein polynomials and their derivatives of every order.

    Uses
        d^k/dt^k B_{i,p} = p!/(p-k)! * sum_j (-1)^(k-j) C(k,j) B_{i-j,p-k}
    with B_{m,q} = 0 outside 0 <= m <= q. Derivatives above p vanish.

    Parameters:
        p: Polynomial degree
        t: Parameter value in [0, 1]
        n_ders: Highest derivative order

    Returns:
        Array of shape (n_ders+1, p+1), result[k, i] = d^k B_{i,p}(t) / dt^k
    """
    result = np.zeros((n_ders + 1, p + 1))
    result[0, :] = bernstein_basis(p, t)

    for k in range(1, min(n_ders, p) + 1):
        B_lower = bernstein_basis(p - k, t)
        factor = math.factorial(p) / math.factorial(p - k)
        for i in range(p + 1):
            value = 0.0
            for j in range(k + 1):
                m = i - j
                if 0 <= m <= p - k:
                    value += (-1) ** (k - j) * math.comb(k, j) * B_lower[m]
            result[k, i] = factor * value

    return result


class BernsteinBasis:
    """
    Tensor-product Bernstein basis on the reference element [0,1]^d.

    The element kernel only ever tabulates this basis at quadrature points;
    the tables are shared by every element of the same degrees.
    """

    def __init__(self, degrees: Tuple[int, ...]):
        self.degrees = tuple(degrees)
        self.n_dim = len(self.degrees)

    @property
    def n_basis(self) -> int:
        n = 1
        for p in self.degrees:
            n *= (p + 1)
        return n

    def tabulate(self, points_1d: Sequence[np.ndarray],
                 n_ders: int) -> List[np.ndarray]:
        """
        Tabulate univariate Bernstein derivatives per direction.

        Parameters:
            points_1d: Reference points per direction
            n_ders: Highest derivative order

        Returns:
            One array per direction of shape (n_ders+1, p_d+1, n_points_d)
        """
        tables = []
        for p, points in zip(self.degrees, points_1d):
            table = np.zeros((n_ders + 1, p + 1, len(points)))
            for q, t in enumerate(points):
                table[:, :, q] = bernstein_basis_ders(p, t, n_ders)
            tables.append(table)
        return tables


class BezierExtraction:
    """
    Bezier-to-spline mapper of one element.

    Attributes:
        operators: Extraction operator C_d per direction, shape (p_d+1, p_d+1)
        sizes: Parametric element size h_d per direction
    """

    def __init__(self, operators: Sequence[np.ndarray], sizes: Sequence[float]):
        if len(operators) != len(sizes):
            raise ValueError("Need one element size per extraction operator")
        self.operators = tuple(operators)
        self.sizes = tuple(float(h) for h in sizes)

    def spline_tables(self, bernstein_tables: Sequence[np.ndarray]) -> List[np.ndarray]:
        """
        Map univariate Bernstein tables to univariate spline tables.

        Row k of every table is scaled by (1/h_d)^k so derivatives are taken
        with respect to the parametric coordinate.
        """
        spline = []
        for C, h, table in zip(self.operators, self.sizes, bernstein_tables):
            mapped = np.einsum('ij,kjq->kiq', C, table)
            scale = (1.0 / h) ** np.arange(table.shape[0])
            spline.append(mapped * scale[:, None, None])
        return spline

    def spline_derivatives(self, bernstein_tables: Sequence[np.ndarray],
                           multi_indices: Sequence[Tuple[int, ...]]
                           ) -> Dict[Tuple[int, ...], np.ndarray]:
        """
        Tensor-product spline derivatives for the requested multi-indices.

        Returns:
            Dict mapping (k_1, ..., k_d) to an array (n_basis, n_points)
        """
        tables = self.spline_tables(bernstein_tables)
        result = {}
        for k in multi_indices:
            values = tables[0][k[0]]
            for d in range(1, len(tables)):
                values = np.kron(tables[d][k[d]], values)
            result[tuple(k)] = values
        return result


def compute_extraction_operators_1d(kv: KnotVector) -> List[np.ndarray]:
    """
    Compute the Bezier extraction operator of every element in 1D.

    Both bases span the same polynomial space on an element, so evaluating
    them at p+1 distinct points and solving gives C_e exactly:

        N_matrix = B_matrix @ C_e.T

    Parameters:
        kv: Knot vector

    Returns:
        List of arrays C_e of shape (p+1, p+1), one per element
    """
    from ..geometry.bspline import eval_basis_1d

    p = kv.degree
    # Chebyshev nodes of the first kind, strictly inside (0, 1)
    t_nodes = 0.5 * (1.0 - np.cos(np.pi * (2 * np.arange(p + 1) + 1) / (2 * (p + 1))))

    B_matrix = np.array([bernstein_basis(p, t) for t in t_nodes])

    operators = []
    for e, (xi_start, xi_end) in enumerate(kv.elements):
        span = kv.element_to_span(e)
        h = xi_end - xi_start
        N_matrix = np.array([eval_basis_1d(kv, xi_start + t * h, span) for t in t_nodes])
        operators.append(np.linalg.solve(B_matrix, N_matrix).T)

    return operators

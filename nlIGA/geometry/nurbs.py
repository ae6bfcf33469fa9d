"""
Rational (NURBS) basis functions and their partial derivatives.

A NURBS basis function is a weighted B-spline divided by the weight
function:

    R_A = w_A N_A / W,    W = sum_B w_B N_B

Writing N_A^(k) = w_A * d^k N_A (polynomial derivative times weight) and
W^(k) = sum_A N_A^(k), Leibniz' rule applied to W R_A = N_A gives the
derivative of multi-index k recursively:

    R_A^(k) = [ N_A^(k) - sum_{j <= k, |j| < |k|} binom(k, j) W^(k-j) R_A^(j) ] / W^(0)

with binom(k, j) = prod_d C(k_d, j_d). The derivatives are evaluated in
increasing total order, so every R_A^(j) on the right-hand side is already
known. The same routine serves curves, surfaces and volumes and any
derivative order; the phase-field theories of order 4 and 6 need up to
third derivatives.
"""

import numpy as np
from functools import lru_cache
from typing import Dict, Iterator, List, Tuple

from ..exceptions import BasisDegeneracyError


MultiIndex = Tuple[int, ...]


@lru_cache(maxsize=8)
def binomial_table(n: int) -> np.ndarray:
    """
    Pascal triangle up to row n.

    Returns:
        Array of shape (n+1, n+1) with table[i, j] = C(i, j) (0 for j > i)
    """
    table = np.zeros((n + 1, n + 1))
    for i in range(n + 1):
        table[i, 0] = 1.0
        for j in range(1, i + 1):
            table[i, j] = table[i - 1, j - 1] + table[i - 1, j]
    table.setflags(write=False)
    return table


def derivative_multi_indices(n_dim: int, max_order: int) -> List[MultiIndex]:
    """
    All multi-indices of dimension n_dim with total order <= max_order.

    Ordered by increasing total order, so that a pass over the list
    always meets lower-order derivatives first.
    """
    indices = []
    for order in range(max_order + 1):
        indices.extend(_compositions(order, n_dim))
    return indices


def _compositions(total: int, n_dim: int) -> Iterator[MultiIndex]:
    if n_dim == 1:
        yield (total,)
        return
    for first in range(total, -1, -1):
        for rest in _compositions(total - first, n_dim - 1):
            yield (first,) + rest


def lower_multi_indices(k: MultiIndex) -> List[MultiIndex]:
    """
    Multi-indices j <= k (componentwise) with |j| < |k|.

    Generated as a triangular iteration: component d is bounded by
    min(|k| - 1 - (sum of the components already fixed), k_d), which
    excludes j = k without ever producing over-order terms.
    """
    total = sum(k)
    if total == 0:
        return []

    result = []

    def _fill(d: int, prefix: MultiIndex, used: int):
        if d == len(k):
            result.append(prefix)
            return
        for j in range(min(total - 1 - used, k[d]) + 1):
            _fill(d + 1, prefix + (j,), used + j)

    _fill(0, (), 0)
    return result


def rational_basis_derivatives(spline_ders: Dict[MultiIndex, np.ndarray],
                               weights: np.ndarray) -> Dict[MultiIndex, np.ndarray]:
    """
    Rational basis derivatives from polynomial derivatives and weights.

    Parameters:
        spline_ders: Polynomial (B-spline) derivatives keyed by multi-index.
                     Each array has the basis index on axis 0, e.g.
                     (n_basis,) at one point or (n_basis, n_points).
                     The key set must be closed under lowering: every
                     j <= k of a present k must be present too.
        weights: Control point weights, shape (n_basis,)

    Returns:
        Dict with the same keys holding R^(k), same shapes as the input

    Raises:
        BasisDegeneracyError: If the weighted basis sum vanishes
    """
    weights = np.asarray(weights, dtype=np.float64)
    if np.any(weights <= 0):
        raise ValueError("All weights must be positive")

    order = sorted(spline_ders, key=lambda k: (sum(k), tuple(-c for c in k)))
    zero = tuple(0 for _ in order[0])
    if zero not in spline_ders:
        raise ValueError("Basis values (zeroth derivative) are required")

    # Weighted polynomial derivatives N^(k) and their sums W^(k)
    weighted = {}
    sums = {}
    for k in order:
        values = np.asarray(spline_ders[k], dtype=np.float64)
        w = weights.reshape((-1,) + (1,) * (values.ndim - 1))
        weighted[k] = w * values
        sums[k] = weighted[k].sum(axis=0)

    W0 = sums[zero]
    if np.any(np.abs(W0) <= np.finfo(np.float64).tiny) or not np.all(np.isfinite(W0)):
        raise BasisDegeneracyError(
            "Weighted basis sum vanishes; rational basis is undefined"
        )

    table = binomial_table(max(max(k) for k in order))

    rational = {}
    for k in order:
        value = weighted[k].copy()
        for j in lower_multi_indices(k):
            if j not in rational:
                raise ValueError(f"Derivative {j} is required to evaluate {k}")
            coefficient = 1.0
            for k_d, j_d in zip(k, j):
                coefficient *= table[k_d, j_d]
            difference = tuple(k_d - j_d for k_d, j_d in zip(k, j))
            value -= coefficient * sums[difference] * rational[j]
        rational[k] = value / W0

    return rational

"""
B-spline basis functions on a single knot span.

Values and derivatives share one recursion in the degree. With the span
index s and the p+1 functions N_{s-p,p}, ..., N_{s,p} that are non-zero on
it, a degree-q table follows from the degree-(q-1) table by

    values:      N_{i,q} = (xi - u_i) / (u_{i+q} - u_i) N_{i,q-1}
                         + (u_{i+q+1} - xi) / (u_{i+q+1} - u_{i+1}) N_{i+1,q-1}

    derivatives: D^k N_{i,q} = q / (u_{i+q} - u_i) D^(k-1) N_{i,q-1}
                             - q / (u_{i+q+1} - u_{i+1}) D^(k-1) N_{i+1,q-1}

with terms over zero-length knot intervals dropped. The k-th derivative
of degree p therefore starts from the values of degree p - k and applies
the derivative step k times.

The analysis evaluates splines through Bezier extraction; these routines
build the extraction operators and serve as an independent reference.
"""

import numpy as np
from typing import List, Optional
from ..discretization.knot_vector import KnotVector


def _raise_degree(lower: np.ndarray, knots: np.ndarray, span: int, q: int,
                  xi: Optional[float] = None) -> np.ndarray:
    """
    One step of the degree recursion on a span.

    Parameters:
        lower: Degree q-1 table on the span, shape (q,)
        knots: Knot values
        span: Span index s
        q: Target degree
        xi: Parameter value for the value recursion; None applies the
            derivative recursion

    Returns:
        Degree q table on the span, shape (q+1,)
    """
    upper = np.zeros(q + 1)
    for j in range(q + 1):
        i = span - q + j
        if j >= 1:
            denominator = knots[i + q] - knots[i]
            if denominator > 0:
                factor = q if xi is None else xi - knots[i]
                upper[j] += factor / denominator * lower[j - 1]
        if j < q:
            denominator = knots[i + q + 1] - knots[i + 1]
            if denominator > 0:
                factor = -q if xi is None else knots[i + q + 1] - xi
                upper[j] += factor / denominator * lower[j]
    return upper


def _values_by_degree(kv: KnotVector, xi: float, span: int) -> List[np.ndarray]:
    """Non-zero basis values on the span for every degree 0..p."""
    tables = [np.ones(1)]
    for q in range(1, kv.degree + 1):
        tables.append(_raise_degree(tables[-1], kv.knots, span, q, xi))
    return tables


def eval_basis_1d(kv: KnotVector, xi: float,
                  span: Optional[int] = None) -> np.ndarray:
    """
    Evaluate the p+1 non-zero B-spline basis functions at xi.

    Parameters:
        kv: Knot vector
        xi: Parameter value
        span: Optional pre-computed span index

    Returns:
        Array of shape (p+1,) with N_{span-p,p}(xi), ..., N_{span,p}(xi)
    """
    if span is None:
        span = kv.find_span(xi)
    return _values_by_degree(kv, xi, span)[-1]


def eval_basis_ders_1d(kv: KnotVector, xi: float, n_ders: int,
                       span: Optional[int] = None) -> np.ndarray:
    """
    Evaluate B-spline basis functions and derivatives at xi.

    Derivatives of order higher than p are identically zero.

    Parameters:
        kv: Knot vector
        xi: Parameter value
        n_ders: Highest derivative order (0 = values only)
        span: Optional pre-computed span index

    Returns:
        Array of shape (n_ders+1, p+1), result[k, j] = d^k N_{span-p+j,p} / dxi^k
    """
    p = kv.degree
    if span is None:
        span = kv.find_span(xi)

    tables = _values_by_degree(kv, xi, span)
    ders = np.zeros((n_ders + 1, p + 1))
    for k in range(min(n_ders, p) + 1):
        table = tables[p - k]
        for q in range(p - k + 1, p + 1):
            table = _raise_degree(table, kv.knots, span, q)
        ders[k] = table
    return ders

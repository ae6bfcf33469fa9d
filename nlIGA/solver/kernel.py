"""
Element kernel: basis, geometry and physical derivatives at quadrature points.

For every element the kernel
1. tabulates the Bernstein basis at the quadrature points (shared tables),
2. maps it to the spline basis with the element's extraction operators,
3. forms rational basis derivatives with the weighted recursion,
4. evaluates the geometric map x(xi) = sum_A R_A x_A and its Jacobian,
5. maps first derivatives to physical coordinates, plus second and third
   derivatives in 1D for higher-order phase-field theories,
6. computes the integration measure dV = w_q * det(dx/dxi) * prod(h_d).

The kernel knows nothing about the problem being solved; problem classes
turn ElementValues into element matrices and vectors.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from ..discretization.element import Element
from ..discretization.extraction import BernsteinBasis
from ..discretization.mesh import Mesh
from ..exceptions import GeometryDegeneracyError
from ..geometry.nurbs import MultiIndex, derivative_multi_indices, rational_basis_derivatives
from ..quadrature.gauss import QuadratureRule


@dataclass
class ElementValues:
    """
    Everything a problem needs to integrate over one element.

    Attributes:
        element_id: Element the values belong to
        rational: R^(k) w.r.t. parametric coordinates, keyed by multi-index,
                  each of shape (n_local, n_q)
        points: Physical quadrature points, (n_q, n_dim)
        jacobians: dx_i/dxi_j, (n_q, n_dim, n_dim)
        det_jacobian: (n_q,)
        N: Basis values, (n_q, n_local)
        dN_dx: Physical gradients, (n_q, n_local, n_dim)
        d2N_dx2: Second physical derivatives in 1D, (n_q, n_local) or None
        d3N_dx3: Third physical derivatives in 1D, (n_q, n_local) or None
        dV: Integration weights, (n_q,)
    """
    element_id: int
    rational: Dict[MultiIndex, np.ndarray]
    points: np.ndarray
    jacobians: np.ndarray
    det_jacobian: np.ndarray
    N: np.ndarray
    dN_dx: np.ndarray
    d2N_dx2: Optional[np.ndarray]
    d3N_dx3: Optional[np.ndarray]
    dV: np.ndarray

    @property
    def n_points(self) -> int:
        return self.dV.shape[0]

    @property
    def n_local(self) -> int:
        return self.N.shape[1]


def evaluate_element(element: Element,
                     mesh: Mesh,
                     quadrature: QuadratureRule,
                     max_order: int = 1,
                     bernstein_tables: Optional[Sequence[np.ndarray]] = None) -> ElementValues:
    """
    Evaluate basis and geometry of one element at the quadrature points.

    Parameters:
        element: Element to evaluate
        mesh: Mesh providing control point coordinates and weights
        quadrature: Quadrature rule on the reference element
        max_order: Highest derivative order needed (at least 1)
        bernstein_tables: Pre-tabulated Bernstein derivatives, as returned by
                          BernsteinBasis.tabulate(quadrature.points_1d, max_order)

    Returns:
        ElementValues

    Raises:
        GeometryDegeneracyError: If det(dx/dxi) <= 0 at a quadrature point
    """
    n_dim = element.n_dim
    max_order = max(int(max_order), 1)
    if bernstein_tables is None:
        bernstein_tables = BernsteinBasis(element.degrees).tabulate(quadrature.points_1d, max_order)

    multi_indices = derivative_multi_indices(n_dim, max_order)
    spline = element.extraction.spline_derivatives(bernstein_tables, multi_indices)
    rational = rational_basis_derivatives(spline, mesh.element_weights(element))

    x = mesh.element_control_points(element)               # (n_local, n_dim)
    zero = (0,) * n_dim
    first = [tuple(int(i == j) for i in range(n_dim)) for j in range(n_dim)]

    N = rational[zero].T                                   # (n_q, n_local)
    dN_dxi = np.stack([rational[k].T for k in first], axis=-1)   # (n_q, n_local, n_dim)
    points = N @ x
    jacobians = np.einsum('qaj,ai->qij', dN_dxi, x)
    det_jacobian = np.linalg.det(jacobians)

    for q, det in enumerate(det_jacobian):
        if not det > 0:
            raise GeometryDegeneracyError(element.id, q, float(det))

    inverse = np.linalg.inv(jacobians)
    dN_dx = np.einsum('qaj,qji->qai', dN_dxi, inverse)

    d2N_dx2 = None
    d3N_dx3 = None
    if n_dim == 1 and max_order >= 2:
        x_1 = jacobians[:, 0, 0]
        x_2 = rational[(2,)].T @ x[:, 0]
        N_x = dN_dx[:, :, 0]
        d2N_dx2 = (rational[(2,)].T - x_2[:, None] * N_x) / (x_1 ** 2)[:, None]
        if max_order >= 3:
            x_3 = rational[(3,)].T @ x[:, 0]
            d3N_dx3 = (rational[(3,)].T
                       - 3.0 * (x_2 * x_1)[:, None] * d2N_dx2
                       - x_3[:, None] * N_x) / (x_1 ** 3)[:, None]

    dV = quadrature.weights * det_jacobian * element.reference_measure

    return ElementValues(
        element_id=element.id,
        rational=rational,
        points=points,
        jacobians=jacobians,
        det_jacobian=det_jacobian,
        N=N,
        dN_dx=dN_dx,
        d2N_dx2=d2N_dx2,
        d3N_dx3=d3N_dx3,
        dV=dV,
    )


class ElementKernel:
    """
    Element evaluator bound to a mesh and quadrature rule.

    Bernstein tables depend only on the degrees and the quadrature rule,
    so they are computed once and reused for every element.
    """

    def __init__(self, mesh: Mesh, quadrature: Optional[QuadratureRule] = None,
                 max_order: int = 1):
        self.mesh = mesh
        self.quadrature = quadrature or QuadratureRule.for_degrees(mesh.degrees)
        if self.quadrature.n_dim != len(mesh.degrees):
            raise ValueError("Quadrature dimension does not match the mesh")
        self.max_order = max(int(max_order), 1)
        self._tables = BernsteinBasis(mesh.degrees).tabulate(
            self.quadrature.points_1d, self.max_order)

    @property
    def n_points(self) -> int:
        return self.quadrature.n_points

    def evaluate(self, element: Element) -> ElementValues:
        return evaluate_element(element, self.mesh, self.quadrature,
                                self.max_order, self._tables)


def strain_displacement_matrix(dN_dx: np.ndarray) -> np.ndarray:
    """
    Symmetric gradient operator B with eps = B @ u_e.

    Element displacements are interleaved per control point
    (u_0x, u_0y, u_0z, u_1x, ...). Strains use Voigt notation with
    engineering shear:
        1D: (11,)
        2D: (11, 22, 12)
        3D: (11, 22, 33, 23, 13, 12)

    Parameters:
        dN_dx: Physical gradients at one point, shape (n_local, n_dim)

    Returns:
        B of shape (1, n_local), (3, 2 n_local) or (6, 3 n_local)
    """
    dN_dx = np.atleast_2d(dN_dx)
    n_local, n_dim = dN_dx.shape

    if n_dim == 1:
        return dN_dx[:, 0][None, :].copy()

    if n_dim == 2:
        B = np.zeros((3, 2 * n_local))
        dx, dy = dN_dx[:, 0], dN_dx[:, 1]
        B[0, 0::2] = dx
        B[1, 1::2] = dy
        B[2, 0::2] = dy
        B[2, 1::2] = dx
        return B

    if n_dim == 3:
        B = np.zeros((6, 3 * n_local))
        dx, dy, dz = dN_dx[:, 0], dN_dx[:, 1], dN_dx[:, 2]
        B[0, 0::3] = dx
        B[1, 1::3] = dy
        B[2, 2::3] = dz
        B[3, 1::3] = dz
        B[3, 2::3] = dy
        B[4, 0::3] = dz
        B[4, 2::3] = dx
        B[5, 0::3] = dy
        B[5, 1::3] = dx
        return B

    raise ValueError(f"Unsupported dimension: {n_dim}")

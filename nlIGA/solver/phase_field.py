"""
Phase-field brittle fracture of a 1D bar, theories of order 2, 4 and 6.

Total energy of a bar with displacement u and phase field c
(c = 1 intact, c = 0 fully broken):

    Psi = 1/2 int g(c) E A u'^2 dx
        + G_c A / (4 l_0) int [ (1 - c)^2 + a_1 l_0^2 c'^2
                                + a_2 l_0^4 c''^2 + a_3 l_0^6 c'''^2 ] dx

    g(c) = c^2 + alpha (l_0 c')^4

    order 2: (a_1, a_2, a_3) = (4, 0, 0)
    order 4: (a_1, a_2, a_3) = (2, 1, 0)
    order 6: (a_1, a_2, a_3) = (4/3, 16/27, 64/729)

The phase-field equation dPsi/dc = 0 is solved with Newton's method for a
fixed displacement; the momentum equation is linear in u for a fixed phase
field. PhaseFieldBar alternates between the two.

Reference:
- Borden et al., "A higher-order phase-field model for brittle fracture:
  Formulation and analysis within the isogeometric analysis framework"
"""

import logging

import numpy as np
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from ..discretization.element import Element
from ..discretization.equation_map import DirichletBC
from ..discretization.mesh import Mesh
from ..exceptions import NewtonDivergenceError
from ..io.config import MaterialParameters, SolverControls
from ..quadrature.gauss import QuadratureRule
from .base import Problem
from .elasticity import LinearElasticBar
from .kernel import ElementValues
from .linear import LinearSystemSolver
from .newton import NewtonRaphson

logger = logging.getLogger(__name__)


# Gradient coefficients (a_1, a_2, a_3) per theory
THEORY_COEFFICIENTS = {
    2: (4.0, 0.0, 0.0),
    4: (2.0, 1.0, 0.0),
    6: (4.0 / 3.0, 16.0 / 27.0, 64.0 / 729.0),
}


class PhaseFieldEquation(Problem):
    """
    Phase-field equation of a 1D bar for a given displacement field.

    The unknown is the phase field c; the displacement only enters through
    the elastic energy density that drives the crack.
    """

    dofs_per_node = 1

    def __init__(self, mesh: Mesh, material: MaterialParameters, order: int = 2,
                 quadrature: Optional[QuadratureRule] = None):
        if mesh.n_dim != 1:
            raise ValueError("PhaseFieldEquation needs a 1D mesh")
        if order not in THEORY_COEFFICIENTS:
            raise ValueError(f"Unknown phase-field theory of order {order}")
        if material.fracture_toughness is None or material.length_scale is None:
            raise ValueError("Phase field needs a fracture toughness and a length scale")
        if mesh.degrees[0] < order // 2:
            raise ValueError(f"Order {order} theory needs basis degree of at least {order // 2}")

        super().__init__(mesh, quadrature, max_order=max(1, order // 2))
        self.order = order
        self.material = material
        self.coefficients = THEORY_COEFFICIENTS[order]

        A = material.area
        self.stiffness = material.youngs_modulus * A
        self.fracture_constant = material.fracture_toughness * A / (2.0 * material.length_scale)
        self.length_scale = material.length_scale
        self.alpha = material.degradation_coefficient
        self.displacement = np.zeros(mesh.n_control_points)

    def set_displacement(self, u: np.ndarray):
        u = np.asarray(u, dtype=np.float64)
        if u.shape != (self.mesh.n_control_points,):
            raise ValueError("Displacement must have one coefficient per control point")
        self.displacement = u.copy()

    def _derivatives(self, values: ElementValues, c_e: np.ndarray):
        """Basis derivative tables of order 0..3 and c at the quadrature points."""
        tables = [values.N, values.dN_dx[:, :, 0], values.d2N_dx2, values.d3N_dx3]
        c = [None if t is None else t @ c_e for t in tables]
        return tables, c

    def compute_element_matrices(self, element: Element, values: ElementValues,
                                 c_e: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        a1, a2, a3 = self.coefficients
        EA, Gc, l0, alpha = self.stiffness, self.fracture_constant, self.length_scale, self.alpha

        tables, c = self._derivatives(values, c_e)
        du = values.dN_dx[:, :, 0] @ self.displacement[element.connectivity]
        du2 = du ** 2

        # Coefficients of the tangent; subscripts are the derivative orders of N_A and N_B
        C_tangent = [
            EA * du2 + Gc,
            6.0 * alpha * EA * l0 ** 4 * c[1] ** 2 * du2 + Gc * a1 * l0 ** 2,
            Gc * a2 * l0 ** 4 * np.ones_like(du),
            Gc * a3 * l0 ** 6 * np.ones_like(du),
        ]
        # Coefficients of the residual; subscript is the derivative order of N_A
        C_residual = [
            EA * c[0] * du2 - Gc * (1.0 - c[0]),
            2.0 * alpha * EA * l0 ** 4 * c[1] ** 3 * du2 + Gc * a1 * l0 ** 2 * c[1],
            None if c[2] is None else Gc * a2 * l0 ** 4 * c[2],
            None if c[3] is None else Gc * a3 * l0 ** 6 * c[3],
        ]

        n_local = values.n_local
        K_e = np.zeros((n_local, n_local))
        f_e = np.zeros(n_local)
        for order in range(self.order // 2 + 1):
            table = tables[order]
            K_e += np.einsum('q,qa,qb->ab', C_tangent[order] * values.dV, table, table)
            f_e += table.T @ (C_residual[order] * values.dV)

        return K_e, f_e

    def energy(self, c: np.ndarray) -> float:
        """Total energy Psi(u, c) for the current displacement."""
        a = (1.0,) + self.coefficients
        l0 = self.length_scale
        scale = self.fracture_constant / 2.0
        c = np.asarray(c, dtype=np.float64)

        energy = 0.0
        for element, values in zip(self.mesh.elements, self.element_values):
            c_e = c[element.connectivity]
            _, c_q = self._derivatives(values, c_e)
            du = values.dN_dx[:, :, 0] @ self.displacement[element.connectivity]
            g = c_q[0] ** 2 + self.alpha * (l0 * c_q[1]) ** 4

            density = 0.5 * g * self.stiffness * du ** 2 + scale * (1.0 - c_q[0]) ** 2
            for order in range(1, self.order // 2 + 1):
                density = density + scale * a[order] * l0 ** (2 * order) * c_q[order] ** 2
            energy += np.sum(density * values.dV)
        return float(energy)


@dataclass
class PhaseFieldResult:
    """
    Outcome of an alternating solve.

    Attributes:
        u: Displacement field
        c: Phase field
        alternations: Index of the last alternation performed
        converged: Whether the phase field stopped changing
    """
    u: np.ndarray
    c: np.ndarray
    alternations: int
    converged: bool


class PhaseFieldBar:
    """
    Staggered solver for a fracturing 1D bar.

    Every alternation
    1. solves the momentum equation for u with the stiffness degraded by c,
    2. solves the phase-field equation for c with Newton's method at fixed u.

    The alternation stops when the largest change of c falls below
    controls.alternation_tolerance or after controls.max_alternations.
    """

    def __init__(self, mesh: Mesh, material: MaterialParameters, order: int = 2,
                 controls: Optional[SolverControls] = None,
                 quadrature: Optional[QuadratureRule] = None):
        self.controls = controls or SolverControls()
        self.momentum = LinearElasticBar(mesh, material, quadrature)
        self.phase = PhaseFieldEquation(mesh, material, order, quadrature)
        self.newton = NewtonRaphson(self.phase, self.controls)
        self.linear_solver = LinearSystemSolver()

    def solve(self, u: np.ndarray, c: np.ndarray,
              displacement_bcs: Sequence[DirichletBC],
              phase_bcs: Sequence[DirichletBC] = (),
              on_alternation: Optional[Callable[[int, np.ndarray, np.ndarray], None]] = None,
              first_alternation: int = 1) -> PhaseFieldResult:
        """
        Alternate between momentum and phase-field solves.

        Parameters:
            u: Initial displacement
            c: Initial phase field (e.g. with an initial crack)
            displacement_bcs: Prescribed displacements (total values)
            phase_bcs: Prescribed phase-field values
            on_alternation: Called with (alternation, u, c) after every alternation
            first_alternation: Index of the first alternation, > 1 when restarting

        Returns:
            PhaseFieldResult
        """
        u = np.array(u, dtype=np.float64)
        c = np.array(c, dtype=np.float64)

        u_map = self.momentum.equation_map(list(displacement_bcs))
        u_known = u_map.known_values(list(displacement_bcs))
        c_map = self.phase.equation_map(list(phase_bcs))
        c_known = c_map.known_values(list(phase_bcs))

        alternation = first_alternation - 1
        converged = False
        for alternation in range(first_alternation, self.controls.max_alternations + 1):
            logger.info("Alternation %d", alternation)

            self.momentum.set_phase_field(c)
            K, _ = self.momentum.assemble(u, u_map)
            u = self.linear_solver.solve(K, self.momentum.external_force(), u_map, u_known)
            logger.debug("Momentum equation solved")

            self.phase.set_displacement(u)
            try:
                result = self.newton.solve(c, c_map, c_known - c[c_map.known])
            except NewtonDivergenceError as exc:
                # The last iterate is kept and the alternation goes on
                logger.warning("Phase-field Newton solve did not converge in alternation %d",
                               alternation)
                result = exc.result
            change = float(np.max(np.abs(result.u - c)))
            c = result.u
            logger.debug("Phase-field equation solved in %d iterations, change %.4e",
                         result.iterations, change)

            if on_alternation is not None:
                on_alternation(alternation, u.copy(), c.copy())

            if change < self.controls.alternation_tolerance:
                converged = True
                break

        return PhaseFieldResult(u, c, alternation, converged)

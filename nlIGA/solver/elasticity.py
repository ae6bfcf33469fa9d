"""
Linear elastic bar with an optional degradation field.

Solves the 1D momentum equation

    -(g(c) E A u')' = 0

where g is the degradation function of a phase field c,

    g(c) = c^2 + alpha (l_0 c')^4

and g = 1 when no phase field is attached. The problem is linear in u:

    K_e = int g E A N' N'^T dx,    f_int = K_e u_e
"""

import numpy as np
from typing import Optional, Tuple

from ..discretization.element import Element
from ..discretization.mesh import Mesh
from ..io.config import MaterialParameters
from ..quadrature.gauss import QuadratureRule
from .base import Problem
from .kernel import ElementValues


def degradation(c: np.ndarray, dc_dx: np.ndarray, alpha: float, length_scale: float) -> np.ndarray:
    """g(c) = c^2 + alpha (l_0 c')^4"""
    return c ** 2 + alpha * (length_scale * dc_dx) ** 4


class LinearElasticBar(Problem):
    """
    1D linear elastic bar.

    Attributes:
        material: Young's modulus and area, plus the degradation constants
                  when a phase field is attached
        phase_field: Phase-field coefficients, or None for g = 1
    """

    dofs_per_node = 1

    def __init__(self, mesh: Mesh, material: MaterialParameters,
                 quadrature: Optional[QuadratureRule] = None,
                 phase_field: Optional[np.ndarray] = None):
        if mesh.n_dim != 1:
            raise ValueError("LinearElasticBar needs a 1D mesh")
        super().__init__(mesh, quadrature, max_order=1)
        self.material = material
        self.stiffness = material.youngs_modulus * material.area
        self.phase_field = None
        if phase_field is not None:
            self.set_phase_field(phase_field)

    def set_phase_field(self, c: Optional[np.ndarray]):
        """Attach (or detach with None) the phase field degrading the stiffness."""
        if c is None:
            self.phase_field = None
            return
        c = np.asarray(c, dtype=np.float64)
        if c.shape != (self.mesh.n_control_points,):
            raise ValueError("Phase field must have one coefficient per control point")
        if self.material.degradation_coefficient and self.material.length_scale is None:
            raise ValueError("Degradation with alpha > 0 needs a length scale")
        self.phase_field = c.copy()

    def degradation_at_points(self, element: Element, values: ElementValues) -> np.ndarray:
        """g at the quadrature points of an element."""
        if self.phase_field is None:
            return np.ones(values.n_points)
        c_e = self.phase_field[element.connectivity]
        c = values.N @ c_e
        dc_dx = values.dN_dx[:, :, 0] @ c_e
        length_scale = self.material.length_scale or 0.0
        return degradation(c, dc_dx, self.material.degradation_coefficient, length_scale)

    def compute_element_matrices(self, element: Element, values: ElementValues,
                                 u_e: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        g = self.degradation_at_points(element, values)
        dN = values.dN_dx[:, :, 0]                       # (n_q, n_local)
        K_e = np.einsum('q,qa,qb->ab', g * self.stiffness * values.dV, dN, dN)
        return K_e, K_e @ u_e

    def axial_stress(self, u: np.ndarray) -> np.ndarray:
        """
        Axial stress g E du/dx at the quadrature points.

        Returns:
            Array of shape (n_elements, n_q)
        """
        u = np.asarray(u, dtype=np.float64)
        E = self.material.youngs_modulus
        stress = np.zeros((self.mesh.n_elements, self.quadrature.n_points))
        for element, values in zip(self.mesh.elements, self.element_values):
            g = self.degradation_at_points(element, values)
            stress[element.id] = g * E * (values.dN_dx[:, :, 0] @ u[element.connectivity])
        return stress

    def strain_energy(self, u: np.ndarray) -> float:
        """Stored energy 1/2 int g E A u'^2 dx."""
        u = np.asarray(u, dtype=np.float64)
        energy = 0.0
        for element, values in zip(self.mesh.elements, self.element_values):
            g = self.degradation_at_points(element, values)
            du = values.dN_dx[:, :, 0] @ u[element.connectivity]
            energy += 0.5 * np.sum(g * self.stiffness * du ** 2 * values.dV)
        return float(energy)

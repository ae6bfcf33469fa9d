"""
Small-strain elastoplastic solid in 3D.

At every quadrature point the strain eps = B u_e is passed to the J2
return mapping together with the committed history of that point:

    K_e   = int B^T D_alg B dV
    f_int = int B^T sigma dV

Trial history is written to the `current` generation of the material
state during assembly and only becomes the committed history when the
load-stepping controller accepts the increment.
"""

import numpy as np
from typing import Dict, Optional, Tuple

from ..discretization.element import Element
from ..discretization.mesh import Mesh
from ..io.config import MaterialParameters
from ..materials.plasticity import J2Plasticity, MaterialState
from ..quadrature.gauss import QuadratureRule
from .base import Problem
from .kernel import ElementValues, strain_displacement_matrix


class ElastoplasticSolid(Problem):
    """
    3D J2 elastoplastic solid.

    Attributes:
        model: Return-mapping integrator
        state: History variables of all quadrature points
    """

    dofs_per_node = 3

    def __init__(self, mesh: Mesh, material: MaterialParameters,
                 quadrature: Optional[QuadratureRule] = None):
        if mesh.n_dim != 3:
            raise ValueError("ElastoplasticSolid needs a 3D mesh")
        super().__init__(mesh, quadrature, max_order=1)
        self.material = material
        self.model = J2Plasticity(material)
        self.state = MaterialState(mesh.n_elements, self.quadrature.n_points)

    def compute_element_matrices(self, element: Element, values: ElementValues,
                                 u_e: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        n_e = u_e.size
        K_e = np.zeros((n_e, n_e))
        f_e = np.zeros(n_e)

        for q in range(values.n_points):
            B = strain_displacement_matrix(values.dN_dx[q])
            strain = B @ u_e
            stress, tangent, trial = self.model.update(
                strain, self.state.committed(element.id, q))
            self.state.set_trial(element.id, q, trial)

            K_e += values.dV[q] * (B.T @ tangent @ B)
            f_e += values.dV[q] * (B.T @ stress)

        return K_e, f_e

    @property
    def is_plastic(self) -> bool:
        """Whether any point has yielded in the trial state."""
        return bool(np.any(self.state.current["equivalent_plastic_strain"]
                           > self.state.old["equivalent_plastic_strain"]))

    def commit(self):
        self.state.commit()

    def rollback(self):
        self.state.rollback()

    def snapshot(self) -> Dict[str, np.ndarray]:
        return self.state.snapshot()

    def restore(self, snapshot: Dict[str, np.ndarray]):
        self.state.restore(snapshot)

"""
Base problem class for nonlinear IGA.

A problem turns a field vector into a global tangent matrix and internal
force vector. The Newton driver and the load-stepping controller only talk
to this interface, so they work unchanged for bars, solids and phase fields.

The assembly loop is:
    for element in mesh.elements:
        # 1. Element kernel: rational basis, Jacobian, physical derivatives
        #    (geometry does not change, so these are evaluated once)
        # 2. Gather element field values through the LM array
        # 3. compute_element_matrices -> (K_e, f_int_e)
        # 4. Scatter into the global triplet lists

History-dependent problems override commit/rollback/snapshot/restore; the
defaults describe a problem without history.
"""

import numpy as np
from scipy import sparse
from typing import Any, Dict, List, Optional, Tuple
from abc import ABC, abstractmethod

from ..discretization.element import Element
from ..discretization.equation_map import DirichletBC, EquationMap
from ..discretization.mesh import Mesh
from ..quadrature.gauss import QuadratureRule
from .assembly import Assembler
from .kernel import ElementKernel, ElementValues


class Problem(ABC):
    """
    Abstract base class for nonlinear IGA problems.

    Subclasses implement specific PDEs by setting `dofs_per_node` and
    overriding compute_element_matrices.
    """

    dofs_per_node = 1

    def __init__(self, mesh: Mesh, quadrature: Optional[QuadratureRule] = None,
                 max_order: int = 1):
        """
        Parameters:
            mesh: Analysis mesh
            quadrature: Quadrature rule, defaults to p+1 points per direction
            max_order: Highest basis derivative the problem needs
        """
        self.mesh = mesh
        self.kernel = ElementKernel(mesh, quadrature, max_order)
        self.quadrature = self.kernel.quadrature
        self.n_dof = mesh.n_control_points * self.dofs_per_node
        self._element_values: Optional[List[ElementValues]] = None

    @property
    def element_values(self) -> List[ElementValues]:
        """Kernel output of every element, evaluated on first use."""
        if self._element_values is None:
            self._element_values = [self.kernel.evaluate(e) for e in self.mesh.elements]
        return self._element_values

    def equation_map(self, bcs: Optional[List[DirichletBC]] = None) -> EquationMap:
        """Equation map with the DOFs of the given BCs constrained."""
        return EquationMap.from_bcs(self.mesh, self.dofs_per_node, bcs or [])

    @abstractmethod
    def compute_element_matrices(self, element: Element, values: ElementValues,
                                 u_e: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute element tangent and internal force.

        Parameters:
            element: Element being integrated
            values: Kernel output for the element
            u_e: Element field values in LM order

        Returns:
            (K_e, f_int_e) of shapes (n_e, n_e) and (n_e,)
        """
        pass

    def assemble(self, u: np.ndarray,
                 equation_map: EquationMap) -> Tuple[sparse.csr_matrix, np.ndarray]:
        """
        Assemble the global tangent and internal force at u.

        Returns:
            (K, f_int)
        """
        u = np.asarray(u, dtype=np.float64)
        if u.shape != (self.n_dof,):
            raise ValueError(f"Expected field of size {self.n_dof}, got {u.shape}")

        assembler = Assembler(self.n_dof)
        for element, values in zip(self.mesh.elements, self.element_values):
            lm = equation_map.element_equations(element.id)
            K_e, f_e = self.compute_element_matrices(element, values, u[lm])
            assembler.add(lm, K_e, f_e)
        return assembler.matrix(), assembler.vector()

    def external_force(self) -> np.ndarray:
        """Body forces and tractions; none by default."""
        return np.zeros(self.n_dof)

    def commit(self):
        """Accept the state of the last assembly."""

    def rollback(self):
        """Discard the state of assemblies since the last commit."""

    def snapshot(self) -> Dict[str, Any]:
        """Committed history needed to resume an analysis."""
        return {}

    def restore(self, snapshot: Dict[str, Any]):
        """Reset the committed history from a snapshot."""

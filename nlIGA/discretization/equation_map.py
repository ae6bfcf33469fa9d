"""
Equation numbering and Dirichlet data.

Global equation of component c at control point A:

    eq = A * dofs_per_node + c

ID array:  id_array[A, c]   -> eq
LM array:  lm_array[e, :]   -> equations of element e, ordered
           (a_0 c_0, a_0 c_1, ..., a_1 c_0, ...) to match the element
           operators, which interleave components per control point.

Equations are split into `known` (Dirichlet-constrained) and `unknown`
(free) sorted index arrays. Field vectors always keep the natural equation
order, so the numbering of a vector does not change when the set of
constrained equations changes between load steps.
"""

import numpy as np
from typing import Iterable, Sequence
from dataclasses import dataclass

from .mesh import Mesh


def dof_index(node: int, component: int, dofs_per_node: int) -> int:
    """Global equation index of a control point component."""
    return node * dofs_per_node + component


@dataclass
class DirichletBC:
    """
    Dirichlet boundary condition: u = g on a set of equations.

    Attributes:
        dof_indices: Global equation indices where the BC is applied
        values: Prescribed values at those equations
    """
    dof_indices: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        self.dof_indices = np.asarray(self.dof_indices, dtype=np.int64).ravel()
        self.values = np.asarray(self.values, dtype=np.float64).ravel()
        if self.values.shape != self.dof_indices.shape:
            raise ValueError(
                f"Got {self.dof_indices.size} indices but {self.values.size} values"
            )

    @classmethod
    def homogeneous(cls, dof_indices: np.ndarray) -> 'DirichletBC':
        """Create homogeneous Dirichlet BC (u = 0)."""
        dof_indices = np.asarray(dof_indices)
        return cls(dof_indices, np.zeros(len(dof_indices)))

    @classmethod
    def on_nodes(cls, nodes: Sequence[int], component: int, dofs_per_node: int,
                 value: float = 0.0) -> 'DirichletBC':
        """BC on one component of several control points, same value everywhere."""
        nodes = np.asarray(nodes, dtype=np.int64)
        return cls(nodes * dofs_per_node + component, np.full(len(nodes), float(value)))


class EquationMap:
    """
    Read-only ID/LM arrays and the known/unknown partition.

    Attributes:
        n_dof: Total number of equations
        dofs_per_node: Field components per control point
        id_array: (n_cp, dofs_per_node) equation indices
        lm_array: (n_elements, n_local * dofs_per_node) equation indices
        known: Sorted constrained equations
        unknown: Sorted free equations
    """

    def __init__(self, id_array: np.ndarray, lm_array: np.ndarray,
                 known: np.ndarray, dofs_per_node: int):
        self.dofs_per_node = int(dofs_per_node)
        self.id_array = np.asarray(id_array, dtype=np.int64)
        self.lm_array = np.asarray(lm_array, dtype=np.int64)
        self.n_dof = int(self.id_array.size)

        known = np.unique(np.asarray(known, dtype=np.int64))
        if known.size and (known[0] < 0 or known[-1] >= self.n_dof):
            raise ValueError(f"Constrained equation outside 0..{self.n_dof - 1}")
        is_known = np.zeros(self.n_dof, dtype=bool)
        is_known[known] = True
        self.known = known
        self.unknown = np.flatnonzero(~is_known)
        self._check_partition()

        for array in (self.id_array, self.lm_array, self.known, self.unknown):
            array.setflags(write=False)

    @classmethod
    def build(cls, mesh: Mesh, dofs_per_node: int,
              constrained: Iterable[int] = ()) -> 'EquationMap':
        """
        Number the equations of a mesh.

        Parameters:
            mesh: Analysis mesh
            dofs_per_node: Field components per control point
            constrained: Equation indices held by Dirichlet data
        """
        if dofs_per_node < 1:
            raise ValueError("dofs_per_node must be positive")
        id_array = np.arange(mesh.n_control_points * dofs_per_node).reshape(
            mesh.n_control_points, dofs_per_node)
        lm_array = np.array([id_array[e.connectivity].ravel() for e in mesh.elements])
        return cls(id_array, lm_array, np.fromiter(constrained, dtype=np.int64), dofs_per_node)

    @classmethod
    def from_bcs(cls, mesh: Mesh, dofs_per_node: int,
                 bcs: Sequence[DirichletBC]) -> 'EquationMap':
        constrained = np.concatenate([bc.dof_indices for bc in bcs]) if bcs else []
        return cls.build(mesh, dofs_per_node, constrained)

    def _check_partition(self):
        if self.known.size + self.unknown.size != self.n_dof:
            raise ValueError("Known and unknown equations must partition all equations")
        if np.intersect1d(self.known, self.unknown).size:
            raise ValueError("An equation cannot be both known and unknown")

    @property
    def n_known(self) -> int:
        return int(self.known.size)

    @property
    def n_unknown(self) -> int:
        return int(self.unknown.size)

    def element_equations(self, element_id: int) -> np.ndarray:
        return self.lm_array[element_id]

    def known_values(self, bcs: Sequence[DirichletBC]) -> np.ndarray:
        """
        Gather Dirichlet values in the order of `known`.

        Equations constrained by several BCs take the last value given.
        """
        values = np.zeros(self.n_dof)
        covered = np.zeros(self.n_dof, dtype=bool)
        for bc in bcs:
            values[bc.dof_indices] = bc.values
            covered[bc.dof_indices] = True
        if not np.all(covered[self.known]):
            raise ValueError("Some constrained equations have no prescribed value")
        return values[self.known]

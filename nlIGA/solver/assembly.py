"""
Global sparse assembly.

Element contributions are appended as (row, col, value) triplets and
converted to CSR once per Newton iteration; duplicate entries are summed
by the conversion. Assembly is additive and order-independent, so
independently filled assemblers can be merged.
"""

import numpy as np
from scipy import sparse
from typing import List, Optional


class Assembler:
    """
    Triplet accumulator for a global matrix and vector.

    Usage:
        assembler = Assembler(n_dof)
        for element in mesh.elements:
            assembler.add(lm, K_e, f_e)
        K = assembler.matrix()
        f = assembler.vector()
    """

    def __init__(self, n_dof: int):
        if n_dof < 0:
            raise ValueError("n_dof must be non-negative")
        self.n_dof = int(n_dof)
        self._rows: List[np.ndarray] = []
        self._cols: List[np.ndarray] = []
        self._values: List[np.ndarray] = []
        self._vector = np.zeros(self.n_dof)

    def add(self, indices: np.ndarray, K_e: Optional[np.ndarray] = None,
            f_e: Optional[np.ndarray] = None):
        """
        Add an element matrix and/or vector.

        Parameters:
            indices: Global equation indices of the element, (n_e,)
            K_e: Element matrix, (n_e, n_e)
            f_e: Element vector, (n_e,)
        """
        indices = np.asarray(indices, dtype=np.int64)
        n_e = indices.size
        if K_e is not None:
            K_e = np.asarray(K_e, dtype=np.float64)
            if K_e.shape != (n_e, n_e):
                raise ValueError(f"Element matrix shape {K_e.shape} does not match {n_e} indices")
            self._rows.append(np.repeat(indices, n_e))
            self._cols.append(np.tile(indices, n_e))
            self._values.append(K_e.ravel())
        if f_e is not None:
            f_e = np.asarray(f_e, dtype=np.float64)
            if f_e.shape != (n_e,):
                raise ValueError(f"Element vector shape {f_e.shape} does not match {n_e} indices")
            np.add.at(self._vector, indices, f_e)

    def merge(self, other: 'Assembler'):
        """Add the contributions collected by another assembler."""
        if other.n_dof != self.n_dof:
            raise ValueError("Cannot merge assemblers of different sizes")
        self._rows.extend(other._rows)
        self._cols.extend(other._cols)
        self._values.extend(other._values)
        self._vector += other._vector

    def matrix(self) -> sparse.csr_matrix:
        """Global matrix in CSR format, duplicates summed."""
        if self._values:
            rows = np.concatenate(self._rows)
            cols = np.concatenate(self._cols)
            values = np.concatenate(self._values)
        else:
            rows = cols = np.zeros(0, dtype=np.int64)
            values = np.zeros(0)
        K = sparse.coo_matrix((values, (rows, cols)), shape=(self.n_dof, self.n_dof))
        return K.tocsr()

    def vector(self) -> np.ndarray:
        return self._vector.copy()

"""
Partitioned linear solve with row preconditioning.

Equations are split into known (Dirichlet) and unknown sets:

    [K_uu K_uk] [x_u]   [r_u]
    [K_ku K_kk] [x_k] = [r_k]

x_k is prescribed, and

    K_uu x_u = r_u - K_uk x_k

is solved by sparse LU after scaling every row of the system by the
inverse of its largest-magnitude entry.
"""

import logging

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import splu

from ..discretization.equation_map import EquationMap
from ..exceptions import LinearSystemSingularError

logger = logging.getLogger(__name__)


def row_scaling(K: sparse.spmatrix) -> np.ndarray:
    """
    Inverse of the largest-magnitude entry of every row.

    Rows that are entirely zero keep a scale of 1 and are left to the
    factorization to flag as singular.
    """
    row_max = abs(sparse.csr_matrix(K)).max(axis=1).toarray().ravel()
    scale = np.ones_like(row_max)
    nonzero = row_max > 0
    scale[nonzero] = 1.0 / row_max[nonzero]
    return scale


class LinearSystemSolver:
    """
    Direct solver for the unknown-unknown block of a partitioned system.

    Attributes:
        precondition: Apply row scaling before factorizing
    """

    def __init__(self, precondition: bool = True):
        self.precondition = precondition

    def solve(self, K: sparse.spmatrix, rhs: np.ndarray,
              equation_map: EquationMap, known_values: np.ndarray) -> np.ndarray:
        """
        Solve for the full vector with prescribed known components.

        Parameters:
            K: Global matrix, (n_dof, n_dof)
            rhs: Global right-hand side, (n_dof,)
            equation_map: Known/unknown partition
            known_values: Values of x on equation_map.known

        Returns:
            x of shape (n_dof,)

        Raises:
            LinearSystemSingularError: If K_uu cannot be factorized or the
                                       solution is not finite
        """
        n_dof = equation_map.n_dof
        rhs = np.asarray(rhs, dtype=np.float64)
        known_values = np.asarray(known_values, dtype=np.float64)
        if K.shape != (n_dof, n_dof) or rhs.shape != (n_dof,):
            raise ValueError("System size does not match the equation map")
        if known_values.shape != (equation_map.n_known,):
            raise ValueError(
                f"Expected {equation_map.n_known} known values, got {known_values.shape}"
            )

        known = equation_map.known
        unknown = equation_map.unknown

        x = np.zeros(n_dof)
        x[known] = known_values
        if unknown.size == 0:
            return x

        K = sparse.csr_matrix(K)
        if self.precondition:
            scale = row_scaling(K)
            K = sparse.diags(scale) @ K
            rhs = scale * rhs

        K_uu = K[unknown][:, unknown].tocsc()
        K_uk = K[unknown][:, known]
        b = rhs[unknown] - K_uk @ x[known]

        try:
            lu = splu(K_uu)
        except RuntimeError as exc:
            raise LinearSystemSingularError(
                f"Tangent block of {unknown.size} unknowns is singular"
            ) from exc

        x_u = lu.solve(b)
        if not np.all(np.isfinite(x_u)):
            raise LinearSystemSingularError("Linear solve produced non-finite values")

        x[unknown] = x_u
        logger.debug("Solved %d unknowns (%d known)", unknown.size, known.size)
        return x

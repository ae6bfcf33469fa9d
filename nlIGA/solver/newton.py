"""
Newton-Raphson driver with a two-stage convergence test.

One call solves one load increment:

    guess = previous converged field
    for k = 0, 1, ..., max_iterations:
        assemble K, f_int at the guess; r = f_ext - f_int
        if k > 0 and the close-to-convergence flag is set and
           |r_u| < |r_u| recorded when the flag was set:   converged
        elif k == max_iterations:                          diverged
        solve K du = r  (du_known = BC increment at k = 0, zero after)
        guess += du
        if |du_u| < tol: set the close-to-convergence flag

Norms are taken over the unknown equations only. A small increment alone
is not accepted; the residual must also have decreased since the flag was
raised, which rejects small-increment/large-residual oscillations.
A residual at or below controls.residual_tolerance, or at or below
controls.relative_residual_tolerance times the largest force norm seen in
the increment (external force, internal force including reactions, first
residual), passes the second stage outright. This is the round-off floor
a linear problem reaches after one correction.
"""

import logging

import numpy as np
from dataclasses import dataclass
from typing import Optional

from ..discretization.equation_map import EquationMap
from ..exceptions import NewtonDivergenceError
from ..io.config import SolverControls
from .base import Problem
from .linear import LinearSystemSolver

logger = logging.getLogger(__name__)


@dataclass
class NewtonResult:
    """
    Outcome of one Newton solve.

    Attributes:
        converged: Whether the two-stage test passed
        u: Final guess
        iterations: Iteration at which the solve stopped
        residual_norm: Residual norm over unknowns at the final guess
        increment_norm: Norm of the last increment over unknowns
    """
    converged: bool
    u: np.ndarray
    iterations: int
    residual_norm: float
    increment_norm: float


class NewtonRaphson:
    """
    Newton-Raphson solver for a Problem.

    Usage:
        newton = NewtonRaphson(problem, controls)
        result = newton.solve(u, equation_map, bc_increment)
    """

    def __init__(self, problem: Problem, controls: Optional[SolverControls] = None,
                 linear_solver: Optional[LinearSystemSolver] = None):
        self.problem = problem
        self.controls = controls or SolverControls()
        self.linear_solver = linear_solver or LinearSystemSolver()

    def solve(self, u: np.ndarray, equation_map: EquationMap,
              bc_increment: Optional[np.ndarray] = None,
              f_external: Optional[np.ndarray] = None) -> NewtonResult:
        """
        Solve one increment.

        Parameters:
            u: Previous converged field (not modified)
            equation_map: Known/unknown partition
            bc_increment: Increment of the known values, in the order of
                          equation_map.known (None for no change)
            f_external: External force vector (None for zero)

        Returns:
            NewtonResult with converged=True

        Raises:
            NewtonDivergenceError: If the test fails within max_newton_iterations
        """
        controls = self.controls
        n_dof = equation_map.n_dof
        unknown = equation_map.unknown

        u = np.array(u, dtype=np.float64)
        if f_external is None:
            f_external = np.zeros(n_dof)
        if bc_increment is None:
            bc_increment = np.zeros(equation_map.n_known)
        no_increment = np.zeros(equation_map.n_known)

        close_to_convergence = False
        reference_norm = np.inf
        increment_norm = np.inf
        force_scale = float(np.linalg.norm(f_external))

        for k in range(controls.max_newton_iterations + 1):
            K, f_internal = self.problem.assemble(u, equation_map)
            residual = f_external - f_internal
            residual_norm = float(np.linalg.norm(residual[unknown]))
            force_scale = max(force_scale, float(np.linalg.norm(f_internal)), residual_norm)
            tolerance = max(controls.residual_tolerance,
                            controls.relative_residual_tolerance * force_scale)

            if k > 0:
                logger.debug("Iteration %d: close to convergence = %s, "
                             "increment norm = %.4e, residual norm = %.4e",
                             k, close_to_convergence, increment_norm, residual_norm)

                if close_to_convergence and (residual_norm < reference_norm
                                             or residual_norm <= tolerance):
                    logger.info("Newton's method converged at iteration %d", k)
                    return NewtonResult(True, u, k, residual_norm, increment_norm)

                if k == controls.max_newton_iterations:
                    logger.warning("Newton's method did not converge after %d iterations", k)
                    raise NewtonDivergenceError(
                        NewtonResult(False, u, k, residual_norm, increment_norm))

            known_values = bc_increment if k == 0 else no_increment
            du = self.linear_solver.solve(K, residual, equation_map, known_values)
            u += du

            increment_norm = float(np.linalg.norm(du[unknown]))
            if increment_norm < controls.newton_tolerance and not close_to_convergence:
                close_to_convergence = True
                reference_norm = residual_norm

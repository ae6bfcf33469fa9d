"""
Adaptive load stepping.

An analysis is a sequence of load steps. Each load step prescribes the
total change of boundary data (displacements or rigid rotations of a set
of control points), applied over time steps of size

    increment = 2^level / n_time_steps        (fraction of the load step)

- Newton diverges: halve the increment (level -= 1) and retry the same
  time step; the run is aborted when the level drops below -7.
- Newton converges: commit the material history, advance the time step,
  and while level < 0 count successive convergences; when the count reaches
  4 the increment is doubled (level += 1). The count is not restarted, so
  the increment doubles at most once until the next divergence or load step.

The last time step of a load step is clipped so the applied fraction ends
exactly at 1. Level, count and applied fraction are reset at load-step
boundaries. Snapshots are handed to a callback every `save_frequency`
time steps and at the end of every load step; resuming from one
reproduces the remainder of the run.
"""

import logging

import numpy as np
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Sequence
from abc import ABC, abstractmethod

from ..discretization.equation_map import DirichletBC, EquationMap
from ..exceptions import LoadStepUnrecoverableError, NewtonDivergenceError
from ..io.config import SolverControls
from .base import Problem
from .newton import NewtonRaphson

logger = logging.getLogger(__name__)


MIN_INCREMENT_LEVEL = -7
SUCCESSIVE_CONVERGENCES_TO_RELAX = 4

# Applied fractions within this distance of 1 count as fully loaded
FRACTION_TOLERANCE = 1.0e-12


def rotation_matrix(axis: np.ndarray, angle: float) -> np.ndarray:
    """
    Rodrigues rotation matrix about a unit axis through the origin.

    R = cos(t) I + sin(t) [a]_x + (1 - cos(t)) a a^T
    """
    a = np.asarray(axis, dtype=np.float64)
    c, s = np.cos(angle), np.sin(angle)
    skew = np.array([[0.0, -a[2], a[1]],
                     [a[2], 0.0, -a[0]],
                     [-a[1], a[0], 0.0]])
    return c * np.eye(3) + s * skew + (1.0 - c) * np.outer(a, a)


class BoundaryLoad(ABC):
    """
    Prescribed boundary data on a set of control points.

    Attributes:
        nodes: Control point indices
        components: Field components that are prescribed
    """

    def __init__(self, nodes: Sequence[int], components: Sequence[int]):
        self.nodes = np.asarray(nodes, dtype=np.int64).ravel()
        self.components = np.asarray(components, dtype=np.int64).ravel()

    def dof_indices(self, dofs_per_node: int) -> np.ndarray:
        """Equations of the load, node-major."""
        if np.any(self.components >= dofs_per_node):
            raise ValueError("Load component exceeds the DOFs per node")
        return (self.nodes[:, None] * dofs_per_node + self.components[None, :]).ravel()

    @abstractmethod
    def increment(self, fraction: float, delta: float, reference_points: np.ndarray,
                  dofs_per_node: int) -> DirichletBC:
        """
        Boundary increment for a time step.

        Parameters:
            fraction: Fraction of the load step applied so far
            delta: Fraction applied by this time step
            reference_points: Control point positions at the start of the
                              load step, (n_cp, n_dim)
            dofs_per_node: Field components per control point
        """
        pass


class DisplacementLoad(BoundaryLoad):
    """
    Prescribed total displacement of a set of control points.

    A load with zero total is a fixed support.
    """

    def __init__(self, nodes: Sequence[int], components: Sequence[int],
                 total: Sequence[float]):
        super().__init__(nodes, components)
        self.total = np.broadcast_to(np.asarray(total, dtype=np.float64),
                                     self.components.shape).copy()

    def applied(self, fraction: float) -> np.ndarray:
        """Displacement applied so far."""
        return fraction * self.total

    def increment(self, fraction, delta, reference_points, dofs_per_node) -> DirichletBC:
        values = np.tile(delta * self.total, self.nodes.size)
        return DirichletBC(self.dof_indices(dofs_per_node), values)


class RotationLoad(BoundaryLoad):
    """
    Rigid rotation of a set of control points about an axis through the origin.

    The increment maps the positions at the start of the load step from
    angle theta_0 = fraction * total to theta_1 = (fraction + delta) * total:

        du = (R(theta_1) - R(theta_0)) X
    """

    def __init__(self, nodes: Sequence[int], axis: Sequence[float], total_angle: float):
        super().__init__(nodes, (0, 1, 2))
        axis = np.asarray(axis, dtype=np.float64)
        norm = np.linalg.norm(axis)
        if axis.shape != (3,) or norm == 0:
            raise ValueError("Rotation axis must be a non-zero 3-vector")
        self.axis = axis / norm
        self.total_angle = float(total_angle)

    def applied(self, fraction: float) -> float:
        """Rotation angle applied so far."""
        return fraction * self.total_angle

    def increment(self, fraction, delta, reference_points, dofs_per_node) -> DirichletBC:
        if reference_points.shape[1] != 3:
            raise ValueError("Rotation loads need 3D control points")
        R0 = rotation_matrix(self.axis, fraction * self.total_angle)
        R1 = rotation_matrix(self.axis, (fraction + delta) * self.total_angle)
        values = reference_points[self.nodes] @ (R1 - R0).T
        return DirichletBC(self.dof_indices(dofs_per_node), values.ravel())


@dataclass
class LoadStep:
    """
    Boundary loads applied together over n_time_steps nominal time steps.
    """
    loads: Sequence[BoundaryLoad]
    n_time_steps: int = 1

    def __post_init__(self):
        if self.n_time_steps < 1:
            raise ValueError("A load step needs at least one time step")

    def constrained_dofs(self, dofs_per_node: int) -> np.ndarray:
        if not self.loads:
            return np.zeros(0, dtype=np.int64)
        return np.concatenate([load.dof_indices(dofs_per_node) for load in self.loads])

    def bc_increment(self, equation_map: EquationMap, fraction: float, delta: float,
                     reference_points: np.ndarray) -> np.ndarray:
        """Increment of the known values, in the order of equation_map.known."""
        bcs = [load.increment(fraction, delta, reference_points, equation_map.dofs_per_node)
               for load in self.loads]
        return equation_map.known_values(bcs)


@dataclass
class LoadStepState:
    """
    Progress within the current load step.

    Attributes:
        load_step: Index of the load step
        increment_level: Signed level, increment = 2^level / n_time_steps
        successive_convergences: Convergences counted while level < 0
        fraction_applied: Fraction of the load step applied so far
        is_loaded: Whether the load step is complete
    """
    load_step: int = 0
    increment_level: int = 0
    successive_convergences: int = 0
    fraction_applied: float = 0.0
    is_loaded: bool = False

    def increment(self, n_time_steps: int) -> float:
        return 2.0 ** self.increment_level / n_time_steps


@dataclass
class SimulationSnapshot:
    """
    Everything needed to resume an analysis after a converged time step.

    Attributes:
        time_step: Number of converged time steps so far
        u: Field vector
        history: Problem.snapshot() of the committed history
        state: Load-step progress
        reference_points: Control point positions at the start of the load step
    """
    time_step: int
    u: np.ndarray
    history: Dict[str, Any]
    state: LoadStepState
    reference_points: np.ndarray


class AdaptiveLoadStepper:
    """
    Drive a Problem through a sequence of load steps with adaptive increments.

    Usage:
        stepper = AdaptiveLoadStepper(problem, [LoadStep(loads, 10)], controls)
        u = stepper.run(np.zeros(problem.n_dof))
    """

    def __init__(self, problem: Problem, load_steps: Sequence[LoadStep],
                 controls: Optional[SolverControls] = None,
                 newton: Optional[NewtonRaphson] = None,
                 on_save: Optional[Callable[[SimulationSnapshot], None]] = None):
        self.problem = problem
        self.load_steps = list(load_steps)
        self.controls = controls or SolverControls()
        self.newton = newton or NewtonRaphson(problem, self.controls)
        self.on_save = on_save
        self.time_step = 0
        self.state: Optional[LoadStepState] = None

    def _reference_points(self, u: np.ndarray) -> np.ndarray:
        """Current control point positions, X + u for displacement fields."""
        mesh = self.problem.mesh
        points = np.array(mesh.control_points)
        dofs = self.problem.dofs_per_node
        if dofs >= mesh.n_dim:
            points += u.reshape(mesh.n_control_points, dofs)[:, :mesh.n_dim]
        return points

    def run(self, u: np.ndarray, snapshot: Optional[SimulationSnapshot] = None) -> np.ndarray:
        """
        Run all load steps.

        Parameters:
            u: Initial field (ignored when resuming)
            snapshot: Resume after the time step the snapshot was taken at

        Returns:
            Field vector at the end of the last load step

        Raises:
            LoadStepUnrecoverableError: If the increment level drops below its
                                        floor or the time step budget runs out
        """
        u = np.array(u, dtype=np.float64)
        first = 0
        state = None
        reference_points = None
        self.time_step = 0

        if snapshot is not None:
            u = snapshot.u.copy()
            self.problem.restore(snapshot.history)
            self.time_step = snapshot.time_step
            first = snapshot.state.load_step
            if snapshot.state.is_loaded:
                first += 1
            else:
                state = replace(snapshot.state)
                reference_points = snapshot.reference_points.copy()
            logger.info("Resuming at time step %d, load step %d", self.time_step, first)

        for index in range(first, len(self.load_steps)):
            if state is None:
                state = LoadStepState(load_step=index)
                reference_points = self._reference_points(u)
            u = self._run_load_step(u, state, reference_points)
            state = None

        logger.info("All %d load steps completed after %d time steps",
                    len(self.load_steps), self.time_step)
        return u

    def _run_load_step(self, u: np.ndarray, state: LoadStepState,
                       reference_points: np.ndarray) -> np.ndarray:
        load_step = self.load_steps[state.load_step]
        problem = self.problem
        self.state = state

        equation_map = EquationMap.build(problem.mesh, problem.dofs_per_node,
                                         load_step.constrained_dofs(problem.dofs_per_node))
        f_external = problem.external_force()

        while not state.is_loaded:
            if self.time_step >= self.controls.max_load_steps:
                raise LoadStepUnrecoverableError(
                    f"Reached the limit of {self.controls.max_load_steps} time steps"
                )

            delta = min(state.increment(load_step.n_time_steps), 1.0 - state.fraction_applied)
            logger.info("Load step %d, time step %d: increment level %d, fraction %.6f + %.6f",
                        state.load_step, self.time_step, state.increment_level,
                        state.fraction_applied, delta)

            bc_increment = load_step.bc_increment(equation_map, state.fraction_applied,
                                                  delta, reference_points)
            try:
                result = self.newton.solve(u, equation_map, bc_increment, f_external)
            except NewtonDivergenceError as exc:
                problem.rollback()
                state.increment_level -= 1
                state.successive_convergences = 0
                logger.warning("Lowering the increment level to %d", state.increment_level)
                if state.increment_level < MIN_INCREMENT_LEVEL:
                    raise LoadStepUnrecoverableError(
                        "Equilibrium could not be reached with the lowest increment"
                    ) from exc
                continue

            u = result.u
            problem.commit()
            self.time_step += 1

            state.fraction_applied += delta
            if state.fraction_applied >= 1.0 - FRACTION_TOLERANCE:
                state.fraction_applied = 1.0
                state.is_loaded = True

            if state.increment_level < 0:
                state.successive_convergences += 1
                if state.successive_convergences == SUCCESSIVE_CONVERGENCES_TO_RELAX:
                    state.increment_level += 1
                    logger.info("Relaxing the increment level to %d", state.increment_level)

            if self.time_step % self.controls.save_frequency == 0 or state.is_loaded:
                self._save(u, state, reference_points)

        return u

    def _save(self, u: np.ndarray, state: LoadStepState, reference_points: np.ndarray):
        if self.on_save is None:
            return
        self.on_save(SimulationSnapshot(
            time_step=self.time_step,
            u=u.copy(),
            history=self.problem.snapshot(),
            state=replace(state),
            reference_points=reference_points.copy(),
        ))

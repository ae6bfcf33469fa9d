"""
J2 (von Mises) plasticity with linear mixed hardening.

Small-strain rate-independent plasticity integrated with the radial return
mapping. Stresses and strains use Voigt notation

    (11, 22, 33, 23, 13, 12)

with engineering shear strains (gamma_ij = 2 eps_ij). Stress-like tensors
(stress, backstress, flow direction) store tensor components, so their
norm counts the shear terms twice:

    ||s||^2 = s_1^2 + s_2^2 + s_3^2 + 2 (s_4^2 + s_5^2 + s_6^2)

Hardening modulus H is split between isotropic (beta H) and kinematic
((1 - beta) H) parts:

    f = ||dev(sigma) - alpha|| - sqrt(2/3) (sigma_Y + beta H ep_bar)

Reference:
- Simo & Hughes, "Computational Inelasticity", Box 3.2
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Dict, Tuple

from ..io.config import MaterialParameters


SQRT_2_3 = np.sqrt(2.0 / 3.0)

# Identity and engineering-shear factors in Voigt notation
VOIGT_IDENTITY = np.array([1.0, 1.0, 1.0, 0.0, 0.0, 0.0])
ENGINEERING_SHEAR = np.array([1.0, 1.0, 1.0, 2.0, 2.0, 2.0])


def voigt_norm(s: np.ndarray) -> float:
    """Frobenius norm of a symmetric stress-like tensor in Voigt notation."""
    s = np.asarray(s, dtype=np.float64)
    return float(np.sqrt(np.sum(ENGINEERING_SHEAR * s * s)))


def deviatoric_projector() -> np.ndarray:
    """
    I_dev mapping engineering strains to the deviatoric tensor.

    Normal block delta_ij - 1/3, shear diagonal 1/2.
    """
    P = np.zeros((6, 6))
    P[:3, :3] = np.eye(3) - 1.0 / 3.0
    P[3:, 3:] = 0.5 * np.eye(3)
    return P


def elasticity_matrix(E: float, nu: float) -> np.ndarray:
    """
    Isotropic elasticity matrix D, sigma = D @ eps.

    D = K 1 (x) 1 + 2 G I_dev with K = E / (3 (1 - 2 nu)), G = E / (2 (1 + nu))

    Returns:
        Array of shape (6, 6)
    """
    K = E / (3.0 * (1.0 - 2.0 * nu))
    G = E / (2.0 * (1.0 + nu))
    return K * np.outer(VOIGT_IDENTITY, VOIGT_IDENTITY) + 2.0 * G * deviatoric_projector()


@dataclass
class MaterialPointState:
    """
    History variables at one quadrature point.

    Attributes:
        stress: Cauchy stress (6,)
        backstress: Kinematic hardening backstress alpha (6,)
        strain: Total strain, engineering shear (6,)
        plastic_strain: Plastic strain, engineering shear (6,)
        equivalent_plastic_strain: Accumulated ep_bar
    """
    stress: np.ndarray = field(default_factory=lambda: np.zeros(6))
    backstress: np.ndarray = field(default_factory=lambda: np.zeros(6))
    strain: np.ndarray = field(default_factory=lambda: np.zeros(6))
    plastic_strain: np.ndarray = field(default_factory=lambda: np.zeros(6))
    equivalent_plastic_strain: float = 0.0

    def copy(self) -> 'MaterialPointState':
        return MaterialPointState(
            self.stress.copy(), self.backstress.copy(), self.strain.copy(),
            self.plastic_strain.copy(), float(self.equivalent_plastic_strain))


class MaterialState:
    """
    History variables of all quadrature points, in two generations.

    `old` holds the last accepted (committed) values and is the only
    generation trial updates read from; `current` receives trial values
    during Newton iterations. commit() accepts the current generation;
    a failed increment is discarded with rollback().

    Arrays are indexed [element, quadrature point, component].
    """

    FIELDS = ("stress", "backstress", "strain", "plastic_strain")

    def __init__(self, n_elements: int, n_points: int):
        self.n_elements = int(n_elements)
        self.n_points = int(n_points)
        self.old = self._empty()
        self.current = self._empty()

    def _empty(self) -> Dict[str, np.ndarray]:
        arrays = {name: np.zeros((self.n_elements, self.n_points, 6)) for name in self.FIELDS}
        arrays["equivalent_plastic_strain"] = np.zeros((self.n_elements, self.n_points))
        return arrays

    def committed(self, element: int, point: int) -> MaterialPointState:
        """Committed state of one point (a copy)."""
        return self._point(self.old, element, point)

    def trial(self, element: int, point: int) -> MaterialPointState:
        return self._point(self.current, element, point)

    def _point(self, arrays, element, point) -> MaterialPointState:
        return MaterialPointState(
            *(arrays[name][element, point].copy() for name in self.FIELDS),
            equivalent_plastic_strain=float(arrays["equivalent_plastic_strain"][element, point]),
        )

    def set_trial(self, element: int, point: int, state: MaterialPointState):
        for name in self.FIELDS:
            self.current[name][element, point] = getattr(state, name)
        self.current["equivalent_plastic_strain"][element, point] = state.equivalent_plastic_strain

    def commit(self):
        """Accept the trial generation."""
        for name, array in self.current.items():
            self.old[name][...] = array

    def rollback(self):
        """Discard trial values."""
        for name, array in self.old.items():
            self.current[name][...] = array

    def snapshot(self) -> Dict[str, np.ndarray]:
        """Copy of the committed generation, enough to resume an analysis."""
        return {name: array.copy() for name, array in self.old.items()}

    def restore(self, snapshot: Dict[str, np.ndarray]):
        for name in self.old:
            if snapshot[name].shape != self.old[name].shape:
                raise ValueError(f"Snapshot field '{name}' has the wrong shape")
            self.old[name][...] = snapshot[name]
        self.rollback()


class J2Plasticity:
    """
    Return-mapping integrator for J2 plasticity.

    Attributes:
        D: Elasticity matrix
        K, G: Bulk and shear moduli
        yield_stress, hardening_modulus, isotropic_fraction: Hardening law
    """

    def __init__(self, material: MaterialParameters):
        self.material = material
        self.K = material.bulk_modulus
        self.G = material.shear_modulus
        self.D = elasticity_matrix(material.youngs_modulus, material.poissons_ratio)
        self.yield_stress = material.yield_stress
        self.hardening_modulus = material.hardening_modulus
        self.isotropic_fraction = material.isotropic_fraction

    def yield_radius(self, equivalent_plastic_strain: float) -> float:
        """sqrt(2/3) times the current yield stress."""
        H = self.hardening_modulus
        return SQRT_2_3 * (self.yield_stress + self.isotropic_fraction * H * equivalent_plastic_strain)

    def yield_function(self, stress: np.ndarray, state: MaterialPointState) -> float:
        s = np.asarray(stress) - np.sum(np.asarray(stress)[:3]) / 3.0 * VOIGT_IDENTITY
        return voigt_norm(s - state.backstress) - self.yield_radius(state.equivalent_plastic_strain)

    def update(self, strain: np.ndarray,
               previous: MaterialPointState) -> Tuple[np.ndarray, np.ndarray, MaterialPointState]:
        """
        Integrate the constitutive law over one increment.

        Parameters:
            strain: Total strain at the end of the increment (6,)
            previous: Committed state at the start of the increment

        Returns:
            (stress, tangent, new_state) with the consistent tangent (6, 6)
        """
        strain = np.asarray(strain, dtype=np.float64)
        K, G, H = self.K, self.G, self.hardening_modulus
        beta = self.isotropic_fraction

        # Elastic predictor
        elastic_strain = strain - previous.plastic_strain
        pressure = K * np.sum(elastic_strain[:3])
        trial_stress = self.D @ elastic_strain
        trial_dev = trial_stress - pressure * VOIGT_IDENTITY

        xi = trial_dev - previous.backstress
        xi_norm = voigt_norm(xi)
        f_trial = xi_norm - self.yield_radius(previous.equivalent_plastic_strain)

        if f_trial <= 0.0:
            state = previous.copy()
            state.strain = strain.copy()
            state.stress = trial_stress.copy()
            return trial_stress, self.D.copy(), state

        # Plastic corrector
        delta_gamma = f_trial / (2.0 * G + 2.0 / 3.0 * H)
        n = xi / xi_norm

        stress = trial_dev - 2.0 * G * delta_gamma * n + pressure * VOIGT_IDENTITY
        state = MaterialPointState(
            stress=stress,
            backstress=previous.backstress + 2.0 / 3.0 * (1.0 - beta) * H * delta_gamma * n,
            strain=strain.copy(),
            plastic_strain=previous.plastic_strain + delta_gamma * ENGINEERING_SHEAR * n,
            equivalent_plastic_strain=previous.equivalent_plastic_strain + SQRT_2_3 * delta_gamma,
        )

        theta = 1.0 - 2.0 * G * delta_gamma / xi_norm
        theta_bar = 1.0 / (1.0 + H / (3.0 * G)) - (1.0 - theta)
        tangent = (K * np.outer(VOIGT_IDENTITY, VOIGT_IDENTITY)
                   + 2.0 * G * theta * deviatoric_projector()
                   - 2.0 * G * theta_bar * np.outer(n, n))

        return stress, tangent, state

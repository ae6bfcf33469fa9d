"""
Material and solver configuration.

Analyses are configured with two immutable records, usually loaded from a
JSON file:

    {
      "material": {
        "youngs_modulus": 200.0e3,
        "poissons_ratio": 0.3,
        "yield_stress": 250.0,
        "hardening_modulus": 1.0e3,
        "isotropic_fraction": 1.0
      },
      "solver": {
        "max_newton_iterations": 20,
        "newton_tolerance": 1.0e-8,
        "save_frequency": 5
      }
    }

Missing entries take their defaults; unknown entries are rejected.
"""

import json
import math
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple


def _from_dict(cls, data: Dict[str, Any]):
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} entries: {sorted(unknown)}")
    return cls(**data)


@dataclass(frozen=True)
class MaterialParameters:
    """
    Material constants.

    Attributes:
        youngs_modulus: E
        poissons_ratio: nu
        area: Cross-section area of 1D bars
        yield_stress: Initial yield stress sigma_Y (inf = purely elastic)
        hardening_modulus: Linear hardening modulus H
        isotropic_fraction: beta in [0, 1], split of H between isotropic
                            (beta) and kinematic (1 - beta) hardening
        fracture_toughness: Critical energy release rate G_c (phase field)
        length_scale: Phase-field regularization length l_0
        degradation_coefficient: alpha in g(c) = c^2 + alpha (l_0 c')^4
    """
    youngs_modulus: float = 1.0
    poissons_ratio: float = 0.0
    area: float = 1.0
    yield_stress: float = math.inf
    hardening_modulus: float = 0.0
    isotropic_fraction: float = 1.0
    fracture_toughness: Optional[float] = None
    length_scale: Optional[float] = None
    degradation_coefficient: float = 0.0

    def __post_init__(self):
        if not self.youngs_modulus > 0:
            raise ValueError("Young's modulus must be positive")
        if not -1.0 < self.poissons_ratio < 0.5:
            raise ValueError("Poisson's ratio must lie in (-1, 0.5)")
        if not self.area > 0:
            raise ValueError("Area must be positive")
        if not self.yield_stress > 0:
            raise ValueError("Yield stress must be positive")
        if self.hardening_modulus < 0:
            raise ValueError("Hardening modulus must be non-negative")
        if not 0.0 <= self.isotropic_fraction <= 1.0:
            raise ValueError("Isotropic fraction must lie in [0, 1]")
        if self.fracture_toughness is not None and not self.fracture_toughness > 0:
            raise ValueError("Fracture toughness must be positive")
        if self.length_scale is not None and not self.length_scale > 0:
            raise ValueError("Length scale must be positive")

    @property
    def bulk_modulus(self) -> float:
        return self.youngs_modulus / (3.0 * (1.0 - 2.0 * self.poissons_ratio))

    @property
    def shear_modulus(self) -> float:
        return self.youngs_modulus / (2.0 * (1.0 + self.poissons_ratio))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MaterialParameters':
        return _from_dict(cls, data)


@dataclass(frozen=True)
class SolverControls:
    """
    Newton and load-stepping controls.

    Attributes:
        max_newton_iterations: Iterations before an increment is declared divergent
        newton_tolerance: Increment norm that flags close-to-convergence
        residual_tolerance: Residual norm accepted as converged outright
        relative_residual_tolerance: Residual norm, relative to the largest
                                     force norm of the increment, accepted as
                                     converged outright (the round-off floor)
        max_load_steps: Upper bound on the number of time steps of a run
        save_frequency: Save every this many time steps
        restart_index: Time step to restart from (None = fresh start)
        max_alternations: Staggered iterations of coupled problems
        alternation_tolerance: Change of the phase field ending the alternation
    """
    max_newton_iterations: int = 20
    newton_tolerance: float = 1.0e-8
    residual_tolerance: float = 0.0
    relative_residual_tolerance: float = 1.0e-12
    max_load_steps: int = 10000
    save_frequency: int = 1
    restart_index: Optional[int] = None
    max_alternations: int = 50
    alternation_tolerance: float = 1.0e-6

    def __post_init__(self):
        if self.max_newton_iterations < 1:
            raise ValueError("max_newton_iterations must be at least 1")
        if not self.newton_tolerance > 0:
            raise ValueError("newton_tolerance must be positive")
        if self.residual_tolerance < 0:
            raise ValueError("residual_tolerance must be non-negative")
        if self.relative_residual_tolerance < 0:
            raise ValueError("relative_residual_tolerance must be non-negative")
        if self.max_load_steps < 1:
            raise ValueError("max_load_steps must be at least 1")
        if self.save_frequency < 1:
            raise ValueError("save_frequency must be at least 1")
        if self.restart_index is not None and self.restart_index < 0:
            raise ValueError("restart_index must be non-negative")
        if self.max_alternations < 1:
            raise ValueError("max_alternations must be at least 1")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SolverControls':
        return _from_dict(cls, data)


def load_config(filename: str) -> Tuple[MaterialParameters, SolverControls]:
    """
    Load material and solver configuration from a JSON file.

    Parameters:
        filename: Path to the JSON file

    Returns:
        (material, controls)
    """
    with open(filename, 'r') as f:
        config = json.load(f)

    unknown = set(config) - {"material", "solver"}
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    material = MaterialParameters.from_dict(config.get("material", {}))
    controls = SolverControls.from_dict(config.get("solver", {}))
    return material, controls

"""
nlIGA - Nonlinear Isogeometric Analysis

A solver core for nonlinear isogeometric analysis of coupled fields
(displacement, phase field, plastic strain) on NURBS geometries.

Key modules:
- geometry: B-spline basis and the rational (NURBS) derivative recursion
- discretization: Knot vectors, elements, Bézier extraction, equation maps
- quadrature: Gauss-Legendre integration
- materials: J2 plasticity with mixed hardening
- solver: Element kernel, assembly, Newton-Raphson, adaptive load stepping,
          bar, elastoplastic solid and phase-field problems
- io: Material and solver configuration

Quick start (elastoplastic cube):
    import numpy as np
    from nlIGA.discretization.knot_vector import make_uniform_knot_vector
    from nlIGA.discretization.mesh import build_mesh
    from nlIGA.io.config import MaterialParameters, SolverControls
    from nlIGA.solver.plasticity import ElastoplasticSolid
    from nlIGA.solver.load_stepping import AdaptiveLoadStepper, DisplacementLoad, LoadStep

    kv = make_uniform_knot_vector(1, 1)
    points = np.array([[x, y, z] for z in (0, 1) for y in (0, 1) for x in (0, 1)], float)
    mesh = build_mesh([kv, kv, kv], points)

    solid = ElastoplasticSolid(mesh, MaterialParameters(200e3, 0.3, yield_stress=250.0))
    left = np.flatnonzero(points[:, 0] == 0)
    right = np.flatnonzero(points[:, 0] == 1)
    loads = [DisplacementLoad(left, (0, 1, 2), 0.0), DisplacementLoad(right, (0,), 0.01)]
    stepper = AdaptiveLoadStepper(solid, [LoadStep(loads, 10)], SolverControls())
    u = stepper.run(np.zeros(solid.n_dof))
"""

__version__ = "0.1.0"

# Core imports for convenience
from .exceptions import (
    IGAError,
    GeometryDegeneracyError,
    BasisDegeneracyError,
    NewtonDivergenceError,
    LoadStepUnrecoverableError,
    LinearSystemSingularError,
)
from .discretization.mesh import Mesh, build_mesh
from .discretization.equation_map import EquationMap, DirichletBC
from .io.config import MaterialParameters, SolverControls, load_config

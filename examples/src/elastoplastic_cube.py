#!/usr/bin/env python3
"""
Example: Load and unload an elastoplastic cube in uniaxial tension.

This example demonstrates:
1. Building a trivariate B-spline cube
2. Applying symmetry supports and a prescribed end displacement
3. Driving the J2 plasticity model with adaptive load stepping
4. Keeping in-memory snapshots and resuming from one of them

The problem:
    Cube [0, L]^3 with u_x = 0 on x = 0, u_y = 0 on y = 0, u_z = 0 on z = 0.
    Load step 1 pulls the face x = L to u_x = d, load step 2 unloads it
    back to u_x = 0.

With linear hardening the stress-strain response follows
    sigma = E eps                                   (elastic)
    sigma = sigma_Y + E H / (E + H) (eps - sigma_Y / E)   (plastic)

Usage:
    python elastoplastic_cube.py
    python elastoplastic_cube.py --config cube.json --elements 2
"""

import sys
import os
import argparse
import logging

# Add project root to path (two levels up from examples/src/)
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import numpy as np

from nlIGA.discretization.knot_vector import make_uniform_knot_vector
from nlIGA.discretization.mesh import build_mesh
from nlIGA.io.config import MaterialParameters, SolverControls, load_config
from nlIGA.solver.plasticity import ElastoplasticSolid
from nlIGA.solver.load_stepping import AdaptiveLoadStepper, DisplacementLoad, LoadStep


def make_cube_mesh(n_elements, degree, size):
    """Cube [0, size]^3 with control points at the Greville abscissae."""
    kv = make_uniform_knot_vector(n_elements, degree)
    greville = np.array([np.mean(kv.knots[i + 1:i + degree + 1])
                         for i in range(kv.n_basis)]) * size
    points = np.array([[x, y, z] for z in greville for y in greville for x in greville])
    return build_mesh([kv, kv, kv], points)


def face_reaction(solid, u, nodes):
    """Sum of the internal x-forces on a set of control points."""
    K, f_int = solid.assemble(u, solid.equation_map())
    solid.rollback()
    return float(np.sum(f_int[3 * nodes]))


def run(material, controls, n_elements=1, degree=1, size=1.0, stretch=0.005, n_time_steps=10):
    """Load, unload and print the response at every saved time step."""
    print("=" * 60)
    print("Elastoplastic cube in uniaxial tension")
    print("=" * 60)

    mesh = make_cube_mesh(n_elements, degree, size)
    points = mesh.control_points
    print(f"\nMesh: {mesh}")
    print(f"  E = {material.youngs_modulus}, nu = {material.poissons_ratio}, "
          f"sigma_Y = {material.yield_stress}, H = {material.hardening_modulus}, "
          f"beta = {material.isotropic_fraction}")

    left = np.flatnonzero(np.isclose(points[:, 0], 0.0))
    right = np.flatnonzero(np.isclose(points[:, 0], size))
    bottom = np.flatnonzero(np.isclose(points[:, 1], 0.0))
    back = np.flatnonzero(np.isclose(points[:, 2], 0.0))
    supports = [
        DisplacementLoad(left, (0,), 0.0),
        DisplacementLoad(bottom, (1,), 0.0),
        DisplacementLoad(back, (2,), 0.0),
    ]
    load_steps = [
        LoadStep(supports + [DisplacementLoad(right, (0,), stretch * size)], n_time_steps),
        LoadStep(supports + [DisplacementLoad(right, (0,), -stretch * size)], n_time_steps),
    ]

    solid = ElastoplasticSolid(mesh, material)
    snapshots = {}
    area = size ** 2

    print(f"\n{'step':>6} {'load step':>10} {'strain':>12} {'stress':>12} {'plastic':>8}")
    print("-" * 52)

    def on_save(snapshot):
        snapshots[snapshot.time_step] = snapshot
        strain = snapshot.u[3 * right[0]] / size
        stress = face_reaction(solid, snapshot.u, right) / area
        plastic = np.max(snapshot.history["equivalent_plastic_strain"]) > 0
        print(f"{snapshot.time_step:>6} {snapshot.state.load_step:>10} "
              f"{strain:>12.6e} {stress:>12.6e} {str(plastic):>8}")

    stepper = AdaptiveLoadStepper(solid, load_steps, controls, on_save=on_save)
    u = stepper.run(np.zeros(solid.n_dof))

    residual_strain = u[3 * right[0]] / size
    print(f"\nCompleted after {stepper.time_step} time steps")
    print(f"Residual strain after unloading: {residual_strain:.6e}")

    if controls.restart_index is not None:
        if controls.restart_index not in snapshots:
            raise ValueError(f"No snapshot was saved at time step {controls.restart_index}")
        print(f"\nRestarting from time step {controls.restart_index}")
        restarted = ElastoplasticSolid(mesh, material)
        u_restart = AdaptiveLoadStepper(restarted, load_steps, controls).run(
            np.zeros(restarted.n_dof), snapshots[controls.restart_index])
        print(f"  Max difference to the full run: {np.max(np.abs(u_restart - u)):.3e}")

    return u


def main():
    parser = argparse.ArgumentParser(description="Elastoplastic cube in uniaxial tension")
    parser.add_argument("--config", help="JSON file with 'material' and 'solver' sections")
    parser.add_argument("--elements", type=int, default=1, help="Elements per direction")
    parser.add_argument("--degree", type=int, default=1, help="Basis degree")
    parser.add_argument("--stretch", type=float, default=0.005, help="Peak axial strain")
    parser.add_argument("--steps", type=int, default=10, help="Time steps per load step")
    parser.add_argument("--verbose", action="store_true", help="Log solver progress")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if args.config:
        material, controls = load_config(args.config)
    else:
        material = MaterialParameters(youngs_modulus=200.0e3, poissons_ratio=0.3,
                                      yield_stress=250.0, hardening_modulus=2.0e3,
                                      isotropic_fraction=0.5)
        controls = SolverControls(residual_tolerance=1.0e-8, save_frequency=2)

    run(material, controls, n_elements=args.elements, degree=args.degree,
        stretch=args.stretch, n_time_steps=args.steps)


if __name__ == "__main__":
    main()

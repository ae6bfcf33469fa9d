"""
Unit tests for the linear elastic bar.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal

from nlIGA.discretization.equation_map import EquationMap
from nlIGA.io.config import MaterialParameters, SolverControls
from nlIGA.solver.elasticity import LinearElasticBar, degradation
from nlIGA.solver.load_stepping import AdaptiveLoadStepper, DisplacementLoad, LoadStep
from nlIGA.solver.newton import NewtonRaphson

from conftest import bar_mesh


STEEL = MaterialParameters(youngs_modulus=200.0, area=2.0)


class TestLinearElasticBar:
    """Tests for the 1D momentum equation."""

    def test_prescribed_stretch(self):
        mesh = bar_mesh(n_elements=4, degree=2, length=3.0)
        bar = LinearElasticBar(mesh, STEEL)
        loads = [DisplacementLoad([0], [0], 0.0),
                 DisplacementLoad([mesh.n_control_points - 1], [0], 0.03)]
        controls = SolverControls(residual_tolerance=1e-9)

        u = AdaptiveLoadStepper(bar, [LoadStep(loads, 3)], controls).run(np.zeros(bar.n_dof))

        assert_array_almost_equal(bar.axial_stress(u), np.full((4, 3), 200.0 * 0.01))
        assert bar.strain_energy(u) == pytest.approx(0.5 * 200.0 * 2.0 * 0.01 ** 2 * 3.0)

    def test_single_element_without_unknowns(self):
        """Both ends prescribed: one check after the first solve."""
        bar = LinearElasticBar(bar_mesh(n_elements=1), STEEL)
        eq_map = EquationMap.build(bar.mesh, 1, [0, 1])
        result = NewtonRaphson(bar).solve(np.zeros(2), eq_map, np.array([0.0, 1.0]))

        assert result.iterations == 1
        assert_array_almost_equal(bar.axial_stress(result.u), [[200.0, 200.0]])

    def test_end_force(self):
        mesh = bar_mesh(n_elements=3, degree=3, length=2.0)
        bar = LinearElasticBar(mesh, STEEL)
        eq_map = EquationMap.build(mesh, 1, [0])
        f_external = np.zeros(bar.n_dof)
        f_external[-1] = 8.0
        controls = SolverControls(residual_tolerance=1e-9)

        result = NewtonRaphson(bar, controls).solve(np.zeros(bar.n_dof), eq_map,
                                                    f_external=f_external)
        # u(L) = P L / (E A)
        assert result.u[-1] == pytest.approx(8.0 * 2.0 / 400.0)
        assert bar.strain_energy(result.u) == pytest.approx(0.5 * 8.0 * result.u[-1])

    def test_uniform_degradation_softens(self):
        mesh = bar_mesh(n_elements=2, degree=2)
        bar = LinearElasticBar(mesh, STEEL, phase_field=np.full(mesh.n_control_points, 0.5))
        eq_map = EquationMap.build(mesh, 1, [0])
        K, _ = bar.assemble(np.zeros(bar.n_dof), eq_map)

        bar.set_phase_field(None)
        K_intact, _ = bar.assemble(np.zeros(bar.n_dof), eq_map)
        assert_array_almost_equal(K.toarray(), 0.25 * K_intact.toarray())

    def test_internal_force_is_linear(self):
        mesh = bar_mesh(n_elements=3, degree=2)
        bar = LinearElasticBar(mesh, STEEL)
        eq_map = EquationMap.build(mesh, 1)
        u = np.random.default_rng(0).normal(size=bar.n_dof)
        K, f = bar.assemble(u, eq_map)
        assert_array_almost_equal(f, K @ u)
        assert_array_almost_equal(K.toarray(), K.toarray().T)

    def test_degradation_function(self):
        g = degradation(np.array([0.5, 1.0]), np.array([2.0, 0.0]), alpha=0.5, length_scale=0.1)
        assert_array_almost_equal(g, [0.25 + 0.5 * 0.2 ** 4, 1.0])

    def test_phase_field_shape_checked(self):
        bar = LinearElasticBar(bar_mesh(2), STEEL)
        with pytest.raises(ValueError):
            bar.set_phase_field(np.ones(5))

    def test_needs_1d_mesh(self, cube_mesh):
        with pytest.raises(ValueError):
            LinearElasticBar(cube_mesh, STEEL)

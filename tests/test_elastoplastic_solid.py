"""
Tests for the 3D elastoplastic solid.
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose, assert_array_almost_equal

from nlIGA.discretization.equation_map import EquationMap
from nlIGA.io.config import MaterialParameters, SolverControls
from nlIGA.solver.load_stepping import AdaptiveLoadStepper, DisplacementLoad, LoadStep
from nlIGA.solver.plasticity import ElastoplasticSolid

from conftest import bar_mesh, unit_cube_mesh


E, NU, SIGMA_Y, H = 1000.0, 0.3, 1.0, 100.0


def uniaxial_loads(mesh, displacement):
    """Symmetry planes at x, y, z = 0 and a prescribed u_x on x = 1."""
    X = mesh.control_points
    return [
        DisplacementLoad(np.flatnonzero(np.isclose(X[:, 0], 0.0)), [0], 0.0),
        DisplacementLoad(np.flatnonzero(np.isclose(X[:, 1], 0.0)), [1], 0.0),
        DisplacementLoad(np.flatnonzero(np.isclose(X[:, 2], 0.0)), [2], 0.0),
        DisplacementLoad(np.flatnonzero(np.isclose(X[:, 0], 1.0)), [0], displacement),
    ]


def uniaxial_stress(strain):
    """Axial stress under monotone uniaxial loading, any isotropic fraction."""
    yield_strain = SIGMA_Y / E
    if strain <= yield_strain:
        return E * strain
    return SIGMA_Y + E * H / (E + H) * (strain - yield_strain)


class TestUniaxialTension:
    """Homogeneous uniaxial stress compared with the closed-form response."""

    @pytest.mark.parametrize("beta", [1.0, 0.5, 0.0])
    @pytest.mark.parametrize("degree", [1, 2])
    def test_hardening_curve(self, beta, degree):
        mesh = unit_cube_mesh(n_elements=1, degree=degree)
        material = MaterialParameters(E, NU, yield_stress=SIGMA_Y, hardening_modulus=H,
                                      isotropic_fraction=beta)
        solid = ElastoplasticSolid(mesh, material)
        controls = SolverControls(residual_tolerance=1e-10)

        axial = []
        strains = []

        def record(snapshot):
            strains.append(snapshot.u.reshape(-1, 3)[:, 0].max())
            axial.append(snapshot.history["stress"][..., 0].copy())

        load_step = LoadStep(uniaxial_loads(mesh, 0.005), 5)
        AdaptiveLoadStepper(solid, [load_step], controls, on_save=record).run(np.zeros(solid.n_dof))

        assert len(axial) == 5
        for strain, stress in zip(strains, axial):
            assert_allclose(stress, uniaxial_stress(strain), rtol=1e-8)

        # Lateral stresses vanish and lateral contraction is free
        final = solid.state.old["stress"]
        assert_allclose(final[..., 1:], 0.0, atol=1e-9)
        assert solid.state.old["equivalent_plastic_strain"].min() > 0.0

    def test_elastic_range(self, cube_mesh):
        solid = ElastoplasticSolid(cube_mesh, MaterialParameters(E, NU, yield_stress=SIGMA_Y))
        controls = SolverControls(residual_tolerance=1e-10)
        u = AdaptiveLoadStepper(solid, [LoadStep(uniaxial_loads(cube_mesh, 0.0005), 1)],
                                controls).run(np.zeros(24))

        assert not solid.is_plastic
        assert_allclose(solid.state.old["stress"][..., 0], 0.5, rtol=1e-10)
        # Lateral contraction -nu * eps
        lateral = u.reshape(8, 3)[np.isclose(cube_mesh.control_points[:, 1], 1.0), 1]
        assert_allclose(lateral, -NU * 0.0005, rtol=1e-10)


class TestTangent:
    """Consistent tangent of the assembled system."""

    def test_matches_finite_differences(self):
        mesh = unit_cube_mesh(n_elements=1, degree=2)
        material = MaterialParameters(E, NU, yield_stress=SIGMA_Y, hardening_modulus=H,
                                      isotropic_fraction=0.5)
        solid = ElastoplasticSolid(mesh, material)
        eq_map = EquationMap.build(mesh, 3)

        rng = np.random.default_rng(4)
        X = mesh.control_points
        u = (0.004 * X[:, [0]] * np.array([1.0, -0.3, -0.3]) + 1e-4 * rng.normal(size=X.shape)).ravel()

        K, _ = solid.assemble(u, eq_map)
        assert solid.is_plastic

        h = 1e-8
        fd = np.zeros((solid.n_dof, solid.n_dof))
        for j in range(solid.n_dof):
            step = np.zeros(solid.n_dof)
            step[j] = h
            _, f_plus = solid.assemble(u + step, eq_map)
            _, f_minus = solid.assemble(u - step, eq_map)
            fd[:, j] = (f_plus - f_minus) / (2.0 * h)

        assert_allclose(K.toarray(), fd, rtol=1e-4, atol=1e-3)

    def test_assembly_reads_committed_history_only(self, cube_mesh):
        solid = ElastoplasticSolid(cube_mesh, MaterialParameters(E, NU, yield_stress=SIGMA_Y))
        eq_map = EquationMap.build(cube_mesh, 3)
        u = 0.01 * np.tile([1.0, 0.0, 0.0], 8) * np.repeat(cube_mesh.control_points[:, 0], 3)

        _, first = solid.assemble(u, eq_map)
        _, second = solid.assemble(u, eq_map)
        assert_array_almost_equal(first, second)
        assert solid.is_plastic

        solid.rollback()
        assert not solid.is_plastic

    def test_needs_3d_mesh(self):
        with pytest.raises(ValueError):
            ElastoplasticSolid(bar_mesh(1), MaterialParameters())

"""
Unit tests for the J2 return mapping and material state storage.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_allclose

from nlIGA.io.config import MaterialParameters
from nlIGA.materials.plasticity import (
    J2Plasticity,
    MaterialPointState,
    MaterialState,
    SQRT_2_3,
    deviatoric_projector,
    elasticity_matrix,
    voigt_norm,
)


@pytest.fixture
def material():
    return MaterialParameters(youngs_modulus=1000.0, poissons_ratio=0.3, yield_stress=1.0,
                              hardening_modulus=100.0, isotropic_fraction=0.5)


@pytest.fixture
def plastic_strain():
    return np.array([0.003, -0.001, 0.0005, 0.001, -0.0008, 0.002])


class TestVoigt:
    """Tests for the Voigt helpers."""

    def test_elasticity_matrix(self):
        D = elasticity_matrix(1.0, 0.25)
        assert D[0, 0] == pytest.approx(1.2)
        assert D[0, 1] == pytest.approx(0.4)
        assert D[3, 3] == pytest.approx(0.4)
        assert D[0, 3] == 0.0
        assert_array_almost_equal(D, D.T)

    def test_deviatoric_projector_removes_volume(self):
        P = deviatoric_projector()
        assert_array_almost_equal(P @ np.array([1.0, 1.0, 1.0, 0.0, 0.0, 0.0]), 0.0)
        # Engineering shear maps to the tensor component
        assert_array_almost_equal(P @ np.array([0, 0, 0, 2.0, 0, 0]), [0, 0, 0, 1.0, 0, 0])

    def test_voigt_norm_counts_shear_twice(self):
        assert voigt_norm(np.array([0, 0, 0, 1.0, 0, 0])) == pytest.approx(np.sqrt(2.0))
        assert voigt_norm(np.array([3.0, 4.0, 0, 0, 0, 0])) == pytest.approx(5.0)


class TestReturnMapping:
    """Tests for J2Plasticity.update."""

    def test_elastic_step(self, material):
        model = J2Plasticity(material)
        strain = np.array([1e-4, 0, 0, 0, 0, 0])
        stress, tangent, state = model.update(strain, MaterialPointState())

        assert_array_almost_equal(stress, model.D @ strain)
        assert_array_almost_equal(tangent, model.D)
        assert state.equivalent_plastic_strain == 0.0
        assert_array_almost_equal(state.strain, strain)

    def test_plastic_step_returns_to_yield_surface(self, material, plastic_strain):
        model = J2Plasticity(material)
        stress, _, state = model.update(plastic_strain, MaterialPointState())

        assert state.equivalent_plastic_strain > 0.0
        assert model.yield_function(stress, state) == pytest.approx(0.0, abs=1e-10)
        # Plastic flow is isochoric
        assert np.sum(state.plastic_strain[:3]) == pytest.approx(0.0, abs=1e-14)

    def test_elastic_relation_holds_after_return(self, material, plastic_strain):
        model = J2Plasticity(material)
        stress, _, state = model.update(plastic_strain, MaterialPointState())
        assert_array_almost_equal(stress, model.D @ (plastic_strain - state.plastic_strain))

    def test_consistent_tangent_matches_finite_differences(self, material, plastic_strain):
        model = J2Plasticity(material)
        previous = MaterialPointState()
        _, tangent, _ = model.update(plastic_strain, previous)

        h = 1e-8
        fd = np.zeros((6, 6))
        for j in range(6):
            step = np.zeros(6)
            step[j] = h
            plus, _, _ = model.update(plastic_strain + step, previous)
            minus, _, _ = model.update(plastic_strain - step, previous)
            fd[:, j] = (plus - minus) / (2.0 * h)

        assert_allclose(tangent, fd, rtol=1e-5, atol=1e-4)

    def test_tangent_from_hardened_state(self, material, plastic_strain):
        """FD check starting from a committed plastic state with backstress."""
        model = J2Plasticity(material)
        _, _, previous = model.update(plastic_strain, MaterialPointState())
        strain = 1.5 * plastic_strain
        _, tangent, _ = model.update(strain, previous)

        h = 1e-8
        fd = np.zeros((6, 6))
        for j in range(6):
            step = np.zeros(6)
            step[j] = h
            plus, _, _ = model.update(strain + step, previous)
            minus, _, _ = model.update(strain - step, previous)
            fd[:, j] = (plus - minus) / (2.0 * h)

        assert_allclose(tangent, fd, rtol=1e-5, atol=1e-4)

    def test_update_does_not_modify_previous(self, material, plastic_strain):
        model = J2Plasticity(material)
        previous = MaterialPointState()
        first = model.update(plastic_strain, previous)
        second = model.update(plastic_strain, previous)

        assert previous.equivalent_plastic_strain == 0.0
        assert_array_almost_equal(previous.plastic_strain, 0.0)
        assert_array_almost_equal(first[0], second[0])
        assert_array_almost_equal(first[1], second[1])

    def test_continuity_across_yield_surface(self, material, plastic_strain):
        """Stress and plastic strain are continuous when the trial state crosses f = 0."""
        model = J2Plasticity(material)
        previous = MaterialPointState()
        # Scale the strain so that the trial stress lies exactly on the yield surface
        trial_dev = model.D @ plastic_strain
        trial_dev = trial_dev - np.mean(trial_dev[:3]) * np.array([1, 1, 1, 0, 0, 0])
        on_surface = plastic_strain * SQRT_2_3 * material.yield_stress / voigt_norm(trial_dev)

        below, _, state_below = model.update((1.0 - 1e-9) * on_surface, previous)
        above, tangent_above, state_above = model.update((1.0 + 1e-9) * on_surface, previous)

        assert_allclose(above, below, rtol=1e-7)
        assert_allclose(state_above.plastic_strain, state_below.plastic_strain, atol=1e-11)
        assert state_above.equivalent_plastic_strain > 0.0

        # The plastic tangent agrees with D on directions tangent to the yield surface
        xi = above - np.mean(above[:3]) * np.array([1, 1, 1, 0, 0, 0]) - state_above.backstress
        n = xi / voigt_norm(xi)
        direction = np.random.default_rng(2).normal(size=6)
        direction -= (n @ direction) / (n @ n) * n
        assert_allclose(tangent_above @ direction, model.D @ direction, rtol=1e-6, atol=1e-6)

    @pytest.mark.parametrize("factor", [0.2, 1.0])
    def test_zero_strain_increment_leaves_state_unchanged(self, material, plastic_strain, factor):
        model = J2Plasticity(material)
        stress, _, committed = model.update(factor * plastic_strain, MaterialPointState())
        again, _, state = model.update(committed.strain, committed)

        assert_allclose(again, stress, rtol=1e-12, atol=1e-14)
        assert state.equivalent_plastic_strain == pytest.approx(committed.equivalent_plastic_strain,
                                                                abs=1e-15)
        assert_array_almost_equal(state.plastic_strain, committed.plastic_strain)
        assert_array_almost_equal(state.backstress, committed.backstress)

    def test_equivalent_plastic_strain_is_monotone(self, material, plastic_strain):
        """Loading, unloading and reverse loading never decrease ep_bar."""
        model = J2Plasticity(material)
        state = MaterialPointState()
        history = []
        for factor in (0.5, 1.0, 1.5, 1.0, 0.0, -1.0, -2.0):
            _, _, state = model.update(factor * plastic_strain, state)
            history.append(state.equivalent_plastic_strain)
        assert np.all(np.diff(history) >= 0.0)
        assert history[-1] > history[2]

    def test_unloading_is_elastic(self, material, plastic_strain):
        model = J2Plasticity(material)
        _, _, state = model.update(plastic_strain, MaterialPointState())
        _, tangent, unloaded = model.update(0.9 * plastic_strain, state)

        assert_array_almost_equal(tangent, model.D)
        assert unloaded.equivalent_plastic_strain == state.equivalent_plastic_strain
        assert_array_almost_equal(unloaded.plastic_strain, state.plastic_strain)

    def test_isotropic_hardening_grows_yield_radius(self, plastic_strain):
        material = MaterialParameters(1000.0, 0.3, yield_stress=1.0, hardening_modulus=100.0,
                                      isotropic_fraction=1.0)
        model = J2Plasticity(material)
        _, _, state = model.update(plastic_strain, MaterialPointState())

        assert_array_almost_equal(state.backstress, 0.0)
        expected = SQRT_2_3 * (1.0 + 100.0 * state.equivalent_plastic_strain)
        assert model.yield_radius(state.equivalent_plastic_strain) == pytest.approx(expected)

    def test_kinematic_hardening_moves_backstress(self, plastic_strain):
        material = MaterialParameters(1000.0, 0.3, yield_stress=1.0, hardening_modulus=100.0,
                                      isotropic_fraction=0.0)
        model = J2Plasticity(material)
        stress, _, state = model.update(plastic_strain, MaterialPointState())

        assert voigt_norm(state.backstress) > 0.0
        assert model.yield_radius(state.equivalent_plastic_strain) == pytest.approx(SQRT_2_3)
        # Backstress is deviatoric
        assert np.sum(state.backstress[:3]) == pytest.approx(0.0, abs=1e-14)

    def test_perfect_plasticity_stress_on_surface(self, plastic_strain):
        material = MaterialParameters(1000.0, 0.3, yield_stress=1.0)
        model = J2Plasticity(material)
        stress, _, _ = model.update(plastic_strain, MaterialPointState())
        dev = stress - np.mean(stress[:3]) * np.array([1, 1, 1, 0, 0, 0])
        assert voigt_norm(dev) == pytest.approx(SQRT_2_3)


class TestMaterialState:
    """Tests for the two-generation history storage."""

    def test_trial_isolated_until_commit(self, material, plastic_strain):
        model = J2Plasticity(material)
        storage = MaterialState(2, 3)
        _, _, trial = model.update(plastic_strain, storage.committed(1, 2))
        storage.set_trial(1, 2, trial)

        assert storage.committed(1, 2).equivalent_plastic_strain == 0.0
        assert storage.trial(1, 2).equivalent_plastic_strain == trial.equivalent_plastic_strain

        storage.commit()
        assert storage.committed(1, 2).equivalent_plastic_strain == trial.equivalent_plastic_strain

    def test_rollback(self, material, plastic_strain):
        model = J2Plasticity(material)
        storage = MaterialState(1, 1)
        _, _, trial = model.update(plastic_strain, storage.committed(0, 0))
        storage.set_trial(0, 0, trial)
        storage.rollback()
        assert storage.trial(0, 0).equivalent_plastic_strain == 0.0

    def test_committed_is_a_copy(self):
        storage = MaterialState(1, 1)
        point = storage.committed(0, 0)
        point.stress[0] = 5.0
        assert storage.old["stress"][0, 0, 0] == 0.0

    def test_snapshot_and_restore(self, material, plastic_strain):
        model = J2Plasticity(material)
        storage = MaterialState(1, 2)
        _, _, trial = model.update(plastic_strain, storage.committed(0, 1))
        storage.set_trial(0, 1, trial)
        storage.commit()
        snapshot = storage.snapshot()

        restored = MaterialState(1, 2)
        restored.restore(snapshot)
        for name in snapshot:
            assert_array_almost_equal(restored.old[name], storage.old[name])
            assert_array_almost_equal(restored.current[name], storage.old[name])

        # Snapshot does not alias the live arrays
        storage.old["stress"][...] = 0.0
        assert np.any(snapshot["stress"] != 0.0)

    def test_restore_wrong_shape(self):
        snapshot = MaterialState(2, 2).snapshot()
        with pytest.raises(ValueError):
            MaterialState(1, 2).restore(snapshot)

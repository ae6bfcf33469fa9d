"""
Unit tests for material and solver configuration.
"""

import json
import math

import pytest

from nlIGA.io.config import MaterialParameters, SolverControls, load_config


class TestMaterialParameters:
    """Tests for MaterialParameters."""

    def test_defaults(self):
        material = MaterialParameters()
        assert material.youngs_modulus == 1.0
        assert math.isinf(material.yield_stress)
        assert material.fracture_toughness is None

    def test_moduli(self):
        material = MaterialParameters(youngs_modulus=260.0, poissons_ratio=0.3)
        assert material.shear_modulus == pytest.approx(100.0)
        assert material.bulk_modulus == pytest.approx(260.0 / 1.2)

    @pytest.mark.parametrize("entries", [
        {"youngs_modulus": 0.0},
        {"poissons_ratio": 0.5},
        {"area": -1.0},
        {"yield_stress": 0.0},
        {"hardening_modulus": -1.0},
        {"isotropic_fraction": 1.5},
        {"fracture_toughness": 0.0},
        {"length_scale": -0.1},
    ])
    def test_invalid(self, entries):
        with pytest.raises(ValueError):
            MaterialParameters(**entries)

    def test_from_dict_rejects_unknown(self):
        with pytest.raises(ValueError):
            MaterialParameters.from_dict({"young": 1.0})


class TestSolverControls:
    """Tests for SolverControls."""

    def test_defaults(self):
        controls = SolverControls()
        assert controls.max_newton_iterations == 20
        assert controls.newton_tolerance == 1e-8
        assert controls.restart_index is None
        assert controls.relative_residual_tolerance == 1e-12

    @pytest.mark.parametrize("entries", [
        {"max_newton_iterations": 0},
        {"newton_tolerance": 0.0},
        {"residual_tolerance": -1.0},
        {"relative_residual_tolerance": -1.0},
        {"max_load_steps": 0},
        {"save_frequency": 0},
        {"restart_index": -1},
        {"max_alternations": 0},
    ])
    def test_invalid(self, entries):
        with pytest.raises(ValueError):
            SolverControls(**entries)

    def test_immutable(self):
        controls = SolverControls()
        with pytest.raises(AttributeError):
            controls.save_frequency = 3


class TestLoadConfig:
    """Tests for reading JSON configuration files."""

    def test_load(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "material": {"youngs_modulus": 200.0e3, "poissons_ratio": 0.3, "yield_stress": 250.0},
            "solver": {"save_frequency": 5, "restart_index": 10},
        }))
        material, controls = load_config(str(path))

        assert material.youngs_modulus == 200.0e3
        assert material.yield_stress == 250.0
        assert controls.save_frequency == 5
        assert controls.restart_index == 10
        assert controls.max_newton_iterations == 20

    def test_missing_sections_take_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{}")
        material, controls = load_config(str(path))
        assert material == MaterialParameters()
        assert controls == SolverControls()

    def test_unknown_section(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"mesh": {}}))
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_unknown_entry(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"solver": {"tolerance": 1e-6}}))
        with pytest.raises(ValueError):
            load_config(str(path))

"""
Pytest configuration and shared fixtures for nlIGA tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nlIGA.discretization.knot_vector import make_uniform_knot_vector
from nlIGA.discretization.mesh import build_mesh


@pytest.fixture
def tolerance():
    """Default tolerance for floating point comparisons."""
    return 1e-12


@pytest.fixture
def loose_tolerance():
    """Looser tolerance for numerical integration tests."""
    return 1e-8


def unit_cube_mesh(n_elements=1, degree=1, size=1.0):
    """Tensor-product B-spline mesh of a cube [0, size]^3."""
    kv = make_uniform_knot_vector(n_elements, degree)
    n = kv.n_basis
    # Greville points place a uniform control net for open knot vectors
    greville = np.array([np.mean(kv.knots[i + 1:i + degree + 1]) if degree > 0 else 0.0
                         for i in range(n)]) * size
    points = np.array([[x, y, z] for z in greville for y in greville for x in greville])
    return build_mesh([kv, kv, kv], points)


def bar_mesh(n_elements=1, degree=1, length=1.0, start=0.0):
    """Straight 1D bar mesh on [start, start + length]."""
    kv = make_uniform_knot_vector(n_elements, degree)
    n = kv.n_basis
    greville = np.array([np.mean(kv.knots[i + 1:i + degree + 1]) for i in range(n)])
    return build_mesh([kv], start + length * greville)


@pytest.fixture
def cube_mesh():
    """Single trilinear element on the unit cube."""
    return unit_cube_mesh()

"""
Unit tests for global assembly and the partitioned linear solve.
"""

import pytest
import numpy as np
from scipy import sparse
from numpy.testing import assert_array_almost_equal

from nlIGA.discretization.equation_map import EquationMap
from nlIGA.exceptions import LinearSystemSingularError
from nlIGA.solver.assembly import Assembler
from nlIGA.solver.linear import LinearSystemSolver, row_scaling

from conftest import bar_mesh


def spring_chain(n_springs, stiffness=1.0):
    """Assembler holding a chain of unit springs."""
    assembler = Assembler(n_springs + 1)
    k = stiffness * np.array([[1.0, -1.0], [-1.0, 1.0]])
    for e in range(n_springs):
        assembler.add([e, e + 1], k, np.array([0.5, 0.5]))
    return assembler


class TestAssembler:
    """Tests for triplet accumulation."""

    def test_duplicates_summed(self):
        K = spring_chain(2).matrix()
        assert isinstance(K, sparse.csr_matrix)
        assert_array_almost_equal(K.toarray(), [[1, -1, 0], [-1, 2, -1], [0, -1, 1]])

    def test_vector(self):
        f = spring_chain(3).vector()
        assert_array_almost_equal(f, [0.5, 1.0, 1.0, 0.5])

    def test_order_independent(self):
        rng = np.random.default_rng(0)
        contributions = [(rng.choice(6, 3, replace=False), rng.normal(size=(3, 3)), rng.normal(size=3))
                         for _ in range(5)]
        forward = Assembler(6)
        backward = Assembler(6)
        for c in contributions:
            forward.add(*c)
        for c in reversed(contributions):
            backward.add(*c)
        assert_array_almost_equal(forward.matrix().toarray(), backward.matrix().toarray())
        assert_array_almost_equal(forward.vector(), backward.vector())

    def test_merge(self):
        first = Assembler(3)
        first.add([0, 1], np.ones((2, 2)), np.ones(2))
        second = Assembler(3)
        second.add([1, 2], 2 * np.ones((2, 2)), np.ones(2))
        first.merge(second)

        assert_array_almost_equal(first.matrix().toarray(), [[1, 1, 0], [1, 3, 2], [0, 2, 2]])
        assert_array_almost_equal(first.vector(), [1, 2, 1])

    def test_merge_size_mismatch(self):
        with pytest.raises(ValueError):
            Assembler(3).merge(Assembler(4))

    def test_shape_checked(self):
        with pytest.raises(ValueError):
            Assembler(3).add([0, 1], np.ones((3, 3)))
        with pytest.raises(ValueError):
            Assembler(3).add([0, 1], f_e=np.ones(3))

    def test_empty(self):
        assembler = Assembler(2)
        assert assembler.matrix().nnz == 0
        assert_array_almost_equal(assembler.vector(), [0, 0])


class TestLinearSystemSolver:
    """Tests for the partitioned direct solve."""

    def test_row_scaling(self):
        K = sparse.csr_matrix(np.array([[2.0, -4.0], [0.0, 0.0]]))
        assert_array_almost_equal(row_scaling(K), [0.25, 1.0])

    @pytest.mark.parametrize("precondition", [True, False])
    def test_prescribed_end_displacement(self, precondition):
        """Chain of springs fixed at 0, pulled to 1.0 at the far end."""
        mesh = bar_mesh(n_elements=4)
        K = spring_chain(4, stiffness=1e6).matrix()
        eq_map = EquationMap.build(mesh, 1, [0, 4])

        x = LinearSystemSolver(precondition).solve(K, np.zeros(5), eq_map, np.array([0.0, 1.0]))
        assert_array_almost_equal(x, [0.0, 0.25, 0.5, 0.75, 1.0])

    def test_load_on_free_end(self):
        mesh = bar_mesh(n_elements=2)
        K = spring_chain(2, stiffness=2.0).matrix()
        eq_map = EquationMap.build(mesh, 1, [0])
        x = LinearSystemSolver().solve(K, np.array([0.0, 0.0, 1.0]), eq_map, np.zeros(1))
        assert_array_almost_equal(x, [0.0, 0.5, 1.0])

    def test_all_known(self):
        mesh = bar_mesh(n_elements=1)
        eq_map = EquationMap.build(mesh, 1, [0, 1])
        x = LinearSystemSolver().solve(sparse.csr_matrix((2, 2)), np.zeros(2), eq_map,
                                       np.array([0.3, -0.2]))
        assert_array_almost_equal(x, [0.3, -0.2])

    def test_singular(self):
        """A control point without stiffness leaves a zero row and column."""
        mesh = bar_mesh(n_elements=2)
        assembler = Assembler(3)
        assembler.add([0, 1], np.array([[1.0, -1.0], [-1.0, 1.0]]))
        eq_map = EquationMap.build(mesh, 1, [0])
        with pytest.raises(LinearSystemSingularError):
            LinearSystemSolver().solve(assembler.matrix(), np.ones(3), eq_map, np.zeros(1))

    def test_wrong_known_values(self):
        mesh = bar_mesh(n_elements=2)
        eq_map = EquationMap.build(mesh, 1, [0])
        with pytest.raises(ValueError):
            LinearSystemSolver().solve(spring_chain(2).matrix(), np.zeros(3), eq_map, np.zeros(2))

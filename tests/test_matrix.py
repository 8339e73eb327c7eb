"""
Tests for Matrix Operations
===========================

Correlation matrices, power iteration with deflation, and varimax rotation.
"""

import numpy as np
import pytest

from psychometric_core import matrix


class TestBasicOperations:
    """Tests for multiply, transpose and vector statistics."""

    @pytest.mark.unit
    def test_multiply_matches_numpy(self):
        a = [[1, 2], [3, 4], [5, 6]]
        b = [[1, 0, 2], [0, 1, 3]]
        np.testing.assert_allclose(matrix.multiply(a, b), np.array(a) @ np.array(b))

    @pytest.mark.unit
    def test_multiply_rejects_mismatched_shapes(self):
        with pytest.raises(ValueError):
            matrix.multiply([[1, 2]], [[1, 2]])

    @pytest.mark.unit
    def test_transpose(self):
        result = matrix.transpose([[1, 2, 3], [4, 5, 6]])
        assert result.shape == (3, 2)
        assert result[2, 1] == 6

    @pytest.mark.unit
    def test_identity(self):
        np.testing.assert_array_equal(matrix.identity(3), np.eye(3))

    @pytest.mark.unit
    def test_correlation_of_constant_vector_is_zero(self):
        assert matrix.correlation([2, 2, 2, 2], [1, 2, 3, 4]) == 0.0

    @pytest.mark.unit
    def test_covariance_uses_sample_denominator(self):
        x = [1.0, 2.0, 3.0, 4.0]
        y = [2.0, 4.0, 6.0, 9.0]
        assert matrix.covariance(x, y) == pytest.approx(np.cov(x, y, ddof=1)[0, 1])

    @pytest.mark.unit
    def test_vector_length_mismatch(self):
        with pytest.raises(ValueError):
            matrix.correlation([1, 2, 3], [1, 2])


class TestCorrelationMatrix:
    """Tests for correlation_matrix() and covariance_matrix()."""

    def test_matches_numpy_corrcoef(self, two_factor_data):
        result = matrix.correlation_matrix(two_factor_data)
        np.testing.assert_allclose(result, np.corrcoef(two_factor_data, rowvar=False), atol=1e-10)

    def test_symmetric_with_unit_diagonal(self, random_likert_data):
        result = matrix.correlation_matrix(random_likert_data)
        np.testing.assert_allclose(result, result.T)
        np.testing.assert_allclose(np.diag(result), 1.0)

    def test_zero_variance_item_correlates_zero(self):
        data = [[1, 3, 2], [2, 3, 4], [3, 3, 5], [4, 3, 1]]
        result = matrix.correlation_matrix(data)

        assert not np.any(np.isnan(result))
        assert result[1, 0] == 0.0
        assert result[1, 2] == 0.0
        assert result[1, 1] == 1.0

    def test_input_not_mutated(self):
        data = [[1, 2], [3, 5], [4, 4]]
        matrix.correlation_matrix(data)
        assert data == [[1, 2], [3, 5], [4, 4]]

    def test_covariance_matrix_matches_numpy(self, single_factor_data):
        result = matrix.covariance_matrix(single_factor_data)
        np.testing.assert_allclose(result, np.cov(single_factor_data, rowvar=False), atol=1e-10)


class TestPowerIteration:
    """Tests for power_iteration()."""

    def test_dominant_eigenvalue(self, random_orthogonal):
        q = random_orthogonal(4, seed=1)
        a = q @ np.diag([5.0, 3.0, 1.5, 0.5]) @ q.T

        pair = matrix.power_iteration(a, rng=0)

        assert pair.value == pytest.approx(5.0, abs=1e-8)
        assert pair.converged
        assert np.linalg.norm(pair.vector) == pytest.approx(1.0)
        assert abs(pair.vector @ q[:, 0]) == pytest.approx(1.0, abs=1e-4)

    def test_non_convergence_reported(self, random_orthogonal):
        q = random_orthogonal(4, seed=2)
        a = q @ np.diag([5.0, 4.9, 1.0, 0.5]) @ q.T

        pair = matrix.power_iteration(a, max_iter=1, rng=0)

        assert not pair.converged
        assert pair.iterations == 1
        assert pair.delta > 0

    def test_zero_matrix(self):
        pair = matrix.power_iteration(np.zeros((3, 3)), rng=0)
        assert pair.value == 0.0
        assert pair.converged

    def test_same_seed_same_result(self, random_orthogonal):
        q = random_orthogonal(5, seed=3)
        a = q @ np.diag([4.0, 2.0, 1.0, 0.5, 0.1]) @ q.T

        first = matrix.power_iteration(a, max_iter=5, rng=123)
        second = matrix.power_iteration(a, max_iter=5, rng=123)

        assert first.value == second.value
        np.testing.assert_array_equal(first.vector, second.vector)

    def test_rejects_non_square(self):
        with pytest.raises(ValueError):
            matrix.power_iteration(np.ones((2, 3)))


class TestEigenDecomposition:
    """Tests for eigen_decomposition() with deflation."""

    def test_matches_numpy_eigvalsh(self, random_orthogonal):
        q = random_orthogonal(5, seed=4)
        expected = np.array([6.0, 3.0, 1.5, 0.75, 0.25])
        a = q @ np.diag(expected) @ q.T

        result = matrix.eigen_decomposition(a, rng=0)

        assert len(result) == 5
        np.testing.assert_allclose(result.values, expected, atol=1e-6)
        assert result.vectors.shape == (5, 5)

    def test_top_k_only(self, random_orthogonal):
        q = random_orthogonal(4, seed=5)
        a = q @ np.diag([4.0, 2.0, 1.0, 0.5]) @ q.T

        result = matrix.eigen_decomposition(a, k=2, rng=0)

        assert len(result) == 2
        np.testing.assert_allclose(result.values, [4.0, 2.0], atol=1e-6)

    def test_stops_at_numerically_zero_eigenvalue(self):
        result = matrix.eigen_decomposition(np.ones((4, 4)), rng=0)

        assert len(result) == 1
        assert result.values[0] == pytest.approx(4.0)
        np.testing.assert_allclose(np.abs(result.vectors[:, 0]), 0.5, atol=1e-8)

    def test_ordered_by_magnitude(self, random_likert_data):
        r = matrix.correlation_matrix(random_likert_data)
        values = matrix.eigen_decomposition(r, rng=0).values
        assert np.all(np.diff(np.abs(values)) <= 1e-12)

    def test_eigenvectors_oriented_non_negative_sum(self, two_factor_data):
        r = matrix.correlation_matrix(two_factor_data)
        vectors = matrix.eigen_decomposition(r, k=2, rng=0).vectors
        assert np.all(vectors.sum(axis=0) >= 0)

    def test_negative_k_rejected(self):
        with pytest.raises(ValueError):
            matrix.eigen_decomposition(np.eye(3), k=-1)


class TestVarimax:
    """Tests for varimax()."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_preserves_communalities(self, seed):
        loadings = np.random.default_rng(seed).uniform(-1, 1, size=(10, 3))

        result = matrix.varimax(loadings)

        np.testing.assert_allclose(
            np.sum(result.loadings ** 2, axis=1),
            np.sum(loadings ** 2, axis=1),
            atol=1e-10,
        )

    @pytest.mark.parametrize("normalize", [False, True])
    def test_rotation_is_orthogonal(self, normalize):
        loadings = np.random.default_rng(9).uniform(-1, 1, size=(8, 3))

        result = matrix.varimax(loadings, normalize=normalize)

        np.testing.assert_allclose(result.rotation.T @ result.rotation, np.eye(3), atol=1e-10)
        np.testing.assert_allclose(loadings @ result.rotation, result.loadings, atol=1e-10)
        np.testing.assert_allclose(
            np.sum(result.loadings ** 2, axis=1),
            np.sum(loadings ** 2, axis=1),
            atol=1e-10,
        )

    def test_does_not_decrease_criterion(self):
        loadings = np.random.default_rng(10).uniform(-1, 1, size=(12, 3))
        result = matrix.varimax(loadings)
        assert matrix.varimax_criterion(result.loadings) >= matrix.varimax_criterion(loadings) - 1e-12

    def test_recovers_simple_structure(self):
        simple = np.array([[0.8, 0.0], [0.7, 0.0], [0.75, 0.0],
                           [0.0, 0.8], [0.0, 0.7], [0.0, 0.75]])
        angle = np.pi / 6
        turn = np.array([[np.cos(angle), -np.sin(angle)], [np.sin(angle), np.cos(angle)]])

        result = matrix.varimax(simple @ turn)

        primary = np.argmax(np.abs(result.loadings), axis=1)
        assert len(set(primary[:3])) == 1
        assert len(set(primary[3:])) == 1
        assert primary[0] != primary[3]
        np.testing.assert_allclose(np.sort(np.abs(result.loadings).max(axis=1)),
                                   np.sort([0.8, 0.7, 0.75, 0.8, 0.7, 0.75]), atol=1e-4)

    def test_columns_have_non_negative_sums(self):
        loadings = -np.random.default_rng(12).uniform(0, 1, size=(6, 2))
        result = matrix.varimax(loadings)
        assert np.all(result.loadings.sum(axis=0) >= 0)

    def test_single_factor_unchanged(self):
        loadings = np.array([[0.5], [0.6], [0.7]])
        result = matrix.varimax(loadings)
        np.testing.assert_array_equal(result.loadings, loadings)
        assert result.iterations == 0

    def test_reports_sweeps(self):
        loadings = np.random.default_rng(13).uniform(-1, 1, size=(8, 3))
        result = matrix.varimax(loadings, max_iter=1)
        assert result.iterations == 1
        assert not result.converged

    def test_input_not_mutated(self):
        loadings = np.random.default_rng(14).uniform(-1, 1, size=(6, 2))
        original = loadings.copy()
        matrix.varimax(loadings)
        np.testing.assert_array_equal(loadings, original)

"""
Tests for the PCA module.
"""

import pytest
import numpy as np
import pandas as pd
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from geochemmath.math.pca import (
    PCAResult, normalize_vector, proj_vec, orthogonalize, standardize,
    covariance_matrix, power_iteration, eigen_decomposition,
    explained_variance, component_count, perform_pca
)
from geochemmath.math.errors import (
    InsufficientSamplesError, InsufficientVariablesError, PCAInputError
)


def correlated_rows(n=20, seed=0):
    """Rows with two correlated variables and one independent one."""
    rng = np.random.RandomState(seed)
    base = rng.randn(n)
    rows = []
    for i in range(n):
        rows.append({
            'SiO2': 50 + 5 * base[i] + 0.5 * rng.randn(),
            'Al2O3': 15 - 2 * base[i] + 0.3 * rng.randn(),
            'MgO': 4 + rng.randn(),
        })
    return rows


class TestPCAUtils:
    """Tests for the PCA utility functions."""

    def test_normalize_vector(self):
        """Test normalizing a vector to unit length."""
        v = np.array([3.0, 4.0])
        normalized = normalize_vector(v)

        assert np.isclose(np.linalg.norm(normalized), 1.0)
        assert np.isclose(normalized[0] / normalized[1], v[0] / v[1])

        zero_vec = np.zeros(3)
        assert np.array_equal(normalize_vector(zero_vec), zero_vec)

    def test_proj_vec(self):
        """Test projecting one vector onto another."""
        u = np.array([1.0, 0.0])
        v = np.array([3.0, 4.0])

        assert np.allclose(proj_vec(u, v), [3.0, 0.0])
        assert np.array_equal(proj_vec(np.zeros(2), v), np.zeros(2))

    def test_orthogonalize(self):
        """Test removing components along a basis."""
        v = np.array([3.0, 4.0, 5.0])
        basis = [np.array([1.0, 0.0, 0.0]), np.array([0.0, 1.0, 0.0])]

        assert np.allclose(orthogonalize(v, basis), [0.0, 0.0, 5.0])

    def test_standardize(self):
        """Test scaling columns to mean 0 and sample sd 1."""
        data = np.array([[1.0, 5.0], [2.0, 5.0], [3.0, 5.0], [4.0, 5.0]])
        standardized, means, stds = standardize(data)

        assert np.allclose(means, [2.5, 5.0])
        assert np.allclose(standardized[:, 0].mean(), 0.0)
        assert np.isclose(standardized[:, 0].std(ddof=1), 1.0)
        # constant column becomes zeros
        assert np.allclose(standardized[:, 1], 0.0)
        assert stds[1] == 0.0

    def test_covariance_of_standardized_is_correlation(self):
        """Test that the covariance of standardized data is the correlation matrix."""
        rng = np.random.RandomState(1)
        data = rng.randn(30, 3)
        data[:, 1] += data[:, 0]
        standardized, _, _ = standardize(data)

        assert np.allclose(covariance_matrix(standardized), np.corrcoef(data, rowvar=False))


class TestEigen:
    """Tests for the eigen-decomposition."""

    def test_power_iteration(self):
        """Test the dominant eigenpair of a simple matrix."""
        matrix = np.array([[2.0, 1.0], [1.0, 2.0]])
        eigval, vec = power_iteration(matrix, iters=200, start_vector=np.array([1.0, 0.0]))

        assert np.isclose(eigval, 3.0)
        assert np.isclose(abs(vec[0]), abs(vec[1]), atol=1e-4)

    def test_eigh_sorted_and_oriented(self):
        """Test descending eigenvalues and deterministic signs."""
        matrix = np.array([[4.0, 1.0, 0.0], [1.0, 3.0, 0.0], [0.0, 0.0, 1.0]])
        eigvals, eigvecs = eigen_decomposition(matrix)

        expected = [(7 + np.sqrt(5)) / 2, (7 - np.sqrt(5)) / 2, 1.0]
        assert np.allclose(eigvals, expected)

        for j in range(eigvecs.shape[1]):
            pivot = np.argmax(np.abs(eigvecs[:, j]))
            assert eigvecs[pivot, j] > 0

    def test_power_solver_matches_eigh(self):
        """Test that both solvers agree."""
        matrix = np.array([[4.0, 1.0, 0.0], [1.0, 3.0, 0.0], [0.0, 0.0, 1.0]])
        eigh_vals, eigh_vecs = eigen_decomposition(matrix, 'eigh')
        power_vals, power_vecs = eigen_decomposition(matrix, 'power', iters=500, random_state=0)

        assert np.allclose(eigh_vals, power_vals, atol=1e-6)
        assert np.allclose(eigh_vecs, power_vecs, atol=1e-3)

    def test_unknown_solver(self):
        with pytest.raises(ValueError):
            eigen_decomposition(np.eye(2), 'svd-ish')

    def test_explained_variance(self):
        """Test percentages over all eigenvalues."""
        explained, cumulative = explained_variance(np.array([3.0, 1.0]), 2)
        assert np.allclose(explained, [75.0, 25.0])
        assert np.allclose(cumulative, [75.0, 100.0])

        explained, cumulative = explained_variance(np.array([2.0, 1.0, 1.0]), 1)
        assert np.allclose(explained, [50.0])

        explained, _ = explained_variance(np.array([0.0, 0.0]), 2)
        assert explained == [0.0, 0.0]

    def test_component_count(self):
        """Test the component cap."""
        assert component_count(None, 5, 10) == 2
        assert component_count(3, 5, 10) == 3
        assert component_count(8, 5, 10) == 5
        assert component_count(None, 5, 2) == 1

        with pytest.raises(ValueError):
            component_count(0, 5, 10)


class TestPerformPCA:
    """Tests for the full PCA run."""

    def test_result_shapes(self):
        """Test the shapes of the PCA output."""
        rows = correlated_rows()
        result = perform_pca(rows, ['SiO2', 'Al2O3', 'MgO'], random_state=42)

        assert isinstance(result, PCAResult)
        assert result.n_components == 2
        assert len(result.eigenvalues) == 2
        assert np.array(result.loadings).shape == (2, 3)
        assert np.array(result.scores).shape == (20, 2)
        assert len(result.clusters) == 20
        assert result.row_indices == list(range(20))
        assert result.excluded_rows == []

    def test_explained_variance_properties(self):
        """Test explained variance bounds and monotone cumulative sums."""
        rows = correlated_rows()
        result = perform_pca(rows, ['SiO2', 'Al2O3', 'MgO'], n_components=3, random_state=0)

        assert all(0 <= v <= 100 for v in result.explained_variance)
        assert all(b >= a for a, b in zip(result.cumulative_variance, result.cumulative_variance[1:]))
        assert np.isclose(result.cumulative_variance[-1], 100.0)
        # correlation matrix eigenvalues sum to the variable count
        assert np.isclose(sum(result.eigenvalues), 3.0)

    def test_loadings_are_unit_vectors(self):
        rows = correlated_rows()
        result = perform_pca(rows, ['SiO2', 'Al2O3', 'MgO'], random_state=0)

        for loading in result.loadings:
            assert np.isclose(np.linalg.norm(loading), 1.0)

    def test_first_component_captures_correlated_pair(self):
        """Test that PC1 loads on the correlated oxides with opposite signs."""
        rows = correlated_rows(n=50)
        result = perform_pca(rows, ['SiO2', 'Al2O3', 'MgO'], random_state=0)
        pc1 = result.loadings[0]

        assert abs(pc1[0]) > abs(pc1[2])
        assert abs(pc1[1]) > abs(pc1[2])
        assert np.sign(pc1[0]) != np.sign(pc1[1])

    def test_perfectly_correlated_pair(self):
        """Test a rank-one correlation matrix."""
        rows = [{'A': a, 'B': 2 * a} for a in [1.0, 2.0, 3.0, 4.0, 5.0]]
        result = perform_pca(rows, ['A', 'B'], random_state=0)

        assert np.allclose(result.eigenvalues, [2.0, 0.0], atol=1e-9)
        assert np.allclose(result.explained_variance, [100.0, 0.0], atol=1e-7)

    def test_missing_row_gets_minus_one(self):
        """Test that an excluded row is labelled -1."""
        rows = [
            {'A': 1, 'B': 2},
            {'A': 2, 'B': None},
            {'A': 3, 'B': 5},
            {'A': 4, 'B': 9},
            {'A': 5, 'B': 11},
        ]
        result = perform_pca(rows, ['A', 'B'], random_state=0)

        assert len(result.clusters) == 5
        assert result.clusters[1] == -1
        assert result.excluded_rows == [1]
        assert result.row_indices == [0, 2, 3, 4]
        assert len(result.scores) == 4
        for idx in [0, 2, 3, 4]:
            assert 0 <= result.clusters[idx] < result.n_clusters

    def test_fixed_seed_is_deterministic(self):
        """Test that the same seed reproduces the clusters."""
        rows = correlated_rows(n=40, seed=3)
        variables = ['SiO2', 'Al2O3', 'MgO']

        first = perform_pca(rows, variables, random_state=123)
        second = perform_pca(rows, variables, random_state=123)

        assert first.clusters == second.clusters
        assert np.allclose(first.scores, second.scores)

    def test_single_component(self):
        """Test clustering when only PC1 is retained."""
        rows = correlated_rows()
        result = perform_pca(rows, ['SiO2', 'Al2O3', 'MgO'], n_components=1, random_state=0)

        assert result.n_components == 1
        assert np.array(result.scores).shape == (20, 1)
        assert all(0 <= c < result.n_clusters for c in result.clusters)

    def test_power_solver(self):
        """Test that the power solver reproduces the eigh eigenvalues."""
        rows = correlated_rows()
        variables = ['SiO2', 'Al2O3', 'MgO']
        eigh = perform_pca(rows, variables, random_state=0)
        power = perform_pca(rows, variables, random_state=0, eigen_solver='power')

        assert np.allclose(eigh.eigenvalues, power.eigenvalues, atol=1e-6)

    def test_dataframe_input(self):
        df = pd.DataFrame(correlated_rows())
        result = perform_pca(df, ['SiO2', 'Al2O3'], random_state=0)

        assert len(result.clusters) == 20

    def test_insufficient_samples(self):
        """Test that sparse data raises with per-variable counts."""
        rows = [
            {'A': 1, 'B': 2},
            {'A': 2, 'B': None},
            {'A': 3, 'B': 'n.d.'},
            {'A': 4, 'B': 8},
        ]
        with pytest.raises(InsufficientSamplesError) as excinfo:
            perform_pca(rows, ['A', 'B'])

        error = excinfo.value
        assert error.valid_counts == {'A': 4, 'B': 2}
        assert error.n_total == 4
        assert error.n_valid == 2
        assert 'B: 2/4' in str(error)
        assert isinstance(error, PCAInputError)
        assert isinstance(error, ValueError)

    def test_insufficient_variables(self):
        rows = correlated_rows()
        with pytest.raises(InsufficientVariablesError):
            perform_pca(rows, ['SiO2'])

    def test_to_dict(self):
        rows = correlated_rows()
        result = perform_pca(rows, ['SiO2', 'Al2O3', 'MgO'], random_state=0).to_dict()

        assert result['variable_names'] == ['SiO2', 'Al2O3', 'MgO']
        assert len(result['clusters']) == 20
        assert isinstance(result['loadings'][0], list)

"""
PCA (Principal Component Analysis) for geochemical tables.

This module cleans the requested variables, standardizes them, and
eigen-decomposes their covariance (the correlation matrix of the raw
values). Scores on the first two components are then clustered with
K-means, and the cluster labels are spread back over the original rows.
"""

import logging
import time
import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from geochemmath.math.clusters import (
    RandomStateLike, as_random_state, find_optimal_k, kmeans, silhouette
)
from geochemmath.math.errors import InsufficientSamplesError, InsufficientVariablesError
from geochemmath.math.sample_matrix import Rows, SampleMatrix

logger = logging.getLogger(__name__)

MIN_SAMPLES = 3
MIN_VARIABLES = 2
DEFAULT_COMPONENTS = 2
EIGEN_SOLVERS = ('eigh', 'power')


@dataclass
class PCAResult:
    """Output of perform_pca. Lists are plain Python for easy serialization."""
    variable_names: List[str]
    n_components: int
    eigenvalues: List[float]
    explained_variance: List[float]
    cumulative_variance: List[float]
    loadings: List[List[float]]
    scores: List[List[float]]
    # one entry per original row, -1 for rows dropped during cleaning
    clusters: List[int]
    n_clusters: int = 0
    row_indices: List[int] = field(default_factory=list)
    excluded_rows: List[int] = field(default_factory=list)
    means: List[float] = field(default_factory=list)
    stds: List[float] = field(default_factory=list)
    silhouette: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'variable_names': list(self.variable_names),
            'n_components': self.n_components,
            'eigenvalues': list(self.eigenvalues),
            'explained_variance': list(self.explained_variance),
            'cumulative_variance': list(self.cumulative_variance),
            'loadings': [list(row) for row in self.loadings],
            'scores': [list(row) for row in self.scores],
            'clusters': list(self.clusters),
            'n_clusters': self.n_clusters,
            'row_indices': list(self.row_indices),
            'excluded_rows': list(self.excluded_rows),
            'means': list(self.means),
            'stds': list(self.stds),
            'silhouette': self.silhouette
        }


def normalize_vector(v: np.ndarray) -> np.ndarray:
    """
    Normalize a vector to unit length.

    Args:
        v: Vector to normalize

    Returns:
        Normalized vector
    """
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm


def proj_vec(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """
    Project vector v onto vector u.

    Args:
        u: Vector to project onto
        v: Vector to project

    Returns:
        Projection of v onto u
    """
    if np.dot(u, u) == 0:
        return np.zeros_like(v)
    return np.dot(u, v) / np.dot(u, u) * u


def orthogonalize(v: np.ndarray, basis: Sequence[np.ndarray]) -> np.ndarray:
    """Remove the components of v along each vector in basis."""
    for b in basis:
        v = v - proj_vec(b, v)
    return v


def standardize(data: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Scale each column to mean 0 and sample standard deviation 1.

    Constant columns become all zeros.

    Args:
        data: Samples x variables

    Returns:
        Tuple of (standardized data, column means, column standard deviations)
    """
    means = data.mean(axis=0)
    stds = data.std(axis=0, ddof=1) if data.shape[0] > 1 else np.zeros(data.shape[1])
    safe = np.where(stds > 0, stds, 1.0)
    standardized = np.where(stds > 0, (data - means) / safe, 0.0)
    return standardized, means, stds


def covariance_matrix(standardized: np.ndarray) -> np.ndarray:
    """Sample covariance of already centered columns, (X^T X) / (n - 1)."""
    n_samples = standardized.shape[0]
    return standardized.T @ standardized / (n_samples - 1)


def power_iteration(matrix: np.ndarray,
                   iters: int = 100,
                   start_vector: Optional[np.ndarray] = None,
                   found: Optional[Sequence[np.ndarray]] = None,
                   tol: float = 1e-10) -> Tuple[float, np.ndarray]:
    """
    Find the dominant eigenpair of a symmetric matrix.

    The iterate is kept orthogonal to ``found``, so repeated calls walk down
    the spectrum.

    Args:
        matrix: Symmetric matrix
        iters: Maximum number of iterations
        start_vector: Initial vector (defaults to ones)
        found: Eigenvectors already extracted
        tol: Convergence tolerance on the eigenvalue

    Returns:
        Tuple of (eigenvalue, unit eigenvector)
    """
    n = matrix.shape[0]
    found = list(found or [])

    vec = np.ones(n) if start_vector is None else np.array(start_vector, dtype=float)
    vec = normalize_vector(orthogonalize(vec, found))
    if np.linalg.norm(vec) == 0:
        # start vector lay inside the found subspace; take any free direction
        for i in range(n):
            candidate = normalize_vector(orthogonalize(np.eye(n)[i], found))
            if np.linalg.norm(candidate) > 1e-8:
                vec = candidate
                break

    eigval = float(vec @ matrix @ vec)
    for _ in range(iters):
        product = orthogonalize(matrix @ vec, found)
        norm = np.linalg.norm(product)
        if norm < 1e-12:
            # remaining spectrum is zero along this direction
            eigval = 0.0
            break

        vec = product / norm
        new_eigval = float(vec @ matrix @ vec)
        if abs(new_eigval - eigval) < tol:
            eigval = new_eigval
            break
        eigval = new_eigval

    return eigval, vec


def power_iteration_eigen(matrix: np.ndarray,
                          iters: int = 100,
                          random_state: RandomStateLike = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    All eigenpairs of a symmetric matrix by repeated power iteration.

    Args:
        matrix: Symmetric matrix
        iters: Iterations per eigenpair
        random_state: Source of the random start vectors

    Returns:
        Tuple of (eigenvalues, eigenvectors as columns)
    """
    rng = as_random_state(random_state)
    n = matrix.shape[0]
    values = []
    vectors = []
    for _ in range(n):
        eigval, vec = power_iteration(matrix, iters, rng.randn(n), vectors)
        values.append(eigval)
        vectors.append(vec)
    return np.array(values), np.array(vectors).T


def eigen_decomposition(matrix: np.ndarray,
                        solver: str = 'eigh',
                        iters: int = 100,
                        random_state: RandomStateLike = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Eigenvalues (descending) and eigenvectors (columns) of a covariance matrix.

    Tiny negative eigenvalues from round-off are clipped to 0. Each
    eigenvector is oriented so its largest-magnitude entry is positive.

    Args:
        matrix: Symmetric positive semi-definite matrix
        solver: 'eigh' (LAPACK) or 'power' (power iteration)
        iters: Iterations per eigenpair for the power solver
        random_state: Start vectors for the power solver

    Returns:
        Tuple of (eigenvalues, eigenvectors)
    """
    if solver == 'eigh':
        eigvals, eigvecs = np.linalg.eigh(matrix)
    elif solver == 'power':
        eigvals, eigvecs = power_iteration_eigen(matrix, iters, random_state)
    else:
        raise ValueError(f"Unknown eigen solver: {solver}")

    order = np.argsort(eigvals)[::-1]
    eigvals = np.clip(eigvals[order], 0.0, None)
    eigvecs = eigvecs[:, order]

    for j in range(eigvecs.shape[1]):
        pivot = np.argmax(np.abs(eigvecs[:, j]))
        if eigvecs[pivot, j] < 0:
            eigvecs[:, j] = -eigvecs[:, j]

    return eigvals, eigvecs


def explained_variance(eigenvalues: np.ndarray, n_components: int) -> Tuple[List[float], List[float]]:
    """
    Percent of total variance per retained component, and its running sum.

    The total is taken over all eigenvalues, not only the retained ones.
    """
    total = float(np.sum(eigenvalues))
    if total <= 0:
        explained = [0.0] * n_components
    else:
        explained = [float(v / total * 100) for v in eigenvalues[:n_components]]
    cumulative = [float(c) for c in np.cumsum(explained)]
    return explained, cumulative


def component_count(requested: Optional[int], n_variables: int, n_samples: int) -> int:
    """
    Number of components to retain.

    min(requested or 2, variable count, sample count - 1)
    """
    if requested is not None and requested < 1:
        raise ValueError(f"n_components must be at least 1, got {requested}")
    wanted = DEFAULT_COMPONENTS if requested is None else requested
    return min(wanted, n_variables, n_samples - 1)


def insufficient_samples_message(smat: SampleMatrix) -> str:
    return (
        "Not enough valid samples for PCA: "
        f"{smat.n_rows} rows have a value for every variable, at least {MIN_SAMPLES} needed.\n"
        f"{smat.describe_validity()}\n"
        "Choose variables with fewer missing values or check for non-numeric cells."
    )


def perform_pca(rows: Rows,
                variable_names: Sequence[str],
                n_components: Optional[int] = None,
                random_state: RandomStateLike = None,
                max_k: int = 6,
                max_iters: int = 100,
                eigen_solver: str = 'eigh') -> PCAResult:
    """
    Run PCA on a dataset and cluster the samples on (PC1, PC2).

    Args:
        rows: Dataset rows (list of mappings or DataFrame)
        variable_names: Ordered variables to analyze
        n_components: Components to retain (default 2)
        random_state: Seed for the clustering and the power solver
        max_k: Upper bound for the cluster count search
        max_iters: K-means iteration bound
        eigen_solver: 'eigh' or 'power'

    Returns:
        PCAResult

    Raises:
        InsufficientVariablesError: if fewer than 2 variables are requested
        InsufficientSamplesError: if fewer than 3 rows have every variable
    """
    start_time = time.time()
    variable_names = list(variable_names)
    smat = SampleMatrix(rows, variable_names)

    if len(variable_names) < MIN_VARIABLES:
        raise InsufficientVariablesError(
            f"PCA needs at least {MIN_VARIABLES} variables, got {len(variable_names)}",
            smat.valid_counts, smat.n_total, smat.n_rows
        )

    if smat.n_rows < MIN_SAMPLES:
        raise InsufficientSamplesError(
            insufficient_samples_message(smat),
            smat.valid_counts, smat.n_total, smat.n_rows
        )

    if smat.excluded_rows:
        logger.info(f"PCA excluded {len(smat.excluded_rows)} of {smat.n_total} rows with missing values")

    rng = as_random_state(random_state)
    standardized, means, stds = standardize(smat.values)
    cov = covariance_matrix(standardized)
    eigvals, eigvecs = eigen_decomposition(cov, eigen_solver, random_state=rng)

    n_comps = component_count(n_components, len(variable_names), smat.n_rows)
    retained = eigvecs[:, :n_comps]

    scores = standardized @ retained
    explained, cumulative = explained_variance(eigvals, n_comps)

    # cluster on the PC1/PC2 plane only
    plane = np.zeros((scores.shape[0], 2))
    plane[:, :min(2, n_comps)] = scores[:, :2]

    k = find_optimal_k(plane, max_k=max_k, max_iters=max_iters, random_state=rng)
    labels = kmeans(plane, k, max_iters=max_iters, random_state=rng)
    quality = silhouette(plane, labels)

    elapsed = time.time() - start_time
    logger.info(
        f"PCA on {smat.n_rows} samples x {len(variable_names)} variables: "
        f"{n_comps} components, k={k}, {elapsed:.3f}s"
    )

    return PCAResult(
        variable_names=variable_names,
        n_components=n_comps,
        eigenvalues=[float(v) for v in eigvals[:n_comps]],
        explained_variance=explained,
        cumulative_variance=cumulative,
        loadings=retained.T.tolist(),
        scores=scores.tolist(),
        clusters=smat.expand_labels(labels),
        n_clusters=len(set(labels)),
        row_indices=smat.rownames(),
        excluded_rows=smat.excluded_rows,
        means=means.tolist(),
        stds=stds.tolist(),
        silhouette=quality
    )

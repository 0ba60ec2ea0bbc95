"""
K-means clustering of PCA scores.

This module provides K-means with farthest-point (k-means++ style) seeding,
within-cluster sum of squares, elbow-based selection of the cluster count
and a silhouette quality score.

With the default eigh solver the first seed pick is the only random draw
in the engine. The power solver also draws its start vectors from the same
generator. Pass an int seed or a numpy RandomState as ``random_state`` to
make results repeatable.
"""

import logging
import numpy as np
from scipy.spatial.distance import cdist
from sklearn.metrics import silhouette_score
from typing import Any, Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

RandomStateLike = Optional[Union[int, np.random.RandomState]]

ELBOW_RATIO = 1.5
MAX_K_CAP = 4


class Cluster:
    """
    Represents a cluster in K-means clustering.
    """

    def __init__(self,
                center: np.ndarray,
                members: Optional[List[int]] = None,
                id: Optional[int] = None):
        """
        Initialize a cluster with a center and optional members.

        Args:
            center: The center of the cluster
            members: Indices of members belonging to the cluster
            id: Cluster label
        """
        self.center = np.array(center, dtype=float)
        self.members = [] if members is None else list(members)
        self.id = id

    def add_member(self, idx: int) -> None:
        self.members.append(idx)

    def clear_members(self) -> None:
        """Clear all members from the cluster."""
        self.members = []

    def update_center(self, data: np.ndarray) -> None:
        """
        Move the center to the mean of the members.

        An empty cluster keeps its current center.
        """
        if not self.members:
            return
        self.center = np.mean(data[self.members], axis=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'center': self.center.tolist(),
            'members': list(self.members)
        }

    def __repr__(self) -> str:
        """String representation of the cluster."""
        return f"Cluster(id={self.id}, members={len(self.members)})"


def as_random_state(random_state: RandomStateLike = None) -> np.random.RandomState:
    """
    Turn a seed, a RandomState or None into a RandomState.

    Args:
        random_state: Seed, generator, or None for fresh entropy

    Returns:
        numpy RandomState
    """
    if isinstance(random_state, np.random.RandomState):
        return random_state
    return np.random.RandomState(random_state)


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """
    Calculate Euclidean distance between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Euclidean distance
    """
    return float(np.linalg.norm(a - b))


def init_centers(data: np.ndarray, k: int, random_state: RandomStateLike = None) -> np.ndarray:
    """
    Choose k initial centers.

    The first center is a uniformly random point. Each following center is
    the point whose distance to its nearest chosen center is largest, so
    the seeding is deterministic once the first pick is made.

    Args:
        data: Points, one per row
        k: Number of centers
        random_state: Source of the first pick

    Returns:
        Array of k centers
    """
    rng = as_random_state(random_state)
    n_points = data.shape[0]

    first_idx = rng.randint(0, n_points)
    centers = [data[first_idx].copy()]
    min_dists = np.linalg.norm(data - centers[0], axis=1)

    for _ in range(1, k):
        # ties resolve to the lowest index
        next_idx = int(np.argmax(min_dists))
        centers.append(data[next_idx].copy())
        min_dists = np.minimum(min_dists, np.linalg.norm(data - centers[-1], axis=1))

    return np.array(centers)


def assign_points(data: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Label each point with its nearest center.

    Args:
        data: Points, one per row
        centers: Current centers

    Returns:
        Array of labels
    """
    dists = cdist(data, centers, metric='euclidean')
    # argmin keeps the first center on exact ties
    return np.argmin(dists, axis=1)


def update_centers(data: np.ndarray, labels: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Recompute each center as the mean of its points.

    Centers with no points are left where they were.
    """
    new_centers = centers.copy()
    for j in range(centers.shape[0]):
        members = data[labels == j]
        if len(members) > 0:
            new_centers[j] = members.mean(axis=0)
    return new_centers


def kmeans(points: Sequence[Sequence[float]],
           k: int,
           max_iters: int = 100,
           random_state: RandomStateLike = None) -> List[int]:
    """
    Perform K-means clustering on the points.

    Args:
        points: Points, e.g. (PC1, PC2) scores
        k: Number of clusters
        max_iters: Maximum number of iterations
        random_state: Source of the first seed pick

    Returns:
        One label in [0, k) per point
    """
    data = np.asarray(points, dtype=float)
    n_points = data.shape[0] if data.size else 0

    if n_points == 0 or k <= 0:
        return []

    if n_points <= k:
        # each point becomes its own cluster
        return list(range(n_points))

    if data.ndim == 1:
        data = data.reshape(-1, 1)

    centers = init_centers(data, k, random_state)
    labels = np.full(n_points, -1)

    for iteration in range(max_iters):
        new_labels = assign_points(data, centers)
        changed = not np.array_equal(new_labels, labels)
        labels = new_labels
        centers = update_centers(data, labels, centers)

        if not changed:
            logger.debug(f"K-means converged after {iteration + 1} iterations (k={k})")
            break

    # renumber so labels stay dense when a center lost all its points
    used = sorted(set(int(label) for label in labels))
    remap = {old: new for new, old in enumerate(used)}
    return [remap[int(label)] for label in labels]


def kmeans_clusters(points: Sequence[Sequence[float]],
                    k: int,
                    max_iters: int = 100,
                    random_state: RandomStateLike = None) -> List[Cluster]:
    """
    K-means returning Cluster objects instead of bare labels.

    Clusters that ended up empty are omitted.
    """
    data = np.asarray(points, dtype=float)
    labels = kmeans(data, k, max_iters, random_state)
    if not labels:
        return []
    if data.ndim == 1:
        data = data.reshape(-1, 1)

    clusters = []
    for cluster_id in sorted(set(labels)):
        members = [i for i, label in enumerate(labels) if label == cluster_id]
        cluster = Cluster(np.zeros(data.shape[1]), members, cluster_id)
        cluster.update_center(data)
        clusters.append(cluster)
    return clusters


def wcss(points: Sequence[Sequence[float]], labels: Sequence[int]) -> float:
    """
    Within-cluster sum of squares.

    Args:
        points: Points, one per row
        labels: Cluster label per point

    Returns:
        Sum over clusters of squared distances to the cluster mean
    """
    data = np.asarray(points, dtype=float)
    labels = np.asarray(labels)
    if data.size == 0:
        return 0.0
    if data.ndim == 1:
        data = data.reshape(-1, 1)

    total = 0.0
    for label in np.unique(labels):
        members = data[labels == label]
        centroid = members.mean(axis=0)
        total += float(np.sum((members - centroid) ** 2))
    return total


def find_optimal_k(points: Sequence[Sequence[float]],
                   max_k: int = 6,
                   max_iters: int = 100,
                   random_state: RandomStateLike = None) -> int:
    """
    Choose a cluster count with the elbow rule.

    For each interior k, the WCSS drop from k-1 to k is compared with 1.5
    times the drop from k to k+1; the k where the first exceeds the second
    by the widest margin wins. Without such a k the answer is 2.

    Args:
        points: Points, one per row
        max_k: Upper bound on k, further capped at min(n // 2, 4)
        max_iters: K-means iteration bound
        random_state: Seed source shared by the K-means runs

    Returns:
        Cluster count in [2, cap]
    """
    data = np.asarray(points, dtype=float)
    n_points = data.shape[0] if data.size else 0

    if n_points < 4:
        return 2

    cap = min(max_k, n_points // 2, MAX_K_CAP)
    rng = as_random_state(random_state)

    scores = {}
    for k in range(1, cap + 1):
        labels = kmeans(data, k, max_iters, rng)
        scores[k] = wcss(data, labels)

    best_k = None
    best_margin = 0.0
    for k in range(2, cap):
        improvement = scores[k - 1] - scores[k]
        next_improvement = scores[k] - scores[k + 1]
        margin = improvement - ELBOW_RATIO * next_improvement
        if margin > 0 and (best_k is None or margin > best_margin):
            best_k = k
            best_margin = margin

    if best_k is None:
        best_k = 2

    return max(2, min(best_k, cap))


def silhouette(points: Sequence[Sequence[float]], labels: Sequence[int]) -> float:
    """
    Mean silhouette coefficient of a labelling.

    Args:
        points: Points, one per row
        labels: Cluster label per point

    Returns:
        Silhouette in [-1, 1]; 0.0 when it is undefined (fewer than two
        labels, or as many labels as points)
    """
    data = np.asarray(points, dtype=float)
    labels = np.asarray(labels)
    n_labels = len(np.unique(labels))
    if data.size == 0 or n_labels < 2 or n_labels >= len(labels):
        return 0.0
    if data.ndim == 1:
        data = data.reshape(-1, 1)
    return float(silhouette_score(data, labels, metric='euclidean'))

"""
Clustering quality metrics.

Used to compare clustering runs (restarts, different k) after the fact.
"""

from __future__ import annotations

from typing import List

import numpy as np


def inertia(
    Z: np.ndarray, labels: np.ndarray, centroids: np.ndarray, *, spherical: bool = False
) -> float:
    """
    Clustering cost of *labels* against *centroids*.

    Args:
        Z: (n, d) points (unit-normalised when ``spherical``)
        labels: (n,) cluster ids
        centroids: (K, d) centroids
        spherical: Use cosine cost ``sum(1 - z·c)`` instead of squared distances

    Returns:
        Non-negative total cost
    """
    if spherical:
        # For cosine: sum of (1 - similarity) = sum of cosine distances
        sims = np.einsum("nd,nd->n", Z, centroids[labels])
        return float(max(np.sum(1.0 - sims), 0.0))
    diffs = Z - centroids[labels]
    return float(np.sum(diffs ** 2))


def adjusted_rand_index(labels_a: np.ndarray, labels_b: np.ndarray) -> float:
    """
    Compute Adjusted Rand Index between two clusterings.

    ARI measures agreement between two clusterings, adjusted for chance.
    Returns 1.0 for identical clusterings, ~0.0 for random agreement.

    Args:
        labels_a: First clustering labels
        labels_b: Second clustering labels

    Returns:
        ARI score in [-1, 1], typically in [0, 1]
    """
    labels_a = np.asarray(labels_a)
    labels_b = np.asarray(labels_b)
    _, a = np.unique(labels_a, return_inverse=True)
    _, b = np.unique(labels_b, return_inverse=True)
    n = len(labels_a)

    contingency = np.zeros((a.max() + 1, b.max() + 1), dtype=np.int64)
    np.add.at(contingency, (a, b), 1)

    sum_comb = (contingency * (contingency - 1) / 2.0).sum()
    rows = contingency.sum(axis=1)
    cols = contingency.sum(axis=0)
    sum_comb_c = (rows * (rows - 1) / 2.0).sum()
    sum_comb_k = (cols * (cols - 1) / 2.0).sum()
    comb_n = n * (n - 1) / 2.0

    if comb_n == 0:
        return 1.0

    expected_index = (sum_comb_c * sum_comb_k) / comb_n
    max_index = 0.5 * (sum_comb_c + sum_comb_k)
    denom = max_index - expected_index
    if denom == 0:
        return 1.0
    return float((sum_comb - expected_index) / denom)


def pairwise_ari(labels_list: List[np.ndarray]) -> List[float]:
    """ARI for every pair (i, j), i < j, of clusterings."""
    aris = []
    for i in range(len(labels_list)):
        for j in range(i + 1, len(labels_list)):
            aris.append(adjusted_rand_index(labels_list[i], labels_list[j]))
    return aris


def silhouette_score_precomputed(labels: np.ndarray, dist: np.ndarray) -> float:
    """
    Compute silhouette score using precomputed distance matrix.

    Silhouette score measures how well-separated clusters are.
    Higher is better (range [-1, 1]). A single cluster scores 0.

    Args:
        labels: Cluster assignments
        dist: Precomputed distance matrix of shape (n_samples, n_samples)

    Returns:
        Mean silhouette score
    """
    labels = np.asarray(labels)
    n = len(labels)
    unique = np.unique(labels)
    if len(unique) == 1:
        return 0.0

    sil = np.zeros(n, dtype=np.float64)
    for i in range(n):
        same_mask = labels == labels[i]
        same_count = same_mask.sum()
        if same_count <= 1:
            continue
        a = dist[i, same_mask].sum() / (same_count - 1)
        b = min(dist[i, labels == c].mean() for c in unique if c != labels[i])
        denom = max(a, b)
        sil[i] = (b - a) / denom if denom > 0 else 0.0
    return float(np.mean(sil))

"""
Partitional clustering: k-means and spherical k-means.

Both share one Lloyd loop (assign -> update -> repeat until assignments stop
changing or max_iter is reached). Spherical k-means compares unit-normalised
points to unit-normalised centroids by cosine similarity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np
from scipy.spatial.distance import cdist

from ..config import config as _config
from ..dataset import Buffer, as_matrix
from ..errors import DimensionMismatchError, InvalidParameterError, NotFittedError
from ..utils.logging_config import get_logger
from .metrics import inertia

logger = get_logger(__name__)

Array2D = np.ndarray


class KMeansInit(Enum):
    """Initialisation strategy for the first set of means."""

    RANDOM_PARTITION = "random_partition"
    RANDOM_POINT = "random_point"
    RANDOM_SAMPLING = "random_sampling"


@dataclass(frozen=True)
class KMeansConfig:
    """
    Clustering settings. Omitted fields come from ``config.kmeans``.

    ``seed=None`` (or a negative seed) draws fresh entropy; any other value
    makes fitting reproducible.
    """

    k: int = field(default_factory=lambda: _config.kmeans.k)
    max_iter: int = field(default_factory=lambda: _config.kmeans.max_iter)
    init: Union[KMeansInit, str] = field(default_factory=lambda: KMeansInit(_config.kmeans.init))
    seed: Optional[int] = field(default_factory=lambda: _config.kmeans.seed)

    def __post_init__(self):
        try:
            object.__setattr__(self, "init", KMeansInit(self.init))
        except ValueError as e:
            raise InvalidParameterError(f"unknown init strategy {self.init!r}") from e
        if int(self.k) < 1:
            raise InvalidParameterError(f"k must be >= 1, got {self.k}")
        if int(self.max_iter) < 1:
            raise InvalidParameterError(f"max_iter must be >= 1, got {self.max_iter}")

    def make_rng(self) -> np.random.Generator:
        seed = None if self.seed is None or self.seed < 0 else int(self.seed)
        return np.random.default_rng(seed)


@dataclass
class KMeansResult:
    """
    Result of a single clustering run.

    Attributes:
        means: Flat ``k x dims`` row-major centroids
        assignments: Cluster id in ``[0, k)`` per input row
        k: Number of clusters
        dims: Point dimensionality
        n_iter: Lloyd iterations executed
        converged: True if assignments stopped changing before max_iter
        inertia: Squared-Euclidean (k-means) or cosine (spherical) cost
    """

    means: np.ndarray
    assignments: np.ndarray
    k: int
    dims: int
    n_iter: int = 0
    converged: bool = False
    inertia: float = 0.0

    @property
    def means_matrix(self) -> Array2D:
        return self.means.reshape(self.k, self.dims)


# ------------------------------------------------------------------
# Initialisation & assignment helpers
# ------------------------------------------------------------------


def _normalize_rows(Z: Array2D) -> Array2D:
    norms = np.linalg.norm(Z, axis=1, keepdims=True)
    return Z / np.maximum(norms, _config.numerics.norm_floor)


def _kmeanspp_init(Z: Array2D, K: int, rng: np.random.Generator) -> Array2D:
    """Return (K, d) initial centroids chosen by the k-means++ rule."""
    n, d = Z.shape
    centroids = np.empty((K, d), dtype=Z.dtype)
    idx = int(rng.integers(0, n))
    centroids[0] = Z[idx]

    for k in range(1, K):
        diffs = Z[:, None, :] - centroids[None, :k, :]  # (n, k, d)
        sq = np.sum(diffs ** 2, axis=2)  # (n, k)
        min_sq = sq.min(axis=1)  # (n,)
        total = min_sq.sum()
        if total == 0.0:
            centroids[k] = Z[int(rng.integers(0, n))]
        else:
            probs = min_sq / total
            centroids[k] = Z[int(rng.choice(n, p=probs))]
    return centroids


def _assign(Z: Array2D, centroids: Array2D, *, spherical: bool) -> np.ndarray:
    """Assign each row of *Z* to its nearest centroid (lowest id wins ties)."""
    if spherical:
        # Cosine: argmax of dot product on unit vectors
        return np.argmax(Z @ centroids.T, axis=1)
    # Exact squared differences, not the ||z||² + ||c||² - 2z·c expansion
    return np.argmin(cdist(Z, centroids, "sqeuclidean"), axis=1)


def _update_centroids(
    Z: Array2D, labels: np.ndarray, previous: Array2D, *, spherical: bool
) -> Array2D:
    """Centroid of each cluster's points; empty clusters keep their previous mean."""
    K, d = previous.shape
    counts = np.bincount(labels, minlength=K)
    sums = np.zeros((K, d))
    np.add.at(sums, labels, Z)
    centroids = previous.copy()
    filled = counts > 0
    centroids[filled] = sums[filled] / counts[filled, None]
    if spherical:
        centroids[filled] = _normalize_rows(centroids[filled])
    return centroids


def _point_cost(Z: Array2D, centroids: Array2D, labels: np.ndarray, *, spherical: bool) -> np.ndarray:
    """Cost of each point against its own centroid."""
    if spherical:
        return 1.0 - np.einsum("nd,nd->n", Z, centroids[labels])
    diffs = Z - centroids[labels]
    return np.einsum("nd,nd->n", diffs, diffs)


def _repair_empty(
    Z: Array2D, labels: np.ndarray, centroids: Array2D, *, spherical: bool
) -> Tuple[np.ndarray, Array2D]:
    """
    Re-seed every empty cluster with the worst-fitting point.

    The point moved is the one farthest from its current centroid among
    clusters that hold more than one point.
    """
    K = centroids.shape[0]
    counts = np.bincount(labels, minlength=K)
    empty = np.flatnonzero(counts == 0)
    if empty.size == 0:
        return labels, centroids

    labels = labels.copy()
    centroids = centroids.copy()
    cost = _point_cost(Z, centroids, labels, spherical=spherical)
    for j in empty:
        candidates = np.where(counts[labels] > 1, cost, -np.inf)
        p = int(np.argmax(candidates))
        counts[labels[p]] -= 1
        counts[j] = 1
        labels[p] = j
        centroids[j] = Z[p]
        cost[p] = 0.0
    logger.debug("re-seeded %d empty clusters", empty.size)
    return labels, centroids


def _initial_centroids(
    Z: Array2D, K: int, init: KMeansInit, rng: np.random.Generator, *, spherical: bool
) -> Array2D:
    n, d = Z.shape
    if init is KMeansInit.RANDOM_POINT:
        idx = rng.choice(n, size=K, replace=False)
        centroids = Z[idx].copy()
    elif init is KMeansInit.RANDOM_SAMPLING:
        centroids = _kmeanspp_init(Z, K, rng)
    else:
        labels = rng.integers(0, K, size=n, endpoint=False)
        centroids = _update_centroids(Z, labels, np.zeros((K, d)), spherical=False)
        labels, centroids = _repair_empty(Z, labels, centroids, spherical=False)
        centroids = _update_centroids(Z, labels, centroids, spherical=False)
    if spherical:
        centroids = _normalize_rows(centroids)
    return centroids


def _lloyd(
    Z: Array2D, cfg: KMeansConfig, rng: np.random.Generator, *, spherical: bool
) -> Tuple[Array2D, np.ndarray, int, bool]:
    """Run the assign/update loop; returns (centroids, labels, n_iter, converged)."""
    K = int(cfg.k)
    centroids = _initial_centroids(Z, K, cfg.init, rng, spherical=spherical)
    labels = _assign(Z, centroids, spherical=spherical)
    labels, centroids = _repair_empty(Z, labels, centroids, spherical=spherical)

    n_iter = 0
    converged = False
    for t in range(1, int(cfg.max_iter) + 1):
        n_iter = t
        centroids = _update_centroids(Z, labels, centroids, spherical=spherical)
        new_labels = _assign(Z, centroids, spherical=spherical)
        new_labels, centroids = _repair_empty(Z, new_labels, centroids, spherical=spherical)
        if np.array_equal(new_labels, labels):
            converged = True
            break
        labels = new_labels

    centroids = _update_centroids(Z, labels, centroids, spherical=spherical)
    return centroids, labels, n_iter, converged


# ------------------------------------------------------------------
# Public models
# ------------------------------------------------------------------


class KMeans:
    """
    Hard k-means with Euclidean assignment.

    Usage:
        km = KMeans()
        result = km.fit(data, rows, dims, KMeansConfig(k=4, seed=7))
        labels = km.predict(new_data, new_rows, dims)
    """

    spherical = False
    label = "KMeans"

    def __init__(self) -> None:
        self._means: Optional[Array2D] = None

    @property
    def is_fitted(self) -> bool:
        return self._means is not None

    @property
    def k(self) -> Optional[int]:
        return None if self._means is None else self._means.shape[0]

    @property
    def dims(self) -> Optional[int]:
        return None if self._means is None else self._means.shape[1]

    def fit(
        self,
        data: Buffer,
        rows: int,
        dims: int,
        config: Optional[KMeansConfig] = None,
        *,
        rng: Optional[np.random.Generator] = None,
    ) -> KMeansResult:
        """
        Cluster ``rows`` points of ``dims`` dimensions into ``config.k`` groups.

        Args:
            data: Flat ``rows x dims`` buffer
            rows: Number of points
            dims: Point dimensionality
            config: Clustering settings (defaults from ``config.kmeans``)
            rng: Injected random generator; overrides ``config.seed``

        Returns:
            KMeansResult with means, assignments, n_iter and inertia

        Raises:
            InvalidParameterError: If k > rows
            DimensionMismatchError: If len(data) != rows * dims
        """
        cfg = config if config is not None else KMeansConfig()
        X = as_matrix(data, rows, dims, cols_name="dims")
        n, d = X.shape
        if int(cfg.k) > n:
            raise InvalidParameterError(f"k ({cfg.k}) must be <= rows ({n})")

        Z = _normalize_rows(X) if self.spherical else X
        generator = rng if rng is not None else cfg.make_rng()
        centroids, labels, n_iter, converged = _lloyd(Z, cfg, generator, spherical=self.spherical)

        if not converged:
            logger.warning(
                "%s reached max_iter=%d without converging (k=%d)",
                self.label, cfg.max_iter, cfg.k,
            )
        logger.debug(
            "%s fitted %d x %d, k=%d, init=%s, n_iter=%d",
            self.label, n, d, cfg.k, cfg.init.value, n_iter,
        )

        self._means = centroids
        labels = labels.astype(np.int64)
        return KMeansResult(
            means=centroids.reshape(-1).copy(),
            assignments=labels,
            k=int(cfg.k),
            dims=d,
            n_iter=n_iter,
            converged=converged,
            inertia=inertia(Z, labels, centroids, spherical=self.spherical),
        )

    def predict(self, data: Buffer, rows: int, dims: int) -> np.ndarray:
        """Nearest-centroid cluster id for each row of new data."""
        Z = self._checked_input(data, rows, dims)
        return _assign(Z, self._means, spherical=self.spherical).astype(np.int64)

    def _checked_input(self, data: Buffer, rows: int, dims: int) -> Array2D:
        if not self.is_fitted:
            raise NotFittedError(f"{self.label} is not fitted")
        X = as_matrix(data, rows, dims, cols_name="dims")
        if X.shape[1] != self.dims:
            raise DimensionMismatchError(
                f"dims ({X.shape[1]}) must match fitted dims ({self.dims})"
            )
        return _normalize_rows(X) if self.spherical else X


class SKMeans(KMeans):
    """
    Spherical k-means: cosine similarity on unit-normalised vectors.

    Keeps its centroids after ``fit`` so new data can be soft-encoded.
    """

    spherical = True
    label = "SKMeans"

    def encode(self, data: Buffer, rows: int, dims: int, alpha: float) -> np.ndarray:
        """
        Soft-assign each row to the centroids.

        Weights are a softmax of ``alpha * cosine_similarity``: each row sums
        to 1, ``alpha = 0`` is uniform and larger ``alpha`` is sharper.

        Returns:
            Flat ``rows x k`` buffer of weights

        Raises:
            NotFittedError: If called before fit
            InvalidParameterError: If alpha is negative or not finite
        """
        Z = self._checked_input(data, rows, dims)
        if not np.isfinite(alpha) or alpha < 0:
            raise InvalidParameterError(f"alpha must be finite and >= 0, got {alpha}")
        logits = float(alpha) * (Z @ self._means.T)
        logits -= logits.max(axis=1, keepdims=True)
        weights = np.exp(logits)
        weights /= weights.sum(axis=1, keepdims=True)
        return weights.reshape(-1)

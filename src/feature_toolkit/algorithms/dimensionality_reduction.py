"""
Dimensionality reduction for row-major feature datasets.

Provides PCA (with optional scaler preprocessing and whitening) and classical
multidimensional scaling under a choice of distance metrics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np
from scipy.spatial.distance import cdist

from ..config import config as _config
from ..dataset import Buffer, as_matrix
from ..errors import (
    DimensionMismatchError,
    InvalidParameterError,
    NotFittedError,
    NumericalInstabilityError,
)
from ..utils.logging_config import get_logger
from .scaling import Normalize, RobustScale, Standardize, _ColumnScaler

logger = get_logger(__name__)

Array2D = np.ndarray

SCALER_KINDS = ("none", "normalize", "standardize", "robust_scale")


def _sorted_eigh(sym: Array2D) -> Tuple[np.ndarray, Array2D]:
    """
    Eigendecomposition of a symmetric matrix, sorted by descending eigenvalue.

    Equal eigenvalues keep the solver's column order. Each eigenvector is
    sign-fixed so that its largest-magnitude entry is positive.
    """
    evals, evecs = np.linalg.eigh(sym)
    order = np.argsort(-evals, kind="stable")
    evals = evals[order]
    evecs = evecs[:, order]
    pivots = np.argmax(np.abs(evecs), axis=0)
    signs = np.sign(evecs[pivots, np.arange(evecs.shape[1])])
    signs[signs == 0] = 1.0
    return evals, evecs * signs


# ------------------------------------------------------------------
# PCA
# ------------------------------------------------------------------


@dataclass(frozen=True)
class PcaScaler:
    """
    Scaler applied before PCA, as a closed set of variants.

    Build with the named constructors rather than by hand:
    ``PcaScaler.none()``, ``PcaScaler.normalize(min, max)``,
    ``PcaScaler.standardize()``, ``PcaScaler.robust_scale(low, high)``.
    Parameters are validated at construction.
    """

    kind: str = "none"
    min: float = 0.0
    max: float = 1.0
    low_percentile: float = 25.0
    high_percentile: float = 75.0

    def __post_init__(self):
        if self.kind not in SCALER_KINDS:
            raise InvalidParameterError(
                f"scaler kind must be one of {SCALER_KINDS}, got {self.kind!r}"
            )
        self.create()

    @classmethod
    def none(cls) -> "PcaScaler":
        return cls("none")

    @classmethod
    def normalize(cls, min: float = 0.0, max: float = 1.0) -> "PcaScaler":
        return cls("normalize", min=min, max=max)

    @classmethod
    def standardize(cls) -> "PcaScaler":
        return cls("standardize")

    @classmethod
    def robust_scale(
        cls, low_percentile: float = 25.0, high_percentile: float = 75.0
    ) -> "PcaScaler":
        return cls(
            "robust_scale", low_percentile=low_percentile, high_percentile=high_percentile
        )

    def create(self) -> Optional[_ColumnScaler]:
        """Return a fresh, unfitted scaler for this variant (None for "none")."""
        if self.kind == "normalize":
            return Normalize(self.min, self.max)
        if self.kind == "standardize":
            return Standardize()
        if self.kind == "robust_scale":
            return RobustScale(self.low_percentile, self.high_percentile)
        return None


@dataclass(frozen=True)
class PCAConfig:
    """PCA settings."""

    whiten: bool = False
    scaler: PcaScaler = field(default_factory=PcaScaler.none)


class PCA:
    """
    Principal component analysis with optional scaler preprocessing.

    ``fit`` optionally fits the configured scaler, then eigendecomposes the
    covariance matrix (``rows - 1`` normalisation) of the scaled data.
    ``transform`` projects onto the leading components and reports the
    explained variance ratio of the components kept.

    Args:
        config: Whitening flag and scaler variant
        eigen_tolerance: Relative eigenvalue threshold for whitening; an
            eigenvalue at or below ``eigen_tolerance * largest`` cannot be
            whitened. Defaults to ``config.numerics.eigen_tolerance``.
    """

    def __init__(
        self, config: Optional[PCAConfig] = None, *, eigen_tolerance: Optional[float] = None
    ) -> None:
        self.config = config if config is not None else PCAConfig()
        if not isinstance(self.config.scaler, PcaScaler):
            raise InvalidParameterError("config.scaler must be a PcaScaler")
        self.eigen_tolerance = (
            _config.numerics.eigen_tolerance if eigen_tolerance is None else float(eigen_tolerance)
        )
        if not self.eigen_tolerance > 0:
            raise InvalidParameterError("eigen_tolerance must be > 0")
        self._scaler: Optional[_ColumnScaler] = None
        self._mean: Optional[np.ndarray] = None
        self._components: Optional[Array2D] = None
        self._eigenvalues: Optional[np.ndarray] = None
        self._n_samples_fit: Optional[int] = None

    @property
    def is_fitted(self) -> bool:
        return self._components is not None

    @property
    def n_features(self) -> Optional[int]:
        return None if self._components is None else self._components.shape[0]

    @property
    def n_samples_fit(self) -> Optional[int]:
        return self._n_samples_fit

    @property
    def components(self) -> Array2D:
        """``(n_features, n_features)`` eigenvector matrix, one component per column."""
        self._ensure_fitted()
        return self._components.copy()

    @property
    def explained_variance(self) -> np.ndarray:
        """Eigenvalues in descending order."""
        self._ensure_fitted()
        return self._eigenvalues.copy()

    @property
    def mean(self) -> np.ndarray:
        """Per-column mean of the (scaled) training data."""
        self._ensure_fitted()
        return self._mean.copy()

    def fit(self, data: Buffer, rows: int, cols: int) -> "PCA":
        """
        Fit the scaler (if configured) and the principal components.

        Raises:
            DimensionMismatchError: If len(data) != rows * cols
            EmptyInputError: If rows == 0
            InvalidParameterError: If rows < 2
        """
        X = as_matrix(data, rows, cols)
        n, d = X.shape
        if n < 2:
            raise InvalidParameterError(f"PCA needs at least 2 rows, got {n}")

        scaler = self.config.scaler.create()
        if scaler is not None:
            X = scaler.fit_transform(X.reshape(-1), n, d).reshape(n, d)

        mu = X.mean(axis=0)
        Xc = X - mu
        cov = (Xc.T @ Xc) / (n - 1)
        evals, evecs = _sorted_eigh(cov)
        evals = np.clip(evals, 0.0, None)

        self._scaler = scaler
        self._mean = mu
        self._components = evecs
        self._eigenvalues = evals
        self._n_samples_fit = n
        logger.debug(
            "PCA fitted on %d x %d (scaler=%s, whiten=%s)",
            n, d, self.config.scaler.kind, self.config.whiten,
        )
        return self

    def transform(
        self, data: Buffer, rows: int, cols: int, target_dims: int
    ) -> Tuple[np.ndarray, float]:
        """
        Project data onto the first *target_dims* components.

        Args:
            data: Flat ``rows x cols`` buffer
            rows: Number of rows
            cols: Number of columns (must equal the fitted feature count)
            target_dims: Components to keep, ``1 <= target_dims <= min(rows_at_fit, cols)``

        Returns:
            Tuple of (flat ``rows x target_dims`` projection, explained variance ratio)

        Raises:
            NotFittedError: If called before fit
            NumericalInstabilityError: If whitening against a ~0 eigenvalue
        """
        X = self._checked_input(data, rows, cols)
        k = self._checked_target_dims(target_dims)
        if self._scaler is not None:
            X = self._scaler.transform(X.reshape(-1), *X.shape).reshape(X.shape)

        Z = (X - self._mean) @ self._components[:, :k]
        if self.config.whiten:
            Z = Z / self._whitening_scale(k)

        total = float(self._eigenvalues.sum())
        explained = float(self._eigenvalues[:k].sum()) / total if total > 0 else 1.0
        return Z.reshape(-1), explained

    def fit_transform(
        self, data: Buffer, rows: int, cols: int, target_dims: int
    ) -> Tuple[np.ndarray, float]:
        self.fit(data, rows, cols)
        return self.transform(data, rows, cols, target_dims)

    def inverse_transform(self, projected: Buffer, rows: int, projected_cols: int) -> np.ndarray:
        """
        Map projected data back to the original feature space.

        Lossy when ``projected_cols < n_features``: the result is the
        least-squares reconstruction from the leading components.
        """
        self._ensure_fitted()
        Z = as_matrix(projected, rows, projected_cols, name="projected", cols_name="projected_cols")
        k = Z.shape[1]
        if k > self.n_features:
            raise DimensionMismatchError(
                f"projected_cols ({k}) must be <= fitted dims ({self.n_features})"
            )
        if self.config.whiten:
            Z = Z * np.sqrt(self._eigenvalues[:k])
        X = Z @ self._components[:, :k].T + self._mean
        if self._scaler is not None:
            X = self._scaler.inverse_transform(X.reshape(-1), *X.shape).reshape(X.shape)
        return X.reshape(-1)

    def _whitening_scale(self, k: int) -> np.ndarray:
        ev = self._eigenvalues[:k]
        limit = self.eigen_tolerance * max(float(self._eigenvalues[0]), 0.0)
        bad = np.flatnonzero(ev <= limit)
        if bad.size:
            raise NumericalInstabilityError(
                f"cannot whiten components {bad.tolist()}: eigenvalue ~0"
            )
        return np.sqrt(ev)

    def _ensure_fitted(self) -> None:
        if not self.is_fitted:
            raise NotFittedError("PCA is not fitted")

    def _checked_input(self, data: Buffer, rows: int, cols: int) -> Array2D:
        self._ensure_fitted()
        X = as_matrix(data, rows, cols)
        if X.shape[1] != self.n_features:
            raise DimensionMismatchError(
                f"cols ({X.shape[1]}) must match fitted feature dimension ({self.n_features})"
            )
        return X

    def _checked_target_dims(self, target_dims: int) -> int:
        limit = min(self._n_samples_fit, self.n_features)
        if not 1 <= int(target_dims) <= limit:
            raise InvalidParameterError(
                f"target_dims must be in [1, {limit}], got {target_dims}"
            )
        return int(target_dims)


# ------------------------------------------------------------------
# MDS
# ------------------------------------------------------------------


class DistanceMetric(Enum):
    """Pairwise distance used to build the MDS distance matrix."""

    MANHATTAN = "manhattan"
    EUCLIDEAN = "euclidean"
    SQUARED_EUCLIDEAN = "squared_euclidean"
    MAX = "max"
    MIN = "min"
    KULLBACK_LEIBLER = "kullback_leibler"
    COSINE = "cosine"
    JENSEN_SHANNON = "jensen_shannon"


_CDIST_NAMES = {
    DistanceMetric.MANHATTAN: "cityblock",
    DistanceMetric.EUCLIDEAN: "euclidean",
    DistanceMetric.SQUARED_EUCLIDEAN: "sqeuclidean",
    DistanceMetric.MAX: "chebyshev",
}

_PROB_EPS = 1e-10


def _as_distributions(X: Array2D) -> Array2D:
    """Treat each row as a probability distribution (clip, smooth, normalise)."""
    P = np.clip(X, 0.0, None) + _PROB_EPS
    return P / P.sum(axis=1, keepdims=True)


def pairwise_distances(
    X: Array2D, metric: Union[DistanceMetric, str] = DistanceMetric.EUCLIDEAN
) -> Array2D:
    """
    Compute the symmetric ``(n, n)`` distance matrix of the rows of *X*.

    Kullback-Leibler is symmetrised, ``sum((p - q) * (log p - log q))``.
    Kullback-Leibler and Jensen-Shannon view each row as a distribution:
    negatives are clipped to 0 and rows are normalised to sum to 1.

    Args:
        X: Data of shape (n_samples, n_features)
        metric: DistanceMetric member or its string value

    Returns:
        Distance matrix with a zero diagonal
    """
    metric = DistanceMetric(metric)
    X = np.asarray(X, dtype=np.float64)

    if metric in _CDIST_NAMES:
        D = cdist(X, X, _CDIST_NAMES[metric])
    elif metric is DistanceMetric.MIN:
        D = np.abs(X[:, None, :] - X[None, :, :]).min(axis=2)
    elif metric is DistanceMetric.COSINE:
        norms = np.linalg.norm(X, axis=1, keepdims=True)
        Xn = X / np.maximum(norms, _config.numerics.norm_floor)
        D = np.clip(1.0 - (Xn @ Xn.T), 0.0, 2.0)
    elif metric is DistanceMetric.KULLBACK_LEIBLER:
        P = _as_distributions(X)
        logP = np.log(P)
        self_terms = np.sum(P * logP, axis=1)
        cross = P @ logP.T
        D = self_terms[:, None] + self_terms[None, :] - cross - cross.T
        D = np.clip(D, 0.0, None)
    else:
        P = _as_distributions(X)
        D = cdist(P, P, "jensenshannon")

    D = 0.5 * (D + D.T)
    np.fill_diagonal(D, 0.0)
    return D


class MDS:
    """
    Classical (metric) multidimensional scaling.

    Double-centres the squared distance matrix, eigendecomposes it and keeps
    the top components scaled by the square root of their eigenvalues.
    Negative eigenvalues (non-Euclidean metrics) are clamped to zero.
    Stateless and deterministic.
    """

    def project(
        self,
        data: Buffer,
        rows: int,
        cols: int,
        target_dims: int,
        distance: Union[DistanceMetric, str] = DistanceMetric.EUCLIDEAN,
    ) -> np.ndarray:
        """
        Embed *rows* points into *target_dims* dimensions.

        Returns:
            Flat ``rows x target_dims`` buffer of coordinates

        Raises:
            InvalidParameterError: If target_dims is outside [1, rows] or the
                metric is unknown
            DimensionMismatchError: If len(data) != rows * cols
        """
        X = as_matrix(data, rows, cols)
        n = X.shape[0]
        if not 1 <= int(target_dims) <= n:
            raise InvalidParameterError(f"target_dims must be in [1, {n}], got {target_dims}")
        try:
            metric = DistanceMetric(distance)
        except ValueError as e:
            raise InvalidParameterError(f"unknown distance metric {distance!r}") from e
        k = int(target_dims)

        D2 = pairwise_distances(X, metric) ** 2
        B = -0.5 * (
            D2
            - D2.mean(axis=0, keepdims=True)
            - D2.mean(axis=1, keepdims=True)
            + D2.mean()
        )
        B = 0.5 * (B + B.T)
        evals, evecs = _sorted_eigh(B)

        scale = max(float(np.abs(evals).max()), 1.0)
        if evals.min() < -1e-9 * scale:
            logger.warning(
                "MDS (%s): clamping %d negative eigenvalues to zero",
                metric.value,
                int(np.sum(evals < -1e-9 * scale)),
            )
        evals = np.clip(evals, 0.0, None)

        Y = evecs[:, :k] * np.sqrt(evals[:k])
        logger.debug("MDS projected %d x %d -> %d dims (%s)", n, X.shape[1], k, metric.value)
        return Y.reshape(-1)

"""
Per-column feature scalers.

Three affine scalers share one lifecycle (unfitted -> fitted):
- Normalize: min-max scaling into ``[min, max]``
- Standardize: zero mean, unit (population) standard deviation
- RobustScale: median centring, scaled by an inter-percentile range

Each column is treated independently. A degenerate column (zero range,
zero deviation or zero inter-percentile spread) gets a scale of 1 instead,
so no NaN or division by zero reaches the output.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..dataset import Buffer, as_matrix
from ..errors import DimensionMismatchError, InvalidParameterError, NotFittedError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


def _safe_spread(spread: np.ndarray, center: np.ndarray, label: str) -> np.ndarray:
    """Replace (numerically) zero spreads with 1 and log the affected columns."""
    tol = 10.0 * np.finfo(np.float64).eps * np.maximum(np.abs(center), 1.0)
    degenerate = np.abs(spread) <= tol
    if np.any(degenerate):
        logger.warning(
            "%s: zero spread in columns %s; using identity scale",
            label,
            np.flatnonzero(degenerate).tolist(),
        )
        spread = np.where(degenerate, 1.0, spread)
    return spread


class _ColumnScaler:
    """Shared fit/transform plumbing for the per-column scalers."""

    label = "scaler"

    def __init__(self) -> None:
        self._n_features: Optional[int] = None

    @property
    def is_fitted(self) -> bool:
        return self._n_features is not None

    @property
    def n_features(self) -> Optional[int]:
        """Number of columns seen at fit time (None while unfitted)."""
        return self._n_features

    def fit(self, data: Buffer, rows: int, cols: int):
        """
        Derive per-column statistics from a ``rows x cols`` buffer.

        Raises:
            DimensionMismatchError: If len(data) != rows * cols
            EmptyInputError: If rows == 0
        """
        X = as_matrix(data, rows, cols)
        self._fit_columns(X)
        self._n_features = X.shape[1]
        logger.debug("%s fitted on %d x %d", self.label, X.shape[0], X.shape[1])
        return self

    def transform(self, data: Buffer, rows: int, cols: int) -> np.ndarray:
        """Apply the fitted per-column map; returns a new flat buffer."""
        X = self._checked(data, rows, cols)
        return self._forward(X).reshape(-1)

    def inverse_transform(self, data: Buffer, rows: int, cols: int) -> np.ndarray:
        """Undo :meth:`transform`; returns a new flat buffer."""
        X = self._checked(data, rows, cols)
        return self._inverse(X).reshape(-1)

    def fit_transform(self, data: Buffer, rows: int, cols: int) -> np.ndarray:
        self.fit(data, rows, cols)
        return self.transform(data, rows, cols)

    def _checked(self, data: Buffer, rows: int, cols: int) -> np.ndarray:
        if not self.is_fitted:
            raise NotFittedError(f"{self.label} is not fitted")
        X = as_matrix(data, rows, cols)
        if X.shape[1] != self._n_features:
            raise DimensionMismatchError(
                f"cols ({X.shape[1]}) must match fitted feature dimension "
                f"({self._n_features})"
            )
        return X

    def _fit_columns(self, X: np.ndarray) -> None:
        raise NotImplementedError

    def _forward(self, X: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _inverse(self, X: np.ndarray) -> np.ndarray:
        raise NotImplementedError


class Normalize(_ColumnScaler):
    """
    Min-max normaliser.

    Maps each column from its observed ``[data_min, data_max]`` into
    ``[min, max]``. Constant columns map to ``min``.

    Args:
        min: Lower bound of the output range
        max: Upper bound of the output range (must be > min)
    """

    label = "Normalize"

    def __init__(self, min: float = 0.0, max: float = 1.0) -> None:
        super().__init__()
        if not np.isfinite(min) or not np.isfinite(max):
            raise InvalidParameterError("min and max must be finite")
        if not min < max:
            raise InvalidParameterError(f"min ({min}) must be < max ({max})")
        self.min = float(min)
        self.max = float(max)
        self.data_min: Optional[np.ndarray] = None
        self.data_max: Optional[np.ndarray] = None
        self._range: Optional[np.ndarray] = None

    def _fit_columns(self, X: np.ndarray) -> None:
        lo = X.min(axis=0)
        hi = X.max(axis=0)
        rng = _safe_spread(hi - lo, lo, self.label)
        self.data_min, self.data_max, self._range = lo, hi, rng

    def _forward(self, X: np.ndarray) -> np.ndarray:
        return self.min + (X - self.data_min) / self._range * (self.max - self.min)

    def _inverse(self, X: np.ndarray) -> np.ndarray:
        return (X - self.min) / (self.max - self.min) * self._range + self.data_min


class Standardize(_ColumnScaler):
    """
    Z-score standardiser using the population standard deviation.

    Constant columns are centred only, so they come out as zeros.
    """

    label = "Standardize"

    def __init__(self) -> None:
        super().__init__()
        self.mean: Optional[np.ndarray] = None
        self.std: Optional[np.ndarray] = None
        self._scale: Optional[np.ndarray] = None

    def _fit_columns(self, X: np.ndarray) -> None:
        mean = X.mean(axis=0)
        std = X.std(axis=0, ddof=0)
        scale = _safe_spread(std, mean, self.label)
        self.mean, self.std, self._scale = mean, std, scale

    def _forward(self, X: np.ndarray) -> np.ndarray:
        return (X - self.mean) / self._scale

    def _inverse(self, X: np.ndarray) -> np.ndarray:
        return X * self._scale + self.mean


class RobustScale(_ColumnScaler):
    """
    Robust scaler: ``(x - median) / (q_high - q_low)``.

    Percentiles use linear interpolation between order statistics.

    Args:
        low_percentile: Lower percentile in [0, 100)
        high_percentile: Upper percentile in (low_percentile, 100]
    """

    label = "RobustScale"

    def __init__(self, low_percentile: float = 25.0, high_percentile: float = 75.0) -> None:
        super().__init__()
        if not 0.0 <= low_percentile < high_percentile <= 100.0:
            raise InvalidParameterError(
                "percentiles must satisfy 0 <= low_percentile < high_percentile <= 100; "
                f"got low={low_percentile}, high={high_percentile}"
            )
        self.low_percentile = float(low_percentile)
        self.high_percentile = float(high_percentile)
        self.median: Optional[np.ndarray] = None
        self.data_low: Optional[np.ndarray] = None
        self.data_high: Optional[np.ndarray] = None
        self._range: Optional[np.ndarray] = None

    def _fit_columns(self, X: np.ndarray) -> None:
        low, median, high = np.percentile(
            X, [self.low_percentile, 50.0, self.high_percentile], axis=0
        )
        rng = _safe_spread(high - low, median, self.label)
        self.median, self.data_low, self.data_high, self._range = median, low, high, rng

    def _forward(self, X: np.ndarray) -> np.ndarray:
        return (X - self.median) / self._range

    def _inverse(self, X: np.ndarray) -> np.ndarray:
        return X * self._range + self.median

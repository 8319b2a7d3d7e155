"""
Redistribution of 2-D points onto a regular grid.

Each point is moved to its own integer grid cell so that the layout keeps the
points' relative positions as closely as possible. The matching between
points and cells minimises the total squared displacement.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment
from scipy.spatial.distance import cdist

from ..dataset import Buffer, as_matrix
from ..errors import InvalidParameterError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


def _grid_shape(n_cells: int, extent: int, axis: int) -> Tuple[int, int]:
    """Return ``(width, height)`` holding at least *n_cells* cells."""
    if extent == 0:
        width = math.ceil(math.sqrt(n_cells))
        return width, math.ceil(n_cells / width)
    if axis == 0:
        width = min(extent, n_cells)
        return width, math.ceil(n_cells / width)
    height = min(extent, n_cells)
    return math.ceil(n_cells / height), height


def _fit_to_span(values: np.ndarray, size: int) -> np.ndarray:
    """Min-max scale *values* onto ``[0, size - 1]``; a flat axis maps to 0."""
    lo, hi = values.min(), values.max()
    if hi <= lo or size == 1:
        return np.zeros_like(values)
    return (values - lo) / (hi - lo) * (size - 1)


class Grid:
    """Stateless point-to-grid redistribution."""

    @staticmethod
    def process(
        input: Buffer,
        rows: int,
        over_sample: int = 1,
        extent: int = 0,
        axis: int = 0,
    ) -> np.ndarray:
        """
        Assign every 2-D point a distinct cell of a regular grid.

        The grid holds ``rows * over_sample`` cells. With ``extent == 0`` it is
        as close to square as possible; otherwise ``extent`` caps the number of
        columns (``axis=0``) or of rows (``axis=1``) and the other side grows
        to fit.

        Args:
            input: Flat ``rows x 2`` buffer ``[x0, y0, x1, y1, ...]``
            rows: Number of points
            over_sample: Grid cells per point (>= 1)
            extent: Cells along the constrained axis, 0 for a square grid
            axis: 0 to constrain columns, 1 to constrain rows

        Returns:
            Flat float64 ``rows x 2`` array of ``[column, row]`` grid
            coordinates, all non-negative integers

        Raises:
            InvalidParameterError: If rows, over_sample, extent or axis is out
                of range, or the input holds non-finite values
            DimensionMismatchError: If len(input) != rows * 2
        """
        rows = int(rows)
        if rows < 1:
            raise InvalidParameterError(f"rows must be > 0, got {rows}")
        X = as_matrix(input, rows, 2, name="input")
        if int(over_sample) < 1:
            raise InvalidParameterError(f"over_sample must be > 0, got {over_sample}")
        if int(extent) < 0:
            raise InvalidParameterError(f"extent must be >= 0, got {extent}")
        if int(axis) not in (0, 1):
            raise InvalidParameterError(f"axis must be 0 or 1, got {axis}")
        if not np.all(np.isfinite(X)):
            raise InvalidParameterError("input must contain only finite values")

        width, height = _grid_shape(rows * int(over_sample), int(extent), int(axis))
        target = np.column_stack(
            [_fit_to_span(X[:, 0], width), _fit_to_span(X[:, 1], height)]
        )
        col, row = np.meshgrid(np.arange(width), np.arange(height))
        cells = np.column_stack([col.ravel(), row.ravel()]).astype(np.float64)

        cost = cdist(target, cells, "sqeuclidean")
        point_idx, cell_idx = linear_sum_assignment(cost)
        out = np.empty((rows, 2), dtype=np.float64)
        out[point_idx] = cells[cell_idx]
        logger.debug(
            "grid placed %d points on %dx%d cells (displacement %.4g)",
            rows,
            width,
            height,
            float(cost[point_idx, cell_idx].sum()),
        )
        return out.reshape(-1)

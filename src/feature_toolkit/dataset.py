"""
Row-major dataset model shared by every algorithm.

A dataset is a flat buffer of ``rows * cols`` float64 values where element
``(r, c)`` lives at ``r * cols + c``. Shape is always given explicitly and
only validated against the buffer length, never inferred from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence, Union

import numpy as np

from .errors import DimensionMismatchError, EmptyInputError, InvalidParameterError

Buffer = Union[Sequence[float], np.ndarray]


def as_flat(data: Buffer, *, name: str = "data") -> np.ndarray:
    """Return *data* as a 1-D float64 array (no copy when already one)."""
    arr = np.asarray(data, dtype=np.float64)
    if arr.ndim != 1:
        raise DimensionMismatchError(
            f"{name} must be a flat buffer; got array of shape {arr.shape}"
        )
    return arr


def as_matrix(
    data: Buffer,
    rows: int,
    cols: int,
    *,
    name: str = "data",
    cols_name: str = "cols",
) -> np.ndarray:
    """
    Validate a flat buffer against ``rows x cols`` and return a matrix view.

    Args:
        data: Flat row-major buffer
        rows: Declared number of rows
        cols: Declared number of columns
        name: Buffer name used in error messages
        cols_name: Column-count name used in error messages (e.g. "dims")

    Returns:
        Read-only ``(rows, cols)`` float64 view of *data*

    Raises:
        InvalidParameterError: If rows < 0 or cols < 1
        DimensionMismatchError: If len(data) != rows * cols
        EmptyInputError: If rows == 0
    """
    rows = int(rows)
    cols = int(cols)
    if cols < 1:
        raise InvalidParameterError(f"{cols_name} must be > 0, got {cols}")
    if rows < 0:
        raise InvalidParameterError(f"rows must be >= 0, got {rows}")
    arr = as_flat(data, name=name)
    if arr.size != rows * cols:
        raise DimensionMismatchError(
            f"{name} length ({arr.size}) does not match rows * {cols_name} "
            f"({rows} * {cols} = {rows * cols})"
        )
    if rows == 0:
        raise EmptyInputError(f"{name} must contain at least one row")
    view = arr.reshape(rows, cols).view()
    view.flags.writeable = False
    return view


@dataclass(frozen=True)
class Dataset:
    """
    Immutable ``rows x cols`` dataset backed by its own flat buffer.

    Attributes:
        data: Flat row-major float64 buffer (read-only)
        rows: Number of rows (points)
        cols: Number of columns (features)
    """

    data: np.ndarray
    rows: int
    cols: int

    @classmethod
    def from_buffer(cls, data: Buffer, rows: int, cols: int) -> "Dataset":
        """Copy and validate a flat buffer."""
        as_matrix(data, rows, cols)
        buf = np.array(data, dtype=np.float64, copy=True)
        buf.flags.writeable = False
        return cls(data=buf, rows=int(rows), cols=int(cols))

    @classmethod
    def from_array(cls, matrix: Union[Sequence[Sequence[float]], np.ndarray]) -> "Dataset":
        """Build a dataset from a 2-D array-like."""
        arr = np.asarray(matrix, dtype=np.float64)
        if arr.ndim != 2:
            raise DimensionMismatchError(f"expected a 2-D array; got shape {arr.shape}")
        rows, cols = arr.shape
        return cls.from_buffer(arr.reshape(-1), rows, cols)

    @property
    def matrix(self) -> np.ndarray:
        """Read-only ``(rows, cols)`` view of the buffer."""
        return self.data.reshape(self.rows, self.cols)

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.cols

    def row(self, index: int) -> np.ndarray:
        """Return a copy of row *index*."""
        if not 0 <= index < self.rows:
            raise InvalidParameterError(
                f"row index {index} out of range [0, {self.rows})"
            )
        return self.matrix[index].copy()

    def __len__(self) -> int:
        return self.rows

    def __iter__(self) -> Iterator[np.ndarray]:
        for r in range(self.rows):
            yield self.row(r)

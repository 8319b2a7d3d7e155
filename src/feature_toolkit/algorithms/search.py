"""
Exact k-nearest-neighbour search over an append-only k-d tree.

Points are inserted as they arrive (no rebalancing). Queries are exact
regardless of insertion order; equal distances are ordered by insertion.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ..dataset import Buffer, as_flat
from ..errors import DimensionMismatchError, InvalidParameterError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class KNNResult:
    """Nearest neighbours in ascending distance order, as parallel lists."""

    distances: List[float] = field(default_factory=list)
    ids: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.ids)


class _Node:
    __slots__ = ("point", "id", "order", "axis", "left", "right")

    def __init__(self, point: np.ndarray, id: str, order: int, axis: int) -> None:
        self.point = point
        self.id = id
        self.order = order
        self.axis = axis
        self.left: Optional[_Node] = None
        self.right: Optional[_Node] = None


class KDTree:
    """
    Append-only k-d tree mapping string ids to fixed-dimension points.

    Ids are not required to be unique; duplicates are stored as separate
    points. Adding a point of the wrong length raises
    ``DimensionMismatchError`` and leaves the tree unchanged.

    Args:
        dims: Point dimensionality, fixed for the lifetime of the tree
    """

    def __init__(self, dims: int) -> None:
        if int(dims) < 1:
            raise InvalidParameterError(f"dims must be > 0, got {dims}")
        self.dims = int(dims)
        self._root: Optional[_Node] = None
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def add(self, id: str, data: Buffer) -> None:
        """Insert point *data* under *id*."""
        point = self._checked_point(data, "data").copy()
        node = _Node(point, str(id), self._size, 0)
        if self._root is None:
            self._root = node
        else:
            current = self._root
            while True:
                branch = "left" if point[current.axis] < current.point[current.axis] else "right"
                child = getattr(current, branch)
                if child is None:
                    node.axis = (current.axis + 1) % self.dims
                    setattr(current, branch, node)
                    break
                current = child
        self._size += 1

    def k_nearest(self, input: Buffer, k: int, radius: Optional[float] = None) -> KNNResult:
        """
        Find the *k* stored points closest to *input* (Euclidean).

        Args:
            input: Query point of length ``dims``
            k: Number of neighbours; clamped to the number of stored points
            radius: If given, only points at distance <= radius are returned

        Returns:
            KNNResult with distances ascending, ties in insertion order

        Raises:
            InvalidParameterError: If k < 1 or radius is negative
            DimensionMismatchError: If len(input) != dims
        """
        query = self._checked_point(input, "input")
        if int(k) < 1:
            raise InvalidParameterError(f"k must be >= 1, got {k}")
        if radius is not None and not radius >= 0:
            raise InvalidParameterError(f"radius must be >= 0, got {radius}")
        k = min(int(k), self._size)
        if k == 0:
            return KNNResult()

        limit_sq = np.inf if radius is None else float(radius) ** 2
        # Max-heap of the best k as (-dist_sq, -order, node)
        best: list = []
        stack = [(self._root, 0.0)]
        while stack:
            node, plane_sq = stack.pop()
            if node is None or plane_sq > limit_sq:
                continue
            if len(best) == k and plane_sq > -best[0][0]:
                continue

            diff = node.point - query
            dist_sq = float(diff @ diff)
            if dist_sq <= limit_sq:
                entry = (-dist_sq, -node.order, node.id)
                if len(best) < k:
                    heapq.heappush(best, entry)
                elif entry > best[0]:
                    heapq.heapreplace(best, entry)

            delta = query[node.axis] - node.point[node.axis]
            near, far = (node.left, node.right) if delta < 0 else (node.right, node.left)
            # Far side first so the near side is popped next
            stack.append((far, delta * delta))
            stack.append((near, 0.0))

        ordered = sorted(best, key=lambda e: (-e[0], -e[1]))
        return KNNResult(
            distances=[float(np.sqrt(-e[0])) for e in ordered],
            ids=[e[2] for e in ordered],
        )

    def _checked_point(self, data: Buffer, name: str) -> np.ndarray:
        point = as_flat(data, name=name)
        if point.size != self.dims:
            raise DimensionMismatchError(
                f"{name} dimensions ({point.size}) do not match KDTree dimensions ({self.dims})"
            )
        return point

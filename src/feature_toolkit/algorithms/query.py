"""
Conditional row filtering and column projection.

A query keeps the rows matching a sum-of-products predicate and projects
them onto a list of columns, recording each kept row's source index.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

import numpy as np

from ..dataset import Buffer, as_matrix
from ..errors import InvalidParameterError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class ComparisonOp(Enum):
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    @property
    def func(self) -> Callable[[np.ndarray, float], np.ndarray]:
        return _OPS[self]


_OPS = {
    ComparisonOp.EQ: operator.eq,
    ComparisonOp.NE: operator.ne,
    ComparisonOp.LT: operator.lt,
    ComparisonOp.LE: operator.le,
    ComparisonOp.GT: operator.gt,
    ComparisonOp.GE: operator.ge,
}


@dataclass(frozen=True)
class QueryCondition:
    """
    One comparison ``row[column] <op> value``.

    All conditions with ``and_group=True`` are ANDed into one group; each
    condition with ``and_group=False`` stands alone as an OR term.

    ``column`` must be integral (``1.0`` is accepted) and ``op`` may be a
    ``ComparisonOp`` or its symbol.
    """

    column: int
    op: ComparisonOp
    value: float
    and_group: bool = True

    def __post_init__(self):
        try:
            column = operator.index(self.column)
        except TypeError:
            integral = isinstance(self.column, (float, np.floating)) and float(self.column).is_integer()
            if not integral:
                raise InvalidParameterError(
                    f"condition column must be an integer, got {self.column!r}"
                ) from None
            column = int(self.column)
        object.__setattr__(self, "column", column)
        try:
            object.__setattr__(self, "op", ComparisonOp(self.op))
        except ValueError as e:
            raise InvalidParameterError(f"unknown comparison operator {self.op!r}") from e
        object.__setattr__(self, "value", float(self.value))
        object.__setattr__(self, "and_group", bool(self.and_group))

    def evaluate(self, X: np.ndarray) -> np.ndarray:
        return self.op.func(X[:, self.column], self.value)


@dataclass
class DataSetQueryResult:
    """Projected matching rows (flat ``rows x cols``) and their source indices."""

    data: np.ndarray
    rows: int
    cols: int
    source_indices: np.ndarray

    @property
    def matrix(self) -> np.ndarray:
        return self.data.reshape(self.rows, self.cols)


def _group_terms(conditions: Sequence[QueryCondition]) -> List[List[QueryCondition]]:
    """
    Split conditions into OR terms, each a list of ANDed conditions.

    Every ``and_group=True`` condition joins the single AND term, wherever it
    appears; every ``and_group=False`` condition becomes its own term.
    """
    conjunction = [c for c in conditions if c.and_group]
    terms = [conjunction] if conjunction else []
    terms.extend([c] for c in conditions if not c.and_group)
    return terms


class DataSetQuery:
    """Stateless filter/project over a row-major dataset."""

    @staticmethod
    def execute(
        data: Buffer,
        rows: int,
        cols: int,
        selected_columns: Sequence[int],
        conditions: Sequence[QueryCondition] = (),
        limit: Optional[int] = None,
    ) -> DataSetQueryResult:
        """
        Filter rows by *conditions* and project them onto *selected_columns*.

        Args:
            data: Flat ``rows x cols`` buffer
            rows: Number of rows
            cols: Number of columns
            selected_columns: Output columns in order (duplicates allowed)
            conditions: Predicate terms; empty means every row matches
            limit: Maximum rows returned in first-match order (None = no cap)

        Returns:
            DataSetQueryResult

        Raises:
            InvalidParameterError: If a column index is out of [0, cols),
                selected_columns is empty or limit is negative
        """
        X = as_matrix(data, rows, cols)
        selected = [int(c) for c in selected_columns]
        if not selected:
            raise InvalidParameterError("selected_columns cannot be empty")
        bad = [c for c in selected if not 0 <= c < cols]
        if bad:
            raise InvalidParameterError(f"selected columns {bad} out of range [0, {cols})")
        bad = [c.column for c in conditions if not 0 <= c.column < cols]
        if bad:
            raise InvalidParameterError(f"condition columns {bad} out of range [0, {cols})")
        if limit is not None and int(limit) < 0:
            raise InvalidParameterError(f"limit must be >= 0, got {limit}")

        terms = _group_terms(conditions)
        if terms:
            mask = np.zeros(X.shape[0], dtype=bool)
            for term in terms:
                term_mask = np.ones(X.shape[0], dtype=bool)
                for cond in term:
                    term_mask &= cond.evaluate(X)
                mask |= term_mask
        else:
            mask = np.ones(X.shape[0], dtype=bool)

        indices = np.flatnonzero(mask)
        if limit is not None:
            indices = indices[: int(limit)]
        out = X[np.ix_(indices, selected)]
        logger.debug(
            "query matched %d of %d rows (%d OR terms)", indices.size, X.shape[0], len(terms)
        )
        return DataSetQueryResult(
            data=out.reshape(-1).copy(),
            rows=int(indices.size),
            cols=len(selected),
            source_indices=indices.astype(np.int64),
        )

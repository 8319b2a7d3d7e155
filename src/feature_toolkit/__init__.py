"""
Feature Toolkit - Core Package

Numeric toolkit for transforming, reducing, clustering, indexing and
querying tabular feature datasets (e.g. audio descriptor vectors).

This package provides:
- A row-major Dataset model with shape validation
- Feature scalers, PCA and MDS
- KMeans / spherical KMeans
- Exact k-nearest-neighbour search and conditional row queries
"""

__version__ = "0.1.0"

from .dataset import Dataset
from .errors import (
    FeatureToolkitError,
    InvalidParameterError,
    DimensionMismatchError,
    EmptyInputError,
    NotFittedError,
    NumericalInstabilityError,
)

# Explicitly import subpackages to ensure they're discoverable
from . import algorithms
from . import utils

__all__ = [
    "Dataset",
    "FeatureToolkitError",
    "InvalidParameterError",
    "DimensionMismatchError",
    "EmptyInputError",
    "NotFittedError",
    "NumericalInstabilityError",
    "algorithms",
    "utils",
]

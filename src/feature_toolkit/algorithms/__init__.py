"""
Algorithm Core Library - scalers, PCA, MDS, clustering, search, queries and grid layout.

Every algorithm works on flat row-major buffers with explicit shapes and
returns freshly allocated arrays. No algorithm calls another; composition
(see ``sweep``) is left to the caller.
"""

from .scaling import Normalize, Standardize, RobustScale
from .dimensionality_reduction import (
    PCA,
    PCAConfig,
    PcaScaler,
    MDS,
    DistanceMetric,
    pairwise_distances,
)
from .clustering import KMeans, SKMeans, KMeansConfig, KMeansInit, KMeansResult
from .search import KDTree, KNNResult
from .query import ComparisonOp, QueryCondition, DataSetQuery, DataSetQueryResult
from .grid import Grid
from .statistics import (
    BufStat,
    BufStats,
    BufStatsConfig,
    BufStatsOutput,
    RunningStats,
)
from .metrics import (
    adjusted_rand_index,
    pairwise_ari,
    silhouette_score_precomputed,
    inertia,
)
from .sweep import SweepConfig, SweepResult, run_sweep

__all__ = [
    # Scalers
    "Normalize",
    "Standardize",
    "RobustScale",
    # Dimensionality reduction
    "PCA",
    "PCAConfig",
    "PcaScaler",
    "MDS",
    "DistanceMetric",
    "pairwise_distances",
    # Clustering
    "KMeans",
    "SKMeans",
    "KMeansConfig",
    "KMeansInit",
    "KMeansResult",
    # Search & query
    "KDTree",
    "KNNResult",
    "ComparisonOp",
    "QueryCondition",
    "DataSetQuery",
    "DataSetQueryResult",
    # Layout
    "Grid",
    # Statistics
    "BufStat",
    "BufStats",
    "BufStatsConfig",
    "BufStatsOutput",
    "RunningStats",
    # Metrics
    "adjusted_rand_index",
    "pairwise_ari",
    "silhouette_score_precomputed",
    "inertia",
    # Sweep orchestration
    "SweepConfig",
    "SweepResult",
    "run_sweep",
]

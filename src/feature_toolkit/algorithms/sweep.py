"""
Sweep orchestration for clustering across multiple K values.

Provides configuration and orchestration for running clustering sweeps
with optional PCA reduction, multi-restart support and stability metrics.
This is caller-side composition: it only chains the public components.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import numpy as np

from ..dataset import Buffer, as_matrix
from ..errors import InvalidParameterError
from ..utils.logging_config import get_logger
from .clustering import KMeans, KMeansConfig, KMeansInit, KMeansResult, SKMeans
from .dimensionality_reduction import PCA, PCAConfig, PcaScaler, pairwise_distances
from .metrics import pairwise_ari, silhouette_score_precomputed

logger = get_logger(__name__)

Array2D = np.ndarray


@dataclass
class SweepConfig:
    """Configuration for clustering sweep."""

    target_dims: Optional[int] = None  # None skips PCA
    scaler: PcaScaler = field(default_factory=PcaScaler.none)
    whiten: bool = False
    k_min: int = 2
    k_max: int = 8
    max_iter: int = 64
    init: Union[KMeansInit, str] = KMeansInit.RANDOM_SAMPLING
    base_seed: int = 0
    n_restarts: int = 1
    spherical: bool = False  # SKMeans instead of KMeans
    compute_stability: bool = False


@dataclass
class SweepResult:
    """Results from a clustering sweep."""

    pca: Dict[str, Any]
    by_k: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    Z: Optional[Array2D] = None
    dist: Optional[Array2D] = None

    def best_k(self) -> int:
        """K with the highest mean silhouette (requires compute_stability)."""
        scored = {k: r["stability"]["silhouette"]["mean"] for k, r in self.by_k.items() if "stability" in r}
        if not scored:
            raise InvalidParameterError("best_k needs a sweep run with compute_stability and n_restarts > 1")
        return max(scored, key=lambda k: (scored[k], -k))


def run_sweep(data: Buffer, rows: int, cols: int, cfg: SweepConfig) -> SweepResult:
    """
    Run clustering sweep across K range with optional multi-restart and stability metrics.

    Pipeline:
    1. PCA-reduce to cfg.target_dims (skipped when target_dims is None)
    2. For each K in [k_min..k_max]:
       - Fit KMeans/SKMeans n_restarts times with seeds base_seed + restart,
         keep the lowest-inertia run
       - Optionally compute stability metrics across restarts

    Args:
        data: Flat ``rows x cols`` buffer
        rows: Number of rows
        cols: Number of columns
        cfg: SweepConfig with parameters

    Returns:
        SweepResult with PCA metadata and results by K

    Raises:
        InvalidParameterError: If k_min > k_max, k_max > rows or n_restarts < 1
    """
    X = as_matrix(data, rows, cols)
    n_samples = X.shape[0]

    if cfg.k_min < 1:
        raise InvalidParameterError(f"k_min must be >= 1, got {cfg.k_min}")
    if cfg.k_min > cfg.k_max:
        raise InvalidParameterError(f"k_min ({cfg.k_min}) must be <= k_max ({cfg.k_max})")
    if cfg.k_max > n_samples:
        raise InvalidParameterError(f"k_max ({cfg.k_max}) must be <= rows ({n_samples})")
    if cfg.n_restarts < 1:
        raise InvalidParameterError(f"n_restarts must be >= 1, got {cfg.n_restarts}")

    # Step 1: PCA projection (conditional on target_dims)
    if cfg.target_dims is None:
        Z = X
        pca_meta: Dict[str, Any] = {"skip_pca": True, "dims_used": cols}
    else:
        pca = PCA(PCAConfig(whiten=cfg.whiten, scaler=cfg.scaler))
        flat, explained = pca.fit_transform(X.reshape(-1), n_samples, cols, cfg.target_dims)
        Z = flat.reshape(n_samples, cfg.target_dims)
        pca_meta = {
            "skip_pca": False,
            "dims_used": cfg.target_dims,
            "explained_variance_ratio": explained,
            "eigenvalues": pca.explained_variance.tolist(),
        }

    dims = Z.shape[1]
    z_flat = Z.reshape(-1)
    dist = None
    if cfg.compute_stability:
        metric = "cosine" if cfg.spherical else "euclidean"
        dist = pairwise_distances(Z, metric)

    # Step 2: Sweep across K
    by_k: Dict[int, Dict[str, Any]] = {}
    model_cls = SKMeans if cfg.spherical else KMeans

    for K in range(cfg.k_min, cfg.k_max + 1):
        runs: List[KMeansResult] = []
        for restart_idx in range(cfg.n_restarts):
            km_cfg = KMeansConfig(
                k=K, max_iter=cfg.max_iter, init=cfg.init, seed=cfg.base_seed + restart_idx
            )
            runs.append(model_cls().fit(z_flat, n_samples, dims, km_cfg))

        objectives = [r.inertia for r in runs]
        best = runs[int(np.argmin(objectives))]
        result: Dict[str, Any] = {
            "objective": best.inertia,
            "objectives": objectives,
            "labels": best.assignments,
            "means": best.means_matrix,
            "n_iter": best.n_iter,
            "converged": best.converged,
        }

        # Stability metrics (require multiple restarts)
        if cfg.compute_stability and cfg.n_restarts > 1:
            labels_list = [r.assignments for r in runs]
            sils = [silhouette_score_precomputed(l, dist) for l in labels_list]
            aris = pairwise_ari(labels_list)
            result["stability"] = {
                "silhouette": {"mean": float(np.mean(sils)), "std": float(np.std(sils))},
                "stability_ari": {"mean": float(np.mean(aris)), "std": float(np.std(aris))},
            }

        by_k[K] = result
        logger.debug("sweep K=%d best inertia %.6g", K, best.inertia)

    return SweepResult(
        pca=pca_meta,
        by_k=by_k,
        Z=Z,
        dist=dist,
    )

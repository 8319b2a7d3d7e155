"""
Pytest configuration and shared fixtures.

This file is automatically discovered by pytest and provides fixtures
available to all test modules.
"""

import logging

import numpy as np
import pytest


@pytest.fixture
def rng():
    """Deterministic random generator for building test data."""
    return np.random.default_rng(42)


@pytest.fixture
def blobs(rng):
    """
    Three well-separated Gaussian blobs as a flat buffer.

    Returns a tuple ``(data, rows, dims, truth)`` where ``truth`` holds the
    generating blob id of every row.
    """
    centers = np.array([[0.0, 0.0, 0.0], [10.0, 10.0, 0.0], [0.0, 10.0, 10.0]])
    per_blob = 20
    points = np.vstack([c + rng.standard_normal((per_blob, 3)) * 0.3 for c in centers])
    truth = np.repeat(np.arange(len(centers)), per_blob)
    return points.reshape(-1), points.shape[0], points.shape[1], truth


@pytest.fixture
def sample_matrix():
    """8 x 3 dataset with one strong outlier row."""
    return np.array(
        [
            [1.0, 2.0, 0.9],
            [1.2, 2.2, 1.1],
            [0.8, 1.7, 0.7],
            [3.0, 3.2, 2.9],
            [2.8, 3.0, 2.6],
            [10.0, -8.0, 9.0],
            [2.9, 3.1, 2.7],
            [1.1, 2.1, 1.0],
        ]
    )


@pytest.fixture(autouse=True)
def quiet_toolkit_logs():
    """Keep toolkit warnings out of test output unless a test asks for them."""
    logger = logging.getLogger("feature_toolkit")
    previous = logger.level
    logger.setLevel(logging.ERROR)
    yield
    logger.setLevel(previous)

"""
Tests for the per-column scalers.
"""

import logging

import numpy as np
import pytest

from feature_toolkit.algorithms.scaling import Normalize, RobustScale, Standardize
from feature_toolkit.errors import (
    DimensionMismatchError,
    EmptyInputError,
    InvalidParameterError,
    NotFittedError,
)

SCALERS = [
    lambda: Normalize(),
    lambda: Normalize(-1.0, 2.0),
    lambda: Standardize(),
    lambda: RobustScale(),
    lambda: RobustScale(10.0, 90.0),
]


# ------------------------------------------------------------------
# Shared lifecycle
# ------------------------------------------------------------------


@pytest.mark.parametrize("make", SCALERS)
def test_round_trip(make, rng):
    """inverse_transform(transform(x)) recovers x."""
    X = rng.normal(5.0, 3.0, size=(30, 4))
    scaler = make().fit(X.reshape(-1), 30, 4)
    Y = scaler.transform(X.reshape(-1), 30, 4)
    back = scaler.inverse_transform(Y, 30, 4)
    np.testing.assert_allclose(back, X.reshape(-1), atol=1e-9)


@pytest.mark.parametrize("make", SCALERS)
def test_fit_transform_matches_fit_then_transform(make, sample_matrix):
    flat = sample_matrix.reshape(-1)
    a = make().fit_transform(flat, 8, 3)
    b = make().fit(flat, 8, 3).transform(flat, 8, 3)
    np.testing.assert_array_equal(a, b)


@pytest.mark.parametrize("make", SCALERS)
def test_transform_before_fit(make):
    scaler = make()
    assert not scaler.is_fitted
    with pytest.raises(NotFittedError):
        scaler.transform([1.0, 2.0], 1, 2)
    with pytest.raises(NotFittedError):
        scaler.inverse_transform([1.0, 2.0], 1, 2)


@pytest.mark.parametrize("make", SCALERS)
def test_column_count_must_match_fit(make, sample_matrix):
    scaler = make().fit(sample_matrix.reshape(-1), 8, 3)
    assert scaler.n_features == 3
    with pytest.raises(DimensionMismatchError):
        scaler.transform(np.zeros(8), 4, 2)


@pytest.mark.parametrize("make", SCALERS)
def test_row_count_may_differ_from_fit(make, sample_matrix):
    scaler = make().fit(sample_matrix.reshape(-1), 8, 3)
    out = scaler.transform(sample_matrix[:2].reshape(-1), 2, 3)
    assert out.shape == (6,)


def test_buffer_length_mismatch():
    with pytest.raises(DimensionMismatchError):
        Standardize().fit([1.0, 2.0, 3.0], 2, 2)


def test_empty_input():
    with pytest.raises(EmptyInputError):
        Standardize().fit([], 0, 2)


def test_zero_columns_rejected():
    with pytest.raises(InvalidParameterError):
        Standardize().fit([], 3, 0)


def test_input_buffer_not_mutated(sample_matrix):
    flat = sample_matrix.reshape(-1).copy()
    before = flat.copy()
    Standardize().fit_transform(flat, 8, 3)
    np.testing.assert_array_equal(flat, before)


def test_failed_refit_keeps_previous_state(sample_matrix):
    """A refit that fails validation leaves the fitted statistics untouched."""
    scaler = Standardize().fit(sample_matrix.reshape(-1), 8, 3)
    expected = scaler.transform(sample_matrix.reshape(-1), 8, 3)
    with pytest.raises(DimensionMismatchError):
        scaler.fit([1.0, 2.0, 3.0], 2, 2)
    np.testing.assert_array_equal(scaler.transform(sample_matrix.reshape(-1), 8, 3), expected)


# ------------------------------------------------------------------
# Normalize
# ------------------------------------------------------------------


def test_normalize_hits_requested_range(rng):
    X = rng.uniform(-50, 50, size=(25, 3))
    out = Normalize(-1.0, 2.0).fit_transform(X.reshape(-1), 25, 3).reshape(25, 3)
    np.testing.assert_allclose(out.min(axis=0), -1.0)
    np.testing.assert_allclose(out.max(axis=0), 2.0)


def test_normalize_known_values():
    X = np.array([[0.0, 10.0], [5.0, 20.0], [10.0, 30.0]])
    scaler = Normalize().fit(X.reshape(-1), 3, 2)
    np.testing.assert_array_equal(scaler.data_min, [0.0, 10.0])
    np.testing.assert_array_equal(scaler.data_max, [10.0, 30.0])
    out = scaler.transform(X.reshape(-1), 3, 2)
    np.testing.assert_allclose(out, [0.0, 0.0, 0.5, 0.5, 1.0, 1.0])


def test_normalize_constant_column_maps_to_min():
    X = np.array([[4.0, 1.0], [4.0, 2.0], [4.0, 3.0]])
    out = Normalize(2.0, 3.0).fit_transform(X.reshape(-1), 3, 2).reshape(3, 2)
    np.testing.assert_array_equal(out[:, 0], [2.0, 2.0, 2.0])
    assert np.all(np.isfinite(out))


@pytest.mark.parametrize("lo,hi", [(1.0, 1.0), (2.0, 1.0), (0.0, np.inf)])
def test_normalize_invalid_range(lo, hi):
    with pytest.raises(InvalidParameterError):
        Normalize(lo, hi)


# ------------------------------------------------------------------
# Standardize
# ------------------------------------------------------------------


def test_standardize_zero_mean_unit_std(rng):
    X = rng.normal(3.0, 7.0, size=(40, 3))
    out = Standardize().fit_transform(X.reshape(-1), 40, 3).reshape(40, 3)
    np.testing.assert_allclose(out.mean(axis=0), 0.0, atol=1e-12)
    np.testing.assert_allclose(out.std(axis=0, ddof=0), 1.0)


def test_standardize_constant_column_is_zero(caplog):
    X = np.array([[5.0, 1.0], [5.0, 2.0], [5.0, 4.0]])
    caplog.set_level(logging.WARNING, logger="feature_toolkit")
    out = Standardize().fit_transform(X.reshape(-1), 3, 2).reshape(3, 2)
    np.testing.assert_array_equal(out[:, 0], [0.0, 0.0, 0.0])
    assert not np.any(np.isnan(out))
    assert "zero spread in columns [0]" in caplog.text


# ------------------------------------------------------------------
# RobustScale
# ------------------------------------------------------------------


def test_robust_scale_known_values():
    X = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    scaler = RobustScale().fit(X, 5, 1)
    np.testing.assert_allclose(scaler.median, [3.0])
    np.testing.assert_allclose(scaler.data_low, [2.0])
    np.testing.assert_allclose(scaler.data_high, [4.0])
    np.testing.assert_allclose(scaler.transform(X, 5, 1), [-1.0, -0.5, 0.0, 0.5, 1.0])


@pytest.mark.parametrize("lo,hi", [(50.0, 50.0), (75.0, 25.0), (-1.0, 50.0), (10.0, 101.0)])
def test_robust_scale_invalid_percentiles(lo, hi):
    with pytest.raises(InvalidParameterError):
        RobustScale(lo, hi)


def test_robust_scale_zero_spread_column():
    X = np.array([[1.0, 0.0], [1.0, 1.0], [1.0, 2.0], [1.0, 3.0]])
    out = RobustScale().fit_transform(X.reshape(-1), 4, 2).reshape(4, 2)
    np.testing.assert_array_equal(out[:, 0], 0.0)
    assert np.all(np.isfinite(out))

"""
Tests for BufStats descriptors and RunningStats.
"""

import numpy as np
import pytest

from feature_toolkit.algorithms.statistics import (
    BufStat,
    BufStats,
    BufStatsConfig,
    RunningStats,
)
from feature_toolkit.errors import DimensionMismatchError, EmptyInputError, InvalidParameterError


# ------------------------------------------------------------------
# BufStats
# ------------------------------------------------------------------


def test_default_statistics_single_channel():
    out = BufStats().process([1.0, 2.0, 3.0, 4.0, 5.0], 5, 1)
    assert out.num_channels == 1
    assert out.values_per_channel == 7
    mean, std, skew, kurt, low, mid, high = out.values
    assert mean == pytest.approx(3.0)
    assert std == pytest.approx(np.sqrt(2.0))
    assert skew == pytest.approx(0.0, abs=1e-12)
    assert kurt == pytest.approx(-1.3)
    assert (low, mid, high) == (1.0, 3.0, 5.0)


def test_skewed_series_has_positive_skew():
    out = BufStats(BufStatsConfig(select={BufStat.SKEW})).process([0.0, 0.0, 0.0, 0.0, 10.0], 5, 1)
    assert out.values[0] > 1.0


def test_channel_major_layout():
    out = BufStats(BufStatsConfig(select={BufStat.MEAN})).process(
        [1.0, 2.0, 3.0, 10.0, 20.0, 30.0], 3, 2
    )
    np.testing.assert_allclose(out.values, [2.0, 20.0])
    np.testing.assert_allclose(out.channel(1), [20.0])
    assert out.channel(2) is None


def test_selected_statistics_keep_fixed_order():
    cfg = BufStatsConfig(select={BufStat.HIGH, BufStat.MEAN})
    assert cfg.selected == (BufStat.MEAN, BufStat.HIGH)
    out = BufStats(cfg).process([4.0, 1.0, 7.0], 3, 1)
    np.testing.assert_allclose(out.values, [4.0, 7.0])


def test_custom_percentiles():
    cfg = BufStatsConfig(
        select={BufStat.LOW, BufStat.MID, BufStat.HIGH},
        low_percentile=25.0,
        middle_percentile=50.0,
        high_percentile=75.0,
    )
    out = BufStats(cfg).process([1.0, 2.0, 3.0, 4.0, 5.0], 5, 1)
    np.testing.assert_allclose(out.values, [2.0, 3.0, 4.0])


def test_derivatives_append_blocks():
    cfg = BufStatsConfig(select={BufStat.MEAN, BufStat.STD}, num_derivatives=2)
    out = BufStats(cfg).process([1.0, 2.0, 4.0, 7.0], 4, 1)
    assert out.values_per_channel == 6
    # series, first difference [1, 2, 3], second difference [1, 1]
    np.testing.assert_allclose(out.values[0:2], [3.5, np.std([1.0, 2.0, 4.0, 7.0])])
    np.testing.assert_allclose(out.values[2:4], [2.0, np.std([1.0, 2.0, 3.0])])
    np.testing.assert_allclose(out.values[4:6], [1.0, 0.0])


def test_constant_series_has_zero_moments():
    out = BufStats().process([2.0] * 6, 6, 1)
    np.testing.assert_allclose(out.values[:4], [2.0, 0.0, 0.0, 0.0])


def test_frame_and_channel_window():
    source = [1.0, 2.0, 3.0, 4.0, 10.0, 20.0, 30.0, 40.0, 5.0, 5.0, 5.0, 5.0]
    cfg = BufStatsConfig(
        start_frame=1, num_frames=2, start_channel=1, num_channels=1, select={BufStat.MEAN}
    )
    out = BufStats(cfg).process(source, 4, 3)
    assert out.num_channels == 1
    np.testing.assert_allclose(out.values, [25.0])


def test_weights_select_frames():
    cfg = BufStatsConfig(select={BufStat.MEAN})
    out = BufStats(cfg).process([1.0, 2.0, 100.0, 200.0], 4, 1, weights=[1.0, 1.0, 0.0, -3.0])
    np.testing.assert_allclose(out.values, [1.5])


def test_weighted_mean():
    cfg = BufStatsConfig(select={BufStat.MEAN})
    out = BufStats(cfg).process([0.0, 10.0], 2, 1, weights=[3.0, 1.0])
    np.testing.assert_allclose(out.values, [2.5])


def test_all_zero_weights_give_zeros():
    out = BufStats().process([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], 3, 2, weights=[0.0, -1.0, 0.0])
    np.testing.assert_array_equal(out.values, np.zeros(14))


def test_outlier_rejection():
    cfg = BufStatsConfig(select={BufStat.MEAN, BufStat.HIGH}, outliers_cutoff=1.5)
    out = BufStats(cfg).process([1.0, 2.0, 3.0, 4.0, 100.0], 5, 1)
    np.testing.assert_allclose(out.values, [2.5, 4.0])


@pytest.mark.parametrize(
    "kwargs",
    [
        {"select": set()},
        {"num_derivatives": 3},
        {"low_percentile": 60.0},
        {"middle_percentile": 50.0, "high_percentile": 40.0},
        {"high_percentile": 101.0},
        {"start_frame": -1},
        {"outliers_cutoff": -0.5},
    ],
)
def test_config_validation(kwargs):
    with pytest.raises(InvalidParameterError):
        BufStatsConfig(**kwargs)


def test_window_out_of_range():
    source = [1.0, 2.0, 3.0]
    with pytest.raises(InvalidParameterError):
        BufStats(BufStatsConfig(start_frame=3)).process(source, 3, 1)
    with pytest.raises(InvalidParameterError):
        BufStats(BufStatsConfig(start_frame=1, num_frames=3)).process(source, 3, 1)
    with pytest.raises(InvalidParameterError):
        BufStats(BufStatsConfig(start_channel=1)).process(source, 3, 1)
    with pytest.raises(InvalidParameterError):
        BufStats(BufStatsConfig(num_frames=2, num_derivatives=2)).process(source, 3, 1)


def test_buffer_validation():
    with pytest.raises(DimensionMismatchError):
        BufStats().process([1.0, 2.0, 3.0], 2, 2)
    with pytest.raises(DimensionMismatchError):
        BufStats().process([1.0, 2.0, 3.0], 3, 1, weights=[1.0, 1.0])
    with pytest.raises(EmptyInputError):
        BufStats().process([], 0, 2)
    with pytest.raises(InvalidParameterError):
        BufStats().process([1.0], 1, 0)


# ------------------------------------------------------------------
# RunningStats
# ------------------------------------------------------------------


def test_running_stats_sliding_window():
    stats = RunningStats(history_size=3, input_size=2)

    mean, std = stats.process([1.0, 2.0])
    np.testing.assert_array_equal(mean, [1.0, 2.0])
    np.testing.assert_array_equal(std, [0.0, 0.0])

    mean, std = stats.process([3.0, 4.0])
    np.testing.assert_allclose(mean, [2.0, 3.0])
    np.testing.assert_allclose(std, [np.sqrt(2.0), np.sqrt(2.0)])

    stats.process([5.0, 6.0])
    mean, std = stats.process([7.0, 8.0])
    assert len(stats) == 3
    np.testing.assert_allclose(mean, [5.0, 6.0])
    np.testing.assert_allclose(std, [2.0, 2.0])


def test_running_stats_returns_new_arrays():
    stats = RunningStats(2, 1)
    mean, _ = stats.process([1.0])
    mean[0] = 99.0
    mean2, _ = stats.process([3.0])
    np.testing.assert_allclose(mean2, [2.0])


def test_running_stats_clear():
    stats = RunningStats(4, 1)
    stats.process([10.0])
    stats.process([20.0])
    stats.clear()
    assert len(stats) == 0
    mean, std = stats.process([1.0])
    np.testing.assert_array_equal(mean, [1.0])
    np.testing.assert_array_equal(std, [0.0])


def test_running_stats_validation():
    with pytest.raises(InvalidParameterError):
        RunningStats(1, 2)
    with pytest.raises(InvalidParameterError):
        RunningStats(3, 0)
    with pytest.raises(DimensionMismatchError):
        RunningStats(3, 2).process([1.0, 2.0, 3.0])

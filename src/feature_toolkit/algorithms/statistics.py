"""
Descriptor statistics over multi-channel frame buffers.

BufStats summarises each channel of a channel-major buffer
(``[channel0 frames..., channel1 frames..., ...]``) into seven statistics,
optionally for its first and second derivatives too. RunningStats keeps a
sliding mean / sample standard deviation over the last N vectors.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, FrozenSet, Iterable, Optional, Tuple

import numpy as np

from ..dataset import Buffer, as_flat
from ..errors import DimensionMismatchError, EmptyInputError, InvalidParameterError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

MAX_DERIVATIVES = 2


class BufStat(Enum):
    """Statistics in their fixed output order."""

    MEAN = 0
    STD = 1
    SKEW = 2
    KURTOSIS = 3
    LOW = 4
    MID = 5
    HIGH = 6


STATS_PER_DERIVATIVE = len(BufStat)
ALL_STATS: FrozenSet[BufStat] = frozenset(BufStat)


@dataclass(frozen=True)
class BufStatsConfig:
    """
    Frame/channel window and statistic selection for :class:`BufStats`.

    ``num_frames`` / ``num_channels`` of None mean "to the end of the source".
    ``outliers_cutoff`` is in IQR units; None disables outlier rejection.
    """

    start_frame: int = 0
    num_frames: Optional[int] = None
    start_channel: int = 0
    num_channels: Optional[int] = None
    select: FrozenSet[BufStat] = ALL_STATS
    num_derivatives: int = 0
    low_percentile: float = 0.0
    middle_percentile: float = 50.0
    high_percentile: float = 100.0
    outliers_cutoff: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "select", frozenset(BufStat(s) for s in self.select))
        if not self.select:
            raise InvalidParameterError("select must enable at least one statistic")
        if not 0 <= self.num_derivatives <= MAX_DERIVATIVES:
            raise InvalidParameterError(
                f"num_derivatives must be in [0, {MAX_DERIVATIVES}], got {self.num_derivatives}"
            )
        for name in ("low_percentile", "middle_percentile", "high_percentile"):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise InvalidParameterError(f"{name} must be in [0, 100], got {value}")
        if self.low_percentile > self.middle_percentile:
            raise InvalidParameterError("low_percentile must be <= middle_percentile")
        if self.middle_percentile > self.high_percentile:
            raise InvalidParameterError("middle_percentile must be <= high_percentile")
        if self.start_frame < 0 or self.start_channel < 0:
            raise InvalidParameterError("start_frame and start_channel must be >= 0")
        if self.outliers_cutoff is not None and not self.outliers_cutoff >= 0:
            raise InvalidParameterError(
                f"outliers_cutoff must be >= 0, got {self.outliers_cutoff}"
            )

    @property
    def selected(self) -> Tuple[BufStat, ...]:
        """Selected statistics in output order."""
        return tuple(s for s in BufStat if s in self.select)


@dataclass
class BufStatsOutput:
    """Channel-major statistics: ``values_per_channel`` values per channel."""

    values: np.ndarray
    num_channels: int
    values_per_channel: int

    def channel(self, channel: int) -> Optional[np.ndarray]:
        if not 0 <= channel < self.num_channels:
            return None
        start = channel * self.values_per_channel
        return self.values[start:start + self.values_per_channel].copy()


def _weighted_percentiles(x: np.ndarray, w: Optional[np.ndarray], qs: Iterable[float]) -> np.ndarray:
    qs = np.asarray(list(qs), dtype=np.float64)
    if w is None:
        return np.percentile(x, qs)
    keep = w > 0
    x, w = x[keep], w[keep]
    order = np.argsort(x, kind="stable")
    xs, ws = x[order], w[order]
    cum = np.cumsum(ws)
    positions = (cum - 0.5 * ws) / cum[-1]
    return np.interp(qs / 100.0, positions, xs)


def _describe(x: np.ndarray, w: Optional[np.ndarray], percentiles: Tuple[float, float, float]) -> np.ndarray:
    """The seven statistics of one series, in BufStat order."""
    p = np.full(x.size, 1.0 / x.size) if w is None else w / w.sum()
    mean = float(p @ x)
    dev = x - mean
    var = float(p @ dev ** 2)
    std = np.sqrt(var)
    if std <= 10.0 * np.finfo(np.float64).eps * max(abs(mean), 1.0):
        skew = kurtosis = 0.0
    else:
        skew = float(p @ dev ** 3) / std ** 3
        kurtosis = float(p @ dev ** 4) / var ** 2 - 3.0
    low, mid, high = _weighted_percentiles(x, w, percentiles)
    return np.array([mean, std, skew, kurtosis, low, mid, high])


def _outlier_mask(frames: np.ndarray, cutoff: float) -> np.ndarray:
    """True for frames (columns) inside the IQR fences in every channel."""
    q1, q3 = np.percentile(frames, [25.0, 75.0], axis=1, keepdims=True)
    iqr = q3 - q1
    inside = (frames >= q1 - cutoff * iqr) & (frames <= q3 + cutoff * iqr)
    return inside.all(axis=0)


class BufStats:
    """
    Per-channel summary statistics of a channel-major buffer.

    Args:
        config: Window, derivative count, percentiles and statistic selection
    """

    def __init__(self, config: Optional[BufStatsConfig] = None) -> None:
        self.config = config if config is not None else BufStatsConfig()

    @property
    def values_per_channel(self) -> int:
        return len(self.config.selected) * (self.config.num_derivatives + 1)

    def process(
        self,
        source: Buffer,
        num_frames: int,
        num_channels: int,
        weights: Optional[Buffer] = None,
    ) -> BufStatsOutput:
        """
        Compute statistics for the configured window of *source*.

        Args:
            source: Channel-major buffer of ``num_channels * num_frames`` values
            num_frames: Frames per channel in *source*
            num_channels: Channels in *source*
            weights: Optional per-frame weights for the selected frame span;
                negative weights count as zero

        Returns:
            BufStatsOutput, all zeros when every weight is <= 0
        """
        cfg = self.config
        if int(num_channels) < 1:
            raise InvalidParameterError(f"num_channels must be > 0, got {num_channels}")
        if int(num_frames) < 0:
            raise InvalidParameterError(f"num_frames must be >= 0, got {num_frames}")
        src = as_flat(source, name="source")
        if src.size != num_frames * num_channels:
            raise DimensionMismatchError(
                f"source length ({src.size}) does not match num_frames * num_channels "
                f"({num_frames} * {num_channels})"
            )
        if num_frames == 0:
            raise EmptyInputError("source must contain at least one frame")
        frames = src.reshape(num_channels, num_frames)

        if cfg.start_frame >= num_frames:
            raise InvalidParameterError("start_frame out of range")
        span = cfg.num_frames if cfg.num_frames is not None else num_frames - cfg.start_frame
        if span < 1 or cfg.start_frame + span > num_frames:
            raise InvalidParameterError("start_frame + num_frames out of range")
        if span <= cfg.num_derivatives:
            raise InvalidParameterError("selected frame span must be > num_derivatives")
        if cfg.start_channel >= num_channels:
            raise InvalidParameterError("start_channel out of range")
        n_ch = cfg.num_channels if cfg.num_channels is not None else num_channels - cfg.start_channel
        if n_ch < 1 or cfg.start_channel + n_ch > num_channels:
            raise InvalidParameterError("start_channel + num_channels out of range")

        window = frames[cfg.start_channel:cfg.start_channel + n_ch, cfg.start_frame:cfg.start_frame + span]

        w = None
        if weights is not None:
            w = as_flat(weights, name="weights")
            if w.size != span:
                raise DimensionMismatchError(
                    f"weights length ({w.size}) must match selected frame span ({span})"
                )
            w = np.clip(w, 0.0, None)
            if not np.any(w > 0):
                return BufStatsOutput(
                    values=np.zeros(n_ch * self.values_per_channel),
                    num_channels=n_ch,
                    values_per_channel=self.values_per_channel,
                )

        if cfg.outliers_cutoff is not None:
            keep = _outlier_mask(window, cfg.outliers_cutoff)
            if keep.sum() <= cfg.num_derivatives:
                raise InvalidParameterError("too few frames left after outlier rejection")
            if not keep.all():
                logger.debug("BufStats dropped %d outlier frames", int((~keep).sum()))
            window = window[:, keep]
            w = None if w is None else w[keep]

        percentiles = (cfg.low_percentile, cfg.middle_percentile, cfg.high_percentile)
        picks = [s.value for s in cfg.selected]
        out = np.empty((n_ch, self.values_per_channel))
        for ch in range(n_ch):
            series = window[ch]
            blocks = []
            for order in range(cfg.num_derivatives + 1):
                wd = None if w is None else w[order:]
                if wd is not None and not np.any(wd > 0):
                    blocks.append(np.zeros(len(picks)))
                else:
                    blocks.append(_describe(series, wd, percentiles)[picks])
                series = np.diff(series)
            out[ch] = np.concatenate(blocks)

        return BufStatsOutput(
            values=out.reshape(-1),
            num_channels=n_ch,
            values_per_channel=self.values_per_channel,
        )


class RunningStats:
    """
    Sliding mean and sample standard deviation over the last vectors seen.

    Args:
        history_size: Number of past vectors kept (>= 2)
        input_size: Length of every input vector (>= 1)
    """

    def __init__(self, history_size: int, input_size: int) -> None:
        if int(history_size) < 2:
            raise InvalidParameterError(f"history_size must be >= 2, got {history_size}")
        if int(input_size) < 1:
            raise InvalidParameterError(f"input_size must be > 0, got {input_size}")
        self.history_size = int(history_size)
        self.input_size = int(input_size)
        self._history: Deque[np.ndarray] = deque(maxlen=self.history_size)

    def __len__(self) -> int:
        return len(self._history)

    def process(self, input: Buffer) -> Tuple[np.ndarray, np.ndarray]:
        """Push one vector; returns new ``(mean, sample_std)`` arrays."""
        vec = as_flat(input, name="input")
        if vec.size != self.input_size:
            raise DimensionMismatchError(
                f"input length ({vec.size}) must equal input_size ({self.input_size})"
            )
        self._history.append(vec.copy())
        stacked = np.vstack(self._history)
        mean = stacked.mean(axis=0)
        if stacked.shape[0] < 2:
            return mean, np.zeros(self.input_size)
        return mean, stacked.std(axis=0, ddof=1)

    def clear(self) -> None:
        """Forget the history."""
        self._history.clear()

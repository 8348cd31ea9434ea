"""Multi-channel DR analyzer built on per-channel accumulators."""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

import numpy as np

from drmeter.engine.accumulator import ChannelAccumulator, block_length_for_rate
from drmeter.errors import (
    AlreadyFinalized,
    ChannelCountMismatch,
    EmptyStream,
    InvalidConfig,
    InvalidSample,
    MisalignedPlanes,
)
from drmeter.types import AnalyzerState, ChannelDR, DRResult

logger = logging.getLogger(__name__)


def _positive_int(value, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidConfig(f"{name} must be an integer, got {value!r}.")
    try:
        as_int = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfig(f"{name} must be an integer, got {value!r}.") from exc
    if as_int != value or as_int <= 0:
        raise InvalidConfig(f"{name} must be a positive integer, got {value!r}.")
    return as_int


def _as_float_array(values) -> np.ndarray:
    arr = np.asarray(values)
    if arr.dtype.kind not in "biuf":
        raise InvalidSample(reason=f"Non-numeric samples (dtype {arr.dtype})")
    return arr.astype(np.float64, copy=False)


def _build_result(channels: Sequence[ChannelDR]) -> DRResult:
    dr_channel = tuple(float(ch.dr) for ch in channels)
    return DRResult(
        dr_channel=dr_channel,
        dr_overall=float(np.mean(dr_channel)),
        channels=tuple(channels),
    )


class DRAnalyzer:
    """
    Streaming DR meter for one multi-channel audio stream.

    Frames are pushed in time order; each frame carries one sample per
    channel. ``finalize`` closes the trailing partial block of every channel
    and returns the per-channel and overall DR. After that the analyzer is
    read-only.

    Args:
        sample_rate: Sample rate in Hz
        channel_count: Number of channels per frame
    """

    def __init__(self, sample_rate: int, channel_count: int):
        self._sample_rate = _positive_int(sample_rate, "sample_rate")
        self._channels = _positive_int(channel_count, "channel_count")
        self._block_length = block_length_for_rate(self._sample_rate)
        if self._block_length <= 0:
            raise InvalidConfig(
                f"sample_rate {self._sample_rate} gives an empty 3 s block."
            )
        self._accumulators = [
            ChannelAccumulator(self._block_length, index=ch)
            for ch in range(self._channels)
        ]
        self._frames = 0
        self._state = AnalyzerState.ACCEPTING
        self._result: DRResult | None = None
        logger.debug(
            "DR analyzer: %d Hz, %d channel(s), block length %d",
            self._sample_rate, self._channels, self._block_length,
        )

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channel_count(self) -> int:
        return self._channels

    @property
    def block_length(self) -> int:
        return self._block_length

    @property
    def state(self) -> AnalyzerState:
        return self._state

    @property
    def finalized(self) -> bool:
        return self._state is AnalyzerState.FINALIZED

    @property
    def frames_pushed(self) -> int:
        return self._frames

    @property
    def result(self) -> DRResult | None:
        """The finalized result, or None before ``finalize``."""
        return self._result

    def _check_accepting(self) -> None:
        if self.finalized:
            raise AlreadyFinalized("DR analyzer is finalized.")

    def _accumulator(self, channel: int) -> ChannelAccumulator:
        if not 0 <= channel < self._channels:
            raise IndexError(f"Invalid channel index {channel}.")
        return self._accumulators[channel]

    def first_peak(self, channel: int) -> float:
        """Highest absolute sample seen on a channel."""
        return self._accumulator(channel).first_peak

    def second_peak(self, channel: int) -> float:
        """Second highest absolute sample seen on a channel."""
        return self._accumulator(channel).second_peak

    def _frame_array(self, frames) -> np.ndarray:
        if isinstance(frames, np.ndarray):
            arr = _as_float_array(frames)
            if arr.size == 0:
                return arr.reshape(0, self._channels)
            if arr.ndim != 2 or arr.shape[1] != self._channels:
                got = arr.shape[-1] if arr.ndim >= 2 else 1
                raise ChannelCountMismatch(self._channels, int(got), max(arr.ndim - 1, 0))
            return arr
        rows = []
        for frame in frames:
            row = _as_float_array(frame)
            if row.ndim != 1 or row.size != self._channels:
                raise ChannelCountMismatch(self._channels, int(row.size), row.ndim)
            rows.append(row)
        if not rows:
            return np.empty((0, self._channels), dtype=np.float64)
        return np.stack(rows)

    @staticmethod
    def _check_finite(arr: np.ndarray) -> None:
        bad = ~np.isfinite(arr)
        if bad.any():
            raise InvalidSample(int(np.argwhere(bad)[0][-1]))

    def push(self, frame: Sequence[float]) -> None:
        """Push one frame holding one sample per channel."""
        self._check_accepting()
        values = _as_float_array(frame)
        if values.ndim != 1 or values.size != self._channels:
            raise ChannelCountMismatch(self._channels, int(values.size), values.ndim)
        self._check_finite(values)
        samples = [
            acc.check_sample(value)
            for acc, value in zip(self._accumulators, values.tolist())
        ]
        for acc, value in zip(self._accumulators, samples):
            acc.accumulate(value)
        self._frames += 1

    def push_batch(self, frames) -> None:
        """
        Push frames in time order.

        ``frames`` is either a sequence of frames or a 2D array shaped
        (n_frames, channel_count). The batch is validated as a whole, so a
        bad frame anywhere leaves the analyzer untouched.
        """
        self._check_accepting()
        arr = self._frame_array(frames)
        if arr.shape[0] == 0:
            return
        self._check_finite(arr)
        prepared = [
            acc.prepare_array(arr[:, ch])
            for ch, acc in enumerate(self._accumulators)
        ]
        for acc, p in zip(self._accumulators, prepared):
            acc.commit_array(p)
        self._frames += arr.shape[0]

    def push_planar(self, planes: Sequence) -> None:
        """Push one equally long 1D buffer per channel."""
        self._check_accepting()
        arrays = [_as_float_array(p) for p in planes]
        if len(arrays) != self._channels:
            raise ChannelCountMismatch(self._channels, len(arrays))
        if any(a.ndim != 1 for a in arrays):
            raise MisalignedPlanes("Planar buffers must be 1D.")
        lengths = {a.size for a in arrays}
        if len(lengths) != 1:
            raise MisalignedPlanes(
                f"Planar buffers have different lengths: {sorted(lengths)}."
            )
        prepared = [acc.prepare_array(a) for acc, a in zip(self._accumulators, arrays)]
        for acc, p in zip(self._accumulators, prepared):
            acc.commit_array(p)
        self._frames += arrays[0].size

    def preview(self) -> DRResult:
        """
        DR over the completed full blocks so far.

        The in-progress block is ignored and no state changes. Once
        finalized, the final result is returned instead.
        """
        if self._result is not None:
            return self._result
        if self._frames == 0:
            raise EmptyStream("No audio has been pushed.")
        return _build_result([acc.score() for acc in self._accumulators])

    def finalize(self) -> DRResult:
        """
        Close trailing partial blocks and compute the final DR result.

        Returns:
            DRResult with per-channel DR and their arithmetic mean

        Raises:
            EmptyStream: No frames were pushed
            InsufficientData: A channel has no blocks to score
            AlreadyFinalized: finalize was already called
        """
        self._check_accepting()
        if self._frames == 0:
            raise EmptyStream("No audio has been pushed.")
        # Score first so a failure leaves the accumulators untouched.
        channels = [acc.score(include_partial=True) for acc in self._accumulators]
        for acc in self._accumulators:
            acc.close_partial()
        self._result = _build_result(channels)
        self._state = AnalyzerState.FINALIZED
        logger.debug(
            "DR analyzer finalized after %d frames: overall DR %.4f",
            self._frames, self._result.dr_overall,
        )
        return self._result


def album_dr(results: Iterable[DRResult]) -> float:
    """Average overall DR across several tracks."""
    values = [float(r.dr_overall) for r in results]
    if not values:
        raise EmptyStream("No track results to average.")
    return float(np.mean(values))

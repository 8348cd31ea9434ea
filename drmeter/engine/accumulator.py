"""Per-channel block energy and sample peak accumulation."""
from __future__ import annotations

import logging
import math
import numbers
from fractions import Fraction

import numpy as np

from drmeter.errors import InsufficientData, InvalidSample
from drmeter.types import BlockStats, ChannelDR

logger = logging.getLogger(__name__)

# TT DR Meter constants: 3 s RMS blocks, loudest 20% of blocks.
BLOCK_SECONDS = 3.0
LOUD_FRACTION = Fraction(1, 5)


def block_length_for_rate(sample_rate: float) -> int:
    """Number of samples per block at the given sample rate."""
    return int(round(sample_rate * BLOCK_SECONDS))


class PeakTracker:
    """Keeps the two largest absolute sample values of a channel."""

    __slots__ = ("peak1", "peak2")

    def __init__(self) -> None:
        self.peak1 = 0.0
        self.peak2 = 0.0

    def update(self, value: float) -> None:
        v = abs(value)
        if v > self.peak1:
            self.peak2 = self.peak1
            self.peak1 = v
        elif v > self.peak2:
            self.peak2 = v

    def update_array(self, values: np.ndarray) -> None:
        """Merge the two largest magnitudes of ``values`` into the tracker."""
        a = np.abs(np.asarray(values, dtype=np.float64))
        if a.size == 0:
            return
        if a.size == 1:
            self.update(float(a[0]))
            return
        top = np.partition(a, a.size - 2)[-2:]
        self.update(float(top[1]))
        self.update(float(top[0]))


class ChannelAccumulator:
    """
    Streaming block statistics for one audio channel.

    Samples are never stored. Each block keeps only its running sum of
    squares and sample count, and the whole channel keeps a top-2 peak
    tracker.

    Args:
        block_length: Samples per block (3 s worth at the stream's rate)
        index: Channel position, used in error reports
    """

    def __init__(self, block_length: int, index: int = 0):
        if block_length <= 0:
            raise ValueError("block_length must be positive.")
        self.index = int(index)
        self.block_length = int(block_length)
        self._sum2 = 0.0
        self._count = 0
        self._blocks: list[BlockStats] = []
        self._peaks = PeakTracker()

    @property
    def blocks(self) -> tuple[BlockStats, ...]:
        return tuple(self._blocks)

    @property
    def block_count(self) -> int:
        return len(self._blocks)

    @property
    def pending_samples(self) -> int:
        return self._count

    @property
    def first_peak(self) -> float:
        return self._peaks.peak1

    @property
    def second_peak(self) -> float:
        return self._peaks.peak2

    def _close_block(self) -> None:
        block = BlockStats(sum_of_squares=self._sum2, sample_count=self._count)
        self._blocks.append(block)
        logger.debug(
            "channel %d: closed block %d (%d samples, rms=%.6g)",
            self.index, len(self._blocks), block.sample_count, block.rms,
        )
        self._sum2 = 0.0
        self._count = 0

    def check_sample(self, sample: float) -> float:
        """Validate one sample against the current block; returns it as float."""
        if not isinstance(sample, numbers.Real):
            raise InvalidSample(self.index, reason=f"Non-numeric sample {sample!r}")
        x = float(sample)
        if not math.isfinite(x):
            raise InvalidSample(self.index)
        if not math.isfinite(self._sum2 + x * x):
            raise InvalidSample(self.index, reason="Block energy overflows")
        return x

    def accumulate(self, sample: float) -> None:
        """Add one sample to the current block."""
        x = self.check_sample(sample)
        self._sum2 += x * x
        self._count += 1
        self._peaks.update(x)
        if self._count == self.block_length:
            self._close_block()

    def prepare_array(self, samples: np.ndarray) -> tuple[np.ndarray, list[tuple[float, int]]]:
        """
        Validate consecutive samples without changing state.

        Returns the samples and the running (sum of squares, count) reached
        at the end of each block-bounded segment, for ``commit_array``.
        The sum of squares is extended with a sequential cumulative sum so
        the floating point result matches the per-sample path exactly.
        """
        x = np.asarray(samples)
        if x.dtype.kind not in "biuf":
            raise InvalidSample(self.index, reason=f"Non-numeric samples (dtype {x.dtype})")
        x = x.astype(np.float64, copy=False)
        if x.ndim != 1:
            raise ValueError("Expected 1D channel samples.")
        if not np.all(np.isfinite(x)):
            raise InvalidSample(self.index)
        with np.errstate(over="ignore"):
            squares = x * x
            segments = []
            total, count = self._sum2, self._count
            start = 0
            while start < squares.size:
                take = min(self.block_length - count, squares.size - start)
                chunk = squares[start:start + take]
                total = float(np.cumsum(np.concatenate(([total], chunk)))[-1])
                if not math.isfinite(total):
                    raise InvalidSample(self.index, reason="Block energy overflows")
                count += take
                start += take
                segments.append((total, count))
                if count == self.block_length:
                    total, count = 0.0, 0
        return x, segments

    def commit_array(self, prepared: tuple[np.ndarray, list[tuple[float, int]]]) -> None:
        """Apply the result of ``prepare_array``."""
        x, segments = prepared
        if x.size == 0:
            return
        self._peaks.update_array(x)
        for total, count in segments:
            self._sum2 = total
            self._count = count
            if self._count == self.block_length:
                self._close_block()

    def accumulate_array(self, samples: np.ndarray) -> None:
        """Add consecutive samples, equivalent to calling ``accumulate`` on each."""
        self.commit_array(self.prepare_array(samples))

    def close_partial(self) -> None:
        """Close a non-empty trailing block; an empty one is dropped."""
        if self._count > 0:
            self._close_block()

    def score(self, *, include_partial: bool = False) -> ChannelDR:
        """
        Compute the channel DR from the blocks seen so far.

        Blocks are ranked by RMS (loudest first, ties in time order), the
        loudest 20% (at least one) are averaged in the energy domain, and the
        second highest sample peak is compared against that average.

        Args:
            include_partial: Also score the in-progress block if non-empty

        Returns:
            ChannelDR with the exact DR value in dB
        """
        blocks = list(self._blocks)
        if include_partial and self._count > 0:
            blocks.append(BlockStats(sum_of_squares=self._sum2, sample_count=self._count))
        if not blocks:
            raise InsufficientData(self.index)

        rms = np.array([b.rms for b in blocks], dtype=np.float64)
        order = np.argsort(-rms, kind="stable")
        k = max(1, math.ceil(len(blocks) * LOUD_FRACTION))
        top = rms[order[:k]]
        # Scale by the loudest block so squaring near-max RMS cannot overflow.
        loudest = float(top[0])
        if loudest > 0.0:
            rms20 = loudest * float(np.sqrt(np.mean((top / loudest) ** 2)))
        else:
            rms20 = 0.0
        if not math.isfinite(rms20):
            raise InvalidSample(self.index, reason="Block energy is not finite")
        peak = self._peaks.peak2

        if rms20 == 0.0 or peak == 0.0:
            logger.warning(
                "channel %d: silent or near-silent (rms20=%g, peak2=%g); DR set to 0",
                self.index, rms20, peak,
            )
            return ChannelDR(
                index=self.index,
                dr=0.0,
                rms20=rms20,
                peak1=self._peaks.peak1,
                peak2=peak,
                block_count=len(blocks),
                degenerate=True,
            )

        return ChannelDR(
            index=self.index,
            dr=float(20.0 * (math.log10(peak) - math.log10(rms20))),
            rms20=rms20,
            peak1=self._peaks.peak1,
            peak2=peak,
            block_count=len(blocks),
        )

    def finalize(self) -> ChannelDR:
        """Close the trailing block and score the channel."""
        self.close_partial()
        return self.score()

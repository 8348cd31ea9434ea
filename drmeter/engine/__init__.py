"""Streaming DR analysis engine."""

from drmeter.engine.accumulator import (
    BLOCK_SECONDS,
    LOUD_FRACTION,
    ChannelAccumulator,
    PeakTracker,
    block_length_for_rate,
)
from drmeter.engine.analyzer import DRAnalyzer, album_dr

__all__ = [
    "BLOCK_SECONDS",
    "LOUD_FRACTION",
    "ChannelAccumulator",
    "PeakTracker",
    "block_length_for_rate",
    "DRAnalyzer",
    "album_dr",
]

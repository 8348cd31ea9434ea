"""
drmeter - TT DR Meter dynamic range analysis

Streaming computation of per-channel and overall DR scores from decoded audio.
"""
from drmeter.version import __version__
from drmeter.types import (
    AnalyzerState,
    AudioBuffer,
    BlockStats,
    ChannelDR,
    DRResult,
)
from drmeter.errors import (
    DRMeterError,
    InvalidConfig,
    ChannelCountMismatch,
    MisalignedPlanes,
    InvalidSample,
    EmptyStream,
    InsufficientData,
    AlreadyFinalized,
)
from drmeter.engine import ChannelAccumulator, DRAnalyzer, PeakTracker, album_dr

__all__ = [
    "__version__",
    "AnalyzerState",
    "AudioBuffer",
    "BlockStats",
    "ChannelDR",
    "DRResult",
    "DRMeterError",
    "InvalidConfig",
    "ChannelCountMismatch",
    "MisalignedPlanes",
    "InvalidSample",
    "EmptyStream",
    "InsufficientData",
    "AlreadyFinalized",
    "ChannelAccumulator",
    "DRAnalyzer",
    "PeakTracker",
    "album_dr",
]

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import math
import numpy as np

class AnalyzerState(str, Enum):
    ACCEPTING = "accepting"
    FINALIZED = "finalized"

@dataclass(frozen=True)
class BlockStats:
    sum_of_squares: float
    sample_count: int

    @property
    def rms(self) -> float:
        if self.sample_count == 0:
            return 0.0
        return math.sqrt(self.sum_of_squares / self.sample_count)

@dataclass(frozen=True)
class ChannelDR:
    index: int
    dr: float
    rms20: float
    peak1: float
    peak2: float
    block_count: int
    degenerate: bool = False

@dataclass(frozen=True)
class DRResult:
    dr_channel: tuple[float, ...]
    dr_overall: float
    channels: tuple[ChannelDR, ...] = ()

    @property
    def degenerate(self) -> bool:
        return any(ch.degenerate for ch in self.channels)

@dataclass(frozen=True)
class AudioBuffer:
    samples: np.ndarray
    fs: float
    duration: float
    channels: int = 1
    backend: str = "unknown"
    warnings: list[str] = field(default_factory=list)

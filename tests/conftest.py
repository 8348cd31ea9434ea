from __future__ import annotations

import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def constant_frames(n_frames: int, amps: list[float]) -> np.ndarray:
    """(n_frames, channels) array with a constant amplitude per channel."""
    return np.tile(np.asarray(amps, dtype=np.float64), (n_frames, 1))


def random_frames(n_frames: int, channels: int, *, seed: int = 0, amp: float = 0.5) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return amp * rng.uniform(-1.0, 1.0, size=(n_frames, channels))

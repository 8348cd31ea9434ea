from __future__ import annotations
import math


def q(x: float, step: float) -> float:
    """Round half away from zero to a multiple of ``step``; NaN/inf pass through."""
    if x is None or not math.isfinite(x):
        return x
    scale = 1.0 / step
    n = math.floor(abs(x) * scale + 0.5)
    if n == 0:
        return 0.0
    return n / scale if x > 0 else -(n / scale)

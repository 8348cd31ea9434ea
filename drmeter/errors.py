"""Exceptions raised by the DR engine."""
from __future__ import annotations


class DRMeterError(Exception):
    """Base class for all DR meter errors."""


class InvalidConfig(DRMeterError, ValueError):
    """Sample rate or channel count cannot be used to build an analyzer."""


class ChannelCountMismatch(DRMeterError, ValueError):
    """A pushed frame does not carry one sample per configured channel."""

    def __init__(self, expected: int, got: int, ndim: int = 1):
        if ndim == 1:
            msg = f"Expected {expected} channel(s) per frame, got {got}."
        else:
            msg = (
                f"Expected a 1-D frame of {expected} channel(s), "
                f"got a {ndim}-D value with {got} element(s)."
            )
        super().__init__(msg)
        self.expected = expected
        self.got = got
        self.ndim = ndim


class MisalignedPlanes(DRMeterError, ValueError):
    """Planar channel buffers have different lengths."""


class InvalidSample(DRMeterError, ValueError):
    """A sample is non-numeric, NaN or infinite, or overflows the block energy."""

    def __init__(self, channel_index: int | None = None, reason: str = "Non-finite sample value"):
        where = f" on channel {channel_index}" if channel_index is not None else ""
        super().__init__(f"{reason}{where}.")
        self.channel_index = channel_index
        self.reason = reason


class EmptyStream(DRMeterError, ValueError):
    """Finalize was called before any audio was pushed."""


class InsufficientData(DRMeterError, ValueError):
    """A channel has no blocks to score."""

    def __init__(self, channel_index: int):
        super().__init__(f"Channel {channel_index} has no audio blocks to score.")
        self.channel_index = channel_index


class AlreadyFinalized(DRMeterError, RuntimeError):
    """The analyzer was already finalized and no longer accepts calls."""

"""Feed decoded audio files through the DR analyzer."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import numpy as np

from drmeter.engine.analyzer import DRAnalyzer
from drmeter.io.audio import (
    DEFAULT_CHUNK_FRAMES,
    iter_audio_chunks,
    iter_buffer_chunks,
    load_audio,
    probe_audio,
)
from drmeter.types import AudioBuffer, DRResult
from drmeter.utils.hashing import sha256_hex_file

logger = logging.getLogger(__name__)


def measure_chunks(
    chunks: Iterable[np.ndarray],
    sample_rate: int,
    channels: int,
) -> tuple[DRResult, int]:
    """Push (frames, channels) chunks in order and finalize; returns (result, frames)."""
    analyzer = DRAnalyzer(sample_rate, channels)
    for chunk in chunks:
        analyzer.push_batch(chunk)
    return analyzer.finalize(), analyzer.frames_pushed


def measure_buffer(
    audio: AudioBuffer,
    *,
    chunk_frames: int = DEFAULT_CHUNK_FRAMES
) -> DRResult:
    """Compute DR for an in-memory buffer."""
    result, _ = measure_chunks(
        iter_buffer_chunks(audio, chunk_frames=chunk_frames),
        int(round(audio.fs)),
        audio.channels,
    )
    return result


def measure_file(
    path: str,
    *,
    chunk_frames: int = DEFAULT_CHUNK_FRAMES
) -> tuple[DRResult, dict]:
    """
    Compute DR for an audio file.

    soundfile-readable files are streamed chunk by chunk; anything else is
    decoded in full (ffmpeg fallback) and then pushed in chunks.

    Args:
        path: Path to the audio file
        chunk_frames: Frames per push

    Returns:
        (DRResult, input metadata dict)
    """
    if not Path(path).is_file():
        raise FileNotFoundError(path)

    warnings_list: list[str] = []
    try:
        fs, channels = probe_audio(path)
        backend = "soundfile"
    except Exception as exc:
        logger.warning("streaming decode unavailable for %s (%s)", path, exc)
        warnings_list.append(f"soundfile probe failed: {exc}")
        fs = channels = 0
        backend = None

    if backend == "soundfile":
        result, frames = measure_chunks(
            iter_audio_chunks(path, chunk_frames=chunk_frames), fs, channels
        )
    else:
        audio = load_audio(path)
        warnings_list.extend(audio.warnings)
        backend = audio.backend
        fs = int(round(audio.fs))
        channels = audio.channels
        result, frames = measure_chunks(
            iter_buffer_chunks(audio, chunk_frames=chunk_frames), fs, channels
        )

    p = Path(path)
    input_meta = {
        "path": str(p),
        "file_name": p.name,
        "sha256": sha256_hex_file(str(p)),
        "sample_rate_hz": int(fs),
        "channels": int(channels),
        "frames": int(frames),
        "duration_s": float(frames / fs) if fs else 0.0,
        "decode_backend": backend,
        "decode_warnings": warnings_list,
    }
    return result, input_meta

"""Audio I/O module."""
from __future__ import annotations
import json
import logging
import shutil
import subprocess
import warnings as py_warnings
from typing import Iterator
import numpy as np
from drmeter.types import AudioBuffer

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_FRAMES = 65536


def _as_frames(samples: np.ndarray) -> np.ndarray:
    """Coerce decoded audio to a (frames, channels) float64 array."""
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim == 1:
        return x.reshape(-1, 1)
    if x.ndim != 2:
        raise ValueError("Decoded audio must be 1D or 2D array.")
    return x


def _decode_soundfile(path: str) -> tuple[np.ndarray, float, list[str]]:
    """Decode using soundfile (libsndfile)."""
    try:
        import soundfile as sf
    except Exception as exc:
        raise RuntimeError("soundfile backend not available.") from exc

    with py_warnings.catch_warnings(record=True) as w:
        py_warnings.simplefilter("always")
        data, fs = sf.read(path, always_2d=True, dtype="float64")
    warn_list = [str(wi.message) for wi in w]
    return data, float(fs), warn_list


def _ffprobe_info(path: str) -> tuple[int, int]:
    """Return (sample_rate, channels) from ffprobe."""
    ffprobe = shutil.which("ffprobe")
    if not ffprobe:
        raise RuntimeError("ffprobe not found for ffmpeg backend.")
    cmd = [
        ffprobe,
        "-v", "error",
        "-select_streams", "a:0",
        "-show_entries", "stream=sample_rate,channels",
        "-of", "json",
        path,
    ]
    proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        raise ValueError(f"ffprobe failed: {proc.stderr.strip()}")
    info = json.loads(proc.stdout)
    streams = info.get("streams", [])
    if not streams:
        raise ValueError("ffprobe reported no audio streams.")
    stream = streams[0]
    sr = int(stream["sample_rate"])
    ch = int(stream["channels"])
    return sr, ch


def _decode_ffmpeg(path: str) -> tuple[np.ndarray, float, list[str]]:
    """Decode using ffmpeg to raw float32 PCM."""
    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise RuntimeError("ffmpeg backend not available.")
    fs, ch = _ffprobe_info(path)
    cmd = [
        ffmpeg,
        "-v", "warning",
        "-i", path,
        "-f", "f32le",
        "-acodec", "pcm_f32le",
        "-vn",
        "pipe:1",
    ]
    proc = subprocess.run(cmd, capture_output=True, check=False)
    warn_list = [line for line in proc.stderr.decode("utf-8", errors="replace").splitlines() if line.strip()]
    if proc.returncode != 0:
        raise ValueError("ffmpeg decode failed.")
    data = np.frombuffer(proc.stdout, dtype=np.float32)
    if ch <= 0:
        raise ValueError("ffprobe reported zero channels.")
    n = (data.size // ch) * ch
    if n != data.size:
        warn_list.append("ffmpeg: trimmed partial frame at end of stream.")
        data = data[:n]
    data = data.reshape(-1, ch)
    return data.astype(np.float64), float(fs), warn_list


def load_audio(path: str) -> AudioBuffer:
    """
    Load an audio file as a (frames, channels) float64 buffer.

    Supports WAV, FLAC, AIFF via soundfile; other formats fall back to
    ffmpeg when installed. Channels are kept as decoded, never downmixed.
    """
    warnings_list: list[str] = []
    backend = "soundfile"
    try:
        data, fs, warn_list = _decode_soundfile(path)
        warnings_list.extend(warn_list)
    except Exception as exc:
        logger.warning("soundfile could not decode %s (%s); trying ffmpeg", path, exc)
        warnings_list.append(f"soundfile decode failed: {exc}")
        backend = "ffmpeg"
        data, fs, warn_list = _decode_ffmpeg(path)
        warnings_list.extend(warn_list)

    data = _as_frames(data)
    duration = data.shape[0] / float(fs)
    return AudioBuffer(
        samples=data,
        fs=float(fs),
        duration=duration,
        channels=int(data.shape[1]),
        backend=backend,
        warnings=warnings_list
    )


def probe_audio(path: str) -> tuple[int, int]:
    """Return (sample_rate, channels) of a file readable by soundfile."""
    import soundfile as sf

    info = sf.info(path)
    return int(info.samplerate), int(info.channels)


def iter_audio_chunks(
    path: str,
    *,
    chunk_frames: int = DEFAULT_CHUNK_FRAMES
) -> Iterator[np.ndarray]:
    """
    Stream a file in (chunk_frames, channels) float64 chunks.

    Only soundfile-readable formats stream; the last chunk may be shorter.
    """
    import soundfile as sf

    if chunk_frames <= 0:
        raise ValueError("chunk_frames must be positive.")
    with sf.SoundFile(path) as f:
        for block in f.blocks(blocksize=chunk_frames, dtype="float64", always_2d=True):
            yield block


def iter_buffer_chunks(
    audio: AudioBuffer,
    *,
    chunk_frames: int = DEFAULT_CHUNK_FRAMES
) -> Iterator[np.ndarray]:
    """Split an in-memory buffer into consecutive frame chunks."""
    if chunk_frames <= 0:
        raise ValueError("chunk_frames must be positive.")
    frames = _as_frames(audio.samples)
    for start in range(0, frames.shape[0], chunk_frames):
        yield frames[start:start + chunk_frames]

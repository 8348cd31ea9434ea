from __future__ import annotations

import json
import subprocess

import numpy as np
import pytest
import soundfile as sf

import drmeter.analysis.measure as measure_mod
import drmeter.io.audio as audio_mod
from drmeter.analysis.measure import measure_buffer, measure_file
from drmeter.engine.analyzer import DRAnalyzer
from drmeter.io.audio import iter_audio_chunks, iter_buffer_chunks, load_audio, probe_audio
from drmeter.types import AudioBuffer
from scripts.synth_vectors import db_to_linear, expected_sine_dr, gen_level_steps, write_wav


def _write_stereo(tmp_path, seconds: float = 7.0, fs: int = 8000):
    t = np.arange(int(seconds * fs)) / fs
    left = 0.5 * np.sin(2.0 * np.pi * 440.0 * t)
    right = 0.25 * np.sin(2.0 * np.pi * 660.0 * t) * np.linspace(0.0, 1.0, t.size)
    path = tmp_path / "stereo.wav"
    sf.write(path, np.stack([left, right], axis=1), fs, subtype="DOUBLE")
    return path, fs


def test_load_audio_keeps_all_channels(tmp_path):
    path, fs = _write_stereo(tmp_path)
    audio = load_audio(str(path))
    assert audio.channels == 2
    assert audio.samples.shape == (int(7.0 * fs), 2)
    assert audio.fs == fs
    assert audio.backend == "soundfile"
    assert probe_audio(str(path)) == (fs, 2)


def test_iter_audio_chunks_covers_file(tmp_path):
    path, fs = _write_stereo(tmp_path)
    chunks = list(iter_audio_chunks(str(path), chunk_frames=10000))
    assert all(c.shape[1] == 2 for c in chunks)
    assert sum(c.shape[0] for c in chunks) == int(7.0 * fs)
    with pytest.raises(ValueError):
        list(iter_audio_chunks(str(path), chunk_frames=0))


def test_iter_buffer_chunks_mono_is_2d():
    audio = AudioBuffer(samples=np.arange(5, dtype=np.float64), fs=10.0, duration=0.5)
    chunks = list(iter_buffer_chunks(audio, chunk_frames=2))
    assert [c.shape for c in chunks] == [(2, 1), (2, 1), (1, 1)]


def test_measure_file_matches_direct_push(tmp_path):
    path, fs = _write_stereo(tmp_path)
    result, meta = measure_file(str(path), chunk_frames=4096)

    audio = load_audio(str(path))
    analyzer = DRAnalyzer(fs, 2)
    analyzer.push_batch(audio.samples)
    assert result == analyzer.finalize()
    assert result == measure_buffer(audio, chunk_frames=777)

    assert meta["sample_rate_hz"] == fs
    assert meta["channels"] == 2
    assert meta["frames"] == int(7.0 * fs)
    assert meta["decode_backend"] == "soundfile"
    assert len(meta["sha256"]) == 64


def test_measure_file_level_steps_match_expected_dr(tmp_path):
    fs = 8000
    levels = [db_to_linear(db) for db in np.linspace(-30.0, -3.0, 10)]
    path = tmp_path / "steps.wav"
    write_wav(str(path), gen_level_steps(levels, 3.0, fs), fs)
    result, meta = measure_file(str(path))
    assert meta["channels"] == 1
    assert result.channels[0].block_count == 10
    assert np.isclose(result.dr_overall, expected_sine_dr(levels), atol=0.05)


def test_measure_file_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        measure_file(str(tmp_path / "missing.wav"))


def _fake_ffmpeg(monkeypatch, payload: bytes, *, fs: int = 10, channels: int = 2,
                 info_rc: int = 0, decode_rc: int = 0):
    """Route the ffmpeg backend to canned ffprobe JSON and f32le output."""
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        if cmd[0].endswith("ffprobe"):
            info = {"streams": [{"sample_rate": str(fs), "channels": channels}]}
            return subprocess.CompletedProcess(
                cmd, info_rc, stdout=json.dumps(info), stderr="Invalid data found when processing input"
            )
        return subprocess.CompletedProcess(cmd, decode_rc, stdout=payload, stderr=b"Guessed channel layout\n\n")

    def no_soundfile(path):
        raise RuntimeError("unsupported format")

    monkeypatch.setattr(audio_mod, "_decode_soundfile", no_soundfile)
    monkeypatch.setattr(audio_mod.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(audio_mod.subprocess, "run", fake_run)
    return calls


def test_load_audio_falls_back_to_ffmpeg(monkeypatch, tmp_path):
    samples = np.random.default_rng(21).uniform(-0.9, 0.9, size=(70, 2)).astype(np.float32)
    payload = samples.tobytes() + np.float32(0.5).tobytes()
    calls = _fake_ffmpeg(monkeypatch, payload)
    path = tmp_path / "clip.mp3"
    path.write_bytes(b"not really audio")

    audio = load_audio(str(path))
    assert audio.backend == "ffmpeg"
    assert audio.fs == 10.0
    assert audio.channels == 2
    assert audio.samples.dtype == np.float64
    assert np.array_equal(audio.samples, samples.astype(np.float64))
    assert audio.warnings == [
        "soundfile decode failed: unsupported format",
        "Guessed channel layout",
        "ffmpeg: trimmed partial frame at end of stream.",
    ]
    assert [c[0] for c in calls] == ["/usr/bin/ffprobe", "/usr/bin/ffmpeg"]
    assert "f32le" in calls[1] and str(path) in calls[1]


def test_measure_file_ffmpeg_fallback_matches_direct_push(monkeypatch, tmp_path):
    samples = np.random.default_rng(22).uniform(-0.9, 0.9, size=(70, 2)).astype(np.float32)
    payload = samples.tobytes() + np.float32(0.5).tobytes()
    _fake_ffmpeg(monkeypatch, payload)

    def unreadable(path):
        raise RuntimeError("format not recognised")

    monkeypatch.setattr(measure_mod, "probe_audio", unreadable)
    path = tmp_path / "clip.mp3"
    path.write_bytes(b"not really audio")

    result, meta = measure_file(str(path), chunk_frames=16)

    analyzer = DRAnalyzer(10, 2)
    analyzer.push_batch(samples.astype(np.float64))
    assert result == analyzer.finalize()
    assert meta["decode_backend"] == "ffmpeg"
    assert meta["sample_rate_hz"] == 10
    assert meta["channels"] == 2
    assert meta["frames"] == 70
    assert meta["duration_s"] == 7.0
    assert meta["decode_warnings"] == [
        "soundfile probe failed: format not recognised",
        "soundfile decode failed: unsupported format",
        "Guessed channel layout",
        "ffmpeg: trimmed partial frame at end of stream.",
    ]


def test_ffmpeg_fallback_failures_propagate(monkeypatch, tmp_path):
    path = tmp_path / "clip.mp3"
    path.write_bytes(b"not really audio")

    _fake_ffmpeg(monkeypatch, b"", info_rc=1)
    with pytest.raises(ValueError, match="ffprobe failed"):
        load_audio(str(path))

    _fake_ffmpeg(monkeypatch, b"", decode_rc=1)
    with pytest.raises(ValueError, match="ffmpeg decode failed"):
        load_audio(str(path))

    _fake_ffmpeg(monkeypatch, b"", channels=0)
    with pytest.raises(ValueError, match="zero channels"):
        load_audio(str(path))

    monkeypatch.setattr(audio_mod.shutil, "which", lambda name: None)
    with pytest.raises(RuntimeError, match="ffmpeg backend not available"):
        load_audio(str(path))

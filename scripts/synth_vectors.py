#!/usr/bin/env python
"""
Synthesize test vectors for drmeter validation.

Generates WAV files whose DR score can be worked out by hand.
"""
from __future__ import annotations
import wave
import numpy as np
from pathlib import Path


def write_wav(path: str, samples: np.ndarray, fs: int = 48000) -> None:
    """Write (frames,) or (frames, channels) samples to a 16-bit WAV file."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.ndim == 1:
        samples = samples.reshape(-1, 1)
    samples = np.clip(samples, -1.0, 1.0)
    samples_int = np.round(samples * 32767).astype("<i2")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(samples.shape[1])
        wf.setsampwidth(2)
        wf.setframerate(fs)
        wf.writeframes(samples_int.tobytes())


def gen_sine(freq_hz: float, duration_s: float, fs: int, amp: float = 1.0) -> np.ndarray:
    """Generate a sine wave."""
    t = np.arange(int(duration_s * fs)) / fs
    return amp * np.sin(2.0 * np.pi * freq_hz * t)


def gen_level_steps(levels: list[float], step_s: float, fs: int, freq_hz: float = 1000.0) -> np.ndarray:
    """Concatenate sine segments, one per amplitude in ``levels``."""
    return np.concatenate([gen_sine(freq_hz, step_s, fs, amp) for amp in levels])


def db_to_linear(db: float) -> float:
    """Convert dB to linear amplitude."""
    return 10.0 ** (db / 20.0)


def expected_sine_dr(levels: list[float]) -> float:
    """
    DR of a sine step sequence with one 3 s block per level.

    Block RMS of a sine is amp / sqrt(2); the top 20% of blocks are averaged
    in the energy domain and compared to the second highest peak.
    """
    rms = sorted((a / np.sqrt(2.0) for a in levels), reverse=True)
    k = max(1, -(-len(rms) // 5))
    rms20 = float(np.sqrt(np.mean(np.square(rms[:k]))))
    return float(20.0 * np.log10(max(levels) / rms20))


def main():
    """Generate all test vectors."""
    base_dir = Path(__file__).parent.parent / "validation" / "vectors"
    fs = 48000

    print("Generating test vectors...")

    # Vector 1: steady sine at -6 dBFS, DR ~3 dB
    v1_dir = base_dir / "v0001_sine_-6dbfs"
    samples = gen_sine(1000.0, 9.0, fs, db_to_linear(-6.0))
    write_wav(str(v1_dir / "input.wav"), np.stack([samples, samples], axis=1), fs)
    print(f"  Created: {v1_dir / 'input.wav'}")

    # Vector 2: ten 3 s steps from -30 to -3 dBFS
    v2_dir = base_dir / "v0002_level_steps"
    levels = [db_to_linear(db) for db in np.linspace(-30.0, -3.0, 10)]
    samples = gen_level_steps(levels, 3.0, fs)
    write_wav(str(v2_dir / "input.wav"), samples, fs)
    print(f"  Created: {v2_dir / 'input.wav'} (expected DR ~{expected_sine_dr(levels):.2f})")

    # Vector 3: digital silence
    v3_dir = base_dir / "v0003_silence"
    write_wav(str(v3_dir / "input.wav"), np.zeros((int(6.0 * fs), 2)), fs)
    print(f"  Created: {v3_dir / 'input.wav'}")

    print(f"\nGenerated 3 test vectors in: {base_dir}")


if __name__ == "__main__":
    main()

from __future__ import annotations
import math
from typing import Sequence
from drmeter.engine.accumulator import BLOCK_SECONDS, LOUD_FRACTION
from drmeter.types import DRResult
from drmeter.utils.hashing import sha256_hex_canonical_json
from drmeter.utils.quantize import q

DR_STEP = 0.01
LEVEL_STEP = 1e-6


def dr_score(value: float) -> int:
    """Integer DR rating: the exact value truncated toward zero, never below 0."""
    if value is None or not math.isfinite(value):
        return 0
    return max(0, int(value))


def _channel_entries(result: DRResult) -> list[dict]:
    if result.channels:
        return [
            {
                "channel_index": int(ch.index),
                "dr_db": q(float(ch.dr), DR_STEP),
                "dr_score": dr_score(ch.dr),
                "rms20": q(float(ch.rms20), LEVEL_STEP),
                "peak1": q(float(ch.peak1), LEVEL_STEP),
                "peak2": q(float(ch.peak2), LEVEL_STEP),
                "block_count": int(ch.block_count),
                "degenerate": bool(ch.degenerate),
            }
            for ch in result.channels
        ]
    return [
        {
            "channel_index": idx,
            "dr_db": q(float(dr), DR_STEP),
            "dr_score": dr_score(dr),
        }
        for idx, dr in enumerate(result.dr_channel)
    ]


def build_drreport_dict(
    *,
    engine: dict,
    input_meta: dict,
    result: DRResult
) -> dict:
    """
    Build a DR report dictionary with quantized values and integrity hash.

    Args:
        engine: Engine metadata (name, version)
        input_meta: Input file metadata
        result: Finalized DR result

    Returns:
        Report dictionary with integrity hash
    """
    report = {
        "schema_version": "1.0",
        "engine": engine,
        "input": input_meta,
        "analysis": {
            "block_seconds": BLOCK_SECONDS,
            "loud_fraction": float(LOUD_FRACTION),
            "peak": "second_highest_sample",
        },
        "metrics": {
            "channels": _channel_entries(result),
            "overall": {
                "dr_db": q(float(result.dr_overall), DR_STEP),
                "dr_score": dr_score(result.dr_overall),
                "degenerate": bool(result.degenerate),
            },
        },
        "integrity": {"report_hash_sha256": ""},
    }
    tmp = dict(report)
    tmp.pop("integrity", None)
    report["integrity"]["report_hash_sha256"] = sha256_hex_canonical_json(tmp)
    return report


def build_album_dict(
    *,
    engine: dict,
    tracks: Sequence[tuple[dict, DRResult]],
    album_dr_db: float
) -> dict:
    """Build an album report: per-track overall DR plus the album mean."""
    return {
        "schema_version": "1.0",
        "engine": engine,
        "tracks": [
            {
                "path": meta.get("path"),
                "dr_db": q(float(res.dr_overall), DR_STEP),
                "dr_score": dr_score(res.dr_overall),
            }
            for meta, res in tracks
        ],
        "album": {
            "dr_db": q(float(album_dr_db), DR_STEP),
            "dr_score": dr_score(album_dr_db),
        },
    }


def render_text(result: DRResult, sample_rate: int, channel_count: int) -> str:
    """Plain text summary of one track."""
    lines = [f"Channels: {channel_count}, Sample rate: {sample_rate}Hz"]
    for idx, dr in enumerate(result.dr_channel):
        lines.append(f"---------- CHANNEL {idx} ----------")
        lines.append(f"Score: DR{dr_score(dr)} ({dr:.2f})")
    lines.append("----------- GLOBAL -----------")
    lines.append(f"Score: DR{dr_score(result.dr_overall)} ({result.dr_overall:.2f})")
    if result.degenerate:
        lines.append("Note: silent channel(s) scored as DR0")
    return "\n".join(lines)


def render_album_text(tracks: Sequence[tuple[dict, DRResult]], album_dr_db: float) -> str:
    """Plain text summary of several tracks and their album DR."""
    lines = []
    for meta, res in tracks:
        lines.append(f"DR{dr_score(res.dr_overall):<3d} {res.dr_overall:6.2f}  {meta.get('file_name', meta.get('path'))}")
    lines.append("-" * 30)
    lines.append(f"Album: DR{dr_score(album_dr_db)} ({album_dr_db:.2f})")
    return "\n".join(lines)

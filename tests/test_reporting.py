from __future__ import annotations

import math

from drmeter.engine.analyzer import _build_result
from drmeter.reporting.drreport import (
    build_album_dict,
    build_drreport_dict,
    dr_score,
    render_album_text,
    render_text,
)
from drmeter.types import ChannelDR


def _result():
    return _build_result([
        ChannelDR(index=0, dr=11.987, rms20=0.123456789, peak1=0.9, peak2=0.85, block_count=4),
        ChannelDR(index=1, dr=13.004, rms20=0.1, peak1=0.8, peak2=0.79, block_count=4),
    ])


def test_dr_score_truncates_and_clamps():
    assert dr_score(12.99) == 12
    assert dr_score(12.0) == 12
    assert dr_score(-0.5) == 0
    assert dr_score(-3.0) == 0
    assert dr_score(math.nan) == 0


def test_drreport_quantizes_and_hashes():
    report = build_drreport_dict(
        engine={"name": "drmeter", "version": "test"},
        input_meta={"path": "a.wav"},
        result=_result(),
    )
    channels = report["metrics"]["channels"]
    assert channels[0]["dr_db"] == 11.99
    assert channels[0]["dr_score"] == 11
    assert abs(channels[0]["rms20"] - 0.123457) < 1e-12
    assert channels[1]["dr_score"] == 13
    overall = report["metrics"]["overall"]
    assert overall["dr_db"] == 12.5
    assert overall["dr_score"] == 12
    assert overall["degenerate"] is False
    assert report["analysis"]["loud_fraction"] == 0.2

    again = build_drreport_dict(
        engine={"name": "drmeter", "version": "test"},
        input_meta={"path": "a.wav"},
        result=_result(),
    )
    assert len(report["integrity"]["report_hash_sha256"]) == 64
    assert report["integrity"] == again["integrity"]


def test_render_text_lists_channels_and_global():
    text = render_text(_result(), 44100, 2)
    lines = text.splitlines()
    assert lines[0] == "Channels: 2, Sample rate: 44100Hz"
    assert "Score: DR11 (11.99)" in lines
    assert "Score: DR13 (13.00)" in lines
    assert lines[-1] == "Score: DR12 (12.50)"


def test_album_report_and_text():
    track = _result()
    tracks = [({"path": "a.wav", "file_name": "a.wav"}, track)]
    album = build_album_dict(engine={}, tracks=tracks, album_dr_db=track.dr_overall)
    assert album["tracks"][0]["dr_score"] == 12
    assert album["album"]["dr_db"] == 12.5
    text = render_album_text(tracks, track.dr_overall)
    assert text.splitlines()[-1] == "Album: DR12 (12.50)"
    assert "a.wav" in text

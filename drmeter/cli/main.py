"""drmeter CLI - TT DR Meter dynamic range analysis."""
from __future__ import annotations
import argparse
import json
import logging
import platform
import sys
from pathlib import Path

from drmeter.version import __version__
from drmeter.engine.analyzer import album_dr
from drmeter.errors import DRMeterError, EmptyStream, InsufficientData
from drmeter.analysis.measure import measure_file
from drmeter.io.audio import DEFAULT_CHUNK_FRAMES
from drmeter.reporting.drreport import (
    build_album_dict,
    build_drreport_dict,
    render_album_text,
    render_text,
)


EXIT_OK = 0
EXIT_BAD_ARGS = 2
EXIT_DECODE_ERROR = 3
EXIT_INSUFFICIENT_AUDIO = 4
EXIT_INTERNAL_ERROR = 5


def _build_engine_meta() -> dict:
    return {
        "name": "drmeter",
        "version": __version__,
        "python": platform.python_version(),
    }


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _emit(text: str, out: str | None) -> None:
    if out:
        Path(out).write_text(text + "\n", encoding="utf-8")
        print(f"Report written to: {out}", file=sys.stderr)
    else:
        print(text)


def _run(func, args) -> int:
    try:
        return func(args)
    except FileNotFoundError as e:
        print(f"Error: File not found - {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except (EmptyStream, InsufficientData) as e:
        print(f"Error: Not enough audio - {e}", file=sys.stderr)
        return EXIT_INSUFFICIENT_AUDIO
    except DRMeterError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except (ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_DECODE_ERROR
    except Exception as e:
        print(f"Internal error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR


def _analyze(args) -> int:
    result, input_meta = measure_file(args.audio_path, chunk_frames=args.chunk_frames)
    if args.json:
        report = build_drreport_dict(
            engine=_build_engine_meta(),
            input_meta=input_meta,
            result=result,
        )
        text = json.dumps(report, indent=2)
    else:
        text = render_text(result, input_meta["sample_rate_hz"], input_meta["channels"])
    _emit(text, args.out)
    return EXIT_OK


def _album(args) -> int:
    tracks = []
    for path in args.audio_paths:
        result, input_meta = measure_file(path, chunk_frames=args.chunk_frames)
        tracks.append((input_meta, result))
    album_value = album_dr(res for _, res in tracks)
    if args.json:
        text = json.dumps(
            build_album_dict(
                engine=_build_engine_meta(),
                tracks=tracks,
                album_dr_db=album_value,
            ),
            indent=2,
        )
    else:
        text = render_album_text(tracks, album_value)
    _emit(text, args.out)
    return EXIT_OK


def cmd_analyze(args) -> int:
    """Handle analyze command."""
    return _run(_analyze, args)


def cmd_album(args) -> int:
    """Handle album command."""
    return _run(_album, args)


def _positive_int(value: str) -> int:
    n = int(value)
    if n <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drmeter",
        description="drmeter - TT DR Meter dynamic range analysis"
    )
    parser.add_argument(
        "--version", action="version",
        version=f"drmeter {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging on stderr"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Compute the DR score of one audio file"
    )
    analyze_parser.add_argument(
        "audio_path",
        help="Path to audio file"
    )
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        help="Output a JSON report instead of text"
    )
    analyze_parser.add_argument(
        "--out", "-o",
        help="Write output to this path"
    )
    analyze_parser.add_argument(
        "--chunk-frames",
        type=_positive_int,
        default=DEFAULT_CHUNK_FRAMES,
        help=f"Frames per decode chunk (default: {DEFAULT_CHUNK_FRAMES})"
    )
    analyze_parser.set_defaults(func=cmd_analyze)

    album_parser = subparsers.add_parser(
        "album",
        help="Compute per-track and album DR for several files"
    )
    album_parser.add_argument(
        "audio_paths",
        nargs="+",
        help="Paths to audio files, in album order"
    )
    album_parser.add_argument(
        "--json",
        action="store_true",
        help="Output a JSON report instead of text"
    )
    album_parser.add_argument(
        "--out", "-o",
        help="Write output to this path"
    )
    album_parser.add_argument(
        "--chunk-frames",
        type=_positive_int,
        default=DEFAULT_CHUNK_FRAMES,
        help=f"Frames per decode chunk (default: {DEFAULT_CHUNK_FRAMES})"
    )
    album_parser.set_defaults(func=cmd_album)
    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if hasattr(args, "func"):
        sys.exit(args.func(args))
    else:
        parser.print_help()
        sys.exit(EXIT_BAD_ARGS)


if __name__ == "__main__":
    main()

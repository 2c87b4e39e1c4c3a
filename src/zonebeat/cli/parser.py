"""Argument parsing helpers for the zonebeat CLI."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Mapping, Optional

from ..core.models import WorkoutMode
from .commands import handle_replay, handle_zones


def _positive_float(value: str) -> float:
    try:
        numeric = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not a number") from exc
    if numeric <= 0:
        raise argparse.ArgumentTypeError("value must be positive")
    return numeric


def build_parser(config: Optional[Mapping[str, Any]] = None) -> argparse.ArgumentParser:
    config = dict(config or {})
    logging_cfg = dict(config.get("logging", {}))

    parser = argparse.ArgumentParser(
        description="zonebeat: play music only while you train in your heart-rate zone"
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the TOML configuration file to load.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=logging_cfg.get("level", "info"),
        help="Logging level (e.g. debug, info, warning).",
    )
    parser.add_argument(
        "--log-output",
        dest="log_output",
        default=logging_cfg.get("output", "stderr"),
        help="Logging destination (stdout, stderr or a file path).",
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=("json", "text"),
        default=logging_cfg.get("format", "json"),
        help="Logging formatter (json or text).",
    )

    subparsers = parser.add_subparsers(dest="command")

    zones_parser = subparsers.add_parser(
        "zones", help="Print the heart-rate zone table as JSON."
    )
    source = zones_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--max-hr", dest="max_heart_rate", type=int, help="Maximum heart rate.")
    source.add_argument("--age", type=int, help="Age used to estimate the maximum heart rate.")
    zones_parser.set_defaults(handler=handle_zones)

    replay_parser = subparsers.add_parser(
        "replay",
        help="Replay a recorded sensor trace and print the playback transitions.",
    )
    replay_parser.add_argument(
        "trace", type=Path, help="Trace file (.jsonl, .jsonl.gz or .csv)."
    )
    replay_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in WorkoutMode],
        default=WorkoutMode.OUTDOOR.value,
        help="Workout mode selecting the pace or cadence effort gate.",
    )
    replay_parser.add_argument(
        "--speed",
        type=_positive_float,
        default=None,
        help="Pace the replay against the wall clock at this multiple of real time.",
    )
    replay_parser.add_argument("--lower-bpm", type=int, default=None)
    replay_parser.add_argument("--upper-bpm", type=int, default=None)
    replay_parser.add_argument(
        "--zone", type=int, default=None, help="Default zone number (1-5)."
    )
    replay_parser.add_argument("--max-hr", dest="max_heart_rate", type=int, default=None)
    replay_parser.add_argument("--age", type=int, default=None)
    replay_parser.set_defaults(handler=handle_replay)

    return parser

"""Persistence helpers for recorded sensor traces.

A trace is a sequence of heart-rate, pace and step samples.  JSON-lines
traces hold one object per line tagged with ``kind``::

    {"kind": "heart_rate", "timestamp": 12.0, "bpm": 141}
    {"kind": "pace", "timestamp": 12.4, "speed_meters_per_second": 2.9}
    {"kind": "steps", "timestamp": 12.5, "steps_per_minute": 162}

CSV traces use the same field names as columns, leaving cells that do not
apply to a row empty.
"""

from __future__ import annotations

import gzip
import json
import zlib
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, TextIO, Tuple, Union

from ..core.models import HeartRateSample, PaceSample, StepsSample
from ..errors import ZonebeatError

__all__ = [
    "CSV_COLUMNS",
    "DeterministicReplayer",
    "TraceFormatError",
    "TraceSample",
    "decode_sample",
    "encode_sample",
    "iter_trace",
    "read_csv_trace",
    "write_trace",
]


TraceSample = Union[HeartRateSample, PaceSample, StepsSample]

CSV_COLUMNS: Tuple[str, ...] = (
    "kind",
    "timestamp",
    "bpm",
    "speed_meters_per_second",
    "steps_per_minute",
)
_CSV_DELIMITER = ","
_COMPRESSED_SUFFIXES = {".gz", ".gzip"}


class TraceFormatError(ZonebeatError):
    """Raised when a trace cannot be parsed."""

    def __init__(self, message: str, *, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message, category="io", context=context)


def encode_sample(sample: TraceSample) -> dict[str, Any]:
    if isinstance(sample, HeartRateSample):
        return {"kind": "heart_rate", "timestamp": sample.timestamp, "bpm": sample.bpm}
    if isinstance(sample, PaceSample):
        return {
            "kind": "pace",
            "timestamp": sample.timestamp,
            "speed_meters_per_second": sample.speed_meters_per_second,
        }
    if isinstance(sample, StepsSample):
        return {
            "kind": "steps",
            "timestamp": sample.timestamp,
            "steps_per_minute": sample.steps_per_minute,
        }
    raise TypeError(f"Unsupported trace sample {sample!r}")


def decode_sample(payload: Mapping[str, Any]) -> TraceSample:
    """Rebuild a sample from a ``kind``-tagged mapping."""

    kind = payload.get("kind")
    try:
        timestamp = float(payload["timestamp"])
        if kind == "heart_rate":
            return HeartRateSample(bpm=int(payload["bpm"]), timestamp=timestamp)
        if kind == "pace":
            speed = payload.get("speed_meters_per_second")
            return PaceSample(
                speed_meters_per_second=None if speed is None else float(speed),
                timestamp=timestamp,
            )
        if kind == "steps":
            return StepsSample(
                steps_per_minute=int(payload["steps_per_minute"]), timestamp=timestamp
            )
    except (KeyError, TypeError, ValueError) as exc:
        raise TraceFormatError(
            f"Malformed {kind or 'trace'} sample: {dict(payload)!r}",
            context={"kind": kind},
        ) from exc
    raise TraceFormatError(f"Unknown sample kind {kind!r}", context={"kind": kind})


def write_trace(
    samples: Iterable[TraceSample],
    path: str | Path,
    *,
    compress: Optional[bool] = None,
) -> Path:
    """Persist ``samples`` to ``path`` as newline-delimited JSON.

    Parameters
    ----------
    samples:
        Heart-rate, pace and step samples in any order.
    path:
        Destination file.  Parent directories are created automatically.
    compress:
        Force gzip on or off.  By default files ending in ``.gz`` are
        compressed.  :func:`iter_trace` reads both variants.
    """

    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    if compress is None:
        compress = destination.suffix.lower() in _COMPRESSED_SUFFIXES
    opener = gzip.open if compress else open

    with opener(destination, "wt", encoding="utf8") as handle:
        for sample in samples:
            json.dump(encode_sample(sample), handle, sort_keys=True)
            handle.write("\n")
    return destination


def iter_trace(path: str | Path) -> Iterator[TraceSample]:
    """Yield samples stored at ``path`` (JSON lines, gzip JSON lines or CSV).

    Undecodable text and truncated or corrupt gzip streams surface as
    :class:`TraceFormatError`.
    """

    source = Path(path)
    if not source.exists():
        raise TraceFormatError(f"Trace {source} does not exist", context={"path": str(source)})

    try:
        yield from _read_trace(source)
    except (UnicodeDecodeError, EOFError, zlib.error, OSError) as exc:
        raise TraceFormatError(
            f"Trace {source} could not be read: {exc}",
            context={"path": str(source), "error_type": type(exc).__name__},
        ) from exc


def _read_trace(source: Path) -> Iterator[TraceSample]:
    if source.suffix.lower() == ".csv":
        with source.open("r", encoding="utf8", newline="") as handle:
            yield from read_csv_trace(handle)
        return

    try:
        with gzip.open(source, "rt", encoding="utf8") as handle:
            yield from _iter_json_lines(handle, source)
        return
    except gzip.BadGzipFile:
        pass

    with source.open("r", encoding="utf8") as handle:
        yield from _iter_json_lines(handle, source)


def _iter_json_lines(handle: Iterable[str], source: Path) -> Iterator[TraceSample]:
    for number, line in enumerate(handle, start=1):
        if not line.strip():
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            raise TraceFormatError(
                f"Line {number} of {source} is not valid JSON",
                context={"path": str(source), "line": number},
            ) from exc
        if not isinstance(payload, Mapping):
            raise TraceFormatError(
                f"Line {number} of {source} is not a JSON object",
                context={"path": str(source), "line": number},
            )
        yield decode_sample(payload)


def read_csv_trace(source: TextIO | Iterable[str]) -> List[TraceSample]:
    """Parse CSV lines whose header names a subset of :data:`CSV_COLUMNS`.

    ``kind`` and ``timestamp`` are mandatory; the value columns may be
    omitted when a trace never carries that kind of sample.
    """

    iterator = iter(source)
    header = next(iterator, None)
    if header is None:
        return []
    columns = [column.strip().lower() for column in header.split(_CSV_DELIMITER)]
    unknown = [column for column in columns if column not in CSV_COLUMNS]
    if unknown or "kind" not in columns or "timestamp" not in columns:
        raise TraceFormatError(
            f"Unexpected header {columns!r}. Expected columns from {CSV_COLUMNS!r}",
            context={"header": ",".join(columns)},
        )

    samples: List[TraceSample] = []
    for number, line in enumerate(iterator, start=2):
        if not line.strip():
            continue
        values = [value.strip() for value in line.rstrip("\r\n").split(_CSV_DELIMITER)]
        if len(values) != len(columns):
            raise TraceFormatError(
                f"Expected {len(columns)} columns on line {number}, got {len(values)}",
                context={"line": number},
            )
        payload = {column: value for column, value in zip(columns, values) if value != ""}
        samples.append(decode_sample(payload))
    return samples


class DeterministicReplayer:
    """Hold a trace and yield it in timestamp order, the same way every time.

    Samples sharing a timestamp keep the order they were recorded in.
    """

    def __init__(self, samples: Iterable[TraceSample]):
        ordered = sorted(enumerate(samples), key=lambda item: (item[1].timestamp, item[0]))
        self._samples: Tuple[TraceSample, ...] = tuple(sample for _, sample in ordered)

    def __iter__(self) -> Iterator[TraceSample]:
        return iter(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def iter(self) -> Iterator[TraceSample]:
        """Return a new iterator over the stored trace."""

        return iter(self._samples)

    @property
    def samples(self) -> Sequence[TraceSample]:
        return self._samples

    @property
    def start(self) -> Optional[float]:
        return self._samples[0].timestamp if self._samples else None

    @property
    def end(self) -> Optional[float]:
        return self._samples[-1].timestamp if self._samples else None

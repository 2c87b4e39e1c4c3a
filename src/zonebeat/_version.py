"""Package version lookup with a changelog fallback for source checkouts."""

from __future__ import annotations

import re
from importlib import metadata
from pathlib import Path

from packaging.version import InvalidVersion, Version

_DISTRIBUTION = "zonebeat"
_CHANGELOG_HEADING = re.compile(r"^## v(?P<version>\d+\.\d+\.\d+)\b")


def _changelog_version() -> str:
    """Return the newest release heading found in ``CHANGELOG.md``.

    Editable checkouts that were never installed have no distribution
    metadata, so the changelog next to ``src/`` is consulted instead.
    """

    for root in Path(__file__).resolve().parents[1:3]:
        changelog = root / "CHANGELOG.md"
        if not changelog.is_file():
            continue
        for line in changelog.read_text(encoding="utf-8").splitlines():
            match = _CHANGELOG_HEADING.match(line)
            if match:
                return match.group("version")

    raise RuntimeError(
        f"Unable to determine the {_DISTRIBUTION!r} version from package "
        "metadata or CHANGELOG.md."
    )


def _load_version() -> str:
    try:
        raw_version = metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        raw_version = _changelog_version()

    try:
        release = Version(raw_version).release
    except InvalidVersion as exc:
        raise RuntimeError(
            f"Invalid version string for {_DISTRIBUTION!r}: {raw_version!r}."
        ) from exc

    if len(release) != 3:
        raise RuntimeError(
            f"The {_DISTRIBUTION!r} version must follow MAJOR.MINOR.PATCH, "
            f"found {raw_version!r}."
        )
    return raw_version


__version__ = _load_version()

__all__ = ["__version__"]

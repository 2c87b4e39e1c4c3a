"""Helpers to load project-level configuration files."""

from __future__ import annotations

from collections.abc import Iterable, Mapping as ABCMapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python < 3.11 fallback
    import tomli as tomllib  # type: ignore

from .core.models import SessionConfiguration, ZoneRange
from .core.zones import estimate_max_heart_rate, zone_by_id
from .engine.settings import EngineSettings
from .errors import ZonebeatError

__all__ = [
    "ResolvedSettings",
    "discover_config",
    "load_config_file",
    "load_project_config",
    "resolve_settings",
    "resolve_zone_range",
]


_PROJECT_FILENAME = "pyproject.toml"
_TOOL_SECTION = "zonebeat"


@dataclass(frozen=True, slots=True)
class ResolvedSettings:
    """Typed view over a raw ``[tool.zonebeat]`` mapping."""

    session: SessionConfiguration
    engine: EngineSettings
    zone_range: Optional[ZoneRange]


def _as_dict(payload: ABCMapping[str, Any]) -> dict[str, Any]:
    """Recursively coerce TOML mappings into regular dictionaries."""

    result: dict[str, Any] = {}
    for key, value in payload.items():
        key_str = str(key)
        if isinstance(value, ABCMapping):
            result[key_str] = _as_dict(value)
        elif isinstance(value, list):
            result[key_str] = [
                _as_dict(item) if isinstance(item, ABCMapping) else item for item in value
            ]
        else:
            result[key_str] = value
    return result


def _resolve_pyproject_path(candidate: Path) -> Path | None:
    candidate = candidate.expanduser()
    if candidate.name == _PROJECT_FILENAME:
        return candidate
    if candidate.suffix:
        return None
    return candidate / _PROJECT_FILENAME


def _iter_unique_paths(paths: Iterable[Path]) -> list[Path]:
    seen: dict[Path, None] = {}
    ordered: list[Path] = []
    for path in paths:
        resolved = path.expanduser().resolve(strict=False)
        if resolved in seen:
            continue
        seen[resolved] = None
        ordered.append(resolved)
    return ordered


def _load_toml_mapping(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ZonebeatError(
            f"Configuration file {path} is not valid TOML: {exc}",
            category="config",
            context={"path": str(path)},
        ) from exc
    if isinstance(data, ABCMapping):
        return _as_dict(data)
    return None


def load_project_config(path: Path) -> tuple[dict[str, Any], Path] | None:
    """Load the ``[tool.zonebeat]`` section from ``pyproject.toml``.

    ``path`` may point at the file itself or at the directory holding it.
    ``None`` is returned when the file or the section does not exist.
    """

    pyproject_path = _resolve_pyproject_path(path)
    if pyproject_path is None:
        return None

    pyproject_path = pyproject_path.expanduser().resolve(strict=False)
    payload = _load_toml_mapping(pyproject_path)
    if not payload:
        return None

    tool_section = payload.get("tool")
    if not isinstance(tool_section, ABCMapping):
        return None
    section = tool_section.get(_TOOL_SECTION)
    if not isinstance(section, ABCMapping):
        return None
    return _as_dict(section), pyproject_path


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read a standalone TOML configuration file.

    Files shaped like ``pyproject.toml`` contribute their ``[tool.zonebeat]``
    table; any other file is taken as the configuration mapping itself.
    """

    source = Path(path).expanduser()
    payload = _load_toml_mapping(source)
    if payload is None:
        raise ZonebeatError(
            f"Configuration file {source} does not exist",
            category="io",
            context={"path": str(source)},
        )
    tool_section = payload.get("tool")
    if isinstance(tool_section, ABCMapping):
        section = tool_section.get(_TOOL_SECTION)
        if isinstance(section, ABCMapping):
            return _as_dict(section)
    return payload


def _pyproject_candidates(start: Path) -> Iterable[Path]:
    yield start
    yield from start.parents


def discover_config(path: str | Path | None = None) -> tuple[dict[str, Any], Path | None]:
    """Return the active configuration mapping and where it came from.

    An explicit ``path`` must exist.  Without one, the nearest
    ``pyproject.toml`` carrying a ``[tool.zonebeat]`` table is used, walking
    up from the working directory; an empty mapping is returned otherwise.
    """

    if path is not None:
        source = Path(path).expanduser().resolve(strict=False)
        return load_config_file(source), source

    for candidate in _iter_unique_paths(_pyproject_candidates(Path.cwd())):
        loaded = load_project_config(candidate)
        if loaded:
            return loaded
    return {}, None


def resolve_zone_range(config: Mapping[str, Any] | None) -> Optional[ZoneRange]:
    """Build the target :class:`ZoneRange` from the ``zone`` table.

    Explicit ``lower_bpm``/``upper_bpm`` bounds win.  Otherwise ``zone``
    selects one of the default zones, scaled by ``max_heart_rate`` or, when
    only ``age`` is known, by the age-predicted maximum.
    """

    section = config.get("zone") if config else None
    if not isinstance(section, ABCMapping) or not section:
        return None

    context = {key: section.get(key) for key in sorted(section)}
    try:
        if "lower_bpm" in section or "upper_bpm" in section:
            return ZoneRange(int(section["lower_bpm"]), int(section["upper_bpm"]))
        if "zone" not in section:
            return None
        zone = zone_by_id(int(section["zone"]))
        if section.get("max_heart_rate") is not None:
            max_heart_rate = int(section["max_heart_rate"])
        elif section.get("age") is not None:
            max_heart_rate = estimate_max_heart_rate(int(section["age"]))
        else:
            raise ZonebeatError(
                "Zone selection needs either max_heart_rate or age",
                category="config",
                context=context,
            )
        return ZoneRange.from_zone(zone, max_heart_rate)
    except ZonebeatError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        message = exc.args[0] if isinstance(exc, KeyError) and exc.args else str(exc)
        raise ZonebeatError(
            f"Invalid zone configuration: {message}",
            category="config",
            context=context,
        ) from exc


def resolve_settings(config: Mapping[str, Any] | None = None) -> ResolvedSettings:
    return ResolvedSettings(
        session=SessionConfiguration.from_config(config),
        engine=EngineSettings.from_config(config),
        zone_range=resolve_zone_range(config),
    )

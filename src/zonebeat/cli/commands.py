"""Command handlers invoked by :func:`zonebeat.cli.app.run_cli`."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections.abc import Mapping as ABCMapping
from typing import Any, Mapping

from ..configuration import resolve_settings
from ..core.models import WorkoutMode
from ..core.zones import DEFAULT_ZONES, estimate_max_heart_rate
from ..errors import ZonebeatError
from ..ingestion import DeterministicReplayer, iter_trace, replay_trace

logger = logging.getLogger(__name__)


def handle_zones(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    if namespace.max_heart_rate is not None:
        if namespace.max_heart_rate <= 0:
            raise ZonebeatError(
                "--max-hr must be positive",
                category="usage",
                context={"max_heart_rate": namespace.max_heart_rate},
            )
        max_heart_rate = namespace.max_heart_rate
    else:
        max_heart_rate = estimate_max_heart_rate(namespace.age)
    payload = {
        "max_heart_rate": max_heart_rate,
        "zones": [dict(zone.as_dict(max_heart_rate)) for zone in DEFAULT_ZONES],
    }
    return json.dumps(payload, indent=2, sort_keys=True)


def _apply_zone_overrides(
    namespace: argparse.Namespace, config: Mapping[str, Any]
) -> dict[str, Any]:
    merged = dict(config)
    existing = config.get("zone")
    section = dict(existing) if isinstance(existing, ABCMapping) else {}

    if namespace.lower_bpm is not None or namespace.upper_bpm is not None:
        section = {
            key: value
            for key, value in (
                ("lower_bpm", namespace.lower_bpm),
                ("upper_bpm", namespace.upper_bpm),
            )
            if value is not None
        }
    elif any(
        value is not None
        for value in (namespace.zone, namespace.max_heart_rate, namespace.age)
    ):
        section.pop("lower_bpm", None)
        section.pop("upper_bpm", None)
        if namespace.zone is not None:
            section["zone"] = namespace.zone
        if namespace.max_heart_rate is not None:
            section["max_heart_rate"] = namespace.max_heart_rate
        elif namespace.age is not None:
            section.pop("max_heart_rate", None)
            section["age"] = namespace.age
    merged["zone"] = section
    return merged


def handle_replay(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    resolved = resolve_settings(_apply_zone_overrides(namespace, config))
    if resolved.zone_range is None:
        raise ZonebeatError(
            "No target zone configured. Pass --lower-bpm/--upper-bpm or --zone with "
            "--max-hr or --age, or add a [tool.zonebeat.zone] table.",
            category="usage",
        )

    replayer = DeterministicReplayer(iter_trace(namespace.trace))
    logger.info(
        "Loaded trace.",
        extra={
            "event": "cli.trace_loaded",
            "path": str(namespace.trace),
            "samples": len(replayer),
        },
    )
    result = asyncio.run(
        replay_trace(
            replayer,
            zone_range=resolved.zone_range,
            mode=WorkoutMode(namespace.mode),
            configuration=resolved.session,
            settings=resolved.engine,
            speed=namespace.speed,
        )
    )
    lines = [json.dumps(dict(record.as_dict()), sort_keys=True) for record in result.transitions]
    lines.extend(json.dumps(dict(record.as_dict()), sort_keys=True) for record in result.errors)
    return "\n".join(lines)

"""Command line interface for zonebeat."""

from __future__ import annotations

from .app import main, run_cli

__all__ = ["main", "run_cli"]

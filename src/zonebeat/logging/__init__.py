"""Logging utilities for zonebeat."""

from zonebeat.logging.config import JsonFormatter, setup_logging

__all__ = ["JsonFormatter", "setup_logging"]

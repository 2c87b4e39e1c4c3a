"""Command line application entry point for zonebeat."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

from ..configuration import discover_config
from ..errors import ZonebeatError
from ..logging.config import setup_logging
from .parser import build_parser

CommandHandler = Callable[[argparse.Namespace, Mapping[str, Any]], str]

logger = logging.getLogger(__name__)


def _log_cli_error(error: ZonebeatError) -> None:
    logger.error(
        str(error),
        extra={
            "event": "cli.error",
            "category": error.category,
            "status_code": error.status_code,
            "context": dict(error.context),
        },
        exc_info=error,
    )


def run_cli(args: Optional[Sequence[str]] = None) -> str:
    """Execute the zonebeat command line interface."""

    config_parser = argparse.ArgumentParser(add_help=False)
    config_parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the TOML configuration file to load.",
    )
    config_parser.add_argument("--log-level", dest="log_level", default=None)
    config_parser.add_argument("--log-output", dest="log_output", default=None)
    config_parser.add_argument(
        "--log-format", dest="log_format", choices=("json", "text"), default=None
    )
    preliminary, remaining = config_parser.parse_known_args(args)

    try:
        config, config_path = discover_config(preliminary.config_path)
    except ZonebeatError as exc:
        sys.stdout.write(f"{exc}\n")
        raise SystemExit(exc.status_code) from exc

    logging_config = dict(config.get("logging", {}))
    if preliminary.log_level is not None:
        logging_config["level"] = preliminary.log_level
    if preliminary.log_output is not None:
        logging_config["output"] = preliminary.log_output
    if preliminary.log_format is not None:
        logging_config["format"] = preliminary.log_format
    logging_config.setdefault("level", "info")
    logging_config.setdefault("output", "stderr")
    logging_config.setdefault("format", "json")
    config["logging"] = logging_config
    setup_logging(config)

    parser = build_parser(config)
    namespace = parser.parse_args(list(remaining), namespace=preliminary)
    namespace.config_path = preliminary.config_path or config_path

    handler: Optional[CommandHandler] = getattr(namespace, "handler", None)
    if handler is None:
        parser.print_usage(sys.stderr)
        raise SystemExit(2)

    try:
        result = handler(namespace, config=config)
    except ZonebeatError as exc:
        if not exc.logged:
            _log_cli_error(exc)
            exc.logged = True
        sys.stdout.write(f"{exc}\n")
        raise SystemExit(exc.status_code) from exc
    if result:
        sys.stdout.write(result)
        if not result.endswith("\n"):
            sys.stdout.write("\n")
    return result


def main() -> None:  # pragma: no cover - thin wrapper
    run_cli()


if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    main()

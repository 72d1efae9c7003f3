"""Command-line interface for the rss_cache application."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pprint
from pathlib import Path
from typing import List, Optional

from .config import parse_app_config
from .exceptions import IngestionInProgressError, MalformedFeedError
from .runner import RunConfig, execute

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Refresh the local news cache from an RSS document and list it."
    )
    parser.add_argument(
        "--config",
        default="configs/config.xml",
        help="Path to the main configuration XML file.",
    )
    parser.add_argument(
        "--feed",
        default=None,
        help="RSS file to ingest ('-' for stdin). Overrides config.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Ingest even if the refresh interval has not elapsed.",
    )
    parser.add_argument(
        "--show-only",
        action="store_true",
        help="Only list the cached items, never ingest.",
    )
    parser.add_argument(
        "--limit",
        type=_positive_int,
        default=None,
        help="Maximum number of items to list. Overrides config.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    return parser


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# SQL statements are only echoed when the cache itself is being debugged.
SQL_LOGGER = "sqlalchemy.engine"


def _resolve_level(level_name: str) -> int:
    level = getattr(logging, level_name.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unsupported log level: {level_name}")
    return level


def _build_handlers(log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    return handlers


def configure_logging(level_name: str, log_file: Optional[str] = None) -> int:
    """Route log records to the console and, optionally, to ``log_file``.

    Replaces any handlers already installed on the root logger and returns the
    numeric level that was applied.
    """
    level = _resolve_level(level_name)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in _build_handlers(log_file):
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger(SQL_LOGGER).setLevel(
        logging.INFO if level <= logging.DEBUG else logging.WARNING
    )

    logger.debug(
        "Logging at %s to console%s",
        logging.getLevelName(level),
        f" and {log_file}" if log_file else "",
    )
    return level


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config)

        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file
        configure_logging(log_level, log_file)

        config = RunConfig(
            feed=args.feed or app_config.feed,
            connection_string=app_config.database.connection_string,
            refresh_interval_minutes=app_config.refresh_interval_minutes,
            chunk_size=app_config.chunk_size,
            display_limit=args.limit if args.limit is not None else app_config.display.limit,
            force=args.force,
            show_only=args.show_only,
        )

        config_dict = dataclasses.asdict(config)
        config_dict["connection_string"] = "***MASKED***"
        logger.info("Active Configuration:\n%s", pprint.pformat(config_dict))

        result = execute(config)
    except ValueError as exc:
        parser.error(str(exc))
    except MalformedFeedError as exc:
        logger.error("Feed could not be parsed: %s", exc)
        return 1
    except IngestionInProgressError as exc:
        logger.error("%s", exc)
        return 1
    except (RuntimeError, OSError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    print(result.output_text)
    return 0

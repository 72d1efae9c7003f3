"""Configuration loading for the feed cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from xml.etree import ElementTree as ET

from .parser import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

STDIN_FEED = "-"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    connection_string: str = "sqlite:///rss.db"


@dataclass
class DisplayConfig:
    limit: int = 20


@dataclass
class AppConfig:
    feed: str
    refresh_interval_minutes: float = 60.0
    chunk_size: int = DEFAULT_CHUNK_SIZE
    display: DisplayConfig = field(default_factory=DisplayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    tree = ET.parse(config_path)
    root = tree.getroot()

    feed_node = root.find("feed")
    if feed_node is None or not feed_node.text or not feed_node.text.strip():
        raise ValueError("Config missing <feed> path")
    feed = feed_node.text.strip()
    if feed != STDIN_FEED:
        feed = _resolve_path(config_path, feed)

    interval = float(root.findtext("refresh-interval-minutes", "60"))
    if interval <= 0:
        raise ValueError("<refresh-interval-minutes> must be positive.")

    chunk_size = int(root.findtext("chunk-size", str(DEFAULT_CHUNK_SIZE)))
    if chunk_size <= 0:
        raise ValueError("<chunk-size> must be positive.")

    display_node = root.find("display")
    display = DisplayConfig()
    if display_node is not None:
        display.limit = int(display_node.findtext("limit", "20"))
        if display.limit <= 0:
            raise ValueError("<display><limit> must be positive.")

    log_node = root.find("logging")
    logging_config = LoggingConfig()
    if log_node is not None:
        logging_config.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            logging_config.file = _resolve_path(config_path, log_file)

    db_node = root.find("database")
    db_config = DatabaseConfig()
    if db_node is not None:
        connection_string = db_node.findtext("connection-string")
        if connection_string:
            db_config.connection_string = connection_string.strip()

    return AppConfig(
        feed=feed,
        refresh_interval_minutes=interval,
        chunk_size=chunk_size,
        display=display,
        logging=logging_config,
        database=db_config,
    )

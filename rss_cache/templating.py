"""Jinja2 environment for rss_cache templates."""

from __future__ import annotations

import re
from datetime import datetime
from importlib import resources

from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader, select_autoescape

_ENV: Environment | None = None


def _plain(value: str | None) -> str:
    """Return the text content of an HTML fragment."""
    if not value:
        return ""
    soup = BeautifulSoup(value, "html.parser")
    text = soup.get_text(separator=" ", strip=True)
    text = re.sub(r"\s+([.,;:!?])", r"\1", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip()


def _timestamp(value: datetime | None) -> str:
    if value is None:
        return "unknown date"
    return value.strftime("%Y-%m-%d %H:%M UTC")


def get_environment() -> Environment:
    """Return a cached Jinja environment configured for package templates."""
    global _ENV
    if _ENV is None:
        template_dir = resources.files(__package__) / "templates"
        loader = FileSystemLoader(str(template_dir))
        _ENV = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        _ENV.filters["plain"] = _plain
        _ENV.filters["timestamp"] = _timestamp
    return _ENV

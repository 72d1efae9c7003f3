"""Rendering helpers for displaying cached items."""

from __future__ import annotations

from typing import Sequence

from .models import IngestionState, NewsItem
from .templating import get_environment


def build_items_text(items: Sequence[NewsItem], state: IngestionState) -> str:
    """Render the plain-text listing of cached items."""
    env = get_environment()
    template = env.get_template("items.txt.j2")
    return template.render(items=items, state=state)

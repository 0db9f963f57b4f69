"""Session restore — rehydrate the editor from the most recent diagram at startup."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from diagstash.models import EditorState, SavedDiagram

if TYPE_CHECKING:
    from diagstash.repository import DiagramRepository

logger = logging.getLogger(__name__)


def restore_session(repository: DiagramRepository, editor: EditorState) -> SavedDiagram | None:
    """Load ``repository.get_most_recent()`` into ``editor``. One shot, no retry.

    Because the repository sorts pinned diagrams first, a pinned diagram is
    restored even when a newer unpinned one exists.
    """
    diagram = repository.get_most_recent()
    if diagram is None:
        logger.debug("No saved diagram to restore")
        return None
    editor.load(diagram)
    logger.info("Restored session from %s (%s)", diagram.id, diagram.name)
    return diagram


def format_age(timestamp: int, now: int) -> str:
    """Short relative age for history listings."""
    minutes = (now - timestamp) // 60000
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 1440:
        return f"{minutes // 60}h ago"
    return datetime.fromtimestamp(timestamp / 1000).date().isoformat()

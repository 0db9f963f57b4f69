"""Error taxonomy for diagram persistence.

Validation errors (InvalidDiagram, NotFound, EmptyName) are raised before the
store is touched. StorageUnavailable wraps any failure of the backing store.
"""

from __future__ import annotations


class DiagramError(Exception):
    """Base class for all diagstash errors."""


class InvalidDiagram(DiagramError):
    """A save was attempted with missing or unknown required fields."""


class NotFound(DiagramError):
    """The target diagram does not exist."""

    def __init__(self, diagram_id: str) -> None:
        super().__init__(f"Diagram not found: {diagram_id}")
        self.diagram_id = diagram_id


class EmptyName(DiagramError):
    """A rename was attempted with a blank name."""

    def __init__(self) -> None:
        super().__init__("Name cannot be empty")


class StorageUnavailable(DiagramError):
    """The backing store failed (I/O, quota, not initialized)."""

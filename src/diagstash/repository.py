"""Diagram repository — CRUD over the entity store with retention after every save.

Validation errors are raised before the store is touched. Storage failures
degrade to empty results on read paths and propagate on write paths. Every
mutating operation reports its outcome to the notifier, best-effort.
"""

from __future__ import annotations

import logging

from diagstash.errors import (
    DiagramError,
    EmptyName,
    InvalidDiagram,
    NotFound,
    StorageUnavailable,
)
from diagstash.events import Notifier, Outcome, emit
from diagstash.models import (
    Clock,
    DiagramDraft,
    DiagramType,
    OutputFormat,
    SavedDiagram,
    generate_diagram_id,
    system_clock,
)
from diagstash.storage.retention import RetentionPolicy
from diagstash.storage.store import EntityStore

logger = logging.getLogger(__name__)


def sort_diagrams(diagrams: list[SavedDiagram]) -> list[SavedDiagram]:
    """Pinned first, then newest first within each group."""
    return sorted(diagrams, key=lambda d: (not d.is_pinned, -d.timestamp))


class DiagramRepository:
    """Entity store + retention policy behind a CRUD interface."""

    def __init__(
        self,
        store: EntityStore,
        policy: RetentionPolicy | None = None,
        clock: Clock = system_clock,
        notifier: Notifier | None = None,
        quota_warn_percent: float = 90.0,
    ) -> None:
        self.store = store
        self.policy = policy or RetentionPolicy()
        self.clock = clock
        self.notifier = notifier
        self.quota_warn_percent = quota_warn_percent

    def _notify(self, action: str, level, message: str, **kwargs) -> None:
        emit(self.notifier, Outcome(action=action, level=level, message=message, **kwargs))

    # ── Writes ────────────────────────────────────────────────

    def _build_record(self, draft: DiagramDraft) -> SavedDiagram:
        if not draft.source or not draft.diagram_type:
            raise InvalidDiagram("Invalid diagram: missing required fields")
        try:
            diagram_type = DiagramType(draft.diagram_type)
            output_format = OutputFormat(draft.output_format or OutputFormat.SVG)
        except ValueError as e:
            raise InvalidDiagram(f"Invalid diagram: {e}") from e
        now = self.clock()
        return SavedDiagram(
            id=generate_diagram_id(now),
            name=draft.name,
            source=draft.source,
            diagram_type=diagram_type,
            output_format=output_format,
            options=dict(draft.options or {}),
            timestamp=now,
            is_pinned=False,
        )

    def save(self, draft: DiagramDraft) -> str:
        """Persist a new diagram, then enforce retention. Returns the new id."""
        try:
            record = self._build_record(draft)
            self.store.set(record.id, record)
            deleted = self.policy.enforce(self.store, self.clock())
        except DiagramError as e:
            logger.error("Failed to save diagram: %s", e)
            self._notify("save", "error", "Failed to save diagram")
            raise

        if deleted > 0:
            logger.info("Auto-cleanup: removed %d old diagram(s)", deleted)
        self._notify("save", "success", f"Saved {record.name or record.id}", diagram_id=record.id)
        return record.id

    def delete(self, diagram_id: str) -> None:
        """Remove a diagram. Deleting a missing id is a no-op."""
        try:
            self.store.delete(diagram_id)
        except StorageUnavailable as e:
            logger.error("Failed to delete diagram %s: %s", diagram_id, e)
            self._notify("delete", "error", "Failed to delete diagram", diagram_id=diagram_id)
            raise
        self._notify("delete", "success", "Diagram deleted", diagram_id=diagram_id)

    def toggle_pin(self, diagram_id: str) -> bool:
        """Flip the pin flag. Returns the new state. No retention pass runs."""
        try:
            diagram = self.store.get(diagram_id)
            if diagram is None:
                raise NotFound(diagram_id)
            pinned = not diagram.is_pinned
            self.store.set(diagram_id, diagram.with_pin(pinned))
        except DiagramError as e:
            logger.error("Failed to toggle pin on %s: %s", diagram_id, e)
            self._notify("pin", "error", "Failed to toggle pin status", diagram_id=diagram_id)
            raise

        self._notify(
            "pin",
            "success",
            "Diagram pinned" if pinned else "Diagram unpinned",
            diagram_id=diagram_id,
        )
        return pinned

    def rename(self, diagram_id: str, new_name: str) -> None:
        """Replace the name with its stripped form. The timestamp is untouched."""
        try:
            name = (new_name or "").strip()
            if not name:
                raise EmptyName()
            diagram = self.store.get(diagram_id)
            if diagram is None:
                raise NotFound(diagram_id)
            self.store.set(diagram_id, diagram.with_name(name))
        except DiagramError as e:
            logger.error("Failed to rename diagram %s: %s", diagram_id, e)
            self._notify("rename", "error", "Failed to rename diagram", diagram_id=diagram_id)
            raise
        self._notify("rename", "success", "Diagram renamed", diagram_id=diagram_id)

    # ── Reads (degrade on storage failure) ────────────────────

    def load(self, diagram_id: str) -> SavedDiagram | None:
        try:
            return self.store.get(diagram_id)
        except StorageUnavailable as e:
            logger.error("Failed to load diagram %s: %s", diagram_id, e)
            self._notify("load", "error", "Failed to load diagram", diagram_id=diagram_id)
            return None

    def _fetch_all(self) -> list[SavedDiagram]:
        return sort_diagrams([record for _, record in self.store.entries()])

    def list(self) -> list[SavedDiagram]:
        """All diagrams, pinned first, newest first within each group."""
        try:
            return self._fetch_all()
        except StorageUnavailable as e:
            logger.error("Failed to load diagrams: %s", e)
            self._notify("list", "error", "Failed to load diagrams")
            return []

    def get_most_recent(self) -> SavedDiagram | None:
        """First diagram in ``list()`` order.

        A pinned diagram wins over a newer unpinned one, so session restore
        reopens the most recent pinned diagram whenever one exists.
        """
        try:
            diagrams = self._fetch_all()
        except StorageUnavailable as e:
            logger.error("Failed to get last diagram: %s", e)
            return None
        return diagrams[0] if diagrams else None

    # ── Maintenance ───────────────────────────────────────────

    def run_cleanup(self, dry_run: bool = False) -> int:
        """Run a retention pass now. Returns the number of diagrams deleted.

        With ``dry_run`` nothing is deleted and the planned count is returned.
        """
        try:
            if dry_run:
                records = [record for _, record in self.store.entries()]
                plan = self.policy.plan(records, self.clock())
                logger.info(
                    "[DRY RUN] Would remove %d expired and %d excess diagram(s)",
                    len(plan.expired),
                    len(plan.excess),
                )
                return plan.total
            deleted = self.policy.enforce(self.store, self.clock())
        except StorageUnavailable as e:
            logger.error("Failed to cleanup diagrams: %s", e)
            self._notify("cleanup", "error", "Failed to cleanup diagrams")
            return 0

        if deleted > 0:
            self._notify(
                "cleanup", "success", f"Cleaned up {deleted} old diagram(s)", count=deleted
            )
        else:
            self._notify("cleanup", "info", "No diagrams to clean up", count=0)
        return deleted

    def check_storage_quota(self) -> float | None:
        """Percent of storage used, or None if the backend cannot tell.

        Emits a warning outcome when usage crosses ``quota_warn_percent``.
        """
        try:
            usage = self.store.usage()
        except StorageUnavailable as e:
            logger.error("Failed to check storage quota: %s", e)
            return None
        if not usage or not usage[1]:
            return None
        percent = usage[0] / usage[1] * 100
        if percent > self.quota_warn_percent:
            self._notify(
                "quota",
                "warning",
                "Storage almost full. Consider deleting old diagrams.",
            )
        return percent

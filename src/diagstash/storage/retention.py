"""Hybrid retention policy: age cap, then count cap; pinned diagrams are exempt.

Decisions (``expired``, ``excess``, ``plan``) are pure functions of a record
snapshot and ``now``. ``enforce`` runs the two phases against a store:
age-based deletions are committed before the count is re-read, so a record
removed for age is never counted again in the count phase.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from diagstash.config import RetentionConfig
from diagstash.errors import StorageUnavailable
from diagstash.models import SavedDiagram

if TYPE_CHECKING:
    from diagstash.storage.store import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class RetentionPlan:
    """What a cleanup pass would delete, by phase."""

    expired: list[str] = field(default_factory=list)
    excess: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.expired) + len(self.excess)


class RetentionPolicy:
    """Decides which diagrams a cleanup pass removes."""

    def __init__(self, config: RetentionConfig | None = None) -> None:
        self.config = config or RetentionConfig()

    def expired(self, records: Iterable[SavedDiagram], now: int) -> list[SavedDiagram]:
        """Unpinned records strictly older than max_age_ms."""
        max_age = self.config.max_age_ms
        return [r for r in records if not r.is_pinned and now - r.timestamp > max_age]

    def excess(self, records: Iterable[SavedDiagram]) -> list[SavedDiagram]:
        """Oldest unpinned records beyond max_count.

        Pinned records are not counted, so a store with many pins may hold
        more than max_count records in total.
        """
        unpinned = sorted((r for r in records if not r.is_pinned), key=lambda r: r.timestamp)
        overflow = len(unpinned) - self.config.max_count
        if overflow <= 0:
            return []
        return unpinned[:overflow]

    def plan(self, records: Iterable[SavedDiagram], now: int) -> RetentionPlan:
        """Dry-run both phases over a single snapshot."""
        records = list(records)
        expired = self.expired(records, now)
        expired_ids = {r.id for r in expired}
        survivors = [r for r in records if r.id not in expired_ids]
        return RetentionPlan(
            expired=[r.id for r in expired],
            excess=[r.id for r in self.excess(survivors)],
        )

    def enforce(self, store: EntityStore, now: int) -> int:
        """Run both phases against ``store``. Returns the number of successful deletions.

        Reading the record set may raise StorageUnavailable; a failed delete of
        a single record is logged and skipped.
        """
        deleted = 0

        # 1. Age phase
        records = [record for _, record in store.entries()]
        for record in self.expired(records, now):
            if self._delete(store, record, "expired"):
                deleted += 1

        # 2. Count phase, over what remains after the age phase
        remaining = [record for _, record in store.entries()]
        for record in self.excess(remaining):
            if self._delete(store, record, "over limit"):
                deleted += 1

        return deleted

    def _delete(self, store: EntityStore, record: SavedDiagram, reason: str) -> bool:
        try:
            store.delete(record.id)
        except StorageUnavailable as e:
            logger.warning("Retention could not delete %s (%s): %s", record.id, reason, e)
            return False
        logger.debug("Retention deleted %s (%s)", record.id, reason)
        return True

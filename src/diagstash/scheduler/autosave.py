"""Autosave scheduler — saves the editor tuple once it has settled.

States: IDLE → PENDING (timer armed) → SAVING → IDLE. Any change while
PENDING re-arms the timer, so only the settled tuple is ever saved. Every
firing creates a brand-new record; retention keeps the set bounded.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from diagstash.config import AutosaveConfig
from diagstash.errors import DiagramError
from diagstash.events import Notifier, Outcome, emit
from diagstash.models import DiagramDraft, EditorState
from diagstash.scheduler.debounce import Debouncer

if TYPE_CHECKING:
    from diagstash.repository import DiagramRepository

logger = logging.getLogger(__name__)


class AutosaveState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"


class AutosaveScheduler:
    """Debounces editor updates into repository saves."""

    def __init__(
        self,
        repository: DiagramRepository,
        config: AutosaveConfig | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or AutosaveConfig()
        self._notifier = notifier
        self._debouncer: Debouncer[EditorState] = Debouncer(
            self._config.delay, on_settle=self._save
        )
        self.state = AutosaveState.IDLE
        self.last_saved_id: str | None = None

    def update(self, editor: EditorState) -> None:
        """Feed the live editing tuple. Blank sources never schedule a save."""
        if not editor.source.strip():
            self._debouncer.cancel()
            self.state = AutosaveState.IDLE
            return
        self._debouncer.push(editor.snapshot())
        if self._debouncer.pending:
            self.state = AutosaveState.PENDING

    def close(self) -> None:
        """Cancel any outstanding timer. Safe to call more than once."""
        self._debouncer.close()
        self.state = AutosaveState.IDLE

    def _draft_name(self, editor: EditorState) -> str:
        return self._config.name_template.format(type=editor.diagram_type.value)

    def _save(self, editor: EditorState) -> None:
        self.state = AutosaveState.SAVING
        try:
            self.last_saved_id = self._repository.save(
                DiagramDraft(
                    name=self._draft_name(editor),
                    source=editor.source,
                    diagram_type=editor.diagram_type,
                    output_format=editor.output_format,
                    options=dict(editor.options),
                )
            )
        except DiagramError as e:
            # The repository has already reported the failure.
            logger.error("Auto-save failed: %s", e)
        else:
            logger.debug("Auto-saved %s", self.last_saved_id)
            emit(
                self._notifier,
                Outcome(
                    action="autosave",
                    level="success",
                    message="Auto-saved",
                    diagram_id=self.last_saved_id,
                ),
            )
        finally:
            self.state = AutosaveState.IDLE

"""Watch mode — a source file stands in for the editor.

The watcher restores the last session into the editor state, then polls the
file and feeds every content change to the autosave scheduler until the
shutdown event is set.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from diagstash.models import EditorState
from diagstash.session import restore_session

if TYPE_CHECKING:
    from diagstash.repository import DiagramRepository
    from diagstash.scheduler.autosave import AutosaveScheduler

logger = logging.getLogger(__name__)


class SourceWatcher:
    """Polls a diagram source file and drives autosave."""

    def __init__(
        self,
        path: Path,
        editor: EditorState,
        repository: DiagramRepository,
        autosave: AutosaveScheduler,
        poll_interval: float = 0.5,
        restore: bool = True,
    ) -> None:
        self.path = path
        self.editor = editor
        self._repository = repository
        self._autosave = autosave
        self._poll_interval = poll_interval
        self._restore = restore
        self._last_text: str | None = None

    def _read(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as e:
            logger.warning("Cannot read %s: %s", self.path, e)
            return self._last_text or ""

    def _seed(self) -> None:
        """Restore the last session; write it out if the file has no content yet."""
        if not self._restore:
            return
        restored = restore_session(self._repository, self.editor)
        if restored is None:
            return
        if self._read().strip():
            return
        try:
            self.path.write_text(restored.source, encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot seed %s: %s", self.path, e)
            return
        logger.info("Seeded %s from %s", self.path, restored.name)

    def poll(self) -> bool:
        """Check the file once. Returns True if a change was fed to autosave."""
        text = self._read()
        if text == self._last_text:
            return False
        self._last_text = text
        self.editor.source = text
        self._autosave.update(self.editor)
        return True

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Watch until shutdown_event is set, then cancel pending autosaves."""
        self._seed()
        # The file content at startup is the baseline, not an edit.
        self._last_text = self._read()
        self.editor.source = self._last_text
        logger.info("Watching %s (poll=%.2fs)", self.path, self._poll_interval)

        try:
            while not shutdown_event.is_set():
                try:
                    await asyncio.wait_for(shutdown_event.wait(), timeout=self._poll_interval)
                    break  # shutdown requested
                except asyncio.TimeoutError:
                    pass  # interval elapsed, poll
                self.poll()
        finally:
            self._autosave.close()
            logger.info("Watcher stopped.")

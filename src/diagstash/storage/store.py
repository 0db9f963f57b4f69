"""Entity store — durable id → SavedDiagram mapping.

Each diagram is a Markdown file with YAML frontmatter holding every field
(the source is kept verbatim in the ``source`` key). An in-memory index
(built once at startup, updated incrementally on writes) avoids repeated
disk scans.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import frontmatter
import yaml

from diagstash.errors import StorageUnavailable
from diagstash.models import SavedDiagram

if TYPE_CHECKING:
    from diagstash.config import DiagstashConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class EntityStore(Protocol):
    """Key-value persistence for diagram records.

    Every method raises StorageUnavailable when the backend fails.
    """

    def get(self, diagram_id: str) -> SavedDiagram | None: ...

    def set(self, diagram_id: str, record: SavedDiagram) -> None: ...

    def delete(self, diagram_id: str) -> None: ...

    def entries(self) -> list[tuple[str, SavedDiagram]]: ...

    def usage(self) -> tuple[int, int] | None:
        """Best-effort (used_bytes, quota_bytes), or None if unknown."""
        ...


class MemoryEntityStore:
    """Non-durable store, for ephemeral sessions and tests."""

    def __init__(self) -> None:
        self._records: dict[str, SavedDiagram] = {}

    def get(self, diagram_id: str) -> SavedDiagram | None:
        return self._records.get(diagram_id)

    def set(self, diagram_id: str, record: SavedDiagram) -> None:
        self._records[diagram_id] = record

    def delete(self, diagram_id: str) -> None:
        self._records.pop(diagram_id, None)

    def entries(self) -> list[tuple[str, SavedDiagram]]:
        return list(self._records.items())

    def usage(self) -> tuple[int, int] | None:
        return None

    def __len__(self) -> int:
        return len(self._records)


class FileEntityStore:
    """One frontmatter Markdown file per diagram under ``root``."""

    def __init__(self, root: Path, quota_bytes: int | None = None) -> None:
        self.root = root
        self.quota_bytes = quota_bytes
        self._index: dict[str, SavedDiagram] = {}
        self._ensure_initialized()
        self._build_index()

    # ── Initialization ────────────────────────────────────────

    def _ensure_initialized(self) -> None:
        """Ensure the store directory exists. Idempotent."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot initialize store at {self.root}: {e}") from e

    def _build_index(self) -> None:
        """Scan root once, index every readable file stored as ``{id}.md``."""
        self._index.clear()
        for md_file in sorted(self.root.glob("*.md")):
            try:
                record = self._read(md_file)
            except StorageUnavailable as e:
                logger.warning("Skipping unreadable diagram file %s: %s", md_file.name, e)
                continue
            if self._expected_path(record.id) != md_file:
                logger.warning(
                    "Skipping diagram file %s: name does not match id %r", md_file.name, record.id
                )
                continue
            self._index[record.id] = record
        logger.debug("Indexed %d diagrams in %s", len(self._index), self.root)

    # ── File I/O ──────────────────────────────────────────────

    def _path(self, diagram_id: str) -> Path:
        if not diagram_id or Path(diagram_id).name != diagram_id or diagram_id.startswith("."):
            raise ValueError(f"Invalid diagram id: {diagram_id!r}")
        return self.root / f"{diagram_id}.md"

    def _expected_path(self, diagram_id: str) -> Path | None:
        try:
            return self._path(diagram_id)
        except ValueError:
            return None

    def _read(self, path: Path) -> SavedDiagram:
        try:
            post = frontmatter.load(str(path))
            return SavedDiagram.from_dict(dict(post.metadata))
        except (OSError, yaml.YAMLError, KeyError, ValueError, TypeError) as e:
            raise StorageUnavailable(f"Cannot read {path.name}: {e}") from e

    def _render(self, record: SavedDiagram) -> str:
        post = frontmatter.Post(f"# {record.name}\n", **record.to_dict())
        return frontmatter.dumps(post) + "\n"

    # ── EntityStore ───────────────────────────────────────────

    def get(self, diagram_id: str) -> SavedDiagram | None:
        return self._index.get(diagram_id)

    def set(self, diagram_id: str, record: SavedDiagram) -> None:
        path = self._path(diagram_id)
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_text(self._render(record), encoding="utf-8")
            os.replace(tmp, path)
        except (OSError, yaml.YAMLError) as e:
            tmp.unlink(missing_ok=True)
            raise StorageUnavailable(f"Cannot write {path.name}: {e}") from e
        self._index[diagram_id] = record

    def delete(self, diagram_id: str) -> None:
        if diagram_id not in self._index:
            return
        path = self._path(diagram_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot delete {path.name}: {e}") from e
        self._index.pop(diagram_id, None)

    def entries(self) -> list[tuple[str, SavedDiagram]]:
        return list(self._index.items())

    def usage(self) -> tuple[int, int] | None:
        try:
            if self.quota_bytes:
                used = sum(p.stat().st_size for p in self.root.glob("*.md"))
                return used, self.quota_bytes
            disk = shutil.disk_usage(self.root)
            return disk.used, disk.total
        except OSError as e:
            raise StorageUnavailable(f"Cannot measure store usage: {e}") from e

    def __len__(self) -> int:
        return len(self._index)


def open_store(config: DiagstashConfig) -> EntityStore:
    """Build the configured store backend."""
    backend = config.storage.backend
    if backend == "file":
        return FileEntityStore(config.data_dir, quota_bytes=config.storage.quota_bytes)
    if backend == "memory":
        return MemoryEntityStore()
    raise ValueError(f"Unknown storage backend: {backend!r} (expected 'file' or 'memory')")

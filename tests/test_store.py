"""Tests for the entity store backends."""

from __future__ import annotations

import os

import pytest
from pathlib import Path

from diagstash.config import DiagstashConfig, StorageConfig
from diagstash.errors import StorageUnavailable
from diagstash.models import DiagramType, OutputFormat, SavedDiagram
from diagstash.storage.store import (
    EntityStore,
    FileEntityStore,
    MemoryEntityStore,
    open_store,
)


def _record(diagram_id: str = "diagram-1-abc", **kwargs) -> SavedDiagram:
    kwargs.setdefault("name", "Sequence")
    kwargs.setdefault("source", "@startuml\nAlice -> Bob: Hello\n@enduml\n")
    kwargs.setdefault("diagram_type", DiagramType.PLANTUML)
    kwargs.setdefault("output_format", OutputFormat.SVG)
    kwargs.setdefault("timestamp", 1_767_225_600_000)
    return SavedDiagram(id=diagram_id, **kwargs)


@pytest.fixture
def store(tmp_path: Path) -> FileEntityStore:
    return FileEntityStore(tmp_path / "diagrams")


class TestEnsureInitialized:
    def test_creates_directory(self, store: FileEntityStore):
        assert store.root.is_dir()

    def test_idempotent(self, store: FileEntityStore):
        store._ensure_initialized()
        store._ensure_initialized()
        assert store.root.is_dir()

    def test_uncreatable_root(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(StorageUnavailable):
            FileEntityStore(blocker / "diagrams")


class TestFileStoreCRUD:
    def test_set_and_get(self, store: FileEntityStore):
        record = _record()
        store.set(record.id, record)
        assert store.get(record.id) == record
        assert (store.root / f"{record.id}.md").exists()

    def test_get_missing(self, store: FileEntityStore):
        assert store.get("diagram-missing") is None

    def test_upsert(self, store: FileEntityStore):
        record = _record()
        store.set(record.id, record)
        store.set(record.id, record.with_pin(True))
        assert store.get(record.id).is_pinned is True
        assert len(store.entries()) == 1

    def test_delete(self, store: FileEntityStore):
        record = _record()
        store.set(record.id, record)
        store.delete(record.id)
        assert store.get(record.id) is None
        assert not (store.root / f"{record.id}.md").exists()

    def test_delete_missing_is_noop(self, store: FileEntityStore):
        store.delete("diagram-missing")
        store.delete("diagram-missing")
        assert store.entries() == []

    def test_delete_file_already_gone(self, store: FileEntityStore):
        record = _record()
        store.set(record.id, record)
        (store.root / f"{record.id}.md").unlink()
        store.delete(record.id)
        assert store.get(record.id) is None

    def test_entries_is_snapshot(self, store: FileEntityStore):
        store.set("diagram-1-a", _record("diagram-1-a"))
        snapshot = store.entries()
        store.set("diagram-2-b", _record("diagram-2-b"))
        assert [diagram_id for diagram_id, _ in snapshot] == ["diagram-1-a"]
        assert len(store.entries()) == 2

    def test_invalid_id(self, store: FileEntityStore):
        with pytest.raises(ValueError):
            store.set("../escape", _record("../escape"))


class TestFileFormat:
    def test_survives_reopen(self, store: FileEntityStore):
        record = _record(options={"theme": "dark", "scale": 2, "ratio": 1.5, "shadow": False})
        store.set(record.id, record.with_pin(True))

        reopened = FileEntityStore(store.root)
        loaded = reopened.get(record.id)
        assert loaded == record.with_pin(True)
        assert loaded.options == {"theme": "dark", "scale": 2, "ratio": 1.5, "shadow": False}

    def test_source_kept_verbatim(self, store: FileEntityStore):
        source = "  graph TD\n    A[Start] --> B{yes: no}\n---\n# not a heading\n\n\n"
        record = _record(source=source, diagram_type=DiagramType.MERMAID)
        store.set(record.id, record)
        assert FileEntityStore(store.root).get(record.id).source == source

    def test_unicode(self, store: FileEntityStore):
        record = _record(name="架构图", source="x -> y: 你好")
        store.set(record.id, record)
        loaded = FileEntityStore(store.root).get(record.id)
        assert loaded.name == "架构图"
        assert loaded.source == "x -> y: 你好"

    def test_body_has_name_heading(self, store: FileEntityStore):
        record = _record(name="Login flow")
        store.set(record.id, record)
        text = (store.root / f"{record.id}.md").read_text(encoding="utf-8")
        assert text.startswith("---\n")
        assert "# Login flow" in text
        assert "diagram_type: plantuml" in text

    def test_unreadable_file_skipped(self, store: FileEntityStore):
        store.set("diagram-1-a", _record("diagram-1-a"))
        (store.root / "broken.md").write_text("no frontmatter here", encoding="utf-8")
        (store.root / "partial.md").write_text("---\nname: x\n---\n", encoding="utf-8")

        reopened = FileEntityStore(store.root)
        assert [diagram_id for diagram_id, _ in reopened.entries()] == ["diagram-1-a"]

    def test_file_name_must_match_id(self, store: FileEntityStore):
        store.set("diagram-1-a", _record("diagram-1-a"))
        original = store.root / "diagram-1-a.md"
        copy = store.root / "diagram-1-a copy.md"
        copy.write_text(original.read_text(encoding="utf-8"), encoding="utf-8")

        reopened = FileEntityStore(store.root)
        reopened.delete("diagram-1-a")
        assert not original.exists()
        assert reopened.entries() == []
        assert FileEntityStore(store.root).entries() == []
        assert copy.exists()

    def test_invalid_stored_id_skipped(self, store: FileEntityStore):
        record = _record("../escape")
        (store.root / "escape.md").write_text(store._render(record), encoding="utf-8")

        reopened = FileEntityStore(store.root)
        assert reopened.entries() == []
        reopened.delete("../escape")

    def test_failed_write_raises_and_leaves_no_temp(
        self, store: FileEntityStore, monkeypatch
    ):
        def boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("diagstash.storage.store.os.replace", boom)
        record = _record()
        with pytest.raises(StorageUnavailable):
            store.set(record.id, record)
        assert store.get(record.id) is None
        assert list(store.root.iterdir()) == []

    def test_build_index(self, store: FileEntityStore):
        store.set("diagram-1-a", _record("diagram-1-a"))
        store._index.clear()
        store._build_index()
        assert store.get("diagram-1-a") is not None


class TestUsage:
    def test_with_quota(self, tmp_path: Path):
        store = FileEntityStore(tmp_path / "diagrams", quota_bytes=10_000)
        store.set("diagram-1-a", _record("diagram-1-a"))
        used, quota = store.usage()
        expected = (store.root / "diagram-1-a.md").stat().st_size
        assert used == expected
        assert quota == 10_000

    def test_disk_fallback(self, store: FileEntityStore):
        used, total = store.usage()
        assert 0 <= used <= total

    def test_memory_store_unknown(self):
        assert MemoryEntityStore().usage() is None


class TestMemoryStore:
    def test_crud(self):
        store = MemoryEntityStore()
        record = _record()
        store.set(record.id, record)
        assert store.get(record.id) == record
        assert len(store) == 1
        store.delete(record.id)
        store.delete(record.id)
        assert store.entries() == []

    def test_protocol(self, tmp_path: Path):
        assert isinstance(MemoryEntityStore(), EntityStore)
        assert isinstance(FileEntityStore(tmp_path / "d"), EntityStore)


class TestOpenStore:
    def test_file_backend(self, tmp_path: Path):
        config = DiagstashConfig(data_dir=tmp_path / "d")
        store = open_store(config)
        assert isinstance(store, FileEntityStore)
        assert store.root == tmp_path / "d"

    def test_memory_backend(self, tmp_path: Path):
        config = DiagstashConfig(storage=StorageConfig(backend="memory"))
        assert isinstance(open_store(config), MemoryEntityStore)

    def test_unknown_backend(self):
        config = DiagstashConfig(storage=StorageConfig(backend="indexeddb"))
        with pytest.raises(ValueError):
            open_store(config)

"""Entry point: python -m diagstash <command>

- list                              Saved diagrams, pinned first
- show ID                           Print a diagram's source
- save PATH TYPE [FORMAT] [NAME]    Save a file's contents as a new diagram
- pin ID                            Toggle pin (pinned diagrams are never auto-deleted)
- rename ID NAME                    Rename a diagram
- delete ID                         Delete a diagram
- cleanup [--dry-run]               Run the retention policy now
- restore                           Show the diagram session restore would load
- stats                             Counts and storage usage
- watch PATH TYPE [FORMAT]          Autosave a file while it is being edited
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

from diagstash.config import DiagstashConfig, load_config
from diagstash.errors import DiagramError
from diagstash.events import ConsoleNotifier, Notifier
from diagstash.models import (
    DIAGRAM_LABELS,
    DiagramDraft,
    DiagramType,
    EditorState,
    OutputFormat,
    is_format_supported,
    supported_formats,
    system_clock,
)
from diagstash.repository import DiagramRepository
from diagstash.scheduler.autosave import AutosaveScheduler
from diagstash.session import format_age
from diagstash.storage.retention import RetentionPolicy
from diagstash.storage.store import open_store
from diagstash.watcher import SourceWatcher


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_repository(
    config: DiagstashConfig, notifier: Notifier | None = None
) -> DiagramRepository:
    return DiagramRepository(
        open_store(config),
        RetentionPolicy(config.retention),
        clock=system_clock,
        notifier=notifier,
        quota_warn_percent=config.storage.quota_warn_percent,
    )


def _usage() -> None:
    print(__doc__.split("\n\n", 1)[1].rstrip())


def _require(args: list[str], count: int) -> None:
    if len(args) < count:
        _usage()
        sys.exit(1)


def _parse_type(value: str) -> DiagramType:
    try:
        return DiagramType(value.lower())
    except ValueError:
        kinds = ", ".join(t.value for t in DiagramType)
        raise DiagramError(f"Unknown diagram type '{value}'. Known types: {kinds}") from None


def _parse_format(diagram_type: DiagramType, value: str | None) -> OutputFormat:
    if value is None:
        return supported_formats(diagram_type)[0]
    try:
        fmt = OutputFormat(value.lower())
    except ValueError:
        raise DiagramError(f"Unknown output format '{value}'") from None
    if not is_format_supported(diagram_type, fmt):
        label = DIAGRAM_LABELS.get(diagram_type, diagram_type.value)
        print(f"Note: {label} does not render to {fmt.value}", file=sys.stderr)
    return fmt


# ── Commands ──────────────────────────────────────────────────


def _cmd_list(repo: DiagramRepository, args: list[str]) -> None:
    diagrams = repo.list()
    if not diagrams:
        print("(no saved diagrams)")
        return
    now = system_clock()
    for d in diagrams:
        pin = "📌" if d.is_pinned else "  "
        label = DIAGRAM_LABELS.get(d.diagram_type, d.diagram_type.value)
        print(f"{pin} {d.id}  {d.name:<32} {label:<16} {format_age(d.timestamp, now)}")


def _cmd_show(repo: DiagramRepository, args: list[str]) -> None:
    _require(args, 1)
    diagram = repo.load(args[0])
    if diagram is None:
        print(f"Diagram not found: {args[0]}", file=sys.stderr)
        sys.exit(1)
    print(diagram.source)


def _cmd_save(repo: DiagramRepository, args: list[str]) -> None:
    _require(args, 2)
    path = Path(args[0])
    diagram_type = _parse_type(args[1])
    output_format = _parse_format(diagram_type, args[2] if len(args) > 2 else None)
    name = args[3] if len(args) > 3 else path.stem
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DiagramError(f"Cannot read {path}: {e}") from e
    diagram_id = repo.save(
        DiagramDraft(
            name=name,
            source=source,
            diagram_type=diagram_type,
            output_format=output_format,
        )
    )
    print(diagram_id)
    repo.check_storage_quota()


def _cmd_pin(repo: DiagramRepository, args: list[str]) -> None:
    _require(args, 1)
    repo.toggle_pin(args[0])


def _cmd_rename(repo: DiagramRepository, args: list[str]) -> None:
    _require(args, 2)
    repo.rename(args[0], " ".join(args[1:]))


def _cmd_delete(repo: DiagramRepository, args: list[str]) -> None:
    _require(args, 1)
    repo.delete(args[0])


def _cmd_cleanup(repo: DiagramRepository, args: list[str]) -> None:
    dry_run = "--dry-run" in args
    count = repo.run_cleanup(dry_run=dry_run)
    if dry_run:
        print(f"[DRY RUN] {count} diagram(s) would be removed")


def _cmd_restore(repo: DiagramRepository, args: list[str]) -> None:
    diagram = repo.get_most_recent()
    if diagram is None:
        print("(nothing to restore)")
        return
    print(f"{diagram.id}  {diagram.name} ({diagram.diagram_type.value}, {diagram.output_format.value})")
    print(diagram.source)


def _cmd_stats(repo: DiagramRepository, args: list[str]) -> None:
    diagrams = repo.list()
    pinned = sum(1 for d in diagrams if d.is_pinned)
    cfg = repo.policy.config
    print(f"Diagrams: {len(diagrams)} ({pinned} pinned)")
    print(f"Retention: max {cfg.max_count} diagrams, {cfg.max_age_days} days")
    percent = repo.check_storage_quota()
    if percent is not None:
        print(f"Storage used: {percent:.1f}%")


def _run_watch(config: DiagstashConfig, repo: DiagramRepository, args: list[str]) -> None:
    """Watch mode — autosave a file while it is edited, until SIGINT/SIGTERM."""
    _require(args, 2)
    diagram_type = _parse_type(args[1])
    editor = EditorState(
        diagram_type=diagram_type,
        output_format=_parse_format(diagram_type, args[2] if len(args) > 2 else None),
    )

    async def _watch() -> None:
        shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, shutdown_event.set)
        autosave = AutosaveScheduler(repo, config.autosave, notifier=repo.notifier)
        watcher = SourceWatcher(Path(args[0]), editor, repo, autosave)
        repo.check_storage_quota()
        await watcher.run(shutdown_event)

    asyncio.run(_watch())


_COMMANDS = {
    "list": _cmd_list,
    "ls": _cmd_list,
    "show": _cmd_show,
    "save": _cmd_save,
    "pin": _cmd_pin,
    "rename": _cmd_rename,
    "delete": _cmd_delete,
    "rm": _cmd_delete,
    "cleanup": _cmd_cleanup,
    "restore": _cmd_restore,
    "stats": _cmd_stats,
}


def main(argv: list[str] | None = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    cmd = argv[0] if argv else "list"
    args = argv[1:]

    if cmd not in _COMMANDS and cmd != "watch":
        print("Usage: python -m diagstash <command> [args]")
        _usage()
        sys.exit(1)

    config = load_config()
    _setup_logging(config.log_level)

    try:
        repo = build_repository(config, notifier=ConsoleNotifier())
        if cmd == "watch":
            _run_watch(config, repo, args)
        else:
            _COMMANDS[cmd](repo, args)
    except DiagramError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

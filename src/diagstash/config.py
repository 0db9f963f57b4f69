"""Configuration loading from environment variables and diagstash.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_DATA_DIR = Path.home() / ".diagstash" / "diagrams"
_CONFIG_FILENAME = "diagstash.toml"

DAY_MS = 24 * 60 * 60 * 1000


@dataclass
class RetentionConfig:
    """Hybrid retention policy: count cap + age cap, pinned records exempt from both."""

    max_count: int = 50
    max_age_days: int = 90

    @property
    def max_age_ms(self) -> int:
        return self.max_age_days * DAY_MS


@dataclass
class AutosaveConfig:
    """Autosave debounce configuration."""

    delay: float = 2.0
    name_template: str = "Auto-saved {type}"


@dataclass
class StorageConfig:
    """Entity store backend configuration."""

    backend: str = "file"
    quota_bytes: int | None = None
    quota_warn_percent: float = 90.0


@dataclass
class DiagstashConfig:
    """Top-level diagstash configuration."""

    retention: RetentionConfig = field(default_factory=RetentionConfig)
    autosave: AutosaveConfig = field(default_factory=AutosaveConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    data_dir: Path = _DEFAULT_DATA_DIR
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> DiagstashConfig:
    """Load configuration from environment variables and optional diagstash.toml.

    Priority: environment variables > diagstash.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.diagstash/
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / ".diagstash" / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    retention_data = file_data.get("retention", {})
    autosave_data = file_data.get("autosave", {})
    storage_data = file_data.get("storage", {})

    quota = storage_data.get("quota_bytes")
    config = DiagstashConfig(
        retention=RetentionConfig(
            max_count=int(os.getenv("DIAGSTASH_MAX_COUNT", retention_data.get("max_count", 50))),
            max_age_days=int(
                os.getenv("DIAGSTASH_MAX_AGE_DAYS", retention_data.get("max_age_days", 90))
            ),
        ),
        autosave=AutosaveConfig(
            delay=float(os.getenv("DIAGSTASH_AUTOSAVE_DELAY", autosave_data.get("delay", 2.0))),
            name_template=autosave_data.get("name_template", "Auto-saved {type}"),
        ),
        storage=StorageConfig(
            backend=os.getenv("DIAGSTASH_BACKEND", storage_data.get("backend", "file")),
            quota_bytes=int(quota) if quota is not None else None,
            quota_warn_percent=float(storage_data.get("quota_warn_percent", 90.0)),
        ),
        data_dir=Path(
            os.getenv("DIAGSTASH_DATA_DIR", file_data.get("data_dir", str(_DEFAULT_DATA_DIR)))
        ).expanduser(),
        log_level=os.getenv("DIAGSTASH_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config

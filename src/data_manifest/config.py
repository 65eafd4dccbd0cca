from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_BUFFER_SIZE = 1024 * 1024
DEFAULT_OUTPUT = "manifest.txt"


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    raw_norm = raw.strip().lower()
    if raw_norm in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if raw_norm in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int | None = None) -> int | None:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class ManifestConfig:
    buffer_size: int = DEFAULT_BUFFER_SIZE
    threads: int | None = None
    progress: bool = False
    archive_name: str | None = None


def default_worker_count() -> int:
    return os.cpu_count() or 1


def load_config_from_env() -> ManifestConfig:
    """Build a config from DATA_MANIFEST_* environment variables.

    Unset or empty variables fall back to the built-in defaults. Command-line
    flags are applied on top of this by the CLI.
    """

    buffer_size = _env_int("DATA_MANIFEST_BUFFER_SIZE", default=DEFAULT_BUFFER_SIZE)
    return ManifestConfig(
        buffer_size=int(buffer_size or DEFAULT_BUFFER_SIZE),
        threads=_env_int("DATA_MANIFEST_THREADS"),
        progress=_env_bool("DATA_MANIFEST_PROGRESS", default=False),
        archive_name=_env("DATA_MANIFEST_ARCHIVE_NAME"),
    )

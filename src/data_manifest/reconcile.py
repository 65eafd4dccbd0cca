"""Generate, validate and update manifests against a live archive tree.

All three operations share the same substrate: enumerate the archive, map each
file to its canonical key, and digest the files on a thread pool. Per-file
read failures are logged and counted in the outcome; they never abort a run.
Only structural problems (bad archive path, unreadable or unwritable manifest)
raise, as ``StructuralError``.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from data_manifest.config import DEFAULT_BUFFER_SIZE, default_worker_count
from data_manifest.errors import StructuralError
from data_manifest.hash_utils import sha256_file
from data_manifest.manifest_store import load_manifest, save_manifest
from data_manifest.paths import canonicalize, resolve_archive_label
from data_manifest.tree import FileDescriptor, collect_files

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int, int], None]


class ProgressCounter:
    """Shared count of processed files.

    ``advance`` may be called from any worker thread. The sink is invoked
    under the lock, so it sees strictly increasing counts. A sink that raises
    is logged and dropped; the run carries on without it.
    """

    def __init__(self, total: int, sink: ProgressSink | None = None) -> None:
        self.total = total
        self._sink = sink
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    def advance(self) -> int:
        with self._lock:
            self._count += 1
            if self._sink is not None:
                try:
                    self._sink(self._count, self.total)
                except Exception:
                    logger.warning(
                        "Progress sink failed; disabling progress reporting", exc_info=True
                    )
                    self._sink = None
            return self._count


@dataclass(frozen=True, slots=True)
class DigestResult:
    path: Path
    digest: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.digest is not None


@dataclass(frozen=True, slots=True)
class DigestMismatch:
    path: str
    expected: str
    actual: str


@dataclass(frozen=True, slots=True)
class GenerateOutcome:
    manifest_path: str
    archive_label: str
    succeeded: int
    failed: int
    total_bytes: int
    elapsed_seconds: float
    failed_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"mode": "generate", **asdict(self)}


@dataclass(frozen=True, slots=True)
class ValidateOutcome:
    manifest_path: str
    archive_label: str
    valid: int
    invalid: int
    new: int
    missing: int
    failed: int = 0
    mismatches: list[DigestMismatch] = field(default_factory=list)
    new_paths: list[str] = field(default_factory=list)
    missing_paths: list[str] = field(default_factory=list)
    failed_paths: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        # New files alone never fail a validation.
        return self.invalid == 0 and self.missing == 0

    def to_dict(self) -> dict[str, Any]:
        return {"mode": "validate", "ok": self.ok, **asdict(self)}


@dataclass(frozen=True, slots=True)
class UpdateOutcome:
    manifest_path: str
    archive_label: str
    unchanged: int
    updated: int
    new: int
    removed: int
    failed: int = 0
    updated_paths: list[str] = field(default_factory=list)
    new_paths: list[str] = field(default_factory=list)
    removed_paths: list[str] = field(default_factory=list)
    failed_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"mode": "update", **asdict(self)}


Outcome = GenerateOutcome | ValidateOutcome | UpdateOutcome


def write_report(path: str | Path, outcome: Outcome) -> Path:
    """Write an outcome as JSON with sorted keys, UTF-8, LF and a trailing newline.

    Missing parent directories are created.
    """

    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(
        json.dumps(outcome.to_dict(), indent=2, sort_keys=True, ensure_ascii=False) + "\n",
        encoding="utf-8",
        newline="\n",
    )
    return report_path


def _require_archive_dir(archive_root: str | Path) -> Path:
    root = Path(archive_root)
    if not root.exists():
        raise StructuralError(f"Archive path does not exist: {root}")
    if not root.is_dir():
        raise StructuralError(f"Archive path is not a directory: {root}")
    return root


def _require_positive(name: str, value: int) -> None:
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")


def _self_exclusion(root: Path, manifest_path: str | Path) -> tuple[Path, ...]:
    target = Path(manifest_path).resolve()
    try:
        target.relative_to(root.resolve())
    except ValueError:
        return ()
    return (target,)


def _digest_one(
    file_info: FileDescriptor, buffer_size: int, progress: ProgressCounter | None
) -> DigestResult:
    try:
        result = DigestResult(path=file_info.path, digest=sha256_file(file_info.path, buffer_size))
        logger.debug("Hashed %s", file_info.path)
    except OSError as exc:
        result = DigestResult(path=file_info.path, error=str(exc))
    if progress is not None:
        progress.advance()
    return result


def digest_files(
    files: Sequence[FileDescriptor],
    *,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    worker_count: int = 1,
    progress: ProgressCounter | None = None,
) -> list[DigestResult]:
    """Digest ``files`` on a pool of ``worker_count`` threads.

    Results come back in the same order as ``files`` regardless of which
    task finishes first.
    """

    _require_positive("buffer_size", buffer_size)
    _require_positive("worker_count", worker_count)
    if not files:
        return []

    slots: list[DigestResult | None] = [None] * len(files)
    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="digest") as pool:
        futures = {
            pool.submit(_digest_one, file_info, buffer_size, progress): index
            for index, file_info in enumerate(files)
        }
        for future in as_completed(futures):
            slots[futures[future]] = future.result()
    return [result for result in slots if result is not None]


def _scan(
    root: Path, archive_label: str, manifest_path: str | Path
) -> tuple[list[FileDescriptor], list[str]]:
    files = collect_files(root, exclude=_self_exclusion(root, manifest_path))
    keys = [canonicalize(root, archive_label, file_info.path) for file_info in files]
    return files, keys


def generate(
    archive_root: str | Path,
    archive_label: str | None,
    output_path: str | Path,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    worker_count: int | None = None,
    progress_sink: ProgressSink | None = None,
) -> GenerateOutcome:
    """Digest every file in the archive and write a fresh manifest.

    Manifest lines follow enumeration order. Files that cannot be read are
    left out and counted in ``failed``.
    """

    root = _require_archive_dir(archive_root)
    label = resolve_archive_label(root, archive_label)
    workers = default_worker_count() if worker_count is None else worker_count
    _require_positive("buffer_size", buffer_size)
    _require_positive("worker_count", workers)

    start = time.monotonic()
    logger.info("Scanning archive: %s", root)
    files, keys = _scan(root, label, output_path)
    total_bytes = sum(file_info.size for file_info in files)
    logger.info("Found %d files", len(files))
    logger.info("Total size: %d bytes (%.2f GiB)", total_bytes, total_bytes / 1024**3)
    logger.info("Using %d threads with %d byte buffer", workers, buffer_size)

    progress = ProgressCounter(len(files), progress_sink)
    results = digest_files(files, buffer_size=buffer_size, worker_count=workers, progress=progress)

    manifest: dict[str, str] = {}
    failed_paths: list[str] = []
    for key, result in zip(keys, results):
        if result.digest is None:
            logger.warning("Error processing file %s: %s", result.path, result.error)
            failed_paths.append(key)
            continue
        manifest[key] = result.digest

    logger.info("Writing manifest to: %s", output_path)
    save_manifest(manifest, output_path)

    elapsed = time.monotonic() - start
    logger.info("Manifest generation complete in %.2fs", elapsed)
    return GenerateOutcome(
        manifest_path=str(output_path),
        archive_label=label,
        succeeded=len(results) - len(failed_paths),
        failed=len(failed_paths),
        total_bytes=total_bytes,
        elapsed_seconds=elapsed,
        failed_paths=failed_paths,
    )


def validate(
    archive_root: str | Path,
    archive_label: str | None,
    manifest_path: str | Path,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    progress_sink: ProgressSink | None = None,
    *,
    worker_count: int = 1,
) -> ValidateOutcome:
    """Compare the live archive with a recorded manifest.

    Every live file is classified as valid, invalid or new, and every
    manifest key with no live file as missing. The full report is built
    before ``ok`` is decided; it is false when anything is invalid or missing.
    """

    root = _require_archive_dir(archive_root)
    label = resolve_archive_label(root, archive_label)
    logger.info("Validating manifest: %s", manifest_path)

    manifest = load_manifest(manifest_path)
    files, keys = _scan(root, label, manifest_path)
    progress = ProgressCounter(len(files), progress_sink)

    tracked = [index for index, key in enumerate(keys) if key in manifest]
    results = digest_files(
        [files[index] for index in tracked],
        buffer_size=buffer_size,
        worker_count=worker_count,
        progress=progress,
    )
    by_index = dict(zip(tracked, results))

    valid = 0
    mismatches: list[DigestMismatch] = []
    new_paths: list[str] = []
    failed_paths: list[str] = []
    for index, key in enumerate(keys):
        result = by_index.get(index)
        if result is None:
            logger.info("New file found: %s", key)
            new_paths.append(key)
            progress.advance()
            continue
        if result.digest is None:
            logger.warning("Error processing file %s: %s", result.path, result.error)
            failed_paths.append(key)
            continue

        expected = manifest[key]
        if result.digest == expected:
            valid += 1
        else:
            logger.warning(
                "Hash mismatch for %s: expected %s, got %s", key, expected, result.digest
            )
            mismatches.append(DigestMismatch(path=key, expected=expected, actual=result.digest))

    live_keys = set(keys)
    missing_paths = [key for key in manifest if key not in live_keys]
    for key in missing_paths:
        logger.warning("Missing file: %s", key)

    outcome = ValidateOutcome(
        manifest_path=str(manifest_path),
        archive_label=label,
        valid=valid,
        invalid=len(mismatches),
        new=len(new_paths),
        missing=len(missing_paths),
        failed=len(failed_paths),
        mismatches=mismatches,
        new_paths=new_paths,
        missing_paths=missing_paths,
        failed_paths=failed_paths,
    )
    if outcome.ok:
        logger.info("Validation successful")
    else:
        logger.warning(
            "Validation failed: %d invalid files, %d missing files",
            outcome.invalid,
            outcome.missing,
        )
    return outcome


def update(
    archive_root: str | Path,
    archive_label: str | None,
    manifest_path: str | Path,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    progress_sink: ProgressSink | None = None,
    *,
    worker_count: int = 1,
) -> UpdateOutcome:
    """Bring a manifest in line with the live archive and write it back.

    New files are added, changed digests overwritten and entries without a
    live file removed. Entries for files that cannot be read are kept as
    they were.
    """

    root = _require_archive_dir(archive_root)
    label = resolve_archive_label(root, archive_label)
    logger.info("Updating manifest: %s", manifest_path)

    manifest = load_manifest(manifest_path)
    files, keys = _scan(root, label, manifest_path)
    progress = ProgressCounter(len(files), progress_sink)
    results = digest_files(
        files, buffer_size=buffer_size, worker_count=worker_count, progress=progress
    )

    unchanged = 0
    updated_paths: list[str] = []
    new_paths: list[str] = []
    failed_paths: list[str] = []
    for key, result in zip(keys, results):
        if result.digest is None:
            logger.warning("Error processing file %s: %s", result.path, result.error)
            failed_paths.append(key)
            continue

        expected = manifest.get(key)
        if expected is None:
            manifest[key] = result.digest
            new_paths.append(key)
            logger.info("Added new file: %s", key)
        elif expected == result.digest:
            unchanged += 1
        else:
            manifest[key] = result.digest
            updated_paths.append(key)
            logger.info("Updated hash for: %s", key)

    live_keys = set(keys)
    removed_paths = [key for key in manifest if key not in live_keys]
    for key in removed_paths:
        del manifest[key]
        logger.info("Removed missing file: %s", key)

    save_manifest(manifest, manifest_path)

    return UpdateOutcome(
        manifest_path=str(manifest_path),
        archive_label=label,
        unchanged=unchanged,
        updated=len(updated_paths),
        new=len(new_paths),
        removed=len(removed_paths),
        failed=len(failed_paths),
        updated_paths=updated_paths,
        new_paths=new_paths,
        removed_paths=removed_paths,
        failed_paths=failed_paths,
    )

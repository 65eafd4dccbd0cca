from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from data_manifest.config import DEFAULT_OUTPUT, load_config_from_env
from data_manifest.errors import StructuralError
from data_manifest.paths import resolve_archive_label
from data_manifest.reconcile import (
    GenerateOutcome,
    UpdateOutcome,
    ValidateOutcome,
    generate,
    update,
    validate,
    write_report,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class TqdmProgress:
    """Progress sink that drives a tqdm bar."""

    def __init__(self, desc: str) -> None:
        self._desc = desc
        self._bar: tqdm | None = None

    def __call__(self, completed: int, total: int) -> None:
        if self._bar is None:
            self._bar = tqdm(total=total, desc=self._desc, unit="file", file=sys.stderr)
        self._bar.update(completed - self._bar.n)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()


def _setup_logging(*, debug: bool, log_file: Path | None) -> logging.Logger:
    """Configure the package logger for console and optional file output."""
    logger = logging.getLogger("data_manifest")
    logger.setLevel(logging.DEBUG)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="data-manifest",
        description="Generate, validate or update a SHA-256 manifest for an archive directory.",
    )
    parser.add_argument(
        "-a", "--archive-path", type=Path, required=True, help="Path to the archive directory"
    )
    parser.add_argument(
        "--archive-name",
        default=None,
        help="Archive name to use in manifest paths (defaults to directory name)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path(DEFAULT_OUTPUT),
        help="Manifest file to write or check",
    )
    parser.add_argument(
        "-t",
        "--threads",
        type=int,
        default=None,
        help="Number of worker threads (defaults to CPU count)",
    )
    parser.add_argument(
        "-b", "--buffer-size", type=int, default=None, help="Read buffer size in bytes"
    )
    parser.add_argument(
        "-p", "--progress", action="store_true", default=None, help="Show progress bar"
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-v", "--validate", action="store_true", help="Validate an existing manifest"
    )
    mode.add_argument(
        "-u", "--update", action="store_true", help="Update manifest for new or changed files"
    )

    parser.add_argument(
        "--report", type=Path, default=None, help="Also write the outcome as JSON here"
    )
    parser.add_argument(
        "--log-file", type=Path, default=None, help="Write a DEBUG log to this file"
    )
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    return parser


def _print_generate(outcome: GenerateOutcome) -> None:
    print(f"Manifest generation complete in {outcome.elapsed_seconds:.2f}s")
    print(f"Successfully processed: {outcome.succeeded} files")
    if outcome.failed:
        print(f"Errors: {outcome.failed} files")


def _print_validate(outcome: ValidateOutcome) -> None:
    print("Validation results:")
    print(f"  Valid files: {outcome.valid}")
    print(f"  Invalid files: {outcome.invalid}")
    print(f"  New files: {outcome.new}")
    print(f"  Missing files: {outcome.missing}")
    if outcome.failed:
        print(f"  Unreadable files: {outcome.failed}")
    if outcome.ok and not outcome.failed:
        print("Validation successful!")


def _print_update(outcome: UpdateOutcome) -> None:
    print("Update results:")
    print(f"  Unchanged files: {outcome.unchanged}")
    print(f"  Updated files: {outcome.updated}")
    print(f"  New files: {outcome.new}")
    print(f"  Removed files: {outcome.removed}")
    if outcome.failed:
        print(f"  Unreadable files: {outcome.failed}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logger = _setup_logging(debug=args.debug, log_file=args.log_file)
    try:
        return _run(args)
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def _run(args: argparse.Namespace) -> int:
    try:
        config = load_config_from_env()
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    archive_path: Path = args.archive_path
    label = resolve_archive_label(archive_path, args.archive_name or config.archive_name)
    buffer_size = args.buffer_size if args.buffer_size is not None else config.buffer_size
    threads = args.threads if args.threads is not None else config.threads
    show_progress = args.progress if args.progress is not None else config.progress
    check_workers = 1 if threads is None else threads

    if args.validate:
        desc = "Validating"
    elif args.update:
        desc = "Updating"
    else:
        desc = "Hashing"
    progress = TqdmProgress(desc) if show_progress else None

    outcome: GenerateOutcome | ValidateOutcome | UpdateOutcome
    try:
        if args.validate:
            outcome = validate(
                archive_path, label, args.output, buffer_size, progress, worker_count=check_workers
            )
        elif args.update:
            outcome = update(
                archive_path, label, args.output, buffer_size, progress, worker_count=check_workers
            )
        else:
            outcome = generate(archive_path, label, args.output, buffer_size, threads, progress)
    except (StructuralError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        if progress is not None:
            progress.close()

    if isinstance(outcome, ValidateOutcome):
        _print_validate(outcome)
    elif isinstance(outcome, UpdateOutcome):
        _print_update(outcome)
    else:
        _print_generate(outcome)

    if args.report is not None:
        try:
            write_report(args.report, outcome)
        except OSError as exc:
            print(f"ERROR: failed to write report {args.report}: {exc}", file=sys.stderr)
            return 1

    if isinstance(outcome, ValidateOutcome) and not outcome.ok:
        print(
            f"FAIL: {outcome.invalid} invalid files, {outcome.missing} missing files",
            file=sys.stderr,
        )
        return 1
    if isinstance(outcome, (ValidateOutcome, UpdateOutcome)) and outcome.failed:
        print(f"FAIL: {outcome.failed} files could not be read", file=sys.stderr)
        return 1
    return 0

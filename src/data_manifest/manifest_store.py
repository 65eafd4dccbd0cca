"""Read and write manifest files.

Format, one entry per line (UTF-8, LF)::

    <sha256> <archive_label/relative/path>

The digest and path are separated by the first space; anything after it,
including further spaces, is the path.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path

from data_manifest.errors import StructuralError

logger = logging.getLogger(__name__)

Manifest = dict[str, str]

DEFAULT_FILE_MODE = 0o644


def parse_manifest_lines(lines: Iterable[str]) -> Manifest:
    manifest: Manifest = {}
    for line_num, raw_line in enumerate(lines, start=1):
        line = raw_line.rstrip("\r\n")
        if not line.strip():
            continue

        digest, sep, rel_path = line.partition(" ")
        if not sep or not digest or not rel_path:
            logger.warning("Invalid line %d in manifest: %s", line_num, line)
            continue

        manifest[rel_path] = digest
    return manifest


def load_manifest(path: str | Path) -> Manifest:
    """Load a manifest into a ``{canonical_path: digest}`` mapping.

    A missing file is an empty manifest. Malformed lines are logged and
    skipped; for duplicate paths the last line wins.
    """

    manifest_path = Path(path)
    if not manifest_path.exists():
        return {}

    try:
        with manifest_path.open("r", encoding="utf-8", errors="strict", newline="") as f:
            return parse_manifest_lines(f)
    except (OSError, UnicodeDecodeError) as exc:
        raise StructuralError(f"Failed to read manifest file {manifest_path}: {exc}") from exc


def format_manifest_lines(manifest: Mapping[str, str]) -> list[str]:
    return [f"{digest} {rel_path}\n" for rel_path, digest in manifest.items()]


def save_manifest(manifest: Mapping[str, str], path: str | Path) -> Path:
    """Write ``manifest`` to ``path``, replacing any existing file.

    Lines are written in the mapping's iteration order to a temporary file in
    the same directory, which is then renamed over the target.
    """

    out_path = Path(path)
    tmp_name: str | None = None
    try:
        mode = out_path.stat().st_mode & 0o777 if out_path.exists() else DEFAULT_FILE_MODE
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{out_path.name}.", suffix=".tmp", dir=out_path.parent
        )
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            os.chmod(tmp_name, mode)
            f.writelines(format_manifest_lines(manifest))
        os.replace(tmp_name, out_path)
        tmp_name = None
    except (OSError, UnicodeEncodeError) as exc:
        raise StructuralError(f"Failed to write manifest file {out_path}: {exc}") from exc
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
    return out_path

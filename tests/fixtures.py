from __future__ import annotations

import hashlib
import os
import sys
from pathlib import Path

# Small archive used across the reconciliation tests.
SAMPLE_FILES: dict[str, str] = {
    "a": "hello",
    "b": "world",
    "docs/readme.txt": "archive readme\n",
    "docs/nested/deep.bin": "x" * 5000,
}


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def make_archive(base: Path, files: dict[str, str] | None = None, name: str = "arc") -> Path:
    """Create an archive directory under ``base`` with the given relative files."""

    root = base / name
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in (SAMPLE_FILES if files is None else files).items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def read_manifest_lines(path: Path) -> list[str]:
    return [ln for ln in path.read_text(encoding="utf-8").splitlines() if ln.strip()]


def make_undecodable_file(directory: Path, content: str) -> bool:
    """Create a file whose name is not valid UTF-8 (``bad\\xffname``).

    Returns False where the platform or filesystem refuses such names.
    """

    if sys.platform == "win32":
        return False
    raw_path = os.fsencode(directory) + b"/bad\xffname"
    try:
        with open(raw_path, "wb") as f:
            f.write(content.encode("utf-8"))
    except (OSError, ValueError):
        return False
    return True

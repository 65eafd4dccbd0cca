from __future__ import annotations

import os
from pathlib import Path


def default_archive_label(archive_root: str | Path) -> str:
    """Return the archive directory's own name.

    Relative roots such as ``.`` are resolved first so the label is a real
    directory name; a filesystem root falls back to its string form.
    """

    root = Path(archive_root)
    name = root.name or root.resolve().name
    return _lossy(name or str(root))


def resolve_archive_label(archive_root: str | Path, archive_label: str | None) -> str:
    if archive_label:
        return archive_label
    return default_archive_label(archive_root)


def _lossy(text: str) -> str:
    # Undecodable file name bytes become U+FFFD so every key is valid UTF-8.
    return os.fsencode(text).decode("utf-8", "replace")


def canonicalize(archive_root: str | Path, archive_label: str, path: str | Path) -> str:
    """Map a file under ``archive_root`` to its manifest key.

    The key is ``<archive_label>/<relative/posix/path>``, or just the label
    when ``path`` is the root itself. A path outside the root keeps its full
    form after the label. Name bytes that are not UTF-8 are replaced with
    U+FFFD.
    """

    file_path = Path(path)
    label = _lossy(archive_label)
    try:
        relative = file_path.relative_to(Path(archive_root)).as_posix()
    except ValueError:
        relative = file_path.as_posix()

    if relative in ("", "."):
        return label
    return f"{label}/{_lossy(relative)}"

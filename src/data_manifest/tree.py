from __future__ import annotations

import logging
import os
import stat
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

METADATA_SIDECAR_PREFIX = "._"


@dataclass(frozen=True, slots=True)
class FileDescriptor:
    path: Path
    size: int


def _is_sidecar(name: str) -> bool:
    return name.startswith(METADATA_SIDECAR_PREFIX)


def iter_files(root: str | Path, exclude: Iterable[str | Path] = ()) -> Iterator[FileDescriptor]:
    """Yield every regular file under ``root`` without following symlinks.

    Entries are visited in sorted name order within each directory. Names
    starting with ``._`` are skipped, as is anything listed in ``exclude``
    (compared after resolving). Entries whose metadata cannot be read are
    logged and skipped.
    """

    root_path = Path(root)
    excluded = {Path(p).resolve() for p in exclude}

    def _on_walk_error(exc: OSError) -> None:
        logger.warning("Skipping directory %s: %s", exc.filename, exc)

    walker = os.walk(root_path, onerror=_on_walk_error, followlinks=False)
    for dirpath, dirnames, filenames in walker:
        dirnames[:] = sorted(d for d in dirnames if not _is_sidecar(d))
        resolved_dir = Path(dirpath).resolve() if excluded else None
        for name in sorted(filenames):
            if _is_sidecar(name):
                continue
            path = Path(dirpath) / name
            try:
                st = path.lstat()
            except OSError as exc:
                logger.warning("Skipping file %s: %s", path, exc)
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            if resolved_dir is not None and resolved_dir / name in excluded:
                continue
            yield FileDescriptor(path=path, size=st.st_size)


def collect_files(root: str | Path, exclude: Iterable[str | Path] = ()) -> list[FileDescriptor]:
    return list(iter_files(root, exclude=exclude))

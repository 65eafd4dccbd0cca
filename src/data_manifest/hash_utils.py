from __future__ import annotations

import hashlib
from pathlib import Path

from data_manifest.config import DEFAULT_BUFFER_SIZE


def sha256_file(path: str | Path, buffer_size: int = DEFAULT_BUFFER_SIZE) -> str:
    """Return the lowercase hex SHA-256 of a file's bytes.

    The file is streamed through a single reusable buffer of ``buffer_size``
    bytes; the result does not depend on the buffer size. Open and read
    failures propagate as ``OSError``.
    """

    if buffer_size < 1:
        raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")

    file_path = Path(path)
    digest = hashlib.sha256()
    buffer = bytearray(buffer_size)
    view = memoryview(buffer)
    with file_path.open("rb", buffering=0) as f:
        while True:
            n = f.readinto(buffer)
            if not n:
                break
            digest.update(view[:n])
    return digest.hexdigest()

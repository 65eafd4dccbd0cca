from __future__ import annotations


class DataManifestError(Exception):
    """Base class for errors raised by data_manifest."""


class StructuralError(DataManifestError):
    """A run cannot proceed at all.

    Raised for an archive path that is missing or not a directory, and for a
    manifest file that cannot be read or written. Per-file problems never
    raise this; they are logged and counted instead.
    """

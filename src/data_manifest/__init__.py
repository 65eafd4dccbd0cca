"""Content-integrity manifests for archive directory trees."""

from __future__ import annotations

from data_manifest.errors import DataManifestError, StructuralError
from data_manifest.reconcile import (
    GenerateOutcome,
    UpdateOutcome,
    ValidateOutcome,
    generate,
    update,
    validate,
)

__all__ = [
    "DataManifestError",
    "GenerateOutcome",
    "StructuralError",
    "UpdateOutcome",
    "ValidateOutcome",
    "generate",
    "update",
    "validate",
]

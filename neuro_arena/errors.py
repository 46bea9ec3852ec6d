"""
neuro_arena/errors.py

Error kinds raised across the evaluation scheduler.

Per-genome and per-artifact failures are recovered where they happen and
turned into scored outcomes. Only store-level failures and broken
invariants reach the caller.
"""

from __future__ import annotations

from pathlib import Path


class NeuroArenaError(Exception):
    """Base class for all package errors."""


class DecodeFailure(NeuroArenaError):
    """A genome could not be decoded into a control artifact (non-viable)."""


class PersistenceReadFailure(NeuroArenaError):
    """A save file could not be read."""

    kind = "unreadable"

    def __init__(self, path: Path, message: str = ""):
        self.path = Path(path)
        super().__init__(message or f"{self.kind} save file: {self.path}")


class SaveFileNotFound(PersistenceReadFailure):
    kind = "missing"


class SaveFileCorrupt(PersistenceReadFailure):
    kind = "corrupt"


class PersistenceWriteFailure(NeuroArenaError):
    """A save file could not be written. Logged by the store, never raised to the run."""

    def __init__(self, path: Path, cause: BaseException):
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"failed to write {self.path}: {cause}")


class PoolExhaustionEscape(NeuroArenaError):
    """
    Agents are still bound after a generation finished.

    This only happens when a release path is broken, so it is raised
    rather than repaired.
    """


class BindingConflictError(NeuroArenaError):
    """An artifact id was bound to a second agent."""


class UnboundArtifactError(NeuroArenaError, KeyError):
    """Fitness was requested for an artifact that is not bound to any agent."""

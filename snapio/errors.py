"""Custom exceptions for the :mod:`snapio` package."""
from __future__ import annotations


class SnapIOError(Exception):
    """Base exception for snapshot I/O errors."""


class InvalidArgumentError(SnapIOError, ValueError):
    """Bad particle type, non-positive particle count or mismatched field array."""


class InvalidNameError(SnapIOError, ValueError):
    """A file name that cannot be reduced to a base name."""


class CheckpointIOError(SnapIOError, OSError):
    """A snapshot or mirror file could not be created or opened."""


class InconsistentCheckpointError(SnapIOError, RuntimeError):
    """The snapshot on disk disagrees with the configured field registry."""


class ConfigurationError(SnapIOError, ValueError):
    """Invalid settings file or settings value."""


__all__ = [
    "SnapIOError",
    "InvalidArgumentError",
    "InvalidNameError",
    "CheckpointIOError",
    "InconsistentCheckpointError",
    "ConfigurationError",
]

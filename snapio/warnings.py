"""Structured warning classes for the :mod:`snapio` package."""
from __future__ import annotations


class SnapIOWarning(UserWarning):
    """Base warning class for snapio."""


class MissingFieldWarning(SnapIOWarning):
    """A registered field has no dataset in the snapshot being read."""


__all__ = [
    "SnapIOWarning",
    "MissingFieldWarning",
]

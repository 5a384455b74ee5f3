"""File name helpers for snapshot sequences.

A snapshot sequence is addressed by a *base name*: the caller's path with
any suffix and any trailing frame id removed.  ``./data/run_0003.hdf5``,
``./data/run.xdmf`` and ``./data/run`` all reduce to ``./data/run``; the
per-frame files are then ``./data/run_0001.hdf5``, ``./data/run_0002.hdf5``
and so on.
"""
from __future__ import annotations

from os import PathLike
from typing import Union

from .constants import DEFAULT_FRAME_DIGITS, PATH_DELIMITERS
from .errors import InvalidNameError

PathName = Union[str, "PathLike[str]"]

_DIGITS = "0123456789"


def _is_delimiter(char: str) -> bool:
    return char in PATH_DELIMITERS


def _check_tail(name: str, where: str) -> None:
    if not name:
        raise InvalidNameError(f"{where}: empty file name")
    if name[-1] == "." or _is_delimiter(name[-1]):
        raise InvalidNameError(f"{where}: invalid file name {name!r}")


def strip_suffix(name: PathName) -> str:
    """Remove the suffix (from the last ``.`` of the final path component)."""

    text = str(name)
    _check_tail(text, "strip_suffix")
    idx = len(text) - 1
    while idx > 0 and text[idx] != "." and not _is_delimiter(text[idx]):
        idx -= 1
    if text[idx] == ".":
        return text[:idx]
    return text


def strip_frame_id(name: PathName) -> str:
    """Remove a trailing run of digits and underscores (the frame id)."""

    text = str(name)
    _check_tail(text, "strip_frame_id")
    idx = len(text) - 1
    while idx > 0 and (text[idx] == "_" or text[idx] in _DIGITS):
        idx -= 1
    return text[: idx + 1]


def base_name(name: PathName) -> str:
    """Return the canonical base name of ``name``.

    Raises
    ------
    InvalidNameError
        If ``name`` is empty, ends in a dot or path delimiter, or nothing of
        the final path component survives the stripping.
    """

    base = strip_frame_id(strip_suffix(name))
    if not base or base[-1] == "." or _is_delimiter(base[-1]):
        raise InvalidNameError(f"base_name: no file stem left in {str(name)!r}")
    return base


def with_suffix(name: PathName, suffix: str) -> str:
    """Replace the suffix of ``name`` (if any) with ``suffix``."""

    return strip_suffix(name) + suffix


def frame_name(base: PathName, index: int, suffix: str, *, digits: int = DEFAULT_FRAME_DIGITS) -> str:
    """Return ``<base>_<index zero padded to digits><suffix>``."""

    return f"{base}_{int(index):0{int(digits)}d}{suffix}"


__all__ = [
    "strip_suffix",
    "strip_frame_id",
    "base_name",
    "with_suffix",
    "frame_name",
]

"""Configuration schema for snapshot sequences.

The settings model mirrors the optional ``snapio`` block of a YAML run
configuration.  All values have defaults matching the GADGET/XDMF layout
expected by the usual viewers, so an empty mapping is a valid configuration.
"""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import constants
from .errors import ConfigurationError


class SnapshotSettings(BaseModel):
    """File naming, compression and read-policy settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    binary_suffix: str = Field(
        constants.DEFAULT_BINARY_SUFFIX,
        description="Suffix of the per-frame HDF5 snapshot files.",
    )
    mirror_suffix: str = Field(
        constants.DEFAULT_MIRROR_SUFFIX,
        description="Suffix of the XDMF mirror documents.",
    )
    frame_digits: int = Field(
        constants.DEFAULT_FRAME_DIGITS,
        ge=1,
        le=9,
        description="Zero padding of the frame id in per-frame file names.",
    )
    compression_level: int = Field(
        constants.DEFAULT_COMPRESSION_LEVEL,
        ge=0,
        le=9,
        description="gzip level applied to every particle dataset.",
    )
    write_frame_mirrors: bool = Field(
        True,
        description="Write a standalone <base>_<NNNN>.xdmf next to every snapshot.",
    )
    write_collection: bool = Field(
        True,
        description="Maintain the running temporal collection <base>.xdmf.",
    )
    missing_fields: Literal["warn", "ignore", "error"] = Field(
        "warn",
        description="What load does when a registered field has no dataset in the snapshot.",
    )
    time_format: str = Field(
        constants.DEFAULT_TIME_FORMAT,
        description="str.format pattern for the XDMF <Time Value=...> attribute.",
    )

    @field_validator("binary_suffix", "mirror_suffix")
    @classmethod
    def _check_suffix(cls, value: str) -> str:
        if len(value) < 2 or not value.startswith("."):
            raise ConfigurationError(f"suffix must start with '.' and be non-empty, got {value!r}")
        if value.count(".") != 1 or any(delim in value for delim in constants.PATH_DELIMITERS):
            raise ConfigurationError(f"suffix must be a single extension, got {value!r}")
        return value

    @field_validator("time_format")
    @classmethod
    def _check_time_format(cls, value: str) -> str:
        try:
            value.format(0.5)
        except (IndexError, KeyError, ValueError) as exc:
            raise ConfigurationError(f"time_format {value!r} cannot format a float: {exc}") from exc
        return value


__all__ = ["SnapshotSettings"]

"""Layout constants shared by the snapshot writer, reader and mirror.

The header layout follows the GADGET-2 / GIZMO HDF5 snapshot convention so
that the files open in the usual particle viewers.
"""
from __future__ import annotations

from typing import Tuple

# GADGET allows six particle types
N_TYPES: int = 6

PARTICLE_TYPE_NAMES: Tuple[str, ...] = ("Gas", "Halo", "Disk", "Bulge", "Stars", "Bndry")

HEADER_GROUP: str = "Header"
GROUP_PREFIX: str = "PartType"

ATTR_DOUBLE_PRECISION: str = "Flag_DoublePrecision"
ATTR_MASS_TABLE: str = "MassTable"
ATTR_FILES_PER_SNAPSHOT: str = "NumFilesPerSnapshot"
ATTR_NUM_THIS_FILE: str = "NumPart_ThisFile"
ATTR_NUM_TOTAL: str = "NumPart_Total"
ATTR_NUM_TOTAL_HIGH_WORD: str = "NumPart_Total_HighWord"
ATTR_TIME: str = "Time"

# Datasets are always single precision for now
DOUBLE_PRECISION_FLAG: int = 0

DEFAULT_BINARY_SUFFIX: str = ".hdf5"
DEFAULT_MIRROR_SUFFIX: str = ".xdmf"
DEFAULT_FRAME_DIGITS: int = 4
DEFAULT_COMPRESSION_LEVEL: int = 6
DEFAULT_TIME_FORMAT: str = "{:.4e}"

PATH_DELIMITERS: Tuple[str, ...] = ("/", ":")


def group_name(ptype: int) -> str:
    """Return the HDF5 group name used for particle type ``ptype``."""

    return f"{GROUP_PREFIX}{int(ptype)}"

"""Core package for particle snapshot sequences (HDF5 frames + XDMF mirrors)."""
from . import constants, naming
from .errors import SnapIOError
from .frames import SnapshotSeries
from .registry import Centering, FieldKind, FieldRegistry, ParticleType
from .schema import SnapshotSettings

__all__ = [
    "constants",
    "naming",
    "SnapIOError",
    "SnapshotSeries",
    "Centering",
    "FieldKind",
    "FieldRegistry",
    "ParticleType",
    "SnapshotSettings",
]

"""Registry of particle arrays persisted by a snapshot sequence.

The registry does not own any data.  It keeps references to arrays created
by the caller, grouped by GADGET particle type, in registration order.  Both
the HDF5 codec and the XDMF mirror walk the registry in that order, and both
read the storage layout (dtype, component count, XDMF number type) from the
field class, so the two files always agree on what was written.

Example::

    registry = FieldRegistry()
    registry.set_count(ParticleType.GAS, n)
    registry.register_float(ParticleType.GAS, "Masses", mass)
    registry.register_geometry(ParticleType.GAS, "Coordinates", xyz)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import ClassVar, Dict, Iterator, List, Optional, Tuple, Type, Union

import numpy as np

from .constants import N_TYPES
from .errors import InvalidArgumentError

logger = logging.getLogger(__name__)


class ParticleType(IntEnum):
    """GADGET-2 particle types."""

    GAS = 0
    HALO = 1
    DISK = 2
    BULGE = 3
    STARS = 4
    BNDRY = 5


class Centering(str, Enum):
    NODE = "Node"
    CELL = "Cell"


class FieldKind(str, Enum):
    BOOLEAN_1D = "Boolean1D"
    INTEGER_1D = "Integer1D"
    FLOAT_1D = "Float1D"
    FLOAT_3D = "Float3D"
    GEOMETRY_3D = "Geometry3D"


PTypeLike = Union[int, ParticleType]


def check_ptype(ptype: PTypeLike) -> int:
    """Return ``ptype`` as an int in ``[0, N_TYPES)`` or raise."""

    if isinstance(ptype, bool) or not isinstance(ptype, (int, np.integer)):
        raise InvalidArgumentError(f"particle type must be an integer, got {ptype!r}")
    value = int(ptype)
    if value < 0 or value >= N_TYPES:
        raise InvalidArgumentError(f"invalid particle type {value}; expected 0..{N_TYPES - 1}")
    return value


@dataclass(frozen=True, eq=False)
class Field:
    """A named reference to a caller-owned particle array.

    Subclasses fix the storage layout; instances are created through
    :meth:`FieldRegistry.register`.
    """

    ptype: int
    name: str
    data: np.ndarray
    centering: Centering = Centering.NODE

    kind: ClassVar[FieldKind]
    dtype: ClassVar[np.dtype]
    components: ClassVar[int] = 1
    number_type: ClassVar[str] = "Float"
    precision: ClassVar[int] = 4
    attribute_type: ClassVar[str] = "Scalar"
    is_geometry: ClassVar[bool] = False

    def __post_init__(self) -> None:
        data = self.data
        if not isinstance(data, np.ndarray):
            raise InvalidArgumentError(
                f"field {self.name!r}: expected a numpy array, got {type(data).__name__}"
            )
        if data.dtype != self.dtype:
            raise InvalidArgumentError(
                f"field {self.name!r}: {self.kind.value} requires dtype {self.dtype}, got {data.dtype}"
            )
        expected_ndim = 1 if self.components == 1 else 2
        if data.ndim != expected_ndim or (expected_ndim == 2 and data.shape[1] != self.components):
            wanted = "(n,)" if self.components == 1 else f"(n, {self.components})"
            raise InvalidArgumentError(
                f"field {self.name!r}: {self.kind.value} requires shape {wanted}, got {data.shape}"
            )
        if not data.flags.c_contiguous:
            raise InvalidArgumentError(f"field {self.name!r}: array must be C-contiguous")

    def shape(self, count: int) -> Tuple[int, ...]:
        """Dataset shape for ``count`` particles."""

        if self.components == 1:
            return (int(count),)
        return (int(count), self.components)

    def view(self, count: int) -> np.ndarray:
        """Return the leading ``count`` rows of the referenced array."""

        if self.data.shape[0] < count:
            raise InvalidArgumentError(
                f"field {self.name!r}: array holds {self.data.shape[0]} particles, "
                f"{count} are registered for type {self.ptype}"
            )
        return self.data[:count]


class BooleanField(Field):
    kind = FieldKind.BOOLEAN_1D
    dtype = np.dtype(np.bool_)
    number_type = "Char"
    precision = 1


class IntegerField(Field):
    kind = FieldKind.INTEGER_1D
    dtype = np.dtype(np.int32)
    number_type = "Integer"


class FloatField(Field):
    kind = FieldKind.FLOAT_1D
    dtype = np.dtype(np.float32)


class VectorField(Field):
    kind = FieldKind.FLOAT_3D
    dtype = np.dtype(np.float32)
    components = 3
    attribute_type = "Vector"


class GeometryField(Field):
    """Particle positions; described as mesh vertices rather than an attribute."""

    kind = FieldKind.GEOMETRY_3D
    dtype = np.dtype(np.float32)
    components = 3
    attribute_type = "Vector"
    is_geometry = True


FIELD_CLASSES: Dict[FieldKind, Type[Field]] = {
    cls.kind: cls for cls in (BooleanField, IntegerField, FloatField, VectorField, GeometryField)
}


class FieldRegistry:
    """Ordered table of particle counts and field references."""

    def __init__(self) -> None:
        self._counts: List[int] = [0] * N_TYPES
        self._fields: List[Field] = []

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(list(self._fields))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(counts={self.counts}, fields={len(self._fields)})"

    @property
    def counts(self) -> Tuple[int, ...]:
        return tuple(self._counts)

    def reset(self) -> None:
        """Forget every particle count and field."""

        self._counts = [0] * N_TYPES
        self._fields = []

    def set_count(self, ptype: PTypeLike, n: int) -> None:
        """Set the number of particles of type ``ptype``.

        Every dataset of that type is sized by this count.  It may be set
        again later (e.g. arrays reserved for an upper bound, then trimmed to
        the actual number of particles before the first save).
        """

        idx = check_ptype(ptype)
        if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n <= 0:
            raise InvalidArgumentError(f"number of particles must be a positive integer, got {n!r}")
        self._counts[idx] = int(n)

    def count(self, ptype: PTypeLike) -> int:
        return self._counts[check_ptype(ptype)]

    def active_types(self) -> List[int]:
        """Particle types with a non-zero count, in ascending order."""

        return [idx for idx, n in enumerate(self._counts) if n > 0]

    def fields(self, ptype: Optional[PTypeLike] = None) -> List[Field]:
        """Registered fields in registration order, optionally for one type."""

        if ptype is None:
            return list(self._fields)
        idx = check_ptype(ptype)
        return [field for field in self._fields if field.ptype == idx]

    def register(
        self,
        ptype: PTypeLike,
        kind: Union[FieldKind, str],
        name: str,
        data: Optional[np.ndarray],
        centering: Union[Centering, str] = Centering.NODE,
    ) -> Optional[Field]:
        """Append a field of ``kind`` for particle type ``ptype``.

        ``data=None`` is accepted and ignored so that optional arrays can be
        registered unconditionally.  Names are not checked for duplicates.
        """

        idx = check_ptype(ptype)
        if data is None:
            logger.debug("register: skipping %s for type %d (no array)", name, idx)
            return None
        try:
            field_cls = FIELD_CLASSES[FieldKind(kind)]
            center = Centering(centering)
        except ValueError as exc:
            raise InvalidArgumentError(str(exc)) from exc
        if not name:
            raise InvalidArgumentError("field name must not be empty")
        field = field_cls(ptype=idx, name=str(name), data=data, centering=center)
        self._fields.append(field)
        return field

    def register_boolean(self, ptype: PTypeLike, name: str, data: Optional[np.ndarray], centering=Centering.NODE):
        return self.register(ptype, FieldKind.BOOLEAN_1D, name, data, centering)

    def register_integer(self, ptype: PTypeLike, name: str, data: Optional[np.ndarray], centering=Centering.NODE):
        return self.register(ptype, FieldKind.INTEGER_1D, name, data, centering)

    def register_float(self, ptype: PTypeLike, name: str, data: Optional[np.ndarray], centering=Centering.NODE):
        return self.register(ptype, FieldKind.FLOAT_1D, name, data, centering)

    def register_vector(self, ptype: PTypeLike, name: str, data: Optional[np.ndarray], centering=Centering.NODE):
        return self.register(ptype, FieldKind.FLOAT_3D, name, data, centering)

    def register_geometry(self, ptype: PTypeLike, name: str, data: Optional[np.ndarray], centering=Centering.NODE):
        return self.register(ptype, FieldKind.GEOMETRY_3D, name, data, centering)


__all__ = [
    "ParticleType",
    "Centering",
    "FieldKind",
    "Field",
    "BooleanField",
    "IntegerField",
    "FloatField",
    "VectorField",
    "GeometryField",
    "FIELD_CLASSES",
    "FieldRegistry",
    "check_ptype",
]

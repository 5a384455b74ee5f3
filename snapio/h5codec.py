"""HDF5 reader/writer for a single snapshot frame.

One frame is one HDF5 file laid out like a GADGET-2 / GIZMO snapshot::

    /Header                  attributes: NumPart_ThisFile, Time, ...
    /PartType<k>/<field>     one dataset per registered field of type k

Datasets are ``(n,)`` for scalar fields and ``(n, 3)`` for vector and
geometry fields, stored in a single chunk covering the whole dataset with
gzip compression.  Reading looks datasets up by field name, and every check
(particle counts, dataset shapes) completes before any registered array is
touched.
"""
from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import List, Optional, Tuple

import h5py
import numpy as np

from . import constants
from .errors import CheckpointIOError, InconsistentCheckpointError
from .naming import PathName, with_suffix
from .registry import Field, FieldRegistry
from .schema import SnapshotSettings
from .warnings import MissingFieldWarning

logger = logging.getLogger(__name__)


def write_header(group: h5py.Group, counts, time: float) -> None:
    """Write the GADGET header attributes for ``counts`` and ``time``."""

    counts_arr = np.asarray(counts, dtype=np.int32)
    zeros = np.zeros(constants.N_TYPES, dtype=np.int32)
    group.attrs.create(constants.ATTR_DOUBLE_PRECISION, constants.DOUBLE_PRECISION_FLAG, dtype=np.int32)
    group.attrs.create(constants.ATTR_MASS_TABLE, np.zeros(constants.N_TYPES), dtype=np.float64)
    group.attrs.create(constants.ATTR_FILES_PER_SNAPSHOT, 1, dtype=np.int32)
    group.attrs.create(constants.ATTR_NUM_THIS_FILE, counts_arr, dtype=np.int32)
    group.attrs.create(constants.ATTR_NUM_TOTAL, counts_arr, dtype=np.int32)
    group.attrs.create(constants.ATTR_NUM_TOTAL_HIGH_WORD, zeros, dtype=np.int32)
    group.attrs.create(constants.ATTR_TIME, float(time), dtype=np.float64)


def read_header(handle: h5py.File) -> Tuple[np.ndarray, float]:
    """Return ``(counts, time)`` from the ``Header`` group of ``handle``."""

    header = handle.get(constants.HEADER_GROUP)
    if header is None:
        raise InconsistentCheckpointError(f"{handle.filename}: no {constants.HEADER_GROUP} group")
    if constants.ATTR_NUM_THIS_FILE not in header.attrs:
        raise InconsistentCheckpointError(
            f"{handle.filename}: header has no {constants.ATTR_NUM_THIS_FILE} attribute"
        )
    counts = np.asarray(header.attrs[constants.ATTR_NUM_THIS_FILE], dtype=np.int64).reshape(-1)
    time = 0.0
    if constants.ATTR_TIME in header.attrs:
        time = float(np.asarray(header.attrs[constants.ATTR_TIME]).reshape(-1)[0])
    return counts, time


class FrameCodec:
    """Open, write and read one snapshot file for a :class:`FieldRegistry`.

    ``frame_time`` and ``end_of_file`` describe the frame last written or
    read.  Opening resets both; closing sets ``frame_time`` back to zero and
    ``end_of_file`` to True.  ``write_frame`` and ``read_frame`` are no-ops
    while no file is open, so ``close`` is always safe to call.
    """

    def __init__(self, registry: FieldRegistry, settings: Optional[SnapshotSettings] = None) -> None:
        self.registry = registry
        self.settings = settings or SnapshotSettings()
        self.frame_time = 0.0
        self.end_of_file = False
        self.path: Optional[Path] = None
        self._handle: Optional[h5py.File] = None

    def __enter__(self) -> "FrameCodec":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self, name: PathName, *, create: bool) -> Path:
        """Create (truncating) or reopen ``name`` with the binary suffix applied."""

        self.frame_time = 0.0
        self.end_of_file = False
        if self._handle is not None:
            self.close()
            self.end_of_file = False
        path = Path(with_suffix(name, self.settings.binary_suffix))
        mode = "w" if create else "r+"
        try:
            self._handle = h5py.File(path, mode)
        except OSError as exc:
            raise CheckpointIOError(
                f"Unable to {'create' if create else 'open'} HDF5 file {path} (check name and/or path): {exc}"
            ) from exc
        self.path = path
        logger.debug("Opened %s (mode=%s)", path, mode)
        return path

    def close(self) -> None:
        if self._handle is None:
            return
        try:
            self._handle.close()
        finally:
            self._handle = None
            self.frame_time = 0.0
            self.end_of_file = True
        logger.debug("Closed %s", self.path)

    # ------------------------------------------------------------------
    # writing
    # ------------------------------------------------------------------

    def write_frame(self, time: float) -> None:
        """Write the header and every registered field of the open file."""

        if self._handle is None or self.end_of_file:
            return
        registry = self.registry
        # size checks first so a short array fails before anything is written
        pending = [
            (ptype, field, field.view(registry.count(ptype)))
            for ptype in registry.active_types()
            for field in registry.fields(ptype)
        ]
        self.frame_time = float(time)
        header = self._handle.require_group(constants.HEADER_GROUP)
        write_header(header, registry.counts, self.frame_time)

        for ptype in registry.active_types():
            self._handle.require_group(constants.group_name(ptype))
        for ptype, field, data in pending:
            group = self._handle[constants.group_name(ptype)]
            self._write_dataset(group, field, data)
        logger.info("Wrote %s at t=%.6g (particles per type %s)", self.path, self.frame_time, list(registry.counts))

    def _write_dataset(self, group: h5py.Group, field: Field, data: np.ndarray) -> None:
        count = data.shape[0]
        if field.name in group:
            logger.debug("Replacing dataset %s/%s", group.name, field.name)
            del group[field.name]
        shape = field.shape(count)
        level = self.settings.compression_level
        group.create_dataset(
            field.name,
            shape=shape,
            dtype=field.dtype,
            data=data,
            chunks=shape,
            compression="gzip" if level > 0 else None,
            compression_opts=level if level > 0 else None,
        )
        logger.debug("  %s/%s %s %s", group.name, field.name, field.dtype, shape)

    # ------------------------------------------------------------------
    # reading
    # ------------------------------------------------------------------

    def read_frame(self) -> None:
        """Read the open file into the registered arrays.

        Raises
        ------
        InconsistentCheckpointError
            If the header's particle counts differ from the registry's, or a
            dataset has a shape other than the registered field expects, or
            (with ``missing_fields="error"``) a registered field is absent.
        """

        if self._handle is None:
            return
        registry = self.registry
        counts, time = read_header(self._handle)
        expected = np.asarray(registry.counts, dtype=np.int64)
        if counts.shape != expected.shape or np.any(counts != expected):
            raise InconsistentCheckpointError(
                f"{self.path}: inconsistent number of particles; file has {counts.tolist()}, "
                f"registry expects {expected.tolist()} (bad checkpoint file?)"
            )

        plan = self._plan_reads()
        for dataset, target in plan:
            dataset.read_direct(target)
        self.frame_time = time
        logger.info("Read %s at t=%.6g (%d datasets)", self.path, time, len(plan))

    def _plan_reads(self) -> List[Tuple[h5py.Dataset, np.ndarray]]:
        registry = self.registry
        handle = self._handle
        plan: List[Tuple[h5py.Dataset, np.ndarray]] = []
        for ptype in registry.active_types():
            count = registry.count(ptype)
            fields = registry.fields(ptype)
            group = handle.get(constants.group_name(ptype))
            for field in fields:
                dataset = group.get(field.name) if group is not None else None
                if dataset is None:
                    self._missing(field)
                    continue
                shape = field.shape(count)
                if tuple(dataset.shape) != shape:
                    raise InconsistentCheckpointError(
                        f"{self.path}: dataset {dataset.name} has shape {tuple(dataset.shape)}, "
                        f"expected {shape}"
                    )
                if dataset.dtype != field.dtype:
                    raise InconsistentCheckpointError(
                        f"{self.path}: dataset {dataset.name} holds {dataset.dtype}, "
                        f"field {field.name!r} is registered as {field.kind.value} ({field.dtype})"
                    )
                plan.append((dataset, field.view(count)))
            if group is not None:
                extra = sorted(set(group.keys()) - {field.name for field in fields})
                if extra:
                    logger.debug("%s: ignoring unregistered datasets %s", group.name, extra)
        return plan

    def _missing(self, field: Field) -> None:
        message = f"{self.path}: no dataset for field {field.name!r} of particle type {field.ptype}"
        policy = self.settings.missing_fields
        if policy == "error":
            raise InconsistentCheckpointError(message)
        if policy == "warn":
            warnings.warn(message, MissingFieldWarning, stacklevel=3)
        logger.debug("%s; leaving array untouched", message)


__all__ = ["FrameCodec", "write_header", "read_header"]

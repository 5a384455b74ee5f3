"""Write an XDMF description for an existing GADGET/GIZMO HDF5 snapshot.

Usage:
    python -m snapio.describe data/noh_ics.hdf5
    python -m snapio.describe data/snapshot_000.hdf5 --time 0.5 --stdout > snapshot_000.xdmf

The layout is read from the file itself: particle counts from the
``Header`` group (or from the dataset extents when there is no header),
number type and precision from each dataset's dtype, and ``Coordinates``
as the grid geometry.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import h5py
import numpy as np

from . import constants
from .config_utils import configure_logging
from .errors import CheckpointIOError, SnapIOError
from .h5codec import read_header
from .naming import PathName, with_suffix
from .xdmf import FieldLayout, GridLayout, render_document

logger = logging.getLogger(__name__)

GEOMETRY_NAME = "Coordinates"

_NUMBER_TYPES = {"b": "Char", "i": "Int", "u": "UInt", "f": "Float"}


def _dataset_layout(dataset: h5py.Dataset, *, geometry_taken: bool) -> Optional[FieldLayout]:
    dtype = dataset.dtype
    kind = dtype.kind
    if h5py.check_enum_dtype(dtype) is not None:
        kind = "b" if dtype.itemsize == 1 else "i"
    number_type = _NUMBER_TYPES.get(kind)
    shape = tuple(int(n) for n in dataset.shape)
    name = dataset.name.rsplit("/", 1)[-1]
    if number_type is None or len(shape) not in (1, 2):
        logger.warning("Skipping %s: dtype %s shape %s has no XDMF attribute form", dataset.name, dtype, shape)
        return None
    if number_type == "Int" and dtype.itemsize == 4:
        number_type = "Integer"
    components = shape[1] if len(shape) == 2 else 1
    if components not in (1, 3):
        logger.warning("Skipping %s: %d components per particle", dataset.name, components)
        return None
    is_geometry = name == GEOMETRY_NAME and components == 3 and kind == "f" and not geometry_taken
    return FieldLayout(
        name=name,
        dims=shape,
        number_type=number_type,
        precision=1 if kind == "b" else int(dtype.itemsize),
        attribute_type="Vector" if components == 3 else "Scalar",
        center="Node",
        is_geometry=is_geometry,
    )


def layouts_from_snapshot(handle: h5py.File) -> Tuple[float, List[GridLayout]]:
    """Return ``(time, grids)`` describing every particle group of ``handle``."""

    time = 0.0
    counts: Optional[np.ndarray] = None
    if constants.HEADER_GROUP in handle:
        counts, time = read_header(handle)

    grids: List[GridLayout] = []
    for ptype in range(constants.N_TYPES):
        group = handle.get(constants.group_name(ptype))
        if not isinstance(group, h5py.Group):
            continue
        datasets = [group[key] for key in sorted(group.keys()) if isinstance(group[key], h5py.Dataset)]
        # geometry first, as the converter always wrote it
        datasets.sort(key=lambda ds: ds.name.rsplit("/", 1)[-1] != GEOMETRY_NAME)
        items: List[FieldLayout] = []
        for dataset in datasets:
            layout = _dataset_layout(dataset, geometry_taken=any(item.is_geometry for item in items))
            if layout is not None:
                items.append(layout)
        if not items:
            continue
        if counts is not None and ptype < counts.size and counts[ptype] > 0:
            count = int(counts[ptype])
        else:
            count = int(items[0].dims[0])
        mismatched = [item.name for item in items if item.dims[0] != count]
        if mismatched:
            logger.warning("%s: datasets %s do not match %d particles", group.name, mismatched, count)
        grids.append(GridLayout(ptype=ptype, count=count, fields=tuple(items)))
    return time, grids


def describe_snapshot(
    snapshot: PathName,
    *,
    time: Optional[float] = None,
    time_format: str = constants.DEFAULT_TIME_FORMAT,
) -> str:
    """Return the XDMF document describing ``snapshot``."""

    path = Path(snapshot)
    try:
        with h5py.File(path, "r") as handle:
            file_time, grids = layouts_from_snapshot(handle)
    except OSError as exc:
        raise CheckpointIOError(f"Unable to open HDF5 file {path}: {exc}") from exc
    if not grids:
        logger.warning("%s: no PartType groups with describable datasets", path)
    stamp = file_time if time is None else float(time)
    return render_document(stamp, os.path.basename(str(path)), grids, time_format=time_format)


def write_description(
    snapshot: PathName,
    output: Optional[PathName] = None,
    *,
    time: Optional[float] = None,
    suffix: str = constants.DEFAULT_MIRROR_SUFFIX,
) -> Path:
    """Write the description of ``snapshot`` to ``output`` (default: beside it)."""

    text = describe_snapshot(snapshot, time=time)
    target = Path(output) if output is not None else Path(with_suffix(snapshot, suffix))
    try:
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise CheckpointIOError(f"Unable to write XDMF file {target}: {exc}") from exc
    logger.info("Wrote %s", target)
    return target


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Write an XDMF description for a GADGET/GIZMO HDF5 snapshot.")
    ap.add_argument("snapshot", type=Path, help="HDF5 snapshot file")
    ap.add_argument("-o", "--output", type=Path, default=None, help="Output path (default: <snapshot>.xdmf)")
    ap.add_argument("--stdout", action="store_true", help="Print the document instead of writing a file")
    ap.add_argument("--time", type=float, default=None, help="Override the Header/Time value")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    args = ap.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)
    try:
        if args.stdout:
            sys.stdout.write(describe_snapshot(args.snapshot, time=args.time))
        else:
            target = write_description(args.snapshot, args.output, time=args.time)
            print(f"[describe] wrote {target}")
    except SnapIOError as exc:
        print(f"[describe] failed: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())

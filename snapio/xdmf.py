"""XDMF mirror documents describing the HDF5 snapshot layout.

Each mirror is a temporal collection: a document header, one block per
saved frame and a closing wrapper.  A frame block holds one ``Uniform`` grid
per particle type that has fields, and every ``DataItem`` points at
``<snapshot file>:/PartType<k>/<field>`` with the same dimensions and
number type the HDF5 codec wrote.

The text is line oriented and produced by :func:`render_frame` only.
:meth:`XdmfWriter.skip_frames` counts lines of frames rendered by that same
function, so skipping cannot drift from writing.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

from . import constants
from .errors import CheckpointIOError, InconsistentCheckpointError
from .naming import PathName, with_suffix
from .registry import Field, FieldRegistry
from .schema import SnapshotSettings

logger = logging.getLogger(__name__)

DOCUMENT_HEADER: Tuple[str, ...] = (
    '<?xml version="1.0" ?>',
    '<!DOCTYPE Xdmf SYSTEM "Xdmf.dtd" []>',
    "",
    '<Xdmf Version="2.0" >',
    "  <Domain>",
    '    <Grid Name="Temporal Collection" GridType="Collection" CollectionType="Temporal" >',
)

DOCUMENT_TRAILER: Tuple[str, ...] = (
    "    </Grid>",
    "  </Domain>",
    "</Xdmf>",
)


def _attr(value: str) -> str:
    return escape(str(value), {'"': "&quot;"})


@dataclass(frozen=True)
class FieldLayout:
    """What the mirror needs to know about one dataset."""

    name: str
    dims: Tuple[int, ...]
    number_type: str
    precision: int
    attribute_type: str = "Scalar"
    center: str = "Node"
    is_geometry: bool = False

    @classmethod
    def from_field(cls, field: Field, count: int, *, as_geometry: Optional[bool] = None) -> "FieldLayout":
        return cls(
            name=field.name,
            dims=field.shape(count),
            number_type=field.number_type,
            precision=field.precision,
            attribute_type=field.attribute_type,
            center=field.centering.value,
            is_geometry=field.is_geometry if as_geometry is None else as_geometry,
        )


@dataclass(frozen=True)
class GridLayout:
    """One particle type of one frame."""

    ptype: int
    count: int
    fields: Tuple[FieldLayout, ...]

    @property
    def group(self) -> str:
        return constants.group_name(self.ptype)


def layouts_from_registry(registry: FieldRegistry) -> List[GridLayout]:
    """Mirror layouts for the particle types the codec writes.

    A grid carries at most one geometry; further geometry fields of the same
    type are described as vector attributes.
    """

    grids: List[GridLayout] = []
    for ptype in registry.active_types():
        count = registry.count(ptype)
        has_geometry = False
        items: List[FieldLayout] = []
        for field in registry.fields(ptype):
            as_geometry = field.is_geometry and not has_geometry
            if field.is_geometry and has_geometry:
                logger.warning(
                    "%s: second geometry field %r described as a vector attribute",
                    constants.group_name(ptype),
                    field.name,
                )
            has_geometry = has_geometry or as_geometry
            items.append(FieldLayout.from_field(field, count, as_geometry=as_geometry))
        if items:
            grids.append(GridLayout(ptype=ptype, count=count, fields=tuple(items)))
    return grids


def _data_item(layout: FieldLayout, source: str) -> List[str]:
    dims = " ".join(str(d) for d in layout.dims)
    return [
        f'          <DataItem Dimensions="{dims}" NumberType="{layout.number_type}" '
        f'Precision="{layout.precision}" Format="HDF" >',
        f"            {escape(source)}",
        "          </DataItem>",
    ]


def render_field(layout: FieldLayout, binary_name: str, group: str) -> List[str]:
    """Lines of one ``Geometry`` or ``Attribute`` element."""

    source = f"{binary_name}:/{group}/{layout.name}"
    if layout.is_geometry:
        return ["", '        <Geometry GeometryType="XYZ">', *_data_item(layout, source), "        </Geometry>"]
    return [
        "",
        f'        <Attribute Name="{_attr(layout.name)}" AttributeType="{layout.attribute_type}" '
        f'Center="{layout.center}">',
        *_data_item(layout, source),
        "        </Attribute>",
    ]


def render_frame(
    time: float,
    binary_name: str,
    grids: Sequence[GridLayout],
    *,
    time_format: str = constants.DEFAULT_TIME_FORMAT,
) -> List[str]:
    """Lines of one frame block (without trailing newlines)."""

    stamp = time_format.format(float(time))
    lines: List[str] = []
    for grid in grids:
        lines.extend(
            [
                "",
                f'      <Grid Name="{grid.group}" GridType="Uniform">',
                f'        <Time Value="{stamp}"/>',
                "",
                f'        <Topology TopologyType="Polyvertex" NumberOfElements="{grid.count}" />',
            ]
        )
        for layout in grid.fields:
            lines.extend(render_field(layout, binary_name, grid.group))
        lines.extend(["", "      </Grid>", ""])
    return lines


def render_document(
    time: float,
    binary_name: str,
    grids: Sequence[GridLayout],
    *,
    time_format: str = constants.DEFAULT_TIME_FORMAT,
) -> str:
    """Complete single-frame document as text."""

    lines = [*DOCUMENT_HEADER, *render_frame(time, binary_name, grids, time_format=time_format), *DOCUMENT_TRAILER]
    return "\n".join(lines) + "\n"


class XdmfWriter:
    """Writer for one XDMF temporal-collection document.

    A snapshot sequence owns two of these: one for the running collection
    and one reopened for every standalone per-frame mirror.
    """

    def __init__(self, settings: Optional[SnapshotSettings] = None) -> None:
        self.settings = settings or SnapshotSettings()
        self.path: Optional[Path] = None
        self.frame_count = 0
        self.terminate = True
        self._fh: Optional[IO[str]] = None
        self._readable = False

    def __enter__(self) -> "XdmfWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def _open_file(self, name: PathName, mode: str) -> Path:
        if self._fh is not None:
            self.close()
        path = Path(with_suffix(name, self.settings.mirror_suffix))
        try:
            self._fh = open(path, mode, encoding="utf-8", newline="\n")
        except OSError as exc:
            raise CheckpointIOError(f"Unable to create or open XDMF file {path} (check name and/or path): {exc}") from exc
        self.path = path
        self.frame_count = 0
        self.terminate = True
        self._readable = mode == "r+"
        return path

    def open(self, name: PathName) -> Path:
        """Create ``name`` (mirror suffix applied) and write the document header."""

        path = self._open_file(name, "w")
        self._write_lines(DOCUMENT_HEADER)
        logger.debug("Opened mirror %s", path)
        return path

    def resume(self, name: PathName, grids: Sequence[GridLayout], n_frames: int) -> Path:
        """Reopen an existing mirror, keep its first ``n_frames`` frames and append after them."""

        path = self._open_file(name, "r+")
        try:
            self.skip_frames(n_frames, grids, from_start=True)
            self._fh.seek(self._fh.tell())
            self._fh.truncate()
        except Exception:
            self.terminate = False
            self.close()
            raise
        logger.info("Resumed mirror %s after %d frames", path, n_frames)
        return path

    def skip_frames(self, n_frames: int, grids: Sequence[GridLayout], *, from_start: bool = False) -> None:
        """Advance the file cursor over ``n_frames`` frame blocks.

        With ``from_start`` the document header is skipped first.  The stride
        is the line count of a frame rendered for ``grids``.
        """

        if self._fh is None:
            return
        if not self._readable:
            raise InconsistentCheckpointError(
                f"{self.path}: mirror opened for writing only; use resume() to skip frames"
            )
        stride = len(render_frame(0.0, "", grids, time_format=self.settings.time_format))
        if from_start:
            self._fh.seek(0)
            self._consume(len(DOCUMENT_HEADER), "document header")
        for frame in range(int(n_frames)):
            self._consume(stride, f"frame {frame + 1}")
        self.frame_count += int(n_frames)

    def _consume(self, n_lines: int, what: str) -> None:
        for _ in range(n_lines):
            line = self._fh.readline()
            if not line:
                raise InconsistentCheckpointError(f"{self.path}: file ends inside {what}")
            if line.startswith("    </Grid>"):
                raise InconsistentCheckpointError(f"{self.path}: collection closes inside {what}")

    def write_frame(self, time: float, binary_name: PathName, grids: Sequence[GridLayout]) -> None:
        """Append one frame block referencing ``binary_name``."""

        if self._fh is None:
            return
        lines = render_frame(
            time,
            os.path.basename(str(binary_name)),
            grids,
            time_format=self.settings.time_format,
        )
        self._write_lines(lines)
        self.frame_count += 1

    def close(self, *, terminate: Optional[bool] = None) -> None:
        """Write the closing wrapper (unless suppressed) and close the file."""

        if self._fh is None:
            return
        emit = self.terminate if terminate is None else terminate
        try:
            if emit:
                self._write_lines(DOCUMENT_TRAILER)
        finally:
            self._fh.close()
            self._fh = None
            self._readable = False
            logger.debug("Closed mirror %s after %d frames", self.path, self.frame_count)
            self.frame_count = 0

    def _write_lines(self, lines: Sequence[str]) -> None:
        self._fh.write("\n".join(lines) + "\n")
        self._fh.flush()


__all__ = [
    "DOCUMENT_HEADER",
    "DOCUMENT_TRAILER",
    "FieldLayout",
    "GridLayout",
    "layouts_from_registry",
    "render_field",
    "render_frame",
    "render_document",
    "XdmfWriter",
]

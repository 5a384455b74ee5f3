"""Temporal snapshot sequences.

:class:`SnapshotSeries` drives the HDF5 codec and the XDMF mirrors for a
sequence of frames sharing one base name::

    series = SnapshotSeries(registry)
    with series.open("./data/run"):
        for step in range(n):
            advance(...)
            series.save_frame(time)      # data/run_0001.hdf5, data/run_0001.xdmf, ...

    with SnapshotSeries(registry).open("./data/run") as series:
        for time in series.iter_frames():
            ...                          # registered arrays hold that frame

Saving also appends every frame to the running collection ``<base>.xdmf``.
Loading stops at the first frame id whose snapshot file does not exist; that
is reported through ``end_of_file`` and is not an error.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional

from .h5codec import FrameCodec
from .naming import PathName, base_name, frame_name
from .registry import FieldRegistry
from .schema import SnapshotSettings
from .xdmf import XdmfWriter, layouts_from_registry

logger = logging.getLogger(__name__)


class SnapshotSeries:
    """Save and load numbered snapshot frames for a :class:`FieldRegistry`."""

    def __init__(self, registry: Optional[FieldRegistry] = None, settings: Optional[SnapshotSettings] = None) -> None:
        self.registry = registry if registry is not None else FieldRegistry()
        self.settings = settings or SnapshotSettings()
        self.codec = FrameCodec(self.registry, self.settings)
        self.frame_mirror = XdmfWriter(self.settings)
        self.collection = XdmfWriter(self.settings)
        self.base: Optional[str] = None
        self.frame_index = 0
        self.frame_time = 0.0
        self.end_of_file = False

    def __enter__(self) -> "SnapshotSeries":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self.base is not None

    def open(self, name: PathName) -> "SnapshotSeries":
        """Start a session on the base name derived from ``name``."""

        self.close()
        self.base = None
        self.base = base_name(name)
        self.frame_index = 0
        self.frame_time = 0.0
        self.end_of_file = False
        logger.info("Snapshot series %s", self.base)
        return self

    def resume(self, name: PathName, n_frames: int) -> "SnapshotSeries":
        """Start a save session that continues after frame ``n_frames``.

        The running collection keeps its first ``n_frames`` frames; anything
        after them is dropped and replaced by the frames saved from now on.
        """

        self.open(name)
        self.frame_index = int(n_frames)
        if not self.settings.write_collection:
            return self
        collection_path = self.collection_path()
        if collection_path.exists():
            self.collection.resume(self.base, layouts_from_registry(self.registry), self.frame_index)
        elif self.frame_index > 0:
            logger.warning("No collection mirror %s to resume; starting a new one", collection_path)
        return self

    def close(self) -> None:
        """Close the snapshot file and both mirrors."""

        self.codec.close()
        self.frame_mirror.close()
        self.collection.close()

    def frame_path(self, index: int) -> Path:
        """Snapshot file name of frame ``index`` (1-based)."""

        return Path(
            frame_name(self.base, index, self.settings.binary_suffix, digits=self.settings.frame_digits)
        )

    def collection_path(self) -> Path:
        return Path(self.base + self.settings.mirror_suffix)

    def save_frame(self, time: float) -> Optional[Path]:
        """Write the next frame and describe it in both mirrors."""

        if self.base is None:
            logger.warning("save_frame(%s) ignored: no snapshot series open", time)
            return None
        self.frame_index += 1
        path = self.frame_path(self.frame_index)
        grids = layouts_from_registry(self.registry)

        try:
            self.codec.open(path, create=True)
            if self.settings.write_frame_mirrors:
                self.frame_mirror.open(path)
            self.codec.write_frame(time)
            self.frame_mirror.write_frame(time, path, grids)
        finally:
            self.codec.close()
            self.frame_mirror.close()

        if self.settings.write_collection:
            if not self.collection.is_open:
                self.collection.open(self.base)
            self.collection.write_frame(time, path, grids)

        self.frame_time = float(time)
        self.end_of_file = False
        logger.info("Saved frame %d at t=%.6g to %s", self.frame_index, self.frame_time, path)
        return path

    def load_frame(self) -> Optional[Path]:
        """Read the next frame into the registered arrays.

        Returns the snapshot path, or ``None`` once the sequence is exhausted
        (``end_of_file`` is then True and further calls do nothing).
        """

        if self.base is None:
            logger.warning("load_frame() ignored: no snapshot series open")
            return None
        if self.end_of_file:
            return None
        self.frame_index += 1
        path = self.frame_path(self.frame_index)
        if not path.exists():
            self.end_of_file = True
            logger.info("End of snapshot series %s after %d frames", self.base, self.frame_index - 1)
            return None

        self.codec.open(path, create=False)
        try:
            self.codec.read_frame()
            time = self.codec.frame_time
        finally:
            # closing resets the codec's frame time
            self.codec.close()
        self.frame_time = time
        self.end_of_file = False
        logger.info("Loaded frame %d at t=%.6g from %s", self.frame_index, time, path)
        return path

    def iter_frames(self) -> Iterator[float]:
        """Load frames until the sequence ends, yielding each frame's time."""

        while True:
            self.load_frame()
            if self.end_of_file or self.base is None:
                return
            yield self.frame_time


__all__ = ["SnapshotSeries"]

from __future__ import annotations

import warnings

import h5py
import numpy as np
import pytest

from snapio.errors import CheckpointIOError, InconsistentCheckpointError, InvalidArgumentError
from snapio.h5codec import FrameCodec, read_header
from snapio.registry import FieldRegistry
from snapio.schema import SnapshotSettings
from snapio.warnings import MissingFieldWarning


def _gas_registry(n: int = 5):
    registry = FieldRegistry()
    registry.set_count(0, n)
    arrays = {
        "Coordinates": np.arange(3 * n, dtype=np.float32).reshape(n, 3),
        "Masses": np.full(n, 2.0, dtype=np.float32),
        "ParticleIDs": np.arange(n, dtype=np.int32),
        "Active": np.arange(n) % 2 == 0,
    }
    registry.register_geometry(0, "Coordinates", arrays["Coordinates"])
    registry.register_float(0, "Masses", arrays["Masses"])
    registry.register_integer(0, "ParticleIDs", arrays["ParticleIDs"])
    registry.register_boolean(0, "Active", arrays["Active"])
    return registry, arrays


def _write(tmp_path, registry, time=0.25, settings=None):
    with FrameCodec(registry, settings) as codec:
        path = codec.open(tmp_path / "snap_0001", create=True)
        codec.write_frame(time)
    return path


def test_write_frame_layout(tmp_path) -> None:
    registry, _ = _gas_registry()
    path = _write(tmp_path, registry)
    assert path.name == "snap_0001.hdf5"

    with h5py.File(path, "r") as handle:
        header = handle["Header"].attrs
        assert header["Flag_DoublePrecision"] == 0
        np.testing.assert_array_equal(header["NumPart_ThisFile"], [5, 0, 0, 0, 0, 0])
        np.testing.assert_array_equal(header["NumPart_Total"], [5, 0, 0, 0, 0, 0])
        np.testing.assert_array_equal(header["NumPart_Total_HighWord"], np.zeros(6))
        np.testing.assert_array_equal(header["MassTable"], np.zeros(6))
        assert header["NumFilesPerSnapshot"] == 1
        assert header["NumPart_ThisFile"].dtype == np.int32
        assert list(handle.keys()) == ["Header", "PartType0"]

        coords = handle["PartType0/Coordinates"]
        assert coords.shape == (5, 3)
        assert coords.dtype == np.float32
        assert coords.chunks == (5, 3)
        assert coords.compression == "gzip"
        assert coords.compression_opts == 6
        assert handle["PartType0/ParticleIDs"].dtype == np.int32
        assert handle["PartType0/Masses"].shape == (5,)
        np.testing.assert_array_equal(handle["PartType0/Active"][()], [True, False, True, False, True])


def test_compression_level_zero_disables_filter(tmp_path) -> None:
    registry, _ = _gas_registry()
    path = _write(tmp_path, registry, settings=SnapshotSettings(compression_level=0))
    with h5py.File(path, "r") as handle:
        assert handle["PartType0/Masses"].compression is None


def test_time_round_trips_exactly(tmp_path) -> None:
    registry, _ = _gas_registry()
    path = _write(tmp_path, registry, time=0.1)
    with h5py.File(path, "r") as handle:
        counts, time = read_header(handle)
    assert time == 0.1
    assert counts.tolist() == [5, 0, 0, 0, 0, 0]


def test_write_and_read_back(tmp_path) -> None:
    registry, arrays = _gas_registry()
    _write(tmp_path, registry, time=1.5)
    expected = {name: values.copy() for name, values in arrays.items()}
    for values in arrays.values():
        values[...] = 0

    codec = FrameCodec(registry)
    codec.open(tmp_path / "snap_0001", create=False)
    codec.read_frame()
    assert codec.frame_time == 1.5
    codec.close()
    assert codec.frame_time == 0.0
    assert codec.end_of_file

    for name, values in expected.items():
        np.testing.assert_array_equal(arrays[name], values)


def test_only_first_count_rows_are_written(tmp_path) -> None:
    registry = FieldRegistry()
    data = np.arange(10, dtype=np.float32)
    registry.set_count(2, 4)
    registry.register_float(2, "Density", data)
    path = _write(tmp_path, registry)
    with h5py.File(path, "r") as handle:
        np.testing.assert_array_equal(handle["PartType2/Density"][()], [0, 1, 2, 3])


def test_short_array_fails_before_writing(tmp_path) -> None:
    registry = FieldRegistry()
    registry.set_count(0, 4)
    registry.register_float(0, "Masses", np.ones(4, dtype=np.float32))
    registry.register_float(0, "Density", np.ones(3, dtype=np.float32))
    codec = FrameCodec(registry)
    path = codec.open(tmp_path / "snap", create=True)
    with pytest.raises(InvalidArgumentError, match="holds 3 particles"):
        codec.write_frame(0.0)
    codec.close()
    with h5py.File(path, "r") as handle:
        assert "Header" not in handle


def test_duplicate_names_last_write_wins(tmp_path) -> None:
    registry = FieldRegistry()
    registry.set_count(0, 3)
    registry.register_float(0, "Masses", np.ones(3, dtype=np.float32))
    registry.register_float(0, "Masses", np.full(3, 7.0, dtype=np.float32))
    path = _write(tmp_path, registry)
    with h5py.File(path, "r") as handle:
        np.testing.assert_array_equal(handle["PartType0/Masses"][()], [7.0, 7.0, 7.0])


def test_write_and_read_without_open_file_are_noops() -> None:
    registry, arrays = _gas_registry()
    codec = FrameCodec(registry)
    codec.write_frame(1.0)
    codec.read_frame()
    codec.close()
    codec.close()
    assert codec.frame_time == 0.0
    assert arrays["Masses"][0] == 2.0


def test_open_missing_directory_raises(tmp_path) -> None:
    codec = FrameCodec(FieldRegistry())
    with pytest.raises(CheckpointIOError, match="Unable to create"):
        codec.open(tmp_path / "missing" / "snap", create=True)
    with pytest.raises(CheckpointIOError, match="Unable to open"):
        codec.open(tmp_path / "absent", create=False)
    assert not codec.is_open


def test_count_mismatch_leaves_arrays_untouched(tmp_path) -> None:
    registry, _ = _gas_registry(5)
    _write(tmp_path, registry)

    other, arrays = _gas_registry(4)
    for values in arrays.values():
        values[...] = 0
    codec = FrameCodec(other)
    codec.open(tmp_path / "snap_0001", create=False)
    with pytest.raises(InconsistentCheckpointError, match="inconsistent number of particles"):
        codec.read_frame()
    codec.close()
    assert not arrays["Masses"].any()
    assert not arrays["Coordinates"].any()


def test_shape_mismatch_raises_before_reading(tmp_path) -> None:
    registry = FieldRegistry()
    registry.set_count(0, 5)
    registry.register_float(0, "Masses", np.ones(5, dtype=np.float32))
    registry.register_float(0, "Velocities", np.ones(5, dtype=np.float32))
    _write(tmp_path, registry)

    reader = FieldRegistry()
    reader.set_count(0, 5)
    masses = reader.register_float(0, "Masses", np.zeros(5, dtype=np.float32)).data
    reader.register_vector(0, "Velocities", np.zeros((5, 3), dtype=np.float32))
    with FrameCodec(reader) as codec:
        codec.open(tmp_path / "snap_0001", create=False)
        with pytest.raises(InconsistentCheckpointError, match="shape"):
            codec.read_frame()
    assert not masses.any()


def test_dtype_mismatch_raises_before_reading(tmp_path) -> None:
    registry = FieldRegistry()
    registry.set_count(0, 4)
    registry.register_float(0, "Density", np.full(4, 3.7, dtype=np.float32))
    registry.register_boolean(0, "Active", np.ones(4, dtype=bool))
    _write(tmp_path, registry)

    reader = FieldRegistry()
    reader.set_count(0, 4)
    density = reader.register_integer(0, "Density", np.zeros(4, dtype=np.int32)).data
    reader.register_float(0, "Active", np.zeros(4, dtype=np.float32))
    with FrameCodec(reader) as codec:
        codec.open(tmp_path / "snap_0001", create=False)
        with pytest.raises(InconsistentCheckpointError, match="Integer1D"):
            codec.read_frame()
    assert not density.any()


def test_boolean_field_registered_as_float_is_rejected(tmp_path) -> None:
    registry = FieldRegistry()
    registry.set_count(0, 4)
    registry.register_boolean(0, "Active", np.ones(4, dtype=bool))
    _write(tmp_path, registry)

    reader = FieldRegistry()
    reader.set_count(0, 4)
    active = reader.register_float(0, "Active", np.zeros(4, dtype=np.float32)).data
    with FrameCodec(reader) as codec:
        codec.open(tmp_path / "snap_0001", create=False)
        with pytest.raises(InconsistentCheckpointError, match="holds bool"):
            codec.read_frame()
    assert not active.any()


def _reader_with_extra_field(tmp_path, policy: str):
    registry, _ = _gas_registry()
    _write(tmp_path, registry)
    reader, arrays = _gas_registry()
    density = np.full(5, -1.0, dtype=np.float32)
    reader.register_float(0, "Density", density)
    codec = FrameCodec(reader, SnapshotSettings(missing_fields=policy))
    codec.open(tmp_path / "snap_0001", create=False)
    return codec, density


def test_missing_field_warns_by_default(tmp_path) -> None:
    codec, density = _reader_with_extra_field(tmp_path, "warn")
    with pytest.warns(MissingFieldWarning, match="Density"):
        codec.read_frame()
    codec.close()
    assert (density == -1.0).all()


def test_missing_field_ignore_is_silent(tmp_path) -> None:
    codec, density = _reader_with_extra_field(tmp_path, "ignore")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        codec.read_frame()
    codec.close()
    assert (density == -1.0).all()


def test_missing_field_error_raises(tmp_path) -> None:
    codec, _ = _reader_with_extra_field(tmp_path, "error")
    with pytest.raises(InconsistentCheckpointError, match="Density"):
        codec.read_frame()
    codec.close()


def test_unregistered_datasets_are_ignored(tmp_path) -> None:
    registry, _ = _gas_registry()
    _write(tmp_path, registry, time=2.0)
    reader = FieldRegistry()
    reader.set_count(0, 5)
    masses = np.zeros(5, dtype=np.float32)
    reader.register_float(0, "Masses", masses)
    with FrameCodec(reader) as codec:
        codec.open(tmp_path / "snap_0001", create=False)
        codec.read_frame()
        assert codec.frame_time == 2.0
    np.testing.assert_array_equal(masses, np.full(5, 2.0))


def test_missing_header_is_inconsistent(tmp_path) -> None:
    with h5py.File(tmp_path / "bare.hdf5", "w") as handle:
        handle.create_group("PartType0")
    codec = FrameCodec(FieldRegistry())
    codec.open(tmp_path / "bare", create=False)
    with pytest.raises(InconsistentCheckpointError, match="no Header"):
        codec.read_frame()
    codec.close()

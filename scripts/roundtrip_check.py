#!/usr/bin/env python3
"""Write a multi-frame sequence over two particle types and read it back.

Time runs from 0 to 1 over the requested number of frames.  Every loaded
frame is compared with the values regenerated for its time stamp.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from snapio import FieldRegistry, ParticleType, SnapshotSeries  # noqa: E402
from snapio.config_utils import configure_logging  # noqa: E402

TOLERANCE = 2.0e-4


def make_arrays(n: int) -> Dict[str, np.ndarray]:
    return {
        "InternalEnergy": np.zeros(n, dtype=np.float32),
        "Masses": np.zeros(n, dtype=np.float32),
        "ParticleIDs": np.zeros(n, dtype=np.int32),
        "Velocities": np.zeros((n, 3), dtype=np.float32),
        "Coordinates": np.zeros((n, 3), dtype=np.float32),
    }


def build_registry(n: int, arrays: Dict[str, np.ndarray]) -> FieldRegistry:
    registry = FieldRegistry()
    registry.set_count(ParticleType.GAS, n)
    registry.register_float(ParticleType.GAS, "InternalEnergy", arrays["InternalEnergy"])
    registry.register_float(ParticleType.GAS, "Masses", arrays["Masses"])
    registry.register_integer(ParticleType.GAS, "ParticleIDs", arrays["ParticleIDs"])
    registry.register_vector(ParticleType.GAS, "Velocities", arrays["Velocities"])
    registry.register_geometry(ParticleType.GAS, "Coordinates", arrays["Coordinates"])

    registry.set_count(ParticleType.BULGE, max(n // 2, 1))
    registry.register_float(ParticleType.BULGE, "Masses", arrays["Masses"])
    registry.register_vector(ParticleType.BULGE, "Velocities", arrays["Velocities"])
    registry.register_geometry(ParticleType.BULGE, "Coordinates", arrays["Coordinates"])
    return registry


def fill(arrays: Dict[str, np.ndarray], time: float) -> None:
    n = arrays["Masses"].shape[0]
    p = np.ones(n) if n <= 1 else 1.0 + np.arange(n) / float(n - 1)
    s = (1.0 + time) * p
    direction = np.array([1.0, 2.0, 3.0]) / 10.0
    arrays["InternalEnergy"][:] = s
    arrays["Masses"][:] = 2.0 * s
    arrays["ParticleIDs"][:] = np.arange(n)
    arrays["Coordinates"][:] = np.outer(s, direction)
    arrays["Velocities"][:] = np.outer(2.0 * s, direction)


def matches(expected: Dict[str, np.ndarray], actual: Dict[str, np.ndarray]) -> bool:
    return all(np.allclose(expected[key], actual[key], atol=TOLERANCE, rtol=0.0) for key in expected)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--particles", type=int, default=10)
    ap.add_argument("--frames", type=int, default=1)
    ap.add_argument("--save-file", type=Path, default=Path("./data/roundtrip"))
    args = ap.parse_args(argv)
    if args.particles < 1 or args.frames < 1:
        ap.error("--particles and --frames must be positive")

    configure_logging(logging.WARNING)
    args.save_file.parent.mkdir(parents=True, exist_ok=True)
    dt = 1.0 / (args.frames - 1) if args.frames > 1 else 0.0

    written = make_arrays(args.particles)
    with SnapshotSeries(build_registry(args.particles, written)).open(args.save_file) as series:
        for frame in range(args.frames):
            time = frame * dt
            fill(written, time)
            series.save_frame(time)
            print(f"   Saved frame {frame + 1} at time {time:.3f}")

    status = 0
    loaded = make_arrays(args.particles)
    with SnapshotSeries(build_registry(args.particles, loaded)).open(args.save_file) as series:
        for time in series.iter_frames():
            fill(written, time)
            ok = matches(written, loaded)
            print(f"  Loaded {args.particles} particles at time {time:.3f}: {'passed' if ok else 'failed'}")
            if not ok:
                status = 1
    return status


if __name__ == "__main__":
    raise SystemExit(main())

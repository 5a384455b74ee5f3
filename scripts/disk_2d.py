#!/usr/bin/env python3
"""Write a single-frame 2D disk initial condition (Noh-style implosion).

Particles on a square lattice inside a unit-diameter disk move radially
inward at unit speed.  Arrays are sized for the full lattice and the gas
count is trimmed to the particles actually inside the disk before saving.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from snapio import FieldRegistry, ParticleType, SnapshotSeries  # noqa: E402
from snapio.config_utils import configure_logging, load_settings  # noqa: E402

NEIGHBOURS = 14


def fill_disk(n1d: int, loc, density, energy, mass, pid, hsml, vel) -> int:
    """Fill the leading rows of the arrays; return the number of particles."""

    diameter = 1.0
    radius = 0.5 * diameter
    dx = diameter / float(n1d - 1)
    axis = -radius + dx * np.arange(n1d)
    x, y = np.meshgrid(axis, axis, indexing="ij")
    x = x.ravel()
    y = y.ravel()
    r = np.hypot(x, y)
    inside = r <= radius
    n = int(inside.sum())
    x, y, r = x[inside], y[inside], r[inside]
    with np.errstate(invalid="ignore", divide="ignore"):
        vx = np.where(r > 0.0, -x / r, 0.0)
        vy = np.where(r > 0.0, -y / r, 0.0)

    loc[:n] = np.column_stack([x, y, np.zeros(n)])
    density[:n] = 1.0
    energy[:n] = 0.0  # zero initial pressure
    mass[:n] = 1.0e-4
    pid[:n] = np.arange(n, dtype=np.int32)
    hsml[:n] = NEIGHBOURS * dx
    vel[:n] = np.column_stack([vx, vy, np.zeros(n)])
    return n


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--n1d", type=int, default=128, help="Lattice points per axis (>= 3)")
    ap.add_argument("--save-file", type=Path, default=Path("./data/disk_2d"), help="Base name of the output")
    ap.add_argument("--settings", type=Path, default=None, help="Optional YAML settings file")
    ap.add_argument("--override", action="append", default=[], help="Settings override path=value")
    args = ap.parse_args(argv)
    if args.n1d < 3:
        ap.error("--n1d must be at least 3")

    configure_logging(logging.INFO)
    settings = load_settings(args.settings, args.override)
    args.save_file.parent.mkdir(parents=True, exist_ok=True)

    n2d = args.n1d * args.n1d
    loc = np.zeros((n2d, 3), dtype=np.float32)
    density = np.zeros(n2d, dtype=np.float32)
    energy = np.zeros(n2d, dtype=np.float32)
    mass = np.zeros(n2d, dtype=np.float32)
    pid = np.zeros(n2d, dtype=np.int32)
    hsml = np.zeros(n2d, dtype=np.float32)
    vel = np.zeros((n2d, 3), dtype=np.float32)

    registry = FieldRegistry()
    gas = ParticleType.GAS
    registry.set_count(gas, n2d)  # reserved
    registry.register_geometry(gas, "Coordinates", loc)
    registry.register_float(gas, "Density", density)
    registry.register_float(gas, "InternalEnergy", energy)
    registry.register_float(gas, "Masses", mass)
    registry.register_integer(gas, "ParticleIDs", pid)
    registry.register_float(gas, "SmoothingLength", hsml)
    registry.register_vector(gas, "Velocities", vel)

    n = fill_disk(args.n1d, loc, density, energy, mass, pid, hsml, vel)
    registry.set_count(gas, n)  # actual

    with SnapshotSeries(registry, settings).open(args.save_file) as series:
        path = series.save_frame(0.0)
    print(f"Saved {n} disk particles to {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""I/O helpers for ring-polymer configuration files and run artifacts.

Every bead index has its own configuration file named `cnfKK.TAG`, where
`KK` is the two-digit 1-based bead index and `TAG` is `inp` for the starting
configuration, a block number (or `sav`) for checkpoints and `out` for the
final configuration. Each file holds the particle count, the box length and
one `x y z` line per particle in simulation units.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pimc_ring.errors import InvalidInitialConfiguration

FloatArray = NDArray[np.float64]

INPUT_TAG = "inp"
OUTPUT_TAG = "out"
SAVE_TAG = "sav"


def _ensure_parent(path: Path) -> None:
    """Create parent directories for a file path."""
    path.parent.mkdir(parents=True, exist_ok=True)


def checkpoint_tag(block: int, nblock: int) -> str:
    """Return the file tag used for the checkpoint after `block`."""
    if nblock < 1000:
        return f"{block:03d}"
    return SAVE_TAG


def read_cnf_atoms(path: str | Path) -> tuple[int, float, FloatArray]:
    """Read one configuration file and return `(n, box, positions)`."""
    target = Path(path)
    lines = [line for line in target.read_text().splitlines() if line.strip()]
    if len(lines) < 2:
        raise InvalidInitialConfiguration(f"{target}: missing particle count or box")

    try:
        n = int(lines[0].split()[0])
        box = float(lines[1].split()[0])
    except (ValueError, IndexError) as exc:
        raise InvalidInitialConfiguration(f"{target}: malformed header") from exc
    if n < 1:
        raise InvalidInitialConfiguration(f"{target}: particle count must be >= 1")
    if not np.isfinite(box) or box <= 0.0:
        raise InvalidInitialConfiguration(f"{target}: box must be positive")
    if len(lines) < n + 2:
        raise InvalidInitialConfiguration(
            f"{target}: expected {n} position lines, found {len(lines) - 2}"
        )

    try:
        positions = np.array(
            [[float(value) for value in line.split()[:3]] for line in lines[2 : n + 2]],
            dtype=np.float64,
        )
    except ValueError as exc:
        raise InvalidInitialConfiguration(f"{target}: malformed position line") from exc
    if positions.shape != (n, 3):
        raise InvalidInitialConfiguration(f"{target}: each position needs 3 components")
    return n, box, positions


def write_cnf_atoms(path: str | Path, box: float, positions: ArrayLike) -> Path:
    """Write one configuration file in simulation units."""
    target = Path(path)
    _ensure_parent(target)
    arr = np.asarray(positions, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError("positions must have shape (n, 3)")

    rows = [f"{arr.shape[0]:15d}", f"{box:15.8f}"]
    rows.extend(f"{x:15.8f}{y:15.8f}{z:15.8f}" for x, y, z in arr)
    target.write_text("\n".join(rows) + "\n")
    return target


class ConfigurationStore:
    """Directory holding one configuration file per bead index."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, bead: int, tag: str) -> Path:
        """Return the file path of 0-based `bead` for a given tag."""
        return self.directory / f"cnf{bead + 1:02d}.{tag}"

    def read_ring_polymers(
        self,
        n_beads: int,
        tag: str = INPUT_TAG,
    ) -> tuple[float, FloatArray]:
        """Read every bead file and return `(box, positions)`.

        Positions come back in simulation units with shape `(n, 3, p)`. All
        files must agree with the first one on particle count and box length.
        """
        n_ref, box_ref, first = read_cnf_atoms(self.path_for(0, tag))
        positions = np.empty((n_ref, 3, n_beads), dtype=np.float64)
        positions[:, :, 0] = first

        for k in range(1, n_beads):
            path = self.path_for(k, tag)
            n, box, bead_positions = read_cnf_atoms(path)
            if n != n_ref:
                raise InvalidInitialConfiguration(
                    f"{path}: particle count {n} differs from {n_ref} in bead 1"
                )
            if not np.isclose(box, box_ref, rtol=1e-10, atol=0.0):
                raise InvalidInitialConfiguration(
                    f"{path}: box length {box} differs from {box_ref} in bead 1"
                )
            positions[:, :, k] = bead_positions
        return box_ref, positions

    def write_ring_polymers(
        self,
        positions: ArrayLike,
        box: float,
        tag: str,
    ) -> list[Path]:
        """Write one file per bead from `(n, 3, p)` positions in simulation units."""
        arr = np.asarray(positions, dtype=np.float64)
        if arr.ndim != 3 or arr.shape[1] != 3:
            raise ValueError("positions must have shape (n, 3, p)")
        return [
            write_cnf_atoms(self.path_for(k, tag), box, arr[:, :, k])
            for k in range(arr.shape[2])
        ]


def save_json(data: dict[str, Any], path: str | Path) -> Path:
    """Serialize a mapping to a JSON file with stable formatting."""
    target = Path(path)
    _ensure_parent(target)
    target.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n")
    return target


def load_json(path: str | Path) -> dict[str, Any]:
    """Load a JSON object from disk."""
    return json.loads(Path(path).read_text())

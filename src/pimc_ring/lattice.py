"""Starting configurations for ring-polymer simulations."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pimc_ring.config import MAX_BEADS, MIN_BEADS

FloatArray = NDArray[np.float64]

# Offsets of the four atoms of an fcc unit cell, in cell units.
FCC_BASIS = np.array(
    [
        [0.25, 0.25, 0.25],
        [0.25, 0.75, 0.75],
        [0.75, 0.75, 0.25],
        [0.75, 0.25, 0.75],
    ],
    dtype=np.float64,
)


def fcc_positions(n: int, box: float) -> FloatArray:
    """Place `n = 4 * nc**3` atoms on an fcc lattice centred in the box.

    Returns positions with shape `(n, 3)` in simulation units, inside
    [-box/2, box/2).
    """
    if box <= 0.0:
        raise ValueError("box must be strictly positive")
    nc = int(round((n / 4) ** (1.0 / 3.0)))
    if n < 4 or 4 * nc**3 != n:
        raise ValueError(f"n must be 4*nc**3 for an fcc lattice, got {n}")

    cell = box / nc
    cells = np.array(
        [(ix, iy, iz) for ix in range(nc) for iy in range(nc) for iz in range(nc)],
        dtype=np.float64,
    )
    sites = (cells[:, np.newaxis, :] + FCC_BASIS[np.newaxis, :, :]).reshape(-1, 3)
    return sites * cell - 0.5 * box


def initial_ring_polymers(
    n: int,
    density: float,
    n_beads: int,
    *,
    jitter: float = 0.0,
    rng: np.random.Generator | None = None,
) -> tuple[float, FloatArray]:
    """Build `n_beads` copies of an fcc lattice as collapsed ring polymers.

    Every bead of a particle starts on the particle's lattice site. A
    positive `jitter` adds an independent uniform displacement in
    (-jitter, jitter) to every bead coordinate, which gives the springs a
    non-zero starting energy.

    Returns:
        `(box, positions)` with positions shaped `(n, 3, n_beads)` in
        simulation units.
    """
    if density <= 0.0:
        raise ValueError("density must be strictly positive")
    if not MIN_BEADS <= n_beads <= MAX_BEADS:
        raise ValueError(f"n_beads must lie between {MIN_BEADS} and {MAX_BEADS}")
    if jitter < 0.0:
        raise ValueError("jitter must be non-negative")

    box = (n / density) ** (1.0 / 3.0)
    sites = fcc_positions(n, box)
    positions = np.repeat(sites[:, :, np.newaxis], n_beads, axis=2)

    if jitter > 0.0:
        if rng is None:
            raise ValueError("rng is required when jitter > 0")
        positions = positions + rng.uniform(-jitter, jitter, size=positions.shape)
        positions = positions - box * np.floor(positions / box + 0.5)
    return float(box), positions

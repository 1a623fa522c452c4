"""Shared utility helpers for seeding, periodic wrapping and timestamps."""

from __future__ import annotations

from datetime import datetime, timezone

import numpy as np
from numpy.typing import ArrayLike, NDArray

FloatArray = NDArray[np.float64]


def make_rng(seed: int) -> np.random.Generator:
    """Build the run's single NumPy RNG stream backed by PCG64."""
    if isinstance(seed, bool) or seed < 0:
        raise ValueError("seed must be a non-negative integer")
    return np.random.Generator(np.random.PCG64(seed))


def wrap_box_units(r: ArrayLike) -> FloatArray:
    """Map box-scaled coordinates into the primary cell [-0.5, 0.5).

    Values already inside the cell are returned unchanged, so the map is
    idempotent.
    """
    values = np.asarray(r, dtype=np.float64)
    inside = (values >= -0.5) & (values < 0.5)
    return np.where(inside, values, values - np.floor(values + 0.5))


def minimum_image(rij: ArrayLike) -> FloatArray:
    """Return the nearest periodic image of box-scaled separation vectors."""
    values = np.asarray(rij, dtype=np.float64)
    return values - np.rint(values)


def periodic_index(index: int, size: int) -> int:
    """Map an integer index to `[0, size)` using periodic wrapping."""
    if size <= 0:
        raise ValueError("size must be strictly positive")
    return index % size


def bead_neighbours(k: int, n_beads: int) -> tuple[int, int]:
    """Return the previous and next bead of bead `k` on a closed ring."""
    return periodic_index(k - 1, n_beads), periodic_index(k + 1, n_beads)


def utc_timestamp() -> str:
    """Return a UTC ISO-8601 timestamp for metadata and logging."""
    return datetime.now(timezone.utc).isoformat()

"""Mutable configuration state of a ring-polymer system."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pimc_ring.config import MAX_BEADS, MIN_BEADS
from pimc_ring.errors import InvalidConfiguration
from pimc_ring.utils import wrap_box_units

FloatArray = NDArray[np.float64]


@dataclass(slots=True)
class RingPolymerState:
    """Positions of every bead plus the running potential-energy totals.

    Attributes:
        positions: Box-scaled coordinates with shape `(n, 3, p)`, indexed by
            particle, Cartesian axis and bead. Every coordinate lies in
            [-0.5, 0.5).
        box: Cubic box edge length in simulation units.
        k_spring: Quantum spring constant.
        pot_cl: Running classical potential energy of the whole system.
        pot_qu: Running quantum spring energy of the whole system.
    """

    positions: FloatArray
    box: float
    k_spring: float
    pot_cl: float = 0.0
    pot_qu: float = 0.0

    def __post_init__(self) -> None:
        """Validate geometry and normalise the position array."""
        if not np.isfinite(self.box) or self.box <= 0.0:
            raise InvalidConfiguration("box must be a finite strictly positive float")
        if not np.isfinite(self.k_spring) or self.k_spring <= 0.0:
            raise InvalidConfiguration("k_spring must be a finite strictly positive float")

        positions = np.asarray(self.positions, dtype=np.float64)
        if positions.ndim != 3 or positions.shape[1] != 3:
            raise InvalidConfiguration("positions must have shape (n, 3, p)")
        if positions.shape[0] < 1:
            raise InvalidConfiguration("positions must hold at least one particle")
        if not MIN_BEADS <= positions.shape[2] <= MAX_BEADS:
            raise InvalidConfiguration(
                f"p must lie between {MIN_BEADS} and {MAX_BEADS}, "
                f"got {positions.shape[2]}"
            )
        self.positions = wrap_box_units(positions)

    @classmethod
    def from_physical(
        cls,
        positions: ArrayLike,
        box: float,
        k_spring: float,
    ) -> RingPolymerState:
        """Build a state from positions in simulation units."""
        scaled = np.asarray(positions, dtype=np.float64) / box
        return cls(positions=scaled, box=float(box), k_spring=float(k_spring))

    @property
    def n(self) -> int:
        """Number of particles (ring polymers)."""
        return int(self.positions.shape[0])

    @property
    def p(self) -> int:
        """Number of beads per ring polymer."""
        return int(self.positions.shape[2])

    @property
    def density(self) -> float:
        """Number density n / box^3."""
        return self.n / self.box**3

    def physical_positions(self) -> FloatArray:
        """Return a copy of all positions in simulation units."""
        return self.positions * self.box

    def accept(
        self,
        i: int,
        k: int,
        trial: FloatArray,
        delta_cl: float,
        delta_qu: float,
    ) -> None:
        """Commit an accepted trial position and its energy changes."""
        self.positions[i, :, k] = trial
        self.pot_cl += delta_cl
        self.pot_qu += delta_qu

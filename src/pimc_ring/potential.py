"""Interaction models for ring-polymer PIMC.

An interaction model supplies two kinds of energy:

* the classical pair potential acting between different particles that share
  the same bead index (imaginary-time slice), and
* the quantum spring potential acting between adjacent beads of the same
  particle, with the ring closed so that bead P-1 couples back to bead 0.

Positions are always passed in box-scaled units with shape `(n, 3, p)`.
Each energy is available for the whole system and for a single bead; the
single-bead forms are what the sampler uses for incremental updates.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import inf, pi
from typing import Literal, Protocol

import numpy as np
from numpy.typing import NDArray

from pimc_ring.utils import bead_neighbours, minimum_image

FloatArray = NDArray[np.float64]
Partners = Literal["all", "above"]


@dataclass(frozen=True, slots=True)
class PotentialResult:
    """Energy paired with a hard-core overlap flag.

    An overlapping result stands for infinite energy; its `pot` is `inf` and
    must never be added into running totals.
    """

    pot: float
    overlap: bool = False

    def __add__(self, other: PotentialResult) -> PotentialResult:
        return PotentialResult(
            pot=self.pot + other.pot,
            overlap=self.overlap or other.overlap,
        )


OVERLAP = PotentialResult(pot=inf, overlap=True)


class InteractionModel(Protocol):
    """Energy contract consumed by the sampler.

    Models may also provide `describe() -> list[str]`, returning header lines
    for the run report. It is optional and looked up with `getattr`.
    """

    def classical_total(
        self,
        positions: FloatArray,
        box: float,
        r_cut: float,
    ) -> PotentialResult:
        """Classical energy of all pairs at every bead index."""
        ...

    def classical_bead(
        self,
        ri: FloatArray,
        i: int,
        k: int,
        positions: FloatArray,
        box: float,
        r_cut: float,
        partners: Partners = "all",
    ) -> PotentialResult:
        """Classical energy of bead `k` of particle `i` placed at `ri`."""
        ...

    def quantum_total(
        self,
        positions: FloatArray,
        box: float,
        k_spring: float,
    ) -> float:
        """Spring energy of every ring link."""
        ...

    def quantum_bead(
        self,
        ri: FloatArray,
        i: int,
        k: int,
        positions: FloatArray,
        box: float,
        k_spring: float,
    ) -> float:
        """Spring energy of the two links touching bead `k` of particle `i`."""
        ...

    def long_range_correction(self, density: float, r_cut: float) -> float:
        """Tail correction per particle for pairs beyond the cutoff."""
        ...


@dataclass(frozen=True, slots=True)
class LennardJonesModel:
    """Cut (not shifted) Lennard-Jones atoms in reduced units.

    Diameter sigma and well depth epsilon are both 1. The classical energy of
    every bead index carries a factor 1/P so that the P time slices together
    represent one classical system.

    Attributes:
        sr2_overlap: Overlap threshold on (sigma/r)^2; a pair with a larger
            value is treated as a hard-core overlap.
    """

    sr2_overlap: float = 1.77

    def __post_init__(self) -> None:
        """Validate the overlap threshold."""
        if not np.isfinite(self.sr2_overlap) or self.sr2_overlap <= 0.0:
            raise ValueError("sr2_overlap must be a finite strictly positive float")

    def describe(self) -> list[str]:
        """Return report lines describing the model."""
        return [
            "Lennard-Jones potential",
            "Cut (but not shifted)",
            "Diameter, sigma = 1",
            "Well depth, epsilon = 1",
            f"Overlap threshold (sigma/r)**2 = {self.sr2_overlap:.5f}",
        ]

    def _pair_sum(
        self,
        rij_sq: FloatArray,
        box: float,
        r_cut: float,
        n_beads: int,
    ) -> PotentialResult:
        """Sum LJ energies over box-scaled squared pair separations."""
        r_cut_box_sq = (r_cut / box) ** 2
        in_range = rij_sq[rij_sq < r_cut_box_sq]
        if in_range.size == 0:
            return PotentialResult(pot=0.0)

        sr2 = 1.0 / (in_range * box**2)
        if np.any(sr2 > self.sr2_overlap):
            return OVERLAP

        sr6 = sr2**3
        pot = 4.0 * float(np.sum(sr6**2 - sr6)) / float(n_beads)
        return PotentialResult(pot=pot)

    def classical_total(
        self,
        positions: FloatArray,
        box: float,
        r_cut: float,
    ) -> PotentialResult:
        """Sum the pair potential over all i < j at each bead index."""
        n, _, n_beads = positions.shape
        upper_i, upper_j = np.triu_indices(n, k=1)

        total = PotentialResult(pot=0.0)
        for k in range(n_beads):
            slice_k = positions[:, :, k]
            rij = minimum_image(slice_k[upper_i] - slice_k[upper_j])
            total = total + self._pair_sum(
                np.sum(rij**2, axis=1), box, r_cut, n_beads
            )
            if total.overlap:
                return OVERLAP
        return total

    def classical_bead(
        self,
        ri: FloatArray,
        i: int,
        k: int,
        positions: FloatArray,
        box: float,
        r_cut: float,
        partners: Partners = "all",
    ) -> PotentialResult:
        """Interaction of one bead with the other particles at bead index k.

        With `partners="above"` only particles j > i are included, so summing
        over every i counts each pair exactly once.
        """
        n, _, n_beads = positions.shape
        if partners == "all":
            mask = np.arange(n) != i
        elif partners == "above":
            mask = np.arange(n) > i
        else:
            raise ValueError("partners must be 'all' or 'above'")

        rij = minimum_image(ri - positions[mask, :, k])
        return self._pair_sum(np.sum(rij**2, axis=1), box, r_cut, n_beads)

    def quantum_total(
        self,
        positions: FloatArray,
        box: float,
        k_spring: float,
    ) -> float:
        """Harmonic spring energy over every link (k, k+1 mod P) of each ring."""
        links = minimum_image(positions - np.roll(positions, -1, axis=2))
        return 0.5 * k_spring * box**2 * float(np.sum(links**2))

    def quantum_bead(
        self,
        ri: FloatArray,
        i: int,
        k: int,
        positions: FloatArray,
        box: float,
        k_spring: float,
    ) -> float:
        """Spring energy of bead k with beads k-1 and k+1 of the same ring.

        For P = 2 both neighbours are the same bead, matching the two links
        counted by `quantum_total`.
        """
        k_prev, k_next = bead_neighbours(k, positions.shape[2])
        r_prev = minimum_image(ri - positions[i, :, k_prev])
        r_next = minimum_image(ri - positions[i, :, k_next])
        rij_sq = float(np.sum(r_prev**2) + np.sum(r_next**2))
        return 0.5 * k_spring * box**2 * rij_sq

    def long_range_correction(self, density: float, r_cut: float) -> float:
        """Potential energy per atom beyond the cutoff, g(r) = 1 assumed."""
        sr3 = 1.0 / r_cut**3
        sr9 = sr3**3
        return pi * ((8.0 / 9.0) * sr9 - (8.0 / 3.0) * sr3) * density

"""Plotting utilities for block averages and ring-polymer snapshots."""

from __future__ import annotations

from collections.abc import Sequence

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from pimc_ring.averages import BlockResult
from pimc_ring.state import RingPolymerState
from pimc_ring.utils import minimum_image


def plot_block_averages(
    blocks: Sequence[BlockResult],
    names: Sequence[str],
    *,
    title: str = "Block averages",
) -> Figure:
    """Plot every observable's block averages against block number."""
    if len(blocks) == 0:
        raise ValueError("blocks must not be empty")

    block_ids = np.array([block.block for block in blocks], dtype=np.int64)
    values = np.vstack([block.averages for block in blocks])
    if values.shape[1] != len(names):
        raise ValueError("names must match the number of observables")

    fig, axes = plt.subplots(
        len(names),
        1,
        figsize=(8.0, 2.6 * len(names)),
        sharex=True,
        squeeze=False,
    )
    for idx, name in enumerate(names):
        ax = axes[idx, 0]
        ax.plot(block_ids, values[:, idx], marker="o", markersize=3, linewidth=1.2)
        ax.axhline(float(np.mean(values[:, idx])), linestyle="--", linewidth=1.0)
        ax.set_ylabel(name)
        ax.grid(alpha=0.25)

    axes[-1, 0].set_xlabel("Block")
    axes[0, 0].set_title(title)
    fig.tight_layout()
    return fig


def plot_ring_polymer(
    state: RingPolymerState,
    particle: int,
    *,
    title: str | None = None,
) -> Figure:
    """Plot the xy projection of one closed ring polymer.

    Beads are unfolded relative to bead 0 with the minimum image convention
    so that a ring straddling the box boundary is drawn in one piece.
    """
    if not 0 <= particle < state.n:
        raise ValueError(f"particle must lie in [0, {state.n})")

    ring = state.positions[particle]
    unfolded = ring[:, 0:1] + minimum_image(ring - ring[:, 0:1])
    xy = unfolded[:2] * state.box
    closed = np.concatenate([xy, xy[:, :1]], axis=1)

    fig, ax = plt.subplots(figsize=(5.0, 5.0))
    ax.plot(closed[0], closed[1], linewidth=1.0)
    ax.scatter(xy[0], xy[1], s=20, zorder=3)
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_aspect("equal")
    ax.set_title(title or f"Ring polymer {particle}")
    ax.grid(alpha=0.25)
    fig.tight_layout()
    return fig

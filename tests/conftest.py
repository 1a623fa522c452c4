"""Shared pytest fixtures and test configuration."""

from __future__ import annotations

import matplotlib
import numpy as np
import pytest

from pimc_ring import (
    LennardJonesModel,
    RingPolymerState,
    RunConfig,
    SamplerParams,
    SystemParams,
    initial_ring_polymers,
)

# Ensure tests never require an interactive display backend.
matplotlib.use("Agg", force=True)


@pytest.fixture
def rng() -> np.random.Generator:
    """Provide a deterministic RNG for repeatable numeric tests."""
    return np.random.Generator(np.random.PCG64(20240207))


@pytest.fixture
def model() -> LennardJonesModel:
    """Default Lennard-Jones interaction model."""
    return LennardJonesModel()


@pytest.fixture
def small_config() -> RunConfig:
    """Compact liquid-like run: 32 atoms, 3 beads, short blocks."""
    return RunConfig(
        system=SystemParams(temperature=1.0, r_cut=2.2, n_beads=3, lambda_=0.1),
        sampler=SamplerParams(nblock=2, nstep=5, dr_max=0.15, seed=2024),
        run_name="small",
    )


@pytest.fixture
def small_state(small_config: RunConfig, rng: np.random.Generator) -> RingPolymerState:
    """Jittered fcc ring polymers matching `small_config`."""
    box, positions = initial_ring_polymers(
        32,
        0.3,
        small_config.system.n_beads,
        jitter=0.05,
        rng=rng,
    )
    return RingPolymerState.from_physical(positions, box, small_config.system.k_spring)

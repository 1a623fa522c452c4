"""Metropolis sampler for ring-polymer path-integral Monte Carlo.

One step attempts a single-bead displacement for every bead of every
particle. The acceptance test combines the change in classical pair energy
(between particles at the same bead index) with the change in quantum spring
energy (between neighbouring beads of the same ring). Accepted moves update
the running energy totals incrementally; the totals are recomputed from
scratch at the end of the run as a self-check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from math import exp
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pimc_ring.averages import BlockAverages, BlockResult, RunAverages
from pimc_ring.config import RunConfig
from pimc_ring.errors import (
    ConfigurationCorruption,
    FinalConsistencyViolation,
    InvalidConfiguration,
    InvalidInitialConfiguration,
)
from pimc_ring.io import OUTPUT_TAG, ConfigurationStore, checkpoint_tag
from pimc_ring.potential import InteractionModel, LennardJonesModel
from pimc_ring.state import RingPolymerState
from pimc_ring.utils import make_rng, wrap_box_units

FloatArray = NDArray[np.float64]

LOGGER = logging.getLogger(__name__)

# exp(-75) is far below the resolution of a uniform draw.
EXPONENT_GUARD = 75.0

OBSERVABLE_NAMES = ("Move ratio", "E/N (cut)", "E/N (full)")


@dataclass(frozen=True, slots=True)
class EnergySummary:
    """Energies per particle derived from the running totals."""

    pot_cl: float
    pot_qu: float
    en_cut: float
    en_full: float

    def as_dict(self) -> dict[str, float]:
        """Return a JSON-compatible mapping."""
        return {
            "pot_cl": self.pot_cl,
            "pot_qu": self.pot_qu,
            "en_cut": self.en_cut,
            "en_full": self.en_full,
        }


@dataclass(frozen=True, slots=True)
class PIMCRun:
    """Result of one complete run.

    Attributes:
        state: Final configuration state (totals taken from the recomputation).
        initial: Energies of the starting configuration.
        final: Energies from the incrementally tracked totals.
        final_check: Energies from the end-of-run recomputation.
        blocks: Per-block observable averages.
        averages: Run averages of the per-step observables.
        moves_accepted: Accepted single-bead moves over the whole run.
        moves_attempted: Attempted single-bead moves over the whole run.
        metadata: Run metadata for reproducibility and diagnostics.
    """

    state: RingPolymerState
    initial: EnergySummary
    final: EnergySummary
    final_check: EnergySummary
    blocks: list[BlockResult]
    averages: RunAverages
    moves_accepted: int
    moves_attempted: int
    metadata: dict[str, Any]

    @property
    def acceptance_rate(self) -> float:
        """Accepted fraction of all attempted single-bead moves."""
        if self.moves_attempted == 0:
            return 0.0
        return self.moves_accepted / float(self.moves_attempted)


def metropolis(delta: float, rng: np.random.Generator) -> bool:
    """Apply the Metropolis test to a reduced energy change `delta`.

    Downhill (or flat) moves are accepted and very uphill moves rejected
    without consuming a random number; only the intermediate range draws
    from `rng`.
    """
    if delta <= 0.0:
        return True
    if delta > EXPONENT_GUARD:
        return False
    return exp(-delta) > rng.random()


def calculate(
    state: RingPolymerState,
    *,
    temperature: float,
    r_cut: float,
    model: InteractionModel,
) -> EnergySummary:
    """Derive the energy per particle from the running totals.

    The spring energy enters with a negative sign: the kinetic estimator
    is 1.5 n P T minus the total spring energy.
    """
    kinetic = 1.5 * state.n * state.p * temperature
    en_cut = (kinetic + state.pot_cl - state.pot_qu) / float(state.n)
    en_full = en_cut + model.long_range_correction(state.density, r_cut)
    return EnergySummary(
        pot_cl=state.pot_cl,
        pot_qu=state.pot_qu,
        en_cut=en_cut,
        en_full=en_full,
    )


def _log_energies(title: str, summary: EnergySummary) -> None:
    LOGGER.info(title)
    LOGGER.info("%-40s%15.5f", "E/N (cut)", summary.en_cut)
    LOGGER.info("%-40s%15.5f", "E/N (full)", summary.en_full)


def initialize_energies(
    state: RingPolymerState,
    model: InteractionModel,
    r_cut: float,
) -> None:
    """Set the running totals from a full evaluation of the configuration."""
    if r_cut / state.box > 0.5:
        raise InvalidConfiguration(
            f"r_cut={r_cut} is too large for box={state.box}; need r_cut < box/2"
        )

    system_cl = model.classical_total(state.positions, state.box, r_cut)
    if system_cl.overlap:
        LOGGER.error("Overlap in initial configuration")
        raise InvalidInitialConfiguration("overlap in initial configuration")
    state.pot_cl = system_cl.pot
    state.pot_qu = model.quantum_total(state.positions, state.box, state.k_spring)


def attempt_bead_move(
    state: RingPolymerState,
    model: InteractionModel,
    i: int,
    k: int,
    displacement: FloatArray,
    *,
    temperature: float,
    r_cut: float,
    rng: np.random.Generator,
) -> bool:
    """Try to displace bead `k` of particle `i` by a box-scaled vector.

    Returns True when the move is accepted; the state is only modified in
    that case.
    """
    rik = state.positions[i, :, k].copy()
    atom_cl_old = model.classical_bead(rik, i, k, state.positions, state.box, r_cut)
    if atom_cl_old.overlap:
        LOGGER.error("Overlap in current configuration (particle %d, bead %d)", i, k)
        raise ConfigurationCorruption(
            f"overlap in current configuration at particle {i}, bead {k}"
        )
    atom_qu_old = model.quantum_bead(
        rik, i, k, state.positions, state.box, state.k_spring
    )

    trial = wrap_box_units(rik + displacement)
    atom_cl_new = model.classical_bead(trial, i, k, state.positions, state.box, r_cut)
    if atom_cl_new.overlap:
        return False

    atom_qu_new = model.quantum_bead(
        trial, i, k, state.positions, state.box, state.k_spring
    )
    delta = (
        atom_cl_new.pot + atom_qu_new - atom_cl_old.pot - atom_qu_old
    ) / temperature
    if not metropolis(delta, rng):
        return False

    state.accept(
        i,
        k,
        trial,
        delta_cl=atom_cl_new.pot - atom_cl_old.pot,
        delta_qu=atom_qu_new - atom_qu_old,
    )
    return True


def sweep(
    state: RingPolymerState,
    model: InteractionModel,
    *,
    temperature: float,
    r_cut: float,
    dr_max: float,
    rng: np.random.Generator,
) -> int:
    """Attempt one move per bead of every particle and return the accepted count."""
    scale = dr_max / state.box
    moves = 0
    for i in range(state.n):
        for k in range(state.p):
            zeta = rng.uniform(-1.0, 1.0, size=3)
            if attempt_bead_move(
                state,
                model,
                i,
                k,
                zeta * scale,
                temperature=temperature,
                r_cut=r_cut,
                rng=rng,
            ):
                moves += 1
    return moves


def _final_check(
    state: RingPolymerState,
    model: InteractionModel,
    config: RunConfig,
) -> tuple[float, float]:
    """Recompute both totals and compare them with the tracked values."""
    r_cut = config.system.r_cut
    system_cl = model.classical_total(state.positions, state.box, r_cut)
    if system_cl.overlap:
        LOGGER.error("Overlap in final configuration")
        raise ConfigurationCorruption("overlap in final configuration")
    pot_qu = model.quantum_total(state.positions, state.box, state.k_spring)

    tracked = (state.pot_cl, state.pot_qu)
    recomputed = (system_cl.pot, pot_qu)
    rtol = config.sampler.consistency_rtol
    atol = config.sampler.consistency_atol
    consistent = bool(np.allclose(tracked, recomputed, rtol=rtol, atol=atol))
    if not consistent:
        message = (
            "tracked energies (cl={:.10g}, qu={:.10g}) disagree with "
            "recomputed energies (cl={:.10g}, qu={:.10g})"
        ).format(*tracked, *recomputed)
        if config.sampler.strict_consistency:
            LOGGER.error(message)
            raise FinalConsistencyViolation(
                message, tracked=tracked, recomputed=recomputed
            )
        LOGGER.warning(message)
    return recomputed


def run_pimc(
    config: RunConfig,
    state: RingPolymerState,
    model: InteractionModel | None = None,
    *,
    store: ConfigurationStore | None = None,
    accumulator: BlockAverages | None = None,
    rng: np.random.Generator | None = None,
    progress: bool = False,
) -> PIMCRun:
    """Run the full block/step Metropolis loop on `state`.

    `state` is modified in place. When `store` is given, the configuration
    is checkpointed after every block and written with the `out` tag at the
    end of the run.
    """
    if state.p != config.system.n_beads:
        raise InvalidConfiguration(
            f"state has {state.p} beads but the run expects p={config.system.n_beads}"
        )
    if not np.isclose(state.k_spring, config.system.k_spring):
        raise InvalidConfiguration("state k_spring does not match run parameters")

    if model is None:
        model = LennardJonesModel()
    if rng is None:
        rng = make_rng(config.sampler.seed)
    if accumulator is None:
        accumulator = BlockAverages(OBSERVABLE_NAMES)

    temperature = config.system.temperature
    r_cut = config.system.r_cut
    dr_max = config.sampler.dr_max
    nblock = config.sampler.nblock
    nstep = config.sampler.nstep

    initialize_energies(state, model, r_cut)
    initial = calculate(state, temperature=temperature, r_cut=r_cut, model=model)
    _log_energies("Initial values", initial)

    moves_accepted = 0
    moves_attempted = 0

    blocks: range | Any = range(1, nblock + 1)
    if progress:
        from tqdm.auto import tqdm

        blocks = tqdm(blocks, desc="PIMC blocks", leave=False)

    for blk in blocks:
        accumulator.begin_block()
        for _ in range(nstep):
            moves = sweep(
                state,
                model,
                temperature=temperature,
                r_cut=r_cut,
                dr_max=dr_max,
                rng=rng,
            )
            moves_accepted += moves
            moves_attempted += state.n * state.p

            # Normalised per particle, not per bead.
            move_ratio = moves / float(state.n)
            energies = calculate(state, temperature=temperature, r_cut=r_cut, model=model)
            accumulator.add([move_ratio, energies.en_cut, energies.en_full])

        accumulator.end_block(blk)
        if store is not None:
            store.write_ring_polymers(
                state.physical_positions(),
                state.box,
                checkpoint_tag(blk, nblock),
            )

    averages = accumulator.finish()

    final = calculate(state, temperature=temperature, r_cut=r_cut, model=model)
    _log_energies("Final values", final)

    state.pot_cl, state.pot_qu = _final_check(state, model, config)
    final_check = calculate(state, temperature=temperature, r_cut=r_cut, model=model)
    _log_energies("Final check", final_check)

    if store is not None:
        store.write_ring_polymers(state.physical_positions(), state.box, OUTPUT_TAG)

    metadata: dict[str, Any] = {
        "run_name": config.run_name,
        "n": state.n,
        "p": state.p,
        "box": state.box,
        "density": state.density,
        "k_spring": state.k_spring,
        "temperature": temperature,
        "r_cut": r_cut,
        "dr_max": dr_max,
        "lambda": config.system.lambda_,
        "nblock": nblock,
        "nstep": nstep,
        "seed": config.sampler.seed,
        "strict_consistency": config.sampler.strict_consistency,
    }

    return PIMCRun(
        state=state,
        initial=initial,
        final=final,
        final_check=final_check,
        blocks=accumulator.blocks,
        averages=averages,
        moves_accepted=moves_accepted,
        moves_attempted=moves_attempted,
        metadata=metadata,
    )

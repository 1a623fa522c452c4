"""Tests for the Metropolis rule, single-bead moves and incremental energies."""

from __future__ import annotations

from dataclasses import replace

import numpy as np
import pytest

from pimc_ring import (
    ConfigurationCorruption,
    FinalConsistencyViolation,
    InvalidConfiguration,
    InvalidInitialConfiguration,
    LennardJonesModel,
    PotentialResult,
    RingPolymerState,
    RunConfig,
    SamplerParams,
    SystemParams,
    attempt_bead_move,
    calculate,
    metropolis,
    run_pimc,
    sweep,
)
from pimc_ring.sampler import EXPONENT_GUARD, initialize_energies


class _CountingRng:
    """Wrap a generator and count uniform [0, 1) draws."""

    def __init__(self, seed: int = 7) -> None:
        self._rng = np.random.Generator(np.random.PCG64(seed))
        self.draws = 0

    def random(self) -> float:
        self.draws += 1
        return float(self._rng.random())


class _ScriptedModel:
    """Model whose classical single-bead results follow a script."""

    def __init__(self, classical_script: list[PotentialResult]) -> None:
        self.classical_script = list(classical_script)
        self.quantum_calls = 0

    def classical_bead(self, ri, i, k, positions, box, r_cut, partners="all"):
        return self.classical_script.pop(0)

    def quantum_bead(self, ri, i, k, positions, box, k_spring):
        self.quantum_calls += 1
        return 0.0


def _two_particle_config(**sampler_overrides: object) -> RunConfig:
    return RunConfig(
        system=SystemParams(temperature=1.0, r_cut=2.5, n_beads=2, lambda_=0.1),
        sampler=replace(
            SamplerParams(nblock=3, nstep=40, dr_max=0.1, seed=11),
            **sampler_overrides,
        ),
        run_name="two-particles",
    )


def _two_particle_state(config: RunConfig) -> RingPolymerState:
    """Two particles 5 units apart; the beads of particle 0 are split."""
    box = 10.0
    positions = np.zeros((2, 3, 2), dtype=np.float64)
    positions[0, 0, :] = [-2.5, -2.4]
    positions[1, 0, :] = 2.5
    return RingPolymerState.from_physical(positions, box, config.system.k_spring)


def test_metropolis_accepts_downhill_without_random_draw() -> None:
    rng = _CountingRng()
    assert metropolis(0.0, rng)  # type: ignore[arg-type]
    assert metropolis(-3.5, rng)  # type: ignore[arg-type]
    assert rng.draws == 0


def test_metropolis_rejects_huge_uphill_without_overflow() -> None:
    rng = _CountingRng()
    assert not metropolis(EXPONENT_GUARD + 1.0, rng)  # type: ignore[arg-type]
    assert not metropolis(1e308, rng)  # type: ignore[arg-type]
    assert rng.draws == 0


def test_metropolis_acceptance_frequency_matches_boltzmann_factor() -> None:
    rng = np.random.Generator(np.random.PCG64(5))
    delta = 0.7
    trials = 20_000
    accepted = sum(metropolis(delta, rng) for _ in range(trials))
    assert abs(accepted / trials - np.exp(-delta)) < 0.02


def test_metropolis_acceptance_decreases_with_delta() -> None:
    rates = []
    for delta in (0.1, 1.0, 5.0, 20.0):
        rng = np.random.Generator(np.random.PCG64(17))
        rates.append(np.mean([metropolis(delta, rng) for _ in range(4000)]))
    assert rates == sorted(rates, reverse=True)
    assert rates[-1] == 0.0


def test_overlapping_trial_is_rejected_without_quantum_evaluation() -> None:
    config = _two_particle_config()
    state = _two_particle_state(config)
    model = _ScriptedModel(
        classical_script=[
            PotentialResult(pot=-0.4),
            PotentialResult(pot=np.inf, overlap=True),
        ]
    )
    before = state.positions.copy()
    rng = _CountingRng()

    accepted = attempt_bead_move(
        state,
        model,
        0,
        1,
        np.array([0.01, 0.0, 0.0]),
        temperature=1.0,
        r_cut=2.5,
        rng=rng,  # type: ignore[arg-type]
    )

    assert not accepted
    assert model.quantum_calls == 1  # only the old-position evaluation
    assert rng.draws == 0
    assert np.array_equal(state.positions, before)
    assert state.pot_cl == 0.0
    assert state.pot_qu == 0.0


def test_overlap_at_current_position_is_corruption() -> None:
    config = _two_particle_config()
    state = _two_particle_state(config)
    model = _ScriptedModel(classical_script=[PotentialResult(pot=np.inf, overlap=True)])

    with pytest.raises(ConfigurationCorruption, match="particle 1, bead 0"):
        attempt_bead_move(
            state,
            model,
            1,
            0,
            np.zeros(3),
            temperature=1.0,
            r_cut=2.5,
            rng=np.random.Generator(np.random.PCG64(1)),
        )


def test_zero_displacement_is_accepted_and_leaves_totals_unchanged(
    small_config: RunConfig,
    small_state: RingPolymerState,
    model: LennardJonesModel,
) -> None:
    initialize_energies(small_state, model, small_config.system.r_cut)
    pot_cl, pot_qu = small_state.pot_cl, small_state.pot_qu
    before = small_state.positions.copy()
    rng = _CountingRng()

    for i, k in [(0, 0), (7, 2), (31, 1)]:
        assert attempt_bead_move(
            small_state,
            model,
            i,
            k,
            np.zeros(3),
            temperature=small_config.system.temperature,
            r_cut=small_config.system.r_cut,
            rng=rng,  # type: ignore[arg-type]
        )

    assert rng.draws == 0
    assert small_state.pot_cl == pot_cl
    assert small_state.pot_qu == pot_qu
    assert np.array_equal(small_state.positions, before)


def test_running_totals_track_full_recomputation(
    small_config: RunConfig,
    small_state: RingPolymerState,
    model: LennardJonesModel,
    rng: np.random.Generator,
) -> None:
    """After many accepted and rejected moves the totals still match."""
    r_cut = small_config.system.r_cut
    initialize_energies(small_state, model, r_cut)

    accepted = 0
    for _ in range(8):
        accepted += sweep(
            small_state,
            model,
            temperature=small_config.system.temperature,
            r_cut=r_cut,
            dr_max=small_config.sampler.dr_max,
            rng=rng,
        )
        full_cl = model.classical_total(small_state.positions, small_state.box, r_cut)
        full_qu = model.quantum_total(
            small_state.positions, small_state.box, small_state.k_spring
        )
        assert not full_cl.overlap
        assert np.isclose(small_state.pot_cl, full_cl.pot, rtol=1e-6, atol=1e-9)
        assert np.isclose(small_state.pot_qu, full_qu, rtol=1e-6, atol=1e-9)

    attempts = 8 * small_state.n * small_state.p
    assert 0 < accepted < attempts
    assert np.all(small_state.positions >= -0.5)
    assert np.all(small_state.positions < 0.5)


def test_calculate_combines_kinetic_and_potential_terms() -> None:
    state = RingPolymerState(
        positions=np.zeros((4, 3, 3)),
        box=8.0,
        k_spring=30.0,
        pot_cl=-6.0,
        pot_qu=2.5,
    )
    model = LennardJonesModel()

    summary = calculate(state, temperature=0.8, r_cut=2.5, model=model)

    kinetic = 1.5 * 4 * 3 * 0.8
    expected_cut = (kinetic - 6.0 - 2.5) / 4
    assert np.isclose(summary.en_cut, expected_cut)
    assert np.isclose(
        summary.en_full,
        expected_cut + model.long_range_correction(4 / 8.0**3, 2.5),
    )


def test_far_apart_particles_have_no_classical_energy() -> None:
    config = _two_particle_config()
    state = _two_particle_state(config)

    result = run_pimc(config, state)

    assert result.initial.pot_cl == 0.0
    assert result.initial.pot_qu > 0.0
    assert result.final_check.pot_cl == 0.0
    assert result.moves_attempted == 3 * 40 * 2 * 2
    # Move ratio is normalised per particle, so its ceiling is p, not 1.
    move_ratio = result.averages.mean[0]
    assert 0.0 < move_ratio <= config.system.n_beads
    assert all(block.averages[0] > 0.0 for block in result.blocks)


def test_fixed_seed_reproduces_run_exactly() -> None:
    config = _two_particle_config()

    run_a = run_pimc(config, _two_particle_state(config))
    run_b = run_pimc(config, _two_particle_state(config))

    assert run_a.moves_accepted == run_b.moves_accepted
    assert np.array_equal(run_a.state.positions, run_b.state.positions)
    assert run_a.final == run_b.final
    assert np.array_equal(run_a.averages.mean, run_b.averages.mean)


def test_different_seeds_give_different_trajectories() -> None:
    config_a = _two_particle_config(seed=1)
    config_b = _two_particle_config(seed=2)

    run_a = run_pimc(config_a, _two_particle_state(config_a))
    run_b = run_pimc(config_b, _two_particle_state(config_b))

    assert not np.array_equal(run_a.state.positions, run_b.state.positions)


def _single_particle_run(temperature: float, lambda_: float) -> float:
    config = RunConfig(
        system=SystemParams(temperature=temperature, r_cut=2.5, n_beads=4, lambda_=lambda_),
        sampler=SamplerParams(nblock=2, nstep=50, dr_max=0.1, seed=3),
    )
    state = RingPolymerState.from_physical(
        np.zeros((1, 3, 4)), 10.0, config.system.k_spring
    )
    result = run_pimc(config, state)
    return float(result.averages.mean[0])


def test_stiff_ring_rarely_accepts_moves() -> None:
    """Reduced spring stiffness grows as P*T/lambda^2; small lambda freezes beads."""
    assert _single_particle_run(temperature=1.0, lambda_=0.001) < 0.05


def test_cold_single_ring_is_floppy() -> None:
    """At very low temperature the springs are soft relative to kT."""
    move_ratio = _single_particle_run(temperature=0.01, lambda_=0.1)
    assert move_ratio > 0.75 * 4


def test_initial_overlap_is_fatal(small_config: RunConfig) -> None:
    positions = np.zeros((2, 3, 3))
    positions[1, 0, :] = 0.3
    state = RingPolymerState.from_physical(positions, 8.0, small_config.system.k_spring)

    with pytest.raises(InvalidInitialConfiguration, match="overlap"):
        run_pimc(small_config, state)


def test_cutoff_larger_than_half_box_is_rejected(small_config: RunConfig) -> None:
    state = RingPolymerState.from_physical(
        np.zeros((1, 3, 3)), 4.0, small_config.system.k_spring
    )
    with pytest.raises(InvalidConfiguration, match="r_cut"):
        run_pimc(small_config, state)


def test_bead_count_mismatch_is_rejected(small_config: RunConfig) -> None:
    state = RingPolymerState.from_physical(
        np.zeros((1, 3, 5)), 10.0, small_config.system.k_spring
    )
    with pytest.raises(InvalidConfiguration, match="beads"):
        run_pimc(small_config, state)


class _DriftingModel(LennardJonesModel):
    """Reports a slightly wrong single-bead spring energy."""

    def quantum_bead(self, ri, i, k, positions, box, k_spring):
        return 1.01 * LennardJonesModel.quantum_bead(self, ri, i, k, positions, box, k_spring)


def test_bookkeeping_defect_is_fatal_in_strict_mode() -> None:
    config = _two_particle_config(nblock=1, nstep=20)
    with pytest.raises(FinalConsistencyViolation) as excinfo:
        run_pimc(config, _two_particle_state(config), _DriftingModel())
    tracked, recomputed = excinfo.value.tracked, excinfo.value.recomputed
    assert tracked[1] != recomputed[1]


def test_bookkeeping_defect_only_warns_when_not_strict(
    caplog: pytest.LogCaptureFixture,
) -> None:
    config = _two_particle_config(nblock=1, nstep=20, strict_consistency=False)

    with caplog.at_level("WARNING", logger="pimc_ring.sampler"):
        result = run_pimc(config, _two_particle_state(config), _DriftingModel())

    assert "disagree" in caplog.text
    recomputed = LennardJonesModel().quantum_total(
        result.state.positions, result.state.box, result.state.k_spring
    )
    assert result.state.pot_qu == recomputed
    assert result.final_check.pot_qu == recomputed

"""Structured configuration objects for ring-polymer PIMC runs.

The dataclasses in this module define the canonical runtime inputs for the
simulation engine. Validation is eager and strict so that invalid parameter
choices fail fast at construction time with `InvalidConfiguration`.

Parameter files are flat JSON objects using the classic namelist keys
(`nblock`, `nstep`, `p`, `temperature`, `r_cut`, `dr_max`, `lambda`) plus
`seed`, `strict_consistency` and `run_name`. Any key left out takes its
default value, so an empty object is a valid parameter file.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from math import isfinite
from pathlib import Path
from typing import Any

from pimc_ring.errors import InvalidConfiguration

MIN_BEADS = 2
MAX_BEADS = 99


def _require_positive(name: str, value: float) -> None:
    if isinstance(value, bool) or not isfinite(value) or value <= 0.0:
        raise InvalidConfiguration(f"{name} must be a finite strictly positive float")


def _require_integer(name: str, value: int, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise InvalidConfiguration(f"{name} must be an integer >= {minimum}")


@dataclass(frozen=True, slots=True)
class SystemParams:
    """Physical parameters of the ring-polymer system.

    Attributes:
        temperature: Reduced temperature kB*T/epsilon.
        r_cut: Potential cutoff distance in simulation units.
        n_beads: Ring-polymer length P, constrained to 2 <= P <= 99.
        lambda_: Reduced de Boer length (about 0.01 for Xe, 0.03 for Ar,
            0.095 for Ne).
    """

    temperature: float = 0.7
    r_cut: float = 2.5
    n_beads: int = 4
    lambda_: float = 0.1

    def __post_init__(self) -> None:
        """Validate physical constraints."""
        _require_positive("temperature", self.temperature)
        _require_positive("r_cut", self.r_cut)
        _require_positive("lambda", self.lambda_)
        if isinstance(self.n_beads, bool) or not isinstance(self.n_beads, int):
            raise InvalidConfiguration("p must be an integer")
        if not MIN_BEADS <= self.n_beads <= MAX_BEADS:
            raise InvalidConfiguration(
                f"p must lie between {MIN_BEADS} and {MAX_BEADS}, got {self.n_beads}"
            )

    @property
    def k_spring(self) -> float:
        """Return the quantum spring constant k = P * (T / lambda)^2."""
        return float(self.n_beads) * (self.temperature / self.lambda_) ** 2


@dataclass(frozen=True, slots=True)
class SamplerParams:
    """Controls for the block/step Metropolis loop.

    Attributes:
        nblock: Number of blocks.
        nstep: Number of steps per block; one step tries every bead once.
        dr_max: Maximum trial displacement per Cartesian component.
        seed: Seed of the single pseudorandom stream used by the run.
        strict_consistency: Raise at the end of the run when the tracked
            energies disagree with a recomputation; otherwise only warn.
        consistency_rtol: Relative tolerance of the end-of-run check.
        consistency_atol: Absolute tolerance of the end-of-run check.
    """

    nblock: int = 10
    nstep: int = 1000
    dr_max: float = 0.15
    seed: int = 12345
    strict_consistency: bool = True
    consistency_rtol: float = 1e-6
    consistency_atol: float = 1e-8

    def __post_init__(self) -> None:
        """Validate sampler controls."""
        _require_integer("nblock", self.nblock, minimum=1)
        _require_integer("nstep", self.nstep, minimum=1)
        _require_positive("dr_max", self.dr_max)
        _require_integer("seed", self.seed, minimum=0)
        if not isinstance(self.strict_consistency, bool):
            raise InvalidConfiguration("strict_consistency must be true or false")
        _require_positive("consistency_rtol", self.consistency_rtol)
        if not isfinite(self.consistency_atol) or self.consistency_atol < 0.0:
            raise InvalidConfiguration("consistency_atol must be a finite non-negative float")


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Complete immutable configuration for one PIMC run."""

    system: SystemParams
    sampler: SamplerParams
    run_name: str | None = None

    def __post_init__(self) -> None:
        """Validate run-level metadata constraints."""
        if self.run_name is not None and not isinstance(self.run_name, str):
            raise InvalidConfiguration("run_name must be a string")
        if self.run_name is not None and self.run_name.strip() == "":
            raise InvalidConfiguration("run_name cannot be an empty string")

    @property
    def total_steps(self) -> int:
        """Total number of steps over all blocks."""
        return self.sampler.nblock * self.sampler.nstep

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> RunConfig:
        """Build a configuration from namelist-style keys."""
        unknown = set(payload) - _FILE_KEYS
        if unknown:
            raise InvalidConfiguration(
                f"unknown parameter(s): {', '.join(sorted(unknown))}"
            )

        system_kwargs: dict[str, Any] = {}
        sampler_kwargs: dict[str, Any] = {}
        for key, value in payload.items():
            if key in _SYSTEM_KEYS:
                system_kwargs[_SYSTEM_KEYS[key]] = value
            elif key in _SAMPLER_KEYS:
                sampler_kwargs[key] = value

        try:
            system = SystemParams(**system_kwargs)
            sampler = SamplerParams(**sampler_kwargs)
        except TypeError as exc:
            raise InvalidConfiguration(f"malformed parameter value: {exc}") from exc
        return cls(system=system, sampler=sampler, run_name=payload.get("run_name"))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the same flat key set accepted by `from_dict`."""
        return {
            "nblock": self.sampler.nblock,
            "nstep": self.sampler.nstep,
            "p": self.system.n_beads,
            "temperature": self.system.temperature,
            "r_cut": self.system.r_cut,
            "dr_max": self.sampler.dr_max,
            "lambda": self.system.lambda_,
            "seed": self.sampler.seed,
            "strict_consistency": self.sampler.strict_consistency,
            "consistency_rtol": self.sampler.consistency_rtol,
            "consistency_atol": self.sampler.consistency_atol,
            "run_name": self.run_name,
        }


_SYSTEM_KEYS = {
    "temperature": "temperature",
    "r_cut": "r_cut",
    "p": "n_beads",
    "lambda": "lambda_",
}
_SAMPLER_KEYS = {
    "nblock",
    "nstep",
    "dr_max",
    "seed",
    "strict_consistency",
    "consistency_rtol",
    "consistency_atol",
}
_FILE_KEYS = set(_SYSTEM_KEYS) | _SAMPLER_KEYS | {"run_name"}


def load_run_config(path: str | Path) -> RunConfig:
    """Load a run configuration from a JSON parameter file."""
    text = Path(path).read_text().strip()
    if text == "":
        return RunConfig.from_dict({})
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidConfiguration(f"cannot parse parameter file {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidConfiguration("parameter file must contain a JSON object")
    return RunConfig.from_dict(payload)

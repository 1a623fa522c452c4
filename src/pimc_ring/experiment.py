"""High-level orchestration of a ring-polymer PIMC run."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pimc_ring.config import RunConfig
from pimc_ring.io import ConfigurationStore, save_json
from pimc_ring.potential import InteractionModel, LennardJonesModel
from pimc_ring.sampler import PIMCRun, run_pimc
from pimc_ring.state import RingPolymerState
from pimc_ring.utils import utc_timestamp

LOGGER = logging.getLogger(__name__)


def load_initial_state(store: ConfigurationStore, config: RunConfig) -> RingPolymerState:
    """Read the `inp` configuration of every bead and build the run state."""
    box, positions = store.read_ring_polymers(config.system.n_beads)
    return RingPolymerState.from_physical(positions, box, config.system.k_spring)


def report_parameters(
    config: RunConfig,
    state: RingPolymerState,
    model: InteractionModel,
) -> None:
    """Log the run parameters and the model description."""
    LOGGER.info("Path-integral Monte Carlo, constant-NVT ensemble")
    describe = getattr(model, "describe", None)
    if describe is not None:
        for line in describe():
            LOGGER.info(line)

    rows: list[tuple[str, int | float]] = [
        ("Number of ring polymers", config.system.n_beads),
        ("Number of blocks", config.sampler.nblock),
        ("Number of steps per block", config.sampler.nstep),
        ("Temperature", config.system.temperature),
        ("Potential cutoff distance", config.system.r_cut),
        ("Maximum displacement", config.sampler.dr_max),
        ("de Boer length", config.system.lambda_),
        ("Quantum spring constant", config.system.k_spring),
        ("Number of particles", state.n),
        ("Simulation box length", state.box),
        ("Density", state.density),
    ]
    for label, value in rows:
        if isinstance(value, int):
            LOGGER.info("%-40s%15d", label, value)
        else:
            LOGGER.info("%-40s%15.5f", label, value)


def _summary_payload(result: PIMCRun, started: str, finished: str) -> dict[str, Any]:
    return {
        "started": started,
        "finished": finished,
        "metadata": result.metadata,
        "acceptance_rate": result.acceptance_rate,
        "moves_accepted": result.moves_accepted,
        "moves_attempted": result.moves_attempted,
        "initial": result.initial.as_dict(),
        "final": result.final.as_dict(),
        "final_check": result.final_check.as_dict(),
        "run_averages": result.averages.as_dict(),
        "blocks": [
            {
                "block": block.block,
                "n_steps": block.n_steps,
                **{
                    name: float(value)
                    for name, value in zip(result.averages.names, block.averages)
                },
            }
            for block in result.blocks
        ],
    }


def run_simulation(
    config: RunConfig,
    workdir: str | Path = ".",
    *,
    model: InteractionModel | None = None,
    progress: bool = False,
    plot: bool = False,
) -> dict[str, Any]:
    """Load configurations from `workdir`, run, and persist all artifacts.

    Args:
        config: Complete immutable run configuration.
        workdir: Directory holding the `cnfKK.inp` files; checkpoints, final
            configurations and JSON reports are written there too.
        model: Interaction model, Lennard-Jones by default.
        progress: Show a progress bar over blocks.
        plot: Save a block-average figure next to the reports.

    Returns:
        Dictionary with the run result and the paths of persisted artifacts.
    """
    started = utc_timestamp()
    LOGGER.info("Run started %s", started)

    root = Path(workdir)
    store = ConfigurationStore(root)
    if model is None:
        model = LennardJonesModel()

    state = load_initial_state(store, config)
    report_parameters(config, state, model)

    result = run_pimc(config, state, model, store=store, progress=progress)

    finished = utc_timestamp()
    LOGGER.info("Run finished %s", finished)

    config_path = save_json(config.to_dict(), root / "config.json")
    summary_path = save_json(
        _summary_payload(result, started, finished),
        root / "run_summary.json",
    )
    paths: dict[str, Path] = {
        "config_path": config_path,
        "run_summary_path": summary_path,
        "final_configurations": root,
    }

    if plot:
        import matplotlib.pyplot as plt

        from pimc_ring.plotting import plot_block_averages

        fig = plot_block_averages(result.blocks, result.averages.names)
        figure_path = root / "block_averages.png"
        fig.savefig(figure_path, dpi=120)
        plt.close(fig)
        paths["figure_path"] = figure_path

    return {
        "config": config,
        "result": result,
        "paths": paths,
    }

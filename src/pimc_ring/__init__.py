"""Public API for path-integral Monte Carlo of ring polymers."""

from pimc_ring.averages import BlockAverages, BlockResult, RunAverages
from pimc_ring.config import (
    RunConfig,
    SamplerParams,
    SystemParams,
    load_run_config,
)
from pimc_ring.errors import (
    ConfigurationCorruption,
    FinalConsistencyViolation,
    InvalidConfiguration,
    InvalidInitialConfiguration,
    PIMCError,
)
from pimc_ring.experiment import load_initial_state, run_simulation
from pimc_ring.io import ConfigurationStore
from pimc_ring.lattice import fcc_positions, initial_ring_polymers
from pimc_ring.potential import (
    InteractionModel,
    LennardJonesModel,
    PotentialResult,
)
from pimc_ring.sampler import (
    EnergySummary,
    PIMCRun,
    attempt_bead_move,
    calculate,
    metropolis,
    run_pimc,
    sweep,
)
from pimc_ring.state import RingPolymerState
from pimc_ring.utils import make_rng, minimum_image, wrap_box_units

__all__ = [
    "BlockAverages",
    "BlockResult",
    "ConfigurationCorruption",
    "ConfigurationStore",
    "EnergySummary",
    "FinalConsistencyViolation",
    "InteractionModel",
    "InvalidConfiguration",
    "InvalidInitialConfiguration",
    "LennardJonesModel",
    "PIMCError",
    "PIMCRun",
    "PotentialResult",
    "RingPolymerState",
    "RunAverages",
    "RunConfig",
    "SamplerParams",
    "SystemParams",
    "attempt_bead_move",
    "calculate",
    "fcc_positions",
    "initial_ring_polymers",
    "load_initial_state",
    "load_run_config",
    "make_rng",
    "metropolis",
    "minimum_image",
    "run_pimc",
    "run_simulation",
    "sweep",
    "wrap_box_units",
]

__version__ = "0.1.0"

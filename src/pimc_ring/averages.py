"""Block-average accumulation of per-step observables.

Each step contributes one value per named observable. Step values are
averaged within a block; block averages are then combined into run averages
whose statistical error is estimated from the scatter of the block averages.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.stats import sem

FloatArray = NDArray[np.float64]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BlockResult:
    """Averages of every observable over one block."""

    block: int
    averages: FloatArray
    n_steps: int


@dataclass(frozen=True, slots=True)
class RunAverages:
    """Run-level summary computed from block averages.

    Attributes:
        names: Observable names in accumulation order.
        mean: Mean of the block averages.
        error: Standard error of the mean, NaN with fewer than two blocks.
        fluctuation: Standard deviation of the block averages.
        tau_int: Integrated autocorrelation time of each step series, in
            steps.
        n_blocks: Number of completed blocks.
    """

    names: tuple[str, ...]
    mean: FloatArray
    error: FloatArray
    fluctuation: FloatArray
    tau_int: FloatArray
    n_blocks: int

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible mapping keyed by observable name."""
        return {
            name: {
                "mean": float(self.mean[idx]),
                "error": float(self.error[idx]),
                "fluctuation": float(self.fluctuation[idx]),
                "tau_int": float(self.tau_int[idx]),
            }
            for idx, name in enumerate(self.names)
        }


def integrated_autocorrelation_time(
    series: ArrayLike,
    max_lag: int | None = None,
) -> float:
    """Compute a simple integrated autocorrelation-time estimate.

    Only positive normalised autocorrelations up to `max_lag` contribute.
    """
    values = np.asarray(series, dtype=np.float64)
    if values.ndim != 1:
        raise ValueError("series must be one-dimensional")
    if values.size < 2:
        return 0.0

    centered = values - float(np.mean(values))
    variance = float(np.var(centered))
    if variance == 0.0:
        return 0.0

    n = centered.size
    if max_lag is None:
        max_lag = min(n // 2, 1000)
    max_lag = max(1, min(max_lag, n - 1))

    lags = np.arange(1, max_lag + 1)
    autocorr = np.array(
        [
            float(np.dot(centered[:-lag], centered[lag:])) / float(n - lag)
            for lag in lags
        ],
        dtype=np.float64,
    ) / variance
    return float(0.5 + np.sum(autocorr[autocorr > 0.0]))


class BlockAverages:
    """Accumulator for named per-step observables.

    Usage follows the block structure of a run::

        stats = BlockAverages(["Move ratio", "E/N (cut)"])
        for blk in range(1, nblock + 1):
            stats.begin_block()
            for _ in range(nstep):
                stats.add([ratio, energy])
            stats.end_block(blk)
        summary = stats.finish()
    """

    def __init__(self, names: Sequence[str]) -> None:
        if len(names) == 0:
            raise ValueError("at least one observable name is required")
        self.names = tuple(names)
        self._block_values: list[FloatArray] = []
        self._block_results: list[BlockResult] = []
        self._series: list[FloatArray] = []
        self._in_block = False
        LOGGER.info(
            "%-8s%s",
            "Block",
            "".join(f"{name:>16s}" for name in self.names),
        )

    @property
    def blocks(self) -> list[BlockResult]:
        """Completed block results, oldest first."""
        return list(self._block_results)

    def begin_block(self) -> None:
        """Start accumulating a new block."""
        if self._in_block:
            raise RuntimeError("previous block was not ended")
        self._block_values = []
        self._in_block = True

    def add(self, values: ArrayLike) -> None:
        """Record one step's observable values."""
        if not self._in_block:
            raise RuntimeError("add() called outside a block")
        arr = np.asarray(values, dtype=np.float64)
        if arr.shape != (len(self.names),):
            raise ValueError(
                f"expected {len(self.names)} values, got shape {arr.shape}"
            )
        self._block_values.append(arr)
        self._series.append(arr)

    def end_block(self, block: int) -> BlockResult:
        """Close the current block and log its averages."""
        if not self._in_block:
            raise RuntimeError("end_block() called outside a block")
        if not self._block_values:
            raise RuntimeError(f"block {block} received no values")

        averages = np.mean(np.vstack(self._block_values), axis=0)
        result = BlockResult(
            block=block,
            averages=averages,
            n_steps=len(self._block_values),
        )
        self._block_results.append(result)
        self._in_block = False
        LOGGER.info(
            "%-8d%s",
            block,
            "".join(f"{value:16.6f}" for value in averages),
        )
        return result

    def finish(self) -> RunAverages:
        """Combine completed blocks into run averages and log them."""
        if self._in_block:
            raise RuntimeError("last block was not ended")
        if not self._block_results:
            raise RuntimeError("no completed blocks to average")

        block_avgs = np.vstack([result.averages for result in self._block_results])
        n_blocks = block_avgs.shape[0]
        mean = np.mean(block_avgs, axis=0)
        fluctuation = np.std(block_avgs, axis=0)
        if n_blocks > 1:
            error = np.asarray(sem(block_avgs, axis=0, ddof=1), dtype=np.float64)
        else:
            error = np.full(len(self.names), np.nan)

        series = np.vstack(self._series)
        tau_int = np.array(
            [integrated_autocorrelation_time(series[:, idx]) for idx in range(series.shape[1])],
            dtype=np.float64,
        )

        LOGGER.info("%-8s%s", "Run avg", "".join(f"{value:16.6f}" for value in mean))
        LOGGER.info("%-8s%s", "Run err", "".join(f"{value:16.6f}" for value in error))
        return RunAverages(
            names=self.names,
            mean=mean,
            error=error,
            fluctuation=fluctuation,
            tau_int=tau_int,
            n_blocks=n_blocks,
        )

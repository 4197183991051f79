"""Exhaustive grid search over process/measurement noise scales.

Every cell ``(q, r)`` of the Cartesian product of the candidate sequences
builds ``MotionModel.from_scales(q, r, dt)`` and runs its own
:class:`TrackingRun`. Cells share no mutable state, so they may be evaluated
concurrently; the winner is chosen by a reduction over
``(mean error, grid index)`` which gives the same answer in any completion
order: strictly lower mean error wins, ties keep the earlier cell (outer loop
over ``q``, inner loop over ``r``).
"""
from __future__ import annotations

from functools import partial
from multiprocessing.pool import ThreadPool
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from data.data import ObservationSequence

from .config import GATE_THRESHOLD, debug_enabled, require_positive, validate_candidates
from .errors import InternalInvariantError, ValidationError
from .KalmanFilter import MotionModel
from .linalg_ops import DEFAULT_MAX_CONDITION
from .tracking_run import RunResult, TrackingRun


class GridCell(NamedTuple):
    index: int
    q: float
    r: float


class SearchResult:
    """Winning cell of a :class:`HyperparameterSearch`.

    Attributes
    ----------
    q, r: float
        Winning process / measurement noise scales.
    model: MotionModel
        The winning model (``Q = q I``, ``R = r I``).
    run: RunResult
        The winning run.
    min_mean_error: float
        Lowest mean error over the grid.
    grid_errors: ndarray, shape (len(q_candidates), len(r_candidates))
        Mean error of every cell.
    index: int
        Canonical (row-major) grid index of the winner.
    """

    __slots__ = ("q", "r", "index", "run", "model", "min_mean_error", "grid_errors")

    def __init__(self, cell: GridCell, run: RunResult, grid_errors: np.ndarray) -> None:
        grid_errors.setflags(write=False)
        object.__setattr__(self, "q", cell.q)
        object.__setattr__(self, "r", cell.r)
        object.__setattr__(self, "index", cell.index)
        object.__setattr__(self, "run", run)
        object.__setattr__(self, "model", run.model)
        object.__setattr__(self, "min_mean_error", run.mean_error)
        object.__setattr__(self, "grid_errors", grid_errors)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def Q(self) -> np.ndarray:
        return self.model.Q.numpy()

    @property
    def R(self) -> np.ndarray:
        return self.model.R.numpy()

    def __repr__(self) -> str:
        return f"SearchResult(q={self.q:.6g}, r={self.r:.6g}, min_mean_error={self.min_mean_error:.4f})"


def _is_better(candidate: Tuple[GridCell, RunResult], incumbent: Optional[Tuple[GridCell, RunResult]]) -> bool:
    cell, run = candidate
    if not np.isfinite(run.mean_error):
        return False
    if incumbent is None:
        return True
    best_cell, best_run = incumbent
    if run.mean_error != best_run.mean_error:
        return run.mean_error < best_run.mean_error
    return cell.index < best_cell.index


class HyperparameterSearch:
    """Grid search for the ``(q, r)`` pair with the lowest mean position error.

    Parameters
    ----------
    q_candidates, r_candidates: sequence of float
        Non-empty, positive candidate scales (searched in the given order).
    time_step: float
        ``dt`` shared by every cell.
    gate_threshold: float
        Gate threshold of every cell's run.
    initial_cov_scale: float
        ``P_0 = initial_cov_scale * I`` for every cell.
    max_condition: float
        Condition-number limit for the innovation covariance.
    max_workers: int
        Cells evaluated concurrently; 1 evaluates them in order on the caller's thread.
    verbose: bool
        Print progress.
    """

    def __init__(
        self,
        q_candidates: Sequence[float],
        r_candidates: Sequence[float],
        time_step: float,
        gate_threshold: float = GATE_THRESHOLD,
        initial_cov_scale: float = 1.0,
        max_condition: float = DEFAULT_MAX_CONDITION,
        max_workers: int = 1,
        verbose: bool = False,
    ) -> None:
        self.q_candidates = validate_candidates(q_candidates, "q_candidates")
        self.r_candidates = validate_candidates(r_candidates, "r_candidates")
        self.time_step = require_positive(time_step, "time_step")
        self.gate_threshold = require_positive(gate_threshold, "gate_threshold")
        self.initial_cov_scale = require_positive(initial_cov_scale, "initial_cov_scale")
        self.max_condition = require_positive(max_condition, "max_condition")
        if int(max_workers) < 1:
            raise ValidationError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = int(max_workers)
        self.verbose = bool(verbose) or debug_enabled()

    @property
    def shape(self) -> Tuple[int, int]:
        return int(self.q_candidates.size), int(self.r_candidates.size)

    def cells(self) -> List[GridCell]:
        """All grid cells in canonical order: outer ``q``, inner ``r``."""
        n_r = self.r_candidates.size
        return [
            GridCell(i * n_r + j, float(q), float(r))
            for i, q in enumerate(self.q_candidates)
            for j, r in enumerate(self.r_candidates)
        ]

    def evaluate(self, cell: GridCell, sequence: ObservationSequence) -> Tuple[GridCell, RunResult]:
        """Run one cell in isolation."""
        model = MotionModel.from_scales(cell.q, cell.r, self.time_step)
        run = TrackingRun(
            model,
            self.gate_threshold,
            initial_cov_scale=self.initial_cov_scale,
            max_condition=self.max_condition,
        )
        return cell, run.run(sequence)

    def run(self, sequence: ObservationSequence) -> SearchResult:
        if not isinstance(sequence, ObservationSequence):
            raise ValidationError(f"expected an ObservationSequence, got {type(sequence).__name__}")

        cells = self.cells()
        grid_errors = np.full(self.shape, np.nan)
        best: Optional[Tuple[GridCell, RunResult]] = None

        if self.verbose:
            print(f"HyperparameterSearch: {len(cells)} cells, workers={self.max_workers}")

        evaluate = partial(self.evaluate, sequence=sequence)
        if self.max_workers == 1:
            outcomes = map(evaluate, cells)
            pool = None
        else:
            pool = ThreadPool(self.max_workers)
            outcomes = pool.imap_unordered(evaluate, cells)

        try:
            for done, (cell, result) in enumerate(outcomes, start=1):
                grid_errors[np.unravel_index(cell.index, self.shape)] = result.mean_error
                if _is_better((cell, result), best):
                    best = (cell, result)
                if self.verbose and done % 100 == 0:
                    print(f"  Completed: {done}/{len(cells)}")
        finally:
            if pool is not None:
                pool.terminate()
                pool.join()

        if best is None:
            raise InternalInvariantError("no grid cell produced a finite mean error")

        cell, result = best
        if self.verbose:
            print(f"HyperparameterSearch: best q={cell.q:.6g} r={cell.r:.6g} mean_error={result.mean_error:.4f}")
        return SearchResult(cell, result, grid_errors)

"""Baseline run plus tuned grid search on one sequence.

This bundles everything the reporting/plotting side consumes: the baseline
trajectory and its error, the raw measurement error, and the tuned
trajectory with its winning noise scales.
"""
from __future__ import annotations

from typing import List, Optional

from data.data import ObservationSequence

from .config import TrackingConfig
from .KalmanFilter import MotionModel
from .metrics import AxisErrorStats, ErrorSummary, measurement_errors, summarize
from .search import HyperparameterSearch, SearchResult
from .tracking_run import RunResult, TrackingRun


class TrackingReport:
    """Outputs of :func:`evaluate`.

    Attributes
    ----------
    baseline: RunResult
    measurement: ErrorSummary
        Error of the raw noisy observations.
    search: SearchResult
    """

    def __init__(self, baseline: RunResult, measurement: ErrorSummary, search: SearchResult) -> None:
        self.baseline = baseline
        self.measurement = measurement
        self.search = search

    @property
    def tuned(self) -> RunResult:
        return self.search.run

    @property
    def baseline_axis_stats(self) -> AxisErrorStats:
        return self.baseline.axis_stats

    @property
    def tuned_axis_stats(self) -> AxisErrorStats:
        return self.tuned.axis_stats

    def summary_lines(self) -> List[str]:
        b, t, n = self.baseline.summary, self.tuned.summary, self.measurement
        return [
            f"Baseline RMSE: {b.mean:.4f} ± {b.std:.4f}",
            f"Noisy RMSE: {n.mean:.4f} ± {n.std:.4f}",
            f"Tuned Kalman RMSE: {t.mean:.4f} ± {t.std:.4f}",
            f"Optimal Q value: {self.search.q:.4f}",
            f"Optimal R value: {self.search.r:.4f}",
            f"Baseline X/Y error std: {self.baseline_axis_stats.x_std:.4f} / {self.baseline_axis_stats.y_std:.4f}",
            f"Tuned X/Y error std: {self.tuned_axis_stats.x_std:.4f} / {self.tuned_axis_stats.y_std:.4f}",
            f"Rejected (baseline/tuned): {self.baseline.rejected_count} / {self.tuned.rejected_count}",
        ]


def baseline_model(config: TrackingConfig) -> MotionModel:
    return MotionModel.constant_velocity(
        config.baseline_time_step,
        config.baseline_transition_cov(),
        config.baseline_observation_cov(),
    )


def evaluate(sequence: ObservationSequence, config: Optional[TrackingConfig] = None) -> TrackingReport:
    """Run the baseline filter and the grid search on ``sequence``."""
    config = config or TrackingConfig()

    baseline = TrackingRun(
        baseline_model(config),
        config.gate_threshold,
        initial_cov_scale=config.initial_cov_scale,
        max_condition=config.max_condition,
        verbose=config.verbose,
    ).run(sequence)

    search = HyperparameterSearch(
        config.q_candidates,
        config.r_candidates,
        config.tuned_time_step,
        gate_threshold=config.gate_threshold,
        initial_cov_scale=config.initial_cov_scale,
        max_condition=config.max_condition,
        max_workers=config.max_workers,
        verbose=config.verbose,
    ).run(sequence)

    return TrackingReport(baseline, summarize(measurement_errors(sequence)), search)

"""Run configuration with the defaults of the ball-tracking experiment.

The baseline filter uses ``dt = 0.5``, ``Q = diag(0.4^2, 0.6^2, 0.4^2, 0.6^2)``,
``R = 0.25 I`` and a gate threshold of ``1.3e6``. The tuned filter uses
``dt = 0.4`` and searches ``q`` over ``linspace(0.001, 0.05, 10)`` and ``r``
over ``linspace(0.1, 0.2, 100)``.

Set ``GATEDTRACK_DEBUG=1`` to make every run verbose.
"""
from __future__ import annotations

import os
from typing import Any, Mapping, Optional, Sequence

import numpy as np

from .errors import ValidationError
from .linalg_ops import DEFAULT_MAX_CONDITION

DEBUG_ENV = "GATEDTRACK_DEBUG"

BASELINE_TIME_STEP = 0.5
BASELINE_PROCESS_STD = (0.4, 0.6, 0.4, 0.6)
BASELINE_MEASUREMENT_VAR = 0.25
GATE_THRESHOLD = 1.3e6
TUNED_TIME_STEP = 0.4
Q_RANGE = (0.001, 0.05, 10)
R_RANGE = (0.1, 0.2, 100)


def debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV, "0") == "1"


def candidate_grid(start: float, stop: float, num: int) -> np.ndarray:
    """Evenly spaced, inclusive candidate values (``numpy.linspace``)."""
    if int(num) < 1:
        raise ValidationError(f"candidate grid needs at least one value, got num={num}")
    return np.linspace(float(start), float(stop), int(num))


def validate_candidates(values, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64).reshape(-1)
    if arr.size == 0:
        raise ValidationError(f"{name} is empty")
    if not np.all(np.isfinite(arr)) or np.any(arr <= 0.0):
        raise ValidationError(f"{name} must contain positive finite values")
    return arr


def require_positive(value, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a real number, got {value!r}") from e
    if not np.isfinite(value) or value <= 0.0:
        raise ValidationError(f"{name} must be positive, got {value}")
    return value


class TrackingConfig:
    """Validated settings for a baseline run plus a hyperparameter search.

    Parameters
    ----------
    baseline_time_step: float
        ``dt`` of the un-tuned model.
    baseline_process_std: sequence of 4 floats
        Per-state process noise standard deviations; ``Q`` is their squares on
        the diagonal.
    baseline_measurement_var: float
        ``R = baseline_measurement_var * I``.
    gate_threshold: float
        Squared Mahalanobis distance above which an observation is rejected.
    tuned_time_step: float
        ``dt`` used for every cell of the hyperparameter grid.
    q_candidates, r_candidates: sequence of float
        Process / measurement noise scales, searched in the given order.
    initial_cov_scale: float
        ``P_0 = initial_cov_scale * I``.
    max_condition: float
        Condition-number limit for the innovation covariance.
    max_workers: int
        Number of grid cells evaluated concurrently (1 = sequential).
    verbose: bool
        Print per-step diagnostics; also enabled by ``GATEDTRACK_DEBUG=1``.
    """

    def __init__(
        self,
        baseline_time_step: float = BASELINE_TIME_STEP,
        baseline_process_std: Sequence[float] = BASELINE_PROCESS_STD,
        baseline_measurement_var: float = BASELINE_MEASUREMENT_VAR,
        gate_threshold: float = GATE_THRESHOLD,
        tuned_time_step: float = TUNED_TIME_STEP,
        q_candidates: Optional[Sequence[float]] = None,
        r_candidates: Optional[Sequence[float]] = None,
        initial_cov_scale: float = 1.0,
        max_condition: float = DEFAULT_MAX_CONDITION,
        max_workers: int = 1,
        verbose: bool = False,
    ) -> None:
        self.baseline_time_step = require_positive(baseline_time_step, "baseline_time_step")
        std = np.asarray(baseline_process_std, dtype=np.float64).reshape(-1)
        if std.shape != (4,) or not np.all(np.isfinite(std)) or np.any(std < 0.0):
            raise ValidationError("baseline_process_std must hold four non-negative values")
        self.baseline_process_std = tuple(float(s) for s in std)
        self.baseline_measurement_var = require_positive(baseline_measurement_var, "baseline_measurement_var")
        self.gate_threshold = require_positive(gate_threshold, "gate_threshold")
        self.tuned_time_step = require_positive(tuned_time_step, "tuned_time_step")

        if q_candidates is None:
            q_candidates = candidate_grid(*Q_RANGE)
        if r_candidates is None:
            r_candidates = candidate_grid(*R_RANGE)
        self.q_candidates = validate_candidates(q_candidates, "q_candidates")
        self.r_candidates = validate_candidates(r_candidates, "r_candidates")

        self.initial_cov_scale = require_positive(initial_cov_scale, "initial_cov_scale")
        self.max_condition = require_positive(max_condition, "max_condition")
        if int(max_workers) < 1:
            raise ValidationError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = int(max_workers)
        self.verbose = bool(verbose) or debug_enabled()

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "TrackingConfig":
        """Build from a mapping; ``q_range``/``r_range`` may replace explicit candidates."""
        options = dict(options)
        for key, target in (("q_range", "q_candidates"), ("r_range", "r_candidates")):
            if key in options:
                if target in options:
                    raise ValidationError(f"give either {key} or {target}, not both")
                options[target] = candidate_grid(*options.pop(key))
        try:
            return cls(**options)
        except TypeError as e:
            raise ValidationError(f"invalid configuration: {e}") from e

    def baseline_transition_cov(self) -> np.ndarray:
        return np.diag(np.square(self.baseline_process_std))

    def baseline_observation_cov(self) -> np.ndarray:
        return self.baseline_measurement_var * np.eye(2)

    def __repr__(self) -> str:
        return (
            f"TrackingConfig(baseline_dt={self.baseline_time_step}, tuned_dt={self.tuned_time_step}, "
            f"gate={self.gate_threshold}, grid={self.q_candidates.size}x{self.r_candidates.size})"
        )

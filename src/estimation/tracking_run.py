"""One full predict -> gate -> update pass over an observation sequence.

Per time step the run

1. predicts the state and covariance,
2. forms the innovation against the observation,
3. gates it: accepted observations are fused with ``update``; rejected ones
   (and steps whose innovation covariance is singular) keep the prediction
   as the posterior without touching its covariance,
4. records the estimate and its Euclidean error against the ground truth.

The gate and the update invert the same ``S`` under the same
``max_condition``, so a singular innovation covariance is always detected by
the gate; the update of an accepted observation never meets one.
"""
from __future__ import annotations

import math
from typing import List

import numpy as np

from data.data import ObservationSequence

from .config import debug_enabled, require_positive
from .errors import SingularCovarianceError, ValidationError
from .gating import GatingValidator
from .KalmanFilter import KalmanFilterCore, MotionModel
from .linalg_ops import DEFAULT_MAX_CONDITION, check_covariance, condition_number
from .metrics import axis_errors, position_errors, summarize


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


class RunResult:
    """Immutable outcome of a :class:`TrackingRun`.

    Attributes
    ----------
    states: ndarray, shape (T, 4)
        Posterior ``[x, vx, y, vy]`` per step.
    covariances: ndarray, shape (T, 4, 4)
        Posterior covariance per step.
    errors: ndarray, shape (T,)
        Euclidean position error against the ground truth.
    accepted: ndarray of bool, shape (T,)
        Whether the observation passed the gate and was fused.
    distances: ndarray, shape (T,)
        Squared Mahalanobis distance per step (NaN where ``S`` was singular).
    conditions: ndarray, shape (T,)
        Condition number of the innovation covariance per step.
    singular_steps: tuple of int
        Steps that degraded to predict-only because ``S`` could not be inverted.
    log_likelihood: float
        Sum of innovation log-densities over accepted steps.
    summary: ErrorSummary
        Mean and standard deviation of ``errors``.
    axis_stats: AxisErrorStats
        Signed per-axis error statistics.
    """

    __slots__ = (
        "model",
        "states",
        "covariances",
        "accepted",
        "distances",
        "conditions",
        "singular_steps",
        "log_likelihood",
        "errors",
        "summary",
        "axis_stats",
    )

    def __init__(
        self,
        model: MotionModel,
        states: np.ndarray,
        covariances: np.ndarray,
        truth: np.ndarray,
        accepted: np.ndarray,
        distances: np.ndarray,
        conditions: np.ndarray,
        singular_steps: List[int],
        log_likelihood: float,
    ) -> None:
        fields = dict(
            model=model,
            states=_frozen(states),
            covariances=_frozen(covariances),
            accepted=_frozen(accepted),
            distances=_frozen(distances),
            conditions=_frozen(conditions),
            singular_steps=tuple(singular_steps),
            log_likelihood=float(log_likelihood),
        )
        positions = fields["states"][:, [0, 2]]
        fields["errors"] = _frozen(position_errors(positions, truth))
        fields["summary"] = summarize(fields["errors"])
        fields["axis_stats"] = axis_errors(positions, truth)
        for name, value in fields.items():
            object.__setattr__(self, name, value)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def positions(self) -> np.ndarray:
        return self.states[:, [0, 2]]

    @property
    def mean_error(self) -> float:
        return self.summary.mean

    @property
    def std_error(self) -> float:
        return self.summary.std

    @property
    def rejected_count(self) -> int:
        return int(np.count_nonzero(~self.accepted)) - len(self.singular_steps)

    @property
    def singular_count(self) -> int:
        return len(self.singular_steps)

    def __len__(self) -> int:
        return int(self.states.shape[0])

    def __repr__(self) -> str:
        return (
            f"RunResult(T={len(self)}, mean_error={self.mean_error:.4f}, "
            f"rejected={self.rejected_count}, singular={self.singular_count})"
        )


class TrackingRun:
    """Drives the filter over a complete, pre-recorded sequence.

    Parameters
    ----------
    model: MotionModel
    gate_threshold: float
        Squared Mahalanobis distance above which observations are rejected.
    initial_cov_scale: float
        ``P_0 = initial_cov_scale * I``.
    max_condition: float
        Condition-number limit for the innovation covariance.
    verbose: bool
        Print rejected / degraded steps.
    """

    def __init__(
        self,
        model: MotionModel,
        gate_threshold: float,
        initial_cov_scale: float = 1.0,
        max_condition: float = DEFAULT_MAX_CONDITION,
        verbose: bool = False,
    ) -> None:
        self.model = model
        self.core = KalmanFilterCore(model, max_condition=max_condition)
        self.gate = GatingValidator(gate_threshold, max_condition=max_condition)
        self.initial_cov_scale = require_positive(initial_cov_scale, "initial_cov_scale")
        self.verbose = bool(verbose) or debug_enabled()

    def run(self, sequence: ObservationSequence) -> RunResult:
        """Filter ``sequence`` in temporal order and return the result."""
        if not isinstance(sequence, ObservationSequence):
            raise ValidationError(f"expected an ObservationSequence, got {type(sequence).__name__}")

        T = len(sequence)
        noisy = sequence.noisy

        m = self.core.initial_state(noisy[0])
        P = self.core.initial_cov(self.initial_cov_scale)

        states = np.zeros((T, 4))
        covariances = np.zeros((T, 4, 4))
        accepted = np.zeros(T, dtype=bool)
        distances = np.full(T, math.nan)
        conditions = np.full(T, math.nan)
        singular_steps: List[int] = []
        total_ll = 0.0

        for t in range(T):
            z = noisy[t]
            m_pred, P_pred = self.core.predict(m, P)
            y, S = self.core.innovation(m_pred, P_pred, z)
            conditions[t] = condition_number(S)

            try:
                decision = self.gate.validate(y, S)
                distances[t] = decision.distance
                if decision.accepted:
                    m, P, _, _ = self.core.update(m_pred, P_pred, z)
                    total_ll += self.core.log_likelihood(y, S)
                    accepted[t] = True
                else:
                    if self.verbose:
                        print(f"Frame {t}: Measurement rejected (outside gate), d={decision.distance:.3e}")
                    m, P = m_pred, check_covariance(P_pred, name="predicted covariance")
            except SingularCovarianceError as e:
                if self.verbose:
                    print(f"Frame {t}: innovation covariance singular, predict only ({e})")
                singular_steps.append(t)
                m, P = m_pred, check_covariance(P_pred, name="predicted covariance")

            states[t] = m.numpy()
            covariances[t] = P.numpy()

        if self.verbose:
            print(
                f"TrackingRun: {self.model!r} steps={T} accepted={int(accepted.sum())} "
                f"singular={len(singular_steps)}"
            )

        return RunResult(
            model=self.model,
            states=states,
            covariances=covariances,
            truth=sequence.truth,
            accepted=accepted,
            distances=distances,
            conditions=conditions,
            singular_steps=singular_steps,
            log_likelihood=total_ll,
        )

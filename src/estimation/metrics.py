"""Error statistics for estimated trajectories.

Standard deviations are sample standard deviations (``ddof=1``), matching
how the tracking error of the baseline and tuned filters has always been
reported; a single sample has a spread of 0.
"""
from __future__ import annotations

from typing import NamedTuple

import numpy as np

from .errors import ValidationError


class ErrorSummary(NamedTuple):
    mean: float
    std: float


class AxisErrorStats(NamedTuple):
    """Signed (estimate - truth) error along each axis."""

    x_mean: float
    x_std: float
    y_mean: float
    y_std: float


def _sample_std(values: np.ndarray) -> float:
    if values.size < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def _as_positions(values, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValidationError(f"{name} must have shape (T, 2), got {arr.shape}")
    if arr.shape[0] == 0:
        raise ValidationError(f"{name} is empty")
    return arr


def summarize(errors) -> ErrorSummary:
    """Mean and sample standard deviation of per-step errors."""
    arr = np.asarray(errors, dtype=np.float64).reshape(-1)
    if arr.size == 0:
        raise ValidationError("cannot summarize an empty error sequence")
    return ErrorSummary(float(np.mean(arr)), _sample_std(arr))


def position_errors(estimates, truth) -> np.ndarray:
    """Euclidean distance between estimated and true positions, per step."""
    est = _as_positions(estimates, "estimates")
    ref = _as_positions(truth, "truth")
    if est.shape != ref.shape:
        raise ValidationError(f"estimates {est.shape} and truth {ref.shape} differ in shape")
    return np.sqrt(np.sum((est - ref) ** 2, axis=1))


def axis_errors(estimates, truth) -> AxisErrorStats:
    est = _as_positions(estimates, "estimates")
    ref = _as_positions(truth, "truth")
    if est.shape != ref.shape:
        raise ValidationError(f"estimates {est.shape} and truth {ref.shape} differ in shape")
    diff = est - ref
    return AxisErrorStats(
        x_mean=float(np.mean(diff[:, 0])),
        x_std=_sample_std(diff[:, 0]),
        y_mean=float(np.mean(diff[:, 1])),
        y_std=_sample_std(diff[:, 1]),
    )


def measurement_errors(sequence) -> np.ndarray:
    """Per-step error of the raw noisy observations against the truth."""
    return position_errors(sequence.noisy, sequence.truth)

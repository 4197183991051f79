"""Observation sequences for 2-D tracking.

Classes / functions
-------------------
- ObservationSequence: validated, index-aligned ground truth and noisy positions.
- constant_velocity_trajectory: synthetic straight-line track with optional
  Gaussian observation noise and injected outliers.

Example
-------
>>> from data.data import constant_velocity_trajectory
>>> seq = constant_velocity_trajectory(50, time_step=0.5, velocity=(1.0, 0.5), noise_std=0.3, seed=1)
>>> seq.noisy.shape
(50, 2)
"""
from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from estimation.errors import ValidationError


def _as_series(values, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim == 2 and 1 in arr.shape:
        # column/row vectors as produced by csv readers
        arr = arr.reshape(-1)
    if arr.ndim != 1:
        raise ValidationError(f"{name} must be one-dimensional, got shape {arr.shape}")
    if arr.size == 0:
        raise ValidationError(f"{name} is empty")
    if not np.all(np.isfinite(arr)):
        raise ValidationError(f"{name} contains non-finite values")
    return arr


class ObservationSequence:
    """Ground-truth and noisy positions, aligned by time step.

    Parameters
    ----------
    x_true, y_true: array-like, shape (T,)
        True positions.
    x_noisy, y_noisy: array-like, shape (T,)
        Observed positions.

    Raises
    ------
    ValidationError
        If any sequence is empty, non-finite or the lengths differ.
    """

    def __init__(self, x_true, y_true, x_noisy, y_noisy) -> None:
        series = {
            "x_true": _as_series(x_true, "x_true"),
            "y_true": _as_series(y_true, "y_true"),
            "x_noisy": _as_series(x_noisy, "x_noisy"),
            "y_noisy": _as_series(y_noisy, "y_noisy"),
        }
        lengths = {name: arr.size for name, arr in series.items()}
        if len(set(lengths.values())) != 1:
            raise ValidationError(f"sequence lengths differ: {lengths}")

        self.truth = np.stack([series["x_true"], series["y_true"]], axis=1)
        self.noisy = np.stack([series["x_noisy"], series["y_noisy"]], axis=1)
        self.truth.setflags(write=False)
        self.noisy.setflags(write=False)

    @classmethod
    def from_positions(cls, truth, noisy) -> "ObservationSequence":
        """Build from two ``(T, 2)`` arrays of ``[x, y]`` rows."""
        truth = np.asarray(truth, dtype=np.float64)
        noisy = np.asarray(noisy, dtype=np.float64)
        if truth.ndim != 2 or truth.shape[1:] != (2,):
            raise ValidationError(f"truth must have shape (T, 2), got {truth.shape}")
        if noisy.ndim != 2 or noisy.shape[1:] != (2,):
            raise ValidationError(f"noisy must have shape (T, 2), got {noisy.shape}")
        return cls(truth[:, 0], truth[:, 1], noisy[:, 0], noisy[:, 1])

    def __len__(self) -> int:
        return int(self.truth.shape[0])

    def __repr__(self) -> str:
        return f"ObservationSequence(T={len(self)})"


def constant_velocity_trajectory(
    num_steps: int,
    time_step: float = 1.0,
    start: Tuple[float, float] = (0.0, 0.0),
    velocity: Tuple[float, float] = (1.0, 0.0),
    noise_std: float = 0.0,
    outliers: Optional[Dict[int, Sequence[float]]] = None,
    seed: Optional[int] = None,
) -> ObservationSequence:
    """Straight-line ground truth observed with optional noise.

    Parameters
    ----------
    num_steps: int
        Number of time steps T (>= 1).
    time_step: float
        Interval between steps.
    start, velocity: (float, float)
        Initial position and constant velocity.
    noise_std: float
        Standard deviation of isotropic Gaussian observation noise.
    outliers: dict, optional
        ``{step: (x, y)}`` replacing the noisy observation at ``step``.
    seed: int, optional
        Seed for ``numpy.random.default_rng``.
    """
    if int(num_steps) < 1:
        raise ValidationError(f"num_steps must be >= 1, got {num_steps}")
    if noise_std < 0.0:
        raise ValidationError(f"noise_std must be non-negative, got {noise_std}")

    t = np.arange(int(num_steps), dtype=np.float64) * float(time_step)
    truth = np.stack(
        [start[0] + velocity[0] * t, start[1] + velocity[1] * t],
        axis=1,
    )

    rng = np.random.default_rng(seed)
    noisy = truth.copy()
    if noise_std > 0.0:
        noisy = noisy + rng.normal(scale=noise_std, size=truth.shape)

    for step, position in (outliers or {}).items():
        if not 0 <= int(step) < truth.shape[0]:
            raise ValidationError(f"outlier step {step} outside 0..{truth.shape[0] - 1}")
        noisy[int(step)] = np.asarray(position, dtype=np.float64)

    return ObservationSequence.from_positions(truth, noisy)

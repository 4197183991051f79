"""Mahalanobis validation gate.

An observation is accepted when the squared Mahalanobis distance of its
innovation, ``d = y^T S^{-1} y``, does not exceed the gate threshold. For a
correct filter ``d`` is chi-square distributed with two degrees of freedom,
so :func:`threshold_from_probability` can turn a gate probability into a
threshold.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

import numpy as np
import scipy.stats
import tensorflow as tf

from .config import require_positive
from .errors import InternalInvariantError, ValidationError
from .linalg_ops import DEFAULT_MAX_CONDITION, invert_symmetric, to_tensor

ACCEPTED = "accepted"
REJECTED = "rejected"


class GateDecision(NamedTuple):
    status: str
    distance: float

    @property
    def accepted(self) -> bool:
        return self.status == ACCEPTED


def validate_threshold(threshold) -> float:
    return require_positive(threshold, "gate threshold")


def threshold_from_probability(probability: float, dof: int = 2) -> float:
    """Chi-square quantile giving a gate that keeps ``probability`` of valid observations."""
    p = float(probability)
    if not 0.0 < p < 1.0:
        raise ValidationError(f"gate probability must lie in (0, 1), got {p}")
    return float(scipy.stats.chi2.ppf(p, dof))


def mahalanobis_squared(innovation, innovation_cov, max_condition: float = DEFAULT_MAX_CONDITION) -> float:
    """Return ``y^T S^{-1} y``.

    Raises
    ------
    SingularCovarianceError
        If ``S`` cannot be inverted.
    InternalInvariantError
        If the distance is negative beyond rounding, which means ``S`` is not
        positive definite.
    """
    y = to_tensor(innovation)
    S_inv = invert_symmetric(innovation_cov, max_condition)
    d = float(tf.tensordot(y, tf.linalg.matvec(S_inv, y), axes=1).numpy())

    if np.isnan(d):
        raise InternalInvariantError("gate distance is NaN")
    if d < 0.0:
        # quadratic-form rounding on a PD matrix stays within a few ulps of |y|^2 |S^-1|
        scale = float(tf.reduce_sum(y * y).numpy()) * float(tf.reduce_max(tf.abs(S_inv)).numpy())
        if -d > 1e-12 * max(scale, 1.0):
            raise InternalInvariantError(f"negative gate distance {d:.3e}: innovation covariance is not positive definite")
        d = 0.0
    return d


class GatingValidator:
    """Classifies innovations as accepted or rejected.

    Parameters
    ----------
    threshold: float
        Default gate threshold on the squared Mahalanobis distance.
    max_condition: float
        Innovation covariances above this condition number are treated as singular.
    """

    def __init__(self, threshold: float, max_condition: float = DEFAULT_MAX_CONDITION) -> None:
        self.threshold = validate_threshold(threshold)
        self.max_condition = require_positive(max_condition, "max_condition")

    def validate(self, innovation, innovation_cov, threshold: Optional[float] = None) -> GateDecision:
        limit = self.threshold if threshold is None else validate_threshold(threshold)
        d = mahalanobis_squared(innovation, innovation_cov, self.max_condition)
        return GateDecision(ACCEPTED if d <= limit else REJECTED, d)

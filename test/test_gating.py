"""Tests for the Mahalanobis validation gate."""
import os
import sys

import numpy as np
import pytest

os.environ.setdefault("TF_ENABLE_ONEDNN_OPTS", "0")
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from estimation.errors import InternalInvariantError, SingularCovarianceError, ValidationError
from estimation.gating import (
    ACCEPTED,
    REJECTED,
    GatingValidator,
    mahalanobis_squared,
    threshold_from_probability,
)


def test_distance_matches_numpy():
    S = np.array([[2.0, 0.5], [0.5, 1.0]])
    y = np.array([1.0, -2.0])
    expected = y @ np.linalg.inv(S) @ y
    assert mahalanobis_squared(y, S) == pytest.approx(expected, rel=1e-12)


def test_boundary_is_inclusive():
    gate = GatingValidator(threshold=1.0)
    decision = gate.validate([1.0, 0.0], np.eye(2))
    assert decision.status == ACCEPTED
    assert decision.accepted
    assert decision.distance == pytest.approx(1.0)

    decision = gate.validate([1.0, 0.0], np.eye(2), threshold=0.99)
    assert decision.status == REJECTED
    assert not decision.accepted


def test_raising_threshold_never_rejects_an_accepted_innovation():
    rng = np.random.default_rng(7)
    S = np.array([[1.5, 0.2], [0.2, 0.8]])
    thresholds = np.sort(rng.uniform(0.1, 20.0, size=15))
    gate = GatingValidator(threshold=1.0)
    for _ in range(20):
        y = rng.normal(scale=2.0, size=2)
        flags = [gate.validate(y, S, threshold=t).accepted for t in thresholds]
        # once accepted, every larger threshold accepts as well
        first = flags.index(True) if True in flags else len(flags)
        assert all(flags[first:])
        assert not any(flags[:first])


def test_zero_innovation_is_always_accepted():
    gate = GatingValidator(threshold=1e-9)
    decision = gate.validate([0.0, 0.0], np.diag([3.0, 4.0]))
    assert decision.accepted
    assert decision.distance == 0.0


@pytest.mark.parametrize("threshold", [0.0, -1.0, float("nan"), float("inf"), "wide"])
def test_invalid_threshold(threshold):
    with pytest.raises(ValidationError):
        GatingValidator(threshold=threshold)
    gate = GatingValidator(threshold=1.0)
    with pytest.raises(ValidationError):
        gate.validate([1.0, 0.0], np.eye(2), threshold=threshold)


def test_negative_distance_is_an_internal_error():
    S = np.array([[1.0, 0.0], [0.0, -1.0]])
    with pytest.raises(InternalInvariantError):
        GatingValidator(threshold=10.0).validate([0.0, 1.0], S)


def test_singular_covariance_propagates():
    with pytest.raises(SingularCovarianceError):
        GatingValidator(threshold=10.0).validate([1.0, 1.0], np.zeros((2, 2)))


def test_threshold_from_probability():
    # chi-square with 2 dof: quantile p is -2 ln(1 - p)
    assert threshold_from_probability(0.99) == pytest.approx(-2.0 * np.log(0.01), rel=1e-9)
    assert threshold_from_probability(0.95, dof=2) == pytest.approx(5.991464547, rel=1e-8)
    with pytest.raises(ValidationError):
        threshold_from_probability(1.0)


@pytest.mark.parametrize("max_condition", [0.0, -1.0, float("nan")])
def test_invalid_condition_limit(max_condition):
    with pytest.raises(ValidationError):
        GatingValidator(threshold=1.0, max_condition=max_condition)

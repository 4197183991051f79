"""Tests for observation sequences and synthetic trajectories."""
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from data.data import ObservationSequence, constant_velocity_trajectory
from estimation.errors import ValidationError


def test_sequence_stacks_positions():
    seq = ObservationSequence([0, 1, 2], [5, 5, 5], [0.1, 1.1, 2.1], [4.9, 5.0, 5.2])
    assert len(seq) == 3
    np.testing.assert_array_equal(seq.truth, [[0, 5], [1, 5], [2, 5]])
    np.testing.assert_allclose(seq.noisy[1], [1.1, 5.0])


def test_sequence_accepts_column_vectors():
    col = np.arange(4.0).reshape(-1, 1)
    seq = ObservationSequence(col, col, col, col)
    assert seq.truth.shape == (4, 2)


def test_sequence_is_read_only():
    seq = ObservationSequence([0.0], [0.0], [0.0], [0.0])
    with pytest.raises(ValueError):
        seq.noisy[0, 0] = 1.0


@pytest.mark.parametrize("args", [
    ([0, 1], [0, 1], [0, 1], [0]),
    ([], [], [], []),
    ([0, np.nan], [0, 1], [0, 1], [0, 1]),
    ([0, 1], [0, 1], [0, np.inf], [0, 1]),
    (np.zeros((2, 2)), [0, 1], [0, 1], [0, 1]),
])
def test_sequence_validation(args):
    with pytest.raises(ValidationError):
        ObservationSequence(*args)


def test_from_positions_checks_shape():
    with pytest.raises(ValidationError):
        ObservationSequence.from_positions(np.zeros((3, 3)), np.zeros((3, 2)))


def test_constant_velocity_trajectory():
    seq = constant_velocity_trajectory(5, time_step=0.5, start=(1.0, 2.0), velocity=(2.0, -1.0))
    np.testing.assert_allclose(seq.truth[:, 0], [1.0, 2.0, 3.0, 4.0, 5.0])
    np.testing.assert_allclose(seq.truth[:, 1], [2.0, 1.5, 1.0, 0.5, 0.0])
    np.testing.assert_array_equal(seq.noisy, seq.truth)


def test_trajectory_noise_is_seeded_and_outliers_injected():
    a = constant_velocity_trajectory(10, noise_std=0.5, outliers={4: (100.0, -100.0)}, seed=42)
    b = constant_velocity_trajectory(10, noise_std=0.5, outliers={4: (100.0, -100.0)}, seed=42)
    np.testing.assert_array_equal(a.noisy, b.noisy)
    np.testing.assert_array_equal(a.noisy[4], [100.0, -100.0])
    assert not np.allclose(a.noisy[0], a.truth[0])


def test_trajectory_validation():
    with pytest.raises(ValidationError):
        constant_velocity_trajectory(0)
    with pytest.raises(ValidationError):
        constant_velocity_trajectory(3, noise_std=-1.0)
    with pytest.raises(ValidationError):
        constant_velocity_trajectory(3, outliers={3: (0.0, 0.0)})

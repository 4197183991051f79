"""Tests for MotionModel and the predict/update core."""
import os
import sys

import numpy as np
import pytest
import scipy.stats

os.environ.setdefault("TF_ENABLE_ONEDNN_OPTS", "0")
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from estimation.errors import SingularCovarianceError, ValidationError
from estimation.KalmanFilter import KalmanFilterCore, MotionModel, transition_matrix


def _numpy_update(m_pred, P_pred, z, H, R):
    S = H @ P_pred @ H.T + R
    K = P_pred @ H.T @ np.linalg.inv(S)
    y = z - H @ m_pred
    return m_pred + K @ y, (np.eye(4) - K @ H) @ P_pred, y, S


def test_from_scales_builds_isotropic_covariances():
    model = MotionModel.from_scales(0.02, 0.15, time_step=0.4)
    np.testing.assert_allclose(model.Q.numpy(), 0.02 * np.eye(4))
    np.testing.assert_allclose(model.R.numpy(), 0.15 * np.eye(2))
    np.testing.assert_allclose(model.F.numpy(), transition_matrix(0.4))
    np.testing.assert_array_equal(model.H.numpy(), [[1, 0, 0, 0], [0, 0, 1, 0]])
    assert model.q_scale == 0.02 and model.r_scale == 0.15
    assert model.time_step == 0.4


def test_motion_model_is_immutable():
    model = MotionModel.from_scales(0.01, 0.1, time_step=1.0)
    with pytest.raises(AttributeError):
        model.time_step = 2.0
    with pytest.raises(AttributeError):
        model._Q = None


@pytest.mark.parametrize("kwargs", [
    dict(q=0.01, r=0.1, time_step=0.0),
    dict(q=0.01, r=0.1, time_step=-1.0),
    dict(q=0.0, r=0.1, time_step=1.0),
    dict(q=0.01, r=float("nan"), time_step=1.0),
])
def test_from_scales_rejects_bad_values(kwargs):
    with pytest.raises(ValidationError):
        MotionModel.from_scales(**kwargs)


def test_constant_velocity_checks_shapes():
    with pytest.raises(ValidationError):
        MotionModel.constant_velocity(0.5, np.eye(3), np.eye(2))
    with pytest.raises(ValidationError):
        MotionModel.constant_velocity(0.5, np.eye(4), np.eye(4))


def test_initial_state_and_cov():
    m0 = KalmanFilterCore.initial_state([3.0, -2.0]).numpy()
    np.testing.assert_array_equal(m0, [3.0, 0.0, -2.0, 0.0])
    np.testing.assert_array_equal(KalmanFilterCore.initial_cov(2.0).numpy(), 2.0 * np.eye(4))


def test_predict():
    model = MotionModel.from_scales(0.1, 0.2, time_step=0.5)
    core = KalmanFilterCore(model)
    m_pred, P_pred = core.predict([1.0, 2.0, 3.0, 4.0], np.eye(4))
    np.testing.assert_allclose(m_pred.numpy(), [2.0, 2.0, 5.0, 4.0])
    F = transition_matrix(0.5)
    np.testing.assert_allclose(P_pred.numpy(), F @ F.T + 0.1 * np.eye(4))


def test_update_matches_reference_equations():
    model = MotionModel.constant_velocity(
        0.5, np.diag([0.16, 0.36, 0.16, 0.36]), 0.25 * np.eye(2)
    )
    core = KalmanFilterCore(model)
    m_pred, P_pred = core.predict([0.5, 1.0, -1.0, 0.2], np.eye(4))
    z = np.array([1.3, -0.7])

    m, P, y, S = core.update(m_pred, P_pred, z)
    m_ref, P_ref, y_ref, S_ref = _numpy_update(
        m_pred.numpy(), P_pred.numpy(), z, model.H.numpy(), model.R.numpy()
    )
    np.testing.assert_allclose(m.numpy(), m_ref, rtol=1e-10, atol=1e-12)
    np.testing.assert_allclose(P.numpy(), 0.5 * (P_ref + P_ref.T), rtol=1e-10, atol=1e-12)
    np.testing.assert_allclose(y.numpy(), y_ref)
    np.testing.assert_allclose(S.numpy(), S_ref)
    np.testing.assert_array_equal(P.numpy(), P.numpy().T)
    assert np.all(np.diag(P.numpy()) >= 0.0)


def test_update_with_negligible_measurement_noise_snaps_to_observation():
    core = KalmanFilterCore(MotionModel.from_scales(0.01, 1e-10, time_step=1.0))
    m_pred, P_pred = core.predict([0.0, 0.0, 0.0, 0.0], np.eye(4))
    m, _, _, _ = core.update(m_pred, P_pred, [4.0, -3.0])
    np.testing.assert_allclose(m.numpy()[[0, 2]], [4.0, -3.0], atol=1e-8)


def test_update_raises_on_singular_innovation_covariance():
    model = MotionModel.constant_velocity(1.0, np.zeros((4, 4)), np.zeros((2, 2)))
    core = KalmanFilterCore(model)
    with pytest.raises(SingularCovarianceError):
        core.update(np.zeros(4), np.zeros((4, 4)), [1.0, 1.0])


def test_log_likelihood_matches_scipy():
    S = np.array([[2.0, 0.3], [0.3, 1.0]])
    y = np.array([0.4, -1.1])
    expected = scipy.stats.multivariate_normal(mean=np.zeros(2), cov=S).logpdf(y)
    assert KalmanFilterCore.log_likelihood(y, S) == pytest.approx(expected, rel=1e-10)

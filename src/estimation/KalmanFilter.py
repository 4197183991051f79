"""Constant-velocity Kalman filter implemented with TensorFlow.

The state is ``[x, vx, y, vy]`` and only the two positions are observed:

    x_t = F x_{t-1} + q_t,   q_t ~ N(0, Q)
    z_t = H x_t     + r_t,   r_t ~ N(0, R)

Classes
-------
- MotionModel: immutable bundle of F, H, Q and R for one time step ``dt``.
- KalmanFilterCore: stateless ``predict`` / ``update`` on a MotionModel.

Example
-------
>>> from estimation.KalmanFilter import MotionModel, KalmanFilterCore
>>> core = KalmanFilterCore(MotionModel.from_scales(0.01, 0.1, time_step=0.5))
>>> m, P = core.predict(core.initial_state([0.0, 0.0]), core.initial_cov())
"""
from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
import tensorflow as tf
import tensorflow_probability as tfp

from .config import require_positive
from .errors import ValidationError
from .linalg_ops import (
    DEFAULT_COVARIANCE_TOL,
    DEFAULT_MAX_CONDITION,
    DTYPE,
    check_covariance,
    invert_symmetric,
    to_tensor,
)

tfd = tfp.distributions

STATE_DIM = 4
OBS_DIM = 2


def transition_matrix(time_step: float) -> np.ndarray:
    """Constant-velocity transition for state ``[x, vx, y, vy]``."""
    dt = float(time_step)
    return np.array(
        [[1.0, dt, 0.0, 0.0],
         [0.0, 1.0, 0.0, 0.0],
         [0.0, 0.0, 1.0, dt],
         [0.0, 0.0, 0.0, 1.0]],
        dtype=np.float64,
    )


def observation_matrix() -> np.ndarray:
    """Selects ``x`` and ``y`` from ``[x, vx, y, vy]``."""
    return np.array(
        [[1.0, 0.0, 0.0, 0.0],
         [0.0, 0.0, 1.0, 0.0]],
        dtype=np.float64,
    )


class MotionModel:
    """Immutable constant-velocity model configuration.

    Parameters
    ----------
    time_step: float
        Sampling interval ``dt`` (> 0) used to build ``F``.
    transition_cov: array-like, shape (4, 4)
        Process noise covariance ``Q``.
    observation_cov: array-like, shape (2, 2)
        Measurement noise covariance ``R``.
    q_scale, r_scale: float, optional
        Set by :meth:`from_scales`; ``None`` for hand-built covariances.
    """

    __slots__ = ("_time_step", "_F", "_H", "_Q", "_R", "_q_scale", "_r_scale")

    def __init__(
        self,
        time_step: float,
        transition_cov,
        observation_cov,
        q_scale: Optional[float] = None,
        r_scale: Optional[float] = None,
    ) -> None:
        dt = require_positive(time_step, "time_step")
        Q = to_tensor(transition_cov)
        R = to_tensor(observation_cov)
        if tuple(Q.shape) != (STATE_DIM, STATE_DIM):
            raise ValidationError(f"transition_cov must have shape (4, 4), got {tuple(Q.shape)}")
        if tuple(R.shape) != (OBS_DIM, OBS_DIM):
            raise ValidationError(f"observation_cov must have shape (2, 2), got {tuple(R.shape)}")

        object.__setattr__(self, "_time_step", dt)
        object.__setattr__(self, "_F", to_tensor(transition_matrix(dt)))
        object.__setattr__(self, "_H", to_tensor(observation_matrix()))
        object.__setattr__(self, "_Q", Q)
        object.__setattr__(self, "_R", R)
        object.__setattr__(self, "_q_scale", None if q_scale is None else float(q_scale))
        object.__setattr__(self, "_r_scale", None if r_scale is None else float(r_scale))

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @classmethod
    def constant_velocity(cls, time_step: float, transition_cov, observation_cov) -> "MotionModel":
        return cls(time_step, transition_cov, observation_cov)

    @classmethod
    def from_scales(cls, q: float, r: float, time_step: float) -> "MotionModel":
        """Build the model with ``Q = q * I_4`` and ``R = r * I_2``."""
        q = require_positive(q, "q")
        r = require_positive(r, "r")
        return cls(
            time_step,
            q * np.eye(STATE_DIM),
            r * np.eye(OBS_DIM),
            q_scale=q,
            r_scale=r,
        )

    @property
    def time_step(self) -> float:
        return self._time_step

    @property
    def F(self) -> tf.Tensor:
        return self._F

    @property
    def H(self) -> tf.Tensor:
        return self._H

    @property
    def Q(self) -> tf.Tensor:
        return self._Q

    @property
    def R(self) -> tf.Tensor:
        return self._R

    @property
    def q_scale(self) -> Optional[float]:
        return self._q_scale

    @property
    def r_scale(self) -> Optional[float]:
        return self._r_scale

    def __repr__(self) -> str:
        if self._q_scale is not None:
            return f"MotionModel(dt={self._time_step}, q={self._q_scale}, r={self._r_scale})"
        return f"MotionModel(dt={self._time_step})"


class KalmanFilterCore:
    """Predict/update equations of the linear Kalman filter.

    The core holds no per-run state: the caller owns ``state`` and ``P`` and
    passes them in, which keeps independent runs isolated from each other.

    Parameters
    ----------
    model: MotionModel
    max_condition: float
        Innovation covariances with a larger condition number are treated as
        singular.
    covariance_tol: float
        Relative tolerance used when checking posterior covariances.
    """

    def __init__(
        self,
        model: MotionModel,
        max_condition: float = DEFAULT_MAX_CONDITION,
        covariance_tol: float = DEFAULT_COVARIANCE_TOL,
    ) -> None:
        self.model = model
        self.max_condition = require_positive(max_condition, "max_condition")
        self.covariance_tol = float(covariance_tol)
        self._I = tf.eye(STATE_DIM, dtype=DTYPE)

    @staticmethod
    def initial_state(first_observation) -> tf.Tensor:
        """Position from the first observation, zero velocity."""
        z0 = np.asarray(first_observation, dtype=np.float64).reshape(OBS_DIM)
        return to_tensor([z0[0], 0.0, z0[1], 0.0])

    @staticmethod
    def initial_cov(scale: float = 1.0) -> tf.Tensor:
        return tf.eye(STATE_DIM, dtype=DTYPE) * tf.cast(scale, DTYPE)

    def predict(self, state, P) -> Tuple[tf.Tensor, tf.Tensor]:
        """Propagate mean and covariance one step: ``F m`` and ``F P F^T + Q``."""
        F = self.model.F
        m_pred = tf.linalg.matvec(F, to_tensor(state))
        P_pred = F @ to_tensor(P) @ tf.transpose(F) + self.model.Q
        return m_pred, P_pred

    def innovation(self, state_pred, P_pred, observation) -> Tuple[tf.Tensor, tf.Tensor]:
        """Innovation ``y = z - H m'`` and its covariance ``S = H P' H^T + R``."""
        H = self.model.H
        z = to_tensor(observation)
        y = z - tf.linalg.matvec(H, state_pred)
        S = H @ P_pred @ tf.transpose(H) + self.model.R
        return y, S

    def update(self, state_pred, P_pred, observation) -> Tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
        """Measurement update.

        Returns
        -------
        m: posterior mean (4,)
        P: posterior covariance (4, 4), symmetrised
        y: innovation (2,)
        S: innovation covariance (2, 2)

        Raises
        ------
        SingularCovarianceError
            If ``S`` cannot be inverted.
        InternalInvariantError
            If the posterior covariance is asymmetric or has a negative variance.
        """
        state_pred = to_tensor(state_pred)
        P_pred = to_tensor(P_pred)
        H = self.model.H

        y, S = self.innovation(state_pred, P_pred, observation)
        S_inv = invert_symmetric(S, self.max_condition)
        K = P_pred @ tf.transpose(H) @ S_inv

        m = state_pred + tf.linalg.matvec(K, y)
        P = (self._I - K @ H) @ P_pred
        P = check_covariance(P, self.covariance_tol, name="posterior covariance")
        return m, P, y, S

    @staticmethod
    def log_likelihood(innovation, innovation_cov) -> float:
        """Gaussian log-density of the innovation under ``N(0, S)``."""
        y = to_tensor(innovation)
        S = to_tensor(innovation_cov)
        mvn = tfd.MultivariateNormalTriL(
            loc=tf.zeros_like(y),
            scale_tril=tf.linalg.cholesky(S),
        )
        return float(mvn.log_prob(y).numpy())

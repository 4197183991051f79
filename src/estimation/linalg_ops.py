"""Small-matrix helpers shared by the filter core and the validation gate.

All matrices in this package are tiny (2x2 observation-space and 4x4
state-space covariances), so inversion is done directly: analytically for
2x2, with ``tf.linalg.inv`` otherwise. Every inverse is guarded by a
condition-number check so that an ill-conditioned innovation covariance
surfaces as :class:`SingularCovarianceError` instead of NaN/Inf values.
"""
from __future__ import annotations

import math

import tensorflow as tf

from .errors import InternalInvariantError, SingularCovarianceError

DTYPE = tf.float64

# Largest condition number of S accepted before an inverse is refused.
DEFAULT_MAX_CONDITION = 1e12
# Relative tolerance for symmetry / non-negative variance checks.
DEFAULT_COVARIANCE_TOL = 1e-9


def to_tensor(value, dtype: tf.DType = DTYPE) -> tf.Tensor:
    return tf.convert_to_tensor(value, dtype=dtype)


def symmetrize(mat: tf.Tensor) -> tf.Tensor:
    """Return ``(M + M^T) / 2``."""
    return 0.5 * (mat + tf.transpose(mat))


def condition_number(mat: tf.Tensor) -> float:
    """Ratio of the largest to the smallest singular value of ``mat``.

    Returns ``inf`` when the smallest singular value is zero and ``nan`` if the
    matrix holds non-finite entries.
    """
    mat = to_tensor(mat)
    if not bool(tf.reduce_all(tf.math.is_finite(mat))):
        return math.nan
    svals = tf.linalg.svd(mat, compute_uv=False)
    smax = float(tf.reduce_max(svals).numpy())
    smin = float(tf.reduce_min(svals).numpy())
    if smin == 0.0:
        return math.inf
    return smax / smin


def _check_condition(mat: tf.Tensor, max_condition: float) -> float:
    cond = condition_number(mat)
    if not math.isfinite(cond) or cond > max_condition:
        raise SingularCovarianceError(
            f"matrix is singular or ill-conditioned (cond={cond:.3e}, limit={max_condition:.3e})",
            condition=cond,
        )
    return cond


def invert_2x2(mat, max_condition: float = DEFAULT_MAX_CONDITION) -> tf.Tensor:
    """Analytic inverse of a 2x2 matrix.

    Raises
    ------
    SingularCovarianceError
        If the determinant is zero or non-finite, or the condition number
        exceeds ``max_condition``.
    """
    mat = to_tensor(mat)
    if tuple(mat.shape) != (2, 2):
        raise ValueError(f"invert_2x2 expects a (2, 2) matrix, got {tuple(mat.shape)}")

    a, b = mat[0, 0], mat[0, 1]
    c, d = mat[1, 0], mat[1, 1]
    det = a * d - b * c
    det_val = float(det.numpy())
    if det_val == 0.0 or not math.isfinite(det_val):
        raise SingularCovarianceError(f"2x2 matrix has determinant {det_val}")
    _check_condition(mat, max_condition)

    adjugate = tf.stack([tf.stack([d, -b]), tf.stack([-c, a])])
    return adjugate / det


def invert_symmetric(mat, max_condition: float = DEFAULT_MAX_CONDITION) -> tf.Tensor:
    """Inverse of a small symmetric matrix, symmetrised on return."""
    mat = to_tensor(mat)
    n = int(mat.shape[0])
    if mat.shape.rank != 2 or int(mat.shape[1]) != n:
        raise ValueError(f"expected a square matrix, got shape {tuple(mat.shape)}")
    if n == 2:
        return symmetrize(invert_2x2(mat, max_condition))

    _check_condition(mat, max_condition)
    try:
        inv = tf.linalg.inv(mat)
    except tf.errors.InvalidArgumentError as e:
        raise SingularCovarianceError(f"matrix inversion failed: {e.message}") from e
    if not bool(tf.reduce_all(tf.math.is_finite(inv))):
        raise SingularCovarianceError("matrix inverse has non-finite entries")
    return symmetrize(inv)


def check_covariance(P, tol: float = DEFAULT_COVARIANCE_TOL, name: str = "P") -> tf.Tensor:
    """Verify that ``P`` is a usable covariance and return it symmetrised.

    Tolerances are relative to the largest absolute entry (floored at one).

    Raises
    ------
    InternalInvariantError
        On non-finite entries, asymmetry beyond tolerance or a negative
        variance beyond tolerance.
    """
    P = to_tensor(P)
    if not bool(tf.reduce_all(tf.math.is_finite(P))):
        raise InternalInvariantError(f"{name} has non-finite entries")

    scale = max(1.0, float(tf.reduce_max(tf.abs(P)).numpy()))
    asymmetry = float(tf.reduce_max(tf.abs(P - tf.transpose(P))).numpy())
    if asymmetry > tol * scale:
        raise InternalInvariantError(f"{name} lost symmetry (max |P - P^T| = {asymmetry:.3e})")

    min_var = float(tf.reduce_min(tf.linalg.diag_part(P)).numpy())
    if min_var < -tol * scale:
        raise InternalInvariantError(f"{name} has a negative variance ({min_var:.3e})")

    return symmetrize(P)
